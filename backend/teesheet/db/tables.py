"""
Single source of truth for database tables created by migration 001.

Use these names when writing raw SQL (e.g. TRUNCATE in dev tooling). alembic/env.py asserts the
registered models match this tuple exactly.
"""
# All tables that exist in the DB. Must match models and migrations.
ALL_TABLE_NAMES = (
    "golf_courses",
    "tee_sheets",
    "tee_sheet_sides",
    "tee_sheet_templates",
    "tee_sheet_template_versions",
    "tee_sheet_template_sides",
    "tee_sheet_template_side_access",
    "tee_sheet_template_side_prices",
    "template_version_booking_windows",
    "tee_sheet_seasons",
    "tee_sheet_season_versions",
    "tee_sheet_season_weekday_windows",
    "tee_sheet_overrides",
    "tee_sheet_override_versions",
    "tee_sheet_override_windows",
    "closure_blocks",
    "tee_times",
    "bookings",
    "booking_round_legs",
    "tee_time_assignments",
    "booking_idempotency_keys",
    "tee_time_waitlist",
)

# Tables holding generated slots and everything booked against them. Cleared (in this order, for FKs)
# when resetting a sheet's operational state while keeping its configuration.
OPERATIONAL_TABLE_NAMES = (
    "tee_time_waitlist",
    "booking_idempotency_keys",
    "tee_time_assignments",
    "booking_round_legs",
    "bookings",
    "tee_times",
)
