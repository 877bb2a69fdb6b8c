"""Initial tee sheet schema: courses, versioned configuration, tee times, bookings, waitlist

Revision ID: 001
Revises:
Create Date: (run alembic upgrade head)

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(updated: bool = True) -> list:
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now())]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()))
    return cols


def _window_columns() -> list:
    return [
        sa.Column("start_mode", sa.String(16), nullable=False, server_default="fixed"),
        sa.Column("end_mode", sa.String(16), nullable=False, server_default="fixed"),
        sa.Column("start_time_local", sa.String(8), nullable=True),
        sa.Column("end_time_local", sa.String(8), nullable=True),
        sa.Column("start_offset_mins", sa.Integer(), nullable=True),
        sa.Column("end_offset_mins", sa.Integer(), nullable=True),
        sa.Column("template_version_id", sa.Integer(), sa.ForeignKey("tee_sheet_template_versions.id"), nullable=False),
        sa.Column("side_id", sa.Integer(), sa.ForeignKey("tee_sheet_sides.id"), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "golf_courses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="UTC"),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "tee_sheets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("golf_courses.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("daily_release_local", sa.String(8), nullable=True),
        sa.Column("cancel_cutoff_hours", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_tee_sheets_course_id", "tee_sheets", ["course_id"])
    op.create_table(
        "tee_sheet_sides",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tee_sheet_id", sa.Integer(), sa.ForeignKey("tee_sheets.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("valid_from", sa.Date(), nullable=False),
        sa.Column("valid_to", sa.Date(), nullable=True),
        sa.Column("minutes_per_hole", sa.Integer(), nullable=False, server_default="12"),
        sa.Column("hole_count", sa.Integer(), nullable=False, server_default="9"),
        sa.Column("interval_mins", sa.Integer(), nullable=False, server_default="8"),
        sa.Column("start_slots_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_tee_sheet_sides_tee_sheet_id", "tee_sheet_sides", ["tee_sheet_id"])

    # --- Templates (published_version_id FK added once versions exist) ---
    op.create_table(
        "tee_sheet_templates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tee_sheet_id", sa.Integer(), sa.ForeignKey("tee_sheets.id"), nullable=False),
        sa.Column("name", sa.String(120), nullable=False, server_default="Untitled Template"),
        sa.Column("status", sa.String(16), nullable=False, server_default="draft"),
        sa.Column("published_version_id", sa.Integer(), nullable=True),
        sa.Column("interval_mins", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("max_players_staff", sa.Integer(), nullable=False, server_default="4"),
        sa.Column("max_players_online", sa.Integer(), nullable=False, server_default="4"),
        sa.Column("archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_tee_sheet_templates_tee_sheet_id", "tee_sheet_templates", ["tee_sheet_id"])
    op.create_table(
        "tee_sheet_template_versions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("template_id", sa.Integer(), sa.ForeignKey("tee_sheet_templates.id"), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
        sa.UniqueConstraint("template_id", "version_number", name="uq_template_version_number"),
    )
    op.create_index("ix_tee_sheet_template_versions_template_id", "tee_sheet_template_versions", ["template_id"])
    op.create_foreign_key(
        "fk_template_published_version",
        "tee_sheet_templates",
        "tee_sheet_template_versions",
        ["published_version_id"],
        ["id"],
    )
    op.create_table(
        "tee_sheet_template_sides",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("version_id", sa.Integer(), sa.ForeignKey("tee_sheet_template_versions.id"), nullable=False),
        sa.Column("side_id", sa.Integer(), sa.ForeignKey("tee_sheet_sides.id"), nullable=False),
        sa.Column("start_slots_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("rerounds_to_side_id", sa.Integer(), sa.ForeignKey("tee_sheet_sides.id"), nullable=True),
        sa.Column("max_legs_starting", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("min_players", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("walk_ride_mode", sa.String(8), nullable=False, server_default="either"),
        sa.UniqueConstraint("version_id", "side_id", name="uq_template_side"),
    )
    op.create_index("ix_tee_sheet_template_sides_version_id", "tee_sheet_template_sides", ["version_id"])
    op.create_table(
        "tee_sheet_template_side_access",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("version_id", sa.Integer(), sa.ForeignKey("tee_sheet_template_versions.id"), nullable=False),
        sa.Column("side_id", sa.Integer(), sa.ForeignKey("tee_sheet_sides.id"), nullable=False),
        sa.Column("booking_class_id", sa.String(64), nullable=False),
        sa.Column("is_allowed", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.UniqueConstraint("version_id", "side_id", "booking_class_id", name="uq_template_side_access"),
    )
    op.create_index("ix_tee_sheet_template_side_access_version_id", "tee_sheet_template_side_access", ["version_id"])
    op.create_table(
        "tee_sheet_template_side_prices",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("version_id", sa.Integer(), sa.ForeignKey("tee_sheet_template_versions.id"), nullable=False),
        sa.Column("side_id", sa.Integer(), sa.ForeignKey("tee_sheet_sides.id"), nullable=False),
        sa.Column("booking_class_id", sa.String(64), nullable=False),
        sa.Column("greens_fee_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cart_fee_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("version_id", "side_id", "booking_class_id", name="uq_template_side_price"),
    )
    op.create_index("ix_tee_sheet_template_side_prices_version_id", "tee_sheet_template_side_prices", ["version_id"])
    op.create_table(
        "template_version_booking_windows",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "template_version_id", sa.Integer(), sa.ForeignKey("tee_sheet_template_versions.id"), nullable=False
        ),
        sa.Column("booking_class_id", sa.String(64), nullable=False),
        sa.Column("max_days_in_advance", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("template_version_id", "booking_class_id", name="uq_version_booking_window"),
    )
    op.create_index(
        "ix_template_version_booking_windows_template_version_id",
        "template_version_booking_windows",
        ["template_version_id"],
    )

    # --- Seasons ---
    op.create_table(
        "tee_sheet_seasons",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tee_sheet_id", sa.Integer(), sa.ForeignKey("tee_sheets.id"), nullable=False),
        sa.Column("name", sa.String(120), nullable=False, server_default="Untitled Season"),
        sa.Column("status", sa.String(16), nullable=False, server_default="draft"),
        sa.Column("published_version_id", sa.Integer(), nullable=True),
        sa.Column("archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_tee_sheet_seasons_tee_sheet_id", "tee_sheet_seasons", ["tee_sheet_id"])
    op.create_table(
        "tee_sheet_season_versions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("season_id", sa.Integer(), sa.ForeignKey("tee_sheet_seasons.id"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date_exclusive", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_tee_sheet_season_versions_season_id", "tee_sheet_season_versions", ["season_id"])
    op.create_foreign_key(
        "fk_season_published_version",
        "tee_sheet_seasons",
        "tee_sheet_season_versions",
        ["published_version_id"],
        ["id"],
    )
    op.create_table(
        "tee_sheet_season_weekday_windows",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("season_version_id", sa.Integer(), sa.ForeignKey("tee_sheet_season_versions.id"), nullable=False),
        sa.Column("weekday", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        *_window_columns(),
        sa.UniqueConstraint("season_version_id", "weekday", "position", name="uq_season_weekday_position"),
    )
    op.create_index(
        "ix_tee_sheet_season_weekday_windows_season_version_id",
        "tee_sheet_season_weekday_windows",
        ["season_version_id"],
    )

    # --- Overrides ---
    op.create_table(
        "tee_sheet_overrides",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tee_sheet_id", sa.Integer(), sa.ForeignKey("tee_sheets.id"), nullable=False),
        sa.Column("name", sa.String(120), nullable=False, server_default="Untitled Override"),
        sa.Column("status", sa.String(16), nullable=False, server_default="draft"),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("published_version_id", sa.Integer(), nullable=True),
        sa.Column("draft_version_id", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_tee_sheet_overrides_tee_sheet_id", "tee_sheet_overrides", ["tee_sheet_id"])
    op.create_index("ix_tee_sheet_overrides_date", "tee_sheet_overrides", ["date"])
    op.create_table(
        "tee_sheet_override_versions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("override_id", sa.Integer(), sa.ForeignKey("tee_sheet_overrides.id"), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_tee_sheet_override_versions_override_id", "tee_sheet_override_versions", ["override_id"])
    op.create_foreign_key(
        "fk_override_published_version",
        "tee_sheet_overrides",
        "tee_sheet_override_versions",
        ["published_version_id"],
        ["id"],
    )
    op.create_foreign_key(
        "fk_override_draft_version",
        "tee_sheet_overrides",
        "tee_sheet_override_versions",
        ["draft_version_id"],
        ["id"],
    )
    op.create_table(
        "tee_sheet_override_windows",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "override_version_id", sa.Integer(), sa.ForeignKey("tee_sheet_override_versions.id"), nullable=False
        ),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        *_window_columns(),
    )
    op.create_index(
        "ix_tee_sheet_override_windows_override_version_id", "tee_sheet_override_windows", ["override_version_id"]
    )

    # --- Operational: closures, tee times, bookings, waitlist ---
    op.create_table(
        "closure_blocks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tee_sheet_id", sa.Integer(), sa.ForeignKey("tee_sheets.id"), nullable=False),
        sa.Column("side_id", sa.Integer(), sa.ForeignKey("tee_sheet_sides.id"), nullable=True),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reason", sa.String(255), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_closure_blocks_tee_sheet_id", "closure_blocks", ["tee_sheet_id"])
    op.create_table(
        "tee_times",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tee_sheet_id", sa.Integer(), sa.ForeignKey("tee_sheets.id"), nullable=False),
        sa.Column("side_id", sa.Integer(), sa.ForeignKey("tee_sheet_sides.id"), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="4"),
        sa.Column("assigned_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_blocked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("blocked_reason", sa.String(255), nullable=True),
        sa.Column(
            "blocked_by_closure_id",
            sa.Integer(),
            sa.ForeignKey("closure_blocks.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("can_start_18", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("rerounds_to_side_id", sa.Integer(), sa.ForeignKey("tee_sheet_sides.id"), nullable=True),
        sa.Column("reround_tee_time_id", sa.Integer(), nullable=True),
        sa.Column("holes_label", sa.String(8), nullable=False, server_default="9"),
        *_timestamps(),
        sa.UniqueConstraint("tee_sheet_id", "side_id", "start_time", name="uq_tee_times_sheet_side_start"),
        sa.CheckConstraint(
            "assigned_count >= 0 AND assigned_count <= capacity", name="ck_tee_times_assigned_within_capacity"
        ),
    )
    op.create_index("ix_tee_times_tee_sheet_id", "tee_times", ["tee_sheet_id"])
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tee_sheet_id", sa.Integer(), sa.ForeignKey("tee_sheets.id"), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=True),
        sa.Column("booking_class_id", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="Active"),
        sa.Column("party_size", sa.Integer(), nullable=False),
        sa.Column("walk_ride", sa.String(8), nullable=False, server_default="ride"),
        sa.Column("total_price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("source", sa.String(16), nullable=False, server_default="direct"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_bookings_tee_sheet_id", "bookings", ["tee_sheet_id"])
    op.create_index("ix_bookings_owner_id", "bookings", ["owner_id"])
    op.create_table(
        "booking_round_legs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("leg_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("walk_ride", sa.String(8), nullable=True),
        sa.Column("price_cents", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_booking_round_legs_booking_id", "booking_round_legs", ["booking_id"])
    op.create_table(
        "tee_time_assignments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_round_leg_id", sa.Integer(), sa.ForeignKey("booking_round_legs.id"), nullable=False),
        sa.Column("tee_time_id", sa.Integer(), sa.ForeignKey("tee_times.id"), nullable=False),
        sa.Column("seat_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("player_name", sa.String(255), nullable=True),
        sa.Column("player_email", sa.String(255), nullable=True),
    )
    op.create_index("ix_tee_time_assignments_booking_round_leg_id", "tee_time_assignments", ["booking_round_leg_id"])
    op.create_index("ix_tee_time_assignments_tee_time_id", "tee_time_assignments", ["tee_time_id"])
    op.create_table(
        "booking_idempotency_keys",
        sa.Column("idempotency_key", sa.String(128), primary_key=True),
        sa.Column("operation", sa.String(32), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=True),
        sa.Column("status_code", sa.Integer(), nullable=False, server_default="201"),
        sa.Column("response_json", sa.Text(), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_table(
        "tee_time_waitlist",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tee_time_id", sa.Integer(), sa.ForeignKey("tee_times.id"), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=True),
        sa.Column("party_size", sa.Integer(), nullable=False),
        sa.Column("booking_class_id", sa.String(64), nullable=False),
        sa.Column("contact_email", sa.String(255), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="Waiting"),
        sa.Column("offer_token", sa.String(64), nullable=True),
        sa.Column("offer_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_tee_time_waitlist_tee_time_id", "tee_time_waitlist", ["tee_time_id"])


def downgrade() -> None:
    op.drop_table("tee_time_waitlist")
    op.drop_table("booking_idempotency_keys")
    op.drop_table("tee_time_assignments")
    op.drop_table("booking_round_legs")
    op.drop_table("bookings")
    op.drop_table("tee_times")
    op.drop_table("closure_blocks")
    op.drop_constraint("fk_override_draft_version", "tee_sheet_overrides", type_="foreignkey")
    op.drop_constraint("fk_override_published_version", "tee_sheet_overrides", type_="foreignkey")
    op.drop_table("tee_sheet_override_windows")
    op.drop_table("tee_sheet_override_versions")
    op.drop_table("tee_sheet_overrides")
    op.drop_constraint("fk_season_published_version", "tee_sheet_seasons", type_="foreignkey")
    op.drop_table("tee_sheet_season_weekday_windows")
    op.drop_table("tee_sheet_season_versions")
    op.drop_table("tee_sheet_seasons")
    op.drop_constraint("fk_template_published_version", "tee_sheet_templates", type_="foreignkey")
    op.drop_table("template_version_booking_windows")
    op.drop_table("tee_sheet_template_side_prices")
    op.drop_table("tee_sheet_template_side_access")
    op.drop_table("tee_sheet_template_sides")
    op.drop_table("tee_sheet_template_versions")
    op.drop_table("tee_sheet_templates")
    op.drop_table("tee_sheet_sides")
    op.drop_table("tee_sheets")
    op.drop_table("golf_courses")
