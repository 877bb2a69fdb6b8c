"""
Centralized constants for the tee sheet engine (Encapsulate What Changes).

Change status names, role sets or fallback classes here instead of scattering literals across
services and routes. Tunable numbers (intervals, cutoffs, TTLs) live in config.settings.
"""
from datetime import time

# Configuration lifecycle
STATUS_DRAFT = "draft"
STATUS_PUBLISHED = "published"

# Window anchor modes (start uses sunrise, end uses sunset)
MODE_FIXED = "fixed"
MODE_SUNRISE_OFFSET = "sunrise_offset"
MODE_SUNSET_OFFSET = "sunset_offset"
# Accepted spellings of the solar mode from older clients
SOLAR_MODE_ALIASES = ("solar_offset", "solar-offset")

# Clocks used when a fixed window omits its start/end
DEFAULT_START_CLOCK = "00:00:00"
DEFAULT_END_CLOCK = "23:59:59"

# Fallback sun clocks when coordinates are missing (local time)
DEFAULT_SUNRISE = time(7, 0)
DEFAULT_SUNSET = time(18, 0)

# Weekdays: 0 = Sunday .. 6 = Saturday. 7 is a legacy Sunday.
SUNDAY = 0
LEGACY_SUNDAY = 7

# Booking
BOOKING_ACTIVE = "Active"
BOOKING_CANCELLED = "Cancelled"
BOOKING_SOURCE_DIRECT = "direct"
BOOKING_SOURCE_WAITLIST = "waitlist"
WALK = "walk"
RIDE = "ride"
WALK_RIDE_EITHER = "either"
# Booking classes consulted (in order) when the requested class has no explicit rule
FALLBACK_BOOKING_CLASSES = ("public", "full")
# Class whose price must exist for every side before a template version may be published
PUBLISH_PRICE_CLASS = "public"
MAX_LEGS = 2
HOLES_NINE = 9
HOLES_EIGHTEEN = 18

# Actors
ROLE_CUSTOMER = "Customer"
STAFF_ROLES = frozenset({"Staff", "Manager", "Admin", "SuperAdmin"})

# Waitlist
WAITLIST_WAITING = "Waiting"
WAITLIST_OFFERED = "Offered"
WAITLIST_ACCEPTED = "Accepted"
WAITLIST_EXPIRED = "Expired"

# Idempotency record operations
OP_CREATE_BOOKING = "create_booking"
WAITLIST_IDEMPOTENCY_PREFIX = "waitlist:"

# Reround annotation on generated slots
HOLES_LABEL_NINE = "9"
HOLES_LABEL_REROUND = "9/18"

# Days regenerated after a publish with apply_now when no explicit range is given
DEFAULT_APPLY_DAYS = 14
