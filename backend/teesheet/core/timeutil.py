"""
Time helpers. Instants are UTC-aware everywhere in the engine; course-local values only exist
while compiling windows and evaluating booking horizons.
"""
import logging
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from teesheet.core.errors import ConfigurationInvalid

logger = logging.getLogger(__name__)

UTC = timezone.utc


def as_utc(dt: datetime | None) -> datetime | None:
    """Attach UTC to naive values (SQLite drops tzinfo) and convert aware ones."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def now_utc() -> datetime:
    return datetime.now(UTC)


def course_zone(tz_name: str | None) -> ZoneInfo:
    """IANA zone for a course; unknown or empty names fall back to UTC."""
    name = (tz_name or "").strip() or "UTC"
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown course timezone %r; using UTC", name)
        return ZoneInfo("UTC")


def parse_date_iso(value: str | date) -> date:
    """YYYY-MM-DD -> date. Raises ConfigurationInvalid on malformed input."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat((value or "").strip())
    except ValueError:
        raise ConfigurationInvalid(f"Invalid date: {value!r}", field="date")


def local_day_bounds(day: date, zone: ZoneInfo) -> tuple[datetime, datetime]:
    """Local midnight of day and of the following day, both aware in zone."""
    start = datetime.combine(day, time(0, 0), tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time(0, 0), tzinfo=zone)
    return start, end


def sunday_based_weekday(day: date) -> int:
    """0 = Sunday .. 6 = Saturday."""
    return (day.weekday() + 1) % 7
