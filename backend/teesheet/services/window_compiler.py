"""
Window compiler: abstract windows (fixed clock or solar offset) -> concrete course-local ranges per side.

compile_windows is pure: callers hand it the windows, the day, the zone, sun times and the version/side
lookups. compile_windows_for_date loads all of that from the database.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable
from zoneinfo import ZoneInfo

from dateutil import parser as date_parser
from sqlalchemy.orm import Session

from teesheet.config import settings
from teesheet.core.constants import DEFAULT_END_CLOCK, DEFAULT_START_CLOCK
from teesheet.core.errors import WindowClosed
from teesheet.core.timeutil import local_day_bounds, parse_date_iso
from teesheet.models.tee_sheet_side import TeeSheetSide
from teesheet.models.template import TeeSheetTemplate, TeeSheetTemplateSide, TeeSheetTemplateVersion
from teesheet.services.solar import SunTimes, get_sun_times
from teesheet.services.template_resolver import (
    TimeAnchor,
    WindowSpec,
    load_sheet_and_zone,
    resolve_effective_windows,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VersionInfo:
    template_version_id: int
    interval_mins: int | None  # None when the template row is unreachable
    side_slots: dict[int, bool]  # template side_id -> start_slots_enabled


@dataclass(frozen=True)
class SideInfo:
    side_id: int
    interval_mins: int | None


@dataclass(frozen=True)
class CompiledWindow:
    side_id: int
    template_version_id: int
    start: datetime  # course-local, aware
    end: datetime
    interval_mins: int
    start_slots_enabled: bool
    source: str | None = None

    def to_dict(self) -> dict:
        return {
            "side_id": self.side_id,
            "template_version_id": self.template_version_id,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "interval_mins": self.interval_mins,
            "start_slots_enabled": self.start_slots_enabled,
            "source": self.source,
        }


def parse_clock(value: str | None, default: str) -> time:
    """Tolerant wall-clock parse ('07:00', '07:00:00', '7:00 am'). Raises ValueError when unparseable."""
    text = (value or "").strip() or default
    try:
        parsed = date_parser.parse(text, default=datetime(2000, 1, 1))
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Unparseable clock {text!r}") from e
    return parsed.time()


def _resolve_anchor(anchor: TimeAnchor, day: date, zone: ZoneInfo, solar: datetime, default_clock: str) -> datetime:
    if anchor.is_solar:
        return solar + timedelta(minutes=anchor.offset_mins)
    return datetime.combine(day, parse_clock(anchor.clock, default_clock), tzinfo=zone)


def resolve_range(window: WindowSpec, day: date, zone: ZoneInfo, sun: SunTimes) -> tuple[datetime, datetime]:
    """
    Concrete local [start, end) for a window on day, clamped to that local day with start floored
    to the minute. Raises WindowClosed when nothing remains, ValueError on an unparseable clock.
    """
    start = _resolve_anchor(window.start, day, zone, sun.sunrise.astimezone(zone), DEFAULT_START_CLOCK)
    end = _resolve_anchor(window.end, day, zone, sun.sunset.astimezone(zone), DEFAULT_END_CLOCK)
    day_start, day_end = local_day_bounds(day, zone)
    if start < day_start:
        start = day_start
    if end > day_end:
        end = day_end
    start = start.astimezone(zone).replace(second=0, microsecond=0)
    end = end.astimezone(zone)
    if end <= start:
        raise WindowClosed(window_id=window.window_id)
    return start, end


def _target_sides(window: WindowSpec, version: VersionInfo, sides: dict[int, SideInfo]) -> list[tuple[int, bool]]:
    if window.side_id is not None:
        if window.side_id not in sides:
            logger.warning("Window %s targets side %s which is not in service; skipped", window.window_id, window.side_id)
            return []
        return [(window.side_id, version.side_slots.get(window.side_id, True))]
    if version.side_slots:
        return [(sid, enabled) for sid, enabled in version.side_slots.items() if sid in sides]
    return [(sid, True) for sid in sides]


def compile_windows(
    windows: list[WindowSpec],
    day: date,
    zone: ZoneInfo,
    sun: SunTimes,
    version_lookup: Callable[[int], VersionInfo | None],
    sides: dict[int, SideInfo],
    source: str | None = None,
) -> list[CompiledWindow]:
    """Compile windows for one day. Unresolvable windows are skipped; empty ranges drop silently."""
    out: list[CompiledWindow] = []
    for w in windows:
        version = version_lookup(w.template_version_id)
        if version is None:
            logger.warning("Template version %s unreachable; window %s skipped", w.template_version_id, w.window_id)
            continue
        try:
            start, end = resolve_range(w, day, zone, sun)
        except WindowClosed:
            continue
        except ValueError as e:
            logger.warning("Window %s skipped: %s", w.window_id, e)
            continue
        for side_id, enabled in _target_sides(w, version, sides):
            interval = version.interval_mins or sides[side_id].interval_mins or settings.default_interval_mins
            out.append(
                CompiledWindow(
                    side_id=side_id,
                    template_version_id=w.template_version_id,
                    start=start,
                    end=end,
                    interval_mins=int(interval),
                    start_slots_enabled=enabled,
                    source=source,
                )
            )
    out.sort(key=lambda c: (c.side_id, c.start))
    return out


def template_for_version(db: Session, template_version_id: int) -> TeeSheetTemplate | None:
    return (
        db.query(TeeSheetTemplate)
        .join(TeeSheetTemplateVersion, TeeSheetTemplateVersion.template_id == TeeSheetTemplate.id)
        .filter(TeeSheetTemplateVersion.id == template_version_id)
        .first()
    )


def effective_sides(db: Session, tee_sheet_id: int, day: date) -> list[TeeSheetSide]:
    rows = db.query(TeeSheetSide).filter(TeeSheetSide.tee_sheet_id == tee_sheet_id).order_by(TeeSheetSide.id).all()
    return [s for s in rows if s.is_effective_on(day)]


def db_version_lookup(db: Session) -> Callable[[int], VersionInfo | None]:
    cache: dict[int, VersionInfo | None] = {}

    def lookup(version_id: int) -> VersionInfo | None:
        if version_id in cache:
            return cache[version_id]
        version = db.query(TeeSheetTemplateVersion).filter(TeeSheetTemplateVersion.id == version_id).first()
        info = None
        if version is not None:
            template = db.query(TeeSheetTemplate).filter(TeeSheetTemplate.id == version.template_id).first()
            side_rows = (
                db.query(TeeSheetTemplateSide)
                .filter(TeeSheetTemplateSide.version_id == version_id)
                .order_by(TeeSheetTemplateSide.side_id)
                .all()
            )
            info = VersionInfo(
                template_version_id=version_id,
                interval_mins=template.interval_mins if template else None,
                side_slots={r.side_id: bool(r.start_slots_enabled) for r in side_rows},
            )
        cache[version_id] = info
        return info

    return lookup


def compile_windows_for_date(
    db: Session,
    tee_sheet_id: int,
    date_iso: str | date,
    windows: list[WindowSpec] | None = None,
    source: str | None = None,
) -> list[CompiledWindow]:
    """Compile the given windows (or the resolved effective windows) for a tee sheet on a date."""
    day = parse_date_iso(date_iso)
    _, course, zone = load_sheet_and_zone(db, tee_sheet_id)
    if windows is None:
        effective = resolve_effective_windows(db, tee_sheet_id, day)
        windows, source = effective.windows, effective.source
    if not windows:
        return []
    sun = get_sun_times(day, course.latitude if course else None, course.longitude if course else None, zone)
    sides = {s.id: SideInfo(side_id=s.id, interval_mins=s.interval_mins) for s in effective_sides(db, tee_sheet_id, day)}
    return compile_windows(windows, day, zone, sun, db_version_lookup(db), sides, source=source)
