"""
Effective-window resolution: which configuration governs a tee sheet on a calendar date.

Priority: published override for exactly that date (even with zero windows, which means closed)
→ first published season (by id) whose published version covers the date, using that weekday's
windows → nothing.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from teesheet.core.constants import (
    LEGACY_SUNDAY,
    MODE_FIXED,
    MODE_SUNRISE_OFFSET,
    MODE_SUNSET_OFFSET,
    SOLAR_MODE_ALIASES,
    STATUS_PUBLISHED,
    SUNDAY,
)
from teesheet.core.errors import NotFound
from teesheet.core.timeutil import course_zone, parse_date_iso, sunday_based_weekday
from teesheet.models.golf_course import GolfCourse
from teesheet.models.override import TeeSheetOverride, TeeSheetOverrideWindow
from teesheet.models.season import TeeSheetSeason, TeeSheetSeasonVersion, TeeSheetSeasonWeekdayWindow
from teesheet.models.tee_sheet import TeeSheet

logger = logging.getLogger(__name__)

SOURCE_OVERRIDE = "override"
SOURCE_SEASON = "season"

ANCHOR_FIXED = "fixed"
ANCHOR_SOLAR = "solar_offset"

_SOLAR_MODES = {MODE_SUNRISE_OFFSET, MODE_SUNSET_OFFSET, *SOLAR_MODE_ALIASES}


@dataclass(frozen=True)
class TimeAnchor:
    """Either a wall clock (fixed) or a signed minute offset from sunrise/sunset (solar_offset)."""
    kind: str
    clock: str | None = None
    offset_mins: int = 0

    @classmethod
    def fixed(cls, clock: str | None) -> "TimeAnchor":
        return cls(kind=ANCHOR_FIXED, clock=clock)

    @classmethod
    def solar_offset(cls, minutes: int | None) -> "TimeAnchor":
        return cls(kind=ANCHOR_SOLAR, offset_mins=int(minutes or 0))

    @property
    def is_solar(self) -> bool:
        return self.kind == ANCHOR_SOLAR


@dataclass(frozen=True)
class WindowSpec:
    start: TimeAnchor
    end: TimeAnchor
    template_version_id: int
    side_id: int | None = None
    window_id: int | None = None


@dataclass
class EffectiveWindows:
    source: str | None
    windows: list[WindowSpec] = field(default_factory=list)
    zone: ZoneInfo | None = None

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "windows": [
                {
                    "window_id": w.window_id,
                    "template_version_id": w.template_version_id,
                    "side_id": w.side_id,
                    "start": {"mode": w.start.kind, "clock": w.start.clock, "offset_mins": w.start.offset_mins},
                    "end": {"mode": w.end.kind, "clock": w.end.clock, "offset_mins": w.end.offset_mins},
                }
                for w in self.windows
            ],
        }


def _anchor(mode: str | None, clock: str | None, offset: int | None) -> TimeAnchor:
    m = (mode or MODE_FIXED).strip().lower()
    if m in _SOLAR_MODES:
        return TimeAnchor.solar_offset(offset)
    if m != MODE_FIXED:
        logger.warning("Unknown window mode %r; treating as fixed", mode)
    return TimeAnchor.fixed(clock)


def window_spec_from_row(row: TeeSheetSeasonWeekdayWindow | TeeSheetOverrideWindow) -> WindowSpec:
    """Weekday and override windows share their column layout."""
    return WindowSpec(
        start=_anchor(row.start_mode, row.start_time_local, row.start_offset_mins),
        end=_anchor(row.end_mode, row.end_time_local, row.end_offset_mins),
        template_version_id=row.template_version_id,
        side_id=row.side_id,
        window_id=row.id,
    )


def load_sheet_and_zone(db: Session, tee_sheet_id: int) -> tuple[TeeSheet, GolfCourse | None, ZoneInfo]:
    sheet = db.query(TeeSheet).filter(TeeSheet.id == tee_sheet_id).first()
    if sheet is None:
        raise NotFound(f"Tee sheet {tee_sheet_id} not found", tee_sheet_id=tee_sheet_id)
    course = db.query(GolfCourse).filter(GolfCourse.id == sheet.course_id).first()
    return sheet, course, course_zone(course.timezone if course else None)


def published_override_for(db: Session, tee_sheet_id: int, day: date) -> TeeSheetOverride | None:
    return (
        db.query(TeeSheetOverride)
        .filter(
            TeeSheetOverride.tee_sheet_id == tee_sheet_id,
            TeeSheetOverride.date == day,
            TeeSheetOverride.status == STATUS_PUBLISHED,
            TeeSheetOverride.published_version_id.isnot(None),
        )
        .order_by(TeeSheetOverride.id)
        .first()
    )


def governing_season_version(db: Session, tee_sheet_id: int, day: date) -> TeeSheetSeasonVersion | None:
    """First published season (by id) whose published version's range contains day."""
    return (
        db.query(TeeSheetSeasonVersion)
        .join(TeeSheetSeason, TeeSheetSeason.published_version_id == TeeSheetSeasonVersion.id)
        .filter(
            TeeSheetSeason.tee_sheet_id == tee_sheet_id,
            TeeSheetSeason.status == STATUS_PUBLISHED,
            TeeSheetSeason.archived.is_(False),
            TeeSheetSeasonVersion.start_date <= day,
            TeeSheetSeasonVersion.end_date_exclusive > day,
        )
        .order_by(TeeSheetSeason.id)
        .first()
    )


def weekday_windows(db: Session, season_version_id: int, day: date) -> list[TeeSheetSeasonWeekdayWindow]:
    weekday = sunday_based_weekday(day)
    weekdays = [weekday, LEGACY_SUNDAY] if weekday == SUNDAY else [weekday]
    return (
        db.query(TeeSheetSeasonWeekdayWindow)
        .filter(
            TeeSheetSeasonWeekdayWindow.season_version_id == season_version_id,
            TeeSheetSeasonWeekdayWindow.weekday.in_(weekdays),
        )
        .order_by(TeeSheetSeasonWeekdayWindow.position, TeeSheetSeasonWeekdayWindow.id)
        .all()
    )


def resolve_effective_windows(db: Session, tee_sheet_id: int, date_iso: str | date) -> EffectiveWindows:
    """Resolve the governing windows for a tee sheet on a date. Raises NotFound / ConfigurationInvalid."""
    day = parse_date_iso(date_iso)
    _, _, zone = load_sheet_and_zone(db, tee_sheet_id)

    override = published_override_for(db, tee_sheet_id, day)
    if override is not None:
        rows = (
            db.query(TeeSheetOverrideWindow)
            .filter(TeeSheetOverrideWindow.override_version_id == override.published_version_id)
            .order_by(TeeSheetOverrideWindow.position, TeeSheetOverrideWindow.id)
            .all()
        )
        return EffectiveWindows(SOURCE_OVERRIDE, [window_spec_from_row(r) for r in rows], zone)

    version = governing_season_version(db, tee_sheet_id, day)
    if version is not None:
        rows = weekday_windows(db, version.id, day)
        return EffectiveWindows(SOURCE_SEASON, [window_spec_from_row(r) for r in rows], zone)

    return EffectiveWindows(None, [], zone)
