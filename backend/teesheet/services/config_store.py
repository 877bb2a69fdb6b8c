"""
Configuration store: courses, sheets, sides and the versioned Template / Season / Override entities.

Versions are an append-only log. A version is frozen the first time it is published (published_at);
publishing is a validated swap of the parent's published_version_id, and rolling back means
publishing an older version again. Every operation commits its own unit of work.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import func
from sqlalchemy.orm import Session

from teesheet.core.constants import (
    DEFAULT_APPLY_DAYS,
    DEFAULT_END_CLOCK,
    DEFAULT_START_CLOCK,
    LEGACY_SUNDAY,
    MAX_LEGS,
    MODE_FIXED,
    MODE_SUNRISE_OFFSET,
    MODE_SUNSET_OFFSET,
    PUBLISH_PRICE_CLASS,
    RIDE,
    SOLAR_MODE_ALIASES,
    STATUS_DRAFT,
    STATUS_PUBLISHED,
    SUNDAY,
    WALK,
    WALK_RIDE_EITHER,
)
from teesheet.core.errors import ConfigurationInvalid, InvalidState, NotFound, VersionImmutable
from teesheet.core.timeutil import as_utc, now_utc, parse_date_iso, sunday_based_weekday
from teesheet.models.closure_block import ClosureBlock
from teesheet.models.golf_course import GolfCourse
from teesheet.models.override import TeeSheetOverride, TeeSheetOverrideVersion, TeeSheetOverrideWindow
from teesheet.models.season import TeeSheetSeason, TeeSheetSeasonVersion, TeeSheetSeasonWeekdayWindow
from teesheet.models.tee_sheet import TeeSheet
from teesheet.models.tee_sheet_side import TeeSheetSide
from teesheet.models.tee_time import TeeTime
from teesheet.models.template import (
    TeeSheetTemplate,
    TeeSheetTemplateSide,
    TeeSheetTemplateSideAccess,
    TeeSheetTemplateSidePrice,
    TeeSheetTemplateVersion,
    TemplateVersionBookingWindow,
)
from teesheet.services.tee_rules import find_reround_cycles
from teesheet.services.tee_sheet_generator import DEFAULT_CLOSURE_REASON, closure_covering, regenerate_range
from teesheet.services.template_resolver import load_sheet_and_zone, window_spec_from_row
from teesheet.services.window_compiler import compile_windows_for_date, effective_sides, parse_clock

logger = logging.getLogger(__name__)

_START_MODES = {MODE_FIXED, MODE_SUNRISE_OFFSET, *SOLAR_MODE_ALIASES}
_END_MODES = {MODE_FIXED, MODE_SUNSET_OFFSET, *SOLAR_MODE_ALIASES}
_WALK_RIDE_MODES = {WALK, RIDE, WALK_RIDE_EITHER}


def _get(db: Session, model, row_id: int, label: str):
    row = db.query(model).filter(model.id == row_id).first()
    if row is None:
        raise NotFound(f"{label} {row_id} not found", id=row_id)
    return row


# --- Courses, sheets, sides ---


def create_course(
    db: Session,
    name: str,
    timezone: str = "UTC",
    latitude: float | None = None,
    longitude: float | None = None,
) -> GolfCourse:
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigurationInvalid(f"Unknown timezone {timezone!r}", field="timezone")
    course = GolfCourse(name=name, timezone=timezone, latitude=latitude, longitude=longitude)
    db.add(course)
    db.commit()
    db.refresh(course)
    return course


def create_tee_sheet(
    db: Session,
    course_id: int,
    name: str,
    description: str | None = None,
    daily_release_local: str | None = None,
    cancel_cutoff_hours: int | None = None,
) -> TeeSheet:
    _get(db, GolfCourse, course_id, "Course")
    if daily_release_local:
        try:
            parse_clock(daily_release_local, "00:00")
        except ValueError:
            raise ConfigurationInvalid(f"Invalid daily release clock {daily_release_local!r}", field="daily_release_local")
    if cancel_cutoff_hours is not None and cancel_cutoff_hours < 0:
        raise ConfigurationInvalid("cancel_cutoff_hours must be >= 0", field="cancel_cutoff_hours")
    sheet = TeeSheet(
        course_id=course_id,
        name=name,
        description=description,
        daily_release_local=daily_release_local,
        cancel_cutoff_hours=cancel_cutoff_hours,
    )
    db.add(sheet)
    db.commit()
    db.refresh(sheet)
    return sheet


def _ranges_overlap(a_from: date, a_to: date | None, b_from: date, b_to: date | None) -> bool:
    return (b_to is None or a_from < b_to) and (a_to is None or b_from < a_to)


def create_side(
    db: Session,
    tee_sheet_id: int,
    name: str,
    valid_from: date,
    valid_to: date | None = None,
    minutes_per_hole: int = 12,
    hole_count: int = 9,
    interval_mins: int = 8,
    start_slots_enabled: bool = True,
) -> TeeSheetSide:
    """Add a side. Sides with the same name on a sheet may not have overlapping date ranges."""
    _get(db, TeeSheet, tee_sheet_id, "Tee sheet")
    valid_from = parse_date_iso(valid_from)
    valid_to = parse_date_iso(valid_to) if valid_to else None
    if valid_to is not None and valid_to <= valid_from:
        raise ConfigurationInvalid("valid_to must be after valid_from", field="valid_to")
    if minutes_per_hole < 1 or hole_count < 1 or interval_mins < 1:
        raise ConfigurationInvalid("minutes_per_hole, hole_count and interval_mins must be positive")
    same_name = db.query(TeeSheetSide).filter(TeeSheetSide.tee_sheet_id == tee_sheet_id, TeeSheetSide.name == name).all()
    for other in same_name:
        if _ranges_overlap(valid_from, valid_to, other.valid_from, other.valid_to):
            raise ConfigurationInvalid(
                f"Side {name!r} already exists for an overlapping date range",
                violations=[{"code": "overlapping_side", "side_id": other.id}],
            )
    side = TeeSheetSide(
        tee_sheet_id=tee_sheet_id,
        name=name,
        valid_from=valid_from,
        valid_to=valid_to,
        minutes_per_hole=minutes_per_hole,
        hole_count=hole_count,
        interval_mins=interval_mins,
        start_slots_enabled=start_slots_enabled,
    )
    db.add(side)
    db.commit()
    db.refresh(side)
    return side


def _side_on_sheet(db: Session, side_id: int, tee_sheet_id: int) -> TeeSheetSide:
    side = _get(db, TeeSheetSide, side_id, "Side")
    if side.tee_sheet_id != tee_sheet_id:
        raise ConfigurationInvalid(f"Side {side_id} belongs to another tee sheet", side_id=side_id)
    return side


# --- Templates ---


def create_template(
    db: Session,
    tee_sheet_id: int,
    name: str = "Untitled Template",
    interval_mins: int = 10,
    max_players_staff: int = 4,
    max_players_online: int = 4,
) -> TeeSheetTemplate:
    _get(db, TeeSheet, tee_sheet_id, "Tee sheet")
    if interval_mins < 1:
        raise ConfigurationInvalid("interval_mins must be positive", field="interval_mins")
    template = TeeSheetTemplate(
        tee_sheet_id=tee_sheet_id,
        name=name,
        status=STATUS_DRAFT,
        interval_mins=interval_mins,
        max_players_staff=max_players_staff,
        max_players_online=max_players_online,
    )
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


def create_template_version(
    db: Session,
    template_id: int,
    copy_from: int | None = None,
    notes: str | None = None,
) -> TeeSheetTemplateVersion:
    """Next draft version; optionally a copy of another version of the same template."""
    template = _get(db, TeeSheetTemplate, template_id, "Template")
    source = None
    if copy_from is not None:
        source = _get(db, TeeSheetTemplateVersion, copy_from, "Template version")
        if source.template_id != template.id:
            raise ConfigurationInvalid("copy_from must be a version of the same template", copy_from=copy_from)
    last = (
        db.query(func.max(TeeSheetTemplateVersion.version_number))
        .filter(TeeSheetTemplateVersion.template_id == template.id)
        .scalar()
    )
    version = TeeSheetTemplateVersion(template_id=template.id, version_number=(last or 0) + 1, notes=notes)
    db.add(version)
    db.flush()
    if source is not None:
        for s in db.query(TeeSheetTemplateSide).filter(TeeSheetTemplateSide.version_id == source.id):
            db.add(TeeSheetTemplateSide(
                version_id=version.id,
                side_id=s.side_id,
                start_slots_enabled=s.start_slots_enabled,
                rerounds_to_side_id=s.rerounds_to_side_id,
                max_legs_starting=s.max_legs_starting,
                min_players=s.min_players,
                walk_ride_mode=s.walk_ride_mode,
            ))
        for a in db.query(TeeSheetTemplateSideAccess).filter(TeeSheetTemplateSideAccess.version_id == source.id):
            db.add(TeeSheetTemplateSideAccess(
                version_id=version.id, side_id=a.side_id, booking_class_id=a.booking_class_id, is_allowed=a.is_allowed
            ))
        for p in db.query(TeeSheetTemplateSidePrice).filter(TeeSheetTemplateSidePrice.version_id == source.id):
            db.add(TeeSheetTemplateSidePrice(
                version_id=version.id,
                side_id=p.side_id,
                booking_class_id=p.booking_class_id,
                greens_fee_cents=p.greens_fee_cents,
                cart_fee_cents=p.cart_fee_cents,
            ))
        for w in db.query(TemplateVersionBookingWindow).filter(TemplateVersionBookingWindow.template_version_id == source.id):
            db.add(TemplateVersionBookingWindow(
                template_version_id=version.id, booking_class_id=w.booking_class_id, max_days_in_advance=w.max_days_in_advance
            ))
    db.commit()
    db.refresh(version)
    return version


def _editable_template_version(db: Session, version_id: int) -> tuple[TeeSheetTemplateVersion, TeeSheetTemplate]:
    version = _get(db, TeeSheetTemplateVersion, version_id, "Template version")
    if version.published_at is not None:
        raise VersionImmutable(f"Template version {version_id} has been published", version_id=version_id)
    template = _get(db, TeeSheetTemplate, version.template_id, "Template")
    return version, template


def set_template_side(
    db: Session,
    version_id: int,
    side_id: int,
    start_slots_enabled: bool = True,
    rerounds_to_side_id: int | None = None,
    max_legs_starting: int = 1,
    min_players: int = 1,
    walk_ride_mode: str = WALK_RIDE_EITHER,
) -> TeeSheetTemplateSide:
    version, template = _editable_template_version(db, version_id)
    _side_on_sheet(db, side_id, template.tee_sheet_id)
    if rerounds_to_side_id is not None:
        _side_on_sheet(db, rerounds_to_side_id, template.tee_sheet_id)
    if walk_ride_mode not in _WALK_RIDE_MODES:
        raise ConfigurationInvalid(f"walk_ride_mode must be one of {sorted(_WALK_RIDE_MODES)}", field="walk_ride_mode")
    if min_players < 1:
        raise ConfigurationInvalid("min_players must be at least 1", field="min_players")
    if not 1 <= max_legs_starting <= MAX_LEGS:
        raise ConfigurationInvalid(f"max_legs_starting must be between 1 and {MAX_LEGS}", field="max_legs_starting")
    row = (
        db.query(TeeSheetTemplateSide)
        .filter(TeeSheetTemplateSide.version_id == version.id, TeeSheetTemplateSide.side_id == side_id)
        .first()
    )
    if row is None:
        row = TeeSheetTemplateSide(version_id=version.id, side_id=side_id)
        db.add(row)
    row.start_slots_enabled = start_slots_enabled
    row.rerounds_to_side_id = rerounds_to_side_id
    row.max_legs_starting = max_legs_starting
    row.min_players = min_players
    row.walk_ride_mode = walk_ride_mode
    db.commit()
    db.refresh(row)
    return row


def set_side_access(
    db: Session, version_id: int, side_id: int, booking_class_id: str, is_allowed: bool = True
) -> TeeSheetTemplateSideAccess:
    version, template = _editable_template_version(db, version_id)
    _side_on_sheet(db, side_id, template.tee_sheet_id)
    row = (
        db.query(TeeSheetTemplateSideAccess)
        .filter(
            TeeSheetTemplateSideAccess.version_id == version.id,
            TeeSheetTemplateSideAccess.side_id == side_id,
            TeeSheetTemplateSideAccess.booking_class_id == booking_class_id,
        )
        .first()
    )
    if row is None:
        row = TeeSheetTemplateSideAccess(version_id=version.id, side_id=side_id, booking_class_id=booking_class_id)
        db.add(row)
    row.is_allowed = is_allowed
    db.commit()
    db.refresh(row)
    return row


def set_side_price(
    db: Session,
    version_id: int,
    side_id: int,
    booking_class_id: str,
    greens_fee_cents: int,
    cart_fee_cents: int = 0,
) -> TeeSheetTemplateSidePrice:
    version, template = _editable_template_version(db, version_id)
    _side_on_sheet(db, side_id, template.tee_sheet_id)
    if greens_fee_cents < 0 or cart_fee_cents < 0:
        raise ConfigurationInvalid("Fees cannot be negative")
    row = (
        db.query(TeeSheetTemplateSidePrice)
        .filter(
            TeeSheetTemplateSidePrice.version_id == version.id,
            TeeSheetTemplateSidePrice.side_id == side_id,
            TeeSheetTemplateSidePrice.booking_class_id == booking_class_id,
        )
        .first()
    )
    if row is None:
        row = TeeSheetTemplateSidePrice(version_id=version.id, side_id=side_id, booking_class_id=booking_class_id)
        db.add(row)
    row.greens_fee_cents = greens_fee_cents
    row.cart_fee_cents = cart_fee_cents
    db.commit()
    db.refresh(row)
    return row


def set_booking_window(
    db: Session, version_id: int, booking_class_id: str, max_days_in_advance: int
) -> TemplateVersionBookingWindow:
    version, _ = _editable_template_version(db, version_id)
    if max_days_in_advance < 0:
        raise ConfigurationInvalid("max_days_in_advance must be >= 0", field="max_days_in_advance")
    row = (
        db.query(TemplateVersionBookingWindow)
        .filter(
            TemplateVersionBookingWindow.template_version_id == version.id,
            TemplateVersionBookingWindow.booking_class_id == booking_class_id,
        )
        .first()
    )
    if row is None:
        row = TemplateVersionBookingWindow(template_version_id=version.id, booking_class_id=booking_class_id)
        db.add(row)
    row.max_days_in_advance = max_days_in_advance
    db.commit()
    db.refresh(row)
    return row


def _course_today(db: Session, tee_sheet_id: int) -> date:
    _, _, zone = load_sheet_and_zone(db, tee_sheet_id)
    return now_utc().astimezone(zone).date()


def validate_template_version(db: Session, template: TeeSheetTemplate, version_id: int) -> list[dict[str, Any]]:
    """Publish checks: side coverage, a public price per covered side and no reround cycles."""
    today = _course_today(db, template.tee_sheet_id)
    active_sides = [
        s for s in db.query(TeeSheetSide).filter(TeeSheetSide.tee_sheet_id == template.tee_sheet_id).order_by(TeeSheetSide.id)
        if s.valid_to is None or s.valid_to > today
    ]
    cfg = {s.side_id: s for s in db.query(TeeSheetTemplateSide).filter(TeeSheetTemplateSide.version_id == version_id)}
    priced = {
        p.side_id
        for p in db.query(TeeSheetTemplateSidePrice).filter(
            TeeSheetTemplateSidePrice.version_id == version_id,
            TeeSheetTemplateSidePrice.booking_class_id == PUBLISH_PRICE_CLASS,
        )
    }
    violations: list[dict[str, Any]] = []
    for side in active_sides:
        if side.id not in cfg:
            violations.append({"code": "missing_side_coverage", "side_id": side.id})
    for side_id in sorted(cfg):
        if side_id not in priced:
            violations.append({"code": "missing_public_price", "side_id": side_id})
    for cycle in find_reround_cycles({sid: c.rerounds_to_side_id for sid, c in cfg.items()}):
        violations.append({"code": "reround_cycle", "side_ids": cycle})
    return violations


def _apply_range(
    db: Session,
    tee_sheet_id: int,
    start_date: str | date | None,
    end_date: str | date | None,
    bounds: tuple[date, date] | None = None,
) -> dict[str, int] | None:
    """Regenerate after a publish. Default range is today + DEFAULT_APPLY_DAYS, clipped to bounds (inclusive)."""
    if start_date is not None or end_date is not None:
        first = parse_date_iso(start_date) if start_date is not None else parse_date_iso(end_date)
        last = parse_date_iso(end_date) if end_date is not None else first
    else:
        first = _course_today(db, tee_sheet_id)
        last = first + timedelta(days=DEFAULT_APPLY_DAYS - 1)
        if bounds is not None:
            first, last = max(first, bounds[0]), min(last, bounds[1])
            if last < first:
                return {"regenerated": 0, "days": 0}
    return regenerate_range(db, tee_sheet_id, first, last)


def publish_template(
    db: Session,
    template_id: int,
    version_id: int,
    apply_now: bool = False,
    start_date: str | date | None = None,
    end_date: str | date | None = None,
) -> dict[str, Any]:
    """Validate, then point the template at version_id. Failures leave the pointer unchanged."""
    template = _get(db, TeeSheetTemplate, template_id, "Template")
    version = _get(db, TeeSheetTemplateVersion, version_id, "Template version")
    if version.template_id != template.id:
        raise ConfigurationInvalid(
            "Published version must belong to the template",
            violations=[{"code": "version_not_in_template", "version_id": version_id}],
        )
    if template.archived:
        raise ConfigurationInvalid("Archived templates cannot be published", template_id=template.id)
    violations = validate_template_version(db, template, version.id)
    if violations:
        logger.info("publish_template %s v%s rejected: %s", template.id, version.version_number, violations)
        raise ConfigurationInvalid("Template version failed publish validation", violations=violations)
    template.published_version_id = version.id
    template.status = STATUS_PUBLISHED
    if version.published_at is None:
        version.published_at = now_utc()
    db.commit()
    logger.info("Template %s published version %s (v%s)", template.id, version.id, version.version_number)
    result: dict[str, Any] = {
        "template_id": template.id,
        "published_version_id": version.id,
        "status": template.status,
    }
    if apply_now:
        result["applied"] = _apply_range(db, template.tee_sheet_id, start_date, end_date)
    return result


def _referenced_by_windows(db: Session, version_id: int) -> bool:
    in_seasons = (
        db.query(TeeSheetSeasonWeekdayWindow.id)
        .filter(TeeSheetSeasonWeekdayWindow.template_version_id == version_id)
        .first()
    )
    in_overrides = (
        db.query(TeeSheetOverrideWindow.id).filter(TeeSheetOverrideWindow.template_version_id == version_id).first()
    )
    return in_seasons is not None or in_overrides is not None


def delete_template_version(db: Session, version_id: int) -> None:
    """Drafts only, and only while no season or override window points at them."""
    version = _get(db, TeeSheetTemplateVersion, version_id, "Template version")
    is_pointer = db.query(TeeSheetTemplate.id).filter(TeeSheetTemplate.published_version_id == version_id).first()
    if version.published_at is not None or is_pointer is not None:
        raise VersionImmutable("Published template versions cannot be deleted", version_id=version_id)
    if _referenced_by_windows(db, version_id):
        raise ConfigurationInvalid("Template version is referenced by a season or override window", version_id=version_id)
    db.query(TeeSheetTemplateSide).filter(TeeSheetTemplateSide.version_id == version_id).delete()
    db.query(TeeSheetTemplateSideAccess).filter(TeeSheetTemplateSideAccess.version_id == version_id).delete()
    db.query(TeeSheetTemplateSidePrice).filter(TeeSheetTemplateSidePrice.version_id == version_id).delete()
    db.query(TemplateVersionBookingWindow).filter(TemplateVersionBookingWindow.template_version_id == version_id).delete()
    db.delete(version)
    db.commit()


# --- Windows shared by seasons and overrides ---


def _window_fields(
    db: Session,
    tee_sheet_id: int,
    template_version_id: int,
    start_mode: str,
    end_mode: str,
    start_time_local: str | None,
    end_time_local: str | None,
    start_offset_mins: int | None,
    end_offset_mins: int | None,
    side_id: int | None,
) -> dict[str, Any]:
    start_mode = (start_mode or MODE_FIXED).strip().lower()
    end_mode = (end_mode or MODE_FIXED).strip().lower()
    if start_mode not in _START_MODES:
        raise ConfigurationInvalid(f"Invalid start_mode {start_mode!r}", field="start_mode")
    if end_mode not in _END_MODES:
        raise ConfigurationInvalid(f"Invalid end_mode {end_mode!r}", field="end_mode")
    for clock, fld in ((start_time_local, "start_time_local"), (end_time_local, "end_time_local")):
        if clock:
            try:
                parse_clock(clock, "00:00")
            except ValueError:
                raise ConfigurationInvalid(f"Invalid clock {clock!r}", field=fld)
    version = db.query(TeeSheetTemplateVersion).filter(TeeSheetTemplateVersion.id == template_version_id).first()
    if version is None:
        raise ConfigurationInvalid(f"Template version {template_version_id} not found", field="template_version_id")
    template = _get(db, TeeSheetTemplate, version.template_id, "Template")
    if template.tee_sheet_id != tee_sheet_id:
        raise ConfigurationInvalid("Template version belongs to another tee sheet", field="template_version_id")
    if side_id is not None:
        _side_on_sheet(db, side_id, tee_sheet_id)
    return {
        "start_mode": start_mode,
        "end_mode": end_mode,
        "start_time_local": start_time_local,
        "end_time_local": end_time_local,
        "start_offset_mins": start_offset_mins,
        "end_offset_mins": end_offset_mins,
        "template_version_id": template_version_id,
        "side_id": side_id,
    }


def _fixed_range(start_mode: str, end_mode: str, start_clock: str | None, end_clock: str | None):
    """Wall-clock [start, end) of a window with two fixed anchors; None for solar or inverted windows."""
    if start_mode != MODE_FIXED or end_mode != MODE_FIXED:
        return None
    start = parse_clock(start_clock, DEFAULT_START_CLOCK)
    end = parse_clock(end_clock, DEFAULT_END_CLOCK)
    return (start, end) if start < end else None


def _reject_fixed_overlap(rows: list, fields: dict[str, Any]) -> None:
    """
    Raise when the new window's fixed range intersects an existing fixed window on a shared side.
    A window without side_id fans out to every side. Solar windows are checked at publish time.
    """
    new = _fixed_range(fields["start_mode"], fields["end_mode"], fields["start_time_local"], fields["end_time_local"])
    if new is None:
        return
    for row in rows:
        if row.side_id is not None and fields["side_id"] is not None and row.side_id != fields["side_id"]:
            continue
        old = _fixed_range(row.start_mode, row.end_mode, row.start_time_local, row.end_time_local)
        if old is not None and new[0] < old[1] and old[0] < new[1]:
            raise ConfigurationInvalid(
                "Window overlaps an existing window",
                violations=[{"code": "overlapping_windows", "window_id": row.id}],
            )


def _overlaps_by_side(compiled: list[tuple[int, Any]]) -> list[dict[str, Any]]:
    """Pairs of compiled windows (tagged with their row id) whose ranges intersect on the same side."""
    found = []
    by_side: dict[int, list[tuple[int, Any]]] = {}
    for window_id, c in compiled:
        by_side.setdefault(c.side_id, []).append((window_id, c))
    for side_id, items in sorted(by_side.items()):
        items.sort(key=lambda item: as_utc(item[1].start))
        latest_id, latest_end = items[0][0], as_utc(items[0][1].end)
        for window_id, c in items[1:]:
            if as_utc(c.start) < latest_end:
                found.append({"side_id": side_id, "window_ids": [latest_id, window_id]})
            if as_utc(c.end) > latest_end:
                latest_id, latest_end = window_id, as_utc(c.end)
    return found


def _renumber(rows: list, db: Session) -> None:
    """Rewrite positions 0..n-1 in list order without tripping the unique (version, weekday, position) key."""
    for i, row in enumerate(rows):
        row.position = -(i + 1)
    db.flush()
    for i, row in enumerate(rows):
        row.position = i
    db.flush()


# --- Seasons ---


def create_season(db: Session, tee_sheet_id: int, name: str = "Untitled Season") -> TeeSheetSeason:
    _get(db, TeeSheet, tee_sheet_id, "Tee sheet")
    season = TeeSheetSeason(tee_sheet_id=tee_sheet_id, name=name, status=STATUS_DRAFT)
    db.add(season)
    db.commit()
    db.refresh(season)
    return season


def create_season_version(
    db: Session,
    season_id: int,
    start_date: str | date,
    end_date_exclusive: str | date,
    notes: str | None = None,
) -> TeeSheetSeasonVersion:
    season = _get(db, TeeSheetSeason, season_id, "Season")
    start, end = parse_date_iso(start_date), parse_date_iso(end_date_exclusive)
    if end <= start:
        raise ConfigurationInvalid("end_date_exclusive must be after start_date", field="end_date_exclusive")
    version = TeeSheetSeasonVersion(season_id=season.id, start_date=start, end_date_exclusive=end, notes=notes)
    db.add(version)
    db.commit()
    db.refresh(version)
    return version


def _editable_season_version(db: Session, season_version_id: int) -> tuple[TeeSheetSeasonVersion, TeeSheetSeason]:
    version = _get(db, TeeSheetSeasonVersion, season_version_id, "Season version")
    if version.published_at is not None:
        raise VersionImmutable(f"Season version {season_version_id} has been published", version_id=season_version_id)
    return version, _get(db, TeeSheetSeason, version.season_id, "Season")


def _normalize_weekday(weekday: int) -> int:
    if weekday == LEGACY_SUNDAY:
        return SUNDAY
    if not 0 <= weekday <= 6:
        raise ConfigurationInvalid("weekday must be 0 (Sunday) to 6 (Saturday)", field="weekday")
    return weekday


def _weekday_rows(db: Session, season_version_id: int, weekday: int) -> list[TeeSheetSeasonWeekdayWindow]:
    weekdays = [SUNDAY, LEGACY_SUNDAY] if weekday == SUNDAY else [weekday]
    return (
        db.query(TeeSheetSeasonWeekdayWindow)
        .filter(
            TeeSheetSeasonWeekdayWindow.season_version_id == season_version_id,
            TeeSheetSeasonWeekdayWindow.weekday.in_(weekdays),
        )
        .order_by(TeeSheetSeasonWeekdayWindow.position, TeeSheetSeasonWeekdayWindow.id)
        .all()
    )


def add_weekday_window(
    db: Session,
    season_version_id: int,
    weekday: int,
    template_version_id: int,
    start_mode: str = MODE_FIXED,
    end_mode: str = MODE_FIXED,
    start_time_local: str | None = None,
    end_time_local: str | None = None,
    start_offset_mins: int | None = None,
    end_offset_mins: int | None = None,
    side_id: int | None = None,
    position: int | None = None,
) -> TeeSheetSeasonWeekdayWindow:
    """Append a window for a weekday. position defaults to the next free slot and must equal it."""
    version, season = _editable_season_version(db, season_version_id)
    weekday = _normalize_weekday(weekday)
    rows = _weekday_rows(db, version.id, weekday)
    next_position = len(rows)
    if position is None:
        position = next_position
    if position != next_position:
        raise ConfigurationInvalid(
            "Weekday window positions must be contiguous starting at 0",
            field="position",
            expected=next_position,
        )
    fields = _window_fields(
        db, season.tee_sheet_id, template_version_id, start_mode, end_mode,
        start_time_local, end_time_local, start_offset_mins, end_offset_mins, side_id,
    )
    _reject_fixed_overlap(rows, fields)
    row = TeeSheetSeasonWeekdayWindow(season_version_id=version.id, weekday=weekday, position=position, **fields)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def reorder_weekday_windows(
    db: Session, season_version_id: int, weekday: int, window_ids: list[int]
) -> list[TeeSheetSeasonWeekdayWindow]:
    """Renumber a weekday's windows in the given order; window_ids must list each window exactly once."""
    version, _ = _editable_season_version(db, season_version_id)
    rows = _weekday_rows(db, version.id, _normalize_weekday(weekday))
    by_id = {r.id: r for r in rows}
    if sorted(window_ids) != sorted(by_id):
        raise ConfigurationInvalid("window_ids must list every window of the weekday once", field="window_ids")
    ordered = [by_id[i] for i in window_ids]
    _renumber(ordered, db)
    db.commit()
    return ordered


def delete_weekday_window(db: Session, window_id: int) -> None:
    """Delete and re-compact the remaining positions for that weekday."""
    row = _get(db, TeeSheetSeasonWeekdayWindow, window_id, "Weekday window")
    version, _ = _editable_season_version(db, row.season_version_id)
    weekday = _normalize_weekday(row.weekday)
    db.delete(row)
    db.flush()
    _renumber(_weekday_rows(db, version.id, weekday), db)
    db.commit()


def prevalidate_season_version(db: Session, tee_sheet_id: int, season_version_id: int) -> list[dict[str, Any]]:
    """
    Check every date of the version's range: the window's template version and template exist, the
    template covers the sides in service that day and the window compiles to a non-empty range.
    Windows of one day must not overlap on any side once compiled, solar anchors included.
    """
    version = _get(db, TeeSheetSeasonVersion, season_version_id, "Season version")
    windows = (
        db.query(TeeSheetSeasonWeekdayWindow)
        .filter(TeeSheetSeasonWeekdayWindow.season_version_id == version.id)
        .order_by(TeeSheetSeasonWeekdayWindow.weekday, TeeSheetSeasonWeekdayWindow.position)
        .all()
    )
    violations: list[dict[str, Any]] = []
    if not windows:
        return violations
    covered_by_version: dict[int, set[int]] = {}
    day = version.start_date
    while day < version.end_date_exclusive:
        weekday = sunday_based_weekday(day)
        day_windows = [w for w in windows if _normalize_weekday(w.weekday) == weekday]
        side_ids = {s.id for s in effective_sides(db, tee_sheet_id, day)} if day_windows else set()
        day_compiled: list[tuple[int, Any]] = []
        for w in day_windows:
            entry = {"date": day.isoformat(), "window_id": w.id}
            tv = db.query(TeeSheetTemplateVersion).filter(TeeSheetTemplateVersion.id == w.template_version_id).first()
            if tv is None:
                violations.append({**entry, "code": "missing_template_version"})
                continue
            if db.query(TeeSheetTemplate.id).filter(TeeSheetTemplate.id == tv.template_id).first() is None:
                violations.append({**entry, "code": "missing_template_for_version"})
                continue
            if tv.id not in covered_by_version:
                covered_by_version[tv.id] = {
                    s.side_id for s in db.query(TeeSheetTemplateSide).filter(TeeSheetTemplateSide.version_id == tv.id)
                }
            if not side_ids <= covered_by_version[tv.id]:
                violations.append({**entry, "code": "template_missing_side_coverage"})
            compiled = compile_windows_for_date(db, tee_sheet_id, day, [window_spec_from_row(w)], source="season")
            if not compiled:
                violations.append({**entry, "code": "invalid_window_after_clamp"})
            day_compiled.extend((w.id, c) for c in compiled)
        for overlap in _overlaps_by_side(day_compiled):
            violations.append({"date": day.isoformat(), "code": "overlapping_windows", **overlap})
        day += timedelta(days=1)
    return violations


def publish_season(
    db: Session,
    season_id: int,
    version_id: int,
    apply_now: bool = False,
    start_date: str | date | None = None,
    end_date: str | date | None = None,
) -> dict[str, Any]:
    season = _get(db, TeeSheetSeason, season_id, "Season")
    version = _get(db, TeeSheetSeasonVersion, version_id, "Season version")
    if version.season_id != season.id:
        raise ConfigurationInvalid(
            "Published version must belong to the season",
            violations=[{"code": "version_not_in_season", "version_id": version_id}],
        )
    if season.archived:
        raise ConfigurationInvalid("Archived seasons cannot be published", season_id=season.id)
    violations = prevalidate_season_version(db, season.tee_sheet_id, version.id)
    if violations:
        logger.info("publish_season %s version %s rejected: %s violations", season.id, version.id, len(violations))
        raise ConfigurationInvalid("Season version failed prevalidation", violations=violations)
    season.published_version_id = version.id
    season.status = STATUS_PUBLISHED
    if version.published_at is None:
        version.published_at = now_utc()
    db.commit()
    logger.info("Season %s published version %s (%s..%s)", season.id, version.id, version.start_date, version.end_date_exclusive)
    result: dict[str, Any] = {"season_id": season.id, "published_version_id": version.id, "status": season.status}
    if apply_now:
        bounds = (version.start_date, version.end_date_exclusive - timedelta(days=1))
        result["applied"] = _apply_range(db, season.tee_sheet_id, start_date, end_date, bounds)
    return result


# --- Overrides ---


def create_override(db: Session, tee_sheet_id: int, override_date: str | date, name: str = "Untitled Override") -> TeeSheetOverride:
    """New draft override for one date, with an empty draft version."""
    _get(db, TeeSheet, tee_sheet_id, "Tee sheet")
    override = TeeSheetOverride(tee_sheet_id=tee_sheet_id, name=name, date=parse_date_iso(override_date), status=STATUS_DRAFT)
    db.add(override)
    db.flush()
    version = TeeSheetOverrideVersion(override_id=override.id)
    db.add(version)
    db.flush()
    override.draft_version_id = version.id
    db.commit()
    db.refresh(override)
    return override


def create_override_version(db: Session, override_id: int, notes: str | None = None) -> TeeSheetOverrideVersion:
    override = _get(db, TeeSheetOverride, override_id, "Override")
    version = TeeSheetOverrideVersion(override_id=override.id, notes=notes)
    db.add(version)
    db.flush()
    override.draft_version_id = version.id
    db.commit()
    db.refresh(version)
    return version


def add_override_window(
    db: Session,
    override_version_id: int,
    template_version_id: int,
    start_mode: str = MODE_FIXED,
    end_mode: str = MODE_FIXED,
    start_time_local: str | None = None,
    end_time_local: str | None = None,
    start_offset_mins: int | None = None,
    end_offset_mins: int | None = None,
    side_id: int | None = None,
) -> TeeSheetOverrideWindow:
    version = _get(db, TeeSheetOverrideVersion, override_version_id, "Override version")
    if version.published_at is not None:
        raise VersionImmutable(f"Override version {override_version_id} has been published", version_id=override_version_id)
    override = _get(db, TeeSheetOverride, version.override_id, "Override")
    fields = _window_fields(
        db, override.tee_sheet_id, template_version_id, start_mode, end_mode,
        start_time_local, end_time_local, start_offset_mins, end_offset_mins, side_id,
    )
    rows = db.query(TeeSheetOverrideWindow).filter(TeeSheetOverrideWindow.override_version_id == version.id).all()
    _reject_fixed_overlap(rows, fields)
    row = TeeSheetOverrideWindow(override_version_id=version.id, position=len(rows), **fields)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def publish_override(
    db: Session,
    override_id: int,
    version_id: int | None = None,
    apply_now: bool = False,
) -> dict[str, Any]:
    """Publish the draft (or a given) version. An empty version publishes an explicitly closed day."""
    override = _get(db, TeeSheetOverride, override_id, "Override")
    version_id = version_id or override.draft_version_id or override.published_version_id
    if version_id is None:
        raise ConfigurationInvalid("Override has no version to publish", override_id=override.id)
    version = _get(db, TeeSheetOverrideVersion, version_id, "Override version")
    if version.override_id != override.id:
        raise ConfigurationInvalid(
            "Published version must belong to the override",
            violations=[{"code": "version_not_in_override", "version_id": version_id}],
        )
    windows = db.query(TeeSheetOverrideWindow).filter(TeeSheetOverrideWindow.override_version_id == version.id).all()
    violations = [
        {"code": "missing_template_version", "window_id": w.id}
        for w in windows
        if db.query(TeeSheetTemplateVersion.id).filter(TeeSheetTemplateVersion.id == w.template_version_id).first() is None
    ]
    if not violations:
        compiled = [
            (w.id, c)
            for w in windows
            for c in compile_windows_for_date(db, override.tee_sheet_id, override.date, [window_spec_from_row(w)], source="override")
        ]
        violations = [{"code": "overlapping_windows", **overlap} for overlap in _overlaps_by_side(compiled)]
    if violations:
        raise ConfigurationInvalid("Override version failed publish validation", violations=violations)
    override.published_version_id = version.id
    override.status = STATUS_PUBLISHED
    if override.draft_version_id == version.id:
        override.draft_version_id = None
    if version.published_at is None:
        version.published_at = now_utc()
    db.commit()
    logger.info("Override %s for %s published version %s (%s windows)", override.id, override.date, version.id, len(windows))
    result: dict[str, Any] = {
        "override_id": override.id,
        "published_version_id": version.id,
        "status": override.status,
        "windows": len(windows),
    }
    if apply_now:
        result["applied"] = regenerate_range(db, override.tee_sheet_id, override.date, override.date)
    return result


def delete_override(db: Session, override_id: int) -> None:
    """Only overrides that were never published can be deleted."""
    override = _get(db, TeeSheetOverride, override_id, "Override")
    if override.status == STATUS_PUBLISHED or override.published_version_id is not None:
        raise InvalidState("Published overrides cannot be deleted", override_id=override.id)
    override.draft_version_id = None
    db.flush()
    version_ids = [v.id for v in db.query(TeeSheetOverrideVersion.id).filter(TeeSheetOverrideVersion.override_id == override.id)]
    if version_ids:
        db.query(TeeSheetOverrideWindow).filter(TeeSheetOverrideWindow.override_version_id.in_(version_ids)).delete(
            synchronize_session=False
        )
        db.query(TeeSheetOverrideVersion).filter(TeeSheetOverrideVersion.id.in_(version_ids)).delete(synchronize_session=False)
    db.delete(override)
    db.commit()


# --- Closures ---


def _slots_in_range(db: Session, tee_sheet_id: int, side_id: int | None, starts_at: datetime, ends_at: datetime):
    q = db.query(TeeTime).filter(
        TeeTime.tee_sheet_id == tee_sheet_id,
        TeeTime.start_time >= starts_at,
        TeeTime.start_time < ends_at,
    )
    if side_id is not None:
        q = q.filter(TeeTime.side_id == side_id)
    return q


def add_closure_block(
    db: Session,
    tee_sheet_id: int,
    starts_at: datetime,
    ends_at: datetime,
    side_id: int | None = None,
    reason: str | None = None,
) -> ClosureBlock:
    """Block [starts_at, ends_at) for the sheet or one side. Refused when booked tee times fall inside."""
    _get(db, TeeSheet, tee_sheet_id, "Tee sheet")
    starts_at, ends_at = as_utc(starts_at), as_utc(ends_at)
    if ends_at <= starts_at:
        raise ConfigurationInvalid("ends_at must be after starts_at", field="ends_at")
    if side_id is not None:
        _side_on_sheet(db, side_id, tee_sheet_id)
    slots = _slots_in_range(db, tee_sheet_id, side_id, starts_at, ends_at).all()
    booked = [s.id for s in slots if (s.assigned_count or 0) > 0]
    if booked:
        raise ConfigurationInvalid(
            "Closure overlaps tee times that already have bookings",
            violations=[{"code": "closure_overlaps_bookings", "tee_time_id": tid} for tid in booked],
        )
    closure = ClosureBlock(tee_sheet_id=tee_sheet_id, side_id=side_id, starts_at=starts_at, ends_at=ends_at, reason=reason)
    db.add(closure)
    db.flush()
    for slot in slots:
        slot.is_blocked = True
        slot.blocked_reason = reason or DEFAULT_CLOSURE_REASON
        slot.blocked_by_closure_id = closure.id
    db.commit()
    db.refresh(closure)
    logger.info("Closure %s on sheet %s side %s blocked %s tee times", closure.id, tee_sheet_id, side_id, len(slots))
    return closure


def delete_closure_block(db: Session, closure_id: int) -> None:
    """Remove a closure and unblock its tee times, unless another closure still covers them."""
    closure = _get(db, ClosureBlock, closure_id, "Closure")
    rows = db.query(TeeTime).filter(TeeTime.blocked_by_closure_id == closure.id).all()
    others = (
        db.query(ClosureBlock)
        .filter(ClosureBlock.tee_sheet_id == closure.tee_sheet_id, ClosureBlock.id != closure.id)
        .order_by(ClosureBlock.id)
        .all()
    )
    for row in rows:
        applicable = [c for c in others if c.side_id is None or c.side_id == row.side_id]
        other = closure_covering(applicable, as_utc(row.start_time))
        row.is_blocked = other is not None
        row.blocked_reason = (other.reason or DEFAULT_CLOSURE_REASON) if other else None
        row.blocked_by_closure_id = other.id if other else None
    db.flush()
    db.delete(closure)
    db.commit()
    logger.info("Closure %s deleted; %s tee times re-evaluated", closure_id, len(rows))
