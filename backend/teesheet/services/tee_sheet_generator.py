"""
Slot generation: walk compiled windows and idempotently create/retire tee_times rows.

Each compiled window is processed and committed on its own so bookings can interleave. The generator
never touches assigned_count, and only retires rows that hold no seats.
"""
import logging
from datetime import date, timedelta

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from teesheet.config import settings
from teesheet.core.constants import HOLES_LABEL_NINE, HOLES_LABEL_REROUND
from teesheet.core.errors import ConfigurationInvalid
from teesheet.core.timeutil import as_utc, local_day_bounds, parse_date_iso
from teesheet.models.closure_block import ClosureBlock
from teesheet.models.tee_sheet_side import TeeSheetSide
from teesheet.models.tee_time import TeeTime
from teesheet.models.template import TeeSheetTemplateSide
from teesheet.models.waitlist_entry import WaitlistEntry
from teesheet.services.tee_rules import compute_reround_start, snap_to_next_slot
from teesheet.services.template_resolver import load_sheet_and_zone, resolve_effective_windows
from teesheet.services.window_compiler import CompiledWindow, compile_windows_for_date, template_for_version

logger = logging.getLogger(__name__)

DEFAULT_CLOSURE_REASON = "Closure"
# A lost get-or-create race is retried once; the second pass finds the winner's rows.
_WINDOW_ATTEMPTS = 2


def expected_instants(window: CompiledWindow) -> list:
    """UTC instants start, start+interval, ... < end, stepped on absolute time."""
    start, end = as_utc(window.start), as_utc(window.end)
    step = timedelta(minutes=window.interval_mins)
    out = []
    t = start
    while t < end:
        out.append(t)
        t += step
    return out


def _closures_for_window(db: Session, tee_sheet_id: int, window: CompiledWindow) -> list[ClosureBlock]:
    return (
        db.query(ClosureBlock)
        .filter(
            ClosureBlock.tee_sheet_id == tee_sheet_id,
            or_(ClosureBlock.side_id.is_(None), ClosureBlock.side_id == window.side_id),
            ClosureBlock.starts_at < as_utc(window.end),
            ClosureBlock.ends_at > as_utc(window.start),
        )
        .order_by(ClosureBlock.id)
        .all()
    )


def closure_covering(closures: list[ClosureBlock], instant) -> ClosureBlock | None:
    for c in closures:
        if as_utc(c.starts_at) <= instant < as_utc(c.ends_at):
            return c
    return None


def apply_closure(row: TeeTime, closure: ClosureBlock | None) -> bool:
    """Sync a row's block state with the closure covering it. Manual blocks (no closure id) are kept."""
    if closure is not None:
        reason = closure.reason or DEFAULT_CLOSURE_REASON
        if row.is_blocked and row.blocked_reason == reason and row.blocked_by_closure_id == closure.id:
            return False
        row.is_blocked = True
        row.blocked_reason = reason
        row.blocked_by_closure_id = closure.id
        return True
    if row.blocked_by_closure_id is not None:
        row.is_blocked = False
        row.blocked_reason = None
        row.blocked_by_closure_id = None
        return True
    return False


def _retire_unexpected(db: Session, rows: list[TeeTime], expected: set) -> list[TeeTime]:
    """Delete unassigned rows not on the expected grid; returns the rows that remain."""
    waitlisted = set()
    if rows:
        waitlisted = {
            tid for (tid,) in db.query(WaitlistEntry.tee_time_id)
            .filter(WaitlistEntry.tee_time_id.in_([r.id for r in rows]))
            .distinct()
        }
    kept = []
    for row in rows:
        if as_utc(row.start_time) in expected or row.id in waitlisted:
            kept.append(row)
            continue
        deleted = (
            db.query(TeeTime)
            .filter(TeeTime.id == row.id, TeeTime.assigned_count == 0)
            .delete(synchronize_session=False)
        )
        if deleted:
            db.expunge(row)
        else:
            kept.append(row)
    return kept


def _apply_window(db: Session, tee_sheet_id: int, window: CompiledWindow) -> int:
    instants = expected_instants(window)
    expected = set(instants)
    existing = (
        db.query(TeeTime)
        .filter(
            TeeTime.tee_sheet_id == tee_sheet_id,
            TeeTime.side_id == window.side_id,
            TeeTime.start_time >= as_utc(window.start),
            TeeTime.start_time < as_utc(window.end),
        )
        .order_by(TeeTime.start_time)
        .all()
    )
    by_start = {as_utc(r.start_time): r for r in _retire_unexpected(db, existing, expected)}
    if not window.start_slots_enabled:
        return 0

    template = template_for_version(db, window.template_version_id)
    capacity = (template.max_players_staff if template else None) or settings.default_slot_capacity
    closures = _closures_for_window(db, tee_sheet_id, window)
    created = 0
    for instant in instants:
        closure = closure_covering(closures, instant)
        row = by_start.get(instant)
        if row is None:
            row = TeeTime(
                tee_sheet_id=tee_sheet_id,
                side_id=window.side_id,
                start_time=instant,
                capacity=capacity,
                assigned_count=0,
                is_blocked=False,
                holes_label=HOLES_LABEL_NINE,
            )
            db.add(row)
            created += 1
        apply_closure(row, closure)
    db.flush()
    return created


def _generate_window(db: Session, tee_sheet_id: int, window: CompiledWindow) -> int:
    for attempt in range(_WINDOW_ATTEMPTS):
        try:
            created = _apply_window(db, tee_sheet_id, window)
            db.commit()
            return created
        except IntegrityError:
            db.rollback()
            if attempt + 1 == _WINDOW_ATTEMPTS:
                raise
            logger.info("Concurrent insert on side %s at %s; retrying window", window.side_id, window.start)
    return 0


def annotate_rerounds(db: Session, tee_sheet_id: int, day: date, zone, compiled: list[CompiledWindow]) -> int:
    """Mark which slots can start an 18-hole round and which slot the second leg would use."""
    day_start, day_end = local_day_bounds(day, zone)
    rows = (
        db.query(TeeTime)
        .filter(
            TeeTime.tee_sheet_id == tee_sheet_id,
            TeeTime.start_time >= as_utc(day_start),
            TeeTime.start_time < as_utc(day_end),
        )
        .order_by(TeeTime.start_time, TeeTime.id)
        .all()
    )
    if not rows:
        return 0
    sides = {s.id: s for s in db.query(TeeSheetSide).filter(TeeSheetSide.tee_sheet_id == tee_sheet_id)}
    version_ids = {c.template_version_id for c in compiled}
    side_cfg = {
        (cfg.version_id, cfg.side_id): cfg
        for cfg in db.query(TeeSheetTemplateSide).filter(TeeSheetTemplateSide.version_id.in_(version_ids))
    } if version_ids else {}
    by_side: dict[int, list[TeeTime]] = {}
    for r in rows:
        by_side.setdefault(r.side_id, []).append(r)

    changed = 0
    for row in rows:
        start = as_utc(row.start_time)
        window = next(
            (c for c in compiled if c.side_id == row.side_id and as_utc(c.start) <= start < as_utc(c.end)),
            None,
        )
        cfg = side_cfg.get((window.template_version_id, row.side_id)) if window else None
        can18, target, reround_id, label = False, None, None, HOLES_LABEL_NINE
        side = sides.get(row.side_id)
        if cfg is not None and cfg.rerounds_to_side_id and side is not None:
            target = cfg.rerounds_to_side_id
            reround_start = compute_reround_start(start, side.minutes_per_hole, side.hole_count)
            candidates = {as_utc(r.start_time): r for r in by_side.get(target, [])}
            snapped = snap_to_next_slot(reround_start, candidates)
            if snapped is not None:
                can18, reround_id, label = True, candidates[snapped].id, HOLES_LABEL_REROUND
        if (
            bool(row.can_start_18) != can18
            or row.rerounds_to_side_id != target
            or row.reround_tee_time_id != reround_id
            or (row.holes_label or HOLES_LABEL_NINE) != label
        ):
            row.can_start_18 = can18
            row.rerounds_to_side_id = target
            row.reround_tee_time_id = reround_id
            row.holes_label = label
            changed += 1
    db.commit()
    return changed


def generate_for_date(db: Session, tee_sheet_id: int, date_iso: str | date) -> dict[str, int]:
    """
    Generate slots for a tee sheet on one date. Idempotent: a second run with unchanged configuration
    creates nothing and leaves assigned_count alone. Returns {"generated": rows_created}.
    """
    day = parse_date_iso(date_iso)
    _, _, zone = load_sheet_and_zone(db, tee_sheet_id)
    effective = resolve_effective_windows(db, tee_sheet_id, day)
    if not effective.windows:
        logger.info("generate_for_date: sheet=%s date=%s no windows (source=%s)", tee_sheet_id, day, effective.source)
        return {"generated": 0}
    compiled = compile_windows_for_date(db, tee_sheet_id, day, effective.windows, source=effective.source)
    generated = 0
    for window in compiled:
        generated += _generate_window(db, tee_sheet_id, window)
    annotate_rerounds(db, tee_sheet_id, day, zone, compiled)
    logger.info(
        "generate_for_date: sheet=%s date=%s source=%s windows=%s generated=%s",
        tee_sheet_id, day, effective.source, len(compiled), generated,
    )
    return {"generated": generated}


def regenerate_range(db: Session, tee_sheet_id: int, start_date: str | date, end_date: str | date) -> dict[str, int]:
    """generate_for_date for every date in [start_date, end_date] (inclusive)."""
    first, last = parse_date_iso(start_date), parse_date_iso(end_date)
    if last < first:
        raise ConfigurationInvalid("end_date is before start_date", start_date=str(first), end_date=str(last))
    total = 0
    days = 0
    day = first
    while day <= last:
        total += generate_for_date(db, tee_sheet_id, day)["generated"]
        days += 1
        day += timedelta(days=1)
    logger.info("regenerate_range: sheet=%s %s..%s days=%s regenerated=%s", tee_sheet_id, first, last, days, total)
    return {"regenerated": total, "days": days}
