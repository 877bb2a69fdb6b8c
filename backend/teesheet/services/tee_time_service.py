"""
Tee time listing and manual blocks.

availability_for_date lists a date's generated tee times with remaining seats and the price for a
booking class, applying the same per-leg rules as the booking engine. Customers only see tee times
they could book right now; staff see every tee time inside an open window along with why it is
not bookable. Manual blocks carry no closure id, so generation and closure edits leave them alone.
"""
import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy.orm import Session

from teesheet.core.actor import Actor
from teesheet.core.constants import RIDE, WALK
from teesheet.core.errors import InvalidRequest, InvalidState, NotFound, TeeSheetError, WindowNotOpen
from teesheet.core.timeutil import as_utc, local_day_bounds, now_utc, parse_date_iso
from teesheet.models.tee_time import TeeTime
from teesheet.services import tee_rules
from teesheet.services.booking_service import BookingContext, check_leg

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_REASON = "Blocked"


def _get_slot(db: Session, tee_time_id: int) -> TeeTime:
    slot = db.query(TeeTime).filter(TeeTime.id == tee_time_id).first()
    if slot is None:
        raise NotFound(f"Tee time {tee_time_id} not found", tee_time_id=tee_time_id)
    return slot


def _reround_fits(db: Session, slot: TeeTime, group_size: int, customer_view: bool) -> bool:
    if not slot.can_start_18 or slot.reround_tee_time_id is None:
        return False
    second = db.query(TeeTime).filter(TeeTime.id == slot.reround_tee_time_id).first()
    if second is None:
        return False
    if customer_view and (second.is_blocked or second.remaining < group_size):
        return False
    return True


def availability_for_date(
    db: Session,
    tee_sheet_id: int,
    day: str | date,
    booking_class: str,
    group_size: int = 2,
    side_ids: list[int] | None = None,
    walk_ride: str = RIDE,
    actor: Actor | None = None,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Tee times on a course-local date, in start order, priced per player for booking_class."""
    if group_size < 1:
        raise InvalidRequest("group_size must be at least 1", group_size=group_size)
    if walk_ride not in (WALK, RIDE):
        raise InvalidRequest("walk_ride must be 'walk' or 'ride'", walk_ride=walk_ride)
    actor = actor or Actor()
    customer_view = not actor.is_staff
    now = as_utc(now) if now is not None else now_utc()
    day = parse_date_iso(day)
    ctx = BookingContext(db, tee_sheet_id)
    day_start, day_end = local_day_bounds(day, ctx.zone)

    q = db.query(TeeTime).filter(
        TeeTime.tee_sheet_id == tee_sheet_id,
        TeeTime.start_time >= as_utc(day_start),
        TeeTime.start_time < as_utc(day_end),
    )
    if side_ids:
        q = q.filter(TeeTime.side_id.in_(side_ids))

    results = []
    for slot in q.order_by(TeeTime.start_time, TeeTime.side_id).all():
        try:
            rules = ctx.rules_for(slot)
        except WindowNotOpen:
            continue
        unavailable = None
        try:
            fee = check_leg(ctx, slot, booking_class, group_size, walk_ride, actor, now).fee_cents
        except TeeSheetError as e:
            unavailable = e.code
            greens, cart = tee_rules.class_rule(rules.prices, booking_class) or (0, 0)
            fee = tee_rules.leg_fee_cents(greens, cart, walk_ride)
        if unavailable is None and slot.remaining < group_size:
            unavailable = "capacity_exceeded"
        if unavailable is None and customer_view and not rules.window.start_slots_enabled:
            unavailable = "start_disabled"
        if customer_view and unavailable is not None:
            continue
        row = {
            "id": slot.id,
            "tee_sheet_id": slot.tee_sheet_id,
            "side_id": slot.side_id,
            "start_time": as_utc(slot.start_time).isoformat(),
            "start_time_local": ctx.local(slot.start_time).isoformat(),
            "capacity": slot.capacity,
            "remaining": slot.remaining,
            "price_per_player_cents": fee,
            "price_total_cents": fee * group_size,
            "can_start_18": _reround_fits(db, slot, group_size, customer_view),
            "holes_label": slot.holes_label,
        }
        if not customer_view:
            row.update({
                "is_blocked": bool(slot.is_blocked),
                "blocked_reason": slot.blocked_reason,
                "unavailable_reason": unavailable,
            })
        results.append(row)
    logger.debug("availability sheet=%s date=%s class=%s: %s tee times", tee_sheet_id, day, booking_class, len(results))
    return results


def block_tee_time(db: Session, tee_time_id: int, reason: str | None = None) -> dict[str, Any]:
    """Block one tee time by hand. A tee time that is already blocked is left as is."""
    slot = _get_slot(db, tee_time_id)
    if slot.is_blocked:
        return {"id": slot.id, "is_blocked": True, "blocked_reason": slot.blocked_reason, "already": True}
    slot.is_blocked = True
    slot.blocked_reason = (reason or "").strip() or DEFAULT_BLOCK_REASON
    slot.blocked_by_closure_id = None
    db.commit()
    logger.info("Tee time %s blocked by hand: %s", slot.id, slot.blocked_reason)
    return {"id": slot.id, "is_blocked": True, "blocked_reason": slot.blocked_reason, "already": False}


def unblock_tee_time(db: Session, tee_time_id: int) -> dict[str, Any]:
    """Lift a manual block. Closure blocks are lifted by deleting the closure."""
    slot = _get_slot(db, tee_time_id)
    if slot.blocked_by_closure_id is not None:
        raise InvalidState(
            "Tee time is blocked by a closure", tee_time_id=slot.id, closure_id=slot.blocked_by_closure_id
        )
    if not slot.is_blocked:
        return {"id": slot.id, "is_blocked": False, "already": True}
    slot.is_blocked = False
    slot.blocked_reason = None
    db.commit()
    logger.info("Tee time %s unblocked", slot.id)
    return {"id": slot.id, "is_blocked": False, "already": False}
