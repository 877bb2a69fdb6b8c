"""
Capacity & booking engine: create, reschedule, cancel and roster changes against generated tee times.

Capacity is guarded by the database. Every seat change is a conditional UPDATE on tee_times
(assigned_count + n only while capacity - assigned_count >= n) issued in tee time id order inside the
same transaction as the booking rows; zero rows affected means someone else took the seats.
Idempotency keys are checked before any capacity statement runs, and only replay for the caller that
first used them.
"""
import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from teesheet.config import settings
from teesheet.core.actor import Actor
from teesheet.core.constants import (
    BOOKING_ACTIVE,
    BOOKING_CANCELLED,
    BOOKING_SOURCE_DIRECT,
    HOLES_EIGHTEEN,
    HOLES_NINE,
    MAX_LEGS,
    OP_CREATE_BOOKING,
    RIDE,
    WALK,
    WALK_RIDE_EITHER,
)
from teesheet.core.errors import (
    AccessDenied,
    CapacityExceeded,
    IdempotencyKeyReused,
    InvalidRequest,
    InvalidState,
    ModeNotAllowed,
    NotFound,
    PartySizeExceeded,
    TeeSheetError,
    WindowHasPassed,
    WindowNotOpen,
)
from teesheet.core.timeutil import as_utc, now_utc
from teesheet.models.booking import Booking, BookingRoundLeg, TeeTimeAssignment
from teesheet.models.idempotency_record import IdempotencyRecord
from teesheet.models.tee_sheet import TeeSheet
from teesheet.models.tee_sheet_side import TeeSheetSide
from teesheet.models.tee_time import TeeTime
from teesheet.models.template import (
    TeeSheetTemplate,
    TeeSheetTemplateSide,
    TeeSheetTemplateSideAccess,
    TeeSheetTemplateSidePrice,
    TemplateVersionBookingWindow,
)
from teesheet.services import tee_rules
from teesheet.services.email_notify import send_booking_confirmation
from teesheet.services.template_resolver import load_sheet_and_zone
from teesheet.services.window_compiler import CompiledWindow, compile_windows_for_date, parse_clock, template_for_version

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayerInput:
    name: str | None = None
    email: str | None = None


@dataclass
class BookingRequest:
    tee_sheet_id: int
    tee_time_id: int
    booking_class_id: str
    players: list[PlayerInput]
    holes: int = HOLES_NINE
    walk_ride: str = RIDE
    owner_id: str | None = None
    source: str = BOOKING_SOURCE_DIRECT
    notes: str | None = None


@dataclass
class SlotRules:
    """Everything the template version says about one side."""
    window: CompiledWindow
    template: TeeSheetTemplate | None
    template_side: TeeSheetTemplateSide | None
    access: dict[str, bool] = field(default_factory=dict)
    prices: dict[str, tuple[int, int]] = field(default_factory=dict)
    horizons: dict[str, int] = field(default_factory=dict)

    @property
    def min_players(self) -> int:
        return self.template_side.min_players if self.template_side else 1

    def max_party(self, actor: Actor) -> int:
        if self.template is None:
            return settings.default_slot_capacity
        limit = self.template.max_players_staff if actor.is_staff else self.template.max_players_online
        return limit or settings.default_slot_capacity


@dataclass
class LegPlan:
    slot: TeeTime
    rules: SlotRules
    fee_cents: int  # per player


class BookingContext:
    """Per-call cache of sheet, zone and compiled windows by local date."""

    def __init__(self, db: Session, tee_sheet_id: int):
        self.db = db
        self.sheet, _, self.zone = load_sheet_and_zone(db, tee_sheet_id)
        self._compiled: dict[date, list[CompiledWindow]] = {}

    def local(self, instant: datetime) -> datetime:
        return as_utc(instant).astimezone(self.zone)

    def governing_window(self, slot: TeeTime) -> CompiledWindow:
        start = as_utc(slot.start_time)
        day = self.local(start).date()
        if day not in self._compiled:
            self._compiled[day] = compile_windows_for_date(self.db, slot.tee_sheet_id, day)
        for c in self._compiled[day]:
            if c.side_id == slot.side_id and as_utc(c.start) <= start < as_utc(c.end):
                return c
        raise WindowNotOpen("Tee time is not covered by an open window", tee_time_id=slot.id)

    def rules_for(self, slot: TeeTime) -> SlotRules:
        db = self.db
        window = self.governing_window(slot)
        vid, sid = window.template_version_id, slot.side_id
        return SlotRules(
            window=window,
            template=template_for_version(db, vid),
            template_side=db.query(TeeSheetTemplateSide)
            .filter(TeeSheetTemplateSide.version_id == vid, TeeSheetTemplateSide.side_id == sid)
            .first(),
            access={
                r.booking_class_id: bool(r.is_allowed)
                for r in db.query(TeeSheetTemplateSideAccess).filter(
                    TeeSheetTemplateSideAccess.version_id == vid, TeeSheetTemplateSideAccess.side_id == sid
                )
            },
            prices={
                r.booking_class_id: (r.greens_fee_cents, r.cart_fee_cents)
                for r in db.query(TeeSheetTemplateSidePrice).filter(
                    TeeSheetTemplateSidePrice.version_id == vid, TeeSheetTemplateSidePrice.side_id == sid
                )
            },
            horizons={
                r.booking_class_id: r.max_days_in_advance
                for r in db.query(TemplateVersionBookingWindow).filter(
                    TemplateVersionBookingWindow.template_version_id == vid
                )
            },
        )

    @property
    def daily_release(self):
        if not self.sheet.daily_release_local:
            return None
        try:
            return parse_clock(self.sheet.daily_release_local, "00:00")
        except ValueError:
            logger.warning("Tee sheet %s has unparseable daily_release_local %r", self.sheet.id, self.sheet.daily_release_local)
            return None


def _now(now: datetime | None) -> datetime:
    return as_utc(now) if now is not None else now_utc()


def _get_slot(db: Session, tee_time_id: int) -> TeeTime:
    slot = db.query(TeeTime).filter(TeeTime.id == tee_time_id).first()
    if slot is None:
        raise NotFound(f"Tee time {tee_time_id} not found", tee_time_id=tee_time_id)
    return slot


def _get_booking(db: Session, booking_id: int) -> Booking:
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if booking is None:
        raise NotFound(f"Booking {booking_id} not found", booking_id=booking_id)
    return booking


def _check_owner(booking: Booking, actor: Actor) -> None:
    """Customers may only touch their own bookings; ownerless bookings are staff-only."""
    if actor.is_staff:
        return
    if booking.owner_id is None or booking.owner_id != actor.id:
        raise AccessDenied("Booking belongs to another customer", booking_id=booking.id)


def check_leg(
    ctx: BookingContext,
    slot: TeeTime,
    booking_class: str,
    party_size: int,
    walk_ride: str,
    actor: Actor,
    now: datetime,
) -> LegPlan:
    """Per-leg rules in order: window, block, access, minimum, maximum, walk/ride, horizon, price."""
    rules = ctx.rules_for(slot)
    if slot.is_blocked and not actor.is_staff:
        raise AccessDenied(slot.blocked_reason or "Tee time is blocked", tee_time_id=slot.id)
    if not tee_rules.is_class_allowed(rules.access, booking_class):
        raise AccessDenied(f"Booking class {booking_class!r} may not book this tee time", tee_time_id=slot.id)
    tee_rules.enforce_min_players(party_size, rules.min_players)
    max_party = rules.max_party(actor)
    if party_size > max_party:
        raise PartySizeExceeded(f"At most {max_party} players allowed", max_players=max_party, party_size=party_size)
    mode = rules.template_side.walk_ride_mode if rules.template_side else WALK_RIDE_EITHER
    if not tee_rules.walk_ride_allowed(mode, walk_ride):
        raise ModeNotAllowed(f"{walk_ride!r} is not allowed on this tee time", walk_ride_mode=mode)
    horizon = tee_rules.class_rule(rules.horizons, booking_class)
    if not tee_rules.booking_window_open(ctx.local(slot.start_time), ctx.local(now), horizon, ctx.daily_release):
        raise WindowNotOpen("Tee time is not open for booking", tee_time_id=slot.id)
    greens, cart = tee_rules.class_rule(rules.prices, booking_class) or (0, 0)
    return LegPlan(slot=slot, rules=rules, fee_cents=tee_rules.leg_fee_cents(greens, cart, walk_ride))


def find_reround_slot(db: Session, ctx: BookingContext, first: TeeTime, rules: SlotRules) -> TeeTime:
    """Second leg: first slot on the reround side at or after first start + minutes_per_hole * hole_count."""
    cfg = rules.template_side
    if cfg is not None and (cfg.max_legs_starting or 1) < MAX_LEGS:
        raise ModeNotAllowed("18 holes cannot start from this tee time", tee_time_id=first.id)
    target_side_id = (cfg.rerounds_to_side_id if cfg else None) or first.side_id
    side = db.query(TeeSheetSide).filter(TeeSheetSide.id == first.side_id).first()
    reround_start = tee_rules.compute_reround_start(as_utc(first.start_time), side.minutes_per_hole, side.hole_count)
    first_day = ctx.local(first.start_time).date()
    candidates = (
        db.query(TeeTime)
        .filter(
            TeeTime.tee_sheet_id == first.tee_sheet_id,
            TeeTime.side_id == target_side_id,
            TeeTime.start_time >= reround_start,
        )
        .order_by(TeeTime.start_time)
        .limit(20)
        .all()
    )
    by_start = {as_utc(c.start_time): c for c in candidates if ctx.local(c.start_time).date() == first_day}
    snapped = tee_rules.snap_to_next_slot(reround_start, by_start)
    if snapped is None:
        raise CapacityExceeded("No reround tee time available", tee_time_id=first.id, rerounds_to_side_id=target_side_id)
    return by_start[snapped]


def plan_legs(
    db: Session,
    ctx: BookingContext,
    first: TeeTime,
    holes: int,
    booking_class: str,
    party_size: int,
    walk_ride: str,
    actor: Actor,
    now: datetime,
) -> list[LegPlan]:
    if holes not in (HOLES_NINE, HOLES_EIGHTEEN):
        raise InvalidRequest("holes must be 9 or 18", holes=holes)
    if walk_ride not in (WALK, RIDE):
        raise InvalidRequest("walk_ride must be 'walk' or 'ride'", walk_ride=walk_ride)
    first_plan = check_leg(ctx, first, booking_class, party_size, walk_ride, actor, now)
    plans = [first_plan]
    if holes == HOLES_EIGHTEEN:
        second = find_reround_slot(db, ctx, first, first_plan.rules)
        plans.append(check_leg(ctx, second, booking_class, party_size, walk_ride, actor, now))
    return plans


def adjust_seats(db: Session, deltas: dict[int, int]) -> None:
    """
    Apply signed seat changes per tee time id, in id order. Increments only succeed while capacity
    remains; a miss raises CapacityExceeded and the caller must roll back.
    """
    for tee_time_id in sorted(deltas):
        n = deltas[tee_time_id]
        if n > 0:
            updated = (
                db.query(TeeTime)
                .filter(TeeTime.id == tee_time_id, TeeTime.capacity - TeeTime.assigned_count >= n)
                .update({TeeTime.assigned_count: TeeTime.assigned_count + n}, synchronize_session=False)
            )
            if not updated:
                raise CapacityExceeded("Insufficient capacity", tee_time_id=tee_time_id, requested=n)
        elif n < 0:
            db.query(TeeTime).filter(TeeTime.id == tee_time_id, TeeTime.assigned_count >= -n).update(
                {TeeTime.assigned_count: TeeTime.assigned_count + n}, synchronize_session=False
            )


def _add_legs(db: Session, booking: Booking, plans: list[LegPlan], players: list[PlayerInput], walk_ride: str) -> int:
    total = 0
    for index, plan in enumerate(plans):
        price = plan.fee_cents * len(players)
        leg = BookingRoundLeg(booking_id=booking.id, leg_index=index, walk_ride=walk_ride, price_cents=price)
        leg.assignments = [
            TeeTimeAssignment(tee_time_id=plan.slot.id, seat_index=i, player_name=p.name, player_email=p.email)
            for i, p in enumerate(players)
        ]
        db.add(leg)
        total += price
    return total


def booking_to_dict(db: Session, booking: Booking) -> dict[str, Any]:
    legs = (
        db.query(BookingRoundLeg)
        .filter(BookingRoundLeg.booking_id == booking.id)
        .order_by(BookingRoundLeg.leg_index)
        .all()
    )
    leg_dicts = []
    for leg in legs:
        seats = sorted(leg.assignments, key=lambda a: a.seat_index)
        slot = db.query(TeeTime).filter(TeeTime.id == seats[0].tee_time_id).first() if seats else None
        leg_dicts.append({
            "leg_index": leg.leg_index,
            "tee_time_id": slot.id if slot else None,
            "side_id": slot.side_id if slot else None,
            "start_time": as_utc(slot.start_time).isoformat() if slot else None,
            "walk_ride": leg.walk_ride,
            "price_cents": leg.price_cents,
            "players": [{"seat_index": a.seat_index, "name": a.player_name, "email": a.player_email} for a in seats],
        })
    return {
        "id": booking.id,
        "tee_sheet_id": booking.tee_sheet_id,
        "owner_id": booking.owner_id,
        "booking_class_id": booking.booking_class_id,
        "status": booking.status,
        "party_size": booking.party_size,
        "walk_ride": booking.walk_ride,
        "total_price_cents": booking.total_price_cents,
        "source": booking.source,
        "cancelled_at": as_utc(booking.cancelled_at).isoformat() if booking.cancelled_at else None,
        "legs": leg_dicts,
    }


def stored_response(db: Session, idempotency_key: str, owner_id: str | None) -> dict[str, Any] | None:
    """Stored body for a key, or None. A key first used by a different owner raises IdempotencyKeyReused."""
    record = db.query(IdempotencyRecord).filter(IdempotencyRecord.idempotency_key == idempotency_key).first()
    if record is None:
        return None
    if record.owner_id != owner_id:
        raise IdempotencyKeyReused(idempotency_key=idempotency_key)
    return json.loads(record.response_json)


def create_booking(
    db: Session,
    request: BookingRequest,
    idempotency_key: str | None,
    actor: Actor,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Book request.players onto a tee time (and its reround slot for 18 holes).
    A key seen before returns the stored response verbatim without touching capacity, provided the
    booking owner matches the one that first used it.
    """
    key = (idempotency_key or "").strip() or None
    owner_id = request.owner_id or actor.id
    if key is not None:
        replay = stored_response(db, key, owner_id)
        if replay is not None:
            logger.info("create_booking: replaying idempotency key %s", key)
            return replay

    players = list(request.players or [])
    if not players:
        raise InvalidRequest("At least one player is required")
    now = _now(now)
    slot = _get_slot(db, request.tee_time_id)
    if slot.tee_sheet_id != request.tee_sheet_id:
        raise InvalidRequest("Tee time belongs to another tee sheet", tee_time_id=slot.id)
    ctx = BookingContext(db, request.tee_sheet_id)
    try:
        plans = plan_legs(
            db, ctx, slot, request.holes, request.booking_class_id, len(players), request.walk_ride, actor, now
        )
    except TeeSheetError as e:
        logger.info("create_booking rejected: tee_time=%s %s: %s", slot.id, e.code, e.message)
        raise

    try:
        deltas: Counter = Counter()
        for plan in plans:
            deltas[plan.slot.id] += len(players)
        adjust_seats(db, dict(deltas))
        booking = Booking(
            tee_sheet_id=request.tee_sheet_id,
            owner_id=owner_id,
            booking_class_id=request.booking_class_id,
            status=BOOKING_ACTIVE,
            party_size=len(players),
            walk_ride=request.walk_ride,
            source=request.source,
            notes=request.notes,
        )
        db.add(booking)
        db.flush()
        booking.total_price_cents = _add_legs(db, booking, plans, players, request.walk_ride)
        db.flush()
        body = booking_to_dict(db, booking)
        if key is not None:
            db.add(IdempotencyRecord(
                idempotency_key=key,
                operation=OP_CREATE_BOOKING,
                owner_id=owner_id,
                booking_id=booking.id,
                status_code=201,
                response_json=json.dumps(body),
            ))
        db.commit()
    except CapacityExceeded as e:
        db.rollback()
        # A retry racing its own first attempt loses the seats to it; hand back the winner's booking.
        replay = stored_response(db, key, owner_id) if key is not None else None
        if replay is not None:
            logger.info("create_booking: key %s completed concurrently; returning stored response", key)
            return replay
        logger.info("create_booking: capacity exceeded on tee_time=%s", e.details.get("tee_time_id"))
        raise
    except IntegrityError:
        db.rollback()
        replay = stored_response(db, key, owner_id) if key is not None else None
        if replay is None:
            raise
        logger.info("create_booking: concurrent retry of key %s; returning stored response", key)
        return replay

    logger.info("Booking %s created: tee_time=%s legs=%s players=%s", body["id"], slot.id, len(plans), len(players))
    send_booking_confirmation(body)
    return body


def _legs_with_slots(db: Session, booking: Booking) -> list[tuple[BookingRoundLeg, TeeTime]]:
    out = []
    for leg in sorted(booking.legs, key=lambda l: l.leg_index):
        if not leg.assignments:
            continue
        out.append((leg, _get_slot(db, leg.assignments[0].tee_time_id)))
    return out


def _roster(leg: BookingRoundLeg) -> list[PlayerInput]:
    return [PlayerInput(name=a.player_name, email=a.player_email) for a in sorted(leg.assignments, key=lambda a: a.seat_index)]


def reschedule_booking(
    db: Session,
    booking_id: int,
    new_tee_time_id: int,
    actor: Actor,
    holes: int | None = None,
    walk_ride: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Move every leg to a new tee time (plus reround). Seats move in one transaction; a conflict leaves the original intact."""
    booking = _get_booking(db, booking_id)
    _check_owner(booking, actor)
    if booking.status != BOOKING_ACTIVE:
        raise InvalidState("Only active bookings can be rescheduled", booking_id=booking.id, status=booking.status)
    current = _legs_with_slots(db, booking)
    players = _roster(current[0][0]) if current else []
    holes = holes or (HOLES_EIGHTEEN if len(current) > 1 else HOLES_NINE)
    walk_ride = walk_ride or booking.walk_ride
    now = _now(now)
    target = _get_slot(db, new_tee_time_id)
    if target.tee_sheet_id != booking.tee_sheet_id:
        raise InvalidRequest("Tee time belongs to another tee sheet", tee_time_id=target.id)
    ctx = BookingContext(db, booking.tee_sheet_id)
    plans = plan_legs(db, ctx, target, holes, booking.booking_class_id, len(players), walk_ride, actor, now)

    deltas: Counter = Counter()
    for leg, slot in current:
        deltas[slot.id] -= len(leg.assignments)
    for plan in plans:
        deltas[plan.slot.id] += len(players)
    try:
        adjust_seats(db, dict(deltas))
        for leg, _ in current:
            db.delete(leg)
        db.flush()
        booking.walk_ride = walk_ride
        booking.total_price_cents = _add_legs(db, booking, plans, players, walk_ride)
        db.commit()
    except CapacityExceeded:
        db.rollback()
        logger.info("reschedule_booking: booking=%s destination tee_time=%s full", booking_id, new_tee_time_id)
        raise
    db.refresh(booking)
    logger.info("Booking %s rescheduled to tee_time=%s", booking.id, target.id)

    from teesheet.services.waitlist_service import offer_freed_capacity

    offer_freed_capacity(db, [tid for tid, n in deltas.items() if n < 0], now=now)
    return booking_to_dict(db, booking)


def cancel_booking(db: Session, booking_id: int, actor: Actor, now: datetime | None = None) -> dict[str, Any]:
    """Cancel and release seats. Customers cannot cancel inside the sheet's cutoff; staff always can."""
    booking = _get_booking(db, booking_id)
    _check_owner(booking, actor)
    if booking.status == BOOKING_CANCELLED:
        return booking_to_dict(db, booking)
    now = _now(now)
    legs = _legs_with_slots(db, booking)
    if legs and not actor.is_staff:
        sheet = db.query(TeeSheet).filter(TeeSheet.id == booking.tee_sheet_id).first()
        cutoff = sheet.cancel_cutoff_hours if sheet and sheet.cancel_cutoff_hours is not None else settings.default_cancel_cutoff_hours
        first_start = min(as_utc(slot.start_time) for _, slot in legs)
        if tee_rules.inside_cancel_cutoff(first_start, now, cutoff):
            logger.info("cancel_booking: booking=%s inside %sh cutoff", booking.id, cutoff)
            raise WindowHasPassed(f"Bookings cannot be cancelled within {cutoff} hours of the tee time", cutoff_hours=cutoff)

    deltas: Counter = Counter()
    for leg, slot in legs:
        deltas[slot.id] -= len(leg.assignments)
    adjust_seats(db, dict(deltas))
    booking.status = BOOKING_CANCELLED
    booking.cancelled_at = now
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s cancelled by %s (%s)", booking.id, actor.id, actor.role)

    from teesheet.services.waitlist_service import offer_freed_capacity

    offer_freed_capacity(db, [slot.id for _, slot in legs], now=now)
    return booking_to_dict(db, booking)


def update_booking_players(
    db: Session,
    booking_id: int,
    players: list[PlayerInput],
    actor: Actor,
) -> dict[str, Any]:
    """Replace the roster on every leg. Shrinking respects the side minimum; growing claims seats."""
    booking = _get_booking(db, booking_id)
    _check_owner(booking, actor)
    if booking.status != BOOKING_ACTIVE:
        raise InvalidState("Only active bookings can change players", booking_id=booking.id, status=booking.status)
    players = list(players or [])
    if not players:
        raise InvalidRequest("At least one player is required")
    ctx = BookingContext(db, booking.tee_sheet_id)
    legs = _legs_with_slots(db, booking)
    fees = []
    deltas: Counter = Counter()
    for leg, slot in legs:
        rules = ctx.rules_for(slot)
        tee_rules.enforce_min_players(len(players), rules.min_players)
        max_party = rules.max_party(actor)
        if len(players) > max_party:
            raise PartySizeExceeded(f"At most {max_party} players allowed", max_players=max_party, party_size=len(players))
        greens, cart = tee_rules.class_rule(rules.prices, booking.booking_class_id) or (0, 0)
        fees.append(tee_rules.leg_fee_cents(greens, cart, leg.walk_ride or booking.walk_ride))
        deltas[slot.id] += len(players) - len(leg.assignments)

    try:
        adjust_seats(db, dict(deltas))
        total = 0
        for (leg, slot), fee in zip(legs, fees):
            leg.assignments = [
                TeeTimeAssignment(tee_time_id=slot.id, seat_index=i, player_name=p.name, player_email=p.email)
                for i, p in enumerate(players)
            ]
            leg.price_cents = fee * len(players)
            total += leg.price_cents
        booking.party_size = len(players)
        booking.total_price_cents = total
        db.commit()
    except CapacityExceeded:
        db.rollback()
        logger.info("update_booking_players: booking=%s no capacity for %s players", booking_id, len(players))
        raise
    db.refresh(booking)
    return booking_to_dict(db, booking)
