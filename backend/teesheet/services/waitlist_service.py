"""
Waitlist engine: queue requests for full tee times and hand freed seats out oldest-first.

An entry is offered a seat (time-boxed token) only when it is head of line, no other offer for the
tee time is still live and the party fits the remaining capacity. Accepting or staff promotion books
through booking_service with idempotency key "waitlist:<id>", so capacity is re-checked at that moment.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session

from teesheet.config import settings
from teesheet.core.actor import Actor
from teesheet.core.constants import (
    BOOKING_SOURCE_WAITLIST,
    HOLES_NINE,
    RIDE,
    WAITLIST_ACCEPTED,
    WAITLIST_EXPIRED,
    WAITLIST_IDEMPOTENCY_PREFIX,
    WAITLIST_OFFERED,
    WAITLIST_WAITING,
)
from teesheet.core.errors import (
    AccessDenied,
    CapacityExceeded,
    InvalidRequest,
    InvalidState,
    NotFound,
    OfferInvalid,
    TeeSheetError,
    WaitlistOrderViolation,
)
from teesheet.core.timeutil import as_utc, now_utc
from teesheet.models.tee_time import TeeTime
from teesheet.models.waitlist_entry import WaitlistEntry
from teesheet.services import tee_rules
from teesheet.services.booking_service import BookingContext, BookingRequest, PlayerInput, create_booking
from teesheet.services.email_notify import send_waitlist_offer

logger = logging.getLogger(__name__)

OFFER_TOKEN_BYTES = 24


@dataclass
class WaitlistRequest:
    tee_time_id: int
    party_size: int
    booking_class_id: str
    owner_id: str | None = None
    contact_email: str | None = None


def _now(now: datetime | None) -> datetime:
    return as_utc(now) if now is not None else now_utc()


def _get_entry(db: Session, waitlist_id: int) -> WaitlistEntry:
    entry = db.query(WaitlistEntry).filter(WaitlistEntry.id == waitlist_id).first()
    if entry is None:
        raise NotFound(f"Waitlist entry {waitlist_id} not found", waitlist_id=waitlist_id)
    return entry


def _get_slot(db: Session, tee_time_id: int) -> TeeTime:
    slot = db.query(TeeTime).filter(TeeTime.id == tee_time_id).first()
    if slot is None:
        raise NotFound(f"Tee time {tee_time_id} not found", tee_time_id=tee_time_id)
    return slot


def head_of_line(db: Session, tee_time_id: int) -> WaitlistEntry | None:
    return (
        db.query(WaitlistEntry)
        .filter(WaitlistEntry.tee_time_id == tee_time_id, WaitlistEntry.status == WAITLIST_WAITING)
        .order_by(WaitlistEntry.created_at, WaitlistEntry.id)
        .first()
    )


def _live_offer_exists(db: Session, tee_time_id: int, now: datetime) -> bool:
    return (
        db.query(WaitlistEntry.id)
        .filter(
            WaitlistEntry.tee_time_id == tee_time_id,
            WaitlistEntry.status == WAITLIST_OFFERED,
            WaitlistEntry.offer_expires_at > now,
        )
        .first()
        is not None
    )


def _issue_offer(entry: WaitlistEntry, now: datetime) -> str:
    ttl = settings.waitlist_offer_ttl_seconds
    entry.status = WAITLIST_OFFERED
    entry.offer_token = secrets.token_urlsafe(OFFER_TOKEN_BYTES)
    entry.offer_expires_at = now + timedelta(seconds=ttl)
    return entry.offer_token


def _try_offer(db: Session, slot: TeeTime, entry: WaitlistEntry, now: datetime) -> str | None:
    """Offer to entry when it is head of line, no offer is live and the party fits. Caller commits."""
    if _live_offer_exists(db, slot.id, now):
        return None
    head = head_of_line(db, slot.id)
    if head is None or head.id != entry.id:
        return None
    if slot.remaining < entry.party_size:
        return None
    return _issue_offer(entry, now)


def _notify_offer(entry: WaitlistEntry, slot: TeeTime, token: str) -> None:
    send_waitlist_offer(
        entry.contact_email,
        entry.id,
        token,
        as_utc(slot.start_time).isoformat(),
        settings.waitlist_offer_ttl_seconds,
    )


def join_waitlist(db: Session, request: WaitlistRequest, actor: Actor, now: datetime | None = None) -> dict[str, Any]:
    """Queue for a tee time; offered immediately when head of line with capacity to spare."""
    if request.party_size < 1:
        raise InvalidRequest("party_size must be at least 1", party_size=request.party_size)
    now = _now(now)
    slot = _get_slot(db, request.tee_time_id)
    rules = BookingContext(db, slot.tee_sheet_id).rules_for(slot)
    if not tee_rules.is_class_allowed(rules.access, request.booking_class_id):
        logger.info("join_waitlist rejected: class %s not allowed on tee_time=%s", request.booking_class_id, slot.id)
        raise AccessDenied(f"Booking class {request.booking_class_id!r} may not book this tee time", tee_time_id=slot.id)

    entry = WaitlistEntry(
        tee_time_id=slot.id,
        owner_id=request.owner_id or actor.id,
        party_size=request.party_size,
        booking_class_id=request.booking_class_id,
        contact_email=request.contact_email,
        status=WAITLIST_WAITING,
    )
    db.add(entry)
    db.commit()
    db.refresh(slot)
    token = _try_offer(db, slot, entry, now)
    db.commit()
    logger.info("Waitlist %s joined for tee_time=%s party=%s offered=%s", entry.id, slot.id, entry.party_size, bool(token))
    result: dict[str, Any] = {"waitlist_id": entry.id, "offered": bool(token)}
    if token:
        result["accept_token"] = token
        result["expires_in_seconds"] = settings.waitlist_offer_ttl_seconds
        _notify_offer(entry, slot, token)
    return result


def _default_players(entry: WaitlistEntry) -> list[PlayerInput]:
    return [PlayerInput(email=entry.contact_email)] + [PlayerInput() for _ in range(entry.party_size - 1)]


def _book_entry(
    db: Session,
    entry: WaitlistEntry,
    actor: Actor,
    players: list[PlayerInput] | None,
    walk_ride: str,
    holes: int,
    now: datetime,
) -> dict[str, Any]:
    slot = _get_slot(db, entry.tee_time_id)
    players = list(players) if players else _default_players(entry)
    if len(players) != entry.party_size:
        raise InvalidRequest(
            f"Waitlist entry is for {entry.party_size} players", party_size=entry.party_size, players=len(players)
        )
    request = BookingRequest(
        tee_sheet_id=slot.tee_sheet_id,
        tee_time_id=slot.id,
        booking_class_id=entry.booking_class_id,
        players=players,
        holes=holes,
        walk_ride=walk_ride,
        owner_id=entry.owner_id,
        source=BOOKING_SOURCE_WAITLIST,
    )
    booking = create_booking(db, request, f"{WAITLIST_IDEMPOTENCY_PREFIX}{entry.id}", actor, now=now)
    entry.status = WAITLIST_ACCEPTED
    entry.booking_id = booking["id"]
    db.commit()
    return booking


def accept_waitlist_offer(
    db: Session,
    waitlist_id: int,
    token: str,
    actor: Actor,
    players: list[PlayerInput] | None = None,
    walk_ride: str = RIDE,
    holes: int = HOLES_NINE,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Redeem an offer token; books with source=waitlist. Retrying an accepted offer returns the same booking."""
    now = _now(now)
    entry = _get_entry(db, waitlist_id)
    if entry.status not in (WAITLIST_OFFERED, WAITLIST_ACCEPTED) or not entry.offer_token:
        raise OfferInvalid(waitlist_id=waitlist_id)
    if not secrets.compare_digest(entry.offer_token, token or ""):
        raise OfferInvalid(waitlist_id=waitlist_id)
    if entry.status == WAITLIST_OFFERED and as_utc(entry.offer_expires_at) <= now:
        entry.status = WAITLIST_EXPIRED
        db.commit()
        logger.info("Waitlist %s offer expired before accept", entry.id)
        offer_freed_capacity(db, [entry.tee_time_id], now=now)
        raise OfferInvalid("Offer expired", waitlist_id=waitlist_id)
    booking = _book_entry(db, entry, actor, players, walk_ride, holes, now)
    logger.info("Waitlist %s accepted: booking=%s", entry.id, booking["id"])
    return booking


def promote_waitlist_entry(db: Session, waitlist_id: int, actor: Actor, now: datetime | None = None) -> dict[str, Any]:
    """Staff: book the oldest waiting entry for its tee time. Capacity is checked now, not at enqueue time."""
    if not actor.is_staff:
        raise AccessDenied("Only staff can promote waitlist entries")
    now = _now(now)
    entry = _get_entry(db, waitlist_id)
    if entry.status != WAITLIST_WAITING:
        raise InvalidState("Waitlist entry is not waiting", waitlist_id=entry.id, status=entry.status)
    head = head_of_line(db, entry.tee_time_id)
    if head is None or head.id != entry.id:
        raise WaitlistOrderViolation(waitlist_id=entry.id, head_waitlist_id=head.id if head else None)
    try:
        booking = _book_entry(db, entry, actor, None, RIDE, HOLES_NINE, now)
    except CapacityExceeded:
        logger.info("promote_waitlist_entry: tee_time=%s has no room for waitlist %s", entry.tee_time_id, entry.id)
        raise
    logger.info("Waitlist %s promoted by %s: booking=%s", entry.id, actor.id, booking["id"])
    return booking


def promote_waiting_for_tee_time(
    db: Session, tee_time_id: int, actor: Actor, now: datetime | None = None
) -> list[dict[str, Any]]:
    """Promote oldest-first until the head of line no longer fits. Returns the bookings made."""
    if not actor.is_staff:
        raise AccessDenied("Only staff can promote waitlist entries")
    now = _now(now)
    slot = _get_slot(db, tee_time_id)
    bookings = []
    while True:
        head = head_of_line(db, tee_time_id)
        if head is None:
            break
        db.refresh(slot)
        if slot.remaining < head.party_size:
            break
        try:
            bookings.append(promote_waitlist_entry(db, head.id, actor, now=now))
        except TeeSheetError as e:
            logger.info("promote_waiting_for_tee_time: stopped at waitlist %s (%s)", head.id, e.code)
            break
    return bookings


def offer_freed_capacity(db: Session, tee_time_ids: list[int], now: datetime | None = None) -> int:
    """After seats free up, offer them to each tee time's head of line. Returns offers issued."""
    now = _now(now)
    offered = 0
    for tee_time_id in sorted(set(tee_time_ids)):
        slot = db.query(TeeTime).filter(TeeTime.id == tee_time_id).first()
        head = head_of_line(db, tee_time_id) if slot else None
        if head is None:
            continue
        token = _try_offer(db, slot, head, now)
        db.commit()
        if token:
            offered += 1
            logger.info("Waitlist %s offered freed seats on tee_time=%s", head.id, tee_time_id)
            _notify_offer(head, slot, token)
    return offered


def expire_stale_offers(db: Session, now: datetime | None = None) -> dict[str, int]:
    """Flip lapsed offers to Expired and pass the seats on. Meant to be driven by an external scheduler."""
    now = _now(now)
    stale = (
        db.query(WaitlistEntry)
        .filter(WaitlistEntry.status == WAITLIST_OFFERED, WaitlistEntry.offer_expires_at <= now)
        .all()
    )
    for entry in stale:
        entry.status = WAITLIST_EXPIRED
    db.commit()
    reoffered = offer_freed_capacity(db, [e.tee_time_id for e in stale], now=now) if stale else 0
    if stale:
        logger.info("expire_stale_offers: expired=%s reoffered=%s", len(stale), reoffered)
    return {"expired": len(stale), "reoffered": reoffered}
