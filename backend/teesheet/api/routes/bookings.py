"""
Bookings API: create (idempotent), reschedule, cancel, replace players.

All capacity, access and pricing rules live in booking_service; this router only maps bodies and errors.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from teesheet.api.deps import current_actor, idempotency_key
from teesheet.core.actor import Actor
from teesheet.core.constants import HOLES_NINE, RIDE
from teesheet.core.errors import InvalidRequest, TeeSheetError, error_to_http
from teesheet.db.session import get_db
from teesheet.services.booking_service import (
    BookingRequest,
    PlayerInput,
    cancel_booking,
    create_booking,
    reschedule_booking,
    update_booking_players,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class PlayerBody(BaseModel):
    name: str | None = Field(None, max_length=255)
    email: str | None = Field(None, max_length=255)


def _players(items: list[PlayerBody]) -> list[PlayerInput]:
    return [PlayerInput(name=p.name, email=p.email) for p in items]


class CreateBookingBody(BaseModel):
    tee_sheet_id: int
    tee_time_id: int
    booking_class_id: str = Field(..., min_length=1, max_length=64)
    players: list[PlayerBody] = Field(..., min_length=1)
    holes: int = HOLES_NINE
    walk_ride: str = RIDE
    notes: str | None = None


class RescheduleBody(BaseModel):
    new_tee_time_id: int
    holes: int | None = None
    walk_ride: str | None = None


class PlayersBody(BaseModel):
    players: list[PlayerBody] = Field(..., min_length=1)


@router.post("", status_code=201)
def post_booking(
    body: CreateBookingBody,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
    key: str | None = Depends(idempotency_key),
) -> dict[str, Any]:
    """
    Book a tee time (plus its reround leg for 18 holes).
    Idempotency-Key is required; repeating a key returns the original booking.
    """
    try:
        if not key:
            raise InvalidRequest("Idempotency-Key header is required")
        request = BookingRequest(
            tee_sheet_id=body.tee_sheet_id,
            tee_time_id=body.tee_time_id,
            booking_class_id=body.booking_class_id,
            players=_players(body.players),
            holes=body.holes,
            walk_ride=body.walk_ride,
            owner_id=actor.id,
            notes=body.notes,
        )
        return create_booking(db, request, key, actor)
    except TeeSheetError as e:
        raise error_to_http(e) from e


@router.post("/{booking_id}/reschedule")
def post_reschedule(
    booking_id: int,
    body: RescheduleBody,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
) -> dict[str, Any]:
    try:
        return reschedule_booking(
            db, booking_id, body.new_tee_time_id, actor, holes=body.holes, walk_ride=body.walk_ride
        )
    except TeeSheetError as e:
        raise error_to_http(e) from e


@router.post("/{booking_id}/cancel")
def post_cancel(
    booking_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
) -> dict[str, Any]:
    """Cancel and release seats. Customers are held to the cutoff; staff are not."""
    try:
        return cancel_booking(db, booking_id, actor)
    except TeeSheetError as e:
        raise error_to_http(e) from e


@router.patch("/{booking_id}/players")
def patch_players(
    booking_id: int,
    body: PlayersBody,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
) -> dict[str, Any]:
    try:
        return update_booking_players(db, booking_id, _players(body.players), actor)
    except TeeSheetError as e:
        raise error_to_http(e) from e
