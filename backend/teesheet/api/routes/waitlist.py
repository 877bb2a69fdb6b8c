"""
Waitlist API: join a full tee time, accept an offer with its token, staff promotion.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from teesheet.api.deps import current_actor
from teesheet.core.actor import Actor
from teesheet.core.constants import HOLES_NINE, RIDE
from teesheet.core.errors import TeeSheetError, error_to_http
from teesheet.db.session import get_db
from teesheet.services.booking_service import PlayerInput
from teesheet.services.waitlist_service import (
    WaitlistRequest,
    accept_waitlist_offer,
    join_waitlist,
    promote_waitlist_entry,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class JoinBody(BaseModel):
    tee_time_id: int
    party_size: int = Field(..., ge=1)
    booking_class_id: str = Field(..., min_length=1, max_length=64)
    contact_email: str | None = Field(None, max_length=255)


class AcceptPlayer(BaseModel):
    name: str | None = None
    email: str | None = None


class AcceptBody(BaseModel):
    token: str = Field(..., min_length=1)
    players: list[AcceptPlayer] | None = None
    walk_ride: str = RIDE
    holes: int = HOLES_NINE


@router.post("", status_code=201)
def post_join(
    body: JoinBody,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
) -> dict[str, Any]:
    """Queue for a tee time. The response carries accept_token when an offer was issued immediately."""
    request = WaitlistRequest(
        tee_time_id=body.tee_time_id,
        party_size=body.party_size,
        booking_class_id=body.booking_class_id,
        owner_id=actor.id,
        contact_email=body.contact_email,
    )
    try:
        return join_waitlist(db, request, actor)
    except TeeSheetError as e:
        raise error_to_http(e) from e


@router.post("/{waitlist_id}/accept")
def post_accept(
    waitlist_id: int,
    body: AcceptBody,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
) -> dict[str, Any]:
    players = [PlayerInput(name=p.name, email=p.email) for p in body.players] if body.players else None
    try:
        return accept_waitlist_offer(
            db, waitlist_id, body.token, actor, players=players, walk_ride=body.walk_ride, holes=body.holes
        )
    except TeeSheetError as e:
        raise error_to_http(e) from e


@router.post("/{waitlist_id}/promote")
def post_promote(
    waitlist_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
) -> dict[str, Any]:
    """Staff: book the oldest waiting entry now, if the tee time has room."""
    try:
        return promote_waitlist_entry(db, waitlist_id, actor)
    except TeeSheetError as e:
        raise error_to_http(e) from e
