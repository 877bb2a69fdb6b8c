"""
Tee sheet API: inspect effective/compiled windows, list availability, generate tee times, publish
configuration, closures and manual tee time blocks.

Changes are staff-only; reading windows and availability is open to any caller.
"""
import datetime as dt
import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from teesheet.api.deps import current_actor
from teesheet.core.actor import Actor
from teesheet.core.constants import RIDE
from teesheet.core.errors import AccessDenied, InvalidRequest, TeeSheetError, error_to_http
from teesheet.db.session import get_db
from teesheet.models.override import TeeSheetOverride
from teesheet.models.season import TeeSheetSeason
from teesheet.models.tee_time import TeeTime
from teesheet.models.template import TeeSheetTemplate
from teesheet.services import config_store, tee_time_service
from teesheet.services.tee_sheet_generator import generate_for_date, regenerate_range
from teesheet.services.template_resolver import resolve_effective_windows
from teesheet.services.window_compiler import compile_windows_for_date

router = APIRouter()
logger = logging.getLogger(__name__)


def _require_staff(actor: Actor) -> None:
    if not actor.is_staff:
        raise AccessDenied("Only staff can change tee sheet configuration")


def _check_owned(row, tee_sheet_id: int, label: str) -> None:
    if row is not None and row.tee_sheet_id != tee_sheet_id:
        raise InvalidRequest(f"{label} does not belong to tee sheet {tee_sheet_id}")


# --- Windows ---


@router.get("/{tee_sheet_id}/effective-windows")
def get_effective_windows(
    tee_sheet_id: int,
    date: dt.date = Query(..., description="Course-local date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Windows that govern the date: published override first, then the published season."""
    try:
        return resolve_effective_windows(db, tee_sheet_id, date).to_dict()
    except TeeSheetError as e:
        raise error_to_http(e) from e


@router.get("/{tee_sheet_id}/compiled-windows")
def get_compiled_windows(
    tee_sheet_id: int,
    date: dt.date = Query(..., description="Course-local date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    try:
        compiled = compile_windows_for_date(db, tee_sheet_id, date)
    except TeeSheetError as e:
        raise error_to_http(e) from e
    return {"date": date.isoformat(), "windows": [w.to_dict() for w in compiled]}


# --- Generation ---


class GenerateRequest(BaseModel):
    date: dt.date | None = None
    start_date: dt.date | None = None
    end_date: dt.date | None = None


@router.post("/{tee_sheet_id}/generate")
def generate(
    tee_sheet_id: int,
    body: GenerateRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
) -> dict[str, Any]:
    """Generate one date, or an inclusive start_date..end_date range."""
    try:
        _require_staff(actor)
        if body.date is not None:
            return generate_for_date(db, tee_sheet_id, body.date)
        if body.start_date is None or body.end_date is None:
            raise InvalidRequest("Provide date, or start_date and end_date")
        if body.end_date < body.start_date:
            raise InvalidRequest("end_date must not be before start_date")
        return regenerate_range(db, tee_sheet_id, body.start_date, body.end_date)
    except TeeSheetError as e:
        raise error_to_http(e) from e


# --- Publish ---


class PublishRequest(BaseModel):
    version_id: int
    apply_now: bool = False
    start_date: dt.date | None = None
    end_date: dt.date | None = None


class PublishOverrideRequest(BaseModel):
    version_id: int | None = None
    apply_now: bool = False


@router.post("/{tee_sheet_id}/templates/{template_id}/publish")
def publish_template(
    tee_sheet_id: int,
    template_id: int,
    body: PublishRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
) -> dict[str, Any]:
    try:
        _require_staff(actor)
        _check_owned(db.get(TeeSheetTemplate, template_id), tee_sheet_id, "Template")
        return config_store.publish_template(
            db, template_id, body.version_id, apply_now=body.apply_now, start_date=body.start_date, end_date=body.end_date
        )
    except TeeSheetError as e:
        raise error_to_http(e) from e


@router.post("/{tee_sheet_id}/seasons/{season_id}/publish")
def publish_season(
    tee_sheet_id: int,
    season_id: int,
    body: PublishRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
) -> dict[str, Any]:
    try:
        _require_staff(actor)
        _check_owned(db.get(TeeSheetSeason, season_id), tee_sheet_id, "Season")
        return config_store.publish_season(
            db, season_id, body.version_id, apply_now=body.apply_now, start_date=body.start_date, end_date=body.end_date
        )
    except TeeSheetError as e:
        raise error_to_http(e) from e


@router.post("/{tee_sheet_id}/overrides/{override_id}/publish")
def publish_override(
    tee_sheet_id: int,
    override_id: int,
    body: PublishOverrideRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
) -> dict[str, Any]:
    try:
        _require_staff(actor)
        _check_owned(db.get(TeeSheetOverride, override_id), tee_sheet_id, "Override")
        return config_store.publish_override(db, override_id, version_id=body.version_id, apply_now=body.apply_now)
    except TeeSheetError as e:
        raise error_to_http(e) from e


# --- Closures ---


class ClosureRequest(BaseModel):
    starts_at: dt.datetime
    ends_at: dt.datetime
    side_id: int | None = None
    reason: str | None = Field(None, max_length=255)


@router.post("/{tee_sheet_id}/closures", status_code=201)
def add_closure(
    tee_sheet_id: int,
    body: ClosureRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
) -> dict[str, Any]:
    """Block a time range for the whole sheet or one side. Naive datetimes are read as UTC."""
    try:
        _require_staff(actor)
        closure = config_store.add_closure_block(
            db, tee_sheet_id, body.starts_at, body.ends_at, side_id=body.side_id, reason=body.reason
        )
    except TeeSheetError as e:
        raise error_to_http(e) from e
    return {
        "id": closure.id,
        "tee_sheet_id": closure.tee_sheet_id,
        "side_id": closure.side_id,
        "starts_at": body.starts_at.isoformat(),
        "ends_at": body.ends_at.isoformat(),
        "reason": closure.reason,
    }


@router.delete("/{tee_sheet_id}/closures/{closure_id}")
def delete_closure(
    tee_sheet_id: int,
    closure_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
) -> dict[str, Any]:
    try:
        _require_staff(actor)
        config_store.delete_closure_block(db, closure_id)
    except TeeSheetError as e:
        raise error_to_http(e) from e
    return {"ok": True, "id": closure_id}


# --- Availability and manual blocks ---


@router.get("/{tee_sheet_id}/availability")
def get_availability(
    tee_sheet_id: int,
    date: dt.date = Query(..., description="Course-local date (YYYY-MM-DD)"),
    booking_class: str = Query("full", min_length=1, max_length=64),
    group_size: int = Query(2, ge=1, le=8),
    walk_ride: str = Query(RIDE),
    side_ids: list[int] | None = Query(None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
) -> dict[str, Any]:
    """Tee times with remaining seats and price. Customers only see what they could book."""
    try:
        tee_times = tee_time_service.availability_for_date(
            db, tee_sheet_id, date, booking_class, group_size, side_ids=side_ids, walk_ride=walk_ride, actor=actor
        )
    except TeeSheetError as e:
        raise error_to_http(e) from e
    return {"date": date.isoformat(), "booking_class": booking_class, "group_size": group_size, "tee_times": tee_times}


class BlockRequest(BaseModel):
    reason: str | None = Field(None, max_length=255)


@router.post("/{tee_sheet_id}/tee-times/{tee_time_id}/block")
def block_tee_time(
    tee_sheet_id: int,
    tee_time_id: int,
    body: BlockRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
) -> dict[str, Any]:
    try:
        _require_staff(actor)
        _check_owned(db.get(TeeTime, tee_time_id), tee_sheet_id, "Tee time")
        return tee_time_service.block_tee_time(db, tee_time_id, reason=body.reason)
    except TeeSheetError as e:
        raise error_to_http(e) from e


@router.post("/{tee_sheet_id}/tee-times/{tee_time_id}/unblock")
def unblock_tee_time(
    tee_sheet_id: int,
    tee_time_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
) -> dict[str, Any]:
    try:
        _require_staff(actor)
        _check_owned(db.get(TeeTime, tee_time_id), tee_sheet_id, "Tee time")
        return tee_time_service.unblock_tee_time(db, tee_time_id)
    except TeeSheetError as e:
        raise error_to_http(e) from e
