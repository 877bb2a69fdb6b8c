"""
Centralized error handling for the tee sheet engine.

Services raise TeeSheetError subclasses; routes stay thin and call error_to_http. Booking and
capacity errors are expected outcomes for the caller to show the user, not faults.
"""
from __future__ import annotations

from typing import Any

from fastapi import HTTPException

# ---------------------------------------------------------------------------
# Constants: status codes
# ---------------------------------------------------------------------------

STATUS_BAD_REQUEST = 400
STATUS_FORBIDDEN = 403
STATUS_NOT_FOUND = 404
STATUS_CONFLICT = 409
STATUS_INTERNAL_ERROR = 500


class TeeSheetError(Exception):
    """Base for every error the engine reports to its caller."""

    code = "tee_sheet_error"
    status_code = STATUS_BAD_REQUEST

    def __init__(self, message: str | None = None, **details: Any):
        self.message = message or self.__class__.__doc__ or self.code
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            body.update(self.details)
        return body


class InvalidRequest(TeeSheetError):
    """Request is malformed."""
    code = "invalid_request"


class NotFound(TeeSheetError):
    """Requested record does not exist."""
    code = "not_found"
    status_code = STATUS_NOT_FOUND


class ConfigurationInvalid(TeeSheetError):
    """Configuration failed validation."""
    code = "configuration_invalid"

    def __init__(self, message: str | None = None, violations: list[dict[str, Any]] | None = None, **details: Any):
        if violations is not None:
            details["violations"] = violations
        super().__init__(message, **details)

    @property
    def violations(self) -> list[dict[str, Any]]:
        return self.details.get("violations", [])


class VersionImmutable(ConfigurationInvalid):
    """Published versions cannot be changed."""
    code = "version_immutable"
    status_code = STATUS_CONFLICT


class WindowClosed(TeeSheetError):
    """Window has no bookable range after clamping."""
    code = "window_closed"


class AccessDenied(TeeSheetError):
    """Booking class is not allowed on this tee time."""
    code = "access_denied"
    status_code = STATUS_FORBIDDEN


class MinimumPlayersNotMet(TeeSheetError):
    """Party is smaller than the minimum for this tee time."""
    code = "minimum_players_not_met"


class PartySizeExceeded(TeeSheetError):
    """Party is larger than allowed for this tee time."""
    code = "party_size_exceeded"


class ModeNotAllowed(TeeSheetError):
    """Walk/ride selection is not allowed for this tee time."""
    code = "mode_not_allowed"


class WindowNotOpen(TeeSheetError):
    """Tee time is not open for booking."""
    code = "window_not_open"


class CapacityExceeded(TeeSheetError):
    """Insufficient capacity."""
    code = "capacity_exceeded"
    status_code = STATUS_CONFLICT


class IdempotencyKeyReused(TeeSheetError):
    """Idempotency-Key was already used by another caller."""
    code = "idempotency_key_reused"
    status_code = STATUS_CONFLICT


class WindowHasPassed(TeeSheetError):
    """Cancellation window has passed."""
    code = "window_has_passed"


class InvalidState(TeeSheetError):
    """Record is not in a state that allows this action."""
    code = "invalid_state"
    status_code = STATUS_CONFLICT


class OfferInvalid(TeeSheetError):
    """Offer expired or invalid."""
    code = "offer_invalid"


class WaitlistOrderViolation(TeeSheetError):
    """Older waitlist requests are pending."""
    code = "waitlist_order_violation"
    status_code = STATUS_CONFLICT


def error_to_http(exc: Exception) -> HTTPException:
    """
    Map an exception from a service call into an HTTPException.
    TeeSheetError carries its own status and body; anything else is a 500 with the message.
    """
    if isinstance(exc, TeeSheetError):
        return HTTPException(status_code=exc.status_code, detail=exc.to_dict())
    return HTTPException(status_code=STATUS_INTERNAL_ERROR, detail={"error": "internal_error", "message": str(exc)})
