"""
Shared request dependencies.
"""

from datetime import datetime, timezone

from fastapi import HTTPException, status

from facility_access.services.results import Denied, DenialKind


def get_now() -> datetime:
    """Request clock. Overridden in tests to pin the wall-clock time."""
    return datetime.now(timezone.utc)


DENIAL_STATUS = {
    DenialKind.INVALID_TOKEN: status.HTTP_404_NOT_FOUND,
    DenialKind.UNKNOWN_TOKEN: status.HTTP_404_NOT_FOUND,
    DenialKind.AMBIGUOUS_TOKEN: status.HTTP_503_SERVICE_UNAVAILABLE,
    DenialKind.NO_SLOT_AVAILABLE: status.HTTP_409_CONFLICT,
    DenialKind.SESSION_WINDOW_ENDED: status.HTTP_409_CONFLICT,
    DenialKind.ELIGIBILITY: status.HTTP_403_FORBIDDEN,
    DenialKind.ENTITLEMENT: status.HTTP_403_FORBIDDEN,
    DenialKind.ALREADY_ADMITTED: status.HTTP_409_CONFLICT,
    DenialKind.CAPACITY_EXCEEDED: status.HTTP_409_CONFLICT,
    DenialKind.ALREADY_WAITLISTED: status.HTTP_409_CONFLICT,
    DenialKind.NOT_WAITLISTED: status.HTTP_404_NOT_FOUND,
    DenialKind.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    DenialKind.CONFIGURATION_FAULT: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def denial_exception(denied: Denied) -> HTTPException:
    """Turn a denial into an HTTP error carrying its reason code and message."""
    status_code = DENIAL_STATUS.get(denied.kind, status.HTTP_409_CONFLICT)
    headers = None
    if status_code == status.HTTP_503_SERVICE_UNAVAILABLE:
        # Fixing the catalog takes a human; do not invite tight retry loops
        headers = {"Retry-After": "60"}
    return HTTPException(
        status_code=status_code,
        detail={"reason": denied.reason, "message": denied.message},
        headers=headers,
    )
