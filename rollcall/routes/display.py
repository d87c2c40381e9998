"""Display host routes: host lease, token rotation, opening and closing check-in.

These are organizer operations. Organizer accounts live outside this
service, so the routes are guarded by a shared organizer API key.
"""
import secrets
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Request
from sqlmodel import Session

from rollcall.core.clock import utcnow
from rollcall.core.config import settings
from rollcall.core.database import get_session
from rollcall.models import EventConfig
from rollcall.routes.responses import error_response, isoformat
from rollcall.schemas import DisplayRequest
from rollcall.verification import tokens
from rollcall.verification.errors import CheckinError, Reason


def require_organizer_key(x_organizer_key: str = Header("")):
    """Reject requests without the configured organizer API key."""
    if not x_organizer_key or not secrets.compare_digest(
        x_organizer_key, settings.organizer_api_key
    ):
        raise CheckinError(Reason.unauthorized, "invalid organizer key")


router = APIRouter(
    prefix="/display/{event_id}",
    tags=["display"],
    dependencies=[Depends(require_organizer_key)],
)


def display_state(event: EventConfig) -> dict:
    """Token and lease fields a display needs to render the QR code."""
    return {
        "success": True,
        "active": event.active,
        "token": event.current_token,
        "tokenExpiresAt": isoformat(event.token_expires_at),
        "hostDeviceId": event.host_device_id,
        "hostLeaseExpiresAt": isoformat(event.host_lease_expires_at),
        "leaseLive": tokens.lease_is_live(event, utcnow()),
    }


@router.post("/lease")
async def acquire_lease(
    event_id: UUID,
    body: DisplayRequest,
    request: Request,
    session: Session = Depends(get_session),
):
    """
    Claim or renew the host lease for this display.

    Displays call this as a heartbeat while showing the QR code. Refuses
    with lease_held while another display's lease is live.
    """
    try:
        event = tokens.acquire_host_lease(session, event_id, body.device_id)
    except CheckinError as e:
        return error_response(request.url.path, e)
    return display_state(event)


@router.post("/lease/release")
async def release_lease(
    event_id: UUID,
    body: DisplayRequest,
    session: Session = Depends(get_session),
):
    """Give up the host lease, e.g. when the display page is closed."""
    released = tokens.release_host_lease(session, event_id, body.device_id)
    return {"success": True, "released": released}


@router.post("/rotate")
async def rotate_token(
    event_id: UUID,
    body: DisplayRequest,
    request: Request,
    session: Session = Depends(get_session),
):
    """Issue a fresh token. Only the current lease holder may rotate."""
    try:
        event = tokens.rotate(session, event_id, body.device_id)
    except CheckinError as e:
        return error_response(request.url.path, e)
    return display_state(event)


@router.post("/start")
async def start_event(
    event_id: UUID,
    body: DisplayRequest,
    request: Request,
    session: Session = Depends(get_session),
):
    """Open check-in with this display as token host."""
    try:
        event = tokens.start_event(session, event_id, body.device_id)
    except CheckinError as e:
        return error_response(request.url.path, e)
    return display_state(event)


@router.post("/stop")
async def stop_event(
    event_id: UUID,
    request: Request,
    session: Session = Depends(get_session),
):
    """Close check-in; the current token stops working immediately."""
    try:
        event = tokens.stop_event(session, event_id)
    except CheckinError as e:
        return error_response(request.url.path, e)
    return display_state(event)
