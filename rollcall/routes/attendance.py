"""Attendee-facing check-in routes."""
from fastapi import APIRouter, Depends, Request
from sqlmodel import Session

from rollcall.core.database import get_session
from rollcall.routes.responses import error_response, isoformat
from rollcall.schemas import AttendanceStartRequest, AttendanceSubmitRequest
from rollcall.verification.errors import CheckinError
from rollcall.verification.sessions import attendee_event_view, start_checkin
from rollcall.verification.verifier import Submission, submit_attendance

router = APIRouter(tags=["attendance"])


@router.post("/attendance-start")
async def attendance_start(
    body: AttendanceStartRequest,
    request: Request,
    session: Session = Depends(get_session),
):
    """
    Exchange a scanned QR token for a check-in session.

    Returns the session id, its expiry and the event details the check-in
    form needs. Refuses with not_found, inactive or expired.
    """
    try:
        checkin, event = start_checkin(session, body.event_id, body.token)
    except CheckinError as e:
        return error_response(request.url.path, e)

    return {
        "authorized": True,
        "sessionId": str(checkin.id),
        "sessionExpiresAt": isoformat(checkin.expires_at),
        "event": attendee_event_view(event),
    }


@router.post("/attendance-submit")
async def attendance_submit(
    body: AttendanceSubmitRequest,
    request: Request,
    session: Session = Depends(get_session),
):
    """
    Submit attendee details within a check-in session.

    The session is consumed whether the record ends up verified or
    suspicious. Refuses with a session_* reason, inactive,
    missing_identity or already_submitted.
    """
    submission = Submission(
        session_id=body.session_id,
        attendee_name=body.attendee_name,
        attendee_email=body.attendee_email,
        client_identity=body.client_identity,
        lat=body.location.lat if body.location else None,
        lng=body.location.lng if body.location else None,
        location_denied=body.location_denied,
        token=body.token,
    )
    try:
        submit_attendance(session, submission)
    except CheckinError as e:
        return error_response(request.url.path, e)

    return {"success": True}
