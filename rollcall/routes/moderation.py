"""Moderation and excuse link routes.

Every request carries the link token and is authorized afresh; there is
no login and no cookie.
"""
import logging

from fastapi import APIRouter, Depends, Request
from sqlmodel import Session

from rollcall.core.database import get_session
from rollcall.models import EventConfig
from rollcall.routes.responses import error_response, isoformat, serialize
from rollcall.schemas import (
    ExcuseSubmitRequest,
    LinkRequest,
    ModeratorActionRequest,
    ModeratorStateRequest,
)
from rollcall.verification.errors import CheckinError, Reason
from rollcall.verification.moderation import (
    LinkKind,
    add_attendee,
    attendance_snapshot,
    delete_record,
    require_capability,
    search_attendees,
    submit_excuse,
    update_record_status,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["moderation"])

# The live QR token and display lease never leave the organizer's display.
HOST_ONLY_EVENT_FIELDS = {
    "current_token",
    "token_expires_at",
    "host_device_id",
    "host_lease_expires_at",
}


def moderator_event_view(event: EventConfig) -> dict:
    return serialize(event, exclude=HOST_ONLY_EVENT_FIELDS)


@router.post("/moderator-state")
async def moderator_state(
    body: ModeratorStateRequest,
    request: Request,
    session: Session = Depends(get_session),
):
    """
    Load the event and, unless includeAttendance is false, its attendance.

    Attendance is ordered newest first and capped at the snapshot limit.
    """
    try:
        _, event = require_capability(
            session, body.event_id, body.token, LinkKind.moderation, "read_state"
        )
    except CheckinError as e:
        return error_response(request.url.path, e)

    payload = {"authorized": True, "event": moderator_event_view(event)}
    if body.include_attendance:
        payload["attendance"] = [serialize(r) for r in attendance_snapshot(session, event.id)]
    return payload


@router.post("/moderator-action")
async def moderator_action(
    body: ModeratorActionRequest,
    request: Request,
    session: Session = Depends(get_session),
):
    """
    Perform one moderator action on the event's attendance.

    Actions: update_status (recordId, newStatus), delete_record (recordId),
    add_attendee (attendeeName, attendeeEmail, optional status) and
    search_attendees (query). Event settings cannot be changed from here.
    """
    try:
        capability, event = require_capability(
            session, body.event_id, body.token, LinkKind.moderation, body.action
        )

        if body.action == "update_status":
            if body.record_id is None or body.new_status is None:
                raise CheckinError(Reason.invalid_request, "recordId and newStatus are required")
            record = update_record_status(session, capability, body.record_id, body.new_status)
            return {"success": True, "record": serialize(record)}

        if body.action == "delete_record":
            if body.record_id is None:
                raise CheckinError(Reason.invalid_request, "recordId is required")
            delete_record(session, capability, body.record_id)
            return {"success": True}

        if body.action == "add_attendee":
            record = add_attendee(
                session,
                capability,
                body.attendee_name or "",
                body.attendee_email or "",
                status=body.status,
            )
            return {"success": True, "record": serialize(record)}

        # search_attendees
        return {"success": True, "attendees": search_attendees(session, event, body.query or "")}
    except CheckinError as e:
        return error_response(request.url.path, e)


@router.post("/excuse-start")
async def excuse_start(
    body: LinkRequest,
    request: Request,
    session: Session = Depends(get_session),
):
    """Validate an excuse link and return the event it is for."""
    try:
        capability, event = require_capability(
            session, body.event_id, body.token, LinkKind.excuse, "read_excuse_event"
        )
    except CheckinError as e:
        return error_response(request.url.path, e)

    return {
        "authorized": True,
        "event": {
            "id": str(event.id),
            "name": event.name,
            "event_date": isoformat(event.event_date),
            "theme_color": event.theme_color or "default",
            "link_label": capability.label,
        },
    }


@router.post("/excuse-submit")
async def excuse_submit(
    body: ExcuseSubmitRequest,
    request: Request,
    session: Session = Depends(get_session),
):
    """Record an attendee as excused through an excuse link."""
    try:
        capability, _ = require_capability(
            session, body.event_id, body.token, LinkKind.excuse, "submit_excuse"
        )
        submit_excuse(session, capability, body.attendee_name, body.attendee_email)
    except CheckinError as e:
        return error_response(request.url.path, e)

    return {"success": True}
