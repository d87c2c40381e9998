"""
Request bodies for the check-in and moderation endpoints.

Clients send camelCase JSON; fields are exposed in snake_case.
"""
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from rollcall.models import AttendanceStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Location(CamelModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class AttendanceStartRequest(CamelModel):
    """Token scanned from the event display."""
    event_id: UUID = Field(..., alias="eventId")
    token: str | None = None


class AttendanceSubmitRequest(CamelModel):
    """Attendee details submitted within a check-in session."""
    session_id: UUID = Field(..., alias="sessionId")
    attendee_name: str = Field(..., alias="attendeeName", max_length=200)
    attendee_email: str = Field(..., alias="attendeeEmail", max_length=320)
    client_identity: str | None = Field(None, alias="clientIdentity", max_length=512)
    location: Location | None = None
    location_denied: bool = Field(False, alias="locationDenied")
    token: str | None = None


class LinkRequest(CamelModel):
    """Any request authorized by a moderation or excuse link token."""
    event_id: UUID = Field(..., alias="eventId")
    token: str = Field(..., min_length=1)


class ModeratorStateRequest(LinkRequest):
    include_attendance: bool = Field(True, alias="includeAttendance")


class ModeratorActionRequest(LinkRequest):
    """A moderator action; which optional fields are needed depends on action."""
    action: Literal["update_status", "delete_record", "add_attendee", "search_attendees"]
    record_id: UUID | None = Field(None, alias="recordId")
    new_status: AttendanceStatus | None = Field(None, alias="newStatus")
    attendee_name: str | None = Field(None, alias="attendeeName", max_length=200)
    attendee_email: str | None = Field(None, alias="attendeeEmail", max_length=320)
    status: AttendanceStatus = AttendanceStatus.verified
    query: str | None = Field(None, max_length=200)


class ExcuseSubmitRequest(LinkRequest):
    attendee_name: str = Field(..., alias="attendeeName", max_length=200)
    attendee_email: str = Field(..., alias="attendeeEmail", max_length=320)


class DisplayRequest(CamelModel):
    """Identifies the display device acting as token host."""
    device_id: str = Field(..., alias="deviceId", min_length=1, max_length=200)
