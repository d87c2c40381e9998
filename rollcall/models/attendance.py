"""Attendance record model.

This module defines the AttendanceRecord model, the output of the
check-in pipeline. Records are created by attendance-submit, by a
moderator's manual add or by an excuse link, and afterwards only change
status through the transitions in rollcall.verification.status.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from rollcall.models.event import EventConfig


class AttendanceStatus(str, Enum):
    verified = "verified"
    suspicious = "suspicious"
    cleared = "cleared"
    excused = "excused"


class RecordSource(str, Enum):
    checkin = "checkin"
    moderator = "moderator"
    excuse = "excuse"


class AttendanceRecord(SQLModel, table=True):
    """One attendee's presence (or excuse) at an event.

    The unique constraint on (event_id, client_identity) is the real
    duplicate guard; the lookup done before insert only exists to give a
    friendlier answer in the common case.

    Attributes:
        id: Unique identifier (UUID).
        event_id: Foreign key to the event.
        attendee_name: Name as entered, trimmed.
        attendee_email: Email, trimmed and lower-cased.
        client_identity: Opaque device/browser id, or a generated
            placeholder ("collision-...", "moderator-...", "excuse-...")
            when the record must not occupy the submitted identity.
        client_identity_raw: The identity the device actually sent, kept
            when client_identity holds a collision placeholder.
        location_provided: Whether coordinates were supplied for a
            geofenced event.
        lat: Supplied latitude, if any.
        lng: Supplied longitude, if any.
        status: One of verified, suspicious, cleared, excused.
        suspicious_reason: Why the record was flagged, "; "-joined when
            more than one check fired.
        source: How the record was created.
        recorded_at: Creation timestamp.
    """
    __tablename__ = "attendance_record"
    __table_args__ = (
        UniqueConstraint("event_id", "client_identity", name="uq_attendance_event_client"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    event_id: UUID = Field(foreign_key="event.id", index=True)
    attendee_name: str
    attendee_email: str = Field(index=True)
    client_identity: str
    client_identity_raw: str | None = None
    location_provided: bool = Field(default=False)
    lat: float | None = None
    lng: float | None = None
    status: AttendanceStatus = Field(default=AttendanceStatus.verified)
    suspicious_reason: str | None = None
    source: RecordSource = Field(default=RecordSource.checkin)
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Relationship
    event: Optional["EventConfig"] = Relationship(back_populates="records")
