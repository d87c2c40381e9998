"""Check-in session model.

A session is opened by attendance-start once a QR token has been
accepted and is consumed by exactly one attendance-submit. It is only
ever written by the pipeline.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel


class CheckinSession(SQLModel, table=True):
    """A short-lived, single-use window for submitting attendee details.

    Attributes:
        id: Unique identifier (UUID), handed to the attendee's device.
        event_id: Foreign key to the event being checked into.
        token_snapshot: The QR token that was presented to open the session.
        created_at: When the session was opened.
        expires_at: End of the submission window.
        used_at: Set once a submission consumed the session. A session with
            used_at set, or past expires_at, is permanently inert.
    """
    __tablename__ = "checkin_session"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    event_id: UUID = Field(foreign_key="event.id", index=True)
    token_snapshot: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    expires_at: datetime
    used_at: datetime | None = None
