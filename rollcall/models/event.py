"""Event configuration model for the check-in pipeline.

This module defines the EventConfig model which holds an event's
verification policy: whether check-in is open, how the QR token rotates
and who is currently displaying it, the geofence, the duplicate-identity
policy and whether moderation/excuse links are honoured. Organizer-facing
tools create and edit these rows; the pipeline reads them and only
writes the token and host lease columns.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from rollcall.models.attendance import AttendanceRecord
    from rollcall.models.links import ExcuseLink, ModerationLink

ROTATION_MIN_SECONDS = 2
ROTATION_MAX_SECONDS = 60


class EventConfig(SQLModel, table=True):
    """An event and its check-in verification policy.

    Attributes:
        id: Unique identifier (UUID).
        name: Display name shown to attendees.
        event_date: When the event takes place.
        location_name: Human-readable venue name.
        series_id: Groups events of one series; known-attendee search
            looks across all events sharing it.
        theme_color: Branding colour handed to the attendee form.
        active: Check-in window is open.
        rotation_enabled: If True the QR token rotates; otherwise the
            fixed "static" token is accepted while the event is active.
        rotation_interval_seconds: Token lifetime, clamped to 2-60.
        current_token: Token currently accepted by attendance-start.
        token_expires_at: Hard expiry of current_token.
        host_device_id: Display device holding the host lease.
        host_lease_expires_at: When the host lease lapses.
        geofence_enabled: Require attendees to be inside the geofence.
        geofence_lat: Latitude of the geofence centre.
        geofence_lng: Longitude of the geofence centre.
        geofence_radius_meters: Allowed distance from the centre.
        identity_check_enabled: Look up earlier submissions with the
            same client identity.
        identity_collision_strict: Reject repeat identities outright
            instead of recording them as suspicious.
        moderation_enabled: Honour moderation links for this event.
        excuse_links_enabled: Honour excuse links for this event.
    """
    __tablename__ = "event"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str
    event_date: datetime | None = None
    location_name: str | None = None
    series_id: UUID | None = Field(default=None, index=True)
    theme_color: str = Field(default="default")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Check-in window and token rotation
    active: bool = Field(default=False)
    rotation_enabled: bool = Field(default=True)
    rotation_interval_seconds: int = Field(
        default=3, ge=ROTATION_MIN_SECONDS, le=ROTATION_MAX_SECONDS
    )
    current_token: str | None = None
    token_expires_at: datetime | None = None
    host_device_id: str | None = None
    host_lease_expires_at: datetime | None = None

    # Geofence
    geofence_enabled: bool = Field(default=False)
    geofence_lat: float | None = None
    geofence_lng: float | None = None
    geofence_radius_meters: int = Field(default=100)

    # Identity policy
    identity_check_enabled: bool = Field(default=True)
    identity_collision_strict: bool = Field(default=True)

    # Delegated access
    moderation_enabled: bool = Field(default=False)
    excuse_links_enabled: bool = Field(default=True)

    # Relationships
    records: list["AttendanceRecord"] = Relationship(back_populates="event")
    moderation_links: list["ModerationLink"] = Relationship(back_populates="event")
    excuse_links: list["ExcuseLink"] = Relationship(back_populates="event")

    @property
    def rotation_seconds(self) -> int:
        """Rotation interval clamped to the supported range."""
        return min(
            ROTATION_MAX_SECONDS,
            max(ROTATION_MIN_SECONDS, self.rotation_interval_seconds or 3),
        )
