"""Bearer-token link models for delegated, account-less access.

Moderation links let a helper review and correct one event's attendance;
excuse links let attendees report that they cannot attend. Holding a
valid token is the whole proof of authorization, so tokens are generated
with the secrets module and never derived from the event.
"""

import secrets
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from rollcall.models.event import EventConfig


def generate_link_token() -> str:
    """Return a new unguessable URL-safe link token."""
    return secrets.token_urlsafe(24)


class ModerationLink(SQLModel, table=True):
    """A moderation link granting restricted access to one event.

    Attributes:
        id: Unique identifier (UUID).
        event_id: Foreign key to the event the link is scoped to.
        token: Unguessable bearer token (unique).
        label: Organizer-facing note, e.g. who the link was shared with.
        is_active: Organizer can switch a link off without deleting it.
        created_at: Creation timestamp.
        expires_at: Optional hard expiry.
        event: Reference to the parent EventConfig object.
    """
    __tablename__ = "moderation_link"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    event_id: UUID = Field(foreign_key="event.id", index=True)
    token: str = Field(default_factory=generate_link_token, unique=True, index=True)
    label: str | None = None
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    expires_at: datetime | None = None

    event: Optional["EventConfig"] = Relationship(back_populates="moderation_links")


class ExcuseLink(SQLModel, table=True):
    """An excuse link through which attendees register an absence.

    Same shape as ModerationLink; kept in its own table so the two token
    spaces never grant each other's capabilities.
    """
    __tablename__ = "excuse_link"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    event_id: UUID = Field(foreign_key="event.id", index=True)
    token: str = Field(default_factory=generate_link_token, unique=True, index=True)
    label: str | None = None
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    expires_at: datetime | None = None

    event: Optional["EventConfig"] = Relationship(back_populates="excuse_links")
