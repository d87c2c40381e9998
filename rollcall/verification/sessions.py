"""Check-in session issuing (attendance-start).

An attendee's device presents the token it scanned from the display. If
the token is still the event's current one, a single-use session is
opened and the attendee gets a fixed window to fill in the form. That
window is the longest a captured token can be exploited.
"""
import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlmodel import Session

from rollcall.core.clock import utcnow
from rollcall.core.config import settings
from rollcall.models import CheckinSession, EventConfig
from rollcall.verification.errors import CheckinError, Reason
from rollcall.verification.tokens import STATIC_TOKEN, is_token_fresh

logger = logging.getLogger(__name__)


def check_presented_token(event: EventConfig, token: str | None, now: datetime) -> None:
    """
    Validate a scanned token against the event's current token.

    Raises CheckinError with the first failing check: not_found is handled
    by the caller, then inactive, then expired.
    """
    if not event.active:
        raise CheckinError(Reason.inactive)

    if event.rotation_enabled:
        if not token or not is_token_fresh(event, token, now):
            raise CheckinError(Reason.expired)
    elif token != STATIC_TOKEN:
        raise CheckinError(Reason.expired)


def attendee_event_view(event: EventConfig) -> dict:
    """Event fields the attendee's check-in form needs."""
    return {
        "id": str(event.id),
        "name": event.name,
        "event_date": event.event_date.isoformat() if event.event_date else None,
        "location_name": event.location_name,
        "location_lat": event.geofence_lat,
        "location_lng": event.geofence_lng,
        "location_radius_meters": event.geofence_radius_meters,
        "is_active": event.active,
        "rotating_qr_enabled": event.rotation_enabled,
        "identity_check_enabled": event.identity_check_enabled,
        "location_check_enabled": event.geofence_enabled,
        "theme_color": event.theme_color or "default",
    }


def start_checkin(
    session: Session,
    event_id: UUID,
    token: str | None,
    now: datetime | None = None,
) -> tuple[CheckinSession, EventConfig]:
    """
    Open a check-in session for a presented token.

    Returns the new session and its event. Raises CheckinError with
    not_found, inactive or expired.
    """
    now = now or utcnow()
    event = session.get(EventConfig, event_id)
    if not event:
        raise CheckinError(Reason.not_found)

    check_presented_token(event, token, now)

    checkin = CheckinSession(
        event_id=event.id,
        token_snapshot=token or STATIC_TOKEN,
        created_at=now,
        expires_at=now + timedelta(seconds=settings.session_ttl_seconds),
    )
    session.add(checkin)
    session.commit()
    session.refresh(checkin)
    session.refresh(event)

    logger.debug(f"Opened check-in session {checkin.id} for event {event.id}")
    return checkin, event
