"""Rotating check-in tokens and the display host lease.

Only one display at a time generates tokens for an event. That display
holds a host lease (owner device id + expiry) which it renews while it is
showing the QR code; if it crashes or is closed, the lease lapses and any
other display can take over. Lease changes and token writes are
conditional UPDATEs so two displays racing each other cannot both win.

Tokens look like ``<random hex>_<epoch ms>``. The embedded timestamp is
only consulted when an event row carries no explicit expiry.
"""
import logging
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

from sqlalchemy import or_, update
from sqlmodel import Session

from rollcall.core.clock import as_utc, epoch_ms, utcnow
from rollcall.core.config import settings
from rollcall.models import EventConfig
from rollcall.verification.errors import CheckinError, Reason

logger = logging.getLogger(__name__)

STATIC_TOKEN = "static"


def generate_token(now: datetime | None = None) -> str:
    """Create a fresh unpredictable token with its issue time embedded."""
    now = now or utcnow()
    return f"{uuid4().hex}_{epoch_ms(now)}"


def embedded_timestamp(token: str) -> datetime | None:
    """Extract the issue time from a token, or None if it has none."""
    _, sep, suffix = token.rpartition("_")
    if not sep or not suffix.isdigit():
        return None
    try:
        return datetime.fromtimestamp(int(suffix) / 1000, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return None


def is_token_fresh(event: EventConfig, token: str, now: datetime) -> bool:
    """
    Check whether a presented token is the event's current, unexpired token.

    A replaced token is rejected immediately regardless of its nominal
    lifetime. The stored expiry wins; without one, the timestamp embedded
    in the token must be within the fallback validity window.
    """
    if not token or token != event.current_token:
        return False

    expires_at = as_utc(event.token_expires_at)
    if expires_at is not None:
        return now <= expires_at

    issued_at = embedded_timestamp(token)
    if issued_at is None:
        return False
    return now - issued_at <= timedelta(seconds=settings.token_fallback_validity_seconds)


def token_expiry(event: EventConfig, now: datetime) -> datetime:
    """Expiry for a token issued now under the event's rotation interval."""
    return now + timedelta(seconds=event.rotation_seconds + settings.rotation_grace_seconds)


def lease_is_live(event: EventConfig, now: datetime) -> bool:
    """Check whether some display currently holds an unexpired host lease."""
    lease_until = as_utc(event.host_lease_expires_at)
    return bool(event.host_device_id) and lease_until is not None and lease_until >= now


def _load_event(session: Session, event_id: UUID) -> EventConfig:
    event = session.get(EventConfig, event_id)
    if not event:
        raise CheckinError(Reason.not_found)
    return event


def acquire_host_lease(
    session: Session, event_id: UUID, device_id: str, now: datetime | None = None
) -> EventConfig:
    """
    Claim or renew the host lease for a display device.

    Succeeds when no lease exists, the lease has lapsed, or the caller
    already holds it; the lease is then extended by the configured TTL.
    Raises CheckinError(lease_held) while another device holds a live lease.
    """
    now = now or utcnow()
    if not device_id or not device_id.strip():
        raise CheckinError(Reason.invalid_request, "device id is required")

    lease_until = now + timedelta(seconds=settings.host_lease_seconds)
    statement = (
        update(EventConfig)
        .where(EventConfig.id == event_id)
        .where(
            or_(
                EventConfig.host_device_id.is_(None),
                EventConfig.host_device_id == device_id,
                EventConfig.host_lease_expires_at.is_(None),
                EventConfig.host_lease_expires_at < now,
            )
        )
        .values(host_device_id=device_id, host_lease_expires_at=lease_until)
    )
    result = session.connection().execute(statement)
    session.commit()

    event = _load_event(session, event_id)
    if result.rowcount == 0:
        logger.info(f"Host lease for event {event_id} held by another device")
        raise CheckinError(Reason.lease_held)

    logger.debug(f"Device {device_id} holds host lease for event {event_id} until {lease_until}")
    return event


def release_host_lease(session: Session, event_id: UUID, device_id: str) -> bool:
    """
    Give up the host lease if the caller holds it.

    Returns True if a lease was released. Releasing a lease held by
    someone else is a no-op.
    """
    statement = (
        update(EventConfig)
        .where(EventConfig.id == event_id)
        .where(EventConfig.host_device_id == device_id)
        .values(host_device_id=None, host_lease_expires_at=None)
    )
    result = session.connection().execute(statement)
    session.commit()

    released = result.rowcount > 0
    if released:
        logger.info(f"Device {device_id} released host lease for event {event_id}")
    return released


def rotate(
    session: Session, event_id: UUID, device_id: str, now: datetime | None = None
) -> EventConfig:
    """
    Replace the event's current token.

    Only the live lease holder of an active event may rotate. With rotation
    disabled the token is the fixed "static" sentinel with no expiry, and
    no lease is needed.
    """
    now = now or utcnow()
    event = _load_event(session, event_id)
    if not event.active:
        raise CheckinError(Reason.inactive)

    if not event.rotation_enabled:
        event.current_token = STATIC_TOKEN
        event.token_expires_at = None
        session.add(event)
        session.commit()
        session.refresh(event)
        return event

    token = generate_token(now)
    statement = (
        update(EventConfig)
        .where(EventConfig.id == event_id)
        .where(EventConfig.active == True)  # noqa: E712
        .where(EventConfig.host_device_id == device_id)
        .where(EventConfig.host_lease_expires_at >= now)
        .values(current_token=token, token_expires_at=token_expiry(event, now))
    )
    result = session.connection().execute(statement)
    session.commit()

    event = _load_event(session, event_id)
    if result.rowcount == 0:
        raise CheckinError(Reason.not_lease_holder)
    return event


def start_event(
    session: Session, event_id: UUID, device_id: str | None = None, now: datetime | None = None
) -> EventConfig:
    """
    Open the check-in window.

    Issues the first token and, when a display device is given and
    rotation is enabled, hands it the host lease in the same write.
    """
    now = now or utcnow()
    event = _load_event(session, event_id)

    event.active = True
    if event.rotation_enabled:
        event.current_token = generate_token(now)
        event.token_expires_at = token_expiry(event, now)
        event.host_device_id = device_id
        event.host_lease_expires_at = (
            now + timedelta(seconds=settings.host_lease_seconds) if device_id else None
        )
    else:
        event.current_token = STATIC_TOKEN
        event.token_expires_at = None
        event.host_device_id = None
        event.host_lease_expires_at = None

    session.add(event)
    session.commit()
    session.refresh(event)
    logger.info(f"Check-in opened for event {event_id}")
    return event


def stop_event(session: Session, event_id: UUID) -> EventConfig:
    """Close the check-in window, dropping the token and any host lease."""
    event = _load_event(session, event_id)

    event.active = False
    event.current_token = None
    event.token_expires_at = None
    event.host_device_id = None
    event.host_lease_expires_at = None

    session.add(event)
    session.commit()
    session.refresh(event)
    logger.info(f"Check-in closed for event {event_id}")
    return event
