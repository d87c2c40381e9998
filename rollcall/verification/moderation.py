"""Bearer-token access for moderators and excuse submitters.

A moderation or excuse link token is the whole proof of authorization:
there is no user account behind it. ``authorize`` turns a link row and
its event into either a Capability listing the actions the bearer may
take, or a Denied carrying the exact reason, so the client can show a
precise message instead of a generic "forbidden".

The action sets are closed. Nothing reachable from a link can edit the
event's configuration, open or close check-in, or export data; every
request re-checks the link and the event flags, so switching moderation
off takes effect on the very next call.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import func
from sqlmodel import Session, select

from rollcall.core.clock import as_utc, utcnow
from rollcall.core.config import settings
from rollcall.models import (
    AttendanceRecord,
    AttendanceStatus,
    EventConfig,
    ExcuseLink,
    ModerationLink,
    RecordSource,
)
from rollcall.verification.errors import CheckinError, Reason
from rollcall.verification.status import MANUAL_STATUSES, apply_transition
from rollcall.verification.verifier import normalize_email

logger = logging.getLogger(__name__)

SEARCH_RESULT_LIMIT = 20


class LinkKind(str, Enum):
    moderation = "moderation"
    excuse = "excuse"


MODERATION_ACTIONS = frozenset(
    {"read_state", "search_attendees", "add_attendee", "update_status", "delete_record"}
)
EXCUSE_ACTIONS = frozenset({"read_excuse_event", "submit_excuse"})


@dataclass(frozen=True)
class Capability:
    """What the bearer of a valid link may do, scoped to one event."""
    event_id: UUID
    link_id: UUID
    kind: LinkKind
    actions: frozenset[str]
    label: str | None = None

    def allows(self, action: str) -> bool:
        return action in self.actions


@dataclass(frozen=True)
class Denied:
    reason: Reason


def authorize(
    link: ModerationLink | ExcuseLink | None,
    event: EventConfig | None,
    kind: LinkKind,
    now: datetime,
) -> Capability | Denied:
    """
    Decide what a link token grants.

    Checks run in a fixed order so the first failure is the one reported:
    link exists, is active, has not expired, its event exists and the
    event has the matching feature switched on.
    """
    if link is None:
        return Denied(Reason.link_not_found)
    if not link.is_active:
        return Denied(Reason.link_inactive)
    expires_at = as_utc(link.expires_at)
    if expires_at is not None and now >= expires_at:
        return Denied(Reason.link_expired)
    if event is None or event.id != link.event_id:
        return Denied(Reason.not_found)

    if kind == LinkKind.moderation:
        if not event.moderation_enabled:
            return Denied(Reason.moderation_disabled)
        actions = MODERATION_ACTIONS
    else:
        if not event.excuse_links_enabled:
            return Denied(Reason.excuse_disabled)
        actions = EXCUSE_ACTIONS

    return Capability(
        event_id=event.id,
        link_id=link.id,
        kind=kind,
        actions=actions,
        label=link.label,
    )


def find_link(
    session: Session, kind: LinkKind, event_id: UUID, token: str
) -> ModerationLink | ExcuseLink | None:
    """Look up a link by token, scoped to the event it was issued for."""
    model = ModerationLink if kind == LinkKind.moderation else ExcuseLink
    statement = select(model).where(model.event_id == event_id).where(model.token == token)
    return session.exec(statement).first()


def require_capability(
    session: Session,
    event_id: UUID,
    token: str,
    kind: LinkKind,
    action: str,
    now: datetime | None = None,
) -> tuple[Capability, EventConfig]:
    """
    Authorize a link token for one action.

    Returns the capability and the event. Raises CheckinError with the
    denial reason, or invalid_request for an action outside the link's set.
    """
    now = now or utcnow()
    link = find_link(session, kind, event_id, token)
    event = session.get(EventConfig, event_id)

    decision = authorize(link, event, kind, now)
    if isinstance(decision, Denied):
        logger.info(f"Denied {kind.value} link for event {event_id}: {decision.reason.value}")
        raise CheckinError(decision.reason)
    if not decision.allows(action):
        raise CheckinError(Reason.invalid_request, f"action {action} not permitted")
    return decision, event


def _load_record(session: Session, capability: Capability, record_id: UUID) -> AttendanceRecord:
    record = session.get(AttendanceRecord, record_id)
    if not record or record.event_id != capability.event_id:
        raise CheckinError(Reason.record_not_found)
    return record


def attendance_snapshot(session: Session, event_id: UUID) -> list[AttendanceRecord]:
    """Event attendance, newest first, capped at the configured limit."""
    statement = (
        select(AttendanceRecord)
        .where(AttendanceRecord.event_id == event_id)
        .order_by(AttendanceRecord.recorded_at.desc())
        .limit(settings.attendance_snapshot_limit)
    )
    return list(session.exec(statement).all())


def update_record_status(
    session: Session,
    capability: Capability,
    record_id: UUID,
    new_status: AttendanceStatus,
) -> AttendanceRecord:
    """Move a record to a new status through the allowed transitions."""
    record = _load_record(session, capability, record_id)
    previous = record.status
    if apply_transition(record, new_status):
        session.add(record)
        session.commit()
        session.refresh(record)
        logger.info(
            f"{capability.kind.value} link {capability.link_id} changed record {record_id} "
            f"from {AttendanceStatus(previous).value} to {new_status.value}"
        )
    return record


def delete_record(session: Session, capability: Capability, record_id: UUID) -> None:
    """Delete one of the event's attendance records."""
    record = _load_record(session, capability, record_id)
    session.delete(record)
    session.commit()
    logger.info(f"{capability.kind.value} link {capability.link_id} deleted record {record_id}")


def add_attendee(
    session: Session,
    capability: Capability,
    attendee_name: str,
    attendee_email: str,
    status: AttendanceStatus = AttendanceStatus.verified,
    now: datetime | None = None,
) -> AttendanceRecord:
    """
    Record an attendee entered by hand.

    Manual records are verified or excused and use a generated identity so
    they never block the attendee's own device from checking in.
    """
    name = (attendee_name or "").strip()
    email = normalize_email(attendee_email or "")
    if not name or not email:
        raise CheckinError(Reason.invalid_request, "attendee name and email are required")
    if status not in MANUAL_STATUSES:
        raise CheckinError(Reason.invalid_request, f"manual entries cannot be {status.value}")

    record = AttendanceRecord(
        event_id=capability.event_id,
        attendee_name=name,
        attendee_email=email,
        client_identity=f"moderator-{uuid4()}",
        status=status,
        source=RecordSource.moderator,
        recorded_at=now or utcnow(),
    )
    session.add(record)
    session.commit()
    session.refresh(record)
    logger.info(f"{capability.kind.value} link {capability.link_id} added record {record.id}")
    return record


def search_attendees(session: Session, event: EventConfig, query: str) -> list[dict]:
    """
    Find known attendees whose name contains a fragment.

    Searches every event in the same series (or just this event when it
    has none), case-insensitively, one suggestion per email address with
    the most recently recorded name.
    """
    fragment = (query or "").strip().lower()
    if len(fragment) < settings.search_min_length:
        return []

    if event.series_id:
        event_ids = list(
            session.exec(select(EventConfig.id).where(EventConfig.series_id == event.series_id)).all()
        )
    else:
        event_ids = [event.id]

    statement = (
        select(AttendanceRecord)
        .where(AttendanceRecord.event_id.in_(event_ids))
        .where(func.lower(AttendanceRecord.attendee_name).contains(fragment, autoescape=True))
        .order_by(AttendanceRecord.recorded_at.desc())
    )

    suggestions: dict[str, dict] = {}
    for record in session.exec(statement):
        if record.attendee_email in suggestions:
            continue
        suggestions[record.attendee_email] = {
            "attendee_name": record.attendee_name,
            "attendee_email": record.attendee_email,
        }
        if len(suggestions) >= SEARCH_RESULT_LIMIT:
            break
    return list(suggestions.values())


def submit_excuse(
    session: Session,
    capability: Capability,
    attendee_name: str,
    attendee_email: str,
    now: datetime | None = None,
) -> AttendanceRecord:
    """Record an attendee as excused via an excuse link."""
    name = (attendee_name or "").strip()
    email = normalize_email(attendee_email or "")
    if not name or not email:
        raise CheckinError(Reason.invalid_request, "attendee name and email are required")

    record = AttendanceRecord(
        event_id=capability.event_id,
        attendee_name=name,
        attendee_email=email,
        client_identity=f"excuse-{capability.link_id}-{uuid4()}",
        status=AttendanceStatus.excused,
        source=RecordSource.excuse,
        recorded_at=now or utcnow(),
    )
    session.add(record)
    session.commit()
    session.refresh(record)
    logger.info(f"Excuse link {capability.link_id} recorded excuse {record.id}")
    return record
