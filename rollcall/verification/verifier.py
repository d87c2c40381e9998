"""Attendance submission verification (attendance-submit).

A submission consumes its check-in session, runs the anti-fraud checks
and writes one AttendanceRecord. Fraud signals do not reject the
submission: they mark the record suspicious so a person can review it.
Only submissions that make the record meaningless (bad session, inactive
event, duplicate under the strict policy) are refused.

Consuming the session and inserting the record happen in one
transaction. The session is claimed with a conditional UPDATE
(unused and unexpired) so two submissions racing on the same session
cannot both succeed; if the insert then fails, the rollback returns the
session to unused.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from rollcall.core.clock import as_utc, utcnow
from rollcall.models import (
    AttendanceRecord,
    AttendanceStatus,
    CheckinSession,
    EventConfig,
    RecordSource,
)
from rollcall.verification.errors import CheckinError, Reason
from rollcall.verification.geo import geofence_violation, is_valid_coordinate
from rollcall.verification.policy import (
    CollisionPolicy,
    IdentityOutcome,
    policy_for,
    unique_identity,
)

logger = logging.getLogger(__name__)

REASON_SEPARATOR = "; "


@dataclass
class Submission:
    """Attendee details sent with attendance-submit."""
    session_id: UUID
    attendee_name: str
    attendee_email: str
    client_identity: str | None
    lat: float | None = None
    lng: float | None = None
    location_denied: bool = False
    token: str | None = None


def normalize_email(email: str) -> str:
    return email.strip().lower()


def load_open_session(session: Session, session_id: UUID, now: datetime) -> CheckinSession:
    """Load a check-in session that may still be consumed."""
    checkin = session.get(CheckinSession, session_id)
    if not checkin:
        raise CheckinError(Reason.session_invalid)
    if checkin.used_at is not None:
        raise CheckinError(Reason.session_used)
    if now > as_utc(checkin.expires_at):
        raise CheckinError(Reason.session_expired)
    return checkin


def consume_session(session: Session, session_id: UUID, now: datetime) -> None:
    """
    Mark a session used inside the current transaction.

    The UPDATE only matches an unused, unexpired row. Losing a race to a
    concurrent submission shows up as zero matched rows and is reported
    as session_used, never as success.
    """
    statement = (
        update(CheckinSession)
        .where(CheckinSession.id == session_id)
        .where(CheckinSession.used_at.is_(None))
        .where(CheckinSession.expires_at >= now)
        .values(used_at=now)
    )
    result = session.connection().execute(statement)
    if result.rowcount == 1:
        return

    session.rollback()
    checkin = session.get(CheckinSession, session_id)
    if checkin is None:
        raise CheckinError(Reason.session_invalid)
    if checkin.used_at is not None:
        raise CheckinError(Reason.session_used)
    raise CheckinError(Reason.session_expired)


def find_existing_identity(
    session: Session, event_id: UUID, identity: str
) -> AttendanceRecord | None:
    statement = (
        select(AttendanceRecord)
        .where(AttendanceRecord.event_id == event_id)
        .where(AttendanceRecord.client_identity == identity)
    )
    return session.exec(statement).first()


def combine_reasons(*reasons: str | None) -> str | None:
    """Join every fired fraud signal in evaluation order."""
    fired = [reason for reason in reasons if reason]
    return REASON_SEPARATOR.join(fired) if fired else None


def submit_attendance(
    session: Session,
    submission: Submission,
    now: datetime | None = None,
    policy: CollisionPolicy | None = None,
) -> AttendanceRecord:
    """
    Verify a submission and record attendance.

    Returns the stored record, verified or suspicious. Raises CheckinError
    with invalid_request, missing_identity, session_invalid, session_used,
    session_expired, not_found, inactive or already_submitted.
    """
    now = now or utcnow()

    name = (submission.attendee_name or "").strip()
    email = normalize_email(submission.attendee_email or "")
    if not name or not email:
        raise CheckinError(Reason.invalid_request, "attendee name and email are required")
    identity = (submission.client_identity or "").strip()
    if not identity:
        raise CheckinError(Reason.missing_identity)

    checkin = load_open_session(session, submission.session_id, now)
    session_id = checkin.id
    if submission.token is not None and submission.token.strip() != checkin.token_snapshot:
        raise CheckinError(Reason.session_invalid, "token does not match session")

    event = session.get(EventConfig, checkin.event_id)
    if not event:
        raise CheckinError(Reason.not_found)
    if not event.active:
        raise CheckinError(Reason.inactive)
    event_id = event.id

    policy = policy or policy_for(event)
    outcome: IdentityOutcome = unique_identity(identity)
    if policy.checks_existing and find_existing_identity(session, event_id, identity):
        outcome = policy.on_match(identity)

    location_reason = None
    location_provided = False
    lat = lng = None
    if event.geofence_enabled:
        location_reason = geofence_violation(
            submission.lat,
            submission.lng,
            event.geofence_lat,
            event.geofence_lng,
            event.geofence_radius_meters,
            location_denied=submission.location_denied,
        )
        if (
            not submission.location_denied
            and submission.lat is not None
            and submission.lng is not None
            and is_valid_coordinate(submission.lat, submission.lng)
        ):
            location_provided = True
            lat, lng = submission.lat, submission.lng

    for attempt in range(2):
        suspicious_reason = combine_reasons(outcome.suspicious_reason, location_reason)
        record = AttendanceRecord(
            event_id=event_id,
            attendee_name=name,
            attendee_email=email,
            client_identity=outcome.client_identity,
            client_identity_raw=outcome.client_identity_raw,
            location_provided=location_provided,
            lat=lat,
            lng=lng,
            status=AttendanceStatus.suspicious if suspicious_reason else AttendanceStatus.verified,
            suspicious_reason=suspicious_reason,
            source=RecordSource.checkin,
            recorded_at=now,
        )
        try:
            consume_session(session, session_id, now)
            session.add(record)
            session.commit()
        except IntegrityError:
            session.rollback()
            logger.info(f"Identity conflict on insert for event {event_id}")
            if attempt == 0:
                outcome = policy.on_conflict(identity)
            continue

        session.refresh(record)
        if record.status == AttendanceStatus.suspicious:
            logger.info(
                f"Recorded suspicious check-in {record.id} for event {event_id}: {suspicious_reason}"
            )
        return record

    raise CheckinError(Reason.already_submitted)
