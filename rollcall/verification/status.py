"""Allowed status transitions for attendance records.

Statuses record human judgement rather than an audit log, so every
transition has an inverse:

    suspicious <-> cleared     reviewer accepts / re-flags a check-in
    verified   <-> excused     attendee reclassified as not attending

Deleting a record is not a transition and is allowed from any state.
"""
from rollcall.models import AttendanceRecord, AttendanceStatus
from rollcall.verification.errors import CheckinError, Reason

ALLOWED_TRANSITIONS: dict[AttendanceStatus, frozenset[AttendanceStatus]] = {
    AttendanceStatus.suspicious: frozenset({AttendanceStatus.cleared}),
    AttendanceStatus.cleared: frozenset({AttendanceStatus.suspicious}),
    AttendanceStatus.verified: frozenset({AttendanceStatus.excused}),
    AttendanceStatus.excused: frozenset({AttendanceStatus.verified}),
}

# Statuses a moderator may give a hand-entered attendee.
MANUAL_STATUSES = frozenset({AttendanceStatus.verified, AttendanceStatus.excused})


def can_transition(current: AttendanceStatus, target: AttendanceStatus) -> bool:
    """Check whether a record may move from current to target."""
    if current == target:
        return True
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def apply_transition(record: AttendanceRecord, target: AttendanceStatus) -> bool:
    """
    Move a record to a new status.

    Returns True if the record changed, False if it already had the
    target status. Raises CheckinError(invalid_transition) for moves the
    table above does not allow.
    """
    current = AttendanceStatus(record.status)
    if not can_transition(current, target):
        raise CheckinError(
            Reason.invalid_transition,
            f"cannot change status from {current.value} to {target.value}",
        )
    if current == target:
        return False

    if current == AttendanceStatus.suspicious or target == AttendanceStatus.cleared:
        record.suspicious_reason = None
    record.status = target
    return True
