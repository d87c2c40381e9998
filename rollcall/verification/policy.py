"""Duplicate client-identity policies.

When a submission arrives with a client identity already recorded for
the event, the event's policy decides what happens. A policy is asked
twice: once when the pre-insert lookup finds a match, and again if the
insert itself hits the (event_id, client_identity) unique constraint
because a concurrent submission slipped past the lookup.

Records that must not occupy the submitted identity are stored under a
``collision-<uuid>`` placeholder with the real value kept in
client_identity_raw.
"""
from dataclasses import dataclass
from uuid import uuid4

from rollcall.models import EventConfig
from rollcall.verification.errors import CheckinError, Reason

COLLISION_REASON = "identity matched another submission"


@dataclass(frozen=True)
class IdentityOutcome:
    """How a submission's identity is stored and whether it is flagged."""
    client_identity: str
    client_identity_raw: str | None = None
    suspicious_reason: str | None = None


def unique_identity(identity: str) -> IdentityOutcome:
    """Outcome for an identity not seen before at this event."""
    return IdentityOutcome(client_identity=identity)


def collision_placeholder(identity: str, reason: str | None) -> IdentityOutcome:
    """Store under a generated identity, keeping the submitted one as raw."""
    return IdentityOutcome(
        client_identity=f"collision-{uuid4()}",
        client_identity_raw=identity,
        suspicious_reason=reason,
    )


class CollisionPolicy:
    """Base policy: look up earlier submissions before inserting."""

    name = "base"
    checks_existing = True

    def on_match(self, identity: str) -> IdentityOutcome:
        raise NotImplementedError

    def on_conflict(self, identity: str) -> IdentityOutcome:
        """Insert raced with another submission of the same identity."""
        return self.on_match(identity)


class StrictPolicy(CollisionPolicy):
    """Reject a repeat identity; no record is written."""

    name = "strict"

    def on_match(self, identity: str) -> IdentityOutcome:
        raise CheckinError(Reason.already_submitted)


class FlagSuspiciousPolicy(CollisionPolicy):
    """Record a repeat identity, flagged for human review."""

    name = "flag_suspicious"

    def on_match(self, identity: str) -> IdentityOutcome:
        return collision_placeholder(identity, COLLISION_REASON)


class UncheckedPolicy(CollisionPolicy):
    """Identity check switched off: never look up or flag repeats.

    The unique constraint still applies, so a repeat that reaches the
    insert is moved to a placeholder identity without changing its status.
    """

    name = "unchecked"
    checks_existing = False

    def on_match(self, identity: str) -> IdentityOutcome:
        return unique_identity(identity)

    def on_conflict(self, identity: str) -> IdentityOutcome:
        return collision_placeholder(identity, None)


def policy_for(event: EventConfig) -> CollisionPolicy:
    """Pick the collision policy configured on an event."""
    if not event.identity_check_enabled:
        return UncheckedPolicy()
    if event.identity_collision_strict:
        return StrictPolicy()
    return FlagSuspiciousPolicy()
