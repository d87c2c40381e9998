"""Reason codes for check-in pipeline failures.

Every refusal the pipeline makes is a specific reason string that clients
map to display copy. Services raise CheckinError internally; the route
layer turns it into a JSON body and never lets a traceback through.
"""
from enum import Enum


class Reason(str, Enum):
    not_found = "not_found"
    inactive = "inactive"
    expired = "expired"
    session_invalid = "session_invalid"
    session_used = "session_used"
    session_expired = "session_expired"
    missing_identity = "missing_identity"
    already_submitted = "already_submitted"
    link_not_found = "link_not_found"
    link_inactive = "link_inactive"
    link_expired = "link_expired"
    moderation_disabled = "moderation_disabled"
    excuse_disabled = "excuse_disabled"
    record_not_found = "record_not_found"
    invalid_transition = "invalid_transition"
    lease_held = "lease_held"
    not_lease_holder = "not_lease_holder"
    unauthorized = "unauthorized"
    invalid_request = "invalid_request"
    server_error = "server_error"


# HTTP status sent alongside each reason; clients key off the reason itself.
STATUS_CODES: dict[Reason, int] = {
    Reason.not_found: 404,
    Reason.inactive: 403,
    Reason.expired: 410,
    Reason.session_invalid: 404,
    Reason.session_used: 409,
    Reason.session_expired: 410,
    Reason.missing_identity: 400,
    Reason.already_submitted: 409,
    Reason.link_not_found: 404,
    Reason.link_inactive: 403,
    Reason.link_expired: 410,
    Reason.moderation_disabled: 403,
    Reason.excuse_disabled: 403,
    Reason.record_not_found: 404,
    Reason.invalid_transition: 409,
    Reason.lease_held: 409,
    Reason.not_lease_holder: 409,
    Reason.unauthorized: 401,
    Reason.invalid_request: 400,
    Reason.server_error: 500,
}


class CheckinError(Exception):
    """A pipeline request was refused for a specific reason."""

    def __init__(self, reason: Reason, detail: str | None = None):
        self.reason = reason
        self.detail = detail
        super().__init__(detail or reason.value)

    @property
    def status_code(self) -> int:
        return STATUS_CODES.get(self.reason, 400)
