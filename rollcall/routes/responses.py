"""JSON envelopes shared by the pipeline routes.

Check-in and link endpoints answer ``{"authorized": bool, ...}`` while
action endpoints answer ``{"success": bool, ...}``. Refusals always carry
a reason code; moderator-action reports it under "error".
"""
from datetime import datetime

from fastapi.responses import JSONResponse
from sqlmodel import SQLModel

from rollcall.core.clock import as_utc
from rollcall.verification.errors import STATUS_CODES, CheckinError, Reason

AUTHORIZED_ENDPOINTS = ("/attendance-start", "/moderator-state", "/excuse-start")
ERROR_FIELD_ENDPOINTS = ("/moderator-action",)


def envelope_for(path: str) -> tuple[str, str]:
    """Return (flag key, reason key) for the endpoint at path."""
    if path.endswith(AUTHORIZED_ENDPOINTS):
        return "authorized", "reason"
    if path.endswith(ERROR_FIELD_ENDPOINTS):
        return "success", "error"
    return "success", "reason"


def refusal(path: str, reason: Reason, status_code: int | None = None) -> JSONResponse:
    """Build the refusal body for an endpoint."""
    flag, field = envelope_for(path)
    return JSONResponse(
        {flag: False, field: reason.value},
        status_code=status_code or STATUS_CODES.get(reason, 400),
    )


def error_response(path: str, error: CheckinError) -> JSONResponse:
    return refusal(path, error.reason, error.status_code)


def isoformat(value: datetime | None) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value else None


def serialize(model: SQLModel, exclude: set[str] | None = None) -> dict:
    """Dump a table row to JSON-safe values with UTC timestamps."""
    data = model.model_dump(mode="json", exclude=exclude)
    for key, value in model.model_dump(exclude=exclude).items():
        if isinstance(value, datetime):
            data[key] = isoformat(value)
    return data
