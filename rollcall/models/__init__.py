from rollcall.models.attendance import AttendanceRecord, AttendanceStatus, RecordSource
from rollcall.models.event import EventConfig
from rollcall.models.links import ExcuseLink, ModerationLink
from rollcall.models.session import CheckinSession

__all__ = [
    "AttendanceRecord",
    "AttendanceStatus",
    "CheckinSession",
    "EventConfig",
    "ExcuseLink",
    "ModerationLink",
    "RecordSource",
]
