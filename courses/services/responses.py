"""
Result type shared by the progress, completion and submission services.

Services never raise across their boundary: they return a ``ServiceResult``
that views translate into the ``{"success", "data", "message"}`` envelope.
"""
from enum import Enum
from typing import Any, NamedTuple, Optional


class ErrorCode(str, Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    ASSESSMENT_NOT_PUBLISHED = "ASSESSMENT_NOT_PUBLISHED"
    ATTEMPTS_EXCEEDED = "ATTEMPTS_EXCEEDED"
    PROGRESS_NOT_FOUND = "PROGRESS_NOT_FOUND"
    LESSON_NOT_STARTED = "LESSON_NOT_STARTED"
    CONFLICT = "CONFLICT"


class ServiceResult(NamedTuple):
    success: bool
    message: str
    data: Any = None
    error: Optional[ErrorCode] = None


def ok(message, data=None):
    return ServiceResult(True, message, data)


def fail(error, message):
    return ServiceResult(False, message, None, error)
