"""
Error taxonomy for the check-in engine.

State-machine and generator errors surface synchronously to the caller.
DispatchFailure is recovered per channel inside the dispatcher, and
StoreFailure is logged by job bodies which then move on to the next item.
"""
from __future__ import annotations


class CheckInEngineError(Exception):
    error_code = "CHECKIN_ENGINE_ERROR"
    status_code = 500

    def __init__(self, message: str, *, detail: str | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(CheckInEngineError):
    error_code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(CheckInEngineError):
    error_code = "NOT_FOUND"
    status_code = 404


class GoalNotFound(NotFoundError):
    error_code = "GOAL_NOT_FOUND"


class CheckInNotFound(NotFoundError):
    error_code = "CHECKIN_NOT_FOUND"


class JobNotFound(NotFoundError):
    error_code = "JOB_NOT_FOUND"


class InvalidTransitionError(CheckInEngineError):
    error_code = "INVALID_TRANSITION"
    status_code = 409


class AlreadyCompleted(InvalidTransitionError):
    error_code = "ALREADY_COMPLETED"


class CompletedCheckIn(InvalidTransitionError):
    error_code = "COMPLETED_CHECKIN"


class DispatchFailure(CheckInEngineError):
    error_code = "DISPATCH_FAILURE"
    status_code = 502

    def __init__(self, channel: str, message: str, *, detail: str | None = None):
        super().__init__(message, detail=detail)
        self.channel = channel


class StoreFailure(CheckInEngineError):
    error_code = "STORE_FAILURE"
    status_code = 503


class ConcurrentUpdateError(StoreFailure):
    """The row changed status between read and write."""

    error_code = "CONCURRENT_UPDATE"
    status_code = 409
