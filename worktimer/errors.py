"""Domain error codes for the work timer."""

from dataclasses import dataclass
from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    INVALID_DURATION = "INVALID_DURATION"
    INVALID_DATE = "INVALID_DATE"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    NOT_RUNNING = "NOT_RUNNING"
    NOT_PAUSED = "NOT_PAUSED"
    DATE_MISMATCH = "DATE_MISMATCH"
    ALREADY_STOPPED = "ALREADY_STOPPED"
    INVALID_TIME_RANGE = "INVALID_TIME_RANGE"
    SESSION_ORDER = "SESSION_ORDER"
    INVALID_WORK_DAY = "INVALID_WORK_DAY"
    WORK_DAY_NOT_FOUND = "WORK_DAY_NOT_FOUND"


@dataclass(frozen=True)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class InvalidDurationError(DomainError):
    """Raised when a duration would be negative or is not whole milliseconds."""

    def __init__(self, milliseconds: object, reason: str = "cannot be negative") -> None:
        super().__init__(
            code=ErrorCode.INVALID_DURATION,
            message=f"Duration {reason} ({milliseconds!r} ms)",
        )
        self.milliseconds = milliseconds


class InvalidDateError(DomainError):
    """Raised when a date string cannot be parsed."""

    def __init__(self, value: str) -> None:
        super().__init__(
            code=ErrorCode.INVALID_DATE,
            message=f"Invalid date string: {value!r}",
        )
        self.value = value


class InvalidTransitionError(DomainError):
    """Raised when the timer cannot move from its current status."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            code=ErrorCode.INVALID_TRANSITION,
            message=f"Cannot go from {current} to {target}",
        )
        self.current = current
        self.target = target


class NotRunningError(DomainError):
    """Raised when stopping or pausing without an active session."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.NOT_RUNNING,
            message="No work session is currently running",
        )


class NotPausedError(DomainError):
    """Raised when resuming a work day that is not paused."""

    def __init__(self, current: str) -> None:
        super().__init__(
            code=ErrorCode.NOT_PAUSED,
            message=f"Cannot resume work from {current} status",
        )
        self.current = current


class DateMismatchError(DomainError):
    """Raised when a start instant falls on another calendar day."""

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(
            code=ErrorCode.DATE_MISMATCH,
            message=f"Cannot start work on {actual} for work day {expected}",
        )
        self.expected = expected
        self.actual = actual


class AlreadyStoppedError(DomainError):
    """Raised when a completed session is stopped again."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            code=ErrorCode.ALREADY_STOPPED,
            message="Work session has already been stopped",
        )
        self.session_id = session_id


class InvalidTimeRangeError(DomainError):
    """Raised when a session would end at or before its start."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.INVALID_TIME_RANGE,
            message="End time must be after start time",
        )


class SessionOrderError(DomainError):
    """Raised when sessions of a work day overlap or are out of order."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            code=ErrorCode.SESSION_ORDER,
            message=f"Session {session_id} starts before the previous session ended",
        )
        self.session_id = session_id


class InvalidWorkDayError(DomainError):
    """Raised when a work day is assembled in an inconsistent state."""

    def __init__(self, reason: str) -> None:
        super().__init__(code=ErrorCode.INVALID_WORK_DAY, message=reason)


class WorkDayNotFoundError(DomainError):
    """Raised when a work day is not found."""

    def __init__(self, date: str) -> None:
        super().__init__(
            code=ErrorCode.WORK_DAY_NOT_FOUND,
            message=f"Work day {date} not found",
        )
        self.date = date
