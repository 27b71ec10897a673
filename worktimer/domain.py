from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from typing import Any, Mapping
from uuid import uuid4

from worktimer.errors import (
    AlreadyStoppedError,
    DateMismatchError,
    InvalidDateError,
    InvalidDurationError,
    InvalidTimeRangeError,
    InvalidTransitionError,
    InvalidWorkDayError,
    NotPausedError,
    NotRunningError,
    SessionOrderError,
)

_MS_PER_SECOND = 1000
_MS_PER_MINUTE = 60 * _MS_PER_SECOND
_MS_PER_HOUR = 60 * _MS_PER_MINUTE


def _parse_instant(value: str | datetime) -> datetime:
    """Parses an ISO 8601 instant. Accepts the trailing 'Z' JavaScript emits."""
    if isinstance(value, datetime):
        return value
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _now_like(reference: datetime) -> datetime:
    # naive stays naive, aware keeps the reference zone
    return datetime.now(reference.tzinfo)


def _elapsed(start: datetime, end: datetime) -> timedelta:
    """Real time between two instants. Aware values are compared in UTC so a
    DST change inside the span is counted."""
    if start.tzinfo is not None and end.tzinfo is not None:
        return end.astimezone(timezone.utc) - start.astimezone(timezone.utc)
    return end - start


# =========================
# Value objects
# =========================
@dataclass(frozen=True, order=True)
class Duration:
    """Non-negative span of time, stored as whole milliseconds."""

    milliseconds: int

    def __post_init__(self) -> None:
        if isinstance(self.milliseconds, bool) or not isinstance(self.milliseconds, int):
            raise InvalidDurationError(self.milliseconds, "must be a whole number of milliseconds")
        if self.milliseconds < 0:
            raise InvalidDurationError(self.milliseconds)

    @classmethod
    def from_milliseconds(cls, milliseconds: float) -> Duration:
        return cls(int(round(milliseconds)))

    @classmethod
    def from_seconds(cls, seconds: float) -> Duration:
        return cls(int(round(seconds * _MS_PER_SECOND)))

    @classmethod
    def from_minutes(cls, minutes: float) -> Duration:
        return cls(int(round(minutes * _MS_PER_MINUTE)))

    @classmethod
    def from_hours(cls, hours: float) -> Duration:
        return cls(int(round(hours * _MS_PER_HOUR)))

    @classmethod
    def from_timedelta(cls, delta: timedelta) -> Duration:
        return cls(delta // timedelta(milliseconds=1))

    @classmethod
    def zero(cls) -> Duration:
        return cls(0)

    def add(self, other: Duration) -> Duration:
        return Duration(self.milliseconds + other.milliseconds)

    def subtract(self, other: Duration) -> Duration:
        """Difference floored at zero; never raises."""
        return Duration(max(0, self.milliseconds - other.milliseconds))

    __add__ = add
    __sub__ = subtract

    def is_greater_than(self, other: Duration) -> bool:
        return self.milliseconds > other.milliseconds

    def is_less_than(self, other: Duration) -> bool:
        return self.milliseconds < other.milliseconds

    def is_greater_than_or_equal(self, other: Duration) -> bool:
        return self.milliseconds >= other.milliseconds

    def is_less_than_or_equal(self, other: Duration) -> bool:
        return self.milliseconds <= other.milliseconds

    def equals(self, other: Duration) -> bool:
        return self.milliseconds == other.milliseconds

    def is_zero(self) -> bool:
        return self.milliseconds == 0

    def to_seconds(self) -> int:
        return self.milliseconds // _MS_PER_SECOND

    def to_minutes(self) -> int:
        return self.milliseconds // _MS_PER_MINUTE

    def to_hours(self) -> int:
        return self.milliseconds // _MS_PER_HOUR

    def to_timedelta(self) -> timedelta:
        return timedelta(milliseconds=self.milliseconds)

    def format(self) -> str:
        """HH:MM:SS, zero padded. Hours are not wrapped at 24."""
        hours, rest = divmod(self.to_seconds(), 3600)
        minutes, seconds = divmod(rest, 60)
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"

    def __str__(self) -> str:
        return self.format()


@dataclass(frozen=True, order=True)
class WorkDayDate:
    """Calendar day a work day belongs to (no time of day)."""

    value: date

    def __post_init__(self) -> None:
        # datetime is a date subclass; keep only the calendar part
        if isinstance(self.value, datetime):
            object.__setattr__(self, "value", self.value.date())

    @classmethod
    def from_date(cls, value: date | datetime) -> WorkDayDate:
        return cls(value)

    @classmethod
    def from_timestamp(cls, timestamp: float, tz: tzinfo | None = None) -> WorkDayDate:
        return cls(datetime.fromtimestamp(timestamp, tz))

    @classmethod
    def from_string(cls, value: str) -> WorkDayDate:
        """Accepts 'YYYY-MM-DD' or a full ISO datetime (its date part is kept)."""
        try:
            return cls(date.fromisoformat(value))
        except (TypeError, ValueError):
            pass
        try:
            return cls(_parse_instant(value))
        except (AttributeError, TypeError, ValueError) as exc:
            raise InvalidDateError(str(value)) from exc

    @classmethod
    def today(cls, tz: tzinfo | None = None) -> WorkDayDate:
        return cls(datetime.now(tz))

    def equals(self, other: WorkDayDate) -> bool:
        return self.value == other.value

    def is_before(self, other: WorkDayDate) -> bool:
        return self.value < other.value

    def is_after(self, other: WorkDayDate) -> bool:
        return self.value > other.value

    def is_today(self, today: date | None = None, tz: tzinfo | None = None) -> bool:
        return self.value == (today or datetime.now(tz).date())

    def add_days(self, days: int) -> WorkDayDate:
        return WorkDayDate(self.value + timedelta(days=days))

    def subtract_days(self, days: int) -> WorkDayDate:
        return self.add_days(-days)

    def to_iso_string(self) -> str:
        return self.value.isoformat()

    def start_of_day(self, tz: tzinfo | None = None) -> datetime:
        return datetime.combine(self.value, time.min, tzinfo=tz)

    def end_of_day(self, tz: tzinfo | None = None) -> datetime:
        return datetime.combine(self.value, time.max, tzinfo=tz)

    @property
    def iso_year_week(self) -> tuple[int, int]:
        """Returns (ISO year, ISO week number). Useful for weekly aggregation."""
        iso = self.value.isocalendar()
        return (iso[0], iso[1])

    def format(self) -> str:
        d = self.value
        return f"{d:%A}, {d:%B} {d.day}, {d.year}"

    def __str__(self) -> str:
        return self.to_iso_string()


class TimerStatus(str, Enum):
    STOPPED = "STOPPED"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"

    @property
    def is_stopped(self) -> bool:
        return self is TimerStatus.STOPPED

    @property
    def is_running(self) -> bool:
        return self is TimerStatus.RUNNING

    @property
    def is_paused(self) -> bool:
        return self is TimerStatus.PAUSED

    def can_transition_to(self, target: TimerStatus) -> bool:
        return target in _ALLOWED_TRANSITIONS[self]

    @property
    def display_text(self) -> str:
        return self.value.capitalize()

    @property
    def css_class(self) -> str:
        return f"status-{self.value.lower()}"


_ALLOWED_TRANSITIONS: dict[TimerStatus, frozenset[TimerStatus]] = {
    TimerStatus.STOPPED: frozenset({TimerStatus.RUNNING}),
    TimerStatus.RUNNING: frozenset({TimerStatus.PAUSED}),
    TimerStatus.PAUSED: frozenset({TimerStatus.RUNNING}),
}


# =========================
# Entities
# =========================
@dataclass(frozen=True)
class WorkSession:
    """One contiguous interval of work. A missing end_time means it is running."""

    id: str
    start_time: datetime
    end_time: datetime | None
    work_date: WorkDayDate
    duration: Duration = field(default_factory=Duration.zero)

    @classmethod
    def create(cls, start_time: datetime, session_id: str | None = None) -> WorkSession:
        return cls(
            id=session_id or str(uuid4()),
            start_time=start_time,
            end_time=None,
            work_date=WorkDayDate.from_date(start_time),
            duration=Duration.zero(),
        )

    @property
    def is_running(self) -> bool:
        return self.end_time is None

    @property
    def is_completed(self) -> bool:
        return self.end_time is not None

    def stop(self, end_time: datetime) -> WorkSession:
        if self.is_completed:
            raise AlreadyStoppedError(self.id)
        elapsed = _elapsed(self.start_time, end_time)
        if elapsed <= timedelta(0):
            raise InvalidTimeRangeError()
        return replace(
            self,
            end_time=end_time,
            duration=Duration.from_timedelta(elapsed),
        )

    def update_current_duration(self, now: datetime | None = None) -> Duration:
        """Live duration while running, the stored one once completed."""
        if self.is_completed:
            return self.duration
        if now is None:
            now = _now_like(self.start_time)
        return Duration.from_timedelta(max(_elapsed(self.start_time, now), timedelta(0)))

    def to_data(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "startTime": self.start_time.isoformat(),
            "endTime": self.end_time.isoformat() if self.end_time else None,
            "duration": self.duration.milliseconds,
            "date": self.work_date.to_iso_string(),
        }

    @classmethod
    def from_data(cls, data: Mapping[str, Any]) -> WorkSession:
        end_raw = data.get("endTime")
        return cls(
            id=str(data["id"]),
            start_time=_parse_instant(data["startTime"]),
            end_time=_parse_instant(end_raw) if end_raw else None,
            work_date=WorkDayDate.from_string(data["date"]),
            duration=Duration.from_milliseconds(data.get("duration", 0)),
        )


@dataclass(frozen=True)
class WorkDayCalculations:
    """Derived figures for one work day. Never persisted."""

    total_work_time: Duration
    total_pause_time: Duration
    pause_deduction: Duration
    effective_work_time: Duration
    remaining_time: Duration
    overtime: Duration
    is_complete: bool


@dataclass(frozen=True)
class WorkDay:
    """Aggregate root: the sessions of one calendar day and the timer state.

    Every transition returns a new instance; a failed transition leaves the
    original untouched. Construction checks the aggregate invariants:

    - ``current_session`` is set exactly when ``status`` is RUNNING,
    - ``sessions`` only holds completed sessions,
    - sessions are chronological (each one starts no earlier than the
      previous one ended), the running session included.
    """

    date: WorkDayDate
    sessions: tuple[WorkSession, ...] = ()
    current_session: WorkSession | None = None
    status: TimerStatus = TimerStatus.STOPPED
    pause_deduction_applied: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "sessions", tuple(self.sessions))
        if (self.current_session is not None) != self.status.is_running:
            raise InvalidWorkDayError(
                f"Status {self.status.value} does not match the current session"
            )
        if self.current_session is not None and self.current_session.is_completed:
            raise InvalidWorkDayError("The current session has already been stopped")

        previous_end: datetime | None = None
        ordered = list(self.sessions)
        if self.current_session is not None:
            ordered.append(self.current_session)
        for session in ordered:
            if session is not self.current_session and session.end_time is None:
                raise InvalidWorkDayError(f"Session {session.id} is still running")
            if previous_end is not None and _elapsed(previous_end, session.start_time) < timedelta(0):
                raise SessionOrderError(session.id)
            previous_end = session.end_time

    @classmethod
    def create(cls, work_date: WorkDayDate) -> WorkDay:
        return cls(date=work_date)

    # ---- state machine ----
    def start_work(self, start_time: datetime) -> WorkDay:
        if not self.status.can_transition_to(TimerStatus.RUNNING):
            raise InvalidTransitionError(self.status.value, TimerStatus.RUNNING.value)
        start_date = WorkDayDate.from_date(start_time)
        if start_date != self.date:
            raise DateMismatchError(self.date.to_iso_string(), start_date.to_iso_string())
        return replace(
            self,
            current_session=WorkSession.create(start_time),
            status=TimerStatus.RUNNING,
        )

    def stop_work(self, end_time: datetime) -> WorkDay:
        if not self.status.is_running or self.current_session is None:
            raise NotRunningError()
        stopped = self.current_session.stop(end_time)
        return replace(
            self,
            sessions=self.sessions + (stopped,),
            current_session=None,
            status=TimerStatus.PAUSED,
        )

    def pause_work(self, pause_time: datetime) -> WorkDay:
        return self.stop_work(pause_time)

    def resume_work(self, resume_time: datetime) -> WorkDay:
        if not self.status.is_paused:
            raise NotPausedError(self.status.value)
        return self.start_work(resume_time)

    def apply_pause_deduction(self) -> WorkDay:
        if self.pause_deduction_applied:
            return self
        return replace(self, pause_deduction_applied=True)

    def reset(self) -> WorkDay:
        return WorkDay.create(self.date)

    # ---- queries ----
    @property
    def session_count(self) -> int:
        return len(self.sessions) + (1 if self.current_session is not None else 0)

    @property
    def last_session(self) -> WorkSession | None:
        return self.sessions[-1] if self.sessions else None

    def has_activity(self) -> bool:
        return bool(self.sessions) or self.current_session is not None

    def is_active(self) -> bool:
        return self.status.is_running

    def calculate_total_work_time(self, now: datetime | None = None) -> Duration:
        total = sum((s.duration for s in self.sessions), Duration.zero())
        return total + self.get_current_session_duration(now)

    def calculate_total_pause_time(self) -> Duration:
        """Sum of the gaps between consecutive completed sessions."""
        total = Duration.zero()
        for previous, current in zip(self.sessions, self.sessions[1:]):
            total = total + Duration.from_timedelta(_elapsed(previous.end_time, current.start_time))
        return total

    def get_current_session_duration(self, now: datetime | None = None) -> Duration:
        if self.current_session is None:
            return Duration.zero()
        return self.current_session.update_current_duration(now)

    # ---- serialization ----
    def to_data(self) -> dict[str, Any]:
        return {
            "date": self.date.to_iso_string(),
            "sessions": [s.to_data() for s in self.sessions],
            "currentSession": self.current_session.to_data() if self.current_session else None,
            "status": self.status.value,
            "pauseDeductionApplied": self.pause_deduction_applied,
        }

    @classmethod
    def from_data(cls, data: Mapping[str, Any]) -> WorkDay:
        current = data.get("currentSession")
        return cls(
            date=WorkDayDate.from_string(data["date"]),
            sessions=tuple(WorkSession.from_data(s) for s in data.get("sessions", [])),
            current_session=WorkSession.from_data(current) if current else None,
            status=TimerStatus(data.get("status", TimerStatus.STOPPED.value)),
            pause_deduction_applied=bool(data.get("pauseDeductionApplied", False)),
        )


__all__ = [
    "Duration",
    "TimerStatus",
    "WorkDay",
    "WorkDayCalculations",
    "WorkDayDate",
    "WorkSession",
]
