"""Events emitted by the timer service when a work day changes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable
from uuid import uuid4

from worktimer.domain import Duration, WorkDayDate, WorkSession


@dataclass(frozen=True)
class DomainEvent:
    aggregate_id: str
    event_id: str = field(default_factory=lambda: str(uuid4()), kw_only=True)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc), kw_only=True)
    version: int = field(default=1, kw_only=True)

    @property
    def event_type(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class WorkSessionStarted(DomainEvent):
    session: WorkSession
    session_count: int


@dataclass(frozen=True)
class WorkSessionStopped(DomainEvent):
    session: WorkSession
    total_work_time: Duration

    @property
    def session_duration(self) -> Duration:
        return self.session.duration


@dataclass(frozen=True)
class PauseDeductionApplied(DomainEvent):
    total_pause_time: Duration
    deduction_amount: Duration
    reason: str


@dataclass(frozen=True)
class DailyLimitReached(DomainEvent):
    effective_work_time: Duration
    daily_limit: Duration


EventHandler = Callable[[DomainEvent], None]


def aggregate_id_for(work_date: WorkDayDate) -> str:
    return work_date.to_iso_string()
