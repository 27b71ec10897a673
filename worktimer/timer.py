"""Timer service: the single writer for the current work day.

It loads the day from a repository, applies the start/stop transitions with
the clock's current instant, consults the pause deduction policy whenever a
session completes, saves the result and notifies event handlers.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import List

from worktimer import config
from worktimer.domain import Duration, WorkDay, WorkDayCalculations, WorkDayDate
from worktimer.errors import DomainError, WorkDayNotFoundError
from worktimer.events import (
    DailyLimitReached,
    DomainEvent,
    EventHandler,
    PauseDeductionApplied,
    WorkSessionStarted,
    WorkSessionStopped,
    aggregate_id_for,
)
from worktimer.repository import WorkDayRepository
from worktimer.services import Clock, PauseDeductionPolicy, TimeCalculationService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimerState:
    work_day: WorkDay
    calculations: WorkDayCalculations
    current_session_time: Duration
    progress_percentage: float


class TimerService:
    def __init__(
        self,
        repository: WorkDayRepository,
        calculator: TimeCalculationService | None = None,
        policy: PauseDeductionPolicy | None = None,
        clock: Clock = config.local_now,
    ):
        self.repository = repository
        self.clock = clock
        if calculator is not None and policy is not None and policy is not calculator.policy:
            raise ValueError("policy must be the calculator's own policy")
        if policy is None:
            policy = calculator.policy if calculator is not None else PauseDeductionPolicy(clock=clock)
        self.policy = policy
        self.calculator = calculator or TimeCalculationService(policy=policy, clock=clock)
        self._handlers: List[EventHandler] = []
        # start/stop read-modify-write the stored day; one writer at a time
        self._lock = threading.RLock()

    # ---- queries ----
    def current_work_day(self) -> WorkDay:
        today = WorkDayDate.from_date(self.clock())
        stored = self.repository.find_by_date(today)
        return stored if stored is not None else WorkDay.create(today)

    def load_work_day(self, work_date: WorkDayDate) -> WorkDay:
        stored = self.repository.find_by_date(work_date)
        if stored is None:
            raise WorkDayNotFoundError(work_date.to_iso_string())
        return stored

    def get_state(self) -> TimerState:
        now = self.clock()
        work_day = self.current_work_day()
        calculations = self.calculator.calculate_work_day_metrics(work_day, now)
        return TimerState(
            work_day=work_day,
            calculations=calculations,
            current_session_time=work_day.get_current_session_duration(now),
            progress_percentage=self.calculator.calculate_progress_percentage(
                calculations.effective_work_time
            ),
        )

    def can_start_work(self) -> bool:
        state = self.get_state()
        status = state.work_day.status
        return not state.calculations.is_complete and (status.is_stopped or status.is_paused)

    def can_stop_work(self) -> bool:
        return self.current_work_day().status.is_running

    def button_text(self) -> str:
        state = self.get_state()
        if state.calculations.is_complete:
            return "Work Complete"
        status = state.work_day.status
        if status.is_running:
            return "Stop Work"
        if status.is_paused:
            return "Resume Work"
        return "Start Work"

    # ---- commands ----
    def start_work(self) -> WorkDay:
        """Starts the first session of the day or resumes after a pause."""
        with self._lock:
            now = self.clock()
            work_day = self.current_work_day()
            try:
                if work_day.status.is_paused:
                    updated = work_day.resume_work(now)
                else:
                    updated = work_day.start_work(now)
            except DomainError as e:
                logger.warning("Cannot start work on %s: %s", work_day.date, e)
                raise
            self.repository.save(updated)

        logger.info("Work started on %s at %s", updated.date, now.isoformat(timespec="seconds"))
        self._emit(WorkSessionStarted(
            aggregate_id=aggregate_id_for(updated.date),
            occurred_at=now,
            session=updated.current_session,
            session_count=updated.session_count,
        ))
        return updated

    def stop_work(self) -> WorkDay:
        with self._lock:
            now = self.clock()
            work_day = self.current_work_day()
            try:
                updated = work_day.stop_work(now)
            except DomainError as e:
                logger.warning("Cannot stop work on %s: %s", work_day.date, e)
                raise

            decision = self.policy.evaluate_deduction(updated, now)
            if decision.should_apply_deduction:
                updated = updated.apply_pause_deduction()
                logger.info("Pause deduction applied on %s: %s", updated.date, decision.reason)
            self.repository.save(updated)

        calculations = self.calculator.calculate_work_day_metrics(updated, now)
        stopped = updated.last_session
        logger.info("Work stopped on %s after %s", updated.date, stopped.duration)

        aggregate_id = aggregate_id_for(updated.date)
        if decision.should_apply_deduction:
            self._emit(PauseDeductionApplied(
                aggregate_id=aggregate_id,
                occurred_at=now,
                total_pause_time=calculations.total_pause_time,
                deduction_amount=decision.deduction_amount,
                reason=decision.reason,
            ))
        self._emit(WorkSessionStopped(
            aggregate_id=aggregate_id,
            occurred_at=now,
            session=stopped,
            total_work_time=calculations.total_work_time,
        ))
        if calculations.is_complete:
            self._emit(DailyLimitReached(
                aggregate_id=aggregate_id,
                occurred_at=now,
                effective_work_time=calculations.effective_work_time,
                daily_limit=self.calculator.daily_limit,
            ))
        return updated

    def reset(self) -> WorkDay:
        with self._lock:
            fresh = self.current_work_day().reset()
            self.repository.save(fresh)
        logger.info("Work day %s reset", fresh.date)
        return fresh

    # ---- events ----
    def on_event(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    def _emit(self, event: DomainEvent) -> None:
        for handler in self._handlers:
            try:
                handler(event)
            except Exception:
                # listeners are isolated from the caller
                logger.exception("Event handler failed for %s", event.event_type)
