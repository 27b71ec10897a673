from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable

from worktimer import config
from worktimer.domain import Duration, WorkDay, WorkDayCalculations

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class PauseDeductionResult:
    should_apply_deduction: bool
    deduction_amount: Duration
    reason: str


class PauseDeductionPolicy:
    """The short-pause rule.

    If the total pause between the sessions of a day is more than zero and at
    most the threshold, a fixed amount is deducted from the work time, once
    per day. The deduction never exceeds the work time actually recorded.
    """

    def __init__(
        self,
        threshold: Duration = config.PAUSE_DEDUCTION_THRESHOLD,
        deduction_amount: Duration = config.PAUSE_DEDUCTION_AMOUNT,
        clock: Clock | None = None,
    ):
        self.threshold = threshold
        self.deduction_amount = deduction_amount
        self.clock = clock

    def evaluate_deduction(self, work_day: WorkDay, now: datetime | None = None) -> PauseDeductionResult:
        if work_day.pause_deduction_applied:
            return PauseDeductionResult(
                False,
                self.deduction_amount,
                "Pause deduction has already been applied for this work day",
            )

        total_pause = work_day.calculate_total_pause_time()
        if total_pause.is_zero():
            return PauseDeductionResult(False, Duration.zero(), "No pause time recorded")

        if self.is_within_threshold(total_pause):
            if now is None and self.clock is not None:
                now = self.clock()
            total_work = work_day.calculate_total_work_time(now)
            amount = self.capped_amount(total_work)
            logger.debug(
                "Pause %s within threshold for %s, deducting %s (work %s)",
                total_pause, work_day.date, amount, total_work,
            )
            return PauseDeductionResult(
                True,
                amount,
                f"Total pause time ({total_pause}) is within the {self.threshold} threshold; "
                f"deducting {amount} of {total_work} recorded work",
            )

        return PauseDeductionResult(
            False,
            Duration.zero(),
            f"Total pause time ({total_pause}) exceeds the {self.threshold} threshold",
        )

    def is_within_threshold(self, total_pause_time: Duration) -> bool:
        return not total_pause_time.is_zero() and total_pause_time <= self.threshold

    def capped_amount(self, total_work_time: Duration) -> Duration:
        return min(self.deduction_amount, total_work_time)

    def can_apply_deduction(self, work_day: WorkDay, now: datetime | None = None) -> bool:
        return self.evaluate_deduction(work_day, now).should_apply_deduction

    def get_deduction_explanation(self) -> str:
        return (
            f"If total pause time between work sessions is 0-{self.threshold.to_minutes()} minutes, "
            f"{self.deduction_amount.to_minutes()} minutes will be deducted from the total work time "
            "(never more than the work recorded). This deduction is applied only once per day."
        )


class TimeCalculationService:
    """Business rules for the daily figures: deduction, effective time, limit."""

    def __init__(
        self,
        daily_limit: Duration = config.DAILY_LIMIT,
        policy: PauseDeductionPolicy | None = None,
        clock: Clock | None = None,
    ):
        self.daily_limit = daily_limit
        self.policy = policy or PauseDeductionPolicy(clock=clock)
        self.clock = clock

    @property
    def pause_deduction_threshold(self) -> Duration:
        return self.policy.threshold

    @property
    def pause_deduction_amount(self) -> Duration:
        return self.policy.deduction_amount

    def calculate_work_day_metrics(self, work_day: WorkDay, now: datetime | None = None) -> WorkDayCalculations:
        if now is None and self.clock is not None:
            now = self.clock()
        total_work = work_day.calculate_total_work_time(now)
        total_pause = work_day.calculate_total_pause_time()
        deduction = self.calculate_pause_deduction(
            total_work, total_pause, work_day.pause_deduction_applied
        )
        effective = total_work - deduction
        return WorkDayCalculations(
            total_work_time=total_work,
            total_pause_time=total_pause,
            pause_deduction=deduction,
            effective_work_time=effective,
            remaining_time=self.daily_limit - effective,
            overtime=effective - self.daily_limit,
            is_complete=self.is_work_day_complete(effective),
        )

    def calculate_pause_deduction(
        self, total_work_time: Duration, total_pause_time: Duration, already_applied: bool
    ) -> Duration:
        """Deduction for the day, capped at the work recorded."""
        if already_applied or self.should_apply_pause_deduction(total_pause_time, False):
            return self.policy.capped_amount(total_work_time)
        return Duration.zero()

    def should_apply_pause_deduction(self, total_pause_time: Duration, already_applied: bool) -> bool:
        return not already_applied and self.policy.is_within_threshold(total_pause_time)

    def calculate_progress_percentage(self, effective_work_time: Duration) -> float:
        if self.daily_limit.is_zero():
            return 100.0
        percentage = effective_work_time.milliseconds / self.daily_limit.milliseconds * 100
        return min(100.0, max(0.0, percentage))

    def is_work_day_complete(self, effective_work_time: Duration) -> bool:
        return effective_work_time >= self.daily_limit

    def calculate_weekly_effective_time(
        self, work_days: Iterable[WorkDay], now: datetime | None = None
    ) -> dict[tuple[int, int], Duration]:
        """
        Aggregates effective work time per ISO week.
        Returns dict {(year, week): duration}.
        """
        weekly: dict[tuple[int, int], Duration] = {}
        for day in work_days:
            key = day.date.iso_year_week
            effective = self.calculate_work_day_metrics(day, now).effective_work_time
            weekly[key] = weekly.get(key, Duration.zero()) + effective
        return weekly
