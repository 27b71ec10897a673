"""Tests for the pause deduction policy and the daily calculations.

Run with: pytest tests/test_services.py -v
"""

from datetime import datetime

import pytest

from worktimer.domain import Duration, WorkDay, WorkDayDate
from worktimer.services import PauseDeductionPolicy, TimeCalculationService

THIRTY_MINUTES = Duration.from_minutes(30)
TEN_HOURS = Duration.from_hours(10)


@pytest.fixture
def policy() -> PauseDeductionPolicy:
    return PauseDeductionPolicy(threshold=THIRTY_MINUTES, deduction_amount=THIRTY_MINUTES)


@pytest.fixture
def calculator(policy) -> TimeCalculationService:
    return TimeCalculationService(daily_limit=TEN_HOURS, policy=policy)


class TestPauseDeductionPolicy:
    """Scenarios for evaluate_deduction."""

    def test_no_sessions_no_deduction(self, policy, test_date):
        result = policy.evaluate_deduction(WorkDay.create(test_date))
        assert not result.should_apply_deduction
        assert result.deduction_amount.is_zero()
        assert result.reason == "No pause time recorded"

    def test_single_session_has_no_pause(self, policy, make_day, at):
        result = policy.evaluate_deduction(make_day((at(9), at(12))))
        assert not result.should_apply_deduction
        assert result.deduction_amount.is_zero()

    def test_short_pause_deducts_full_amount(self, policy, make_day, at):
        """A 15 minute break over 4 hours of work costs 30 minutes."""
        day = make_day((at(9), at(11)), (at(11, 15), at(13, 15)))
        result = policy.evaluate_deduction(day)
        assert result.should_apply_deduction
        assert result.deduction_amount == THIRTY_MINUTES
        assert "within" in result.reason

    def test_threshold_is_inclusive(self, policy, make_day, at):
        """Exactly 30:00 of pause still triggers the deduction."""
        day = make_day((at(9), at(10)), (at(10, 30), at(12)))
        assert day.calculate_total_pause_time() == THIRTY_MINUTES
        assert policy.evaluate_deduction(day).should_apply_deduction

    def test_one_second_over_threshold(self, policy, make_day, at):
        """30:01 of pause means no deduction."""
        day = make_day((at(9), at(10)), (at(10, 30, 1), at(12)))
        result = policy.evaluate_deduction(day)
        assert not result.should_apply_deduction
        assert result.deduction_amount.is_zero()
        assert "exceeds" in result.reason

    def test_pauses_are_summed(self, policy, make_day, at):
        """Two breaks of 15 and 16 minutes add up to more than the threshold."""
        day = make_day((at(9), at(10)), (at(10, 15), at(11)), (at(11, 16), at(12)))
        assert day.calculate_total_pause_time() == Duration.from_minutes(31)
        assert not policy.evaluate_deduction(day).should_apply_deduction

    def test_deduction_capped_at_recorded_work(self, policy, make_day, at):
        """67 s of work, a 12 s pause and 60 s more lose 127 s, not 30 minutes."""
        day = make_day((at(9), at(9, 1, 7)), (at(9, 1, 19), at(9, 2, 19)))
        assert day.calculate_total_work_time() == Duration.from_seconds(127)
        assert day.calculate_total_pause_time() == Duration.from_seconds(12)

        result = policy.evaluate_deduction(day)
        assert result.should_apply_deduction
        assert result.deduction_amount == Duration.from_seconds(127)
        assert result.deduction_amount < policy.deduction_amount

    def test_already_applied_is_not_applied_again(self, policy, make_day, at):
        day = make_day((at(9), at(10)), (at(10, 10), at(11)), pause_deduction_applied=True)
        result = policy.evaluate_deduction(day)
        assert not result.should_apply_deduction
        assert result.deduction_amount == THIRTY_MINUTES
        assert "already been applied" in result.reason
        assert not policy.can_apply_deduction(day)

    def test_running_session_counts_towards_cap(self, policy, test_date, at):
        """The cap uses live work time, read at the given instant."""
        day = (
            WorkDay.create(test_date)
            .start_work(at(9)).stop_work(at(9, 5))
            .resume_work(at(9, 10)).stop_work(at(9, 15))
            .resume_work(at(9, 20))
        )
        result = policy.evaluate_deduction(day, now=at(9, 25))
        assert result.should_apply_deduction
        assert result.deduction_amount == Duration.from_minutes(15)

    def test_clock_used_when_no_instant_given(self, make_day, at, clock, test_date):
        policy = PauseDeductionPolicy(THIRTY_MINUTES, THIRTY_MINUTES, clock=clock)
        day = (
            WorkDay.create(test_date)
            .start_work(at(9)).stop_work(at(9, 5))
            .resume_work(at(9, 10)).stop_work(at(9, 15))
            .resume_work(at(9, 20))
        )
        clock.set(9, 22)
        assert policy.evaluate_deduction(day).deduction_amount == Duration.from_minutes(12)

    def test_is_within_threshold(self, policy):
        assert not policy.is_within_threshold(Duration.zero())
        assert policy.is_within_threshold(Duration.from_milliseconds(1))
        assert policy.is_within_threshold(THIRTY_MINUTES)
        assert not policy.is_within_threshold(THIRTY_MINUTES + Duration.from_milliseconds(1))

    def test_explanation(self, policy):
        text = policy.get_deduction_explanation()
        assert "0-30 minutes" in text
        assert "30 minutes will be deducted" in text
        assert "once per day" in text

    def test_custom_rule(self, make_day, at):
        """Threshold and amount are configurable."""
        policy = PauseDeductionPolicy(Duration.from_minutes(10), Duration.from_minutes(5))
        day = make_day((at(9), at(10)), (at(10, 8), at(11)))
        result = policy.evaluate_deduction(day)
        assert result.should_apply_deduction
        assert result.deduction_amount == Duration.from_minutes(5)
        assert "0-10 minutes" in policy.get_deduction_explanation()


class TestTimeCalculationService:
    """Tests for calculate_work_day_metrics and helpers."""

    def test_empty_day(self, calculator, test_date):
        c = calculator.calculate_work_day_metrics(WorkDay.create(test_date))
        assert c.total_work_time.is_zero()
        assert c.total_pause_time.is_zero()
        assert c.pause_deduction.is_zero()
        assert c.effective_work_time.is_zero()
        assert c.remaining_time == TEN_HOURS
        assert c.overtime.is_zero()
        assert not c.is_complete

    def test_effective_time_after_deduction(self, calculator, make_day, at):
        day = make_day((at(9), at(11)), (at(11, 15), at(13, 15)))
        c = calculator.calculate_work_day_metrics(day)
        assert c.total_work_time == Duration.from_hours(4)
        assert c.total_pause_time == Duration.from_minutes(15)
        assert c.pause_deduction == THIRTY_MINUTES
        assert c.effective_work_time == Duration.from_minutes(210)
        assert c.remaining_time == Duration.from_minutes(390)

    def test_long_pause_keeps_full_work_time(self, calculator, make_day, at):
        day = make_day((at(9), at(11)), (at(12), at(14)))
        c = calculator.calculate_work_day_metrics(day)
        assert c.pause_deduction.is_zero()
        assert c.effective_work_time == Duration.from_hours(4)

    def test_single_ten_hour_session_completes_day(self, calculator, make_day, at):
        """One session from 09:00 lasting exactly 10 hours reaches the limit."""
        day = make_day((at(9), at(19)))
        c = calculator.calculate_work_day_metrics(day)
        assert c.pause_deduction.is_zero()
        assert c.effective_work_time.to_hours() == 10
        assert c.remaining_time.is_zero()
        assert c.is_complete

    def test_day_completes_at_ten_effective_hours(self, calculator, make_day, at):
        """10h30 of work with a 20 minute break is exactly the daily limit."""
        day = make_day((at(7), at(12)), (at(12, 20), at(17, 50)))
        c = calculator.calculate_work_day_metrics(day)
        assert c.total_work_time == Duration.from_minutes(630)
        assert c.effective_work_time == TEN_HOURS
        assert c.remaining_time.is_zero()
        assert c.overtime.is_zero()
        assert c.is_complete
        assert calculator.calculate_progress_percentage(c.effective_work_time) == 100.0

    def test_overtime_reported_separately(self, calculator, make_day, at):
        day = make_day((at(7), at(18)))
        c = calculator.calculate_work_day_metrics(day)
        assert c.remaining_time.is_zero()
        assert c.overtime == Duration.from_hours(1)
        assert c.is_complete

    def test_effective_time_never_negative(self, calculator, make_day, at):
        day = make_day((at(9), at(9, 1, 7)), (at(9, 1, 19), at(9, 2, 19)))
        c = calculator.calculate_work_day_metrics(day)
        assert c.pause_deduction == Duration.from_seconds(127)
        assert c.effective_work_time.is_zero()

    def test_applied_flag_keeps_deduction(self, calculator, make_day, at):
        """Once applied, the deduction stays even if the pause grows past the threshold."""
        day = make_day((at(9), at(10)), (at(11), at(12)), pause_deduction_applied=True)
        c = calculator.calculate_work_day_metrics(day)
        assert c.total_pause_time == Duration.from_hours(1)
        assert c.pause_deduction == THIRTY_MINUTES
        assert c.effective_work_time == Duration.from_minutes(90)

    def test_applied_flag_is_capped_too(self, calculator, make_day, at):
        day = make_day((at(9), at(9, 10)), pause_deduction_applied=True)
        c = calculator.calculate_work_day_metrics(day)
        assert c.pause_deduction == Duration.from_minutes(10)
        assert c.effective_work_time.is_zero()

    def test_running_day_uses_given_instant(self, calculator, test_date, at):
        day = WorkDay.create(test_date).start_work(at(9))
        c = calculator.calculate_work_day_metrics(day, now=at(10, 30))
        assert c.total_work_time == Duration.from_minutes(90)

    def test_running_day_uses_clock(self, policy, test_date, at, clock):
        calculator = TimeCalculationService(TEN_HOURS, policy, clock=clock)
        day = WorkDay.create(test_date).start_work(at(9))
        clock.set(9, 45)
        assert calculator.calculate_work_day_metrics(day).total_work_time == Duration.from_minutes(45)

    def test_calculate_pause_deduction(self, calculator):
        hour = Duration.from_hours(1)
        assert calculator.calculate_pause_deduction(hour, Duration.from_minutes(10), False) == THIRTY_MINUTES
        assert calculator.calculate_pause_deduction(hour, Duration.from_minutes(40), False).is_zero()
        assert calculator.calculate_pause_deduction(hour, Duration.zero(), False).is_zero()
        assert calculator.calculate_pause_deduction(hour, Duration.from_minutes(40), True) == THIRTY_MINUTES
        assert calculator.calculate_pause_deduction(
            Duration.from_minutes(20), Duration.from_minutes(10), False
        ) == Duration.from_minutes(20)

    def test_should_apply_pause_deduction(self, calculator):
        assert calculator.should_apply_pause_deduction(Duration.from_minutes(5), False)
        assert not calculator.should_apply_pause_deduction(Duration.from_minutes(5), True)
        assert not calculator.should_apply_pause_deduction(Duration.zero(), False)

    def test_rule_constants_exposed(self, calculator):
        assert calculator.daily_limit == TEN_HOURS
        assert calculator.pause_deduction_threshold == THIRTY_MINUTES
        assert calculator.pause_deduction_amount == THIRTY_MINUTES

    @pytest.mark.parametrize(
        "minutes,expected",
        [(0, 0.0), (60, 10.0), (300, 50.0), (600, 100.0), (660, 100.0)],
    )
    def test_progress_percentage(self, calculator, minutes, expected):
        progress = calculator.calculate_progress_percentage(Duration.from_minutes(minutes))
        assert progress == pytest.approx(expected)

    def test_progress_with_zero_limit(self, policy):
        calculator = TimeCalculationService(Duration.zero(), policy)
        assert calculator.calculate_progress_percentage(Duration.zero()) == 100.0

    def test_is_work_day_complete(self, calculator):
        assert calculator.is_work_day_complete(TEN_HOURS)
        assert not calculator.is_work_day_complete(TEN_HOURS - Duration.from_milliseconds(1))

    def test_weekly_effective_time(self, calculator):
        """Effective time is summed per ISO week."""

        def day(d: int, hours: int) -> WorkDay:
            start = datetime(2024, 3, d, 8)
            return (
                WorkDay.create(WorkDayDate.from_date(start))
                .start_work(start)
                .stop_work(start.replace(hour=8 + hours))
            )

        weekly = calculator.calculate_weekly_effective_time([day(11, 8), day(12, 9), day(18, 7)])
        assert weekly == {
            (2024, 11): Duration.from_hours(17),
            (2024, 12): Duration.from_hours(7),
        }
