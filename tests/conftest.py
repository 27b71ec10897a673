"""Pytest configuration and shared fixtures."""

from datetime import datetime

import pytest

from worktimer.domain import WorkDay, WorkDayDate, WorkSession

TEST_DATE = datetime(2024, 3, 15)


class FakeClock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, hour: int, minute: int = 0, second: int = 0) -> datetime:
        self.now = self.now.replace(hour=hour, minute=minute, second=second)
        return self.now


@pytest.fixture
def test_date() -> WorkDayDate:
    return WorkDayDate.from_date(TEST_DATE)


@pytest.fixture
def at():
    """at(9, 30) -> datetime on the test date."""

    def _at(hour: int, minute: int = 0, second: int = 0) -> datetime:
        return TEST_DATE.replace(hour=hour, minute=minute, second=second)

    return _at


@pytest.fixture
def make_day(test_date):
    """make_day((start, end), ...) -> WorkDay with completed sessions."""

    def _make(*intervals, pause_deduction_applied: bool = False) -> WorkDay:
        sessions = [WorkSession.create(start).stop(end) for start, end in intervals]
        return WorkDay(test_date, sessions, pause_deduction_applied=pause_deduction_applied)

    return _make


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(TEST_DATE.replace(hour=9))
