"""Unit tests for the WorkSession entity.

Run with: pytest tests/test_work_session.py -v
"""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from worktimer.domain import Duration, WorkDayDate, WorkSession
from worktimer.errors import AlreadyStoppedError, InvalidTimeRangeError

MADRID = ZoneInfo("Europe/Madrid")


class TestWorkSessionLifecycle:
    """Tests for create/stop."""

    def test_create_starts_running(self, at):
        """A new session is running, has no end and zero duration."""
        session = WorkSession.create(at(9))
        assert session.is_running and not session.is_completed
        assert session.end_time is None
        assert session.duration.is_zero()
        assert session.work_date == WorkDayDate.from_string("2024-03-15")

    def test_create_assigns_unique_ids(self, at):
        """Every session gets its own id."""
        ids = {WorkSession.create(at(9)).id for _ in range(50)}
        assert len(ids) == 50

    def test_stop_returns_new_completed_session(self, at):
        """stop() leaves the original untouched and fixes the duration."""
        running = WorkSession.create(at(9))
        stopped = running.stop(at(10, 30))

        assert running.is_running
        assert stopped.is_completed
        assert stopped.id == running.id
        assert stopped.end_time == at(10, 30)
        assert stopped.duration == Duration.from_minutes(90)

    def test_stop_twice_fails(self, at):
        """Stopping a completed session raises AlreadyStoppedError."""
        stopped = WorkSession.create(at(9)).stop(at(10))
        with pytest.raises(AlreadyStoppedError):
            stopped.stop(at(11))

    @pytest.mark.parametrize("end", [(9, 0, 0), (8, 59, 59)])
    def test_stop_at_or_before_start_fails(self, at, end):
        """end_time <= start_time raises InvalidTimeRangeError."""
        with pytest.raises(InvalidTimeRangeError):
            WorkSession.create(at(9)).stop(at(*end))

    def test_duration_across_spring_forward(self):
        """01:30 to 03:30 on the night clocks go forward is one real hour."""
        start = datetime(2024, 3, 31, 1, 30, tzinfo=MADRID)
        session = WorkSession.create(start).stop(datetime(2024, 3, 31, 3, 30, tzinfo=MADRID))
        assert session.duration == Duration.from_hours(1)

    def test_duration_across_fall_back(self):
        """00:30 to 03:30 on the night clocks go back is four real hours."""
        start = datetime(2024, 10, 27, 0, 30, tzinfo=MADRID)
        session = WorkSession.create(start).stop(datetime(2024, 10, 27, 3, 30, tzinfo=MADRID))
        assert session.duration == Duration.from_hours(4)

    def test_stop_compares_real_instants(self):
        """An end that is later on the wall clock but earlier in real time is rejected."""
        start = datetime(2024, 10, 27, 2, 30, fold=1, tzinfo=MADRID)
        with pytest.raises(InvalidTimeRangeError):
            WorkSession.create(start).stop(datetime(2024, 10, 27, 2, 45, fold=0, tzinfo=MADRID))


class TestCurrentDuration:
    """Tests for update_current_duration."""

    def test_running_session_reports_live_duration(self, at):
        """While running, the duration follows the given instant."""
        session = WorkSession.create(at(9))
        assert session.update_current_duration(at(9, 0, 42)) == Duration.from_seconds(42)
        assert session.duration.is_zero()

    def test_completed_session_ignores_now(self, at):
        """Once stopped, the stored duration is returned regardless of now."""
        session = WorkSession.create(at(9)).stop(at(9, 30))
        assert session.update_current_duration(at(18)) == Duration.from_minutes(30)

    def test_live_duration_across_spring_forward(self):
        session = WorkSession.create(datetime(2024, 3, 31, 1, 45, tzinfo=MADRID))
        live = session.update_current_duration(datetime(2024, 3, 31, 3, 15, tzinfo=MADRID))
        assert live == Duration.from_minutes(30)

    def test_now_before_start_reads_zero(self, at):
        """A clock behind the start instant does not produce a negative."""
        session = WorkSession.create(at(9))
        assert session.update_current_duration(at(8)).is_zero()

    def test_defaults_to_wall_clock(self):
        """Without an instant the wall clock in the start's zone is used."""
        start = datetime.now(timezone.utc) - timedelta(seconds=5)
        live = WorkSession.create(start).update_current_duration()
        assert live >= Duration.from_seconds(5)


class TestSerialization:
    """Tests for to_data/from_data."""

    def test_round_trip_completed(self, at):
        """from_data(to_data()) reproduces an equal session."""
        session = WorkSession.create(at(9)).stop(at(9, 45, 12))
        data = session.to_data()

        assert data == {
            "id": session.id,
            "startTime": "2024-03-15T09:00:00",
            "endTime": "2024-03-15T09:45:12",
            "duration": 2_712_000,
            "date": "2024-03-15",
        }
        assert WorkSession.from_data(data) == session

    def test_round_trip_running(self, at):
        """A running session keeps its null end time."""
        session = WorkSession.create(at(9))
        restored = WorkSession.from_data(session.to_data())
        assert restored == session
        assert restored.is_running

    def test_round_trip_keeps_offset_and_milliseconds(self):
        """Aware instants with sub-second precision survive."""
        start = datetime(2024, 3, 15, 9, 0, 0, 123000, tzinfo=timezone.utc)
        session = WorkSession.create(start).stop(start + timedelta(milliseconds=1500))
        restored = WorkSession.from_data(session.to_data())
        assert restored == session
        assert restored.duration.milliseconds == 1500

    def test_from_data_accepts_javascript_instants(self):
        """Trailing 'Z' timestamps as written by JSON clients are parsed."""
        session = WorkSession.from_data({
            "id": "1710493200000-abc1234",
            "startTime": "2024-03-15T09:00:00.000Z",
            "endTime": "2024-03-15T10:00:00.000Z",
            "duration": 3_600_000,
            "date": "2024-03-15",
        })
        assert session.start_time == datetime(2024, 3, 15, 9, tzinfo=timezone.utc)
        assert session.duration == Duration.from_hours(1)
        assert session.is_completed
