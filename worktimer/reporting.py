from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Sequence, Tuple

from worktimer import config
from worktimer.domain import Duration, WorkDay, WorkDayCalculations, WorkDayDate, WorkSession
from worktimer.services import Clock, TimeCalculationService


@dataclass(frozen=True)
class DailyReport:
    date: WorkDayDate
    session_count: int
    calculations: WorkDayCalculations
    progress_percentage: float

    @property
    def formatted_times(self) -> Dict[str, str]:
        c = self.calculations
        return {
            "total_work_time": c.total_work_time.format(),
            "total_pause_time": c.total_pause_time.format(),
            "pause_deduction": c.pause_deduction.format(),
            "effective_work_time": c.effective_work_time.format(),
            "remaining_time": c.remaining_time.format(),
        }


@dataclass(frozen=True)
class WeeklyReport:
    start_date: WorkDayDate
    end_date: WorkDayDate
    daily_reports: Tuple[DailyReport, ...] = ()
    total_work_time: Duration = field(default_factory=Duration.zero)
    total_effective_time: Duration = field(default_factory=Duration.zero)
    average_daily_work: Duration = field(default_factory=Duration.zero)
    days_worked: int = 0
    completed_days: int = 0
    effective_by_week: Dict[Tuple[int, int], Duration] = field(default_factory=dict)


@dataclass(frozen=True)
class ProductivityInsights:
    most_productive_day: DailyReport | None
    least_productive_day: DailyReport | None
    average_sessions_per_day: float
    total_pause_deductions: Duration
    streak_of_completed_days: int


class ReportingService:
    """Read-only summaries over stored work days."""

    def __init__(self, calculator: TimeCalculationService | None = None, clock: Clock = config.local_now):
        self.calculator = calculator or TimeCalculationService()
        self.clock = clock

    def generate_daily_report(self, work_day: WorkDay) -> DailyReport:
        calculations = self.calculator.calculate_work_day_metrics(work_day)
        return DailyReport(
            date=work_day.date,
            session_count=work_day.session_count,
            calculations=calculations,
            progress_percentage=self.calculator.calculate_progress_percentage(
                calculations.effective_work_time
            ),
        )

    def generate_weekly_report(self, work_days: Sequence[WorkDay]) -> WeeklyReport:
        if not work_days:
            today = WorkDayDate.from_date(self.clock())
            return WeeklyReport(start_date=today, end_date=today)

        reports = sorted((self.generate_daily_report(d) for d in work_days), key=lambda r: r.date)
        worked = [r for r in reports if not r.calculations.total_work_time.is_zero()]
        total_work = sum((r.calculations.total_work_time for r in reports), Duration.zero())
        total_effective = sum((r.calculations.effective_work_time for r in reports), Duration.zero())
        average = (
            Duration.from_milliseconds(total_effective.milliseconds / len(worked))
            if worked else Duration.zero()
        )
        return WeeklyReport(
            start_date=reports[0].date,
            end_date=reports[-1].date,
            daily_reports=tuple(reports),
            total_work_time=total_work,
            total_effective_time=total_effective,
            average_daily_work=average,
            days_worked=len(worked),
            completed_days=sum(1 for r in reports if r.calculations.is_complete),
            effective_by_week=self.calculator.calculate_weekly_effective_time(work_days),
        )

    def get_productivity_insights(self, work_days: Sequence[WorkDay]) -> ProductivityInsights:
        reports = [self.generate_daily_report(d) for d in work_days]
        worked = [r for r in reports if not r.calculations.total_work_time.is_zero()]

        def effective(r: DailyReport) -> Duration:
            return r.calculations.effective_work_time

        # streak counts back from the most recent day
        streak = 0
        for report in sorted(reports, key=lambda r: r.date, reverse=True):
            if not report.calculations.is_complete:
                break
            streak += 1

        return ProductivityInsights(
            most_productive_day=max(worked, key=effective) if worked else None,
            least_productive_day=min(worked, key=effective) if worked else None,
            average_sessions_per_day=(
                sum(r.session_count for r in worked) / len(worked) if worked else 0.0
            ),
            total_pause_deductions=sum(
                (r.calculations.pause_deduction for r in reports), Duration.zero()
            ),
            streak_of_completed_days=streak,
        )

    def get_time_until_daily_limit(self, effective_work_time: Duration) -> Duration:
        return self.calculator.daily_limit - effective_work_time

    @staticmethod
    def calculate_efficiency(total_work_time: Duration, effective_work_time: Duration) -> float:
        if total_work_time.is_zero():
            return 100.0
        return effective_work_time.milliseconds / total_work_time.milliseconds * 100


# =========================
# Per-session statistics
# =========================
@dataclass(frozen=True)
class SessionSummary:
    id: str
    start_time: datetime
    end_time: datetime | None
    duration: Duration
    formatted_duration: str
    is_running: bool


@dataclass(frozen=True)
class SessionMetrics:
    total_sessions: int
    total_duration: Duration
    average_duration: Duration
    longest_session: Duration
    shortest_session: Duration


class SessionStatistics:
    """Figures over a flat list of sessions, e.g. from a WorkSessionRepository."""

    def format_sessions_for_display(self, sessions: Sequence[WorkSession]) -> List[SessionSummary]:
        return [
            SessionSummary(
                id=s.id,
                start_time=s.start_time,
                end_time=s.end_time,
                duration=s.duration,
                formatted_duration=s.duration.format(),
                is_running=s.is_running,
            )
            for s in sessions
        ]

    def get_sessions_by_date(self, sessions: Sequence[WorkSession], work_date: WorkDayDate) -> List[WorkSession]:
        return [s for s in sessions if s.work_date == work_date]

    def get_sessions_in_time_range(
        self, sessions: Sequence[WorkSession], start: datetime, end: datetime
    ) -> List[WorkSession]:
        """Sessions starting at or after ``start`` and ending by ``end``.
        A running session only needs to have started by ``end``."""
        return [
            s for s in sessions
            if s.start_time >= start and (s.end_time if s.end_time is not None else s.start_time) <= end
        ]

    def get_total_duration(self, sessions: Sequence[WorkSession]) -> Duration:
        return sum((s.duration for s in sessions), Duration.zero())

    def get_average_duration(self, sessions: Sequence[WorkSession]) -> Duration:
        if not sessions:
            return Duration.zero()
        return Duration.from_milliseconds(self.get_total_duration(sessions).milliseconds / len(sessions))

    def get_longest_session(self, sessions: Sequence[WorkSession]) -> WorkSession | None:
        return max(sessions, key=lambda s: s.duration) if sessions else None

    def get_shortest_session(self, sessions: Sequence[WorkSession]) -> WorkSession | None:
        return min(sessions, key=lambda s: s.duration) if sessions else None

    def get_productivity_metrics(self, sessions: Sequence[WorkSession]) -> SessionMetrics:
        # running sessions have no final duration yet
        completed = [s for s in sessions if s.is_completed]
        longest = self.get_longest_session(completed)
        shortest = self.get_shortest_session(completed)
        return SessionMetrics(
            total_sessions=len(completed),
            total_duration=self.get_total_duration(completed),
            average_duration=self.get_average_duration(completed),
            longest_session=longest.duration if longest else Duration.zero(),
            shortest_session=shortest.duration if shortest else Duration.zero(),
        )
