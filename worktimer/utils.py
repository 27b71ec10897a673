import pandas as pd
from typing import Iterable

from worktimer.domain import Duration, WorkDay
from worktimer.services import TimeCalculationService

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def format_minutes(minutes: int) -> str:
    minutes = max(0, int(minutes))
    h, m = divmod(minutes, 60)
    if h == 0:
        return f"{m} min"
    if m == 0:
        return f"{h} h"
    return f"{h} h {m} min"


def format_minutes_signed(minutes: int) -> str:
    if minutes == 0:
        return "0 min"
    sign = "-" if minutes < 0 else ""
    return sign + format_minutes(abs(int(minutes)))


def _hours(d: Duration) -> float:
    return round(d.milliseconds / 3_600_000, 2)


def work_days_to_dataframe(work_days: Iterable[WorkDay], calculator: TimeCalculationService) -> pd.DataFrame:
    rows = []
    for day in work_days:
        c = calculator.calculate_work_day_metrics(day)
        year, week = day.date.iso_year_week
        first = day.sessions[0] if day.sessions else day.current_session
        last = day.last_session
        rows.append({
            "Date": day.date.to_iso_string(),
            "Day": DAY_NAMES[day.date.value.weekday()],
            "ISO Week": f"{year}-W{week:02d}",
            "Sessions": day.session_count,
            "Start": first.start_time.strftime("%H:%M") if first else "",
            "End": last.end_time.strftime("%H:%M") if last and not day.is_active() else "",
            "Work": c.total_work_time.format(),
            "Pause": c.total_pause_time.format(),
            "Deduction": c.pause_deduction.format(),
            "Effective": c.effective_work_time.format(),
            "Effective Hours": _hours(c.effective_work_time),
            "Overtime (min)": c.overtime.to_minutes(),
            "Complete": c.is_complete,
        })
    df = pd.DataFrame(rows)
    if not df.empty:
        df = df.sort_values(["Date"], ascending=False).reset_index(drop=True)
    return df


def weekly_summary(df: pd.DataFrame) -> pd.DataFrame:
    """Effective hours, days and completed days per ISO week, newest week first."""
    if df.empty:
        return pd.DataFrame(columns=["ISO Week", "Days", "Effective Hours", "Completed Days"])
    summary = (
        df.groupby("ISO Week")
        .agg(
            Days=("Date", "count"),
            **{"Effective Hours": ("Effective Hours", "sum"), "Completed Days": ("Complete", "sum")},
        )
        .reset_index()
        .sort_values("ISO Week", ascending=False)
        .reset_index(drop=True)
    )
    summary["Effective Hours"] = summary["Effective Hours"].round(2)
    summary["Completed Days"] = summary["Completed Days"].astype(int)
    return summary
