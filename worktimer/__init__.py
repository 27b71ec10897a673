from worktimer.domain import (
    Duration,
    TimerStatus,
    WorkDay,
    WorkDayCalculations,
    WorkDayDate,
    WorkSession,
)
from worktimer.services import PauseDeductionPolicy, PauseDeductionResult, TimeCalculationService

__all__ = [
    "Duration",
    "TimerStatus",
    "WorkDay",
    "WorkDayCalculations",
    "WorkDayDate",
    "WorkSession",
    "PauseDeductionPolicy",
    "PauseDeductionResult",
    "TimeCalculationService",
]
