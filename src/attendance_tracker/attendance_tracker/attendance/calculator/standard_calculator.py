from __future__ import annotations

from datetime import datetime

from ...common.datetime_utils import minutes_between
from ...core.constants import STANDARD_WORKDAY_MINUTES
from .base import WorkedTime, WorkingTimeCalculator


class StandardWorkingTimeCalculator(WorkingTimeCalculator):
    """Standard rule: (out - in) - breaks, not below 0; overtime beyond the standard workday."""

    def __init__(self, standard_minutes: int = STANDARD_WORKDAY_MINUTES):
        self._standard_minutes = int(standard_minutes)

    def compute(self, *, check_in: datetime, check_out: datetime, break_minutes: int = 0) -> WorkedTime:
        breaks = max(int(break_minutes or 0), 0)
        working = max(minutes_between(check_in, check_out) - breaks, 0)
        return WorkedTime(
            working_minutes=working,
            break_minutes=breaks,
            overtime_minutes=max(working - self._standard_minutes, 0),
        )
