from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class WorkedTime:
    working_minutes: int
    break_minutes: int
    overtime_minutes: int


class WorkingTimeCalculator(ABC):
    """Calculator interface (Strategy Pattern for worked time)."""

    @abstractmethod
    def compute(self, *, check_in: datetime, check_out: datetime, break_minutes: int = 0) -> WorkedTime:
        raise NotImplementedError
