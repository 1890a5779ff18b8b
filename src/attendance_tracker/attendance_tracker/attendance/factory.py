from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from ..core.enums import Punctuality
from ..organizations.model import OrganizationSettings
from .strategies.base import PunctualityStrategy
from .strategies.early_leave_strategy import EarlyLeaveStrategy
from .strategies.late_strategy import LateStrategy
from .strategies.normal_strategy import NormalStrategy


@dataclass
class PunctualityStrategyFactory:
    """Factory Pattern: choose the punctuality strategy from the organization's working hours."""

    def for_checkin(self, *, now: datetime, settings: OrganizationSettings) -> PunctualityStrategy:
        start = datetime.combine(now.date(), settings.working_hours_start)
        if now > start + timedelta(minutes=settings.late_threshold_minutes):
            return LateStrategy()
        return NormalStrategy()

    def for_checkout(
        self, *, now: datetime, settings: OrganizationSettings, opening: Punctuality
    ) -> PunctualityStrategy:
        end = datetime.combine(now.date(), settings.working_hours_end)
        if now < end and opening == Punctuality.ON_TIME:
            return EarlyLeaveStrategy()
        return NormalStrategy()
