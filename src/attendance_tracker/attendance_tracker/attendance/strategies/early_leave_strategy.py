from __future__ import annotations

from datetime import datetime

from ...core.enums import Punctuality
from ...organizations.model import OrganizationSettings
from .base import PunctualityDecision, PunctualityStrategy


class EarlyLeaveStrategy(PunctualityStrategy):
    """Check-out before working-hours end (only after an on-time check-in)."""

    def decide_checkin(self, *, now: datetime, settings: OrganizationSettings) -> PunctualityDecision:
        return PunctualityDecision(punctuality=Punctuality.UNKNOWN)

    def decide_checkout(
        self, *, now: datetime, settings: OrganizationSettings, opening: Punctuality
    ) -> PunctualityDecision:
        end = settings.working_hours_end.strftime("%H:%M")
        return PunctualityDecision(punctuality=Punctuality.EARLY_LEAVE, note=f"Left before {end}")
