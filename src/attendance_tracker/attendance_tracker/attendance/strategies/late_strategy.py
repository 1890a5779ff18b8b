from __future__ import annotations

from datetime import datetime

from ...core.enums import Punctuality
from ...organizations.model import OrganizationSettings
from .base import PunctualityDecision, PunctualityStrategy


class LateStrategy(PunctualityStrategy):
    """Check-in after working-hours start plus the late threshold."""

    def decide_checkin(self, *, now: datetime, settings: OrganizationSettings) -> PunctualityDecision:
        start = settings.working_hours_start.strftime("%H:%M")
        return PunctualityDecision(
            punctuality=Punctuality.LATE,
            note=f"Checked in after {start} (+{settings.late_threshold_minutes} min)",
        )

    def decide_checkout(
        self, *, now: datetime, settings: OrganizationSettings, opening: Punctuality
    ) -> PunctualityDecision:
        return PunctualityDecision(punctuality=opening)
