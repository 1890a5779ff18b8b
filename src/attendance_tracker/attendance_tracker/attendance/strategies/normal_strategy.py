from __future__ import annotations

from datetime import datetime

from ...core.enums import Punctuality
from ...organizations.model import OrganizationSettings
from .base import PunctualityDecision, PunctualityStrategy


class NormalStrategy(PunctualityStrategy):
    """On-time check-in; check-out keeps the punctuality of its check-in."""

    def decide_checkin(self, *, now: datetime, settings: OrganizationSettings) -> PunctualityDecision:
        return PunctualityDecision(punctuality=Punctuality.ON_TIME)

    def decide_checkout(
        self, *, now: datetime, settings: OrganizationSettings, opening: Punctuality
    ) -> PunctualityDecision:
        return PunctualityDecision(punctuality=opening)
