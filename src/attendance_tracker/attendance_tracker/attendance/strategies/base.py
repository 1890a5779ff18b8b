from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ...core.enums import Punctuality
from ...organizations.model import OrganizationSettings


@dataclass(frozen=True)
class PunctualityDecision:
    punctuality: Punctuality
    note: Optional[str] = None


class PunctualityStrategy(ABC):
    """Strategy Pattern: decide how punctual a check-in or check-out is."""

    @abstractmethod
    def decide_checkin(self, *, now: datetime, settings: OrganizationSettings) -> PunctualityDecision:
        raise NotImplementedError

    @abstractmethod
    def decide_checkout(
        self, *, now: datetime, settings: OrganizationSettings, opening: Punctuality
    ) -> PunctualityDecision:
        raise NotImplementedError
