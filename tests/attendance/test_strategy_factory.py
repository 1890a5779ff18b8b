from datetime import datetime, time

from src.attendance_tracker.attendance_tracker.attendance.factory import PunctualityStrategyFactory
from src.attendance_tracker.attendance_tracker.attendance.strategies.early_leave_strategy import EarlyLeaveStrategy
from src.attendance_tracker.attendance_tracker.attendance.strategies.late_strategy import LateStrategy
from src.attendance_tracker.attendance_tracker.attendance.strategies.normal_strategy import NormalStrategy
from src.attendance_tracker.attendance_tracker.core.enums import Punctuality
from src.attendance_tracker.attendance_tracker.organizations.model import OrganizationSettings


def test_factory_checkin_on_time_within_threshold():
    settings = OrganizationSettings(working_hours_start=time(8, 0), late_threshold_minutes=5)
    now = datetime(2025, 1, 1, 8, 4, 59)

    strategy = PunctualityStrategyFactory().for_checkin(now=now, settings=settings)

    assert isinstance(strategy, NormalStrategy)
    assert strategy.decide_checkin(now=now, settings=settings).punctuality == Punctuality.ON_TIME


def test_factory_checkin_late_after_threshold():
    settings = OrganizationSettings(working_hours_start=time(8, 0), late_threshold_minutes=5)
    now = datetime(2025, 1, 1, 8, 6, 0)

    strategy = PunctualityStrategyFactory().for_checkin(now=now, settings=settings)

    assert isinstance(strategy, LateStrategy)
    decision = strategy.decide_checkin(now=now, settings=settings)
    assert decision.punctuality == Punctuality.LATE
    assert decision.note == "Checked in after 08:00 (+5 min)"


def test_factory_checkout_early_leave_only_for_on_time_sessions():
    settings = OrganizationSettings(working_hours_end=time(17, 0))
    now = datetime(2025, 1, 1, 16, 0)
    factory = PunctualityStrategyFactory()

    early = factory.for_checkout(now=now, settings=settings, opening=Punctuality.ON_TIME)
    assert isinstance(early, EarlyLeaveStrategy)
    assert early.decide_checkout(now=now, settings=settings, opening=Punctuality.ON_TIME).note == "Left before 17:00"

    late = factory.for_checkout(now=now, settings=settings, opening=Punctuality.LATE)
    assert isinstance(late, NormalStrategy)
    assert late.decide_checkout(now=now, settings=settings, opening=Punctuality.LATE).punctuality == Punctuality.LATE


def test_factory_checkout_after_hours_keeps_opening_punctuality():
    settings = OrganizationSettings()
    now = datetime(2025, 1, 1, 17, 0)

    strategy = PunctualityStrategyFactory().for_checkout(now=now, settings=settings, opening=Punctuality.ON_TIME)

    assert isinstance(strategy, NormalStrategy)
