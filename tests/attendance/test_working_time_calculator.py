from datetime import datetime

from src.attendance_tracker.attendance_tracker.attendance.calculator.standard_calculator import (
    StandardWorkingTimeCalculator,
)


def test_standard_calculator_subtracts_break():
    calc = StandardWorkingTimeCalculator()
    worked = calc.compute(
        check_in=datetime(2025, 1, 1, 8, 0),
        check_out=datetime(2025, 1, 1, 17, 0),
        break_minutes=60,
    )
    assert worked.working_minutes == 8 * 60
    assert worked.break_minutes == 60
    assert worked.overtime_minutes == 0


def test_standard_calculator_counts_overtime_beyond_workday():
    worked = StandardWorkingTimeCalculator().compute(
        check_in=datetime(2025, 1, 1, 8, 0),
        check_out=datetime(2025, 1, 1, 20, 0),
        break_minutes=120,
    )
    assert worked.working_minutes == 600
    assert worked.overtime_minutes == 120


def test_standard_calculator_never_goes_negative():
    worked = StandardWorkingTimeCalculator().compute(
        check_in=datetime(2025, 1, 1, 9, 0),
        check_out=datetime(2025, 1, 1, 9, 30),
        break_minutes=45,
    )
    assert worked.working_minutes == 0
    assert worked.overtime_minutes == 0


def test_custom_standard_workday():
    worked = StandardWorkingTimeCalculator(standard_minutes=6 * 60).compute(
        check_in=datetime(2025, 1, 1, 9, 0),
        check_out=datetime(2025, 1, 1, 16, 0),
    )
    assert worked.overtime_minutes == 60
