from datetime import date, datetime

from src.attendance_tracker.attendance_tracker.attendance.model import AttendanceEvent
from src.attendance_tracker.attendance_tracker.attendance.state import DayState
from src.attendance_tracker.attendance_tracker.core.enums import EventType

DAY = date(2025, 3, 3)


def _event(event_id, event_type, opened, closed=None):
    return AttendanceEvent(
        event_id=event_id,
        user_id=1,
        organization_id=1,
        work_date=DAY,
        event_type=event_type,
        check_in_time=opened,
        check_out_time=closed,
    )


def test_empty_day_is_absent():
    state = DayState.from_events([])
    assert state.status == "absent"
    assert not state.is_checked_in
    assert not state.is_on_break


def test_open_session_and_break():
    nine = datetime(2025, 3, 3, 9, 0)
    noon = datetime(2025, 3, 3, 12, 0)
    state = DayState.from_events([
        _event(1, EventType.CHECK_IN, nine),
        _event(2, EventType.BREAK_START, noon),
    ])
    assert state.status == "checked-in"
    assert state.is_on_break


def test_equal_timestamps_count_as_closed():
    nine = datetime(2025, 3, 3, 9, 0)
    state = DayState.from_events([
        _event(1, EventType.CHECK_IN, nine),
        _event(2, EventType.CHECK_OUT, nine, nine),
    ])
    assert not state.is_checked_in
    assert state.status == "checked-out"


def test_breaks_from_earlier_sessions_are_not_counted():
    events = [
        _event(1, EventType.CHECK_IN, datetime(2025, 3, 3, 8, 0)),
        _event(2, EventType.BREAK_START, datetime(2025, 3, 3, 10, 0)),
        _event(3, EventType.BREAK_END, datetime(2025, 3, 3, 10, 0), datetime(2025, 3, 3, 10, 30)),
        _event(4, EventType.CHECK_OUT, datetime(2025, 3, 3, 8, 0), datetime(2025, 3, 3, 12, 0)),
        _event(5, EventType.CHECK_IN, datetime(2025, 3, 3, 13, 0)),
        _event(6, EventType.BREAK_START, datetime(2025, 3, 3, 14, 0)),
        _event(7, EventType.BREAK_END, datetime(2025, 3, 3, 14, 0), datetime(2025, 3, 3, 14, 15)),
    ]
    state = DayState.from_events(events)
    assert state.is_checked_in
    assert not state.is_on_break
    assert state.session_break_minutes == 15
