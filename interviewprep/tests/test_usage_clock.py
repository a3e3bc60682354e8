from datetime import datetime, timedelta

from interviewprep.features.usage.clock import is_current, select_current_record, start_of_day
from interviewprep.models.usage import UsageRecord


def _record(id, date):
    return UsageRecord(id=id, user_id=1, date=date)


def test_start_of_day_truncates_to_midnight():
    now = datetime(2026, 10, 19, 23, 59, 59, 999999)
    assert start_of_day(now) == datetime(2026, 10, 19)


def test_is_current_uses_midnight_boundary():
    now = datetime(2026, 10, 19, 0, 0, 1)
    assert is_current(_record(1, datetime(2026, 10, 19)), now)
    assert not is_current(_record(1, datetime(2026, 10, 18, 23, 59, 59)), now)


def test_no_current_record_when_all_are_older():
    now = datetime(2026, 10, 19, 12)
    records = [_record(1, now - timedelta(days=1)), _record(2, now - timedelta(days=7))]
    assert select_current_record(now, records) is None
    assert select_current_record(now, []) is None


def test_latest_record_wins_and_ties_go_to_higher_id():
    now = datetime(2026, 10, 19, 12)
    midnight = start_of_day(now)
    records = [
        _record(1, midnight - timedelta(days=1)),
        _record(2, midnight),
        _record(5, midnight),
        _record(3, midnight),
    ]
    assert select_current_record(now, records).id == 5


def test_selection_is_stable_for_a_fixed_now():
    now = datetime(2026, 10, 19, 12)
    records = [_record(i, start_of_day(now)) for i in range(1, 4)]
    assert select_current_record(now, records) == select_current_record(now, list(reversed(records)))
