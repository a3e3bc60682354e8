"""
Day boundaries for usage accounting.

Pure functions of (now, records): "today" is never cached, so callers can pass
a fixed `now` and get the same answer every time.
"""

from datetime import datetime
from typing import Iterable, Optional

from interviewprep.models.usage import UsageRecord


def local_now() -> datetime:
    return datetime.now()


def start_of_day(now: Optional[datetime] = None) -> datetime:
    """`now` truncated to local midnight."""
    now = now or local_now()
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def is_current(record: UsageRecord, now: Optional[datetime] = None) -> bool:
    return record.date >= start_of_day(now)


def select_current_record(now: datetime, records: Iterable[UsageRecord]) -> Optional[UsageRecord]:
    """
    The record that counts for today: the most recent one dated on/after
    midnight (ties broken by the higher id), or None.
    """
    current = [r for r in records if is_current(r, now)]
    if not current:
        return None
    return max(current, key=lambda r: (r.date, r.id))
