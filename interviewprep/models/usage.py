"""
interviewprep/models/usage.py

Daily usage accounting models.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Union
from pydantic import BaseModel, ConfigDict


class ActionType(str, Enum):
    """Rate-limited actions and the counter each one consumes."""
    INTERVIEWS = "interviews"
    RESULTS = "results"
    RETAKES = "retakes"

    @property
    def counter(self) -> str:
        return _COUNTERS[self]


_COUNTERS = {
    ActionType.INTERVIEWS: "interviews_used",
    ActionType.RESULTS: "results_viewed",
    ActionType.RETAKES: "retakes_done",
}


class UsageRecord(BaseModel):
    """
    One user's counters for one calendar day.

    `date` is local midnight of the day the record belongs to. A record with
    id == 0 is synthetic: it was never stored and stands in for "nothing
    consumed" when the store could not be read or written.
    """
    model_config = ConfigDict(frozen=True)

    id: int
    user_id: int
    date: datetime
    interviews_used: int = 0
    results_viewed: int = 0
    retakes_done: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def empty(cls, user_id: int, now: datetime) -> "UsageRecord":
        return cls(id=0, user_id=user_id, date=now, created_at=now, updated_at=now)

    @property
    def is_synthetic(self) -> bool:
        return self.id == 0

    def count_for(self, action: ActionType) -> int:
        return getattr(self, action.counter) or 0


class UsageSnapshot(BaseModel):
    current: int
    limit: Union[int, str]  # "unlimited" for -1


class ActionStatus(BaseModel):
    """What a caller needs to render an allow/upgrade decision."""
    allowed: bool
    plan: str
    usage: UsageSnapshot
    error: Optional[str] = None
