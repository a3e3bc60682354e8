"""
interviewprep/models/plan.py

Subscription plan model.

Plans are reference data (free, pro, premium) seeded once and changed only
through the admin update endpoint. Daily limits live in `features`.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from interviewprep.models.usage import ActionType

UNLIMITED = -1


class PlanFeatures(BaseModel):
    """
    Per-day limits for the three rate-limited actions.

    Each limit is a non-negative integer or -1 (unlimited). Stored as JSON
    with camelCase keys: interviewsPerDay, resultsPerDay, retakesPerDay.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    interviews_per_day: int = Field(3, alias="interviewsPerDay", ge=-1)
    results_per_day: int = Field(3, alias="resultsPerDay", ge=-1)
    retakes_per_day: int = Field(3, alias="retakesPerDay", ge=-1)

    def limit_for(self, action: ActionType) -> int:
        if action is ActionType.INTERVIEWS:
            return self.interviews_per_day
        if action is ActionType.RESULTS:
            return self.results_per_day
        return self.retakes_per_day

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)


class Plan(BaseModel):
    """
    Plan represents a subscription tier.

    Examples:
    - free (default for new users)
    - pro
    - premium (unlimited regardless of the numeric limits)
    """
    model_config = ConfigDict(frozen=True)

    id: int = 0
    name: str
    price: int = 0
    currency: str = "USD"
    interval: str = "month"
    description: Optional[str] = None
    features: PlanFeatures = PlanFeatures()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_premium(self) -> bool:
        return self.name == "premium"
