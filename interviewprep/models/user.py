from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class User(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    name: Optional[str] = None
    subscription_plan: Optional[str] = "free"
    subscription_status: Optional[str] = "active"
    created_at: Optional[datetime] = None

    @property
    def plan_name(self) -> str:
        return self.subscription_plan or "free"
