"""
interviewprep/models/interview.py

Mock interview models. Questions and feedback are produced elsewhere and are
stored as opaque JSON; only `feedback.score` is interpreted here.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict


class Interview(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    user_id: int
    title: Optional[str] = None
    role: str
    interview_type: str
    level: str
    technologies: List[str] = []
    questions: List[Dict[str, Any]] = []
    completed: bool = False
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class InterviewResults(BaseModel):
    interview: Interview
    answered: int
    overall_score: Optional[int] = None
