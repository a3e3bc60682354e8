"""
Interview API.

Creation, results and retakes are quota gated; a blocked request gets a 403
`quota_exceeded` error carrying the plan and usage numbers.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from interviewprep.core.auth import get_current_user_id
from interviewprep.core.errors import NotFoundError
from interviewprep.features.interviews.service import (
    complete_interview,
    create_interview,
    get_interview,
    retake_interview,
    view_results,
)
from interviewprep.models.interview import Interview, InterviewResults

router = APIRouter(prefix="/v1/interviews", tags=["interviews"])


class CreateInterviewRequest(BaseModel):
    role: str
    type: str
    level: str
    technologies: List[str] = []
    questions: List[Dict[str, Any]] = Field(default_factory=list)
    title: Optional[str] = None


class QuestionsRequest(BaseModel):
    questions: List[Dict[str, Any]]


@router.post("", response_model=Interview, status_code=201)
async def create(body: CreateInterviewRequest, user_id: int = Depends(get_current_user_id)):
    return await create_interview(
        user_id=user_id,
        role=body.role,
        interview_type=body.type,
        level=body.level,
        technologies=body.technologies,
        questions=body.questions,
        title=body.title,
    )


@router.get("/{interview_id}", response_model=Interview)
async def read(interview_id: int, user_id: int = Depends(get_current_user_id)):
    interview = await get_interview(interview_id, user_id)
    if interview is None:
        raise NotFoundError(f"Interview {interview_id} not found")
    return interview


@router.post("/{interview_id}/complete", response_model=Interview)
def complete(interview_id: int, body: QuestionsRequest, user_id: int = Depends(get_current_user_id)):
    return complete_interview(interview_id, user_id, body.questions)


@router.get("/{interview_id}/results", response_model=InterviewResults)
async def results(interview_id: int, user_id: int = Depends(get_current_user_id)):
    return await view_results(interview_id, user_id)


@router.post("/{interview_id}/retake", response_model=Interview, status_code=201)
async def retake(interview_id: int, body: QuestionsRequest, user_id: int = Depends(get_current_user_id)):
    return await retake_interview(interview_id, user_id, body.questions)
