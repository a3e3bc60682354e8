"""
Interview service.

The three rate-limited flows live here:
- create_interview  -> gate "interviews"
- view_results      -> gate "results"
- retake_interview  -> gate "retakes" (and "interviews" for the new interview)

Each flow checks the quota before acting and increments it after the action
succeeded. Question generation and scoring happen upstream; questions arrive
as JSON and only `feedback.score` is read back.
"""

import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional
from sqlalchemy import select, insert, update

from interviewprep.core.database import get_db_session, interviews
from interviewprep.core.errors import ConflictError, NotFoundError, QuotaExceededError, ValidationError
from interviewprep.core.retry import RetryPolicy, retry_with_backoff
from interviewprep.features.usage.clock import local_now
from interviewprep.features.usage.service import get_action_status, increment_usage
from interviewprep.models.interview import Interview, InterviewResults
from interviewprep.models.usage import ActionType

logger = logging.getLogger(__name__)

INTERVIEW_READ_POLICY = RetryPolicy(max_retries=3, initial_delay=0.3, max_delay=2.0)

LIMIT_MESSAGES = {
    ActionType.INTERVIEWS: "You have reached your daily limit for creating interviews. Upgrade your plan for more.",
    ActionType.RESULTS: "You have reached your daily limit for viewing results. Upgrade your plan for more.",
    ActionType.RETAKES: "You've reached your daily limit for interview retakes. Upgrade your plan for more.",
}


def _row_to_interview(row) -> Interview:
    return Interview(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        role=row.role,
        interview_type=row.type,
        level=row.level,
        technologies=list(row.technologies or []),
        questions=list(row.questions or []),
        completed=bool(row.completed),
        created_at=row.created_at,
        completed_at=row.completed_at,
    )


async def _require_quota(user_id: int, action: ActionType, now: datetime) -> None:
    status = await get_action_status(user_id, action, now)
    if not status.allowed:
        logger.info(
            "quota.blocked",
            extra={"user_id": user_id, "action": action.value, "plan": status.plan, "current": status.usage.current},
        )
        raise QuotaExceededError(
            LIMIT_MESSAGES[action],
            action=action.value,
            plan=status.plan,
            current=status.usage.current,
            limit=status.usage.limit,
        )


async def create_interview(
    user_id: int,
    role: str,
    interview_type: str,
    level: str,
    technologies: List[str],
    questions: List[Dict[str, Any]],
    title: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Interview:
    """
    Create an interview if today's "interviews" quota allows it.

    Raises:
        ValidationError: If role/type/level are empty or there are no questions
        QuotaExceededError: If the user reached the daily limit
    """
    if not role or not interview_type or not level:
        raise ValidationError("role, interview_type and level are required")
    if not questions:
        raise ValidationError("At least one question is required")

    now = now or local_now()
    await _require_quota(user_id, ActionType.INTERVIEWS, now)

    with get_db_session() as session:
        result = session.execute(
            insert(interviews).values(
                user_id=user_id,
                title=title or f"{role} Interview",
                role=role,
                type=interview_type,
                level=level,
                technologies=list(technologies or []),
                questions=questions,
                completed=False,
                created_at=now,
            )
        )
        interview_id = result.inserted_primary_key[0]
        row = session.execute(select(interviews).where(interviews.c.id == interview_id)).first()
        interview = _row_to_interview(row)

    await increment_usage(user_id, ActionType.INTERVIEWS, now)
    logger.info("interviews.created", extra={"user_id": user_id, "interview_id": interview.id})
    return interview


def _select_interview(interview_id: int, user_id: int) -> Optional[Interview]:
    with get_db_session() as session:
        row = session.execute(
            select(interviews)
            .where(interviews.c.id == interview_id)
            .where(interviews.c.user_id == user_id)
        ).first()
        return _row_to_interview(row) if row else None


async def get_interview(interview_id: int, user_id: int) -> Optional[Interview]:
    """Owner-scoped read. None when absent or unreadable."""

    async def _query() -> Optional[Interview]:
        return _select_interview(interview_id, user_id)

    def _on_retry(error: BaseException, attempt: int) -> None:
        logger.warning(f"Retry attempt {attempt} for get_interview due to: {error}")

    try:
        return await retry_with_backoff(_query, policy=INTERVIEW_READ_POLICY, on_retry=_on_retry)
    except Exception as e:
        logger.error(f"Error getting interview {interview_id}: {e}")
        return None


def complete_interview(
    interview_id: int,
    user_id: int,
    questions: List[Dict[str, Any]],
    now: Optional[datetime] = None,
) -> Interview:
    """Store answered questions (with feedback) and mark the interview completed."""
    now = now or local_now()
    with get_db_session() as session:
        result = session.execute(
            update(interviews)
            .where(interviews.c.id == interview_id)
            .where(interviews.c.user_id == user_id)
            .values(questions=questions, completed=True, completed_at=now)
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Interview {interview_id} not found")
        row = session.execute(select(interviews).where(interviews.c.id == interview_id)).first()
    return _row_to_interview(row)


def overall_score(questions: List[Dict[str, Any]]) -> Optional[int]:
    """Mean of feedback scores over answered questions, halves rounded up."""
    scores = [
        (q.get("feedback") or {}).get("score") or 0
        for q in questions
        if q.get("feedback")
    ]
    if not scores:
        return None
    mean = Decimal(sum(scores)) / Decimal(len(scores))
    return int(mean.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


async def view_results(interview_id: int, user_id: int, now: Optional[datetime] = None) -> InterviewResults:
    """
    Results of a completed interview, counted against the "results" quota.

    Raises:
        NotFoundError: If the interview does not exist for this user
        ConflictError: If the interview is not completed yet
        QuotaExceededError: If the user reached the daily limit
    """
    now = now or local_now()
    interview = await get_interview(interview_id, user_id)
    if interview is None:
        raise NotFoundError(f"Interview {interview_id} not found")
    if not interview.completed:
        raise ConflictError("Interview is not completed yet")

    await _require_quota(user_id, ActionType.RESULTS, now)
    await increment_usage(user_id, ActionType.RESULTS, now)

    answered = [q for q in interview.questions if q.get("feedback")]
    return InterviewResults(
        interview=interview,
        answered=len(answered),
        overall_score=overall_score(interview.questions),
    )


async def retake_interview(
    interview_id: int,
    user_id: int,
    questions: List[Dict[str, Any]],
    now: Optional[datetime] = None,
) -> Interview:
    """
    Start a new interview with the settings of an existing one.

    Consumes one "retakes" unit; the new interview also goes through the
    "interviews" gate.

    Raises:
        NotFoundError: If the source interview does not exist for this user
        QuotaExceededError: If either daily limit is reached
    """
    now = now or local_now()
    source = await get_interview(interview_id, user_id)
    if source is None:
        raise NotFoundError(f"Interview {interview_id} not found")

    await _require_quota(user_id, ActionType.RETAKES, now)

    retake = await create_interview(
        user_id=user_id,
        role=source.role,
        interview_type=source.interview_type,
        level=source.level,
        technologies=source.technologies,
        questions=questions,
        title=f"{source.role} Interview (Retake)",
        now=now,
    )

    await increment_usage(user_id, ActionType.RETAKES, now)
    return retake
