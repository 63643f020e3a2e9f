"""
AI grading.

POST /api/grade - score a submission against a rubric and return feedback.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from alloqly.database import get_db
from alloqly.dependencies.auth import get_optional_user_id
from alloqly.models.database_models import Assignment, Submission, utcnow
from alloqly.models.schemas import GradeRequest, GradeResponse, RubricRow
from alloqly.services.grader import Grader, GradingError
from alloqly.services.llm_client import ChatCompletionService, get_llm_service

logger = logging.getLogger(__name__)

router = APIRouter()

GRADED_STATUS = "Graded"


async def _owned_submission(
    db: AsyncSession, submission_id: str, user_id: Optional[str]
) -> Submission:
    """The submission, if it answers an assignment the caller owns."""
    submission = None
    if user_id is not None:
        result = await db.execute(
            select(Submission)
            .join(Assignment, Assignment.id == Submission.assignment_id)
            .where(Submission.id == submission_id, Assignment.teacher_id == user_id)
        )
        submission = result.scalar_one_or_none()
    if submission is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Submission not found.",
        )
    return submission


@router.post("", response_model=GradeResponse)
async def grade_submission(
    body: GradeRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    llm: ChatCompletionService = Depends(get_llm_service),
    db: AsyncSession = Depends(get_db),
) -> GradeResponse:
    """
    Grade a piece of student work.

    With ``submission_id`` the result is also written back to the stored
    submission (score, feedback, graded flag, status ``Graded``).
    """
    if not isinstance(body.submission, str) or not body.submission.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing submission text.",
        )

    submission: Optional[Submission] = None
    if body.submission_id:
        submission = await _owned_submission(db, body.submission_id, user_id)

    try:
        result = await Grader(llm).grade(
            body.submission, body.assignment, body.learner_profile
        )
    except GradingError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)

    response = GradeResponse(
        score=result.score,
        rubric=[RubricRow(**row) for row in result.rubric],
        summary=result.summary,
        next_steps=result.next_steps,
        source="openai",
    )

    if submission is not None:
        submission.score = result.score
        submission.feedback = result.feedback()
        submission.graded = True
        submission.status = GRADED_STATUS
        submission.graded_at = utcnow()
        await db.flush()
        response.submission_id = submission.id
        logger.info("Graded submission id=%s score=%.1f", submission.id, result.score)

    return response
