"""
Student work submissions.

GET  /api/submissions - teacher: submissions to own assignments; student: own work
POST /api/submissions - submit work for an assignment

Both fall back to sample data when the request carries no identity.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from alloqly.database import get_db
from alloqly.dependencies.auth import get_optional_user
from alloqly.models.database_models import (
    Assignment,
    Profile,
    Student,
    Submission,
    User,
    UserRole,
    utcnow,
)
from alloqly.models.schemas import (
    SubmissionCreateRequest,
    SubmissionEnvelope,
    SubmissionListResponse,
    SubmissionResponse,
)
from alloqly.services.enrollment import is_enrolled, student_ids_for_user

logger = logging.getLogger(__name__)

router = APIRouter()

LIST_LIMIT = 50
DEFAULT_STATUS = "Submitted"


def _sample_submissions() -> list:
    return [
        SubmissionResponse(
            id="sub-1",
            assignment_id="demo-1",
            student_id="demo-1",
            content="Recorded 90-word reflection with timer assist.",
            status=DEFAULT_STATUS,
            created_at=utcnow(),
        )
    ]


def submission_to_response(submission: Submission) -> SubmissionResponse:
    return SubmissionResponse(
        id=submission.id,
        assignment_id=submission.assignment_id,
        student_id=submission.student_id,
        content=submission.content,
        status=submission.status,
        score=submission.score,
        graded=submission.graded,
        feedback=submission.feedback,
        created_at=submission.created_at,
    )


async def _may_submit(
    db: AsyncSession, user: User, assignment: Assignment, student: Student
) -> bool:
    """
    The assignment owner may submit for their own roster students or anyone
    enrolled in the assignment's class. A student may submit only under one
    of their own records, and only for an assignment of a class that record
    is enrolled in.
    """
    enrolled = await is_enrolled(db, assignment.class_id, student.id)
    if assignment.teacher_id == user.id:
        return student.teacher_id == user.id or enrolled
    return enrolled and student.id in await student_ids_for_user(db, user.id, user.email)


@router.get("", response_model=SubmissionListResponse)
async def list_submissions(
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
) -> SubmissionListResponse:
    """Newest submissions visible to the caller."""
    if user is None:
        return SubmissionListResponse(submissions=_sample_submissions(), source="fallback")

    profile = await db.get(Profile, user.id)
    query = select(Submission).order_by(Submission.created_at.desc()).limit(LIST_LIMIT)

    if profile is not None and profile.role == UserRole.TEACHER:
        query = query.join(Assignment, Assignment.id == Submission.assignment_id).where(
            Assignment.teacher_id == user.id
        )
    else:
        student_ids = await student_ids_for_user(db, user.id, user.email)
        if not student_ids:
            return SubmissionListResponse(submissions=[], source="supabase")
        query = query.where(Submission.student_id.in_(student_ids))

    result = await db.execute(query)
    return SubmissionListResponse(
        submissions=[submission_to_response(s) for s in result.scalars().all()],
        source="supabase",
    )


@router.post("", response_model=SubmissionEnvelope)
async def create_submission(
    body: SubmissionCreateRequest,
    response: Response,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
) -> SubmissionEnvelope:
    """
    Store a submission.

    The caller must either own the assignment or be the student the
    submission is for.
    """
    content = (body.content or "").strip()
    if not body.assignment_id or not body.student_id or not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing assignment_id, student_id, or content.",
        )

    submission_status = (body.status or "").strip() or DEFAULT_STATUS

    if user is None:
        return SubmissionEnvelope(
            submission=SubmissionResponse(
                id="sub-fallback",
                assignment_id=body.assignment_id,
                student_id=body.student_id,
                content=content,
                status=submission_status,
                created_at=utcnow(),
            ),
            source="fallback",
        )

    assignment = await db.get(Assignment, body.assignment_id)
    if assignment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Assignment not found.",
        )

    student = await db.get(Student, body.student_id)
    if student is None or not await _may_submit(db, user, assignment, student):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Student not found.",
        )

    submission = Submission(
        assignment_id=assignment.id,
        student_id=student.id,
        content=content,
        status=submission_status,
        graded=False,
    )
    db.add(submission)
    await db.flush()

    logger.info(
        "Stored submission id=%s assignment=%s student=%s",
        submission.id,
        assignment.id,
        student.id,
    )
    response.status_code = status.HTTP_201_CREATED
    return SubmissionEnvelope(submission=submission_to_response(submission), source="supabase")
