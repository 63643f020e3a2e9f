"""
Assignment CRUD endpoints.

GET    /api/assignments                 - caller's 25 newest assignments
POST   /api/assignments                 - create an assignment
GET    /api/assignments/{id}            - assignment detail (owner only)
GET    /api/assignments/{id}/variants   - stored persona / per-student variants
DELETE /api/assignments/{id}            - delete assignment (cascades)

File extraction lives in ``routers/extract.py`` under the same prefix.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from alloqly.database import get_db
from alloqly.dependencies.auth import get_current_user_id, get_or_create_user
from alloqly.models.database_models import Assignment, AssignmentVariant, Classroom, User
from alloqly.models.schemas import (
    AssignmentCreateRequest,
    AssignmentEnvelope,
    AssignmentListResponse,
    AssignmentResponse,
    VariantListResponse,
    VariantResponse,
)
from alloqly.services.personas import parse_persona
from alloqly.utils.helpers import clean_optional

logger = logging.getLogger(__name__)

router = APIRouter()

LIST_LIMIT = 25


def assignment_to_response(assignment: Assignment) -> AssignmentResponse:
    return AssignmentResponse(
        id=assignment.id,
        title=assignment.title,
        profile=assignment.persona,
        summary=assignment.summary,
        content=assignment.content,
        description=assignment.description,
        class_id=assignment.class_id,
        due_date=assignment.due_date,
        created_at=assignment.created_at,
    )


def variant_to_response(variant: AssignmentVariant) -> VariantResponse:
    return VariantResponse(
        id=variant.id,
        assignment_id=variant.assignment_id,
        student_id=variant.student_id,
        persona=variant.persona,
        summary=variant.summary,
        accommodations=list(variant.accommodations or []),
        missions=list(variant.missions or []),
        content=variant.content,
        source=variant.source.value,
        created_at=variant.created_at,
    )


async def get_owned_assignment(
    assignment_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Assignment:
    """Return the assignment if the caller wrote it, else raise 404."""
    result = await db.execute(
        select(Assignment).where(
            Assignment.id == assignment_id,
            Assignment.teacher_id == user_id,
        )
    )
    assignment = result.scalar_one_or_none()
    if assignment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Assignment not found.",
        )
    return assignment


@router.get("", response_model=AssignmentListResponse)
async def list_assignments(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> AssignmentListResponse:
    """Return the caller's newest assignments."""
    result = await db.execute(
        select(Assignment)
        .where(Assignment.teacher_id == user_id)
        .order_by(Assignment.created_at.desc())
        .limit(LIST_LIMIT)
    )
    return AssignmentListResponse(
        assignments=[assignment_to_response(a) for a in result.scalars().all()]
    )


@router.post("", response_model=AssignmentEnvelope, status_code=status.HTTP_201_CREATED)
async def create_assignment(
    body: AssignmentCreateRequest,
    user: User = Depends(get_or_create_user),
    db: AsyncSession = Depends(get_db),
) -> AssignmentEnvelope:
    """Save an assignment (optionally attached to one of the caller's classes)."""
    title = (body.title or "").strip()
    if not title or not (body.profile or "").strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing title or profile.",
        )

    try:
        persona = parse_persona(body.profile)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unsupported learner profile.",
        )

    if body.class_id:
        result = await db.execute(
            select(Classroom.id).where(
                Classroom.id == body.class_id,
                Classroom.teacher_id == user.id,
            )
        )
        if result.scalar_one_or_none() is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Class not found.",
            )

    assignment = Assignment(
        teacher_id=user.id,
        class_id=body.class_id or None,
        title=title,
        persona=persona.value,
        summary=clean_optional(body.summary),
        content=clean_optional(body.content),
        description=clean_optional(body.description),
        due_date=body.due_date,
    )
    db.add(assignment)
    await db.flush()

    logger.info("Created assignment id=%s title=%r for user=%s", assignment.id, title, user.id)
    return AssignmentEnvelope(assignment=assignment_to_response(assignment))


@router.get("/{assignment_id}", response_model=AssignmentEnvelope)
async def get_assignment(
    assignment: Assignment = Depends(get_owned_assignment),
) -> AssignmentEnvelope:
    return AssignmentEnvelope(assignment=assignment_to_response(assignment))


@router.get("/{assignment_id}/variants", response_model=VariantListResponse)
async def list_variants(
    assignment: Assignment = Depends(get_owned_assignment),
    db: AsyncSession = Depends(get_db),
) -> VariantListResponse:
    """Every stored variant of the assignment, oldest first."""
    result = await db.execute(
        select(AssignmentVariant)
        .where(AssignmentVariant.assignment_id == assignment.id)
        .order_by(AssignmentVariant.created_at)
    )
    return VariantListResponse(
        variants=[variant_to_response(v) for v in result.scalars().all()]
    )


@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assignment(
    assignment: Assignment = Depends(get_owned_assignment),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Delete an assignment together with its variants and submissions."""
    await db.delete(assignment)
    await db.flush()
    logger.info("Deleted assignment id=%s", assignment.id)
