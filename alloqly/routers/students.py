"""
Teacher roster endpoints.

GET   /api/students  - caller's roster (50 newest); sample roster in demo mode
POST  /api/students  - add a student to the caller's roster
PATCH /api/students  - update a roster student's status
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from alloqly.database import get_db
from alloqly.dependencies.auth import get_optional_user, get_optional_user_id
from alloqly.models.database_models import Student, User
from alloqly.models.schemas import (
    StudentCreateRequest,
    StudentEnvelope,
    StudentListResponse,
    StudentResponse,
    StudentStatusUpdate,
)
from alloqly.services.enrollment import JOINED_STATUS, get_roster_student
from alloqly.services.personas import Persona, infer_persona, parse_persona
from alloqly.utils.helpers import clean_optional, normalize_email

logger = logging.getLogger(__name__)

router = APIRouter()

SAMPLE_STUDENTS = [
    StudentResponse(
        id="demo-1",
        name="Jordan Li",
        email="jordan.li@classroom.edu",
        profile=Persona.ADHD.value,
        status="On track",
    ),
    StudentResponse(
        id="demo-2",
        name="Aria Patel",
        email="aria.patel@classroom.edu",
        profile=Persona.AUTISM.value,
        status="Needs nudge",
    ),
]


def student_to_response(student: Student) -> StudentResponse:
    return StudentResponse(
        id=student.id,
        name=student.name,
        email=student.email,
        profile=student.persona,
        accommodations=list(student.accommodations or []),
        status=student.status,
        created_at=student.created_at,
    )


@router.get("", response_model=StudentListResponse)
async def list_students(
    user_id: Optional[str] = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
) -> StudentListResponse:
    """Return the caller's roster, or sample students when unauthenticated."""
    if user_id is None:
        return StudentListResponse(students=SAMPLE_STUDENTS, source="fallback")

    result = await db.execute(
        select(Student)
        .where(Student.teacher_id == user_id)
        .order_by(Student.created_at.desc())
        .limit(50)
    )
    students = [student_to_response(s) for s in result.scalars().all()]
    return StudentListResponse(students=students, source="supabase")


@router.post("", response_model=StudentEnvelope)
async def add_student(
    body: StudentCreateRequest,
    response: Response,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
) -> StudentEnvelope:
    """
    Add a student to the caller's roster.

    The persona comes from ``profile`` when it names a known persona,
    otherwise it is inferred from the accommodations.
    """
    name = (body.name or "").strip()
    email = (body.email or "").strip()
    if not name or not email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing name or email.",
        )

    persona = parse_persona(body.profile, default=infer_persona(body.accommodations))

    if user is None:
        return StudentEnvelope(
            student={
                "id": "demo-fallback",
                "name": name,
                "email": email,
                "profile": persona.value,
                "status": body.status or JOINED_STATUS,
            },
            source="fallback",
        )

    if await get_roster_student(db, user.id, email) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A student with this email is already on your roster.",
        )

    student = Student(
        teacher_id=user.id,
        email=normalize_email(email),
        name=name,
        persona=persona.value,
        accommodations=list(body.accommodations),
        status=clean_optional(body.status),
    )
    db.add(student)
    await db.flush()
    logger.info("Added student id=%s (%s) for teacher=%s", student.id, persona.value, user.id)

    response.status_code = status.HTTP_201_CREATED
    return StudentEnvelope(
        student=student_to_response(student).model_dump(mode="json"),
        source="supabase",
    )


@router.patch("", response_model=StudentEnvelope)
async def update_student_status(
    body: StudentStatusUpdate,
    user_id: Optional[str] = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
) -> StudentEnvelope:
    """Update the status label of a student on the caller's roster."""
    if not body.id or not body.status:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing id or status.",
        )

    if user_id is None:
        return StudentEnvelope(
            student={"id": body.id, "status": body.status},
            source="fallback",
        )

    result = await db.execute(
        select(Student).where(Student.id == body.id, Student.teacher_id == user_id)
    )
    student = result.scalar_one_or_none()
    if student is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Student not found.",
        )

    student.status = body.status.strip()
    await db.flush()
    logger.info("Student id=%s status -> %r", student.id, student.status)

    return StudentEnvelope(
        student=student_to_response(student).model_dump(mode="json"),
        source="supabase",
    )
