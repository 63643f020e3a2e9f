"""
Self-enrolment by join code.

POST /api/join-class - a student redeems a code with their e-mail
GET  /api/join-class - a teacher grabs a quick 5-character code
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from alloqly.config import settings
from alloqly.database import get_db
from alloqly.dependencies.auth import get_optional_user_id, teacher_only
from alloqly.models.database_models import Classroom, User
from alloqly.models.schemas import (
    JoinClassRequest,
    JoinClassResponse,
    JoinClassroomRef,
    JoinedStudent,
    QuickCodeClassroomRef,
    QuickCodeResponse,
)
from alloqly.services.enrollment import JOINED_STATUS, enroll, upsert_roster_student
from alloqly.services.join_codes import JoinCodeError, create_join_code, find_valid_code

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_CLASS_NAME = "Homeroom"


@router.post("", response_model=JoinClassResponse)
async def join_class(
    body: JoinClassRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
) -> JoinClassResponse:
    """
    Redeem a join code.

    The student is added to the teacher's roster (or refreshed if already
    there) and linked to the class; repeating the call is harmless. A
    signed-in caller gets their account linked to the roster entry.
    """
    code = (body.code or "").strip()
    email = (body.student_email or "").strip()
    if not code or not email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing class code or student email.",
        )

    join_code = await find_valid_code(db, code)
    if join_code is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired code.",
        )

    classroom = await db.get(Classroom, join_code.class_id)
    if classroom is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired code.",
        )

    # Only link accounts that exist locally; users.id is a foreign key.
    linked_user_id = None
    if user_id is not None and await db.get(User, user_id) is not None:
        linked_user_id = user_id

    student = await upsert_roster_student(
        db,
        teacher_id=classroom.teacher_id,
        email=email,
        name=body.student_name,
        status=JOINED_STATUS,
        user_id=linked_user_id,
    )
    await enroll(db, classroom.id, student.id)

    logger.info("Student %s joined class=%s with code %s", student.email, classroom.id, join_code.code)
    return JoinClassResponse(
        class_id=classroom.id,
        class_code=join_code.code,
        classroom=JoinClassroomRef(
            classroomName=classroom.name,
            teacherId=classroom.teacher_id,
        ),
        student=JoinedStudent(id=student.id, name=student.name, email=student.email),
        expires_at=join_code.expires_at,
    )


@router.get("", response_model=QuickCodeResponse)
async def quick_join_code(
    user: User = Depends(teacher_only()),
    db: AsyncSession = Depends(get_db),
) -> QuickCodeResponse:
    """
    Issue a short code for the teacher's first class.

    A teacher without any class gets a "Homeroom" class created for them.
    """
    result = await db.execute(
        select(Classroom)
        .where(Classroom.teacher_id == user.id)
        .order_by(Classroom.created_at)
        .limit(1)
    )
    classroom = result.scalar_one_or_none()

    if classroom is None:
        classroom = Classroom(teacher_id=user.id, name=DEFAULT_CLASS_NAME)
        db.add(classroom)
        await db.flush()
        logger.info("Created default class id=%s for teacher=%s", classroom.id, user.id)

    try:
        join_code = await create_join_code(
            db,
            classroom.id,
            length=settings.QUICK_JOIN_CODE_LENGTH,
            attempts=settings.QUICK_JOIN_CODE_ATTEMPTS,
        )
    except JoinCodeError as exc:
        logger.error("Quick join code failed for class=%s: %s", classroom.id, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to generate code.",
        )

    return QuickCodeResponse(
        code=join_code.code,
        class_id=classroom.id,
        classroom=QuickCodeClassroomRef(
            classroomName=classroom.name,
            teacher=user.name or user.email,
        ),
        expires_in_minutes=settings.JOIN_CODE_TTL_MINUTES,
    )
