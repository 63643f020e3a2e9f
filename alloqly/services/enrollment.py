"""
Student records and class membership.

Shared by the join-code flow, teacher rosters and student onboarding so
that every path creates students and memberships the same way.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from alloqly.models.database_models import (
    ClassInvitation,
    ClassStudent,
    Classroom,
    InvitationStatus,
    Student,
    utcnow,
)
from alloqly.services.personas import Persona, infer_persona, parse_persona
from alloqly.utils.helpers import normalize_email

logger = logging.getLogger(__name__)

DEFAULT_STUDENT_NAME = "Student"
JOINED_STATUS = "Waiting on upload"


async def get_roster_student(
    db: AsyncSession, teacher_id: str, email: str
) -> Optional[Student]:
    result = await db.execute(
        select(Student).where(
            Student.teacher_id == teacher_id,
            Student.email == normalize_email(email),
        )
    )
    return result.scalar_one_or_none()


async def upsert_roster_student(
    db: AsyncSession,
    teacher_id: str,
    email: str,
    name: Optional[str] = None,
    status: Optional[str] = None,
    user_id: Optional[str] = None,
) -> Student:
    """Create or refresh the teacher's roster entry for *email*."""
    student = await get_roster_student(db, teacher_id, email)
    display_name = (name or "").strip() or DEFAULT_STUDENT_NAME

    if student is None:
        student = Student(
            teacher_id=teacher_id,
            email=normalize_email(email),
            name=display_name,
            status=status,
            user_id=user_id,
            accommodations=[],
        )
        db.add(student)
        await db.flush()
        logger.info("Added student id=%s to roster of teacher=%s", student.id, teacher_id)
        return student

    if name and name.strip():
        student.name = display_name
    if status is not None:
        student.status = status
    if user_id and not student.user_id:
        student.user_id = user_id
    await db.flush()
    return student


async def enroll(db: AsyncSession, class_id: str, student_id: str) -> bool:
    """Link a student to a class. Returns False when the link already existed."""
    existing = await db.get(ClassStudent, (class_id, student_id))
    if existing is not None:
        return False
    db.add(ClassStudent(class_id=class_id, student_id=student_id))
    await db.flush()
    logger.info("Enrolled student=%s in class=%s", student_id, class_id)
    return True


async def is_enrolled(db: AsyncSession, class_id: Optional[str], student_id: str) -> bool:
    if class_id is None:
        return False
    return await db.get(ClassStudent, (class_id, student_id)) is not None


async def roster_for_class(db: AsyncSession, class_id: str) -> List[Student]:
    result = await db.execute(
        select(Student)
        .join(ClassStudent, ClassStudent.student_id == Student.id)
        .where(ClassStudent.class_id == class_id)
        .order_by(Student.name)
    )
    return list(result.scalars().all())


async def student_ids_for_user(db: AsyncSession, user_id: str, email: Optional[str]) -> List[str]:
    """Every student record that belongs to a signed-in student account."""
    conditions = [Student.user_id == user_id]
    if email:
        conditions.append(Student.email == normalize_email(email))
    result = await db.execute(select(Student.id).where(or_(*conditions)))
    return [row[0] for row in result.all()]


async def classes_for_student_user(
    db: AsyncSession, user_id: str, email: Optional[str]
) -> List[Classroom]:
    student_ids = await student_ids_for_user(db, user_id, email)
    if not student_ids:
        return []
    result = await db.execute(
        select(Classroom)
        .join(ClassStudent, ClassStudent.class_id == Classroom.id)
        .where(ClassStudent.student_id.in_(student_ids))
        .distinct()
        .order_by(Classroom.created_at)
    )
    return list(result.scalars().all())


async def ensure_self_student(
    db: AsyncSession,
    user_id: str,
    email: str,
    display_name: Optional[str] = None,
    accommodations: Optional[List[str]] = None,
) -> Student:
    """Create (or refresh) the student record owned by a student account."""
    clean_email = normalize_email(email) if email else ""
    preferred = display_name or (clean_email.split("@")[0] if clean_email else "") or DEFAULT_STUDENT_NAME

    result = await db.execute(
        select(Student).where(Student.user_id == user_id, Student.teacher_id.is_(None))
    )
    student = result.scalar_one_or_none()

    if student is None:
        student = Student(
            user_id=user_id,
            teacher_id=None,
            email=clean_email,
            name=preferred,
            accommodations=[],
        )
        db.add(student)
    else:
        student.email = clean_email or student.email
        student.name = preferred

    if accommodations is not None:
        student.accommodations = list(accommodations)
        student.persona = infer_persona(accommodations).value if accommodations else None

    await db.flush()
    return student


async def claim_invitations(db: AsyncSession, email: str, student_id: str) -> int:
    """Accept every pending invitation addressed to *email*. Returns how many."""
    if not email:
        return 0

    result = await db.execute(
        select(ClassInvitation).where(
            ClassInvitation.status == InvitationStatus.PENDING,
            ClassInvitation.invite_email == normalize_email(email),
        )
    )
    invitations = result.scalars().all()

    now = utcnow()
    for invite in invitations:
        await enroll(db, invite.class_id, student_id)
        invite.status = InvitationStatus.ACCEPTED
        invite.accepted_at = now

    if invitations:
        await db.flush()
        logger.info("Claimed %d invitation(s) for student=%s", len(invitations), student_id)
    return len(invitations)


def resolve_student_persona(student: Student) -> Persona:
    """Stored persona when valid, otherwise inferred from accommodations."""
    inferred = infer_persona(student.accommodations or [])
    return parse_persona(student.persona, default=inferred)
