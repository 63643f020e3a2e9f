"""
Onboarding profile endpoints.

GET  /api/profile         - caller's profile (null before onboarding)
POST /api/profile         - create / update the profile (onboarding)
GET  /api/profile/export  - download everything stored about the caller
POST /api/profile/delete  - delete the account and its data
"""
import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from alloqly.database import get_db
from alloqly.dependencies.auth import get_or_create_user, get_profile
from alloqly.models.database_models import (
    Assignment,
    ClassStudent,
    Classroom,
    Profile,
    Student,
    Submission,
    User,
    UserRole,
    utcnow,
)
from alloqly.models.schemas import (
    DeleteAccountRequest,
    ProfileEnvelope,
    ProfilePayload,
    ProfileResponse,
)
from alloqly.services.enrollment import (
    claim_invitations,
    ensure_self_student,
    student_ids_for_user,
)
from alloqly.services.supabase_admin import (
    SupabaseAdmin,
    SupabaseAdminError,
    get_supabase_admin,
)
from alloqly.utils.helpers import clean_optional

logger = logging.getLogger(__name__)

router = APIRouter()


def profile_to_response(profile: Profile) -> ProfileResponse:
    return ProfileResponse(
        id=profile.id,
        role=profile.role.value,
        school_name=profile.school_name,
        district=profile.district,
        subjects=list(profile.subjects or []),
        grades_taught=list(profile.grades_taught or []),
        grade_level=profile.grade_level,
        preferred_grading_scale=profile.preferred_grading_scale,
        accommodations=dict(profile.accommodations or {}),
        is_onboarded=profile.is_onboarded,
        created_at=profile.created_at,
        updated_at=profile.updated_at,
    )


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def _validate(body: ProfilePayload) -> UserRole:
    """Check the onboarding form in the order the client shows the fields."""
    if body.role not in (UserRole.TEACHER.value, UserRole.STUDENT.value):
        raise _bad_request("Select teacher or student.")
    role = UserRole(body.role)

    if not (body.school_name or "").strip():
        raise _bad_request("Enter your school name.")
    if role == UserRole.TEACHER and not (body.district or "").strip():
        raise _bad_request("District is required for teachers.")
    if role == UserRole.STUDENT and not (body.grade_level or "").strip():
        raise _bad_request("Grade level is required for students.")
    if role == UserRole.TEACHER and not body.subjects:
        raise _bad_request("Select at least one subject you teach.")
    return role


@router.get("", response_model=ProfileEnvelope)
async def get_my_profile(
    profile: Optional[Profile] = Depends(get_profile),
) -> ProfileEnvelope:
    return ProfileEnvelope(profile=profile_to_response(profile) if profile else None)


@router.post("", response_model=ProfileEnvelope)
async def save_profile(
    body: ProfilePayload,
    user: User = Depends(get_or_create_user),
    db: AsyncSession = Depends(get_db),
) -> ProfileEnvelope:
    """
    Onboard the caller as a teacher or a student.

    Teacher-only fields are cleared for students and vice versa. Students
    also get their own student record, and any pending class invitations
    sent to their e-mail are accepted.
    """
    role = _validate(body)
    is_teacher = role == UserRole.TEACHER
    accommodations = body.accommodations
    selections = list(accommodations.selections) if accommodations else []

    fields: Dict[str, Any] = {
        "role": role,
        "school_name": body.school_name.strip(),
        "district": clean_optional(body.district) if is_teacher else None,
        "subjects": list(body.subjects or []) if is_teacher else [],
        "grades_taught": list(body.grades_taught or []) if is_teacher else [],
        "grade_level": None if is_teacher else clean_optional(body.grade_level),
        "preferred_grading_scale": clean_optional(body.preferred_grading_scale) if is_teacher else None,
        "accommodations": {
            "selections": selections,
            "notes": accommodations.notes if accommodations else "",
        },
        "is_onboarded": True,
    }

    profile = await db.get(Profile, user.id)
    if profile is None:
        profile = Profile(id=user.id, **fields)
        db.add(profile)
    else:
        for key, value in fields.items():
            setattr(profile, key, value)
        profile.updated_at = utcnow()
    await db.flush()
    logger.info("Saved %s profile for user=%s", role.value, user.id)

    if not is_teacher:
        student = await ensure_self_student(
            db,
            user_id=user.id,
            email=user.email,
            display_name=user.name,
            accommodations=selections,
        )
        await claim_invitations(db, user.email, student.id)

    return ProfileEnvelope(profile=profile_to_response(profile))


# ─── Export ───────────────────────────────────────────────────────────────────

def _class_row(classroom: Classroom) -> Dict[str, Any]:
    return {
        "id": classroom.id,
        "name": classroom.name,
        "section": classroom.section,
        "description": classroom.description,
        "created_at": classroom.created_at,
    }


def _submission_row(submission: Submission) -> Dict[str, Any]:
    return {
        "id": submission.id,
        "assignment_id": submission.assignment_id,
        "student_id": submission.student_id,
        "status": submission.status,
        "score": submission.score,
        "graded": submission.graded,
        "feedback": submission.feedback,
        "created_at": submission.created_at,
    }


async def _teacher_export(db: AsyncSession, user_id: str) -> Dict[str, Any]:
    classes = await db.execute(
        select(Classroom).where(Classroom.teacher_id == user_id).order_by(Classroom.created_at)
    )
    assignments = await db.execute(
        select(Assignment).where(Assignment.teacher_id == user_id).order_by(Assignment.created_at)
    )
    submissions = await db.execute(
        select(Submission)
        .join(Assignment, Assignment.id == Submission.assignment_id)
        .where(Assignment.teacher_id == user_id)
        .order_by(Submission.created_at.desc())
    )
    return {
        "classes": [_class_row(c) for c in classes.scalars().all()],
        "assignments": [
            {
                "id": a.id,
                "title": a.title,
                "description": a.description,
                "due_date": a.due_date,
                "class_id": a.class_id,
                "created_at": a.created_at,
            }
            for a in assignments.scalars().all()
        ],
        "submissions": [_submission_row(s) for s in submissions.scalars().all()],
    }


async def _student_export(db: AsyncSession, user: User) -> Dict[str, Any]:
    result = await db.execute(
        select(Student).where(Student.user_id == user.id, Student.teacher_id.is_(None))
    )
    record = result.scalar_one_or_none()
    student_ids = await student_ids_for_user(db, user.id, user.email)

    classes: List[Classroom] = []
    submissions: List[Submission] = []
    if student_ids:
        class_result = await db.execute(
            select(Classroom)
            .join(ClassStudent, ClassStudent.class_id == Classroom.id)
            .where(ClassStudent.student_id.in_(student_ids))
            .distinct()
        )
        classes = list(class_result.scalars().all())
        submission_result = await db.execute(
            select(Submission)
            .where(Submission.student_id.in_(student_ids))
            .order_by(Submission.created_at.desc())
        )
        submissions = list(submission_result.scalars().all())

    return {
        "student": (
            {"id": record.id, "name": record.name, "email": record.email} if record else None
        ),
        "classes": [_class_row(c) for c in classes],
        "submissions": [_submission_row(s) for s in submissions],
    }


@router.get("/export")
async def export_profile(
    user: User = Depends(get_or_create_user),
    profile: Optional[Profile] = Depends(get_profile),
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    """Everything stored about the caller, served as a JSON download."""
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profile not found.",
        )

    payload: Dict[str, Any] = {
        "generated_at": utcnow(),
        "profile": profile_to_response(profile),
    }
    if profile.role == UserRole.TEACHER:
        payload.update(await _teacher_export(db, user.id))
    else:
        payload.update(await _student_export(db, user))

    filename = f"alloqly-export-{int(time.time() * 1000)}.json"
    logger.info("Exported data for user=%s", user.id)
    return JSONResponse(
        content=jsonable_encoder(payload),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ─── Delete ───────────────────────────────────────────────────────────────────

@router.post("/delete")
async def delete_account(
    body: Optional[DeleteAccountRequest] = None,
    user: User = Depends(get_or_create_user),
    admin: Optional[SupabaseAdmin] = Depends(get_supabase_admin),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, bool]:
    """
    Permanently delete the caller's account.

    Removes the caller's student records (own and rostered), their
    memberships and submissions, then the user row, which cascades to the
    profile, classes and assignments. The Supabase auth user is deleted
    too when the admin API is configured.
    """
    if body is None or not body.confirm:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Confirmation required.",
        )

    result = await db.execute(
        select(Student.id).where(
            or_(Student.teacher_id == user.id, Student.user_id == user.id)
        )
    )
    student_ids = [row[0] for row in result.all()]
    if student_ids:
        await db.execute(delete(ClassStudent).where(ClassStudent.student_id.in_(student_ids)))
        await db.execute(delete(Submission).where(Submission.student_id.in_(student_ids)))
        await db.execute(delete(Student).where(Student.id.in_(student_ids)))

    await db.delete(user)
    await db.flush()
    logger.info("Deleted local data for user=%s (%d student records)", user.id, len(student_ids))

    if admin is not None:
        try:
            await admin.delete_user(user.id)
        except SupabaseAdminError as exc:
            logger.error(
                "Auth delete failed for user=%s (status %s): %s", user.id, exc.status_code, exc
            )
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Unable to delete account.",
            )

    return {"success": True}
