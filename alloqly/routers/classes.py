"""
Class management endpoints.

Route summary
-------------
GET    /api/classes                          - teacher: own classes; student: enrolled classes
POST   /api/classes                          - create class (teachers only)
GET    /api/classes/{class_id}               - class detail with roster and assignments

GET    /api/classes/{class_id}/code          - current join code (or nulls)
POST   /api/classes/{class_id}/code          - issue a new 30-minute join code

POST   /api/classes/{class_id}/invite        - e-mail an invitation (teachers only)
POST   /api/classes/{class_id}/personalize   - per-student drafts for the whole roster
"""
import logging
import secrets
from typing import Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from alloqly.config import settings
from alloqly.database import get_db
from alloqly.dependencies.auth import (
    get_or_create_user,
    get_owned_class,
    get_profile,
    teacher_only,
)
from alloqly.models.database_models import (
    Assignment,
    ClassInvitation,
    ClassStudent,
    Classroom,
    InvitationStatus,
    Profile,
    User,
    UserRole,
)
from alloqly.models.schemas import (
    ClassCreateRequest,
    ClassDetailResponse,
    ClassEnvelope,
    ClassListResponse,
    ClassResponse,
    InviteClassRef,
    InviteEnvelope,
    InviteRequest,
    InviteResponse,
    JoinCodeResponse,
    PersonalizeRequest,
    PersonalizeResponse,
    StudentDraft,
)
from alloqly.routers.assignments import assignment_to_response
from alloqly.routers.students import student_to_response
from alloqly.services.enrollment import classes_for_student_user, roster_for_class
from alloqly.services.join_codes import JoinCodeError, create_join_code, get_active_code
from alloqly.services.llm_client import (
    ChatCompletionService,
    LLMNotConfiguredError,
    get_llm_service,
)
from alloqly.services.personalizer import PersonalizeError, Personalizer
from alloqly.services.supabase_admin import (
    SupabaseAdmin,
    SupabaseAdminError,
    get_supabase_admin,
)
from alloqly.utils.helpers import clean_optional, is_valid_email, normalize_email

logger = logging.getLogger(__name__)

router = APIRouter()

require_class_teacher = teacher_only("Only teachers can create classes.")
require_invite_teacher = teacher_only("Only teachers can send invites.")


# ─── Helpers ──────────────────────────────────────────────────────────────────

async def _counts(
    db: AsyncSession, class_ids: List[str]
) -> Tuple[Dict[str, int], Dict[str, int]]:
    """Student and assignment counts per class id."""
    if not class_ids:
        return {}, {}

    students = await db.execute(
        select(ClassStudent.class_id, func.count(ClassStudent.student_id))
        .where(ClassStudent.class_id.in_(class_ids))
        .group_by(ClassStudent.class_id)
    )
    assignments = await db.execute(
        select(Assignment.class_id, func.count(Assignment.id))
        .where(Assignment.class_id.in_(class_ids))
        .group_by(Assignment.class_id)
    )
    return dict(students.all()), dict(assignments.all())


def class_to_response(
    classroom: Classroom, student_count: int = 0, assignment_count: int = 0
) -> ClassResponse:
    return ClassResponse(
        id=classroom.id,
        name=classroom.name,
        section=classroom.section,
        description=classroom.description,
        teacher_id=classroom.teacher_id,
        created_at=classroom.created_at,
        student_count=student_count,
        assignment_count=assignment_count,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# CLASS CRUD
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("", response_model=ClassListResponse)
async def list_classes(
    user: User = Depends(get_or_create_user),
    profile: Optional[Profile] = Depends(get_profile),
    db: AsyncSession = Depends(get_db),
) -> ClassListResponse:
    """
    List classes for the caller.

    Teachers get their own classes (oldest first) with roster and assignment
    counts; students get the classes they are enrolled in.
    """
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Onboarding required.",
        )

    if profile.role == UserRole.TEACHER:
        result = await db.execute(
            select(Classroom)
            .where(Classroom.teacher_id == user.id)
            .order_by(Classroom.created_at)
        )
        classes = list(result.scalars().all())
    else:
        classes = await classes_for_student_user(db, user.id, user.email)

    student_counts, assignment_counts = await _counts(db, [c.id for c in classes])
    return ClassListResponse(
        classes=[
            class_to_response(
                c,
                student_count=student_counts.get(c.id, 0),
                assignment_count=assignment_counts.get(c.id, 0),
            )
            for c in classes
        ]
    )


@router.post("", response_model=ClassEnvelope, status_code=status.HTTP_201_CREATED)
async def create_class(
    body: ClassCreateRequest,
    user: User = Depends(require_class_teacher),
    db: AsyncSession = Depends(get_db),
) -> ClassEnvelope:
    """Create a class owned by the calling teacher."""
    name = (body.name or "").strip()
    if not name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Name your class.",
        )

    classroom = Classroom(
        teacher_id=user.id,
        name=name,
        section=clean_optional(body.section),
        description=clean_optional(body.description),
    )
    db.add(classroom)
    await db.flush()

    logger.info("Created class id=%s name=%r for teacher=%s", classroom.id, name, user.id)
    return ClassEnvelope(class_=class_to_response(classroom))


@router.get("/{class_id}", response_model=ClassDetailResponse)
async def get_class(
    classroom: Classroom = Depends(get_owned_class),
    db: AsyncSession = Depends(get_db),
) -> ClassDetailResponse:
    """Class detail with its roster and assignments (newest first)."""
    roster = await roster_for_class(db, classroom.id)
    result = await db.execute(
        select(Assignment)
        .where(Assignment.class_id == classroom.id)
        .order_by(Assignment.created_at.desc())
    )
    assignments = list(result.scalars().all())

    base = class_to_response(classroom, len(roster), len(assignments))
    return ClassDetailResponse(
        **base.model_dump(),
        students=[student_to_response(s) for s in roster],
        assignments=[assignment_to_response(a) for a in assignments],
    )


# ═══════════════════════════════════════════════════════════════════════════════
# JOIN CODES
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("/{class_id}/code", response_model=JoinCodeResponse)
async def get_class_code(
    classroom: Classroom = Depends(get_owned_class),
    db: AsyncSession = Depends(get_db),
) -> JoinCodeResponse:
    """The newest unexpired join code, or nulls when none is active."""
    code = await get_active_code(db, classroom.id)
    if code is None:
        return JoinCodeResponse(code=None, expires_at=None)
    return JoinCodeResponse(code=code.code, expires_at=code.expires_at)


@router.post("/{class_id}/code", response_model=JoinCodeResponse)
async def create_class_code(
    classroom: Classroom = Depends(get_owned_class),
    db: AsyncSession = Depends(get_db),
) -> JoinCodeResponse:
    """Issue a fresh join code for the class."""
    try:
        code = await create_join_code(db, classroom.id)
    except JoinCodeError as exc:
        logger.error("Join code generation failed for class=%s: %s", classroom.id, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to generate code.",
        )
    return JoinCodeResponse(code=code.code, expires_at=code.expires_at)


# ═══════════════════════════════════════════════════════════════════════════════
# INVITES
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("/{class_id}/invite", response_model=InviteEnvelope)
async def invite_student(
    body: InviteRequest,
    user: User = Depends(require_invite_teacher),
    classroom: Classroom = Depends(get_owned_class),
    admin: Optional[SupabaseAdmin] = Depends(get_supabase_admin),
    db: AsyncSession = Depends(get_db),
) -> InviteEnvelope:
    """
    E-mail a class invitation through the Supabase auth admin API.

    The pending invitation is claimed when the invited student finishes
    onboarding with the same e-mail address.
    """
    email = normalize_email(body.email or "")
    if not is_valid_email(email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Enter a valid email.",
        )

    if admin is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server missing Supabase credentials.",
        )

    try:
        await admin.invite_user_by_email(email, settings.invite_redirect_url)
    except SupabaseAdminError as exc:
        logger.error(
            "Invite e-mail to %s for class=%s failed (status %s): %s",
            email,
            classroom.id,
            exc.status_code,
            exc,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to send invite email.",
        )

    invitation = ClassInvitation(
        class_id=classroom.id,
        invite_email=email,
        token=secrets.token_urlsafe(24),
        status=InvitationStatus.PENDING,
    )
    db.add(invitation)
    await db.flush()

    logger.info("Invited %s to class=%s (teacher=%s)", email, classroom.id, user.id)
    return InviteEnvelope(
        invite=InviteResponse(
            id=invitation.id,
            email=invitation.invite_email,
            status=invitation.status.value,
            created_at=invitation.created_at,
            class_=InviteClassRef(id=classroom.id, name=classroom.name),
        )
    )


# ═══════════════════════════════════════════════════════════════════════════════
# PERSONALISATION
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("/{class_id}/personalize", response_model=PersonalizeResponse)
async def personalize_for_roster(
    body: PersonalizeRequest,
    user: User = Depends(teacher_only()),
    classroom: Classroom = Depends(get_owned_class),
    llm: ChatCompletionService = Depends(get_llm_service),
    db: AsyncSession = Depends(get_db),
) -> PersonalizeResponse:
    """
    Generate one markdown draft per rostered student.

    Drafts are stored as assignment variants grouped under a new
    assignment. A failure for one student is reported in ``drafts`` and
    does not stop the rest of the batch.
    """
    try:
        summary = await Personalizer(llm).personalize_class(
            db,
            classroom,
            teacher_id=user.id,
            title=body.title,
            description=body.description,
            material=body.material,
            learning_targets=body.learning_targets,
            file_name=body.file_name,
        )
    except PersonalizeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        )
    except LLMNotConfiguredError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        )

    logger.info(
        "Personalized assignment=%s for class=%s: %d done, %d failed",
        summary.assignment_id,
        classroom.id,
        summary.completed,
        summary.failed,
    )
    return PersonalizeResponse(
        assignment_id=summary.assignment_id,
        completed=summary.completed,
        failed=summary.failed,
        drafts=[StudentDraft(**vars(d)) for d in summary.drafts],
    )
