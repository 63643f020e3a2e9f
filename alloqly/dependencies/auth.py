"""
Authentication dependencies for FastAPI routes.

Extracts user identity from the X-User-Id header (set by the Next.js frontend
after the Supabase session is established). Routes that support demo mode
use ``get_optional_user_id`` and fall back to sample data without it.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from alloqly.database import get_db
from alloqly.models.database_models import Classroom, Profile, User, UserRole

logger = logging.getLogger(__name__)


async def get_current_user_id(
    x_user_id: str = Header(..., alias="X-User-Id"),
) -> str:
    """Extract the authenticated user ID from the request header. Raises 401 if blank."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated.",
        )
    return x_user_id.strip()


async def get_optional_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> Optional[str]:
    """Extract user ID if present, return None for demo mode."""
    return (x_user_id or "").strip() or None


async def _upsert_user(
    db: AsyncSession,
    user_id: str,
    email: Optional[str],
    name: Optional[str],
) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        user = User(
            id=user_id,
            email=(email or f"{user_id}@alloqly.local").strip().lower(),
            name=name,
        )
        db.add(user)
        await db.flush()
        logger.info("Created new user: id=%s email=%s", user_id, user.email)
    elif email and user.email != email.strip().lower():
        user.email = email.strip().lower()
        await db.flush()

    return user


async def get_or_create_user(
    user_id: str = Depends(get_current_user_id),
    x_user_email: Optional[str] = Header(None, alias="X-User-Email"),
    x_user_name: Optional[str] = Header(None, alias="X-User-Name"),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Ensure the user exists in the local users table. Creates if needed."""
    return await _upsert_user(db, user_id, x_user_email, x_user_name)


async def get_optional_user(
    user_id: Optional[str] = Depends(get_optional_user_id),
    x_user_email: Optional[str] = Header(None, alias="X-User-Email"),
    x_user_name: Optional[str] = Header(None, alias="X-User-Name"),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Like ``get_or_create_user`` but returns None in demo mode."""
    if user_id is None:
        return None
    return await _upsert_user(db, user_id, x_user_email, x_user_name)


async def get_profile(
    user: User = Depends(get_or_create_user),
    db: AsyncSession = Depends(get_db),
) -> Optional[Profile]:
    """The caller's onboarding profile, or None if they have not onboarded."""
    return await db.get(Profile, user.id)


def teacher_only(detail: str = "Only teachers can do this."):
    """Build a dependency that rejects non-teacher callers with 403 *detail*."""

    async def _require_teacher(
        user: User = Depends(get_or_create_user),
        profile: Optional[Profile] = Depends(get_profile),
    ) -> User:
        if profile is None or profile.role != UserRole.TEACHER:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=detail,
            )
        return user

    return _require_teacher


async def get_owned_class(
    class_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Classroom:
    """
    Verify that the given class belongs to the current user.
    Returns the Classroom ORM object or raises 404.
    """
    result = await db.execute(
        select(Classroom).where(
            Classroom.id == class_id,
            Classroom.teacher_id == user_id,
        )
    )
    classroom = result.scalar_one_or_none()

    if classroom is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Class not found.",
        )

    return classroom
