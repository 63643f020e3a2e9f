"""
Join codes: short random strings students type to self-enrol in a class.
"""
from __future__ import annotations

import logging
import secrets
import string
from datetime import timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from alloqly.config import settings
from alloqly.models.database_models import ClassroomCode, utcnow

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.digits + string.ascii_uppercase


class JoinCodeError(Exception):
    """Every insert attempt collided with an existing code."""


def generate_code(length: int = 6) -> str:
    """Random upper-case base-36 code."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def normalize_code(code: str) -> str:
    return code.strip().upper()


async def create_join_code(
    db: AsyncSession,
    class_id: str,
    length: Optional[int] = None,
    attempts: Optional[int] = None,
    ttl_minutes: Optional[int] = None,
) -> ClassroomCode:
    """
    Insert a fresh code for *class_id*, retrying on unique-constraint collisions.

    Each attempt runs in a SAVEPOINT so a collision does not poison the
    surrounding transaction.

    Raises:
        JoinCodeError: all attempts collided.
    """
    length = length or settings.JOIN_CODE_LENGTH
    attempts = attempts or settings.JOIN_CODE_ATTEMPTS
    ttl = ttl_minutes or settings.JOIN_CODE_TTL_MINUTES
    expires_at = utcnow() + timedelta(minutes=ttl)

    last_error: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        draft = generate_code(length)
        row = ClassroomCode(class_id=class_id, code=draft, expires_at=expires_at)
        try:
            async with db.begin_nested():
                db.add(row)
        except IntegrityError as exc:
            last_error = exc
            logger.warning(
                "Join code collision for class=%s (attempt %d/%d)", class_id, attempt, attempts
            )
            continue
        logger.info("Created join code %s for class=%s", row.code, class_id)
        return row

    raise JoinCodeError(f"Unable to generate code after {attempts} attempts: {last_error}")


async def get_active_code(db: AsyncSession, class_id: str) -> Optional[ClassroomCode]:
    """Newest unexpired code for a class, if any."""
    result = await db.execute(
        select(ClassroomCode)
        .where(ClassroomCode.class_id == class_id, ClassroomCode.expires_at > utcnow())
        .order_by(ClassroomCode.expires_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def find_valid_code(db: AsyncSession, code: str) -> Optional[ClassroomCode]:
    """Look up an unexpired code as typed by a student (case-insensitive)."""
    result = await db.execute(
        select(ClassroomCode).where(
            ClassroomCode.code == normalize_code(code),
            ClassroomCode.expires_at > utcnow(),
        )
    )
    return result.scalar_one_or_none()
