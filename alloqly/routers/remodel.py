"""
Assignment remodelling.

POST /api/remodel - rewrite an assignment for one learner persona.

The endpoint never fails because of the model: without a key, on an
upstream error or on unusable output it answers with the built-in
fallback variant (``source: "mock"``). Only an upstream 429 changes the
HTTP status, so the client can surface rate limiting.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from alloqly.database import get_db
from alloqly.dependencies.auth import get_optional_user_id
from alloqly.models.database_models import Assignment, AssignmentVariant, VariantSource
from alloqly.models.schemas import RemodelRequest, RemodelResponse
from alloqly.services.llm_client import ChatCompletionService, get_llm_service
from alloqly.services.personas import parse_persona
from alloqly.services.remodeler import Remodeler

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=RemodelResponse)
async def remodel_assignment(
    body: RemodelRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    llm: ChatCompletionService = Depends(get_llm_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Produce a persona-specific variant of an assignment.

    When ``assignment_id`` is supplied the caller must own that assignment
    and the variant is stored; its id comes back as ``variant_id``.
    """
    if not isinstance(body.assignment, str) or not body.assignment.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing assignment content.",
        )

    try:
        persona = parse_persona(body.profile)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unsupported learner profile.",
        )

    assignment: Optional[Assignment] = None
    if body.assignment_id:
        if user_id is not None:
            result = await db.execute(
                select(Assignment).where(
                    Assignment.id == body.assignment_id,
                    Assignment.teacher_id == user_id,
                )
            )
            assignment = result.scalar_one_or_none()
        if assignment is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Assignment not found.",
            )

    outcome = await Remodeler(llm).remodel(body.assignment, persona)
    response = RemodelResponse(**outcome.result.as_dict())

    if assignment is not None:
        variant = AssignmentVariant(
            assignment_id=assignment.id,
            class_id=assignment.class_id,
            persona=persona.value,
            summary=response.summary,
            accommodations=response.accommodations,
            missions=response.missions,
            source=VariantSource(response.source),
        )
        db.add(variant)
        await db.flush()
        response.variant_id = variant.id
        logger.info(
            "Stored %s variant id=%s for assignment=%s", persona.value, variant.id, assignment.id
        )

    return JSONResponse(
        content=response.model_dump(mode="json"),
        status_code=outcome.status_code,
    )
