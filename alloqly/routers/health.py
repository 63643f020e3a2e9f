"""
Health check and client configuration endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from datetime import datetime, timezone
import logging

from alloqly.database import get_db
from alloqly.models.schemas import ClientConfigResponse, HealthCheckResponse
from alloqly.services.llm_client import ChatCompletionService, get_llm_service

logger = logging.getLogger(__name__)

router = APIRouter()
config_router = APIRouter()


@router.get("/", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    llm: ChatCompletionService = Depends(get_llm_service),
):
    """
    Health check endpoint to verify system status.

    Returns:
        HealthCheckResponse with status of the database and whether the
        AI key is configured (the AI API itself is not called).
    """
    # Check database connection
    db_status = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        db_status = "error"

    ai_status = "ok" if llm.is_configured else "not_configured"

    # Overall status
    overall_status = "healthy" if db_status == "ok" and ai_status == "ok" else "degraded"

    return HealthCheckResponse(
        status=overall_status,
        database=db_status,
        ai=ai_status,
        timestamp=datetime.now(timezone.utc),
    )


@config_router.get("", response_model=ClientConfigResponse)
async def client_config(
    llm: ChatCompletionService = Depends(get_llm_service),
) -> ClientConfigResponse:
    """Tell the web client whether AI features are live or will use fallbacks."""
    return ClientConfigResponse(hasAIKey=llm.is_configured)
