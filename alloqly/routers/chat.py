"""
Persona quiz chat.

POST /api/chat - run a prompt through the persona's quiz-writer system prompt.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from alloqly.config import settings
from alloqly.models.schemas import ChatRequest, ChatResponse
from alloqly.services.llm_client import (
    ChatCompletionService,
    LLMNotConfiguredError,
    LLMServiceError,
    get_llm_service,
)
from alloqly.services.personas import Persona, parse_persona, quiz_system_prompt

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    llm: ChatCompletionService = Depends(get_llm_service),
) -> ChatResponse:
    """
    Answer with persona-tuned quiz content.

    ``disability`` defaults to ADHD; unrecognised values use the generic persona.
    """
    prompt = (body.prompt or "").strip()
    if not prompt:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing prompt.",
        )

    if body.disability is None or not body.disability.strip():
        persona = Persona.ADHD
    else:
        persona = parse_persona(body.disability, default=Persona.GENERIC)

    messages = [
        {"role": "system", "content": quiz_system_prompt(persona)},
        {"role": "user", "content": prompt},
    ]
    try:
        output = await llm.complete(messages, temperature=settings.CHAT_TEMPERATURE)
    except LLMNotConfiguredError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        )
    except LLMServiceError as exc:
        logger.error("Chat API error (%s): %s", persona.value, exc)
        detail = f"{exc}: {exc.body}" if exc.body else str(exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=detail,
        )

    return ChatResponse(output=output.strip(), persona=persona.value)
