"""
Assignment remodelling: rewrite an assignment for one learner persona.

The model is asked for a JSON object with ``summary``, ``accommodations``
and ``missions``. Whenever the model cannot be used (no key, upstream
error, malformed output) a fixed fallback variant is returned with
``source="mock"`` so the teacher always gets something to work from.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, List, Optional

from alloqly.config import settings
from alloqly.services.llm_client import (
    ChatCompletionService,
    LLMResponseError,
    LLMServiceError,
    Message,
)
from alloqly.services.personas import Persona, remodel_guidance
from alloqly.utils.helpers import string_list

logger = logging.getLogger(__name__)


MAX_ACCOMMODATIONS = 5
MAX_MISSIONS = 4

FALLBACK_SUMMARY = (
    "Chunked into three micro-missions with visible timers. Language is literal, "
    "sensory-sensitive, and offers text + audio response paths."
)
FALLBACK_ACCOMMODATIONS = [
    "Mission cards stay under 70 words with bolded verbs.",
    "Timer + dopamine check after each mission to anchor attention.",
    "Voice, text, or visual board submission with auto transcription.",
]
FALLBACK_MISSIONS = [
    "Mission 1 · Spark sensory map – Watch 40s clip, list 2 sensory moments.",
    "Mission 2 · Data hunt – Highlight the statistic and explain why it matters.",
    "Mission 3 · Response burst – 90-word reflection or voice note with auto pauses.",
]

_SYSTEM_PROMPT = (
    "You are Alloqly, an instructional designer who rewrites teacher assignments for "
    "neurodiverse learners. Return JSON that educators can read out loud."
)

_USER_PROMPT = """\
Assignment:
{assignment}

Learner profile: {profile}

Adaptation rules for this profile:
{guidance}

Respond with JSON containing:
- summary: A brief description of how the assignment was adapted
- accommodations: Array of 3-5 specific accommodations applied
- missions: Array of 3-4 chunked tasks, each under 30 words

Make it practical, clear, and actionable for {profile} learners.\
"""


@dataclasses.dataclass
class RemodelResult:
    """A remodelled assignment, ready to return or persist."""

    variant: str
    summary: str
    accommodations: List[str]
    missions: List[str]
    source: str  # "openai" | "mock"

    def as_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


@dataclasses.dataclass
class RemodelOutcome:
    result: RemodelResult
    status_code: int = 200


def fallback_result(variant: str) -> RemodelResult:
    return RemodelResult(
        variant=variant,
        summary=FALLBACK_SUMMARY,
        accommodations=list(FALLBACK_ACCOMMODATIONS),
        missions=list(FALLBACK_MISSIONS),
        source="mock",
    )


def build_remodel_messages(assignment: str, persona: Persona) -> List[Message]:
    """Chat messages for one remodel call; *assignment* is expected pre-truncated."""
    guidance = "\n".join(f"- {rule}" for rule in remodel_guidance(persona))
    return [
        {"role": "system", "content": _SYSTEM_PROMPT},
        {
            "role": "user",
            "content": _USER_PROMPT.format(
                assignment=assignment,
                profile=persona.display_name,
                guidance=guidance,
            ),
        },
    ]


def parse_remodel_payload(payload: Dict[str, Any], variant: str) -> RemodelResult:
    """Merge model output over the fallback, field by field."""
    summary = payload.get("summary")
    accommodations = string_list(payload.get("accommodations"), MAX_ACCOMMODATIONS)
    missions = string_list(payload.get("missions"), MAX_MISSIONS)

    return RemodelResult(
        variant=variant,
        summary=summary.strip() if isinstance(summary, str) and summary.strip() else FALLBACK_SUMMARY,
        accommodations=accommodations if accommodations is not None else list(FALLBACK_ACCOMMODATIONS),
        missions=missions if missions is not None else list(FALLBACK_MISSIONS),
        source="openai",
    )


class Remodeler:
    """Runs a single remodel request against the chat completion service."""

    def __init__(self, llm: ChatCompletionService, max_chars: Optional[int] = None) -> None:
        self.llm = llm
        self.max_chars = max_chars if max_chars is not None else settings.REMODEL_MAX_CHARS

    async def remodel(self, assignment: str, persona: Persona) -> RemodelOutcome:
        variant = persona.display_name
        truncated = assignment[:self.max_chars]

        if not self.llm.is_configured:
            logger.info("remodel: no AI key configured, returning fallback variant")
            return RemodelOutcome(fallback_result(variant))

        messages = build_remodel_messages(truncated, persona)
        try:
            payload = await self.llm.complete_json(
                messages, temperature=settings.REMODEL_TEMPERATURE
            )
        except LLMResponseError as exc:
            logger.warning("remodel: %s, returning fallback variant", exc)
            return RemodelOutcome(fallback_result(variant))
        except LLMServiceError as exc:
            logger.error("Remodel API error: %s %s", exc, exc.body)
            status_code = 429 if exc.status_code == 429 else 200
            return RemodelOutcome(fallback_result(variant), status_code=status_code)

        result = parse_remodel_payload(payload, variant)
        logger.info(
            "remodel: %s variant with %d accommodations, %d missions",
            variant,
            len(result.accommodations),
            len(result.missions),
        )
        return RemodelOutcome(result)
