"""
AI-assisted grading of a student submission.

Unlike remodelling there is no fallback: a grade has to come from the
model, so every failure is surfaced to the caller as a ``GradingError``
carrying the HTTP status the route should answer with.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, List, Optional

from alloqly.config import settings
from alloqly.services.llm_client import (
    ChatCompletionService,
    LLMNotConfiguredError,
    LLMResponseError,
    LLMServiceError,
    Message,
)
from alloqly.utils.helpers import clamp, string_list

logger = logging.getLogger(__name__)


_SYSTEM_PROMPT = (
    "You are an assistive grading coach for neuroinclusive classrooms. Return JSON with a "
    "total score (0-100), rubric array, summary, and next_steps."
)

_USER_PROMPT = """\
Assignment (context optional): {assignment}
Learner profile: {profile}
Submission:
{submission}

Return JSON:
{{
 score: number;
 rubric: Array<{{label:string; score:number; of:number; note:string}}>;
 summary: string;
 next_steps: string[];
}}
Focus feedback on clarity, evidence, structure, modality options, and accommodations fidelity. \
Keep notes concise and classroom-ready.\
"""


class GradingError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


@dataclasses.dataclass
class GradeResult:
    score: float
    rubric: List[Dict[str, Any]]
    summary: str
    next_steps: List[str]
    source: str = "openai"

    def feedback(self) -> Dict[str, Any]:
        """The part of the result stored on a submission."""
        return {
            "rubric": self.rubric,
            "summary": self.summary,
            "next_steps": self.next_steps,
        }


def build_grade_messages(
    submission: str,
    assignment: Optional[str] = None,
    learner_profile: Optional[str] = None,
) -> List[Message]:
    return [
        {"role": "system", "content": _SYSTEM_PROMPT},
        {
            "role": "user",
            "content": _USER_PROMPT.format(
                assignment=assignment or "N/A",
                profile=learner_profile or "Not provided",
                submission=submission,
            ),
        },
    ]


def _rubric_rows(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    rows: List[Dict[str, Any]] = []
    for item in value:
        if not isinstance(item, dict):
            continue
        label = str(item.get("label", "")).strip()
        if not label:
            continue
        of = clamp(item.get("of", 0), 0.0, 1000.0, 0.0)
        rows.append({
            "label": label,
            "score": clamp(item.get("score", 0), 0.0, of or 1000.0, 0.0),
            "of": of,
            "note": str(item.get("note", "") or "").strip(),
        })
    return rows


def parse_grade_payload(payload: Dict[str, Any]) -> GradeResult:
    summary = payload.get("summary")
    return GradeResult(
        score=clamp(payload.get("score", 0), 0.0, 100.0, 0.0),
        rubric=_rubric_rows(payload.get("rubric")),
        summary=summary.strip() if isinstance(summary, str) else "",
        next_steps=string_list(payload.get("next_steps")) or [],
    )


class Grader:
    """Runs one grading request against the chat completion service."""

    def __init__(self, llm: ChatCompletionService) -> None:
        self.llm = llm

    async def grade(
        self,
        submission: str,
        assignment: Optional[str] = None,
        learner_profile: Optional[str] = None,
    ) -> GradeResult:
        """
        Raises:
            GradingError: 500 when no key is configured, the upstream status
                          (503 on transport failure) when the API call fails,
                          502 when the response cannot be parsed.
        """
        messages = build_grade_messages(submission, assignment, learner_profile)
        try:
            payload = await self.llm.complete_json(
                messages, temperature=settings.GRADE_TEMPERATURE
            )
        except LLMNotConfiguredError as exc:
            raise GradingError(500, str(exc)) from exc
        except LLMResponseError as exc:
            raise GradingError(502, "AI response malformed.") from exc
        except LLMServiceError as exc:
            logger.error("Grade API error: %s %s", exc, exc.body)
            raise GradingError(exc.status_code or 503, "AI grading service unavailable.") from exc

        result = parse_grade_payload(payload)
        logger.info("grade: score=%.1f rubric_rows=%d", result.score, len(result.rubric))
        return result
