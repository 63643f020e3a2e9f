"""
Client for the hosted OpenAI-compatible chat completion API.

One HTTP call per request: no retries and no local queueing. Failures are
raised as typed exceptions so each route can map them to the response it
promises (fallback content, 5xx status, ...).

Public API
----------
ChatCompletionService.complete(messages, temperature, json_mode) -> str
ChatCompletionService.complete_json(messages, temperature)       -> dict
get_llm_service()                                                 -> FastAPI dependency
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from alloqly.config import settings
from alloqly.utils.helpers import parse_json_object

logger = logging.getLogger(__name__)

Message = Dict[str, str]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class LLMServiceError(Exception):
    """The completion endpoint could not be reached or answered with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class LLMNotConfiguredError(LLMServiceError):
    """No API key is configured."""

    def __init__(self) -> None:
        super().__init__("Missing ALLOQLY_AI_API_KEY.")


class LLMResponseError(LLMServiceError):
    """The endpoint answered 2xx but the content is missing or not the expected JSON."""


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class ChatCompletionService:
    """Thin async wrapper around ``POST {base_url}/chat/completions``."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.ALLOQLY_AI_API_KEY
        self.base_url = (base_url or settings.AI_BASE_URL).rstrip("/")
        self.model = model or settings.AI_MODEL
        self.timeout = httpx.Timeout(float(timeout or settings.AI_TIMEOUT), connect=10.0)
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def complete(
        self,
        messages: List[Message],
        temperature: float = 0.7,
        json_mode: bool = False,
    ) -> str:
        """
        Send *messages* and return the first choice's message content. A null
        or empty content comes back as an empty string.

        Raises:
            LLMNotConfiguredError: no API key.
            LLMServiceError:       non-2xx status (``status_code`` set) or
                                   transport failure (``status_code`` None).
            LLMResponseError:      2xx body missing ``choices[0].message.content``.
        """
        if not self.is_configured:
            raise LLMNotConfiguredError()

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=headers,
                )
        except httpx.TimeoutException as exc:
            logger.error("complete: request timed out after %.0f s", self.timeout.read or 0)
            raise LLMServiceError("AI request timed out.") from exc
        except httpx.HTTPError as exc:
            logger.error("complete: connection error: %s", exc)
            raise LLMServiceError(f"AI service unreachable: {exc}") from exc

        if resp.status_code >= 400:
            body = resp.text[:500]
            logger.error("complete: AI API returned HTTP %d: %s", resp.status_code, body)
            raise LLMServiceError(
                f"AI API returned HTTP {resp.status_code}",
                status_code=resp.status_code,
                body=body,
            )

        try:
            data = resp.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise LLMResponseError("AI response malformed.") from exc

        return content or ""

    async def complete_json(
        self,
        messages: List[Message],
        temperature: float = 0.7,
    ) -> Dict[str, Any]:
        """``complete`` in JSON mode, parsed into a dict."""
        content = await self.complete(messages, temperature=temperature, json_mode=True)
        parsed = parse_json_object(content)
        if parsed is None:
            logger.warning("complete_json: unparsable content: %.200s", content)
            raise LLMResponseError("AI response malformed.")
        return parsed


def get_llm_service() -> ChatCompletionService:
    """FastAPI dependency; overridden in tests."""
    return ChatCompletionService()
