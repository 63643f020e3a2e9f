"""
Common utility functions and helpers.
"""
from typing import Any, Optional, Tuple
import json
import re

_WHITESPACE_RE = re.compile(r"\s+")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_FENCE_RE = re.compile(r"^```(?:json|JSON)?\s*(.*?)\s*```$", re.DOTALL)


def normalize_whitespace(text: str) -> str:
    """
    Collapse every whitespace run (spaces, tabs, newlines) to a single space.

    Args:
        text: Raw text string

    Returns:
        Normalized, trimmed text
    """
    return _WHITESPACE_RE.sub(" ", text).strip()


def word_count(text: str) -> int:
    """Number of whitespace-separated words in *text*."""
    return len(text.split())


def clean_optional(value: Optional[str]) -> Optional[str]:
    """Strip a string; empty or missing values become None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and bool(_EMAIL_RE.match(email))


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence (```json ... ```), if any."""
    match = _FENCE_RE.match(text.strip())
    return match.group(1) if match else text


def _try_json(text: str) -> Tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return False, None


def parse_json_object(text: Optional[str]) -> Optional[dict]:
    """
    Parse a JSON object out of model output.

    Tries the raw text, then the text without markdown fences, then the
    outermost ``{...}`` block. Returns None when no object can be parsed.
    """
    if not text or not text.strip():
        return None

    candidates = [text.strip()]
    stripped = strip_code_fences(text)
    if stripped != candidates[0]:
        candidates.append(stripped)

    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        ok, value = _try_json(candidate)
        if ok and isinstance(value, dict):
            return value
    return None


def string_list(value: Any, limit: Optional[int] = None) -> Optional[list]:
    """
    Coerce a model-provided list to a list of non-empty strings.

    Returns None when *value* is not a list so callers can fall back.
    """
    if not isinstance(value, list):
        return None
    items = [str(item).strip() for item in value if item is not None and str(item).strip()]
    return items[:limit] if limit is not None else items


def clamp(value: Any, low: float, high: float, default: float) -> float:
    """Clamp *value* into [low, high]; non-numeric values become *default*."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return max(low, min(high, number))
