"""
JSON extraction utilities for model responses.

Models wrap their JSON in code fences, surround it with prose, leave
trailing commas or switch to typographic quotes. lenient_decode applies an
ordered list of repair rules and reports which one worked.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from loguru import logger

from mathgrade.core.exceptions import ParseError


@dataclass
class DecodeResult:
    """Outcome of a lenient JSON decode."""
    success: bool
    data: Optional[Dict[str, Any]] = None
    rule: Optional[str] = None
    error: Optional[str] = None
    attempted: List[str] = field(default_factory=list)


_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")

_SMART_QUOTES = {
    "“": '"',
    "”": '"',
    "‘": "'",
    "’": "'",
}


def _strip_code_fences(text: str) -> str:
    match = _FENCE_RE.search(text)
    return match.group(1).strip() if match else text


def _extract_outer_braces(text: str) -> str:
    start = text.find("{")
    end = text.rfind("}")
    if start >= 0 and end > start:
        return text[start:end + 1]
    return text


def _strip_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA_RE.sub(r"\1", text)


def _normalize_quotes(text: str) -> str:
    for smart, plain in _SMART_QUOTES.items():
        text = text.replace(smart, plain)
    return _CONTROL_CHARS_RE.sub("", text)


# Rules are cumulative: each one is applied on top of the previous output.
REPAIR_RULES: Tuple[Tuple[str, Callable[[str], str]], ...] = (
    ("code_fence", _strip_code_fences),
    ("outer_braces", _extract_outer_braces),
    ("trailing_commas", _strip_trailing_commas),
    ("smart_quotes", _normalize_quotes),
)


def _try_load(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def lenient_decode(raw_response: Optional[str]) -> DecodeResult:
    """
    Decode a JSON object from a model response.

    Tries the raw text first, then each repair rule in order.

    Args:
        raw_response: The raw text response from a model

    Returns:
        DecodeResult; success is False when every rule failed
    """
    if not raw_response or not raw_response.strip():
        return DecodeResult(success=False, error="Empty response")

    text = raw_response.strip()
    attempted = ["raw"]

    data = _try_load(text)
    if data is not None:
        return DecodeResult(success=True, data=data, rule="raw", attempted=attempted)

    for name, rule in REPAIR_RULES:
        text = rule(text)
        attempted.append(name)
        data = _try_load(text)
        if data is not None:
            return DecodeResult(success=True, data=data, rule=name, attempted=attempted)

    logger.debug(f"Lenient JSON decode failed after rules: {attempted}")
    return DecodeResult(
        success=False,
        error=f"No JSON object found in response ({len(raw_response)} chars)",
        attempted=attempted,
    )


def decode_or_raise(raw_response: Optional[str]) -> Dict[str, Any]:
    """Like lenient_decode, but raises ParseError on failure."""
    result = lenient_decode(raw_response)
    if not result.success:
        raise ParseError(result.error or "Unparseable response", {"rules": result.attempted})
    return result.data
