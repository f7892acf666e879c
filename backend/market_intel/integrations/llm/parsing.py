"""Extract JSON payloads from free-form model output.

Models frequently wrap JSON in markdown fences or add a sentence before it,
so extraction tries progressively looser strategies.
"""

import json
import re
from typing import Any

from market_intel.integrations.llm.base import LLMResponseError

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


def _try_load(text: str) -> tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return False, None


def _outer_span(text: str, open_char: str, close_char: str) -> str | None:
    start = text.find(open_char)
    end = text.rfind(close_char)
    if start == -1 or end <= start:
        return None
    return text[start:end + 1]


def _first_index(text: str, char: str) -> int:
    index = text.find(char)
    return index if index != -1 else len(text)


def parse_llm_json(text: str) -> Any:
    """Parse JSON from model output.

    Order: the whole text, a fenced ```json block, then the outermost
    {...} or [...] span, whichever opens first.

    Raises:
        LLMResponseError: when no strategy yields valid JSON.
    """
    if not text or not text.strip():
        raise LLMResponseError("Empty model response")

    stripped = text.strip()
    ok, value = _try_load(stripped)
    if ok:
        return value

    match = _FENCE_RE.search(stripped)
    if match:
        ok, value = _try_load(match.group(1).strip())
        if ok:
            return value

    # Whichever bracket opens first is the outer container
    pairs = sorted((("{", "}"), ("[", "]")), key=lambda p: _first_index(stripped, p[0]))
    for open_char, close_char in pairs:
        span = _outer_span(stripped, open_char, close_char)
        if span:
            ok, value = _try_load(span)
            if ok:
                return value

    raise LLMResponseError(f"Could not parse JSON from model response: {stripped[:120]!r}")
