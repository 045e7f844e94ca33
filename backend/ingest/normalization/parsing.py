"""
Parsing helpers shared by the source adapters.
Everything here is lenient: garbage in yields None, never an exception.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Optional

from shared.models.enums import InningHalf

_HALF_TOKENS: dict[str, InningHalf] = {
    "t": InningHalf.TOP,
    "top": InningHalf.TOP,
    "b": InningHalf.BOTTOM,
    "bot": InningHalf.BOTTOM,
    "bottom": InningHalf.BOTTOM,
    "m": InningHalf.MID,
    "mid": InningHalf.MID,
    "middle": InningHalf.MID,
    "e": InningHalf.END,
    "end": InningHalf.END,
}

_INNING_RE = re.compile(
    r"(?<![a-z])(top|bottom|bot|middle|mid|end|t|b|m|e)\.?\s*(\d{1,2})(?:st|nd|rd|th)?\b",
    re.IGNORECASE,
)
_ORDINAL_RE = re.compile(r"\b(\d{1,2})(?:st|nd|rd|th)\b", re.IGNORECASE)


def safe_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def parse_inning(text: Optional[str]) -> tuple[Optional[int], Optional[InningHalf]]:
    """
    Parse inning descriptions such as ``T3rd``, ``Bot 5th``, ``Mid 4th``, ``End 7``.

    Returns (inning, half); half is None when only an ordinal was found.
    """
    if not text:
        return None, None
    match = _INNING_RE.search(text)
    if match:
        return int(match.group(2)), _HALF_TOKENS[match.group(1).lower()]
    match = _ORDINAL_RE.search(text)
    if match:
        return int(match.group(1)), None
    return None, None


def parse_datetime(value: Any) -> Optional[datetime]:
    """ISO-8601 (``Z`` suffix allowed) to an aware datetime; naive values are taken as UTC."""
    if not value or not isinstance(value, str):
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = " ".join(str(value).split())
    return text or None
