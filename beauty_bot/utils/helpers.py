"""
Utility helpers
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, List, Optional

_FENCED_JSON = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)```", re.I)
_JSON_BLOCK = re.compile(r"\{.*\}", re.S)
_NON_NUMERIC = re.compile(r"[^0-9.]")
_PRICE_NUMBER = re.compile(r"\d+(?:\.\d+)?|\.\d+")


def extract_json_text(text: str) -> Optional[str]:
    """Pull the JSON object text out of model output.

    Tries a fenced ```json block first, then the first-brace to last-brace
    substring. Returns None when neither is present.
    """
    if not isinstance(text, str):
        return None
    m = _FENCED_JSON.search(text)
    if m and m.group(1).strip():
        return m.group(1).strip()
    m = _JSON_BLOCK.search(text)
    if m:
        return m.group()
    return None


def parse_price(raw: Any) -> float:
    """'$19.99' -> 19.99; anything unparseable -> 0."""
    if isinstance(raw, bool):
        return 0.0
    if isinstance(raw, (int, float)):
        return float(raw)
    cleaned = _NON_NUMERIC.sub("", str(raw or ""))
    # parseFloat semantics: take the leading numeric run ("1.2.3" -> 1.2)
    m = _PRICE_NUMBER.match(cleaned)
    if not m:
        return 0.0
    try:
        return float(m.group())
    except ValueError:
        return 0.0


def price_within(price: int | float, ceiling: float | None) -> bool:
    return True if ceiling is None else price <= ceiling


def iso_now() -> str:
    return datetime.now().isoformat()


def unique(seq: List[Any]) -> List[Any]:
    seen: set[Any] = set()
    out: List[Any] = []
    for x in seq:
        if x not in seen:
            seen.add(x)
            out.append(x)
    return out


def trim_history(history: List[Any], max_len: int) -> None:
    if max_len <= 0:
        return
    overflow = len(history) - max_len
    if overflow > 0:
        del history[:overflow]


def truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit]
