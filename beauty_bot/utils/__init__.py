# beauty_bot/utils/__init__.py
"""
Expose helpers at package-level for convenience:

    from beauty_bot.utils import parse_price
"""

from .helpers import (  # noqa: F401
    extract_json_text,
    iso_now,
    parse_price,
    price_within,
    trim_history,
    truncate,
    unique,
)

__all__ = [
    "extract_json_text",
    "iso_now",
    "parse_price",
    "price_within",
    "trim_history",
    "truncate",
    "unique",
]
