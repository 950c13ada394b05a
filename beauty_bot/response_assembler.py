# beauty_bot/response_assembler.py
"""
Turns an Intent plus a MatchResult into the JSON payload the chat widget renders.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from .models import Intent, MatchResult, ProductCard
from .utils.helpers import truncate

STRICT_DESCRIPTION = "Found product related to your query."
RELATED_DESCRIPTION = "Related product suggestion."

DEFAULT_USAGE_INSTRUCTIONS = (
    "For skincare products: \n"
    "1. Cleanse your face with a gentle cleanser and pat dry.\n"
    "2. Apply a small amount of the product to affected areas, once or twice daily as directed.\n"
    "3. Follow with a non-comedogenic moisturizer.\n"
    "4. Use sunscreen during the day.\n"
    "For makeup like lipstick: Apply evenly to lips, reapply as needed.\n"
    "Always patch test new products and consult a specialist if irritation occurs."
)

ERROR_UNDERSTANDING = "An error occurred."
ERROR_DETAIL_LIMIT = 100


def build_cards(result: MatchResult, requested: int) -> List[ProductCard]:
    description = STRICT_DESCRIPTION if result.strict else RELATED_DESCRIPTION
    return [
        ProductCard.from_record(c.record, description)
        for c in result.candidates[: max(1, requested)]
    ]


def compose_advice(intent: Intent, note: Optional[str]) -> str:
    usage = intent.usage_instructions or DEFAULT_USAGE_INSTRUCTIONS
    advice = f"{intent.advice}\n\n{usage}"
    if note:
        advice += f"\n{note}"
    return advice


def assemble_response(intent: Intent, result: MatchResult) -> Dict[str, Any]:
    """Payload without history; the pipeline adds it after persisting."""
    cards = build_cards(result, intent.requested_count)
    payload: Dict[str, Any] = {
        "ai_understanding": intent.understanding,
        "advice": compose_advice(intent, result.note),
    }
    if len(cards) == 1:
        payload["product_card"] = cards[0].to_dict()
    elif cards:
        payload["complementary_products"] = [c.to_dict() for c in cards]
    return payload


def error_payload(exc: BaseException) -> Dict[str, Any]:
    """Apology body for the 500 response."""
    message = str(exc) or exc.__class__.__name__
    return {
        "error": "Failed to process chat request",
        "ai_understanding": ERROR_UNDERSTANDING,
        "advice": (
            "Sorry, I encountered a problem processing your request. "
            f"(Ref: {truncate(message, ERROR_DETAIL_LIMIT)})"
        ),
        "history": [],
    }
