# beauty_bot/intent_extractor.py
"""
Intent extraction
─────────────────
Turns one free-text query (plus recent history) into a typed Intent.

Three separable steps:
1. ask the model (fixed instruction prompt, last few history turns)
2. parse_intent_payload: fenced block → brace substring → json → strict schema
3. derive_intent: count / combo / price rules applied on top of the model output

extract() never raises. Any model failure or malformed output yields
Intent.default().
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import re
from typing import Any, Dict, List, Optional, Sequence

from .config import get_config
from .keyword_cache import KeywordMappingCache, KeywordMappings
from .llm_service import LLMService
from .models import ConversationTurn, Intent, normalize_type
from .utils.helpers import extract_json_text, unique

Cfg = get_config()
log = logging.getLogger(__name__)

DEFAULT_COMBO_TYPES = ("cleanser", "moisturizer", "treatment")
MAX_PER_TYPE_WHEN_SORTED = 4
LIST_MAX_COUNT = 10
TOP_CHEAPEST_PHRASE = "top 4 cheapest"
TOP_CHEAPEST_COUNT = 4
MAX_KNOWN_TYPES_IN_PROMPT = 40
MAX_REQUESTED_COUNT = 20

_COMBO_RE = re.compile(r"\b(?:sets?|combos?)\b")
_LIST_RE = re.compile(r"\blist\b")
_PRICE_ATTRIBUTE_RE = re.compile(
    r"^(?:under|below|less than|cheaper than|up to|max(?:imum)?|<)\s*\$?\s*(\d+(?:\.\d+)?)\b"
)

INTENT_PROMPT = """You are the shopping assistant of an online beauty store.
Read the customer's latest message and the recent conversation, then reply with ONE JSON object with exactly these keys:

- "ai_understanding": one sentence describing what the customer wants.
- "search_keywords": space-separated terms for a product text search (e.g. "lipstick" for "cheapest lipsticks"). Use "" when the customer is not asking for products (store hours, shipping, how-to questions).
- "advice": a friendly conversational answer, under 100 words unless a routine is requested (use a markdown list for routines).
- "requested_product_count": how many products to show. 4 for "top 4 cheapest", the number of product_types for a routine or set, 10 for generic lists, otherwise 1.
- "product_types": array of normalized product types when the customer wants one product per category (e.g. ["cleanser", "moisturizer"]) or names a single category with a ranking ("cheapest lipsticks" -> ["lipstick"]). Use the last segment of a category path, lower case. Use [] otherwise.
- "usage_instructions": how to use the suggested products, or omit the key.
- "price_filter": maximum price as a number (20 for "under $20"), or null.
- "sort_by_price": true when the customer asks for the cheapest products.
- "vendor": the brand name when the customer names one, otherwise "".
- "attributes": array of product qualities the customer requires (e.g. ["vegan", "cruelty-free"]), or [].

Known product types in the catalog: {known_types}

Customer message: "{query}"

Reply with the JSON object only."""

_REQUIRED_STRINGS = ("ai_understanding", "search_keywords", "advice")


def _is_number(value: Any) -> bool:
    """Finite int or float. Bools, NaN, infinities and ints too large for a float fail."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def _validate(data: Dict[str, Any]) -> Optional[str]:
    """Return the first schema violation, or None when the payload is usable."""
    for key in _REQUIRED_STRINGS:
        if not isinstance(data.get(key), str):
            return f"{key} must be a string"
    if not _is_number(data.get("requested_product_count")):
        return "requested_product_count must be a number"
    if not _is_str_list(data.get("product_types")):
        return "product_types must be a list of strings"
    if not isinstance(data.get("sort_by_price"), bool):
        return "sort_by_price must be a boolean"
    if data.get("usage_instructions") is not None and not isinstance(data["usage_instructions"], str):
        return "usage_instructions must be a string"
    if data.get("price_filter") is not None and not _is_number(data["price_filter"]):
        return "price_filter must be a number or null"
    if data.get("vendor") is not None and not isinstance(data["vendor"], str):
        return "vendor must be a string"
    if data.get("attributes") is not None and not _is_str_list(data["attributes"]):
        return "attributes must be a list of strings"
    return None


def parse_intent_payload(raw_text: str) -> Optional[Intent]:
    """Parse model output into an Intent, or None if it does not fit the schema."""
    json_text = extract_json_text(raw_text)
    if json_text is None:
        log.warning("INTENT_PARSE_FAILED | reason=no_json_found")
        return None
    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as exc:
        log.warning(f"INTENT_PARSE_FAILED | reason=invalid_json | error={exc}")
        return None
    if not isinstance(data, dict):
        log.warning("INTENT_PARSE_FAILED | reason=not_an_object")
        return None

    problem = _validate(data)
    if problem:
        log.warning(f"INTENT_PARSE_FAILED | reason=schema | detail={problem}")
        return None

    product_types = unique([t for t in (normalize_type(p) for p in data["product_types"]) if t])
    attributes = unique([a.strip() for a in (data.get("attributes") or []) if a.strip()])
    price = data.get("price_filter")
    vendor = (data.get("vendor") or "").strip()
    usage = (data.get("usage_instructions") or "").strip()

    return Intent(
        understanding=data["ai_understanding"].strip(),
        search_keywords=data["search_keywords"].strip(),
        advice=data["advice"].strip(),
        requested_count=min(max(1, int(data["requested_product_count"])), MAX_REQUESTED_COUNT),
        product_types=tuple(product_types),
        usage_instructions=usage or None,
        price_ceiling=float(price) if price is not None else None,
        sort_by_price=data["sort_by_price"],
        vendor=vendor or None,
        attributes=tuple(attributes),
        interpreted=True,
    )


def _split_price_attributes(attributes: Sequence[str]) -> tuple[List[str], Optional[float]]:
    """Separate price phrases ("under $20") from tag attributes."""
    kept: List[str] = []
    ceiling: Optional[float] = None
    for attr in attributes:
        m = _PRICE_ATTRIBUTE_RE.match(attr.strip().lower())
        if m:
            value = float(m.group(1))
            ceiling = value if ceiling is None else min(ceiling, value)
        else:
            kept.append(attr)
    return kept, ceiling


def derive_intent(intent: Intent, query: str, mappings: Optional[KeywordMappings] = None) -> Intent:
    """Apply the count, combo and price rules on top of a parsed intent.

    The combo rule matches "set" or "combo" as whole words only, unlike a
    plain substring check, so "setting spray" is not read as a routine.
    """
    q = (query or "").lower()

    attributes, attr_ceiling = _split_price_attributes(intent.attributes)
    price_ceiling = intent.price_ceiling if intent.price_ceiling is not None else attr_ceiling

    product_types = list(intent.product_types)
    count = intent.requested_count

    if product_types:
        n = len(product_types)
        if intent.sort_by_price:
            if TOP_CHEAPEST_PHRASE in q:
                count = max(count, TOP_CHEAPEST_COUNT)
            count = min(max(count, n), MAX_PER_TYPE_WHEN_SORTED * n)
        else:
            count = n
    elif _COMBO_RE.search(q):
        combo = mappings.default_combo_types if mappings and mappings.default_combo_types else DEFAULT_COMBO_TYPES
        product_types = list(combo)
        count = len(product_types)
    elif TOP_CHEAPEST_PHRASE in q:
        count = TOP_CHEAPEST_COUNT
    elif _LIST_RE.search(q):
        count = min(count or LIST_MAX_COUNT, LIST_MAX_COUNT)

    return intent.with_changes(
        product_types=tuple(product_types),
        requested_count=max(1, count),
        attributes=tuple(attributes),
        price_ceiling=price_ceiling,
    )


class IntentExtractor:
    """Best-effort query understanding on top of the LLM service."""

    def __init__(
        self,
        llm: Optional[LLMService],
        cache: Optional[KeywordMappingCache] = None,
        history_turns: int = None,
    ) -> None:
        self.llm = llm
        self.cache = cache
        self.history_turns = history_turns or Cfg.LLM_HISTORY_TURNS

    def build_prompt(self, query: str, mappings: Optional[KeywordMappings] = None) -> str:
        known = list((mappings.type_to_keywords if mappings else {}).keys())[:MAX_KNOWN_TYPES_IN_PROMPT]
        return INTENT_PROMPT.format(
            known_types=", ".join(known) if known else "unknown",
            query=query.replace('"', "'"),
        )

    async def extract(
        self,
        query: str,
        history: Sequence[ConversationTurn] = (),
        mappings: Optional[KeywordMappings] = None,
    ) -> Intent:
        if mappings is None and self.cache is not None:
            mappings = self.cache.snapshot()

        if self.llm is None:
            log.warning("INTENT_DEFAULT | reason=llm_not_configured")
            return Intent.default()

        recent = list(history)[-self.history_turns:] if self.history_turns > 0 else []
        prompt = self.build_prompt(query, mappings)

        try:
            loop = asyncio.get_running_loop()
            raw = await loop.run_in_executor(None, lambda: self.llm.generate(prompt, recent))
        except Exception as exc:
            log.error(f"INTENT_LLM_ERROR | error={exc}")
            return Intent.default()

        try:
            parsed = parse_intent_payload(raw)
            if parsed is None:
                log.warning(f"INTENT_DEFAULT | reason=unparseable | raw='{str(raw)[:200]}'")
                return Intent.default()
            intent = derive_intent(parsed, query, mappings)
        except Exception as exc:
            log.error(f"INTENT_PARSE_ERROR | error={exc}")
            return Intent.default()

        log.info(
            f"INTENT_EXTRACTED | keywords='{intent.search_keywords}' | types={list(intent.product_types)} "
            f"| count={intent.requested_count} | price_ceiling={intent.price_ceiling} "
            f"| sort_by_price={intent.sort_by_price} | vendor={intent.vendor} | attributes={list(intent.attributes)}"
        )
        return intent
