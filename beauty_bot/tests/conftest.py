# beauty_bot/tests/conftest.py
"""
Shared fakes for the index, the model and Redis.

Nothing here touches the network: every collaborator is injected through a
constructor or the app factory.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional

os.environ["APP_ENV"] = "testing"
os.environ.setdefault("BOT_LOG_LEVEL", "STANDARD")

import pytest  # noqa: E402
from redis.exceptions import ConnectionError as RedisConnectionError  # noqa: E402

from beauty_bot.data_fetchers import CatalogIndexError  # noqa: E402
from beauty_bot.models import CatalogRecord, IndexHit  # noqa: E402


def make_record(
    id: str,
    title: str,
    price: str = "$10.00",
    product_type: str = None,
    tags: str = "",
    vendor: str = None,
    variant_id: str = None,
) -> CatalogRecord:
    return CatalogRecord(
        id=id,
        handle=title.lower().replace(" ", "-"),
        title=title,
        price=price,
        product_url=f"https://shop.example.com/products/{id}",
        image_url=f"https://cdn.example.com/{id}.jpg",
        variant_id=variant_id,
        vendor=vendor,
        product_type=product_type,
        tags=tags,
    )


class FakeIndex:
    """Token-overlap ranking over an in-memory catalog."""

    SCAN_SCORE = 0.5

    def __init__(self, records: List[CatalogRecord], fail: bool = False):
        self.records = list(records)
        self.fail = fail
        self.calls: List[tuple] = []

    @staticmethod
    def _haystack(record: CatalogRecord) -> str:
        return " ".join([record.title, record.tags, record.product_type or "", record.vendor or ""]).lower()

    def query(self, text: str, top_k: int) -> List[IndexHit]:
        self.calls.append((text, top_k))
        if self.fail:
            raise CatalogIndexError("index unavailable")
        if not text.strip():
            return []
        if text == "all products":
            return [IndexHit(r.id, self.SCAN_SCORE, r) for r in self.records][:top_k]

        tokens = [t for t in text.lower().split() if t]
        scored = []
        for record in self.records:
            hay = self._haystack(record)
            matched = sum(1 for t in tokens if t in hay or t.rstrip("s") in hay)
            if matched:
                scored.append(IndexHit(record.id, matched / len(tokens), record))
        scored.sort(key=lambda h: h.score, reverse=True)
        return scored[:top_k]


class FakeLLM:
    """Returns a canned reply (dict → JSON) or raises."""

    def __init__(self, reply: Any = None, error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls: List[tuple] = []

    def generate(self, prompt: str, history=()) -> str:
        self.calls.append((prompt, list(history)))
        if self.error is not None:
            raise self.error
        if isinstance(self.reply, dict):
            return json.dumps(self.reply)
        return self.reply or ""


class FakeRedis:
    def __init__(self, fail: bool = False):
        self.data: Dict[str, str] = {}
        self.ttls: Dict[str, Any] = {}
        self.fail = fail

    def _check(self):
        if self.fail:
            raise RedisConnectionError("redis down")

    def get(self, key):
        self._check()
        return self.data.get(key)

    def setex(self, key, ttl, value):
        self._check()
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    def ping(self):
        self._check()
        return True


def intent_reply(**overrides) -> Dict[str, Any]:
    """A well-formed model reply; override any field."""
    reply = {
        "ai_understanding": "The customer wants product suggestions.",
        "search_keywords": "",
        "advice": "Here are some ideas.",
        "requested_product_count": 1,
        "product_types": [],
        "price_filter": None,
        "sort_by_price": False,
        "vendor": "",
        "attributes": [],
    }
    reply.update(overrides)
    return reply


@pytest.fixture
def catalog() -> List[CatalogRecord]:
    return [
        make_record("lip-1", "Velvet Matte Lipstick", "$24.00", "Makeup > Lips > Lipstick", "vegan, matte", "Glow Co"),
        make_record("lip-2", "Classic Red Lipstick", "$8.50", "Makeup > Lips > Lipstick", "classic", "RedHouse"),
        make_record("lip-3", "Vegan Nude Lipstick", "$15.00", "Makeup > Lips > Lipstick", "vegan, cruelty-free", "Glow Co"),
        make_record("lip-4", "Glossy Pink Lipstick", "$12.00", "Makeup > Lips > Lipstick", "glossy", "Petal"),
        make_record("lip-5", "Sheer Berry Lipstick", "N/A", "Makeup > Lips > Lipstick", "sheer", "Petal"),
        make_record("lip-6", "Vegan Plum Lipstick", "$19.99", "Makeup > Lips > Lipstick", "vegan", "Petal"),
        make_record("cln-1", "Gentle Foam Cleanser", "$14.00", "Skincare > Cleanser", "gentle, face wash", "Pure"),
        make_record("moi-1", "Daily Hydra Moisturizer", "$22.00", "Skincare > Moisturizer", "hydrating", "Pure"),
        make_record("trt-1", "Blemish Spot Treatment Serum", "$18.00", "Skincare > Treatment", "acne, serum", "Clear"),
    ]


@pytest.fixture
def index(catalog) -> FakeIndex:
    return FakeIndex(catalog)
