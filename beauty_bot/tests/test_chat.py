# beauty_bot/tests/test_chat.py
"""
End-to-end through the Flask app factory with injected fakes.

Run:  pytest -q
"""

from __future__ import annotations

import json
from typing import Any, Dict

import pytest
from conftest import FakeIndex, FakeLLM, FakeRedis, intent_reply

from beauty_bot import create_app
from beauty_bot.keyword_cache import KeywordMappingCache
from beauty_bot.redis_manager import RedisHistoryStore
from beauty_bot.utils import parse_price, smart_logger


def _client(index, llm, redis_client=None):
    app = create_app(
        "testing",
        index=index,
        llm=llm,
        history_store=RedisHistoryStore(client=redis_client or FakeRedis(), max_turns=10),
        keyword_cache=KeywordMappingCache(),
    )
    return app, app.test_client()


@pytest.fixture
def redis_fake():
    return FakeRedis()


@pytest.mark.parametrize("body", [None, {}, {"query": ""}, {"query": "   "}, {"query": 42}])
def test_chat_rejects_invalid_query(index, body):
    _, client = _client(index, FakeLLM(intent_reply()))
    res = client.post("/api/chat", json=body) if body is not None else client.post("/api/chat", data="nope")
    assert res.status_code == 400
    assert res.get_json() == {"error": "Invalid query provided"}


def test_top_4_cheapest_lipsticks(index):
    llm = FakeLLM(intent_reply(
        search_keywords="lipstick",
        product_types=["lipstick"],
        sort_by_price=True,
        requested_product_count=4,
        advice="Here are our most affordable lipsticks.",
    ))
    _, client = _client(index, llm)

    res = client.post("/api/chat", json={"query": "top 4 cheapest lipsticks", "history": []})
    assert res.status_code == 200
    body: Dict[str, Any] = res.get_json()

    cards = body["complementary_products"]
    prices = [parse_price(c["price"]) for c in cards]
    assert len(cards) == 4
    assert prices == sorted(prices)
    assert body["advice"].startswith("Here are our most affordable lipsticks.\n\n")


def test_store_hours_returns_advice_only(index):
    llm = FakeLLM(intent_reply(advice="We are open 9am to 6pm, Monday to Saturday."))
    _, client = _client(index, llm)

    body = client.post("/api/chat", json={"query": "what are your store hours"}).get_json()

    assert body["advice"].startswith("We are open 9am to 6pm")
    assert "product_card" not in body
    assert "complementary_products" not in body
    assert index.calls == []


def test_vegan_lipsticks_under_20(index):
    llm = FakeLLM(intent_reply(
        search_keywords="vegan lipstick",
        product_types=["lipstick"],
        attributes=["vegan", "under $20"],
    ))
    _, client = _client(index, llm)

    body = client.post("/api/chat", json={"query": "vegan lipsticks under $20"}).get_json()

    cards = [body["product_card"]] if "product_card" in body else body["complementary_products"]
    assert cards
    by_title = {r.title: r for r in index.records}
    for card in cards:
        assert parse_price(card["price"]) <= 20
        assert "vegan" in by_title[card["title"]].tags


def test_index_down_still_answers(catalog):
    llm = FakeLLM(intent_reply(search_keywords="lipstick", advice="Let me look."))
    _, client = _client(FakeIndex(catalog, fail=True), llm)

    res = client.post("/api/chat", json={"query": "red lipstick"})
    body = res.get_json()

    assert res.status_code == 200
    assert "couldn't find specific products" in body["advice"]
    assert "product_card" not in body and "complementary_products" not in body


def test_every_dependency_down_still_has_advice(catalog):
    _, client = _client(FakeIndex(catalog, fail=True), None, FakeRedis(fail=True))
    body = client.post("/api/chat", json={"query": "help", "session_id": "s1"}).get_json()
    assert body["advice"]
    assert body["ai_understanding"]


def test_history_persisted_and_preferred(index, redis_fake):
    llm = FakeLLM(intent_reply(search_keywords="cleanser", advice="Try a gentle cleanser."))
    _, client = _client(index, llm, redis_fake)

    first = client.post("/api/chat", json={
        "query": "I need a cleanser",
        "session_id": "abc",
        "history": [{"role": "user", "text": "from the widget"}],
    }).get_json()

    stored = json.loads(redis_fake.data["chat:abc"])
    assert stored == first["history"]
    assert stored[0] == {"role": "user", "text": "from the widget"}
    assert stored[-2:] == [
        {"role": "user", "text": "I need a cleanser"},
        {"role": "bot", "text": first["advice"]},
    ]

    second = client.post("/api/chat", json={
        "query": "anything cheaper?",
        "session_id": "abc",
        "history": [{"role": "user", "text": "stale widget copy"}],
    }).get_json()
    assert "stale widget copy" not in [t["text"] for t in second["history"]]
    assert len(second["history"]) == 5


def test_history_capped_at_ten(index, redis_fake):
    _, client = _client(index, FakeLLM(intent_reply(search_keywords="serum")), redis_fake)
    history = [{"role": "user" if i % 2 == 0 else "bot", "text": f"t{i}"} for i in range(12)]

    body = client.post("/api/chat", json={"query": "serum", "history": history}).get_json()

    assert len(body["history"]) == 10
    assert body["history"][-2]["text"] == "serum"
    # no session_id, so nothing is stored
    assert redis_fake.data == {}


def test_pipeline_crash_returns_apology(index):
    app, client = _client(index, FakeLLM(intent_reply()))

    async def boom(*_a, **_kw):
        raise RuntimeError("pipeline exploded")

    app.extensions["pipeline"].process = boom
    res = client.post("/api/chat", json={"query": "hello"})

    assert res.status_code == 500
    body = res.get_json()
    assert body["ai_understanding"] == "An error occurred."
    assert "pipeline exploded" in body["advice"]
    assert body["history"] == []


def test_failed_turn_releases_request_tag(index):
    app, client = _client(index, FakeLLM(intent_reply()))

    async def boom(*_a, **_kw):
        raise RuntimeError("extractor exploded")

    app.extensions["pipeline"].extractor.extract = boom
    res = client.post("/api/chat", json={"query": "hello", "session_id": "sess-crash"})

    assert res.status_code == 500
    assert "sess-crash" not in smart_logger._request_tags


def test_search_endpoint(index):
    _, client = _client(index, None)
    res = client.post("/api/search", json={"query": "cleanser", "limit": 5})
    body = res.get_json()
    assert res.status_code == 200
    assert body["returned"] == 1
    assert body["products"][0]["title"] == "Gentle Foam Cleanser"

    assert client.post("/api/search", json={}).status_code == 400


def test_health_reports_degraded_without_llm(index):
    _, client = _client(index, None)
    res = client.get("/api/health")
    body = res.get_json()
    assert res.status_code == 200
    assert body["status"] == "degraded"
    assert body["llm"] == "not_configured"
    assert body["index"] == "configured"


def test_admin_keyword_rebuild(index):
    _, client = _client(index, None)
    assert client.get("/api/admin/keywords").get_json()["types"] == 0

    body = client.post("/api/admin/keywords/rebuild").get_json()
    assert body["rebuilt"] is True
    assert body["types"] == 4
