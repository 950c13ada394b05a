from __future__ import annotations

from typing import Any, List

import pytest
import requests

from beauty_bot.data_fetchers import CatalogIndex, CatalogIndexError, catalog_index

from conftest import make_record


class FakeResponse:
    def __init__(self, payload: Any, status: int = 200):
        self.payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    def __init__(self, response: Any = None):
        self.response = response
        self.posts: List[tuple] = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.posts.append((url, json, timeout, headers))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    def get(self, url, headers=None, timeout=None):
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def _index(response) -> tuple[CatalogIndex, FakeSession]:
    session = FakeSession(response)
    return CatalogIndex(base_url="https://vec.example.com/", token="tok", timeout=3, session=session), session


def test_query_validates_metadata():
    good = make_record("p1", "Matte Lipstick").to_metadata()
    payload = {"result": [
        {"id": "p1", "score": 0.91, "metadata": good},
        {"id": "p2", "score": 0.80, "metadata": {"id": "p2", "title": "No price"}},
        {"id": "p3", "score": 0.70},
    ]}
    index, session = _index(FakeResponse(payload))

    hits = index.query("lipstick", 10)

    assert [h.id for h in hits] == ["p1"]
    assert hits[0].score == pytest.approx(0.91)
    assert hits[0].record.title == "Matte Lipstick"
    url, body, timeout, headers = session.posts[0]
    assert url == "https://vec.example.com/query-data"
    assert body == {"data": "lipstick", "topK": 10, "includeMetadata": True}
    assert timeout == 3
    assert headers["Authorization"] == "Bearer tok"


def test_blank_query_makes_no_call():
    index, session = _index(FakeResponse({"result": []}))
    assert index.query("   ", 10) == []
    assert session.posts == []


@pytest.mark.parametrize(
    "response",
    [
        requests.exceptions.Timeout("slow"),
        requests.exceptions.ConnectionError("refused"),
        FakeResponse({"result": []}, status=500),
        FakeResponse(ValueError("bad json")),
        FakeResponse({"error": "Unauthorized"}),
        FakeResponse({"unexpected": True}),
    ],
)
def test_query_failures_raise_index_error(response):
    index, _ = _index(response)
    with pytest.raises(CatalogIndexError):
        index.query("lipstick", 10)


def test_upsert_and_fetch():
    record = make_record("p9", "Glow Serum", product_type="Skincare > Serum")
    index, session = _index(FakeResponse({"result": "Success"}))

    assert index.upsert([(record, "Glow Serum serum skincare")]) == 1
    url, body, _, _ = session.posts[0]
    assert url.endswith("/upsert-data")
    assert body[0]["metadata"]["productType"] == "Skincare > Serum"

    session.response = FakeResponse({"result": [None, {"id": "p9", "metadata": record.to_metadata()}]})
    assert index.fetch(["p9", "missing"]) == [record]


def test_requires_configuration(monkeypatch):
    monkeypatch.setattr(catalog_index.Cfg, "VECTOR_URL", "")
    monkeypatch.setattr(catalog_index.Cfg, "VECTOR_TOKEN", "")
    with pytest.raises(RuntimeError):
        CatalogIndex(base_url="", token="", session=FakeSession())


def test_health_check():
    index, _ = _index(FakeResponse({"result": {"vectorCount": 42}}))
    assert index.health_check() == {"reachable": True, "vector_count": 42}

    index, _ = _index(requests.exceptions.ConnectionError("down"))
    assert index.health_check()["reachable"] is False
