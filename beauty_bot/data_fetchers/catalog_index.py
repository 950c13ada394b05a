# beauty_bot/data_fetchers/catalog_index.py
"""
Catalog Index Fetcher
─────────────────────
Thin REST client for the hosted text (BM25) product index (Upstash Vector).

• query(text, top_k)  → ranked IndexHit list (metadata validated)
• upsert(records)     → index maintenance, used by the catalog sync job
• fetch(ids)          → records by id (missing ids are skipped)

Every call is bounded by VECTOR_TIMEOUT_SECONDS. Transport and decode problems
surface as CatalogIndexError so callers can treat the stage as empty.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

import requests

from ..config import get_config
from ..models import CatalogRecord, IndexHit

log = logging.getLogger(__name__)
Cfg = get_config()


class CatalogIndexError(RuntimeError):
    """Raised when the catalog index cannot answer a request."""


class CatalogIndex:
    """REST client for the catalog text index."""

    def __init__(
        self,
        base_url: str = None,
        token: str = None,
        timeout: float = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or Cfg.VECTOR_URL or "").rstrip("/")
        self.token = token or Cfg.VECTOR_TOKEN
        self.timeout = timeout or Cfg.VECTOR_TIMEOUT_SECONDS

        if not self.base_url or not self.token:
            raise RuntimeError("VECTOR_URL and VECTOR_TOKEN are required for catalog index access")

        self.session = session or requests.Session()
        self.headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.token}",
        }

    def _post(self, path: str, body: Any) -> Any:
        endpoint = f"{self.base_url}/{path}"
        try:
            response = self.session.post(endpoint, headers=self.headers, json=body, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.Timeout as exc:
            raise CatalogIndexError(f"timeout calling {path}") from exc
        except requests.exceptions.RequestException as exc:
            raise CatalogIndexError(f"request to {path} failed: {exc}") from exc
        except ValueError as exc:
            raise CatalogIndexError(f"invalid JSON from {path}") from exc

        if isinstance(payload, dict) and payload.get("error"):
            raise CatalogIndexError(f"{path} returned error: {payload['error']}")
        if not isinstance(payload, dict) or "result" not in payload:
            raise CatalogIndexError(f"unexpected response shape from {path}")
        return payload["result"]

    def query(self, text: str, top_k: int) -> List[IndexHit]:
        """Ranked text search. Blank text returns no hits without a network call."""
        if not text or not text.strip():
            log.info("INDEX_QUERY_SKIPPED | reason=empty_text")
            return []

        log.info(f"INDEX_QUERY | data='{text[:70]}' | top_k={top_k}")
        result = self._post("query-data", {"data": text, "topK": int(top_k), "includeMetadata": True})
        if not isinstance(result, list):
            raise CatalogIndexError("query-data result is not a list")

        hits: List[IndexHit] = []
        skipped = 0
        for raw in result:
            hit = _to_hit(raw)
            if hit is None:
                skipped += 1
                continue
            hits.append(hit)

        if hits:
            log.info(f"INDEX_QUERY_RESULT | found={len(hits)} | invalid={skipped} | top_id={hits[0].id} | top_score={hits[0].score:.4f}")
        else:
            log.info(f"INDEX_QUERY_RESULT | found=0 | invalid={skipped}")
        return hits

    def upsert(self, records: Iterable[Tuple[CatalogRecord, str]]) -> int:
        """Upsert (record, searchable_text) pairs. Returns the number written."""
        body = [
            {"id": record.id, "data": data, "metadata": record.to_metadata()}
            for record, data in records
        ]
        if not body:
            return 0
        self._post("upsert-data", body)
        log.info(f"INDEX_UPSERT | count={len(body)}")
        return len(body)

    def fetch(self, ids: List[str]) -> List[CatalogRecord]:
        ids = [str(x).strip() for x in ids if str(x).strip()]
        if not ids:
            return []
        result = self._post("fetch", {"ids": ids, "includeMetadata": True, "includeData": True})
        if not isinstance(result, list):
            raise CatalogIndexError("fetch result is not a list")
        out: List[CatalogRecord] = []
        for raw in result:
            if not isinstance(raw, dict):
                continue
            record = CatalogRecord.from_metadata(raw.get("metadata"))
            if record is not None:
                out.append(record)
        log.info(f"INDEX_FETCH | requested={len(ids)} | found={len(out)}")
        return out

    def health_check(self) -> Dict[str, Any]:
        try:
            response = self.session.get(f"{self.base_url}/info", headers=self.headers, timeout=self.timeout)
            response.raise_for_status()
            info = (response.json() or {}).get("result") or {}
            return {"reachable": True, "vector_count": info.get("vectorCount")}
        except (requests.exceptions.RequestException, ValueError) as exc:
            return {"reachable": False, "error": str(exc)}


def _to_hit(raw: Any) -> Optional[IndexHit]:
    if not isinstance(raw, dict):
        return None
    record = CatalogRecord.from_metadata(raw.get("metadata"))
    if record is None:
        log.debug(f"INDEX_INVALID_METADATA | id={raw.get('id')}")
        return None
    try:
        score = float(raw.get("score", 0.0))
    except (TypeError, ValueError):
        score = 0.0
    return IndexHit(id=str(raw.get("id", record.id)), score=score, record=record)


_catalog_index: Optional[CatalogIndex] = None


def get_catalog_index() -> Optional[CatalogIndex]:
    """Shared index client, or None when the index is not configured."""
    global _catalog_index
    if _catalog_index is None:
        try:
            _catalog_index = CatalogIndex()
        except RuntimeError as exc:
            log.warning(f"INDEX_NOT_CONFIGURED | error={exc}")
            return None
    return _catalog_index
