# beauty_bot/keyword_cache.py
"""
Keyword Mapping Cache
─────────────────────
Derived lookup built from a broad catalog scan:

• normalized product type → expanded keyword string (type + tags + first title words)
• normalized product type → synonym set (tags + title words longer than 3 chars)
• default combo types (first 3 distinct types seen) for "set"/"combo" requests

The cache holds one immutable KeywordMappings snapshot. A build swaps the
snapshot under a lock; requests read one snapshot and keep it for their whole
lifetime. An empty snapshot is valid: callers fall back to literal search text.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

from .config import get_config
from .models import IndexHit
from .utils.helpers import iso_now, unique

log = logging.getLogger(__name__)
Cfg = get_config()

CATALOG_SCAN_TEXT = "all products"
MAX_COMBO_TYPES = 3
TITLE_KEYWORD_WORDS = 3
MIN_SYNONYM_WORD_LEN = 4


class SearchIndex(Protocol):
    def query(self, text: str, top_k: int) -> List[IndexHit]: ...


@dataclass(frozen=True)
class KeywordMappings:
    type_to_keywords: Dict[str, str] = field(default_factory=dict)
    synonyms: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    default_combo_types: Tuple[str, ...] = ()
    built_at: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.type_to_keywords

    def keywords_for(self, product_type: str) -> Optional[str]:
        return self.type_to_keywords.get((product_type or "").strip().lower())

    def synonyms_for(self, product_type: str) -> Tuple[str, ...]:
        return self.synonyms.get((product_type or "").strip().lower(), ())


def build_mappings(hits: Iterable[IndexHit]) -> KeywordMappings:
    """Derive keyword mappings from a catalog scan."""
    type_to_keywords: Dict[str, str] = {}
    synonyms: Dict[str, List[str]] = {}
    seen_types: List[str] = []

    for hit in hits:
        record = hit.record
        normalized = record.normalized_type
        if not normalized:
            continue
        if normalized not in synonyms:
            seen_types.append(normalized)

        tags = record.tag_list
        title_words = record.title.lower().split()

        type_to_keywords[normalized] = " ".join([normalized, *tags, *title_words[:TITLE_KEYWORD_WORDS]])
        long_words = [w for w in title_words if len(w) >= MIN_SYNONYM_WORD_LEN]
        synonyms[normalized] = unique(synonyms.get(normalized, []) + tags + long_words)

    return KeywordMappings(
        type_to_keywords=type_to_keywords,
        synonyms={k: tuple(v) for k, v in synonyms.items()},
        default_combo_types=tuple(seen_types[:MAX_COMBO_TYPES]),
        built_at=iso_now() if type_to_keywords else None,
    )


class KeywordMappingCache:
    """Process-wide, read-mostly keyword mappings with an explicit rebuild."""

    def __init__(self, scan_size: int = None, mappings: Optional[KeywordMappings] = None):
        self.scan_size = scan_size or Cfg.KEYWORD_CACHE_SCAN_SIZE
        self._mappings = mappings or KeywordMappings()
        self._lock = threading.Lock()
        self._build_lock = threading.Lock()
        self._last_error: Optional[str] = None

    def snapshot(self) -> KeywordMappings:
        with self._lock:
            return self._mappings

    def install(self, mappings: KeywordMappings) -> None:
        with self._lock:
            self._mappings = mappings

    @property
    def building(self) -> bool:
        return self._build_lock.locked()

    def rebuild(self, index: Optional[SearchIndex]) -> bool:
        """Scan the catalog and swap in fresh mappings.

        Never raises. On failure, or when the scan finds nothing, the current
        snapshot is kept.
        """
        if index is None:
            log.warning("KEYWORD_CACHE_SKIPPED | reason=index_not_configured")
            self._last_error = "index not configured"
            return False

        if not self._build_lock.acquire(blocking=False):
            log.info("KEYWORD_CACHE_SKIPPED | reason=build_in_progress")
            return False
        try:
            try:
                hits = index.query(CATALOG_SCAN_TEXT, self.scan_size)
            except Exception as exc:
                log.error(f"KEYWORD_CACHE_BUILD_ERROR | error={exc}")
                self._last_error = str(exc)
                return False

            if not hits:
                log.warning("KEYWORD_CACHE_EMPTY_SCAN | no products returned")
                self._last_error = "no products returned"
                return False

            mappings = build_mappings(hits)
            self.install(mappings)
            self._last_error = None
            log.info(
                f"KEYWORD_CACHE_BUILT | scanned={len(hits)} | types={len(mappings.type_to_keywords)} "
                f"| combo_types={list(mappings.default_combo_types)}"
            )
            return True
        finally:
            self._build_lock.release()

    def start_background_build(self, index: Optional[SearchIndex]) -> threading.Thread:
        """Kick off the first build without blocking app startup."""
        thread = threading.Thread(
            target=self.rebuild, args=(index,), name="keyword-cache-build", daemon=True
        )
        thread.start()
        log.info("KEYWORD_CACHE_BUILD_STARTED | mode=background")
        return thread

    def status(self) -> Dict[str, Any]:
        mappings = self.snapshot()
        return {
            "types": len(mappings.type_to_keywords),
            "default_combo_types": list(mappings.default_combo_types),
            "built_at": mappings.built_at,
            "building": self.building,
            "last_error": self._last_error,
        }
