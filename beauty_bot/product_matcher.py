# beauty_bot/product_matcher.py
"""
Product Matcher
───────────────
Maps an Intent to an ordered list of catalog candidates.

Stages, each one only when the previous left nothing above the threshold:

  multi-type path    one slot per requested type (top 4 when sorting by price),
                     three progressively looser retries per type, ids claimed
                     by earlier types are skipped
  single-intent path AI keywords, then the raw user text (which replaces the
                     working set whenever it returns anything)
  universal fallback types joined, else keywords, else FALLBACK_SEARCH_TERM;
                     results carry the "related, not exact" note

Final selection keeps candidates at or above the threshold and falls back to
the truncated set when none qualify. Index failures never escape match().
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .config import get_config
from .enums import SearchStage
from .keyword_cache import KeywordMappingCache, KeywordMappings, SearchIndex
from .models import CatalogRecord, IndexHit, Intent, MatchCandidate, MatchResult
from .utils.helpers import parse_price, price_within
from .utils.smart_logger import get_smart_logger

Cfg = get_config()
log = logging.getLogger(__name__)
smart_log = get_smart_logger("product_matcher")

SEARCH_ISSUE_NOTE = "(Note: There was an issue searching for products.)"
RELATED_NOTE = (
    "(Sorry, we couldn't find exact matches for your request, "
    "but here are some related products you might like.)"
)
NOT_FOUND_NOTE = "(I couldn't find specific products matching your request.)"

MIN_TOP_K = 10
PER_TYPE_DEFAULT = 1
PER_TYPE_WHEN_SORTED = 4


@dataclass(frozen=True)
class FilterSpec:
    """Constraints applied to every record a stage returns, plus its ordering."""
    product_type: Optional[str] = None
    tags: Tuple[str, ...] = ()
    vendor: Optional[str] = None
    price_ceiling: Optional[float] = None
    attributes: Tuple[str, ...] = ()
    by_price: bool = False

    @classmethod
    def from_intent(cls, intent: Intent, product_type: str = None, tags: Sequence[str] = ()) -> "FilterSpec":
        return cls(
            product_type=product_type,
            tags=tuple(tags),
            vendor=intent.vendor,
            price_ceiling=intent.price_ceiling,
            attributes=intent.attributes,
            by_price=intent.sort_by_price,
        )


def record_passes(record: CatalogRecord, filters: FilterSpec, mappings: Optional[KeywordMappings] = None) -> bool:
    """True when the record satisfies every constraint in filters."""
    tags = record.tags.lower()
    title = record.title.lower()

    if filters.product_type:
        wanted = filters.product_type.strip().lower()
        terms = [wanted, *(mappings.synonyms_for(wanted) if mappings else ())]
        fields = (record.normalized_type, tags, title)
        if not any(term and term in f for term in terms for f in fields):
            return False

    if filters.tags:
        tokens = [t.strip().lower() for t in filters.tags if t.strip()]
        if tokens and not any(t in tags or t in title for t in tokens):
            return False

    if filters.vendor:
        if (record.vendor or "").strip().lower() != filters.vendor.strip().lower():
            return False

    if filters.price_ceiling is not None:
        if not price_within(parse_price(record.price), filters.price_ceiling):
            return False

    if filters.attributes:
        if not all(a.strip().lower() in tags for a in filters.attributes if a.strip()):
            return False

    return True


def sort_by_price(candidates: Sequence[MatchCandidate]) -> List[MatchCandidate]:
    """Stable ascending sort by parsed price; malformed prices count as 0."""
    return sorted(candidates, key=lambda c: parse_price(c.record.price))


class ProductMatcher:
    """Multi-stage catalog retrieval for one Intent."""

    def __init__(
        self,
        index: Optional[SearchIndex],
        cache: Optional[KeywordMappingCache] = None,
        threshold: float = None,
        fallback_term: str = None,
        parallel: bool = None,
    ):
        self.index = index
        self.cache = cache
        self.threshold = Cfg.SIMILARITY_THRESHOLD if threshold is None else threshold
        self.fallback_term = fallback_term or Cfg.FALLBACK_SEARCH_TERM
        self.parallel = Cfg.PARALLEL_TYPE_SEARCH if parallel is None else parallel

    # ────────────────────────────────────────────────────────
    # Index access
    # ────────────────────────────────────────────────────────

    @staticmethod
    def screen(
        hits: Sequence[IndexHit],
        filters: FilterSpec,
        stage: SearchStage,
        mappings: Optional[KeywordMappings] = None,
    ) -> List[MatchCandidate]:
        """Every hit as a candidate, with the filter outcome recorded on it."""
        return [
            MatchCandidate(
                record=hit.record,
                score=hit.score,
                stage=stage,
                passed_filters=record_passes(hit.record, filters, mappings),
            )
            for hit in hits
        ]

    def _run_query(
        self,
        text: str,
        filters: FilterSpec,
        top_k: int,
        stage: SearchStage,
        mappings: KeywordMappings,
    ) -> Tuple[List[MatchCandidate], bool]:
        """One filtered index query. Returns (candidates, failed), price-ordered
        when filters.by_price is set so callers truncate the cheapest first."""
        try:
            hits = self.index.query(text, top_k)
        except Exception as exc:
            log.warning(f"SEARCH_QUERY_FAILED | stage={stage.value} | text='{text[:70]}' | error={exc}")
            return [], True

        screened = self.screen(hits, filters, stage, mappings)
        out = [c for c in screened if c.passed_filters]
        if filters.by_price:
            out = sort_by_price(out)
        log.info(
            f"SEARCH_QUERY | stage={stage.value} | text='{text[:70]}' | hits={len(hits)} "
            f"| passed={len(out)} | rejected={len(screened) - len(out)}"
        )
        return out, False

    async def _query_async(self, *args) -> Tuple[List[MatchCandidate], bool]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self._run_query(*args))

    def _above_threshold(self, candidates: Sequence[MatchCandidate]) -> bool:
        return any(c.score >= self.threshold for c in candidates)

    # ────────────────────────────────────────────────────────
    # Stages
    # ────────────────────────────────────────────────────────

    def _search_type(
        self,
        product_type: str,
        intent: Intent,
        top_k: int,
        mappings: KeywordMappings,
    ) -> Tuple[List[MatchCandidate], bool]:
        """Three retries for one type, each looser than the last."""
        keywords = mappings.keywords_for(product_type) or product_type
        attempts = [
            (keywords, FilterSpec.from_intent(intent, product_type=product_type, tags=[product_type])),
            (keywords, FilterSpec.from_intent(intent, tags=[product_type])),
            (product_type, FilterSpec.from_intent(intent)),
        ]
        failed = False
        for text, filters in attempts:
            found, err = self._run_query(text, filters, top_k, SearchStage.MULTI_TYPE, mappings)
            failed = failed or err
            if found:
                return found, failed
        return [], failed

    async def _multi_type(
        self, intent: Intent, top_k: int, mappings: KeywordMappings
    ) -> Tuple[List[MatchCandidate], bool]:
        loop = asyncio.get_running_loop()
        types = list(intent.product_types)

        if self.parallel and len(types) > 1:
            per_type = await asyncio.gather(*[
                loop.run_in_executor(None, lambda t=t: self._search_type(t, intent, top_k, mappings))
                for t in types
            ])
        else:
            per_type = []
            for t in types:
                per_type.append(
                    await loop.run_in_executor(None, lambda t=t: self._search_type(t, intent, top_k, mappings))
                )

        # selection runs in request order so dedup is deterministic
        take = PER_TYPE_WHEN_SORTED if intent.sort_by_price else PER_TYPE_DEFAULT
        claimed: set[str] = set()
        selected: List[MatchCandidate] = []
        failed = False
        for product_type, (found, err) in zip(types, per_type):
            failed = failed or err
            picked = 0
            for cand in found:
                if picked >= take:
                    break
                if cand.id in claimed:
                    continue
                claimed.add(cand.id)
                selected.append(cand)
                picked += 1
            log.info(f"MULTI_TYPE_SLOT | type={product_type} | found={len(found)} | taken={picked}")
        return selected, failed

    async def _single_intent(
        self, query: str, intent: Intent, requested: int, top_k: int, mappings: KeywordMappings
    ) -> Tuple[List[MatchCandidate], SearchStage, bool]:
        filters = FilterSpec.from_intent(intent)
        working: List[MatchCandidate] = []
        stage = SearchStage.NONE
        failed = False

        keywords = intent.search_keywords.strip()
        if keywords:
            working, failed = await self._query_async(keywords, filters, top_k, SearchStage.AI_KEYWORDS, mappings)
            stage = SearchStage.AI_KEYWORDS

        if len(working) < requested or not self._above_threshold(working):
            direct, err = await self._query_async(query, filters, top_k, SearchStage.DIRECT, mappings)
            failed = failed or err
            if direct:
                working, stage = direct, SearchStage.DIRECT

        return working, stage, failed

    async def _fallback(
        self, intent: Intent, top_k: int, mappings: KeywordMappings
    ) -> Tuple[List[MatchCandidate], bool]:
        text = " ".join(intent.product_types) or intent.search_keywords.strip() or self.fallback_term
        return await self._query_async(text, FilterSpec.from_intent(intent), top_k, SearchStage.FALLBACK, mappings)

    # ────────────────────────────────────────────────────────
    # Selection
    # ────────────────────────────────────────────────────────

    def select(
        self,
        candidates: Sequence[MatchCandidate],
        stage: SearchStage,
        intent: Intent,
        requested: int,
    ) -> Tuple[List[MatchCandidate], bool]:
        """Truncate, sort and apply the threshold. Returns (final, strict)."""
        truncated = list(candidates)[:requested]
        if intent.sort_by_price:
            truncated = sort_by_price(truncated)
        if stage == SearchStage.FALLBACK:
            return truncated, False

        strict = [c for c in truncated if c.score >= self.threshold]
        if strict:
            return strict, True
        return truncated, False

    async def match(
        self,
        query: str,
        intent: Intent,
        mappings: Optional[KeywordMappings] = None,
        session_id: str = "anonymous",
    ) -> MatchResult:
        if mappings is None:
            mappings = self.cache.snapshot() if self.cache is not None else KeywordMappings()

        if intent.interpreted and not intent.has_product_signal:
            smart_log.flow_decision(session_id, "SKIP_SEARCH", reason="no_product_intent")
            return MatchResult()

        if self.index is None:
            smart_log.warning(session_id, "INDEX_UNAVAILABLE", "catalog index not configured")
            return MatchResult(note=NOT_FOUND_NOTE)

        requested = max(1, intent.requested_count)
        top_k = max(requested * 2, MIN_TOP_K)
        failed = False

        if intent.product_types:
            candidates, failed = await self._multi_type(intent, top_k, mappings)
            stage = SearchStage.MULTI_TYPE if candidates else SearchStage.NONE
        else:
            candidates, stage, failed = await self._single_intent(query, intent, requested, top_k, mappings)
        smart_log.search_stage(session_id, stage.value, found=len(candidates))

        note: Optional[str] = SEARCH_ISSUE_NOTE if failed else None

        if not self._above_threshold(candidates):
            fallback, err = await self._fallback(intent, top_k, mappings)
            smart_log.search_stage(session_id, SearchStage.FALLBACK.value, found=len(fallback))
            if fallback:
                candidates, stage, note = fallback, SearchStage.FALLBACK, RELATED_NOTE
            elif err:
                note = SEARCH_ISSUE_NOTE

        final, strict = self.select(candidates, stage, intent, requested)
        if strict:
            note = None
        if not final:
            note = NOT_FOUND_NOTE

        smart_log.search_stage(session_id, "FINAL_SELECTION", found=len(candidates), accepted=len(final))
        return MatchResult(candidates=final, note=note, stage=stage, strict=strict)
