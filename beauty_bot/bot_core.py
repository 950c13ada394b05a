# beauty_bot/bot_core.py
"""
Chat pipeline
─────────────
History read → intent extraction → product matching → response assembly →
history write. One pipeline serves both stateless and history-backed
deployments; the history store decides which.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from .config import get_config
from .enums import ChatRole
from .intent_extractor import IntentExtractor
from .keyword_cache import KeywordMappingCache
from .models import ConversationTurn, turns_from_wire
from .product_matcher import ProductMatcher
from .redis_manager import NullHistoryStore
from .response_assembler import assemble_response
from .utils.helpers import trim_history
from .utils.smart_logger import get_smart_logger

Cfg = get_config()
log = logging.getLogger(__name__)
smart_log = get_smart_logger("bot_core")

STATELESS_SESSION = "stateless"


class ChatPipeline:
    def __init__(
        self,
        extractor: IntentExtractor,
        matcher: ProductMatcher,
        cache: Optional[KeywordMappingCache] = None,
        history_store=None,
        max_history: int = None,
    ):
        self.extractor = extractor
        self.matcher = matcher
        self.cache = cache or KeywordMappingCache()
        self.history_store = history_store or NullHistoryStore()
        self.max_history = max_history or Cfg.MAX_CHAT_HISTORY

    async def _load_history(
        self, session_id: Optional[str], client_history: Sequence[ConversationTurn]
    ) -> List[ConversationTurn]:
        """Stored history wins when present; otherwise the widget's copy is used."""
        if not session_id:
            return list(client_history)

        loop = asyncio.get_running_loop()
        stored = await loop.run_in_executor(None, lambda: self.history_store.load(session_id))
        if stored is not None:
            smart_log.history_operation(session_id, "loaded", {"source": "store", "turns": len(stored)})
            return stored
        smart_log.history_operation(session_id, "loaded", {"source": "client", "turns": len(client_history)})
        return list(client_history)

    async def _save_history(self, session_id: Optional[str], turns: List[ConversationTurn]) -> None:
        if not session_id:
            return
        loop = asyncio.get_running_loop()
        saved = await loop.run_in_executor(None, lambda: self.history_store.save(session_id, turns))
        if not saved:
            smart_log.warning(session_id, "HISTORY_NOT_SAVED", "response returned without persisting history")

    async def process(
        self,
        query: str,
        client_history: Any = None,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Run one chat turn and return the response payload (history included)."""
        start = time.perf_counter()
        log_id = session_id or STATELESS_SESSION
        query = query.strip()

        client_turns = turns_from_wire(client_history)
        smart_log.query_start(log_id, query, len(client_turns))
        try:
            history = await self._load_history(session_id, client_turns)

            # one snapshot for the whole request
            mappings = self.cache.snapshot()

            intent = await self.extractor.extract(query, history, mappings)
            smart_log.intent_extracted(
                log_id, intent.search_keywords, list(intent.product_types), intent.requested_count, intent.interpreted
            )

            result = await self.matcher.match(query, intent, mappings, session_id=log_id)
            payload = assemble_response(intent, result)

            history.append(ConversationTurn(ChatRole.USER, query))
            history.append(ConversationTurn(ChatRole.ASSISTANT, payload["advice"]))
            trim_history(history, self.max_history)
            await self._save_history(session_id, history)

            payload["history"] = [t.to_wire() for t in history]

            cards = 1 if "product_card" in payload else len(payload.get("complementary_products", []))
            smart_log.response_generated(log_id, cards, time.perf_counter() - start)
            return payload
        finally:
            smart_log.end_request(log_id)
