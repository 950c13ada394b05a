"""
Redis-backed conversation history
=================================

One key per session (``chat:{session_id}``) holding a JSON list of
``{role, text}`` turns, written with SETEX so idle sessions expire.

Reads and writes are best-effort: load() returns None and save() returns
False on any Redis or decode problem, and neither raises.
"""
from __future__ import annotations

import json
import logging
import time
from datetime import timedelta
from typing import List, Optional, Sequence

import redis
from redis.exceptions import RedisError

from .config import get_config
from .models import ConversationTurn, turns_from_wire
from .utils.helpers import trim_history

log = logging.getLogger(__name__)
Cfg = get_config()

HISTORY_KEY_PREFIX = "chat:"


def _build_client() -> redis.Redis:
    common = dict(
        decode_responses=Cfg.REDIS_DECODE_RESPONSES,
        socket_timeout=5,
        socket_connect_timeout=5,
        retry_on_timeout=True,
        health_check_interval=30,
    )
    if Cfg.REDIS_URL:
        return redis.from_url(Cfg.REDIS_URL, **common)
    return redis.Redis(host=Cfg.REDIS_HOST, port=Cfg.REDIS_PORT, db=Cfg.REDIS_DB, **common)


class RedisHistoryStore:
    """Bounded per-session conversation buffer."""

    def __init__(self, client: redis.Redis | None = None, ttl_seconds: int = None, max_turns: int = None):
        self.redis: redis.Redis = client or _build_client()
        self.ttl = timedelta(seconds=ttl_seconds or Cfg.HISTORY_TTL_SECONDS)
        self.max_turns = max_turns or Cfg.MAX_CHAT_HISTORY

        self._connection_healthy = True
        self._last_health_check = 0.0

    @staticmethod
    def key(session_id: str) -> str:
        return f"{HISTORY_KEY_PREFIX}{session_id}"

    def load(self, session_id: str) -> Optional[List[ConversationTurn]]:
        """Stored turns, or None when nothing usable is stored."""
        try:
            raw = self.redis.get(self.key(session_id))
        except RedisError as e:
            log.error(f"HISTORY_LOAD_ERROR | session={session_id} | error={e}")
            return None
        if raw is None:
            log.debug(f"HISTORY_MISS | session={session_id}")
            return None

        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            log.warning(f"HISTORY_DECODE_ERROR | session={session_id} | error={e}")
            return None
        if not isinstance(data, list):
            log.warning(f"HISTORY_BAD_SHAPE | session={session_id} | type={type(data).__name__}")
            return None

        turns = turns_from_wire(data)
        log.info(f"HISTORY_LOADED | session={session_id} | turns={len(turns)}")
        return turns

    def save(self, session_id: str, turns: Sequence[ConversationTurn]) -> bool:
        bounded = list(turns)
        trim_history(bounded, self.max_turns)
        try:
            self.redis.setex(
                self.key(session_id),
                self.ttl,
                json.dumps([t.to_wire() for t in bounded], ensure_ascii=False),
            )
        except RedisError as e:
            log.error(f"HISTORY_SAVE_ERROR | session={session_id} | error={e}")
            return False
        log.info(f"HISTORY_SAVED | session={session_id} | turns={len(bounded)} | ttl={int(self.ttl.total_seconds())}s")
        return True

    def health_check(self) -> bool:
        """Ping with a 30 second cache."""
        now = time.time()
        if now - self._last_health_check < 30:
            return self._connection_healthy
        try:
            self.redis.ping()
            self._connection_healthy = True
        except RedisError as e:
            log.error(f"REDIS_HEALTH_CHECK_FAILED | error={e}")
            self._connection_healthy = False
        self._last_health_check = now
        return self._connection_healthy


class NullHistoryStore:
    """Stateless deployments: nothing is read or written."""

    def load(self, session_id: str) -> Optional[List[ConversationTurn]]:
        return None

    def save(self, session_id: str, turns: Sequence[ConversationTurn]) -> bool:
        return True

    def health_check(self) -> bool:
        return True


def get_history_store():
    """RedisHistoryStore when history is enabled and Redis is configured."""
    if not Cfg.ENABLE_HISTORY:
        log.info("HISTORY_DISABLED | reason=ENABLE_HISTORY=false")
        return NullHistoryStore()
    if not (Cfg.REDIS_URL or Cfg.REDIS_HOST):
        log.warning("HISTORY_DISABLED | reason=redis_not_configured")
        return NullHistoryStore()
    return RedisHistoryStore()
