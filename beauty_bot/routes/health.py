# beauty_bot/routes/health.py
"""
Liveness probe with dependency status.

Always 200 while the process is up; `status` is "degraded" when the index,
the model or the history store is unavailable, because the chat endpoint
still answers (with less) in that state.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from flask import Blueprint, current_app, jsonify

log = logging.getLogger(__name__)
bp = Blueprint("health", __name__)


@bp.get("/health")
def health_check() -> tuple[Dict[str, Any], int]:
    ext = current_app.extensions
    index = ext.get("catalog_index")
    store = ext.get("history_store")
    cache = ext.get("keyword_cache")

    history_ok = store.health_check() if store is not None else False
    checks = {
        "index": "configured" if index is not None else "not_configured",
        "llm": "configured" if ext.get("llm_service") is not None else "not_configured",
        "history": "connected" if history_ok else "disconnected",
        "history_store": type(store).__name__ if store is not None else None,
    }
    healthy = index is not None and ext.get("llm_service") is not None and history_ok
    if not healthy:
        log.warning(f"HEALTH_DEGRADED | checks={checks}")

    return jsonify({
        "status": "healthy" if healthy else "degraded",
        "service": "beauty_bot",
        **checks,
        "keyword_cache": cache.status() if cache is not None else None,
    }), 200
