# beauty_bot/routes/admin.py
"""
Keyword cache maintenance.

GET  /api/admin/keywords          cache status
POST /api/admin/keywords/rebuild  rescan the catalog and swap the mappings
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from flask import Blueprint, current_app, jsonify

log = logging.getLogger(__name__)
bp = Blueprint("admin", __name__)


@bp.get("/admin/keywords")
def keyword_status() -> tuple[Dict[str, Any], int]:
    cache = current_app.extensions["keyword_cache"]
    return jsonify(cache.status()), 200


@bp.post("/admin/keywords/rebuild")
def rebuild_keywords() -> tuple[Dict[str, Any], int]:
    cache = current_app.extensions["keyword_cache"]
    index = current_app.extensions.get("catalog_index")
    if index is None:
        return jsonify({"rebuilt": False, "error": "Catalog index is not configured", **cache.status()}), 503

    rebuilt = cache.rebuild(index)
    log.info(f"ADMIN_KEYWORD_REBUILD | rebuilt={rebuilt}")
    return jsonify({"rebuilt": rebuilt, **cache.status()}), 200
