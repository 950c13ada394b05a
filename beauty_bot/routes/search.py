# beauty_bot/routes/search.py
"""
Direct catalog search
─────────────────────
POST /api/search  {query, limit?}

Plain text query against the catalog index: no intent extraction, no
filters and no fallback. Useful for checking what the index returns for a
phrase.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from ..data_fetchers import CatalogIndexError
from ..models import ProductCard
from ..response_assembler import STRICT_DESCRIPTION

log = logging.getLogger(__name__)
bp = Blueprint("search", __name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


@bp.post("/search")
def simple_search() -> tuple[Dict[str, Any], int]:
    data = request.get_json(silent=True) or {}

    query = data.get("query")
    if not query or not isinstance(query, str) or not query.strip():
        return jsonify({
            "error": "Missing or invalid 'query' field. Expected a non-empty string."
        }), 400

    limit = data.get("limit", DEFAULT_LIMIT)
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        limit = DEFAULT_LIMIT
    limit = min(limit, MAX_LIMIT)

    index = current_app.extensions.get("catalog_index")
    if index is None:
        return jsonify({"error": "Catalog index is not configured"}), 503

    query = query.strip()
    log.info(f"SIMPLE_SEARCH_REQUEST | query='{query}' | limit={limit}")
    try:
        hits = index.query(query, limit)
    except CatalogIndexError as exc:
        log.error(f"SIMPLE_SEARCH_ERROR | error={exc}")
        return jsonify({"error": "Catalog search failed", "message": str(exc)}), 502

    products = []
    for hit in hits:
        card = ProductCard.from_record(hit.record, STRICT_DESCRIPTION).to_dict()
        card["score"] = hit.score
        products.append(card)

    log.info(f"SIMPLE_SEARCH_SUCCESS | query='{query}' | returned={len(products)}")
    return jsonify({"products": products, "returned": len(products)}), 200
