"""
Beauty Chat Assistant Application Factory
=========================================

Initialization order:
1. Catalog index client and LLM service (None when not configured)
2. Keyword mapping cache (first build on a background thread)
3. History store (Redis, or a no-op store for stateless deployments)
4. Chat pipeline
5. Routes under /api

Every collaborator can be injected, which is how the tests run the app
without network access.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from flask import Flask, jsonify
from flask_cors import CORS

from .bot_core import ChatPipeline
from .config import get_config
from .data_fetchers import get_catalog_index
from .intent_extractor import IntentExtractor
from .keyword_cache import KeywordMappingCache
from .llm_service import get_llm_service
from .product_matcher import ProductMatcher
from .redis_manager import get_history_store

log = logging.getLogger(__name__)

_UNSET: Any = object()


def create_app(
    config_name: str = None,
    *,
    index: Any = _UNSET,
    llm: Any = _UNSET,
    history_store: Any = None,
    keyword_cache: KeywordMappingCache = None,
) -> Flask:
    if config_name:
        os.environ["APP_ENV"] = config_name
    cfg = get_config()

    app = Flask(__name__)
    app.config["SECRET_KEY"] = cfg.SECRET_KEY
    app.config["JSON_SORT_KEYS"] = cfg.JSON_SORT_KEYS
    app.config["TESTING"] = getattr(cfg, "TESTING", False)

    cors_origins_env = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if cors_origins_env:
        allowed_origins = [o.strip() for o in cors_origins_env.split(",") if o.strip()]
    else:
        allowed_origins = ["*"]

    CORS(
        app,
        resources={r"/api/*": {
            "origins": allowed_origins,
            "methods": ["GET", "POST", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"],
        }},
        supports_credentials=False,
    )

    # ────────────────────────────────────────────────────────
    # STEP 1: External clients
    # ────────────────────────────────────────────────────────
    if index is _UNSET:
        index = get_catalog_index()
    if llm is _UNSET:
        llm = get_llm_service()
    log.info(f"INIT_CLIENTS | index_configured={index is not None} | llm_configured={llm is not None}")

    # ────────────────────────────────────────────────────────
    # STEP 2: Keyword mapping cache
    # ────────────────────────────────────────────────────────
    cache = keyword_cache or KeywordMappingCache()
    if cfg.KEYWORD_CACHE_BUILD_ON_START and index is not None:
        cache.start_background_build(index)
    else:
        log.info("INIT_KEYWORD_CACHE | build_on_start=false or index missing | cache starts empty")

    # ────────────────────────────────────────────────────────
    # STEP 3: History store
    # ────────────────────────────────────────────────────────
    store = history_store or get_history_store()
    log.info(f"INIT_HISTORY | store={type(store).__name__}")

    # ────────────────────────────────────────────────────────
    # STEP 4: Pipeline
    # ────────────────────────────────────────────────────────
    pipeline = ChatPipeline(
        extractor=IntentExtractor(llm, cache),
        matcher=ProductMatcher(index, cache),
        cache=cache,
        history_store=store,
    )

    app.extensions["catalog_index"] = index
    app.extensions["llm_service"] = llm
    app.extensions["keyword_cache"] = cache
    app.extensions["history_store"] = store
    app.extensions["pipeline"] = pipeline

    # ────────────────────────────────────────────────────────
    # STEP 5: Routes
    # ────────────────────────────────────────────────────────
    from .routes import register_routes
    register_routes(app, url_prefix="/api")

    @app.errorhandler(404)
    def not_found(_e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(500)
    def internal_error(_e):
        return jsonify({"error": "Internal server error"}), 500

    log.info("APP_READY | routes registered under /api")
    return app
