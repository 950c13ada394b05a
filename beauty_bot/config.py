"""
Configuration for the beauty chat assistant.
Everything is read from environment variables (``.env`` is loaded by run.py).
"""
from __future__ import annotations

import logging
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

_TRUTHY = {"1", "true", "yes", "on"}


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in _TRUTHY


def _first_env(*names: str, default: str = "") -> str:
    for name in names:
        value = os.getenv(name)
        if value:
            return value.strip()
    return default


class BaseConfig:
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-change-me")
    JSON_SORT_KEYS: bool = False

    # Redis (conversation history)
    REDIS_URL: str = os.getenv("REDIS_URL", "")
    REDIS_HOST: str = os.getenv("REDIS_HOST", "")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", 6379))
    REDIS_DB: int = int(os.getenv("REDIS_DB", 0))
    REDIS_DECODE_RESPONSES: bool = True
    ENABLE_HISTORY: bool = _flag("ENABLE_HISTORY", "true")
    HISTORY_TTL_SECONDS: int = int(os.getenv("HISTORY_TTL_SECONDS", 60 * 60 * 24))
    MAX_CHAT_HISTORY: int = int(os.getenv("MAX_CHAT_HISTORY", "10"))

    # Anthropic
    ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
    LLM_MODEL: str = os.getenv("LLM_MODEL", "claude-3-5-sonnet-20241022")
    LLM_TEMPERATURE: float = float(os.getenv("LLM_TEMPERATURE", "0.5"))
    LLM_MAX_TOKENS: int = int(os.getenv("LLM_MAX_TOKENS", "1000"))
    LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "20"))
    LLM_HISTORY_TURNS: int = int(os.getenv("LLM_HISTORY_TURNS", "4"))

    # Catalog index (Upstash Vector text/BM25 index, REST API)
    VECTOR_URL: str = _first_env("VECTOR_URL", "VECTOR_URL_BM25_4", "VECTOR_URL_BM25").rstrip("/")
    VECTOR_TOKEN: str = _first_env("VECTOR_TOKEN", "VECTOR_TOKEN_BM25_4", "VECTOR_TOKEN_BM25")
    VECTOR_TIMEOUT_SECONDS: int = int(os.getenv("VECTOR_TIMEOUT_SECONDS", "10"))

    # Matching
    SIMILARITY_THRESHOLD: float = float(os.getenv("SIMILARITY_THRESHOLD", "0.70"))
    FALLBACK_SEARCH_TERM: str = os.getenv("FALLBACK_SEARCH_TERM", "beauty products")
    PARALLEL_TYPE_SEARCH: bool = _flag("PARALLEL_TYPE_SEARCH", "true")

    # Keyword mapping cache
    KEYWORD_CACHE_SCAN_SIZE: int = int(os.getenv("KEYWORD_CACHE_SCAN_SIZE", "1000"))
    KEYWORD_CACHE_BUILD_ON_START: bool = _flag("KEYWORD_CACHE_BUILD_ON_START", "true")


class DevelopmentConfig(BaseConfig):
    DEBUG: bool = True


class ProductionConfig(BaseConfig):
    DEBUG: bool = False


class TestingConfig(BaseConfig):
    TESTING: bool = True
    REDIS_DB: int = 15
    KEYWORD_CACHE_BUILD_ON_START: bool = False


def get_config() -> BaseConfig:
    """Get configuration instance directly - no complex manager."""
    env = os.getenv("APP_ENV", os.getenv("FLASK_ENV", "development")).lower()
    mapping = {
        "development": DevelopmentConfig,
        "production": ProductionConfig,
        "testing": TestingConfig,
        "test": TestingConfig,
    }
    config_class = mapping.get(env, DevelopmentConfig)
    cfg = config_class()

    log = logging.getLogger(__name__)
    if not hasattr(get_config, "_logged_startup"):
        log.info(f"⚙️ CONFIG_STARTUP | env={env} | config_class={config_class.__name__}")
        log.info(f"🤖 LLM_CONFIG | model={cfg.LLM_MODEL} | temp={cfg.LLM_TEMPERATURE} | max_tokens={cfg.LLM_MAX_TOKENS} | configured={bool(cfg.ANTHROPIC_API_KEY)}")
        log.info(f"🔍 INDEX_CONFIG | configured={bool(cfg.VECTOR_URL and cfg.VECTOR_TOKEN)} | timeout={cfg.VECTOR_TIMEOUT_SECONDS}s | threshold={cfg.SIMILARITY_THRESHOLD}")
        log.info(f"💾 HISTORY_CONFIG | enabled={cfg.ENABLE_HISTORY} | max_turns={cfg.MAX_CHAT_HISTORY} | ttl={cfg.HISTORY_TTL_SECONDS}s")
        get_config._logged_startup = True

    return cfg
