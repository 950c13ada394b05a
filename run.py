#!/usr/bin/env python3
"""
Beauty Chat Assistant entry point.

    python run.py          dev server (exits if required env vars are missing)
    gunicorn run:app       WSGI; missing env vars only warn, the app degrades
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv
from flask import Flask, request

# .env must be loaded before beauty_bot reads its config
load_dotenv()

from beauty_bot import create_app  # noqa: E402
from beauty_bot.utils.smart_logger import LogLevel, configure_logging  # noqa: E402

REQUIRED_ENV = {
    "ANTHROPIC_API_KEY": ("query understanding", ()),
    "VECTOR_URL": ("catalog search", ("VECTOR_URL_BM25_4", "VECTOR_URL_BM25")),
    "VECTOR_TOKEN": ("catalog search", ("VECTOR_TOKEN_BM25_4", "VECTOR_TOKEN_BM25")),
}

_logging_ready = False


def init_logging() -> LogLevel:
    """Configure root + smart logging once per process from BOT_LOG_LEVEL."""
    global _logging_ready

    name = os.getenv("BOT_LOG_LEVEL", "STANDARD").upper()
    if name not in LogLevel.__members__:
        print(f"Warning: Invalid BOT_LOG_LEVEL '{name}'. Valid options: {', '.join(LogLevel.__members__)}")
        name = "STANDARD"
    level = LogLevel[name]

    if not _logging_ready and not logging.getLogger().handlers:
        configure_logging(level=level, format_string="%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    _logging_ready = True
    return level


def missing_env() -> list[str]:
    missing = []
    for key, (purpose, aliases) in REQUIRED_ENV.items():
        if not any(os.getenv(k) for k in (key, *aliases)):
            missing.append(f"{key} (required for {purpose})")
    return missing


def create_application(strict_env: bool = False) -> Flask:
    level = init_logging()

    missing = missing_env()
    if missing:
        msg = "Missing required environment variables: " + ", ".join(missing)
        if strict_env:
            print("Error:", msg)
            sys.exit(1)
        logging.getLogger(__name__).warning(msg)

    app = create_app()

    # Flask's own logger goes through the root handlers
    app.logger.handlers.clear()
    app.logger.propagate = True
    app.logger.setLevel(logging.DEBUG if level == LogLevel.DEBUG else logging.INFO)

    @app.before_request
    def _log_request():
        app.logger.info("→ %s %s", request.method, request.path)

    return app


def main() -> None:
    app = create_application(strict_env=True)

    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8080"))
    flask_debug = os.getenv("FLASK_DEBUG", "").lower()
    if flask_debug:
        debug = flask_debug in ("1", "true", "yes", "on")
    else:
        debug = os.getenv("APP_ENV", "development").lower() == "development"

    print("Beauty Chat Assistant")
    print("=" * 60)
    print(f"Chat:         POST http://{host}:{port}/api/chat")
    print(f"Health check: GET  http://{host}:{port}/api/health")
    print(f"Environment:  {os.getenv('APP_ENV', 'development')} | debug={debug} | pid={os.getpid()}")
    print("=" * 60)

    try:
        app.run(host=host, port=port, debug=debug, use_reloader=False, threaded=True)
    except KeyboardInterrupt:
        print("\nShutting down gracefully...")


if __name__ == "__main__":
    main()
else:
    app = create_application(strict_env=False)
