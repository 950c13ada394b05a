# beauty_bot/utils/smart_logger.py
"""
Request-flow logging for the chat pipeline.

Each chat turn gets a short request tag (session suffix + time) so the
QUERY → INTENT → SEARCH → RESPONSE lines of one turn can be grepped together.
Verbosity comes from BOT_LOG_LEVEL (MINIMAL, STANDARD, DETAILED, DEBUG).
"""

import logging
import os
import sys
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

NOISY_LOGGERS = ("anthropic", "httpcore", "httpx", "urllib3", "werkzeug", "redis")

# request tag per session, shared by every module logger
_request_tags: Dict[str, str] = {}


class LogLevel(Enum):
    MINIMAL = 1      # start / decision / response only
    STANDARD = 2     # plus intent, search stages and history
    DETAILED = 3     # same events as STANDARD
    DEBUG = 4        # root logger at DEBUG as well


class SmartLogger:
    def __init__(self, name: str, level: LogLevel = LogLevel.STANDARD):
        self.logger = logging.getLogger(name)
        self.level = level

    def set_level(self, level: LogLevel):
        self.level = level

    def _enabled(self, level: LogLevel) -> bool:
        return self.level.value >= level.value

    def _tag(self, session_id: str) -> str:
        return _request_tags.get(session_id, "-")

    def _emit(self, method: str, emoji: str, category: str, message: str, **fields: Any):
        parts = [f"{emoji} {category}", message]
        parts += [f"{k}={v}" for k, v in fields.items() if v is not None]
        getattr(self.logger, method)(" | ".join(parts))

    # ───────────────────────────────────────────────────────────
    # Turn lifecycle
    # ───────────────────────────────────────────────────────────

    def query_start(self, session_id: str, query: str, history_turns: int):
        _request_tags[session_id] = f"{session_id[-6:]}_{datetime.now().strftime('%H%M%S')}"
        if not self._enabled(LogLevel.MINIMAL):
            return
        preview = query if len(query) <= 50 else query[:50] + "..."
        self._emit("info", "🚀", "QUERY_START", f"'{preview}'", req=self._tag(session_id), history=history_turns)

    def flow_decision(self, session_id: str, decision: str, reason: str = None):
        if self._enabled(LogLevel.MINIMAL):
            self._emit("info", "🎯", "FLOW", decision, req=self._tag(session_id), reason=reason)

    def intent_extracted(self, session_id: str, keywords: str, product_types: List[str],
                         requested_count: int, interpreted: bool):
        if self._enabled(LogLevel.STANDARD):
            self._emit("info", "🧠", "INTENT", f"'{keywords}'", req=self._tag(session_id),
                       types=product_types, count=requested_count, interpreted=interpreted)

    def search_stage(self, session_id: str, stage: str, found: int, accepted: Optional[int] = None):
        if self._enabled(LogLevel.STANDARD):
            self._emit("info", "🔍", "SEARCH", stage, req=self._tag(session_id), found=found, accepted=accepted)

    def history_operation(self, session_id: str, operation: str, details: Dict[str, Any] = None):
        if self._enabled(LogLevel.STANDARD):
            self._emit("info", "💾", "HISTORY", operation, req=self._tag(session_id), **(details or {}))

    def response_generated(self, session_id: str, cards: int, elapsed_time: float = None):
        tag = _request_tags.pop(session_id, "-")
        if not self._enabled(LogLevel.MINIMAL):
            return
        took = f"{elapsed_time:.3f}s" if elapsed_time is not None else None
        self._emit("info", "✅", "RESPONSE", "assembled", req=tag, cards=cards, time=took)

    def warning(self, session_id: str, warning_type: str, details: str = None):
        if self._enabled(LogLevel.STANDARD):
            self._emit("warning", "⚠️", "WARNING", warning_type, req=self._tag(session_id), details=details)

    def end_request(self, session_id: str):
        _request_tags.pop(session_id, None)


_loggers: Dict[str, SmartLogger] = {}


def _level_from_env() -> LogLevel:
    name = os.getenv("BOT_LOG_LEVEL", "STANDARD").upper()
    return LogLevel[name] if name in LogLevel.__members__ else LogLevel.STANDARD


def get_smart_logger(module_name: str, level: LogLevel = None) -> SmartLogger:
    """Shared SmartLogger per module name."""
    smart = _loggers.get(module_name)
    if smart is None:
        smart = _loggers[module_name] = SmartLogger(module_name, level or _level_from_env())
    elif level:
        smart.set_level(level)
    return smart


def configure_logging(level: LogLevel = LogLevel.STANDARD,
                      format_string: str = "%(asctime)s | %(message)s",
                      silence_external: bool = True):
    """Root handler on stdout plus the verbosity for every smart logger."""
    logging.basicConfig(
        level=logging.DEBUG if level == LogLevel.DEBUG else logging.INFO,
        format=format_string,
        datefmt="%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    if silence_external:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    for smart in _loggers.values():
        smart.set_level(level)
