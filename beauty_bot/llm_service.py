# beauty_bot/llm_service.py
"""
LLM service module
──────────────────
Wraps the Anthropic Messages API behind one call:

    generate(prompt, history) -> raw text

The raw text is expected, not guaranteed, to carry a JSON object; parsing is
the intent extractor's job.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import anthropic

from .config import get_config
from .enums import ChatRole
from .models import ConversationTurn

Cfg = get_config()
log = logging.getLogger(__name__)


class LLMServiceError(RuntimeError):
    """Raised when the model call fails or returns no text."""


def build_messages(prompt: str, history: Sequence[ConversationTurn] = ()) -> List[Dict[str, Any]]:
    """History turns followed by the prompt as the final user message.

    Consecutive turns with the same role are merged and leading assistant
    turns dropped, so the list always starts with the user and alternates.
    """
    messages: List[Dict[str, Any]] = []
    for turn in [*history, ConversationTurn(ChatRole.USER, prompt)]:
        role = turn.role.value
        if not messages and role != ChatRole.USER.value:
            continue
        if messages and messages[-1]["role"] == role:
            messages[-1]["content"] += "\n\n" + turn.text
        else:
            messages.append({"role": role, "content": turn.text})
    return messages


def _response_text(resp: Any) -> str:
    parts: List[str] = []
    for block in getattr(resp, "content", None) or []:
        if getattr(block, "type", None) == "text":
            parts.append(getattr(block, "text", "") or "")
    return "".join(parts).strip()


class LLMService:
    """Service class for all LLM interactions."""

    def __init__(self, api_key: str = None, model: str = None, client: Optional[anthropic.Anthropic] = None) -> None:
        api_key = api_key or getattr(Cfg, "ANTHROPIC_API_KEY", "") or ""
        if client is None:
            if not api_key:
                raise RuntimeError("Missing ANTHROPIC_API_KEY. Set it in environment or .env file.")
            if not isinstance(api_key, str) or not api_key.startswith("sk-ant-"):
                raise RuntimeError("Invalid ANTHROPIC_API_KEY format. It should start with 'sk-ant-'.")
            # Sync client: Flask runs each async view in a fresh event loop
            client = anthropic.Anthropic(api_key=api_key, timeout=Cfg.LLM_TIMEOUT_SECONDS, max_retries=1)

        self.client = client
        self.model = model or Cfg.LLM_MODEL

    def generate(self, prompt: str, history: Sequence[ConversationTurn] = ()) -> str:
        messages = build_messages(prompt, history)
        try:
            resp = self.client.messages.create(
                model=self.model,
                messages=messages,
                temperature=Cfg.LLM_TEMPERATURE,
                max_tokens=Cfg.LLM_MAX_TOKENS,
            )
        except anthropic.APIError as exc:
            raise LLMServiceError(f"model call failed: {exc}") from exc

        text = _response_text(resp)
        if not text:
            raise LLMServiceError("model returned no text")
        log.debug(f"LLM_RESPONSE | model={self.model} | chars={len(text)}")
        return text


def get_llm_service() -> Optional[LLMService]:
    """LLMService, or None when the model is not configured."""
    try:
        return LLMService()
    except RuntimeError as exc:
        log.warning(f"LLM_NOT_CONFIGURED | error={exc}")
        return None
