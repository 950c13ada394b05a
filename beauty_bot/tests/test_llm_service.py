from __future__ import annotations

from types import SimpleNamespace

import pytest

from beauty_bot.enums import ChatRole
from beauty_bot.llm_service import LLMService, LLMServiceError, build_messages
from beauty_bot.models import ConversationTurn


class FakeMessages:
    def __init__(self, blocks):
        self.blocks = blocks
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        return SimpleNamespace(content=self.blocks)


def _client(blocks):
    return SimpleNamespace(messages=FakeMessages(blocks))


def test_build_messages_alternates_and_ends_with_prompt():
    history = [
        ConversationTurn(ChatRole.ASSISTANT, "Welcome!"),
        ConversationTurn(ChatRole.USER, "hi"),
        ConversationTurn(ChatRole.USER, "any toners?"),
        ConversationTurn(ChatRole.ASSISTANT, "Sure."),
    ]
    messages = build_messages("PROMPT", history)
    assert messages == [
        {"role": "user", "content": "hi\n\nany toners?"},
        {"role": "assistant", "content": "Sure."},
        {"role": "user", "content": "PROMPT"},
    ]


def test_generate_joins_text_blocks():
    client = _client([
        SimpleNamespace(type="text", text='{"a": '),
        SimpleNamespace(type="tool_use", text="ignored"),
        SimpleNamespace(type="text", text="1}"),
    ])
    svc = LLMService(client=client, model="test-model")

    assert svc.generate("PROMPT") == '{"a": 1}'
    assert client.messages.kwargs["model"] == "test-model"
    assert client.messages.kwargs["messages"] == [{"role": "user", "content": "PROMPT"}]


def test_generate_raises_on_empty_reply():
    svc = LLMService(client=_client([]), model="test-model")
    with pytest.raises(LLMServiceError):
        svc.generate("PROMPT")


def test_rejects_malformed_api_key():
    with pytest.raises(RuntimeError):
        LLMService(api_key="not-a-key")
