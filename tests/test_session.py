"""Tests for ChatSession."""

from __future__ import annotations

import asyncio
import json

import respx
from httpx import Response

from llmwire.client import ChatClient
from llmwire.config import Settings
from llmwire.models import CompletionOptions, ContextItem, ContextItemType, Role
from llmwire.registry import CredentialStore
from llmwire.session import ChatSession

from conftest import openai_delta, sse

OPENAI_URL = "https://api.openai.com/v1/chat/completions"


def _stream(*parts: str) -> Response:
    return Response(200, content=b"".join(sse(openai_delta(p)) for p in parts) + sse("[DONE]"))


class TestChatSession:
    @respx.mock
    def test_records_turns_and_code_blocks(self, client):
        respx.post(OPENAI_URL).mock(return_value=_stream("Try:\n```py\n", "print(1)\n```"))
        session = ChatSession(client)
        seen: list[str] = []

        text = asyncio.run(session.send("How do I print?", on_chunk=seen.append))

        assert text == "Try:\n```py\nprint(1)\n```"
        assert "".join(seen) == text
        turns = session.conversation.messages
        assert [t.role for t in turns] == [Role.USER, Role.ASSISTANT]
        assert turns[1].content == text
        assert turns[1].code_blocks[0].language == "py"
        assert session.last_error is None
        assert not session.is_streaming

    @respx.mock
    def test_first_turn_sets_title_and_provider(self, client):
        respx.post(OPENAI_URL).mock(return_value=_stream("ok"))
        session = ChatSession(client)
        asyncio.run(session.send("x" * 60))
        conversation = session.conversation
        assert conversation.title == "x" * 50 + "..."
        assert conversation.provider_id == "openai"
        assert conversation.model_id == "gpt-5.2"

    @respx.mock
    def test_history_and_context_are_sent(self, client):
        route = respx.post(OPENAI_URL).mock(return_value=_stream("ok"))
        session = ChatSession(client)
        session.add_context(
            ContextItem(type=ContextItemType.ERROR, content="TypeError: boom")
        )
        asyncio.run(session.send("first"))
        asyncio.run(session.send("second"))

        body = json.loads(route.calls.last.request.content)
        messages = body["messages"]
        assert messages[0]["role"] == "system"
        assert messages[0]["content"].startswith("Here is relevant context:\n\n--- Error ---")
        assert [m["content"] for m in messages[1:]] == ["first", "ok", "second"]
        assert body["temperature"] == 0.7

    @respx.mock
    def test_context_is_truncated_to_budget(self, registry, credentials):
        route = respx.post(OPENAI_URL).mock(return_value=_stream("ok"))
        client = ChatClient(registry, credentials, Settings(max_context_tokens=5))
        session = ChatSession(client)
        session.add_context(ContextItem(type=ContextItemType.DIFF, content="+" * 500))
        asyncio.run(session.send("review"))

        system = json.loads(route.calls.last.request.content)["messages"][0]["content"]
        assert system.endswith("\n... (truncated)")
        assert len(system) < 100

    @respx.mock
    def test_system_prompt_kept_alongside_context(self, client):
        route = respx.post(OPENAI_URL).mock(return_value=_stream("ok"))
        session = ChatSession(client)
        session.add_context(ContextItem(type=ContextItemType.SELECTION, content="x = 1"))
        asyncio.run(
            session.send("explain", options=CompletionOptions(system_prompt="Be terse."))
        )

        messages = json.loads(route.calls.last.request.content)["messages"]
        assert [m["role"] for m in messages] == ["system", "user"]
        assert messages[0]["content"].startswith("Be terse.\n\nHere is relevant context:\n\n")

    def test_error_is_recorded_not_raised(self, registry, settings):
        session = ChatSession(ChatClient(registry, CredentialStore(), settings))
        text = asyncio.run(session.send("hello"))
        assert text == ""
        assert session.last_error == "No API key configured for OpenAI"
        assert not session.is_streaming

    @respx.mock
    def test_reset_starts_new_conversation(self, client):
        respx.post(OPENAI_URL).mock(return_value=_stream("ok"))
        session = ChatSession(client)
        asyncio.run(session.send("hi"))
        old_id = session.conversation.id
        session.reset()
        assert session.conversation.id != old_id
        assert session.conversation.messages == []

    def test_clear_context(self, client):
        session = ChatSession(client)
        session.add_context(ContextItem(type=ContextItemType.DIFF, content="-"))
        session.clear_context()
        assert session.context_items == []
