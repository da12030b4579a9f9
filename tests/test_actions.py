"""Tests for code actions and commit message generation."""

from __future__ import annotations

import asyncio
import json

import respx
from httpx import Response

from llmwire.actions import CodeAssistant, explain_code, first_code_block_or_text
from llmwire.client import ChatClient
from llmwire.config import Settings
from llmwire.registry import CredentialStore
from llmwire.session import ChatSession

from conftest import openai_delta, sse

OPENAI_URL = "https://api.openai.com/v1/chat/completions"


def _reply(text: str) -> Response:
    return Response(200, json={"choices": [{"message": {"content": text}}]})


class TestFirstCodeBlockOrText:
    def test_first_block_wins(self):
        text = "Sure:\n```py\nx = 1\n```\nand\n```py\ny = 2\n```"
        assert first_code_block_or_text(text) == "x = 1"

    def test_raw_text_without_blocks(self):
        assert first_code_block_or_text("x = 1") == "x = 1"


class TestCodeAssistant:
    @respx.mock
    def test_refactor_returns_first_block(self, client):
        route = respx.post(OPENAI_URL).mock(
            return_value=_reply("Here you go:\n```python\ndef f():\n    return 1\n```\nDone."),
        )
        assistant = CodeAssistant(client)
        result = asyncio.run(assistant.refactor("def f(): return 1", "python"))

        assert result == "def f():\n    return 1"
        assert assistant.last_error is None
        assert not assistant.is_busy
        body = json.loads(route.calls.last.request.content)
        assert body["stream"] is False
        assert body["temperature"] == 0.3
        assert body["messages"][0]["role"] == "system"
        assert "refactoring assistant" in body["messages"][0]["content"]
        assert body["messages"][1]["content"] == (
            "Refactor this python code:\n\n```python\ndef f(): return 1\n```"
        )

    @respx.mock
    def test_reply_without_block_is_returned_raw(self, client):
        respx.post(OPENAI_URL).mock(return_value=_reply("def f():\n    pass"))
        result = asyncio.run(CodeAssistant(client).simplify("def f(): pass", "python"))
        assert result == "def f():\n    pass"

    @respx.mock
    def test_uses_configured_code_temperature(self, registry, credentials):
        route = respx.post(OPENAI_URL).mock(return_value=_reply("```\nok\n```"))
        client = ChatClient(registry, credentials, Settings(code_temperature=0.1))
        asyncio.run(CodeAssistant(client).generate_docs("x", "go"))
        assert json.loads(route.calls.last.request.content)["temperature"] == 0.1

    @respx.mock
    def test_fix_error_includes_error_message(self, client):
        route = respx.post(OPENAI_URL).mock(return_value=_reply("```js\nok\n```"))
        asyncio.run(CodeAssistant(client).fix_error("a.b", "js", "TypeError: a is undefined"))
        user = json.loads(route.calls.last.request.content)["messages"][1]["content"]
        assert user.startswith("Fix this js code.\n\nError: TypeError: a is undefined\n\nCode:\n")

    @respx.mock
    def test_convert_language_prompts(self, client):
        route = respx.post(OPENAI_URL).mock(return_value=_reply("```rust\nfn main() {}\n```"))
        result = asyncio.run(
            CodeAssistant(client).convert_language("def main(): pass", "python", "rust")
        )
        assert result == "fn main() {}"
        messages = json.loads(route.calls.last.request.content)["messages"]
        assert "from python to rust" in messages[0]["content"]
        assert messages[1]["content"].startswith("Convert this python code to rust:")

    @respx.mock
    def test_generate_tests_prompt(self, client):
        route = respx.post(OPENAI_URL).mock(return_value=_reply("```\nt\n```"))
        asyncio.run(CodeAssistant(client).generate_tests("f()", "python"))
        user = json.loads(route.calls.last.request.content)["messages"][1]["content"]
        assert user.startswith("Generate unit tests for this python code:")

    @respx.mock
    def test_failure_recorded_not_raised(self, client):
        respx.post(OPENAI_URL).mock(
            return_value=Response(429, json={"error": {"message": "Rate limit reached"}}),
        )
        assistant = CodeAssistant(client)
        assert asyncio.run(assistant.refactor("x", "python")) == ""
        assert assistant.last_error == "Rate limit reached"
        assert not assistant.is_busy

    def test_missing_key_recorded(self, registry, settings):
        assistant = CodeAssistant(ChatClient(registry, CredentialStore(), settings))
        assert asyncio.run(assistant.simplify("x", "python")) == ""
        assert assistant.last_error == "No API key configured for OpenAI"


class TestCommitMessage:
    @respx.mock
    def test_streams_with_commit_settings(self, client):
        body = sse(openai_delta("feat: add ")) + sse(openai_delta("parser")) + sse("[DONE]")
        route = respx.post(OPENAI_URL).mock(return_value=Response(200, content=body))
        chunks: list[str] = []
        done: list[str] = []

        result = asyncio.run(
            CodeAssistant(client).generate_commit_message(
                "+ def parse(): ...", on_chunk=chunks.append, on_done=done.append
            )
        )

        assert result == "feat: add parser"
        assert chunks == ["feat: add ", "parser"]
        assert done == ["feat: add parser"]
        sent = json.loads(route.calls.last.request.content)
        assert sent["stream"] is True
        assert sent["temperature"] == 0.3
        assert sent["max_tokens"] == 256
        assert "under 72 chars" in sent["messages"][0]["content"]
        assert sent["messages"][1]["content"] == (
            "Generate a commit message for these changes:\n\n+ def parse(): ..."
        )

    @respx.mock
    def test_failure_returns_empty(self, client):
        respx.post(OPENAI_URL).mock(return_value=Response(500))
        assistant = CodeAssistant(client)
        assert asyncio.run(assistant.generate_commit_message("diff")) == ""
        assert assistant.last_error == "API error 500"


class TestExplainCode:
    @respx.mock
    def test_explanation_is_a_chat_turn(self, client):
        route = respx.post(OPENAI_URL).mock(
            return_value=Response(200, content=sse(openai_delta("It adds.")) + sse("[DONE]")),
        )
        session = ChatSession(client)
        result = asyncio.run(explain_code(session, "a + b", "python"))

        assert result == "It adds."
        assert len(session.conversation.messages) == 2
        user = json.loads(route.calls.last.request.content)["messages"][-1]["content"]
        assert user == (
            "Explain the following python code in detail. What does it do, and why?\n\n"
            "```python\na + b\n```"
        )
