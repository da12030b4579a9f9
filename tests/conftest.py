"""Shared test fixtures and mock data."""

from __future__ import annotations

import json
from typing import Any

import pytest

from llmwire.client import ChatClient
from llmwire.config import Settings, reset_settings
from llmwire.registry import CredentialStore, ProviderRegistry

CONVERSATION = [
    {"role": "system", "content": "You are terse."},
    {"role": "user", "content": "Hi"},
    {"role": "assistant", "content": "Hello"},
    {"role": "user", "content": "How are you?"},
]


def sse(payload: dict[str, Any] | str) -> bytes:
    """Frame one server-sent event."""
    data = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
    return f"data: {data}\n\n".encode()


def openai_delta(text: str) -> dict[str, Any]:
    return {"choices": [{"index": 0, "delta": {"content": text}, "finish_reason": None}]}


def anthropic_delta(text: str) -> dict[str, Any]:
    return {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": text}}


def gemini_delta(text: str) -> dict[str, Any]:
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


@pytest.fixture
def settings() -> Settings:
    return Settings(timeout=5.0)


@pytest.fixture
def registry() -> ProviderRegistry:
    return ProviderRegistry(active_provider="openai")


@pytest.fixture
def credentials() -> CredentialStore:
    store = CredentialStore()
    store.set("openai", "sk-test")
    store.set("anthropic", "sk-ant-test")
    store.set("google", "goog-test")
    return store


@pytest.fixture
def client(registry, credentials, settings) -> ChatClient:
    return ChatClient(registry=registry, credentials=credentials, settings=settings)


@pytest.fixture(autouse=True)
def _reset_settings(monkeypatch):
    """Reset global settings and keep real keys out of tests."""
    for var in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_API_KEY"):
        monkeypatch.delenv(var, raising=False)
    reset_settings()
    yield
    reset_settings()
