"""Base protocol and shared helpers for wire-protocol adapters."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Protocol, Union, runtime_checkable

import httpx

from llmwire.models import CompletionOptions, Message, ProtocolKind, Role

MessageLike = Union[Message, dict[str, Any]]


@dataclass(frozen=True)
class PreparedRequest:
    """A fully-formed request, independent of transport."""

    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def payload(self) -> dict[str, Any]:
        """Decode the body back into a dict (handy for inspection and tests)."""
        result: dict[str, Any] = json.loads(self.body)
        return result


@runtime_checkable
class ProtocolAdapter(Protocol):
    """Interface for per-vendor request building and response parsing.

    Adapters are stateless: one instance per protocol kind is shared by
    every provider speaking that protocol.
    """

    kind: ProtocolKind
    done_sentinel: str | None

    def endpoint_url(self, base_url: str, model_id: str, stream: bool) -> str:
        """Resolve the POST endpoint for this protocol."""
        ...

    def headers(self, api_key: str) -> dict[str, str]:
        """Build authentication and content headers."""
        ...

    def build_body(
        self,
        messages: Sequence[Message],
        model_id: str,
        options: CompletionOptions,
        stream: bool,
    ) -> bytes:
        """Serialise the request body in the vendor's wire format."""
        ...

    def extract_delta(self, event: dict[str, Any]) -> str | None:
        """Pull the text fragment out of one decoded stream event."""
        ...

    def extract_text(self, response: dict[str, Any]) -> str:
        """Pull the full text out of a non-streaming response body."""
        ...


def dig(data: Any, *path: str | int) -> Any:
    """Walk nested dicts/lists, returning ``None`` at the first missing step."""
    current = data
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or len(current) <= key:
                return None
        elif not isinstance(current, dict):
            return None
        current = current[key] if isinstance(key, int) else current.get(key)
        if current is None:
            return None
    return current


def coerce_messages(messages: Sequence[MessageLike]) -> list[Message]:
    """Accept ``Message`` objects or plain ``{"role", "content"}`` dicts."""
    return [m if isinstance(m, Message) else Message.model_validate(m) for m in messages]


def prepare_messages(
    messages: Sequence[MessageLike],
    options: CompletionOptions,
    default_system_prompt: str | None = None,
) -> list[Message]:
    """Inject a system prompt ahead of protocol translation.

    ``options.system_prompt`` wins over the configured default; neither is
    used when the conversation already carries a system message.
    """
    prepared = coerce_messages(messages)
    if not any(m.role == Role.SYSTEM for m in prepared):
        prompt = options.system_prompt or default_system_prompt
        if prompt:
            prepared.insert(0, Message(role=Role.SYSTEM, content=prompt))
    if not prepared:
        raise ValueError("Cannot build a request from an empty conversation")
    return prepared


def parse_error_message(body: str, fallback: str) -> str:
    """Extract a provider error message from a JSON error body."""
    try:
        parsed = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return fallback
    message = dig(parsed, "error", "message") or dig(parsed, "message")
    if isinstance(message, str) and message:
        return message
    return fallback


@asynccontextmanager
async def _shared_or_ephemeral(
    client: httpx.AsyncClient | None,
    timeout: float,
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield a shared client if available, otherwise create a short-lived one."""
    if client is not None:
        yield client
    else:
        async with httpx.AsyncClient(timeout=timeout) as ephemeral:
            yield ephemeral
