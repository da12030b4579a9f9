"""Anthropic Messages API adapter."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel

from llmwire.models import CompletionOptions, Message, ProtocolKind, Role
from llmwire.providers.base import dig

_API_VERSION = "2023-06-01"


class AnthropicMessage(BaseModel):
    role: str
    content: str


class AnthropicMessagesRequest(BaseModel):
    """Body of ``POST /v1/messages``. ``system`` is omitted when unset."""

    model: str
    system: str | None = None
    messages: list[AnthropicMessage]
    max_tokens: int
    temperature: float
    stream: bool


class AnthropicAdapter:
    """Adapter for the Anthropic Messages API.

    System messages are lifted out of the conversation into the top-level
    ``system`` field; everything else maps one to one.
    """

    kind = ProtocolKind.ANTHROPIC
    done_sentinel: str | None = None

    def endpoint_url(self, base_url: str, model_id: str, stream: bool) -> str:
        return f"{base_url.rstrip('/')}/v1/messages"

    def headers(self, api_key: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": _API_VERSION,
            "anthropic-dangerous-direct-browser-access": "true",
        }

    # -- Format translation ---------------------------------------------------

    @staticmethod
    def _to_anthropic_request(
        messages: Sequence[Message],
        model_id: str,
        options: CompletionOptions,
        stream: bool,
    ) -> AnthropicMessagesRequest:
        """Split system prompts from the turns in a single pass."""
        system_parts: list[str] = []
        turns: list[AnthropicMessage] = []

        for msg in messages:
            if msg.role == Role.SYSTEM:
                system_parts.append(msg.content)
            else:
                turns.append(AnthropicMessage(role=msg.role.value, content=msg.content))

        return AnthropicMessagesRequest(
            model=model_id,
            system="\n".join(system_parts) if system_parts else None,
            messages=turns,
            max_tokens=options.max_tokens,
            temperature=options.temperature,
            stream=stream,
        )

    def build_body(
        self,
        messages: Sequence[Message],
        model_id: str,
        options: CompletionOptions,
        stream: bool,
    ) -> bytes:
        request = self._to_anthropic_request(messages, model_id, options, stream)
        return request.model_dump_json(exclude_none=True).encode("utf-8")

    # -- Response parsing -----------------------------------------------------

    def extract_delta(self, event: dict[str, Any]) -> str | None:
        if event.get("type") != "content_block_delta":
            return None
        text = dig(event, "delta", "text")
        return text if isinstance(text, str) else None

    def extract_text(self, response: dict[str, Any]) -> str:
        text = dig(response, "content", 0, "text")
        return text if isinstance(text, str) else ""
