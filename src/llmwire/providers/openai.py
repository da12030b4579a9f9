"""OpenAI chat completions adapter (also used for OpenAI-compatible endpoints)."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel

from llmwire.models import CompletionOptions, Message, ProtocolKind
from llmwire.providers.base import dig

_DONE_SENTINEL = "[DONE]"


class OpenAIChatMessage(BaseModel):
    role: str
    content: str


class OpenAIChatRequest(BaseModel):
    """Body of ``POST /v1/chat/completions``."""

    model: str
    messages: list[OpenAIChatMessage]
    temperature: float
    max_tokens: int
    stream: bool


class OpenAIAdapter:
    """Adapter for the OpenAI ``/v1/chat/completions`` format.

    Custom providers that expose an OpenAI-compatible API share this adapter.
    """

    kind = ProtocolKind.OPENAI
    done_sentinel: str | None = _DONE_SENTINEL

    def endpoint_url(self, base_url: str, model_id: str, stream: bool) -> str:
        return f"{base_url.rstrip('/')}/v1/chat/completions"

    def headers(self, api_key: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }

    @staticmethod
    def _to_openai_request(
        messages: Sequence[Message],
        model_id: str,
        options: CompletionOptions,
        stream: bool,
    ) -> OpenAIChatRequest:
        return OpenAIChatRequest(
            model=model_id,
            messages=[OpenAIChatMessage(role=m.role.value, content=m.content) for m in messages],
            temperature=options.temperature,
            max_tokens=options.max_tokens,
            stream=stream,
        )

    def build_body(
        self,
        messages: Sequence[Message],
        model_id: str,
        options: CompletionOptions,
        stream: bool,
    ) -> bytes:
        request = self._to_openai_request(messages, model_id, options, stream)
        return request.model_dump_json().encode("utf-8")

    def extract_delta(self, event: dict[str, Any]) -> str | None:
        text = dig(event, "choices", 0, "delta", "content")
        return text if isinstance(text, str) else None

    def extract_text(self, response: dict[str, Any]) -> str:
        text = dig(response, "choices", 0, "message", "content")
        return text if isinstance(text, str) else ""
