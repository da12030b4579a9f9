"""Google Gemini API adapter."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from llmwire.models import CompletionOptions, Message, ProtocolKind, Role
from llmwire.providers.base import dig


class GeminiPart(BaseModel):
    text: str


class GeminiContent(BaseModel):
    role: str
    parts: list[GeminiPart]


class GeminiSystemInstruction(BaseModel):
    parts: list[GeminiPart]


class GeminiGenerationConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    temperature: float
    max_output_tokens: int = Field(alias="maxOutputTokens")


class GeminiRequest(BaseModel):
    """Body of ``generateContent`` / ``streamGenerateContent``."""

    model_config = ConfigDict(populate_by_name=True)

    contents: list[GeminiContent]
    system_instruction: GeminiSystemInstruction | None = Field(
        default=None, alias="systemInstruction"
    )
    generation_config: GeminiGenerationConfig = Field(alias="generationConfig")


class GoogleAdapter:
    """Adapter for the Gemini REST API.

    Assistant turns are sent with role ``model``; the first system message
    becomes ``systemInstruction``.
    """

    kind = ProtocolKind.GOOGLE
    done_sentinel: str | None = None

    def endpoint_url(self, base_url: str, model_id: str, stream: bool) -> str:
        base = base_url.rstrip("/")
        if stream:
            return f"{base}/v1beta/models/{model_id}:streamGenerateContent?alt=sse"
        return f"{base}/v1beta/models/{model_id}:generateContent"

    def headers(self, api_key: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-goog-api-key": api_key,
        }

    # -- Format translation ---------------------------------------------------

    @staticmethod
    def _to_gemini_request(
        messages: Sequence[Message],
        options: CompletionOptions,
    ) -> GeminiRequest:
        system_instruction: GeminiSystemInstruction | None = None
        contents: list[GeminiContent] = []

        for msg in messages:
            if msg.role == Role.SYSTEM:
                if system_instruction is None:
                    system_instruction = GeminiSystemInstruction(
                        parts=[GeminiPart(text=msg.content)],
                    )
                continue
            role = "model" if msg.role == Role.ASSISTANT else "user"
            contents.append(GeminiContent(role=role, parts=[GeminiPart(text=msg.content)]))

        return GeminiRequest(
            contents=contents,
            system_instruction=system_instruction,
            generation_config=GeminiGenerationConfig(
                temperature=options.temperature,
                max_output_tokens=options.max_tokens,
            ),
        )

    def build_body(
        self,
        messages: Sequence[Message],
        model_id: str,
        options: CompletionOptions,
        stream: bool,
    ) -> bytes:
        request = self._to_gemini_request(messages, options)
        return request.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")

    # -- Response parsing -----------------------------------------------------

    def extract_delta(self, event: dict[str, Any]) -> str | None:
        text = dig(event, "candidates", 0, "content", "parts", 0, "text")
        return text if isinstance(text, str) else None

    def extract_text(self, response: dict[str, Any]) -> str:
        text = dig(response, "candidates", 0, "content", "parts", 0, "text")
        return text if isinstance(text, str) else ""
