"""Pydantic data models and errors for llmwire."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class Role(str, Enum):
    """Author of a conversation message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ProtocolKind(str, Enum):
    """Wire-format family a provider speaks."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"


class RequestState(str, Enum):
    """Lifecycle state of a single completion request."""

    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    AWAITING_RESPONSE = "awaiting_response"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestState.DONE, RequestState.CANCELLED, RequestState.FAILED)


class Message(BaseModel):
    """A role-tagged conversation message."""

    role: Role
    content: str = ""


class ModelDescriptor(BaseModel):
    """Capabilities of a single model offered by a provider."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Model identifier sent on the wire, e.g. 'gpt-4.1-mini'")
    name: str = Field(default="", description="Human-readable model name")
    context_window: int = Field(default=8192, description="Maximum context length in tokens")
    supports_streaming: bool = True
    supports_fim: bool = Field(default=False, description="Fill-in-middle capable")


class ProviderDescriptor(BaseModel):
    """Immutable configuration of one LLM backend."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    protocol: ProtocolKind = ProtocolKind.OPENAI
    base_url: str
    models: list[ModelDescriptor] = Field(default_factory=list)
    is_builtin: bool = False

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def default_model_id(self) -> str:
        """First configured model, or ``""`` so the server rejects it."""
        return self.models[0].id if self.models else ""

    def get_model(self, model_id: str) -> ModelDescriptor | None:
        for model in self.models:
            if model.id == model_id:
                return model
        return None


class Credential(BaseModel):
    """API key for a provider. Supplied per request, never persisted."""

    provider_id: str
    api_key: SecretStr


class CompletionOptions(BaseModel):
    """Recognised options for a chat completion call."""

    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="Sampling randomness")
    max_tokens: int = Field(default=4096, gt=0, description="Response length cap")
    stream: bool = True
    system_prompt: str | None = Field(
        default=None,
        description="Prepended as a system message when the conversation has none",
    )


class CodeBlock(BaseModel):
    """A fenced code block found in a finished response."""

    language: str = "text"
    code: str


class ContextItemType(str, Enum):
    """Kind of editor context attached to a request."""

    FILE = "file"
    SELECTION = "selection"
    ERROR = "error"
    DIFF = "diff"


class ContextItem(BaseModel):
    """A piece of context (file, selection, error, diff) fed to the model."""

    type: ContextItemType
    label: str = ""
    content: str
    language: str | None = None


class ConnectionResult(BaseModel):
    """Outcome of a provider connection probe."""

    success: bool
    error: str | None = None


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class LLMWireError(Exception):
    """Base class for errors surfaced to callers."""


class ProviderError(LLMWireError):
    """Raised when a provider answers with a non-2xx status or an unreadable body."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class TransportError(LLMWireError):
    """Raised on network failures that are not cancellations (DNS, connect, timeouts)."""
