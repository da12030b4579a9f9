"""Settings loading from environment variables and config files."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from llmwire.models import LLMWireError


class ConfigurationError(LLMWireError):
    """Raised when no provider or credential is available for a request."""


_DEFAULT_CONFIG_PATH = Path.home() / ".config" / "llmwire" / "config.yaml"


class Settings(BaseModel):
    """Application settings."""

    openai_api_key: str = Field(default="", description="OpenAI API key")
    anthropic_api_key: str = Field(default="", description="Anthropic API key")
    google_api_key: str = Field(default="", description="Google AI API key")
    active_provider: str = Field(default="openai", description="Provider id used for requests")
    active_model: str = Field(
        default="",
        description="Model id used for requests (empty = provider's first model)",
    )
    providers_file: str | None = Field(
        default=None, description="Path to a YAML file with custom provider definitions"
    )
    system_prompt: str = Field(
        default="",
        description="Default system prompt injected when a conversation has none",
    )
    chat_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    code_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    max_context_tokens: int = Field(
        default=8000, description="Token budget for attached editor context"
    )
    inline_max_tokens: int = Field(default=256, description="Response cap for inline completions")
    inline_max_context_chars: int = Field(
        default=2000,
        description="Characters of prefix/suffix kept around the cursor for inline completions",
    )
    timeout: float = Field(default=120.0, description="Request timeout in seconds")

    def api_key_for(self, provider_id: str) -> str:
        """Return the configured key for a built-in provider, or ``""``."""
        return str(getattr(self, f"{provider_id}_api_key", "") or "")


def load_settings(config_path: Path | None = None) -> Settings:
    """Load settings from the config file, then overlay environment variables."""
    env_values: dict[str, Any] = {}

    env_map = {
        "OPENAI_API_KEY": "openai_api_key",
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "GOOGLE_API_KEY": "google_api_key",
        "LLMWIRE_ACTIVE_PROVIDER": "active_provider",
        "LLMWIRE_ACTIVE_MODEL": "active_model",
        "LLMWIRE_PROVIDERS_FILE": "providers_file",
        "LLMWIRE_SYSTEM_PROMPT": "system_prompt",
        "LLMWIRE_CHAT_TEMPERATURE": "chat_temperature",
        "LLMWIRE_CODE_TEMPERATURE": "code_temperature",
        "LLMWIRE_MAX_CONTEXT_TOKENS": "max_context_tokens",
        "LLMWIRE_INLINE_MAX_TOKENS": "inline_max_tokens",
        "LLMWIRE_INLINE_MAX_CONTEXT_CHARS": "inline_max_context_chars",
        "LLMWIRE_TIMEOUT": "timeout",
    }

    for env_var, field_name in env_map.items():
        val = os.environ.get(env_var)
        if val is not None:
            env_values[field_name] = val

    # Config file has lower priority than env vars
    path = config_path or _DEFAULT_CONFIG_PATH
    file_values: dict[str, Any] = {}
    if path.exists():
        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid config file {path}: {e}") from e
            if isinstance(data, dict):
                file_values = data

    merged = {**file_values, **env_values}
    return Settings(**merged)


# Singleton for convenience
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset cached settings (useful for testing)."""
    global _settings
    _settings = None
