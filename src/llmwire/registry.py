"""ProviderRegistry and CredentialStore — where requests find their backend and key."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import SecretStr, ValidationError

from llmwire.config import ConfigurationError, Settings, get_settings
from llmwire.models import Credential, ModelDescriptor, ProtocolKind, ProviderDescriptor

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Built-in providers
# ---------------------------------------------------------------------------

# Fallback model lists, used until a provider's live model list is known.
_OPENAI_MODELS = [
    ("gpt-5.2", "GPT-5.2", 1_047_576),
    ("gpt-5.2-pro", "GPT-5.2 Pro", 1_047_576),
    ("gpt-4.1", "GPT-4.1", 1_047_576),
    ("gpt-4.1-mini", "GPT-4.1 Mini", 1_047_576),
    ("gpt-4.1-nano", "GPT-4.1 Nano", 1_047_576),
    ("gpt-4o", "GPT-4o", 128_000),
    ("gpt-4o-mini", "GPT-4o Mini", 128_000),
    ("o3", "o3", 200_000),
    ("o4-mini", "o4-mini", 200_000),
]

_ANTHROPIC_MODELS = [
    ("claude-opus-4-6", "Claude Opus 4.6", 200_000),
    ("claude-sonnet-4-6", "Claude Sonnet 4.6", 200_000),
    ("claude-opus-4-5-20251101", "Claude Opus 4.5", 200_000),
    ("claude-sonnet-4-5-20250929", "Claude Sonnet 4.5", 200_000),
    ("claude-haiku-4-5-20251001", "Claude Haiku 4.5", 200_000),
]

_GOOGLE_MODELS = [
    ("gemini-2.5-pro", "Gemini 2.5 Pro", 1_048_576),
    ("gemini-2.5-flash", "Gemini 2.5 Flash", 1_048_576),
    ("gemini-2.5-flash-lite", "Gemini 2.5 Flash Lite", 1_048_576),
]


def _models(entries: list[tuple[str, str, int]]) -> list[ModelDescriptor]:
    return [ModelDescriptor(id=i, name=n, context_window=cw) for i, n, cw in entries]


def builtin_providers() -> list[ProviderDescriptor]:
    """Return the providers shipped with llmwire."""
    return [
        ProviderDescriptor(
            id="openai",
            name="OpenAI",
            protocol=ProtocolKind.OPENAI,
            base_url="https://api.openai.com",
            models=_models(_OPENAI_MODELS),
            is_builtin=True,
        ),
        ProviderDescriptor(
            id="anthropic",
            name="Anthropic",
            protocol=ProtocolKind.ANTHROPIC,
            base_url="https://api.anthropic.com",
            models=_models(_ANTHROPIC_MODELS),
            is_builtin=True,
        ),
        ProviderDescriptor(
            id="google",
            name="Google AI",
            protocol=ProtocolKind.GOOGLE,
            base_url="https://generativelanguage.googleapis.com",
            models=_models(_GOOGLE_MODELS),
            is_builtin=True,
        ),
    ]


def create_custom_model(id: str, name: str, context_window: int = 8192) -> ModelDescriptor:
    """Describe a model served by a custom endpoint."""
    return ModelDescriptor(id=id, name=name, context_window=context_window)


def create_custom_provider(
    id: str,
    name: str,
    base_url: str,
    models: list[ModelDescriptor],
) -> ProviderDescriptor:
    """Describe an OpenAI-compatible endpoint (Ollama, LM Studio, a gateway...)."""
    return ProviderDescriptor(
        id=id,
        name=name,
        protocol=ProtocolKind.OPENAI,
        base_url=base_url,
        models=models,
        is_builtin=False,
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class ProviderRegistry:
    """Holds provider descriptors and the active provider/model selection."""

    def __init__(
        self,
        providers: list[ProviderDescriptor] | None = None,
        active_provider: str | None = None,
        active_model: str | None = None,
    ) -> None:
        self._providers: dict[str, ProviderDescriptor] = {}
        for provider in builtin_providers() if providers is None else providers:
            self._providers[provider.id] = provider
        self._active_provider_id = active_provider
        self._active_model_id = active_model or ""

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> ProviderRegistry:
        """Build a registry with built-ins, custom providers, and the configured selection."""
        settings = settings or get_settings()
        registry = cls(
            active_provider=settings.active_provider or None,
            active_model=settings.active_model or None,
        )
        if settings.providers_file:
            registry.load_from_file(settings.providers_file)
        return registry

    @property
    def providers(self) -> dict[str, ProviderDescriptor]:
        return dict(self._providers)

    def add(self, provider: ProviderDescriptor) -> None:
        """Register *provider*, replacing any provider with the same id."""
        self._providers[provider.id] = provider

    def remove(self, provider_id: str) -> None:
        provider = self._providers.get(provider_id)
        if provider is None:
            return
        if provider.is_builtin:
            raise ValueError(f"Cannot remove built-in provider {provider_id!r}")
        del self._providers[provider_id]
        if self._active_provider_id == provider_id:
            self._active_provider_id = None
            self._active_model_id = ""

    def load_from_file(self, path: str | Path) -> int:
        """Load custom providers from a YAML file. Returns count of providers loaded."""
        path = Path(path)
        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid providers file {path}: {e}") from e

        if not isinstance(data, dict) or "providers" not in data:
            raise ConfigurationError(f"Invalid providers file: expected a 'providers' key in {path}")
        entries = data["providers"]
        if not isinstance(entries, list):
            raise ConfigurationError(f"Invalid providers file: 'providers' must be a list in {path}")

        count = 0
        for entry in entries:
            try:
                provider = ProviderDescriptor(**entry)
            except (TypeError, ValidationError) as e:
                raise ConfigurationError(f"Invalid provider entry in {path}: {e}") from e
            self.add(provider)
            count += 1
        logger.info("Loaded %d provider(s) from %s", count, path)
        return count

    def get(self, provider_id: str) -> ProviderDescriptor | None:
        return self._providers.get(provider_id)

    def list_all(self) -> list[ProviderDescriptor]:
        """Return built-in providers first, then custom ones, each sorted by id."""
        return sorted(self._providers.values(), key=lambda p: (not p.is_builtin, p.id))

    def set_active(self, provider_id: str, model_id: str | None = None) -> None:
        """Select the provider (and optionally model) used for requests."""
        if provider_id not in self._providers:
            raise ConfigurationError(f"Unknown provider: {provider_id}")
        self._active_provider_id = provider_id
        self._active_model_id = model_id or ""

    @property
    def active_provider(self) -> ProviderDescriptor | None:
        if self._active_provider_id is None:
            return None
        return self._providers.get(self._active_provider_id)

    @property
    def active_model_id(self) -> str:
        """Selected model, falling back to the active provider's first model."""
        if self._active_model_id:
            return self._active_model_id
        provider = self.active_provider
        return provider.default_model_id if provider else ""


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


class CredentialStore:
    """In-memory map of provider id to credential. Nothing is written to disk."""

    def __init__(self) -> None:
        self._credentials: dict[str, Credential] = {}

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> CredentialStore:
        """Seed keys for the built-in providers from settings / environment."""
        settings = settings or get_settings()
        store = cls()
        for provider_id in ("openai", "anthropic", "google"):
            api_key = settings.api_key_for(provider_id)
            if api_key:
                store.set(provider_id, api_key)
        return store

    def set(self, provider_id: str, api_key: str) -> None:
        self._credentials[provider_id] = Credential(
            provider_id=provider_id,
            api_key=SecretStr(api_key),
        )

    def get(self, provider_id: str) -> Credential | None:
        return self._credentials.get(provider_id)

    def remove(self, provider_id: str) -> None:
        self._credentials.pop(provider_id, None)

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._credentials
