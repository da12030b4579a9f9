"""Adapter resolver — maps a provider's protocol kind to its wire adapter."""

from __future__ import annotations

import importlib
from collections.abc import Sequence
from typing import TYPE_CHECKING

from llmwire.models import CompletionOptions, Credential, ProtocolKind, ProviderDescriptor
from llmwire.providers.base import MessageLike, PreparedRequest, prepare_messages

if TYPE_CHECKING:
    from llmwire.providers.base import ProtocolAdapter

# Maps protocol kind → adapter class import path
_ADAPTERS: dict[ProtocolKind, str] = {
    ProtocolKind.OPENAI: "llmwire.providers.openai.OpenAIAdapter",
    ProtocolKind.ANTHROPIC: "llmwire.providers.anthropic.AnthropicAdapter",
    ProtocolKind.GOOGLE: "llmwire.providers.google.GoogleAdapter",
}

_cache: dict[ProtocolKind, ProtocolAdapter] = {}


def _import_class(dotted_path: str) -> type:
    """Import a class from a dotted module path."""
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)


def get_adapter(kind: ProtocolKind | str) -> ProtocolAdapter:
    """Return the shared adapter instance for *kind*."""
    kind = ProtocolKind(kind)
    if kind not in _cache:
        _cache[kind] = _import_class(_ADAPTERS[kind])()
    return _cache[kind]


def build_request(
    provider: ProviderDescriptor,
    model_id: str,
    messages: Sequence[MessageLike],
    options: CompletionOptions,
    credential: Credential,
    *,
    default_system_prompt: str | None = None,
    stream: bool | None = None,
) -> PreparedRequest:
    """Produce ``(url, headers, body)`` for *provider* ready to send.

    ``stream`` overrides ``options.stream`` when the caller has already
    decided (e.g. the model cannot stream).
    """
    adapter = get_adapter(provider.protocol)
    should_stream = options.stream if stream is None else stream
    prepared = prepare_messages(messages, options, default_system_prompt)
    return PreparedRequest(
        url=adapter.endpoint_url(provider.base_url, model_id, should_stream),
        headers=adapter.headers(credential.api_key.get_secret_value()),
        body=adapter.build_body(prepared, model_id, options, should_stream),
    )
