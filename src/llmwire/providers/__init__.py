"""Wire-protocol adapters for llmwire."""

from llmwire.providers.base import PreparedRequest, ProtocolAdapter
from llmwire.providers.resolver import build_request, get_adapter

__all__ = ["PreparedRequest", "ProtocolAdapter", "build_request", "get_adapter"]
