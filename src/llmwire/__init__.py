"""llmwire — Multi-provider streaming chat-completion client."""

from importlib.metadata import version

from llmwire.actions import CodeAssistant
from llmwire.client import ChatClient, RequestHandle
from llmwire.codeblocks import extract_code_blocks
from llmwire.config import ConfigurationError
from llmwire.context import build_context_string, estimate_token_count, truncate_to_token_budget
from llmwire.models import (
    CompletionOptions,
    Credential,
    LLMWireError,
    Message,
    ModelDescriptor,
    ProtocolKind,
    ProviderDescriptor,
    ProviderError,
    RequestState,
    Role,
    TransportError,
)
from llmwire.registry import CredentialStore, ProviderRegistry
from llmwire.session import ChatSession

__version__ = version("llmwire")
__all__ = [
    "ChatClient",
    "ChatSession",
    "CodeAssistant",
    "CompletionOptions",
    "ConfigurationError",
    "Credential",
    "CredentialStore",
    "LLMWireError",
    "Message",
    "ModelDescriptor",
    "ProtocolKind",
    "ProviderDescriptor",
    "ProviderError",
    "ProviderRegistry",
    "RequestHandle",
    "RequestState",
    "Role",
    "TransportError",
    "__version__",
    "build_context_string",
    "estimate_token_count",
    "extract_code_blocks",
    "truncate_to_token_budget",
]
