"""Context budgeting — token estimates, truncation, and context assembly."""

from __future__ import annotations

import math
from collections.abc import Sequence

from llmwire.models import ContextItem, ContextItemType

# Rough approximation used across providers; no tokenizer is loaded.
_CHARS_PER_TOKEN = 4

TRUNCATION_MARKER = "\n... (truncated)"


def estimate_token_count(text: str) -> int:
    """Estimate the token cost of *text* (4 characters per token, rounded up)."""
    return math.ceil(len(text) / _CHARS_PER_TOKEN)


def truncate_to_token_budget(text: str, max_tokens: int) -> str:
    """Cut *text* to fit *max_tokens*, appending a truncation marker if cut."""
    max_chars = max_tokens * _CHARS_PER_TOKEN
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


def _format_item(item: ContextItem) -> str:
    language = item.language or "unknown"
    if item.type == ContextItemType.FILE:
        return f"--- File: {item.label} ({language}) ---\n{item.content}"
    if item.type == ContextItemType.SELECTION:
        return f"--- Selected code ({language}) ---\n{item.content}"
    if item.type == ContextItemType.ERROR:
        return f"--- Error ---\n{item.content}"
    return f"--- Diff ---\n{item.content}"


def build_context_string(items: Sequence[ContextItem]) -> str:
    """Join context items into one string with a section header per item."""
    return "\n\n".join(_format_item(item) for item in items)
