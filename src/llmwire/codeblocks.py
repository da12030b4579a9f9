"""Fenced code block extraction from finished markdown responses."""

from __future__ import annotations

import re

from llmwire.models import CodeBlock

_FENCE = re.compile(r"```(\w*)\n([\s\S]*?)```")


def extract_code_blocks(text: str) -> list[CodeBlock]:
    """Return the fenced code blocks of *text* in document order.

    A missing language tag is reported as ``"text"``.
    """
    return [
        CodeBlock(language=match.group(1) or "text", code=match.group(2).strip())
        for match in _FENCE.finditer(text)
    ]
