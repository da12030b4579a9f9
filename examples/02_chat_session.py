#!/usr/bin/env python3
"""Example 2: Chat Session with Editor Context.

Attaches a source file and an error message as context, asks for a fix, and
lists the code blocks found in the reply. A follow-up question is sent on
the same session so the history is reused.

Demonstrates:
  - ChatSession history and titles
  - ContextItem attachments and the token budget
  - Code block extraction from the finished reply

Requires OPENAI_API_KEY (or set LLMWIRE_ACTIVE_PROVIDER and the matching key).

Usage:
    uv run python examples/02_chat_session.py
"""

from __future__ import annotations

import asyncio

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax

from llmwire import ChatClient, ChatSession, estimate_token_count
from llmwire.models import ContextItem, ContextItemType

console = Console()

BUGGY_SOURCE = '''\
def average(values):
    return sum(values) / len(values)

print(average([]))
'''


async def main() -> None:
    session = ChatSession(ChatClient())
    session.add_context(
        ContextItem(type=ContextItemType.FILE, label="stats.py", content=BUGGY_SOURCE, language="python")
    )
    session.add_context(
        ContextItem(type=ContextItemType.ERROR, content="ZeroDivisionError: division by zero")
    )
    console.print(f"[dim]Context: ~{estimate_token_count(BUGGY_SOURCE)} tokens of source[/dim]\n")

    for question in ("Fix this function.", "Now add a docstring."):
        console.print(f"[bold]> {question}[/bold]")
        reply = await session.send(
            question,
            on_chunk=lambda d: console.print(d, end="", markup=False, highlight=False),
        )
        console.print("\n")
        if session.last_error:
            console.print(f"[red]{session.last_error}[/red]")
            return

        for block in session.conversation.messages[-1].code_blocks:
            console.print(Panel(Syntax(block.code, block.language), title=block.language))
        if not reply:
            console.print("[yellow]Empty reply[/yellow]")

    console.print(f"\n[dim]Conversation: {session.conversation.title!r}, "
                  f"{len(session.conversation.messages)} turns[/dim]")


if __name__ == "__main__":
    asyncio.run(main())
