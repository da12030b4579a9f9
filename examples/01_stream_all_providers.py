#!/usr/bin/env python3
"""Example 1: One Conversation, Three Wire Protocols.

Sends the same short conversation to every built-in provider that has a key
configured, streaming each reply to the terminal as it arrives.

Demonstrates:
  - ChatClient with on_chunk / on_done callbacks
  - Switching the active provider on a shared registry
  - Error reporting via on_error without aborting the loop

Requires at least one of OPENAI_API_KEY, ANTHROPIC_API_KEY, GOOGLE_API_KEY.
Estimated cost: well under $0.01 per provider.

Usage:
    uv run python examples/01_stream_all_providers.py
"""

from __future__ import annotations

import asyncio

from rich.console import Console
from rich.table import Table

from llmwire import ChatClient, CompletionOptions, CredentialStore, LLMWireError, ProviderRegistry

console = Console()

CONVERSATION = [
    {"role": "system", "content": "You answer in one short sentence."},
    {"role": "user", "content": "Why is the sky blue?"},
]


async def main() -> None:
    console.print("\n[bold cyan]llmwire — Streaming Across Providers[/bold cyan]\n")

    registry = ProviderRegistry()
    credentials = CredentialStore.from_settings()
    client = ChatClient(registry=registry, credentials=credentials)
    options = CompletionOptions(temperature=0.3, max_tokens=120)

    summary = Table(title="Results")
    summary.add_column("Provider", style="cyan")
    summary.add_column("Model")
    summary.add_column("Chars", justify="right")
    summary.add_column("Status")

    for provider in registry.list_all():
        if provider.id not in credentials:
            summary.add_row(provider.id, "-", "-", "[dim]no key[/dim]")
            continue

        registry.set_active(provider.id)
        console.print(f"[bold]{provider.display_name}[/bold] ({registry.active_model_id}):")
        try:
            text = await client.send_chat_completion(
                CONVERSATION,
                options,
                on_chunk=lambda d: console.print(d, end="", markup=False, highlight=False),
                on_error=lambda e: console.print(f"[red]{e}[/red]", end=""),
            )
            status = "[green]ok[/green]"
        except LLMWireError:
            text, status = "", "[red]failed[/red]"
        console.print("\n")
        summary.add_row(provider.id, registry.active_model_id, str(len(text)), status)

    console.print(summary)


if __name__ == "__main__":
    asyncio.run(main())
