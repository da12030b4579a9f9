"""Typer CLI for llmwire."""

from __future__ import annotations

import asyncio
import logging
import sys
from enum import Enum
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from llmwire.actions import CodeAssistant
from llmwire.client import ChatClient
from llmwire.codeblocks import extract_code_blocks
from llmwire.config import ConfigurationError, get_settings
from llmwire.context import estimate_token_count, truncate_to_token_budget
from llmwire.models import CompletionOptions, ContextItem, ContextItemType
from llmwire.registry import CredentialStore, ProviderRegistry
from llmwire.session import ChatSession

app = typer.Typer(
    name="llmwire",
    help="llmwire — Streaming chat completions for OpenAI, Anthropic and Google",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
console = Console()


def _load_registry() -> ProviderRegistry:
    try:
        return ProviderRegistry.from_settings(get_settings())
    except (ConfigurationError, OSError) as e:
        console.print(f"[red]Failed to load providers: {escape(str(e))}[/red]")
        raise typer.Exit(1)


@app.command()
def providers() -> None:
    """List configured providers and their models."""
    registry = _load_registry()
    credentials = CredentialStore.from_settings(get_settings())
    active = registry.active_provider

    table = Table(title="Providers")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Protocol", style="magenta")
    table.add_column("Base URL", style="dim")
    table.add_column("Key?", justify="center")
    table.add_column("Models", style="yellow", max_width=50)

    for p in registry.list_all():
        marker = " *" if active is not None and p.id == active.id else ""
        table.add_row(
            p.id + marker,
            p.display_name,
            p.protocol.value,
            p.base_url,
            "[green]Y[/green]" if p.id in credentials else "[red]N[/red]",
            ", ".join(m.id for m in p.models) if p.models else "-",
        )

    console.print(table)
    console.print(f"\n[dim]Active model: {registry.active_model_id or '-'}[/dim]")


@app.command()
def chat(
    prompt: str = typer.Argument(help="The message to send"),
    provider: str | None = typer.Option(None, "--provider", "-p", help="Provider id"),
    model: str | None = typer.Option(None, "--model", "-m", help="Model id"),
    system: str | None = typer.Option(None, "--system", "-s", help="System prompt"),
    temperature: float | None = typer.Option(
        None, "--temperature", "-t", min=0.0, max=2.0, help="Sampling temperature"
    ),
    max_tokens: int = typer.Option(4096, "--max-tokens", "-n", min=1, help="Response length cap"),
    no_stream: bool = typer.Option(False, "--no-stream", help="Wait for the full response"),
    context: list[Path] = typer.Option(
        [], "--context", "-c", exists=True, dir_okay=False, help="Attach a file as context"
    ),
) -> None:
    """Send one message and print the reply as it streams in."""
    registry = _load_registry()
    settings = get_settings()
    if provider is not None:
        try:
            registry.set_active(provider, model)
        except ConfigurationError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
    elif model is not None and registry.active_provider is not None:
        registry.set_active(registry.active_provider.id, model)

    session = ChatSession(ChatClient(registry=registry, settings=settings))
    for path in context:
        session.add_context(
            ContextItem(
                type=ContextItemType.FILE,
                label=path.name,
                content=path.read_text(errors="replace"),
                language=path.suffix.lstrip(".") or None,
            )
        )

    options = CompletionOptions(
        temperature=settings.chat_temperature if temperature is None else temperature,
        max_tokens=max_tokens,
        stream=not no_stream,
        system_prompt=system,
    )

    def _print_chunk(delta: str) -> None:
        console.print(delta, end="", markup=False, highlight=False)

    try:
        text = asyncio.run(session.send(prompt, on_chunk=_print_chunk, options=options))
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled[/yellow]")
        raise typer.Exit(130)

    if session.last_error is not None:
        console.print(f"[red]{session.last_error}[/red]")
        raise typer.Exit(1)
    if no_stream:
        console.print(text, markup=False, highlight=False)
    else:
        console.print()


@app.command("test-connection")
def test_connection(
    provider_id: str = typer.Argument(help="Provider id to probe"),
) -> None:
    """Check that a provider accepts the configured API key."""
    registry = _load_registry()
    settings = get_settings()
    credentials = CredentialStore.from_settings(settings)

    provider = registry.get(provider_id)
    if provider is None:
        console.print(f"[red]Unknown provider: {provider_id}[/red]")
        raise typer.Exit(1)
    credential = credentials.get(provider_id)
    if credential is None:
        console.print(f"[red]No API key configured for {provider.display_name}[/red]")
        raise typer.Exit(1)

    client = ChatClient(registry=registry, credentials=credentials, settings=settings)
    with console.status(f"[bold green]Contacting {provider.display_name}..."):
        result = asyncio.run(client.test_provider_connection(provider, credential))

    if result.success:
        console.print(f"[green]{provider.display_name}: connection OK[/green]")
    else:
        console.print(f"[red]{provider.display_name}: {result.error}[/red]")
        raise typer.Exit(1)


@app.command()
def tokens(
    path: Path = typer.Argument(help="File to measure", exists=True, dir_okay=False),
    budget: int | None = typer.Option(None, "--budget", "-b", min=1, help="Token budget"),
) -> None:
    """Estimate the token cost of a file, optionally against a budget."""
    text = path.read_text(errors="replace")
    count = estimate_token_count(text)
    console.print(f"[bold]{path.name}:[/bold] ~{count:,} tokens ({len(text):,} chars)")
    if budget is not None:
        if truncate_to_token_budget(text, budget) == text:
            console.print(f"[green]Fits within {budget:,} tokens[/green]")
        else:
            console.print(
                f"[yellow]Exceeds {budget:,} tokens; would be cut to "
                f"{budget * 4:,} chars[/yellow]"
            )


@app.command()
def blocks(
    path: Path = typer.Argument(help="Markdown file to scan", exists=True, dir_okay=False),
) -> None:
    """List fenced code blocks found in a markdown file."""
    found = extract_code_blocks(path.read_text(errors="replace"))
    if not found:
        console.print("[dim]No code blocks found.[/dim]")
        return

    table = Table(title="Code Blocks")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Language", style="magenta")
    table.add_column("Lines", justify="right")
    table.add_column("First line", max_width=60)
    for i, block in enumerate(found, start=1):
        lines = block.code.splitlines()
        table.add_row(str(i), block.language, str(len(lines)), lines[0] if lines else "")
    console.print(table)


class CodeAction(str, Enum):
    refactor = "refactor"
    tests = "tests"
    docs = "docs"
    fix = "fix"
    simplify = "simplify"
    convert = "convert"


@app.command()
def code(
    action: CodeAction = typer.Argument(help="What to do with the code"),
    path: Path = typer.Argument(help="Source file", exists=True, dir_okay=False),
    language: str | None = typer.Option(
        None, "--language", "-l", help="Source language (default: file extension)"
    ),
    to: str | None = typer.Option(None, "--to", help="Target language for 'convert'"),
    error: str | None = typer.Option(None, "--error", "-e", help="Error message for 'fix'"),
) -> None:
    """Run a code action on a file and print the resulting code."""
    if action == CodeAction.convert and not to:
        console.print("[red]'convert' needs --to LANGUAGE[/red]")
        raise typer.Exit(1)
    if action == CodeAction.fix and not error:
        console.print("[red]'fix' needs --error MESSAGE[/red]")
        raise typer.Exit(1)

    source = path.read_text(errors="replace")
    lang = language or path.suffix.lstrip(".") or "text"
    assistant = CodeAssistant(ChatClient(registry=_load_registry(), settings=get_settings()))

    if action == CodeAction.refactor:
        run = assistant.refactor(source, lang)
    elif action == CodeAction.tests:
        run = assistant.generate_tests(source, lang)
    elif action == CodeAction.docs:
        run = assistant.generate_docs(source, lang)
    elif action == CodeAction.fix:
        run = assistant.fix_error(source, lang, error or "")
    elif action == CodeAction.simplify:
        run = assistant.simplify(source, lang)
    else:
        run = assistant.convert_language(source, lang, to or "")

    with console.status(f"[bold green]Running {action.value}..."):
        result = asyncio.run(run)

    if assistant.last_error is not None:
        console.print(f"[red]{assistant.last_error}[/red]")
        raise typer.Exit(1)
    console.print(result, markup=False, highlight=False)


@app.command("commit-message")
def commit_message(
    diff_file: Path | None = typer.Argument(
        None, help="Diff to describe (default: read stdin)", exists=True, dir_okay=False
    ),
) -> None:
    """Stream a conventional-commits message for a diff."""
    diff = diff_file.read_text(errors="replace") if diff_file else sys.stdin.read()
    if not diff.strip():
        console.print("[red]Empty diff[/red]")
        raise typer.Exit(1)

    assistant = CodeAssistant(ChatClient(registry=_load_registry(), settings=get_settings()))

    def _print_chunk(delta: str) -> None:
        console.print(delta, end="", markup=False, highlight=False)

    asyncio.run(assistant.generate_commit_message(diff, on_chunk=_print_chunk))
    console.print()
    if assistant.last_error is not None:
        console.print(f"[red]{assistant.last_error}[/red]")
        raise typer.Exit(1)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """llmwire — Streaming chat completions for OpenAI, Anthropic and Google."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )


if __name__ == "__main__":
    app()
