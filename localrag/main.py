"""
localrag - CLI Entry Point
---------------------------
Exposes Typer commands for the local RAG assistant.

Usage:
    python -m localrag.main ask                       # Interactive Q&A loop
    python -m localrag.main ask --query "..."         # Single-shot query
    python -m localrag.main ask --query "..." --json  # Machine-readable outcome
    python -m localrag.main status                    # Index + engine mode
    python -m localrag.main embed                     # Write hash embeddings
"""
from __future__ import annotations

import sys

# Windows cp1252 terminal fix: force UTF-8 so corpus text with emoji does
# not crash the Rich console renderer.
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")

import asyncio
import json
from typing import Optional

import typer
from dotenv import load_dotenv
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from localrag.config import DEFAULT_CONFIG_PATH, AppConfig, load_config
from localrag.corpus.loader import load_corpus, load_index, save_hash_embeddings
from localrag.errors import IndexLoadError
from localrag.generation.engines import EngineBootstrap
from localrag.serving.orchestrator import AnswerOrchestrator, AnswerOutcome, AnswerStatus, RagSession
from localrag.utils.helpers import truncate_text
from localrag.utils.logger import setup_logger

app = typer.Typer(
    name="localrag",
    help="Local RAG assistant - grounded answers over a pre-chunked corpus",
    add_completion=False,
)
console = Console()


# --- Helpers ------------------------------------------------------------------

def _setup(config_path: str, console_level: Optional[str] = None) -> AppConfig:
    load_dotenv()
    cfg = load_config(config_path)
    setup_logger(
        log_level=cfg.logging.level,
        log_file=cfg.logging.file,
        console_level=console_level,
    )
    return cfg


async def _start_session(cfg: AppConfig, no_llm: bool, verify: bool = True) -> tuple[RagSession, str]:
    """Load the index and bring up the engine; returns the session and status label."""
    session = RagSession()

    with console.status("[cyan]Loading RAG index...[/cyan]"):
        session.apply_load(
            await load_index(cfg.corpus.chunks_path, cfg.corpus.embeddings_path)
        )

    generation = cfg.generation
    if no_llm:
        generation = generation.model_copy(update={"provider": "none"})
    boot = EngineBootstrap(generation, verify=verify)
    with console.status(f"[cyan]{boot.status_label}[/cyan]") as status:
        async for event in boot.events():
            status.update(f"[cyan]{event.message}[/cyan]")
    session.engine = boot.engine
    return session, boot.status_label


def _print_banner(session: RagSession, label: str) -> None:
    console.print()
    console.print(
        Panel(
            "[bold cyan]Local RAG Assistant[/bold cyan]\n"
            f"[white]{label}[/white]",
            box=box.DOUBLE_EDGE,
            expand=False,
        )
    )
    if session.load_error:
        console.print(f"[red]{session.load_error}[/red]")
    elif session.corpus is not None:
        console.print(
            f"[green][OK] Index loaded[/green] "
            f"| {len(session.corpus):,} chunks "
            f"| retrieval={session.retrieval_mode.value}"
        )


def _print_outcome(outcome: AnswerOutcome) -> None:
    """Render an AnswerOutcome to the terminal using Rich."""
    if outcome.status in (AnswerStatus.INDEX_NOT_READY, AnswerStatus.INDEX_UNAVAILABLE):
        console.print(
            Panel(outcome.answer, title="[red]Index[/red]", border_style="red", expand=False)
        )
        return

    # Retrieved context table
    if outcome.context:
        table = Table(
            "No.", "Id", "Source", "Text",
            title=f"Retrieved Context (top {len(outcome.context)})",
            box=box.SIMPLE,
            show_header=True,
            header_style="bold dim",
        )
        for i, chunk in enumerate(outcome.context, start=1):
            table.add_row(str(i), chunk.id, chunk.source or "-", truncate_text(chunk.text, 80))
        console.print(table)

    # Answer panel
    style = "red" if outcome.status is AnswerStatus.GENERATION_FAILED else "green"
    console.print(
        Panel(
            outcome.answer,
            title=f"[bold {style}]Answer[/bold {style}]",
            border_style=style,
            expand=True,
        )
    )

    # Stats footer
    console.print(
        f"[dim]"
        f"mode={outcome.mode.value if outcome.mode else '-'}  "
        f"retrieve={outcome.retrieval_ms:.0f}ms  "
        f"generate={outcome.generation_ms:.0f}ms"
        f"[/dim]\n"
    )


# --- Commands -----------------------------------------------------------------

@app.command()
def ask(
    query: Optional[str] = typer.Option(
        None, "--query", "-q", help="Single query (omit for interactive loop)"
    ),
    config: str = typer.Option(
        DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to config YAML"
    ),
    top_k: Optional[int] = typer.Option(
        None, "--top-k", min=0, help="Chunks to retrieve (overrides config)"
    ),
    no_llm: bool = typer.Option(
        False, "--no-llm", help="Skip the language model and show retrieved context only"
    ),
    json_out: bool = typer.Option(
        False, "--json", help="Print outcome as JSON (single-query mode only)"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show INFO logs on the console (file log is unaffected)"
    ),
) -> None:
    """
    Answer questions from the local corpus.

    \b
    Steps per query:
      1. Retrieval   (hash-vector cosine, or lexical overlap without embeddings)
      2. Generation  (grounded chat completion, when an engine is available)
      3. Fallback    (numbered context chunks when no engine is available)
    """
    cfg = _setup(config, console_level=None if verbose else "WARNING")
    asyncio.run(_ask_async(cfg, query, top_k, no_llm, json_out))


async def _ask_async(
    cfg: AppConfig,
    query: Optional[str],
    top_k: Optional[int],
    no_llm: bool,
    json_out: bool,
) -> None:
    session, label = await _start_session(cfg, no_llm)
    orchestrator = AnswerOrchestrator(
        session, top_k=top_k if top_k is not None else cfg.retrieval.top_k
    )

    # --- Single-shot mode -----------------------------------------------------
    if query:
        outcome = await orchestrator.answer(query)
        if json_out:
            console.print_json(json.dumps(outcome.to_dict()))
        else:
            _print_banner(session, label)
            _print_outcome(outcome)
        if outcome.status is AnswerStatus.INDEX_UNAVAILABLE:
            raise typer.Exit(1)
        return

    # --- Interactive loop -----------------------------------------------------
    _print_banner(session, label)
    console.print()
    console.print("[bold]Ask about your local documents.[/bold]")
    console.print("[dim]Type 'exit', 'quit', or press Ctrl+C to quit.[/dim]\n")

    while True:
        try:
            raw = console.input("[bold cyan]You[/bold cyan] > ").strip()
        except (EOFError, KeyboardInterrupt):
            console.print("\n[dim]Goodbye.[/dim]")
            break

        if not raw:
            continue
        if raw.lower() in {"exit", "quit", "q"}:
            console.print("[dim]Goodbye.[/dim]")
            break

        with console.status("[cyan]Thinking...[/cyan]"):
            outcome = await orchestrator.answer(raw)

        _print_outcome(outcome)


@app.command()
def status(
    config: str = typer.Option(
        DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to config YAML"
    ),
) -> None:
    """Show corpus, embeddings, and generation engine mode."""
    cfg = _setup(config)
    session, label = asyncio.run(_start_session(cfg, no_llm=False, verify=False))

    console.print()
    console.print("[bold]Local RAG Status[/bold]")
    console.print(f"  Corpus     : {cfg.corpus.chunks_path}")
    if session.load_error:
        console.print(f"  Index      : [red]{session.load_error}[/red]")
        raise typer.Exit(1)
    console.print(f"  Chunks     : [green]{len(session.corpus)}[/green]")
    embedded = session.embeddings is not None
    console.print(
        f"  Embeddings : {'[green]yes[/green]' if embedded else '[yellow]no[/yellow]'} "
        f"({cfg.corpus.embeddings_path or 'not configured'})"
    )
    console.print(f"  Retrieval  : [cyan]{session.retrieval_mode.value}[/cyan]")
    console.print(f"  Engine     : {label}")


@app.command()
def embed(
    config: str = typer.Option(
        DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to config YAML"
    ),
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="Embeddings output path (defaults to config)"
    ),
) -> None:
    """
    Build 64-d hash embeddings for every chunk in the corpus.

    The vectors use the same bag-of-hashed-words scheme as query encoding,
    so vector retrieval works without any embedding model.
    """
    cfg = _setup(config)
    target = output or cfg.corpus.embeddings_path
    if not target:
        console.print("[red]No embeddings path: pass --output or set corpus.embeddings_path[/red]")
        raise typer.Exit(1)

    try:
        corpus = asyncio.run(load_corpus(cfg.corpus.chunks_path))
    except IndexLoadError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    path = save_hash_embeddings(corpus, target)
    console.print(f"[green][OK] {len(corpus)} embeddings written[/green] -> {path}")


# --- Entry Point --------------------------------------------------------------

if __name__ == "__main__":
    app()
