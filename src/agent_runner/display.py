# display.py
# All terminal output for agent runs.
#
# Executors never format strings. They call named functions here. Swap this
# file to change the entire UI.
#
# Colour language:
#   cyan    run scaffolding, step routing
#   blue    model calls, remote agents
#   yellow  fallbacks and recoverable problems
#   green   success
#   red     failures and cancellations
#   magenta tool calls

import json
from pathlib import Path

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from agent_runner.models import Agent, AgentRun, LlmChunk, ToolChunk

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    if len(value) > max_len:
        return value[:max_len] + "…"
    return value


# ---------------------------------------------------------------------------
# Run entry
# ---------------------------------------------------------------------------


def banner(agent: Agent) -> None:
    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]{escape(agent.name or agent.id)}[/bold cyan]\n"
            f"[dim]{escape(agent.description)}[/dim]\n\n"
            f"[dim]Source :[/dim] [white]{agent.source}[/white]\n"
            f"[dim]Steps  :[/dim] [white]{len(agent.steps)}[/white]\n"
            f"[dim]Engine :[/dim] [white]{agent.engine or 'default'} / {agent.model or 'default'}[/white]",
            border_style="cyan",
            padding=(1, 4),
        )
    )


def run_started(agent: Agent, run: AgentRun) -> None:
    console.print()
    console.print(Rule(f"[cyan]RUN {run.id[:8]} · {escape(agent.name or agent.id)} ({run.trigger})[/cyan]", style="cyan"))
    if run.prompt:
        console.print(
            Panel(
                f"[white]{escape(run.prompt)}[/white]",
                title=_label("PROMPT", "cyan"),
                border_style="cyan",
                padding=(0, 2),
            )
        )


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


def step_started(index: int, total: int, description: str | None) -> None:
    console.print()
    console.print(
        f"[bold cyan]  STEP [{index + 1}/{total}][/bold cyan]  [white]{escape(description or '')}[/white]"
    )


def docrepo_queried(repo_id: str, count: int) -> None:
    console.print(f"  [cyan]↳ Knowledge base[/cyan] [dim]{escape(repo_id)}[/dim]  {count} result(s)")


def docrepo_unavailable(repo_id: str) -> None:
    console.print(f"  [yellow]↳ Knowledge base {escape(repr(repo_id))} requested but no repository is attached.[/yellow]")


def tools_configured(names: list[str]) -> None:
    if names:
        console.print(f"  [magenta]Tools[/magenta]    [white]{escape(', '.join(names))}[/white]")
    else:
        console.print("  [magenta]Tools[/magenta]    [dim]none[/dim]")


def generation_started(engine: str, model: str, streaming: bool) -> None:
    mode = "streaming" if streaming else "blocking"
    console.print(f"  [blue]→ Generating[/blue] [dim]{engine}/{model} ({mode})[/dim]")


def streaming_fallback(engine: str, model: str) -> None:
    console.print(
        f"  [yellow]↳ {engine}/{model} does not support streaming. Retrying step without it.[/yellow]"
    )


def tool_call(chunk: ToolChunk) -> None:
    console.print(
        f"  [magenta]Tool[/magenta]     [bold white]{escape(chunk.name)}[/bold white]"
        f"  [dim]{escape(_mono(json.dumps(chunk.params, default=str), 80))}[/dim]"
    )


def generation_error(engine: str, model: str, message: str) -> None:
    console.print(f"  [red]✗ {engine}/{model}:[/red] [white]{escape(_mono(message, 200))}[/white]")


def schema_invalid(name: str, message: str) -> None:
    console.print(f"  [yellow]↳ Ignoring invalid JSON schema {escape(repr(name))}:[/yellow] [dim]{escape(message)}[/dim]")


def store_read_error(path: Path, message: str) -> None:
    console.print(f"[yellow]Could not read {escape(str(path))}:[/yellow] [dim]{escape(_mono(message, 200))}[/dim]")


# ---------------------------------------------------------------------------
# Remote agents
# ---------------------------------------------------------------------------


def a2a_started(base_url: str) -> None:
    console.print(f"  [blue]→ Delegating to remote agent[/blue] [dim]{escape(base_url)}[/dim]")


def a2a_error(base_url: str, message: str) -> None:
    console.print(f"  [red]✗ Remote agent {escape(base_url)}:[/red] [white]{escape(_mono(message, 200))}[/white]")


def a2a_event(chunk: LlmChunk) -> None:
    if chunk.type == "status" and chunk.status:
        console.print(f"  [blue]Remote[/blue]   [dim]{escape(_mono(chunk.status, 100))}[/dim]")
    elif chunk.type == "artifact":
        console.print(f"  [blue]Artifact[/blue] [white]{escape(chunk.name)}[/white] [dim]({len(chunk.content)} chars)[/dim]")


# ---------------------------------------------------------------------------
# Terminal states
# ---------------------------------------------------------------------------


def run_canceled(run: AgentRun) -> None:
    console.print()
    console.print(_label("CANCELED", "red"), f"[red] Run {run.id[:8]} stopped on request.[/red]")


def run_failed(run: AgentRun) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold white]{escape(run.error or 'unknown error')}[/bold white]",
            title=_label(f"RUN {run.id[:8]} FAILED ✗", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )


def run_completed(run: AgentRun) -> None:
    console.print()
    table = Table(
        box=box.SIMPLE_HEAVY,
        border_style="dim",
        show_header=True,
        header_style="bold dim",
        padding=(0, 1),
    )
    table.add_column("Tool", width=16)
    table.add_column("Params", style="dim white", width=40)
    table.add_column("Result", style="dim white")

    for call in run.tool_calls:
        table.add_row(
            call.name,
            _mono(json.dumps(call.params, default=str), 38),
            _mono(str(call.result), 60),
        )

    console.print(_label("SUCCESS ✓", "green"), f"[green] Run {run.id[:8]} completed.[/green]")
    if run.tool_calls:
        console.print(Panel(table, title="[dim]TOOL CALLS[/dim]", border_style="dim", padding=(0, 1)))


def final_result(result: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[white]{escape(result)}[/white]",
            title=_label("RESULT", "green"),
            border_style="green",
            padding=(1, 2),
        )
    )
    console.print()


def halt(reason: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold white]{escape(reason)}[/bold white]",
            title=_label("HALT", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )
    console.print()
