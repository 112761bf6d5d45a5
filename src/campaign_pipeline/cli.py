"""Campaign Pipeline CLI entry point."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict

import click
from rich.console import Console
from rich.json import JSON
from rich.live import Live
from rich.table import Table
from rich.text import Text

from . import __version__
from .config import ConfigLoader
from .orchestrator import ActivityCategory, ActivityEntry, PipelineOrchestrator, build_orchestrator
from .state.runs import JsonRunStore


STATUS_SYMBOLS = {"idle": "○", "working": "◐", "done": "●", "error": "✖"}
STATUS_COLORS = {"idle": "#888888", "working": "yellow", "done": "green", "error": "red"}
CATEGORY_COLORS = {
    ActivityCategory.PROGRESS: "white",
    ActivityCategory.RESULT: "green",
    ActivityCategory.ERROR: "red",
    ActivityCategory.SYSTEM: "cyan",
    ActivityCategory.STREAM_LINK: "blue underline",
}


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """Campaign Pipeline - phased multi-agent campaign builder."""


@main.command()
@click.argument("url")
@click.option("--fake-all", is_flag=True, help="Answer every request/response agent from canned data.")
@click.option("--json", "as_json", is_flag=True, help="Print the final snapshot as JSON.")
@click.pass_context
def run(ctx: click.Context, url: str, fake_all: bool, as_json: bool) -> None:
    """Run the full pipeline for a business URL."""
    config = ConfigLoader()
    orchestrator = build_orchestrator(config, fake_all=fake_all)
    console = Console()

    try:
        if as_json:
            asyncio.run(orchestrator.start_run(url))
        else:
            asyncio.run(_run_live(orchestrator, url, console))
    except KeyboardInterrupt:
        console.print("[yellow]Run interrupted[/yellow]")
        ctx.exit(130)

    if as_json:
        click.echo(json.dumps(orchestrator.snapshot(), indent=2, default=str))
    else:
        console.print(f"Run id: [bold]{orchestrator.run_id}[/bold]")
        if orchestrator.run_error:
            console.print(f"[red]{orchestrator.run_error}[/red]")

    if orchestrator.run_error:
        ctx.exit(1)


@main.command()
@click.argument("run_id")
@click.pass_context
def show(ctx: click.Context, run_id: str) -> None:
    """Print a stored run."""
    store = JsonRunStore(ConfigLoader().runs_dir)
    stored = store.load(run_id)
    if stored is None:
        click.echo(f"No stored run with id {run_id}", err=True)
        ctx.exit(1)

    console = Console()
    console.print(f"[bold]{stored.run_id}[/bold]  {stored.input}")
    console.print(f"started {stored.started_at.isoformat()}  completed {stored.completed_at.isoformat()}")

    table = Table("Agent", "Status", "Error")
    for agent_id, status in stored.statuses.items():
        error = stored.errors.get(agent_id, {}).get("message", "")
        table.add_row(agent_id, Text(status, style=STATUS_COLORS.get(status, "white")), error)
    console.print(table)
    console.print(JSON(json.dumps(stored.results, default=str)))


@main.command(name="list")
def list_runs() -> None:
    """List stored run ids, newest first."""
    store = JsonRunStore(ConfigLoader().runs_dir)
    run_ids = store.list_runs()
    if not run_ids:
        click.echo("No stored runs")
        return
    for run_id in run_ids:
        click.echo(run_id)


async def _run_live(orchestrator: PipelineOrchestrator, url: str, console: Console) -> str:
    with Live(_status_table(orchestrator.snapshot()), console=console, refresh_per_second=8) as live:

        def on_entry(entry: ActivityEntry) -> None:
            live.console.print(_activity_line(entry))
            live.update(_status_table(orchestrator.snapshot()))

        unsubscribe = orchestrator.activity.subscribe(on_entry)
        try:
            return await orchestrator.start_run(url)
        finally:
            unsubscribe()
            live.update(_status_table(orchestrator.snapshot()))


def _status_table(snapshot: Dict[str, Any]) -> Table:
    table = Table(title="Agents", expand=True)
    table.add_column("Phase", justify="right", width=5)
    table.add_column("Agent")
    table.add_column("Category", style="dim")
    table.add_column("Status")
    table.add_column("Last message", overflow="ellipsis", no_wrap=True)

    for agent in snapshot["agents"]:
        status = agent["status"]
        label = Text(f"{STATUS_SYMBOLS.get(status, '?')} {status}", style=STATUS_COLORS.get(status, "white"))
        table.add_row(str(agent["phase"]), agent["name"], agent["category"], label, agent["last_message"])
    return table


def _activity_line(entry: ActivityEntry) -> Text:
    text = Text()
    text.append(entry.timestamp.strftime("%H:%M:%S "), style="dim")
    text.append(f"[{entry.agent_label}] ", style="bold")
    text.append(entry.message, style=CATEGORY_COLORS.get(entry.category, "white"))
    return text


if __name__ == "__main__":
    main()
