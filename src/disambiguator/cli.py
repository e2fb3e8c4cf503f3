"""CLI for Disambiguator.

Commands:
    init-db                       - Create tables
    reset-db                      - Drop and recreate tables
    compare <a> <b>               - Create or refresh a comparison
    analyze <comparison>          - Score a comparison with the reasoning service
    confirm <comparison> <same|different>
    cancel <comparison>           - Delete a pending comparison
    merge <comparison> <keep>     - Record a merge for a "same" comparison
    pending                       - List pending comparisons
    show <comparison>             - Show comparison details
    merges <node>                 - List merges involving a node
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Annotated, Any
from uuid import UUID

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from disambiguator.clients.scoring import ScoringClient
from disambiguator.db import async_session_factory, init_db, reset_db
from disambiguator.errors import DisambiguationError
from disambiguator.models import Comparison
from disambiguator.services import ComparisonService, MergeService

app = typer.Typer(
    name="disambiguator",
    help="Disambiguator: decide whether two network nodes are the same entity",
    no_args_is_help=True,
)
console = Console()


def run_async(coro):
    """Run an async coroutine in sync context, rendering engine errors."""
    try:
        return asyncio.run(coro)
    except DisambiguationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None


def comparison_service() -> ComparisonService:
    return ComparisonService(async_session_factory, ScoringClient.from_settings())


def merge_service() -> MergeService:
    return MergeService(async_session_factory)


def parse_info(raw: str | None) -> dict[str, Any] | None:
    """Parse a JSON object given on the command line."""
    if raw is None:
        return None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"Not valid JSON: {e}") from None
    if not isinstance(value, dict):
        raise typer.BadParameter("Node info must be a JSON object")
    return value


def comparison_table(comparisons: list[Comparison], title: str) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Node A")
    table.add_column("Node B")
    table.add_column("Score", justify="right")
    table.add_column("Confidence")
    table.add_column("Decision")
    for c in comparisons:
        table.add_row(
            str(c.comparison_id),
            c.node_a,
            c.node_b,
            f"{c.similarity_score:.2f}" if c.similarity_score is not None else "-",
            c.confidence.value if c.confidence else "-",
            c.user_decision.value,
        )
    return table


@app.callback()
def main_callback(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Show debug logging")
    ] = False,
):
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@app.command("init-db")
def init_database():
    """Initialize the database schema (creates tables if they don't exist)."""
    async def _init():
        await init_db()
        console.print("[green]Database initialized.[/green]")

    run_async(_init())


@app.command("reset-db")
def reset_database(
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Skip confirmation prompt")
    ] = False,
):
    """Drop all tables and recreate them.

    WARNING: This destroys every comparison and merge!
    """
    if not force:
        confirm = typer.confirm(
            "This will DELETE ALL DATA. Are you sure?",
            default=False,
        )
        if not confirm:
            console.print("[yellow]Aborted.[/yellow]")
            raise typer.Exit(0)

    async def _reset():
        await reset_db()
        console.print("[green]Database reset.[/green]")

    run_async(_reset())


@app.command()
def compare(
    node_a: Annotated[str, typer.Argument(help="First node ID")],
    node_b: Annotated[str, typer.Argument(help="Second node ID")],
    info_a: Annotated[
        str | None, typer.Option("--info-a", help="JSON attribute snapshot for node A")
    ] = None,
    info_b: Annotated[
        str | None, typer.Option("--info-b", help="JSON attribute snapshot for node B")
    ] = None,
):
    """Create or refresh the comparison for a node pair (no scoring)."""
    snapshot_a = parse_info(info_a)
    snapshot_b = parse_info(info_b)

    async def _compare():
        comparison_id = await comparison_service().compare_nodes(
            node_a, node_b, snapshot_a, snapshot_b
        )
        console.print(f"[green]Comparison:[/green] {comparison_id}")

    run_async(_compare())


@app.command()
def analyze(
    comparison_id: Annotated[UUID, typer.Argument(help="Comparison ID")],
):
    """Score a comparison with the external reasoning service (at most once)."""
    async def _analyze():
        service = comparison_service()
        await service.analyze_comparison(comparison_id)
        for c in await service.get_comparison_details(comparison_id):
            console.print(Panel(
                f"[bold]Score:[/bold] {c.similarity_score:.2f}\n"
                f"[bold]Confidence:[/bold] {c.confidence.value if c.confidence else '-'}\n"
                f"[bold]Reasoning:[/bold] {c.reasoning}",
                title=f"Comparison {comparison_id}",
            ))

    run_async(_analyze())


@app.command()
def confirm(
    comparison_id: Annotated[UUID, typer.Argument(help="Comparison ID")],
    decision: Annotated[str, typer.Argument(help="same | different")],
):
    """Record a decision on a pending comparison."""
    async def _confirm():
        await comparison_service().confirm_comparison(comparison_id, decision)
        console.print(f"[green]Confirmed[/green] {comparison_id} as {decision}")

    run_async(_confirm())


@app.command()
def cancel(
    comparison_id: Annotated[UUID, typer.Argument(help="Comparison ID")],
):
    """Delete a pending comparison."""
    async def _cancel():
        await comparison_service().cancel_comparison(comparison_id)
        console.print(f"[green]Cancelled[/green] {comparison_id}")

    run_async(_cancel())


@app.command()
def merge(
    comparison_id: Annotated[UUID, typer.Argument(help="Comparison ID")],
    keep_node: Annotated[str, typer.Argument(help="Node that remains after the merge")],
):
    """Record a merge for a comparison decided as "same"."""
    async def _merge():
        merge_id = await merge_service().merge_nodes(comparison_id, keep_node)
        console.print(f"[green]Merge:[/green] {merge_id}")

    run_async(_merge())


@app.command()
def pending():
    """List all pending comparisons."""
    async def _pending():
        comparisons = await comparison_service().get_pending_comparisons()
        if not comparisons:
            console.print("[yellow]No pending comparisons.[/yellow]")
            return
        console.print(comparison_table(comparisons, "Pending Comparisons"))

    run_async(_pending())


@app.command()
def show(
    comparison_id: Annotated[UUID, typer.Argument(help="Comparison ID")],
):
    """Show full details for a comparison, including snapshots."""
    async def _show():
        details = await comparison_service().get_comparison_details(comparison_id)
        if not details:
            console.print(f"[red]Error:[/red] Comparison not found: {comparison_id}")
            raise typer.Exit(1)

        c = details[0]
        console.print(comparison_table(details, f"Comparison {comparison_id}"))
        if c.reasoning:
            console.print(Panel(c.reasoning, title="Reasoning"))
        console.print(Panel(json.dumps(c.node_a_info, indent=2), title=f"{c.node_a} info"))
        console.print(Panel(json.dumps(c.node_b_info, indent=2), title=f"{c.node_b} info"))

    run_async(_show())


@app.command()
def merges(
    node: Annotated[str, typer.Argument(help="Node ID")],
):
    """List merges in which a node was absorbed or kept."""
    async def _merges():
        records = await merge_service().get_merges_for_node(node)
        if not records:
            console.print(f"[yellow]No merges for {node}.[/yellow]")
            return

        table = Table(title=f"Merges for {node}")
        table.add_column("Merge", style="dim")
        table.add_column("Absorbed")
        table.add_column("Canonical")
        table.add_column("By")
        table.add_column("At")
        for m in records:
            table.add_row(
                str(m.merge_id),
                m.absorbed_node,
                m.canonical_node,
                m.merged_by.value,
                m.merged_at.isoformat() if m.merged_at else "-",
            )
        console.print(table)

    run_async(_merges())


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
