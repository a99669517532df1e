"""Segment CLI commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Optional, Union

import typer
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from segment_studio.db.database import get_db
from segment_studio.db.models import Segment
from segment_studio.core.rules.describe import describe_rule, describe_segment
from segment_studio.core.rules.editor import TreeEditor
from segment_studio.core.rules.exceptions import SegmentRuleError
from segment_studio.core.rules.models import Rule, RuleGroup
from segment_studio.core.rules.registry import FieldRegistry, default_registry
from segment_studio.core.segments.service import SegmentService
from segment_studio.config import get_settings

console = Console()
app = typer.Typer()
settings = get_settings()

registry = default_registry()


def _find_segment(service: SegmentService, ref: str) -> Segment:
    """Look a segment up by name, then by ID; exit if absent."""
    segment = service.repo.get_by_name(ref) or service.repo.get_by_id(ref)
    if not segment:
        console.print(f"[red]Error:[/red] Segment '{ref}' not found")
        raise typer.Exit(1)
    return segment


def _render_tree(node: Union[Rule, RuleGroup], registry: FieldRegistry, branch: Optional[Tree] = None) -> Tree:
    """Build a Rich tree showing every node id, for use with the edit commands."""
    if isinstance(node, Rule):
        branch.add(f"{describe_rule(node, registry)} [dim]({node.id})[/dim]")
        return branch

    color = "cyan" if node.combinator.value == "AND" else "magenta"
    label = f"[bold {color}]{node.combinator.value}[/bold {color}] [dim]({node.id})[/dim]"
    group_branch = Tree(label) if branch is None else branch.add(label)
    if not node.children:
        group_branch.add("[dim]no conditions[/dim]")
    for child in node.children:
        _render_tree(child, registry, group_branch)
    return group_branch


def _edit(ref: str, operation: Callable[[TreeEditor], RuleGroup], done: str) -> None:
    """Apply one tree edit to a saved segment and show the result."""
    with get_db() as db:
        service = SegmentService(db, registry)
        segment = _find_segment(service, ref)
        try:
            segment = service.edit(segment.id, operation)
        except SegmentRuleError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)

        console.print(f"[green]{done}[/green]")
        console.print(_render_tree(service.load_tree(segment), registry))


@app.command("create")
def create_segment(
    name: str = typer.Argument(..., help="Segment name"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Segment description"),
    rules_file: Optional[Path] = typer.Option(
        None, "--rules", "-r", help="JSON file with a rule tree (default: starter rules)"
    ),
):
    """Create a new segment."""
    rules = None
    if rules_file:
        try:
            rules = json.loads(rules_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            console.print(f"[red]Error reading rules:[/red] {e}")
            raise typer.Exit(1)

    with get_db() as db:
        service = SegmentService(db, registry)

        if service.repo.get_by_name(name):
            console.print(
                f"[yellow]Warning:[/yellow] Segment '{name}' already exists. "
                f"Use a different name or remove the existing segment."
            )
            raise typer.Exit(1)

        try:
            segment = service.create_segment(name=name, description=description, rules=rules)
        except SegmentRuleError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)

        console.print(f"[green]Created segment:[/green] {segment.name}")
        console.print(_render_tree(service.load_tree(segment), registry))


@app.command("list")
def list_segments():
    """List all segments."""
    with get_db() as db:
        service = SegmentService(db, registry)
        segments = service.repo.get_all()

        if not segments:
            console.print("[yellow]No segments found.[/yellow] Use 'create' or 'generate' to make one.")
            return

        table = Table(title="Segments")
        table.add_column("Name", style="cyan")
        table.add_column("Audience", justify="right", style="green")
        table.add_column("Calculated")
        table.add_column("AI")
        table.add_column("Updated")

        for s in segments:
            audience_str = f"{s.audience_size:,}" if s.audience_size is not None else "[dim]-[/dim]"
            calculated_str = (
                s.last_calculated_at.strftime("%Y-%m-%d %H:%M")
                if s.last_calculated_at
                else "[dim]Never[/dim]"
            )
            table.add_row(
                s.name,
                audience_str,
                calculated_str,
                "Yes" if s.is_ai_generated else "",
                s.updated_at.strftime("%Y-%m-%d %H:%M"),
            )

        console.print(table)


@app.command("show")
def show_segment(
    ref: str = typer.Argument(..., help="Segment name or ID"),
    as_json: bool = typer.Option(False, "--json", help="Print the stored rule document"),
):
    """Show a segment's rule tree with node ids."""
    with get_db() as db:
        service = SegmentService(db, registry)
        segment = _find_segment(service, ref)

        if as_json:
            console.print_json(json.dumps(segment.rules))
            return

        console.print(f"[bold]{segment.name}[/bold] [dim]({segment.id})[/dim]")
        if segment.description:
            console.print(segment.description)
        console.print(_render_tree(service.load_tree(segment), registry))
        if segment.audience_size is not None:
            console.print(f"\nAudience: [green]{segment.audience_size:,}[/green]")


@app.command("describe")
def describe(ref: str = typer.Argument(..., help="Segment name or ID")):
    """Describe a segment's rules in plain English."""
    with get_db() as db:
        service = SegmentService(db, registry)
        segment = _find_segment(service, ref)
        console.print(service.describe(segment))


@app.command("calculate")
def calculate(
    ref: Optional[str] = typer.Argument(None, help="Segment name or ID (default: all segments)"),
):
    """Recalculate audience sizes."""
    with get_db() as db:
        service = SegmentService(db, registry)

        if ref is None:
            sizes = service.refresh_all()
            for name, size in sizes.items():
                console.print(f"  {name}: [green]{size:,}[/green]")
            console.print(f"\n[bold green]Refreshed {len(sizes)} segment(s)[/bold green]")
            return

        segment = _find_segment(service, ref)
        try:
            result = service.calculate(segment.id)
        except SegmentRuleError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)

        rate = f" ({result.match_rate:.1f}%)" if result.match_rate is not None else ""
        console.print(
            f"[bold]{segment.name}[/bold]: [green]{result.matched_count:,}[/green] "
            f"of {result.evaluated_count:,} customers{rate}"
        )
        if result.unevaluable_count:
            console.print(f"[yellow]{result.unevaluable_count} customer(s) could not be evaluated[/yellow]")


@app.command("remove")
def remove_segment(ref: str = typer.Argument(..., help="Segment name or ID")):
    """Remove a segment."""
    with get_db() as db:
        service = SegmentService(db, registry)
        segment = _find_segment(service, ref)
        service.repo.delete(segment.id)
        console.print(f"[green]Removed segment:[/green] {segment.name}")


@app.command("add-rule")
def add_rule(
    ref: str = typer.Argument(..., help="Segment name or ID"),
    parent_id: str = typer.Option("root", "--parent", "-p", help="Group to add the rule to"),
    field: Optional[str] = typer.Option(None, "--field", "-f", help="Customer field (see 'fields')"),
    operator: Optional[str] = typer.Option(None, "--operator", "-o", help="Operator for the field"),
    value: Optional[str] = typer.Option(None, "--value", "-v", help="Value (use 'low,high' for between)"),
):
    """Add a condition to a group."""
    _edit(ref, lambda editor: editor.add_rule(parent_id, field, operator, value), "Rule added")


@app.command("add-group")
def add_group(
    ref: str = typer.Argument(..., help="Segment name or ID"),
    parent_id: str = typer.Option("root", "--parent", "-p", help="Group to nest the new group in"),
    combinator: str = typer.Option("AND", "--combinator", "-c", help="AND or OR"),
):
    """Add an empty nested group."""
    _edit(ref, lambda editor: editor.add_group(parent_id, combinator), "Group added")


@app.command("update-rule")
def update_rule(
    ref: str = typer.Argument(..., help="Segment name or ID"),
    node_id: str = typer.Argument(..., help="Rule ID (see 'show')"),
    field: Optional[str] = typer.Option(None, "--field", "-f", help="New field"),
    operator: Optional[str] = typer.Option(None, "--operator", "-o", help="New operator"),
    value: Optional[str] = typer.Option(None, "--value", "-v", help="New value"),
):
    """Change a rule's field, operator or value."""
    _edit(ref, lambda editor: editor.update_rule(node_id, field, operator, value), "Rule updated")


@app.command("remove-node")
def remove_node(
    ref: str = typer.Argument(..., help="Segment name or ID"),
    node_id: str = typer.Argument(..., help="Rule or group ID (see 'show')"),
):
    """Remove a rule or a whole group."""
    _edit(ref, lambda editor: editor.remove_node(node_id), "Node removed")


@app.command("set-combinator")
def set_combinator(
    ref: str = typer.Argument(..., help="Segment name or ID"),
    group_id: str = typer.Argument(..., help="Group ID (see 'show')"),
    combinator: str = typer.Argument(..., help="AND or OR"),
):
    """Switch a group between AND and OR."""
    _edit(ref, lambda editor: editor.set_combinator(group_id, combinator), "Combinator updated")


@app.command("move")
def move_node(
    ref: str = typer.Argument(..., help="Segment name or ID"),
    node_id: str = typer.Argument(..., help="Rule or group ID to move"),
    target_group_id: str = typer.Argument(..., help="Destination group ID"),
    position: Optional[int] = typer.Option(None, "--position", "-i", help="Index in the destination (default: last)"),
):
    """Move a rule or group to another group or position."""
    _edit(ref, lambda editor: editor.move_node(node_id, target_group_id, position), "Node moved")


@app.command("generate")
def generate_segment(
    query: str = typer.Argument(..., help="Plain-English audience description"),
    save_as: Optional[str] = typer.Option(None, "--save", "-s", help="Save as a segment with this name"),
):
    """Generate rules from a plain-English description.

    Uses OpenAI when OPENAI_API_KEY is set, otherwise a keyword matcher.

    Examples:
        segment-studio segments generate "people who haven't shopped in 6 months"
        segment-studio segments generate "spent over 5K" --save "Big spenders"
    """
    from segment_studio.ai.segments.generator import build_segment_from_query
    from segment_studio.core.rules.models import serialize_tree

    console.print("[bold]Generating rules...[/bold]\n")
    tree, generated = build_segment_from_query(query, registry)

    if not generated:
        console.print("[yellow]Could not interpret the query; using the starter rule.[/yellow]")
    console.print(_render_tree(tree, registry))
    console.print(f"\n{describe_segment(tree, registry)}")

    if not save_as:
        return

    with get_db() as db:
        service = SegmentService(db, registry)
        if service.repo.get_by_name(save_as):
            console.print(f"[red]Error:[/red] Segment '{save_as}' already exists")
            raise typer.Exit(1)
        service.create_segment(
            name=save_as,
            description=query,
            rules=serialize_tree(tree),
            is_ai_generated=generated,
        )
        console.print(f"\n[green]Saved segment:[/green] {save_as}")


@app.command("watch")
def watch(
    interval: int = typer.Option(
        None,
        "--interval",
        "-n",
        help=f"Seconds between refreshes (default: {settings.audience_refresh_seconds})",
    ),
):
    """Keep audience sizes of all segments up to date (runs continuously)."""
    from segment_studio.core.scheduler import start_scheduler

    effective_interval = interval or settings.audience_refresh_seconds

    console.print("[bold]Starting audience refresh[/bold]")
    console.print(f"  Interval: {effective_interval} seconds")
    console.print()
    console.print("[dim]Press Ctrl+C to stop[/dim]\n")

    start_scheduler(interval_seconds=effective_interval)
