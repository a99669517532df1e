"""Main CLI entry point using Typer."""

import logging

import typer
from rich.console import Console
from rich.table import Table

from segment_studio.db.database import init_db
from segment_studio.config import PRODUCT_NAME, PRODUCT_TAGLINE, PRODUCT_VERSION, get_settings
from segment_studio.core.rules.registry import Operator, default_registry

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# Reduce noise from third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("openai").setLevel(logging.WARNING)
logging.getLogger("apscheduler").setLevel(logging.WARNING)

console = Console()
app = typer.Typer(
    name="segment-studio",
    help=f"{PRODUCT_NAME}: {PRODUCT_TAGLINE}",
    add_completion=False,
)


@app.callback()
def main_callback():
    """Initialize database on startup."""
    init_db()


# Import and add subcommands
from segment_studio.cli.customers import app as customers_app
from segment_studio.cli.segments import app as segments_app

app.add_typer(customers_app, name="customers", help="Manage and import customers")
app.add_typer(segments_app, name="segments", help="Build, edit and size customer segments")


ASCII_BANNER = """
[bold #4F46E5]╔═╗╔═╗╔═╗╔╦╗╔═╗╔╗╔╔╦╗  ╔═╗╔╦╗╦ ╦╔╦╗╦╔═╗
╚═╗║╣ ║ ╦║║║║╣ ║║║ ║   ╚═╗ ║ ║ ║ ║║║║ ║
╚═╝╚═╝╚═╝╩ ╩╚═╝╝╚╝ ╩   ╚═╝ ╩ ╚═╝═╩╝╩╚═╝[/]

[bold #14B8A6]        {tagline}[/]
"""


@app.command()
def version():
    """Show version information with ASCII banner."""
    console.print(ASCII_BANNER.format(tagline=PRODUCT_TAGLINE))
    console.print(f"[bold]Version:[/] {PRODUCT_VERSION}")
    console.print(f"[bold]Tagline:[/] {PRODUCT_TAGLINE}")


@app.command()
def fields():
    """List the customer fields rules can use, with their operators."""
    table = Table(title="Segment Fields")
    table.add_column("Field", style="cyan")
    table.add_column("Label")
    table.add_column("Type")
    table.add_column("Operators")

    for descriptor in default_registry():
        operators = ", ".join(
            f"{op} [dim]({Operator(op).label})[/dim]" for op in descriptor.operators
        )
        table.add_row(descriptor.key, descriptor.label, descriptor.semantic_type.value, operators)

    console.print(table)
    console.print("\n[dim]The first operator is the default when a rule switches to the field.[/dim]")


if __name__ == "__main__":
    app()
