"""Customer CLI commands."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from segment_studio.db.database import get_db
from segment_studio.core.customers.importers import import_customers, parse_customers_csv
from segment_studio.core.customers.models import CUSTOMER_STATUSES
from segment_studio.core.customers.repository import CustomerRepository

console = Console()
app = typer.Typer()

IMPORT_MODES = ("upsert", "add_only")


@app.command("add")
def add_customer(
    name: str = typer.Argument(..., help="Customer name"),
    email: str = typer.Argument(..., help="Email address"),
    total_spend: float = typer.Option(0.0, "--spend", "-s", help="Lifetime spend"),
    visits: int = typer.Option(0, "--visits", "-v", help="Number of visits"),
    last_purchase: Optional[str] = typer.Option(
        None, "--last-purchase", "-l", help="Last purchase date (YYYY-MM-DD)"
    ),
    phone: Optional[str] = typer.Option(None, "--phone", help="Phone number"),
    status: str = typer.Option("new", "--status", help=f"One of: {', '.join(CUSTOMER_STATUSES)}"),
):
    """Add a customer."""
    if total_spend < 0 or visits < 0:
        console.print("[red]Error:[/red] Spend and visits cannot be negative")
        raise typer.Exit(1)

    if status not in CUSTOMER_STATUSES:
        console.print(f"[red]Error:[/red] Invalid status: {status}")
        raise typer.Exit(1)

    purchase_date = None
    if last_purchase:
        try:
            purchase_date = datetime.strptime(last_purchase, "%Y-%m-%d").date()
        except ValueError:
            console.print(f"[red]Error:[/red] Invalid date: {last_purchase} (expected YYYY-MM-DD)")
            raise typer.Exit(1)

    with get_db() as db:
        repo = CustomerRepository(db)

        if repo.get_by_email(email):
            console.print(f"[yellow]Warning:[/yellow] A customer with email '{email}' already exists.")
            raise typer.Exit(1)

        customer = repo.create(
            name=name,
            email=email,
            phone=phone,
            total_spend=total_spend,
            visits=visits,
            last_purchase_date=purchase_date,
            status=status,
        )
        console.print(f"[green]Added customer:[/green] {customer.name} <{customer.email}>")


@app.command("list")
def list_customers(
    limit: int = typer.Option(50, "--limit", "-n", help="Maximum customers to show"),
):
    """List customers."""
    with get_db() as db:
        repo = CustomerRepository(db)
        customers = repo.get_all(limit=limit)

        if not customers:
            console.print("[yellow]No customers found.[/yellow] Use 'add' or 'import' to create some.")
            return

        table = Table(title="Customers")
        table.add_column("Name", style="cyan")
        table.add_column("Email")
        table.add_column("Total Spend", justify="right", style="green")
        table.add_column("Visits", justify="right")
        table.add_column("Last Purchase")
        table.add_column("Status")

        for c in customers:
            table.add_row(
                c.name,
                c.email,
                f"{c.total_spend:,.2f}",
                str(c.visits),
                c.last_purchase_date.isoformat() if c.last_purchase_date else "[dim]Never[/dim]",
                c.status,
            )

        console.print(table)
        console.print(f"\n[dim]Showing {len(customers)} of {repo.count()} customer(s)[/dim]")


@app.command("remove")
def remove_customer(
    email: str = typer.Argument(..., help="Email of the customer to remove"),
):
    """Remove a customer."""
    with get_db() as db:
        repo = CustomerRepository(db)
        customer = repo.get_by_email(email)
        if not customer:
            console.print(f"[red]Error:[/red] Customer '{email}' not found")
            raise typer.Exit(1)

        repo.delete(customer.id)
        console.print(f"[green]Removed customer:[/green] {email}")


@app.command("import")
def import_csv(
    file_path: Path = typer.Argument(..., help="Path to customer CSV file"),
    mode: str = typer.Option(
        "upsert",
        "--mode",
        "-m",
        help="Import mode: upsert (update existing), add_only (skip existing)",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-n",
        help="Parse and show what would be imported without making changes",
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Import customers from a CSV file.

    Recognized columns include name, email, phone, total spend, visits,
    last purchase date and status. Customers are matched by email.

    Examples:
        segment-studio customers import customers.csv
        segment-studio customers import customers.csv --dry-run
        segment-studio customers import customers.csv --mode add_only
    """
    if mode not in IMPORT_MODES:
        console.print(f"[red]Error:[/red] Invalid mode: {mode} (use {' or '.join(IMPORT_MODES)})")
        raise typer.Exit(1)

    if not file_path.exists():
        console.print(f"[red]Error:[/red] File not found: {file_path}")
        raise typer.Exit(1)

    try:
        csv_content = file_path.read_text(encoding="utf-8")
    except Exception as e:
        console.print(f"[red]Error reading file:[/red] {e}")
        raise typer.Exit(1)

    customers, parse_errors = parse_customers_csv(csv_content)

    if parse_errors:
        console.print("[yellow]Rows skipped:[/yellow]")
        for err in parse_errors:
            console.print(f"  - {err}")

    if not customers:
        console.print("[yellow]No customers found in CSV.[/yellow]")
        raise typer.Exit(0)

    table = Table(title="Customers to Import")
    table.add_column("Name", style="cyan")
    table.add_column("Email")
    table.add_column("Total Spend", justify="right", style="green")
    table.add_column("Visits", justify="right")
    table.add_column("Last Purchase")

    for customer in customers:
        table.add_row(
            customer.name,
            customer.email,
            f"{customer.total_spend:,.2f}",
            str(customer.visits),
            customer.last_purchase_date.isoformat() if customer.last_purchase_date else "-",
        )

    console.print(table)
    console.print(f"\n[dim]Total customers: {len(customers)}[/dim]")

    if dry_run:
        console.print("\n[yellow]Dry run - no changes made.[/yellow]")
        return

    if not yes and not typer.confirm(f"\nImport {len(customers)} customers (mode={mode})?"):
        console.print("[yellow]Cancelled.[/yellow]")
        raise typer.Exit(0)

    with get_db() as db:
        result = import_customers(db, customers, mode)

    console.print()
    if result.errors:
        console.print("[red]Errors during import:[/red]")
        for err in result.errors:
            console.print(f"  - {err}")

    console.print("[green]Import complete![/green]")
    console.print(f"  Created: {result.created}")
    console.print(f"  Updated: {result.updated}")
    console.print(f"  Skipped: {result.skipped}")
