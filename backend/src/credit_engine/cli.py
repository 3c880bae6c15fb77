"""Command-line interface for the Credit Engine."""

import json
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from credit_engine.engine import CreditEngine, build_engine
from credit_engine.errors import LedgerError
from credit_engine.logging_config import configure_logging, get_logger
from credit_engine.settings import settings
from credit_engine.storage.seed import seed_demo_events

# Configure logging
configure_logging()
logger = get_logger(__name__)

# Create Typer app
app = typer.Typer(
    name="credit-engine",
    help="Credit Engine - credit ledger with referral bonuses",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()


def _engine() -> CreditEngine:
    if settings.storage_backend == "memory":
        console.print("[yellow]Warning: memory storage does not persist between commands[/yellow]")
    return build_engine(settings)


def _fail(exc: LedgerError) -> None:
    console.print(f"[bold red]✗[/bold red] {exc.message}")
    raise typer.Exit(code=1)


@app.command("init")
def init_database() -> None:
    """Initialize the database and create tables."""
    console.print("[bold blue]Initializing event store...[/bold blue]")
    engine = _engine()
    console.print(f"[bold green]✓[/bold green] Store ready ({engine.store.name})")


@app.command("award")
def award_credits(
    user_id: Annotated[str, typer.Option("--user", "-u", help="User receiving credits")],
    action_type: Annotated[str, typer.Option("--action", "-a", help="Action type")],
    credits: Annotated[int, typer.Option("--credits", "-c", help="Credits awarded")],
    referrer_id: Annotated[Optional[str], typer.Option("--referrer", "-r", help="Referrer user ID")] = None,
) -> None:
    """Award credits for an action."""
    engine = _engine()
    try:
        result = engine.ledger.record_event(
            user_id=user_id,
            action_type=action_type,
            credits_awarded=credits,
            referrer_id=referrer_id,
            metadata={"source": "cli"},
        )
    except LedgerError as exc:
        _fail(exc)
        return

    console.print(f"[bold green]✓[/bold green] {result.message}")
    console.print(f"  Event ID: {result.event.id}")
    if result.referral_processing:
        referral = result.referral_processing
        console.print(f"  Referral: {referral.message or referral.error}")


@app.command("enroll")
def enroll_user(
    user_id: Annotated[str, typer.Option("--user", "-u", help="User to enroll")],
    referrer_id: Annotated[Optional[str], typer.Option("--referrer", "-r", help="Referrer user ID")] = None,
    credits: Annotated[Optional[int], typer.Option("--credits", "-c", help="Enrollment credits")] = None,
) -> None:
    """Enroll a user; the referrer must already have ledger history."""
    engine = _engine()
    try:
        result = engine.ledger.enroll(
            user_id=user_id,
            referrer_id=referrer_id,
            credits_awarded=credits,
            source="cli",
        )
    except LedgerError as exc:
        _fail(exc)
        return

    console.print(f"[bold green]✓[/bold green] {result.message}")
    if result.referral_processing:
        console.print(f"  Referrer bonus: {result.referral_processing.bonus_awarded}")


@app.command("summary")
def user_summary(user_id: Annotated[str, typer.Argument(help="User ID")]) -> None:
    """Show a user's credit totals."""
    summary = _engine().reader.get_user_credit_total(user_id)

    console.print(f"[bold]User:[/bold] {summary.user_id}")
    console.print(f"[bold]Total credits:[/bold] {summary.total_credits}")
    console.print(f"[bold]Events:[/bold] {summary.total_events}")
    console.print(f"[bold]Last activity:[/bold] {summary.last_activity or '-'}")

    if summary.credits_by_action:
        table = Table(title="Credits by action")
        table.add_column("Action", style="cyan")
        table.add_column("Events", justify="right")
        table.add_column("Credits", justify="right", style="green")
        for action, entry in summary.credits_by_action.items():
            table.add_row(action, str(entry.count), str(entry.total_credits))
        console.print(table)


@app.command("events")
def list_events(
    user_id: Annotated[Optional[str], typer.Option("--user", "-u", help="Filter by user")] = None,
    action_type: Annotated[Optional[str], typer.Option("--action", "-a", help="Filter by action type")] = None,
    referrer_id: Annotated[Optional[str], typer.Option("--referrer", "-r", help="Filter by referrer")] = None,
    limit: Annotated[int, typer.Option("--limit", "-l", help="Page size")] = 20,
    skip: Annotated[int, typer.Option("--skip", help="Events to skip")] = 0,
) -> None:
    """List credit events, newest first."""
    try:
        page = _engine().reader.get_credit_events(
            user_id=user_id,
            action_type=action_type,
            referrer_id=referrer_id,
            limit=limit,
            skip=skip,
        )
    except LedgerError as exc:
        _fail(exc)
        return

    if not page.events:
        console.print("[yellow]No events found[/yellow]")
        return

    table = Table(title=f"Credit events ({page.pagination.total_count} total)")
    table.add_column("Time", style="dim")
    table.add_column("User", style="cyan")
    table.add_column("Action")
    table.add_column("Credits", justify="right", style="green")
    table.add_column("Referrer")
    for event in page.events:
        table.add_row(
            event.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            event.user_id,
            event.action_type,
            str(event.credits_awarded),
            event.referrer_id or "-",
        )
    console.print(table)
    if page.pagination.has_more:
        console.print(f"[dim]More events available (use --skip {skip + len(page.events)})[/dim]")


@app.command("referrals")
def referral_summary(user_id: Annotated[str, typer.Argument(help="Referrer user ID")]) -> None:
    """Show referral bonuses earned by a user."""
    summary = _engine().referrals.get_referral_bonus_summary(user_id)
    console.print(f"[bold]Referrals:[/bold] {summary.total_referrals}")
    console.print(f"[bold]Bonus credits:[/bold] {summary.total_bonus_credits}")
    for bonus in summary.recent_bonuses:
        console.print(f"  +{bonus.credits_awarded} from {bonus.triggered_by or bonus.metadata.get('triggeredBy', '?')}")


@app.command("stats")
def system_stats() -> None:
    """Show system-wide statistics."""
    stats = _engine().reader.get_system_stats()

    console.print(f"[bold]Total credits:[/bold] {stats.total_credits}")
    console.print(f"[bold]Total events:[/bold] {stats.total_events}")
    console.print(f"[bold]Unique users:[/bold] {stats.unique_users}")
    console.print(f"[bold]Last {settings.recent_window_hours}h:[/bold] {stats.recent_activity}")

    table = Table(title="By action")
    table.add_column("Action", style="cyan")
    table.add_column("Events", justify="right")
    table.add_column("Credits", justify="right", style="green")
    for action, entry in stats.credits_by_action.items():
        table.add_row(action, str(entry.event_count), str(entry.total_credits))
    console.print(table)


@app.command("reconcile")
def reconcile() -> None:
    """Award referral bonuses lost to partial write failures."""
    report = _engine().reconcile()
    console.print(f"[bold green]✓[/bold green] Scanned {report.scanned} referral events")
    console.print(f"  Bonuses awarded: {report.bonuses_awarded}")
    if report.orphan_bonus_ids:
        console.print(f"[yellow]  Orphan bonuses (no source event): {len(report.orphan_bonus_ids)}[/yellow]")
        for event_id in report.orphan_bonus_ids:
            console.print(f"    {event_id}")


@app.command("import")
def import_events(
    path: Annotated[Path, typer.Argument(help="JSON lines file, one event per line", exists=True, dir_okay=False)],
) -> None:
    """Bulk import historical events. Referrals are not processed."""
    events = []
    with path.open(encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError as exc:
                console.print(f"[red]Line {line_number} is not valid JSON: {exc.msg}[/red]")
                raise typer.Exit(code=1)

    try:
        result = _engine().ledger.bulk_record_events(events)
    except LedgerError as exc:
        _fail(exc)
        return

    console.print(f"[bold green]✓[/bold green] Imported {result.inserted_count} events")


@app.command("seed-demo")
def seed_demo() -> None:
    """Add demo events to an empty store."""
    count = seed_demo_events(_engine().store)
    if count:
        console.print(f"[bold green]✓[/bold green] Added {count} demo events")
    else:
        console.print("[yellow]Store is not empty, nothing added[/yellow]")


@app.command("serve")
def serve(
    host: Annotated[str, typer.Option("--host", help="Bind address")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", "-p", help="Port")] = 3000,
    reload: Annotated[bool, typer.Option("--reload", help="Reload on code changes")] = False,
) -> None:
    """Run the HTTP API."""
    import uvicorn

    console.print(f"[bold blue]Credit Engine API on http://{host}:{port}[/bold blue] (env={settings.env})")
    uvicorn.run(
        "credit_engine.api.main:create_default_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_config=None,
    )


if __name__ == "__main__":
    app()
