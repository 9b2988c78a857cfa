"""
POS sync CLI.

Command-line interface for database setup, outbox operations and
inspecting the sync ledger.
"""

import asyncio
import json

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="pos-sync",
    help="POS offline sync operations CLI",
    add_completion=False,
)
console = Console()


# =============================================================================
# Database Commands
# =============================================================================

@app.command()
def db_init():
    """Create all tables."""
    from pos_sync.models import Base
    from shared.infrastructure.db import engine

    try:
        Base.metadata.create_all(bind=engine)
        console.print("[green]✓ Tables created/verified[/green]")
    except Exception as e:
        console.print(f"[red]✗ Table creation failed: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def db_seed(
    force: bool = typer.Option(False, "--force", "-f", help="Allow seeding in production"),
):
    """Seed the development branch (idempotent)."""
    from pos_sync.seed import seed
    from shared.config.settings import settings
    from shared.infrastructure.db import get_db_context

    if settings.environment == "production" and not force:
        console.print("[red]Cannot seed production without --force[/red]")
        raise typer.Exit(1)

    try:
        with get_db_context() as db:
            seed(db)
        console.print("[green]✓ Seed complete[/green]")
    except Exception as e:
        console.print(f"[red]✗ Seeding failed: {e}[/red]")
        raise typer.Exit(1)


# =============================================================================
# Outbox Commands
# =============================================================================

@app.command()
def outbox_drain(
    max_batches: int = typer.Option(100, help="Stop after this many batches"),
):
    """Handle pending outbox events (stock deductions, dashboard events)."""
    from pos_sync.services.events import process_pending_events_once

    async def _drain() -> int:
        total = 0
        for _ in range(max_batches):
            published = await process_pending_events_once()
            if published == 0:
                break
            total += published
        return total

    total = asyncio.run(_drain())
    console.print(f"[green]✓ Published {total} outbox events[/green]")


@app.command()
def outbox_stats():
    """Show outbox event counts by type and status."""
    from sqlalchemy import func, select

    from pos_sync.models import OutboxEvent
    from shared.infrastructure.db import get_db_context

    with get_db_context() as db:
        rows = db.execute(
            select(OutboxEvent.event_type, OutboxEvent.status, func.count(OutboxEvent.id))
            .group_by(OutboxEvent.event_type, OutboxEvent.status)
            .order_by(OutboxEvent.event_type)
        ).all()

    table = Table(title="Outbox")
    table.add_column("Event type", style="cyan")
    table.add_column("Status")
    table.add_column("Count", justify="right")
    for event_type, status, count in rows:
        style = "red" if status.value == "FAILED" else None
        table.add_row(event_type, status.value, str(count), style=style)

    console.print(table)


# =============================================================================
# Sync Ledger Commands
# =============================================================================

@app.command()
def sync_logs(
    branch_id: int = typer.Argument(..., help="Branch to inspect"),
    limit: int = typer.Option(20, "--limit", "-n", help="Entries to show"),
):
    """Show the latest sync ledger entries of a branch."""
    from pos_sync.services.domain import SyncLedger
    from shared.infrastructure.db import SessionLocal

    overview = SyncLedger(SessionLocal).get_overview(branch_id, limit)

    for direction in ("push", "pull"):
        bucket = getattr(overview.summary, direction)
        console.print(
            f"[bold]{direction.upper()}[/bold] total={bucket.total} "
            f"success={bucket.success} failed={bucket.failed} "
            f"rate={bucket.success_rate}%"
        )

    table = Table(title=f"Sync ledger, branch {branch_id}")
    table.add_column("Started", style="dim")
    table.add_column("Direction")
    table.add_column("Status")
    table.add_column("Pulled", justify="right")
    table.add_column("Pushed", justify="right")
    table.add_column("Error")

    for log in overview.logs:
        status_style = "green" if log.status == "SUCCESS" else "red"
        table.add_row(
            log.started_at.isoformat(timespec="seconds"),
            log.direction,
            f"[{status_style}]{log.status}[/{status_style}]",
            str(log.records_pulled),
            str(log.records_pushed),
            (log.error_message or "")[:60],
        )

    console.print(table)


# =============================================================================
# Development Commands
# =============================================================================

@app.command()
def dev_token(
    user_id: str = typer.Option(..., "--user", "-u", help="User id (sub claim)"),
    branch_id: int = typer.Option(1, "--branch", "-b", help="Branch id"),
    roles: list[str] = typer.Option(["CASHIER"], "--role", "-r", help="Role (repeatable)"),
    ttl: int = typer.Option(3600, help="Token lifetime in seconds"),
):
    """Sign a JWT for local testing against the API."""
    from shared.config.settings import settings
    from shared.security.auth import sign_jwt

    if settings.environment == "production":
        console.print("[red]Refusing to sign tokens in production[/red]")
        raise typer.Exit(1)

    token = sign_jwt({"sub": user_id, "branch_id": branch_id, "roles": roles}, ttl_seconds=ttl)
    console.print(token, soft_wrap=True)


@app.command()
def health():
    """Check database and Redis connectivity."""
    from pos_sync.routers.public.health import check_database_health
    from shared.infrastructure.events import check_redis_async_health, close_redis_pool

    async def _health():
        try:
            return [await check_database_health(), await check_redis_async_health()]
        finally:
            await close_redis_pool()

    healthy = True
    for result in asyncio.run(_health()):
        data = result.to_dict()
        ok = data["status"] == "healthy"
        healthy = healthy and ok
        mark = "[green]✓[/green]" if ok else "[red]✗[/red]"
        console.print(f"{mark} {result.component}: {json.dumps(data)}")

    if not healthy:
        raise typer.Exit(1)


@app.command()
def version():
    """Show version information."""
    console.print("[bold]POS Sync[/bold] v0.1.0")


if __name__ == "__main__":
    app()
