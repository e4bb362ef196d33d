"""Portal CLI - serve the API, run the import worker, manage users and jobs."""

from __future__ import annotations

import asyncio
import logging
import uuid

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import database
from .config import settings

app = typer.Typer(
    name="portal",
    help="Messaging portal backend: API server, import worker and admin tools",
    no_args_is_help=True,
)
console = Console()


async def _ensure_schema() -> None:
    # Same rule as the app lifespan: SQLite is created in place, PostgreSQL is migrated.
    if "sqlite" not in str(database.engine.url):
        return
    from .models import Base
    async with database.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@app.command("serve")
def serve(
    port: int = typer.Option(8030, "--port", "-p", help="Port to run on"),
    host: str = typer.Option("127.0.0.1", "--host", help="Host to bind to"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Launch the portal API."""
    import uvicorn

    console.print(f"[bold cyan]Starting {settings.app_title} at http://{host}:{port}[/bold cyan]")
    uvicorn.run("portal.app:app", host=host, port=port, reload=reload)


@app.command("worker")
def worker(
    once: bool = typer.Option(False, "--once", help="Process at most one job and exit"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Poll for pending import jobs (the standalone deployment of the worker)."""
    from .worker import ImportJobWorker

    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO)
    job_worker = ImportJobWorker(database.async_session_factory)

    async def _run() -> bool:
        await _ensure_schema()
        if once:
            return await job_worker.run_once()
        await job_worker.run_forever()
        return True

    if once:
        claimed = asyncio.run(_run())
        console.print("[green]Processed one job.[/green]" if claimed else "[dim]No pending jobs.[/dim]")
        return

    console.print(
        f"[bold cyan]Import worker polling every {settings.import_poll_interval_seconds:g}s[/bold cyan]"
    )
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        job_worker.request_stop()
        console.print("[dim]Worker stopped.[/dim]")


@app.command("create-user")
def create_user(
    email: str = typer.Argument(..., help="Login email"),
    password: str = typer.Option(..., "--password", prompt=True, hide_input=True),
    role: str = typer.Option("user", "--role", "-r", help="user, reseller, admin or super_admin"),
    first_name: str = typer.Option(None, "--first-name"),
    last_name: str = typer.Option(None, "--last-name"),
    credits: int = typer.Option(0, "--credits", "-c", help="Initial credit allocation"),
):
    """Create a client or admin profile with an optional credit balance."""
    from .services import auth_svc, credit_svc

    async def _create():
        await _ensure_schema()
        async with database.async_session_factory() as db:
            user = await auth_svc.create_user(
                db,
                email=email,
                password=password,
                role=role,
                first_name=first_name,
                last_name=last_name,
            )
            balance = 0
            if credits:
                wallet = await credit_svc.adjust(db, user.id, credits, description="Initial allocation")
                balance = wallet.credits_remaining
            return user, balance

    try:
        user, balance = asyncio.run(_create())
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    console.print(
        Panel(
            f"[bold]{user.email}[/bold]\n"
            f"id: {user.id}\n"
            f"role: {user.role} ({user.user_type})\n"
            f"credits: {balance}",
            title="User created",
        )
    )


@app.command("process-job")
def process_job(
    job_id: str = typer.Argument(..., help="Import job ID"),
):
    """Run one import job now, regardless of the worker schedule."""
    from .services.import_svc import ImportJobError, process_import_job

    try:
        parsed = uuid.UUID(job_id)
    except ValueError:
        console.print(f"[red]Not a job id: {job_id}[/red]")
        raise typer.Exit(1)

    async def _process():
        await _ensure_schema()
        async with database.async_session_factory() as db:
            return await process_import_job(db, parsed)

    try:
        job = asyncio.run(_process())
    except ImportJobError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"Import job {job.id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("status", job.status)
    table.add_row("total", str(job.total_records))
    table.add_row("inserted", str(job.processed_records))
    table.add_row("invalid", str(job.invalid_records))
    table.add_row("progress", f"{job.progress}%")
    if job.error_message:
        table.add_row("error", job.error_message)
    console.print(table)
    if job.status == "failed":
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
