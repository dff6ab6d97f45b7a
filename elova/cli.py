"""Elova CLI - Main entry point."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import settings

app = typer.Typer(
    name="elova",
    help="Elova - n8n workflow and execution monitoring",
    no_args_is_help=True,
)
console = Console()

# Sub-command groups
sync_app = typer.Typer(help="Run and inspect syncs")
providers_app = typer.Typer(help="n8n provider management")
workflows_app = typer.Typer(help="Workflow lifecycle administration")
executions_app = typer.Typer(help="Execution maintenance")
db_app = typer.Typer(help="Database management")
scheduler_app = typer.Typer(help="Background sync scheduler")

app.add_typer(sync_app, name="sync")
app.add_typer(providers_app, name="providers")
app.add_typer(workflows_app, name="workflows")
app.add_typer(executions_app, name="executions")
app.add_typer(db_app, name="db")
app.add_typer(scheduler_app, name="scheduler")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _output_result(result: dict[str, Any], json_output: bool = False) -> None:
    """Output result as JSON or formatted."""
    if json_output:
        console.print_json(json.dumps(result, default=str))
    else:
        console.print_json(json.dumps(result, default=str, indent=2))


def _parse_uuid(value: str, label: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        console.print(f"[red]Invalid {label}: {value}[/red]")
        raise typer.Exit(1)


# ── sync ──────────────────────────────────────────────────────────────────

@sync_app.command("run")
def sync_run(
    sync_type: str = typer.Option(
        "executions", "--type", "-t", help="executions, workflows, backups or full"
    ),
    batch_size: int = typer.Option(None, "--batch-size", "-b", help="Page size override"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """Sync every connected provider once."""
    from .database import init_db
    from .errors import UnknownSyncTypeError
    from .sync.sync_engine import sync_all_providers

    async def _run():
        await init_db()
        return await sync_all_providers(sync_type, batch_size, manual=True)

    try:
        result = asyncio.run(_run())
    except UnknownSyncTypeError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if json_output:
        _output_result(result.model_dump(), json_output=True)
        return

    table = Table(title=f"{sync_type.title()} sync ({result.providers} providers)")
    table.add_column("Provider", style="cyan")
    table.add_column("Result")
    table.add_column("Processed", justify="right")
    table.add_column("Inserted", justify="right")
    table.add_column("Updated", justify="right")
    for outcome in result.results:
        counts = outcome.result or {}
        table.add_row(
            outcome.provider_name,
            "[green]ok[/green]" if outcome.success else f"[red]{outcome.error}[/red]",
            str(counts.get("processed", "-")),
            str(counts.get("inserted", "-")),
            str(counts.get("updated", "-")),
        )
    console.print(table)
    if not result.success:
        raise typer.Exit(1)


@sync_app.command("status")
def sync_status(
    limit: int = typer.Option(10, "--limit", "-n", help="Number of runs to show"),
):
    """Show recent sync runs."""
    from .database import async_session_factory
    from .services.sync_log_svc import latest_sync_logs

    async def _logs():
        async with async_session_factory() as db:
            return await latest_sync_logs(db, limit=limit)

    logs = asyncio.run(_logs())
    table = Table(title=f"Recent syncs ({len(logs)})")
    table.add_column("Started", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Status")
    table.add_column("Processed", justify="right")
    table.add_column("Inserted", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("Error", max_width=40)
    for log in logs:
        style = {"success": "green", "error": "red"}.get(log.status, "yellow")
        table.add_row(
            log.created_at.strftime("%Y-%m-%d %H:%M:%S") if log.created_at else "-",
            log.sync_type,
            f"[{style}]{log.status}[/{style}]",
            str(log.records_processed),
            str(log.records_inserted),
            str(log.records_updated),
            log.error_message or "",
        )
    console.print(table)


# ── providers ─────────────────────────────────────────────────────────────

@providers_app.command("add")
def providers_add(
    name: str = typer.Argument(..., help="Display name"),
    base_url: str = typer.Argument(..., help="n8n base URL, e.g. https://n8n.example.com"),
    api_key: str = typer.Option(..., "--api-key", prompt=True, hide_input=True, help="n8n API key"),
    test: bool = typer.Option(True, "--test/--no-test", help="Test the connection after saving"),
):
    """Register an n8n instance."""
    from .database import async_session_factory, init_db
    from .services.provider_svc import create_provider, test_provider_connection

    async def _add():
        await init_db()
        async with async_session_factory() as db:
            provider = await create_provider(db, name, base_url, api_key)
            outcome = await test_provider_connection(db, provider) if test else (True, None)
            return provider, outcome

    provider, (ok, error) = asyncio.run(_add())
    console.print(f"[green]Provider saved:[/green] {provider.name} ({provider.id})")
    if not ok:
        console.print(f"[yellow]Connection test failed: {error}[/yellow]")


@providers_app.command("list")
def providers_list():
    """List configured n8n instances."""
    from .database import async_session_factory
    from .services.provider_svc import list_providers

    async def _list():
        async with async_session_factory() as db:
            return await list_providers(db)

    providers = asyncio.run(_list())
    table = Table(title=f"Providers ({len(providers)})")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("URL")
    table.add_column("Status")
    table.add_column("Last checked", style="dim")
    for p in providers:
        style = {"healthy": "green", "error": "red"}.get(p.status, "yellow")
        table.add_row(
            str(p.id),
            p.name,
            p.base_url,
            f"[{style}]{p.status}[/{style}]",
            p.last_checked_at.strftime("%Y-%m-%d %H:%M") if p.last_checked_at else "-",
        )
    console.print(table)


@providers_app.command("test")
def providers_test(
    provider_id: str = typer.Argument(None, help="Provider ID (default: all)"),
):
    """Test connectivity and record provider health."""
    from .database import async_session_factory
    from .services.provider_svc import get_provider, list_providers, test_provider_connection

    async def _test():
        async with async_session_factory() as db:
            if provider_id:
                provider = await get_provider(db, _parse_uuid(provider_id, "provider ID"))
                providers = [provider] if provider else []
            else:
                providers = await list_providers(db)
            outcomes = []
            for provider in providers:
                ok, error = await test_provider_connection(db, provider)
                outcomes.append((provider.name, ok, error))
            return outcomes

    outcomes = asyncio.run(_test())
    if not outcomes:
        console.print("[yellow]No providers found[/yellow]")
        raise typer.Exit(1)
    for name, ok, error in outcomes:
        if ok:
            console.print(f"[green]✓[/green] {name}")
        else:
            console.print(f"[red]✗[/red] {name}: {error}")


# ── workflows ─────────────────────────────────────────────────────────────

@workflows_app.command("archive")
def workflows_archive(
    workflow_id: str = typer.Argument(..., help="Local workflow ID"),
    reason: str = typer.Option("Manually archived by user", "--reason", "-r"),
):
    """Archive a workflow locally."""
    from .database import async_session_factory
    from .services.workflow_svc import archive_workflow

    wf_id = _parse_uuid(workflow_id, "workflow ID")

    async def _archive():
        async with async_session_factory() as db:
            return await archive_workflow(db, wf_id, reason)

    workflow = asyncio.run(_archive())
    if not workflow:
        console.print("[red]Workflow not found[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Archived:[/green] {workflow.name}")


@workflows_app.command("dedupe")
def workflows_dedupe():
    """Remove duplicate workflow rows, keeping the most recently updated."""
    from .database import async_session_factory
    from .services.workflow_svc import remove_duplicate_workflows

    async def _dedupe():
        async with async_session_factory() as db:
            return await remove_duplicate_workflows(db)

    result = asyncio.run(_dedupe())
    console.print(
        f"Found {result['duplicates_found']} duplicates, "
        f"removed [green]{result['duplicates_removed']}[/green]"
    )


# ── executions ────────────────────────────────────────────────────────────

@executions_app.command("backfill-ai")
def executions_backfill_ai(
    provider_id: str = typer.Option(None, "--provider", "-p", help="Provider ID (default: all)"),
    limit: int = typer.Option(None, "--limit", "-n", help="Max executions per provider"),
):
    """Fetch execution data and fill in missing AI token metrics."""
    from .database import async_session_factory
    from .n8n.client import create_n8n_client
    from .services.provider_svc import get_provider, get_provider_api_key, list_providers
    from .sync.execution_sync import backfill_ai_metrics

    async def _backfill():
        results = []
        async with async_session_factory() as db:
            if provider_id:
                provider = await get_provider(db, _parse_uuid(provider_id, "provider ID"))
                providers = [provider] if provider else []
            else:
                providers = await list_providers(db)
            for provider in providers:
                await db.refresh(provider)
                async with create_n8n_client(provider.base_url, get_provider_api_key(provider)) as client:
                    name = provider.name
                    results.append((name, await backfill_ai_metrics(db, provider, client, limit)))
        return results

    for name, result in asyncio.run(_backfill()):
        console.print(
            Panel(
                f"Checked: {result.processed}\n"
                f"Updated: [green]{result.updated}[/green]\n"
                f"No AI usage: {result.skipped}\n"
                f"Errors: [red]{len(result.errors)}[/red]",
                title=name,
                expand=False,
            )
        )


# ── db ────────────────────────────────────────────────────────────────────

@db_app.command("init")
def db_init():
    """Create tables and apply column migrations."""
    from .database import init_db

    asyncio.run(init_db())
    console.print(f"[green]Database ready:[/green] {settings.database_url}")


# ── scheduler ─────────────────────────────────────────────────────────────

@scheduler_app.command("run")
def scheduler_run(
    job: str = typer.Option(None, "--job", help="executions, workflows or backups (default: all)"),
):
    """Run the sync schedulers in the foreground until interrupted."""
    from .database import init_db
    from .scheduler import schedulers

    if job and job not in schedulers:
        console.print(f"[red]Unknown job: {job}[/red]")
        raise typer.Exit(1)
    selected = [schedulers[job]] if job else list(schedulers.values())

    async def _run():
        await init_db()
        for scheduler in selected:
            scheduler.start()
        try:
            await asyncio.Event().wait()
        finally:
            for scheduler in selected:
                await scheduler.stop()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Scheduler stopped[/yellow]")


if __name__ == "__main__":
    app()
