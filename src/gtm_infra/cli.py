"""Typer CLI for GTM-Infra."""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from gtm_infra.common.logging import get_logger

app = typer.Typer(name="gtm-infra", help="GTM-Infra: infrastructure provisioning orchestrator")
console = Console()
logger = get_logger("cli")

_STATUS_STYLES = {
    "completed": "green",
    "skipped": "dim",
    "in_progress": "yellow",
    "failed": "red",
    "pending": "white",
}


def _configure_logging() -> None:
    from gtm_infra.common.config import get_settings
    from gtm_infra.common.logging import setup_logging

    setup_logging(get_settings().log_level)


async def _with_db(work):
    from gtm_infra.deps import get_db

    db = get_db()
    await db.init()
    await db.create_all()
    try:
        return await work()
    finally:
        await db.close()


def _render(snapshot) -> Table:
    table = Table(title=f"Provisioning for {snapshot.owner_id}")
    table.add_column("Section")
    table.add_column("#", justify="right")
    table.add_column("Step")
    table.add_column("Status")
    for section in snapshot.sections:
        for step in section.steps:
            style = _STATUS_STYLES.get(step.status, "white")
            status = f"[{style}]{step.status}[/{style}]"
            if step.error:
                status += f" — {step.error}"
            table.add_row(
                f"{section.title} ({section.provision_status})" if step.step_number == 1 else "",
                str(step.step_number),
                step.name,
                status,
            )
    return table


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(8080, help="Bind port"),
):
    """Start the GTM-Infra API server."""
    import uvicorn
    from gtm_infra.app import create_app

    _configure_logging()
    console.print(f"[bold green]Starting GTM-Infra on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command()
def worker(
    once: bool = typer.Option(False, help="Run a single pass and exit"),
    interval: Optional[float] = typer.Option(None, help="Seconds between passes"),
):
    """Run every provision that is waiting in 'provisioning'."""
    from gtm_infra.common.config import get_settings
    from gtm_infra.deps import get_engine

    _configure_logging()
    pause = interval or get_settings().worker_interval_seconds

    async def loop():
        engine = get_engine()
        while True:
            results = await engine.run_pending()
            for result in results:
                colour = "green" if result.status == "active" else "red"
                console.print(
                    f"{result.provision_id} ({result.product_type}): "
                    f"[{colour}]{result.status}[/{colour}]"
                    + (f" at step {result.failed_step}: {result.error}" if result.error else "")
                )
            if once:
                return
            await asyncio.sleep(pause)

    try:
        asyncio.run(_with_db(loop))
    except KeyboardInterrupt:
        console.print("[yellow]Worker stopped[/yellow]")


@app.command()
def run(
    provision_id: str = typer.Argument(..., help="Provision to run"),
):
    """Run one provision's pipeline in the foreground."""
    from gtm_infra.common.exceptions import InfraError
    from gtm_infra.deps import get_engine

    _configure_logging()

    async def work():
        return await get_engine().run(provision_id)

    try:
        result = asyncio.run(_with_db(work))
    except InfraError as e:
        console.print(f"[bold red]{e.code}[/bold red] — {e.message}")
        raise typer.Exit(1)

    if result.status == "failed":
        console.print(f"[bold red]FAILED[/bold red] at step {result.failed_step}: {result.error}")
        raise typer.Exit(1)
    console.print(f"[bold green]{result.status.upper()}[/bold green]")


@app.command()
def watch(
    owner_id: str = typer.Argument(..., help="Owner whose provisioning to follow"),
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
    interval: Optional[float] = typer.Option(None, help="Polling interval in seconds"),
):
    """Follow provisioning progress until nothing is provisioning."""
    from gtm_infra.client import InfraClient
    from gtm_infra.common.config import get_settings
    from gtm_infra.progress.poller import StatusPoller

    settings = get_settings()

    async def follow():
        async with InfraClient(server_url=url) as client:
            poller = StatusPoller(
                lambda: client.progress(owner_id),
                interval=settings.clamp_poll_interval(interval),
                on_update=lambda snapshot: console.print(_render(snapshot)),
                max_errors=settings.poll_max_errors,
            )
            async with poller:
                final = await poller.wait()
            return final, poller.last_error

    try:
        final, error = asyncio.run(follow())
    except KeyboardInterrupt:
        return

    if error:
        console.print(f"[bold red]{error}[/bold red]")
        raise typer.Exit(1)
    if final is not None and final.aggregate.any_failed:
        console.print("[bold red]Provisioning failed[/bold red]")
        raise typer.Exit(1)
    console.print("[bold green]Provisioning finished[/bold green]")


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check GTM-Infra server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] — v{data['version']}")
    except Exception as e:
        logger.debug("Health check failed: %s", e)
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
