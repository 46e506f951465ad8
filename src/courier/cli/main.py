"""Courier CLI: run the bridge, inspect it, and try the agent by hand."""

from __future__ import annotations

import asyncio
import json
import signal

import httpx
import typer
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

app = typer.Typer(
    name="courier",
    help="Courier: chat bridge for a hosted onchain agent",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()

DEFAULT_URL = "http://localhost:8000"


async def _run_foreground() -> None:
    from courier.config import CourierConfig
    from courier.logging import setup_logging
    from courier.runtime import create_context

    config = CourierConfig.load()
    setup_logging(level=config.log_level, fmt=config.log_format)
    context = await create_context(config)

    loop = asyncio.get_running_loop()
    pending: set[asyncio.Task[None]] = set()

    def _request_stop() -> None:
        task = loop.create_task(context.supervisor.stop())
        pending.add(task)
        task.add_done_callback(pending.discard)

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _request_stop)

    try:
        await context.supervisor.run()
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        await context.aclose()


@app.command()
def run() -> None:
    """Stream messages in the foreground until stopped (no health server)."""
    from courier.errors import ConfigError, StreamFailed

    console.print(Panel("📨 Starting Courier stream...", border_style="blue"))
    try:
        asyncio.run(_run_foreground())
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(2)
    except StreamFailed as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Defaults to COURIER_HOST"),
    port: int | None = typer.Option(None, "--port", help="Defaults to COURIER_PORT"),
) -> None:
    """Start the bridge together with the health server."""
    import uvicorn

    from courier.config import CourierConfig

    config = CourierConfig.load()
    host = host or config.host
    port = port or config.port
    console.print(Panel("📨 Starting Courier server...", border_style="blue"))
    uvicorn.run("courier.main:app", host=host, port=port)


@app.command()
def status(
    base_url: str = typer.Option(DEFAULT_URL, "--url", "-u", envvar="COURIER_URL"),
) -> None:
    """Check a running Courier's status."""
    try:
        resp = httpx.get(f"{base_url}/health", timeout=10.0)
        resp.raise_for_status()
    except httpx.ConnectError:
        console.print(f"[red]✗[/red] Courier is not running at {base_url}")
        raise typer.Exit(1)
    except httpx.HTTPStatusError as e:
        console.print(f"[red]Error {e.response.status_code}:[/red] {e.response.text}")
        raise typer.Exit(1)

    data = resp.json()
    supervisor = data.get("supervisor", {})

    table = Table(title="📨 Courier Status", show_header=False, border_style="blue")
    table.add_column("Key", style="bold")
    table.add_column("Value")

    color = "green" if data.get("status") == "ok" else "red"
    table.add_row("Status", f"[{color}]{data.get('status', '?')}[/{color}]")
    table.add_row("Version", data.get("version", "?"))
    table.add_row("Uptime", f"{data.get('uptime_seconds', '?')}s")
    table.add_row("Address", data.get("address", "?"))
    table.add_row("Agent", data.get("agent_id", "?"))
    table.add_row("Stream", supervisor.get("state", "?"))
    table.add_row("Retries left", str(supervisor.get("retries_left", "?")))
    table.add_row("Reconnects", str(supervisor.get("backoffs", 0)))
    table.add_row("Events", f"{supervisor.get('events_processed', 0)} ok / {supervisor.get('events_failed', 0)} failed")
    if supervisor.get("last_error"):
        table.add_row("Last error", f"[yellow]{supervisor['last_error']}[/yellow]")

    console.print()
    console.print(table)
    console.print()


async def _ask(message: str, address: str, chain_id: int | None) -> None:
    from courier.agent.client import AgentClient
    from courier.agent.models import AgentRequest
    from courier.agent.tool_calls import extract_fragments
    from courier.config import CourierConfig
    from courier.pipeline import render_template
    from courier.signing.aggregator import aggregate

    config = CourierConfig.load()
    chain = chain_id or config.agent.default_chain_id
    agent = AgentClient(config.agent)
    try:
        response = await agent.send(
            AgentRequest(
                conversation_id=f"cli-{address.lower()}",
                message=message,
                sender_address=address,
                system_message=render_template(
                    config.agent.context_message, chat_kind="DM", chain_id=chain, address=address
                ),
                agent_id=config.agent.agent_id,
                chain_id=chain,
            )
        )
    finally:
        await agent.aclose()

    if response.content.strip():
        console.print(Panel(response.content, title="Agent", border_style="green"))

    extraction = extract_fragments(
        response,
        default_sender=address,
        default_chain_id=chain,
        merge_swaps=config.agent.merge_swaps,
    )
    for failure in extraction.failures:
        console.print(f"[yellow]Skipped {failure.tool_name}:[/yellow] {failure.error}")
    for batch in aggregate(extraction.fragments):
        body = json.dumps(batch.to_wire(), indent=2)
        console.print(Syntax(body, "json", theme="ansi_dark"))


@app.command()
def ask(
    message: str = typer.Argument(..., help="Message to send to the agent"),
    address: str = typer.Option(..., "--address", "-a", help="Wallet address of the asking user"),
    chain_id: int | None = typer.Option(None, "--chain-id", help="Override the default chain"),
) -> None:
    """Send one message to the agent and show the reply and signing batches."""
    from courier.errors import AgentCallFailed

    try:
        asyncio.run(_ask(message, address, chain_id))
    except AgentCallFailed as e:
        console.print(f"[red]Agent error:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show Courier version."""
    from courier import __version__

    console.print(f"📨 Courier v{__version__}")


def main() -> None:
    """Entrypoint."""
    app()


if __name__ == "__main__":
    main()
