"""Command line interface for running the Sensei pipeline."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Optional

import httpx
import typer
from web3.exceptions import Web3Exception

from sensei import Pipeline, get_bridge, get_exchange, get_store, load_config
from sensei.chain import BASE, get_chain_client
from sensei.config import SenseiConfig
from sensei.contracts import WorkflowStatus
from sensei.errors import SenseiError
from sensei.persistence import HttpStatusStore, StatusStore
from sensei.pipeline import summarize
from sensei.server import serve as serve_status

app = typer.Typer(help="CLI for the Sensei transfer pipeline")

# Command groups
status_app = typer.Typer(help="Commands for inspecting and editing the workflow status")

app.add_typer(status_app, name="status")


def _configure_logging() -> None:
    logging.basicConfig(
        level=os.getenv("SENSEI_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.callback()
def main() -> None:
    """Sensei CLI entry point."""
    pass


async def _run_pipeline(
    config: SenseiConfig, store: StatusStore, amount: Optional[float]
):
    if amount is not None:
        await store.merge_status(WorkflowStatus.reset(amount))

    exchange = get_exchange(config=config)
    bridge = get_bridge(config)
    pipeline = Pipeline(
        store,
        exchange,
        bridge,
        get_chain_client(BASE, config),
        settings=config.pipeline,
        recipient=config.chains.recipient,
    )
    try:
        return await pipeline.run()
    finally:
        await exchange.aclose()
        await bridge.aclose()


@app.command("run")
def run(
    amount: Optional[float] = typer.Option(
        None, help="Deposit amount to submit before starting"
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", help="Path to a YAML config file"
    ),
) -> None:
    """
    Run the transfer pipeline once, from deposit detection to delivery.

    Waits until a positive deposit amount is in the status record (or submits
    ``--amount``), then swaps, withdraws, bridges and forwards the funds,
    updating the status record after each stage.

    Example:
        sensei run
        sensei run --amount 1000 --config ./config.yaml
    """
    _configure_logging()
    config = load_config(str(config_path) if config_path else None)
    try:
        config.require_credentials()
    except SenseiError as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    if amount is not None and amount <= 0:
        typer.secho("Amount must be positive", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    store = get_store(config=config) if config_path else get_store()
    typer.echo("--- Welcome to Sensei ---")
    try:
        status = asyncio.run(_run_pipeline(config, store, amount))
    except (SenseiError, httpx.HTTPError, Web3Exception) as e:
        typer.secho(f"Pipeline failed: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"Transfer complete: {status.to_document()}")


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, help="Interface to bind"),
    port: Optional[int] = typer.Option(None, help="Port to listen on (default 3030)"),
) -> None:
    """Serve the status record over HTTP for the status page and remote pipelines."""
    _configure_logging()
    config = load_config()
    store = get_store()
    if isinstance(store, HttpStatusStore):
        typer.secho(
            "The status server needs a local store (memory, file or sqlite)",
            fg=typer.colors.RED,
        )
        raise typer.Exit(code=1)
    serve_status(
        store,
        host or config.status.host,
        port or config.status.port,
        config.status.cors_origins,
    )


@status_app.command("show")
def status_show() -> None:
    """Show the current status record and the stage it implies."""
    store = get_store()
    status = asyncio.run(store.get_status())
    for key, value in summarize(status).items():
        typer.echo(f"{key}\t{value}")


@status_app.command("set-amount")
def status_set_amount(amount: float) -> None:
    """Submit the deposit amount that starts a waiting pipeline."""
    if amount <= 0:
        typer.secho("Amount must be positive", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    store = get_store()
    status = asyncio.run(store.merge_status({"gbp": amount}))
    typer.echo(f"Amount set: {status.gbp}")


@status_app.command("set-address")
def status_set_address(address: str) -> None:
    """Set the final recipient address for the current transfer."""
    store = get_store()
    status = asyncio.run(store.merge_status({"address": address}))
    typer.echo(f"Recipient set: {status.address}")


@status_app.command("reset")
def status_reset() -> None:
    """Clear the status record so the pipeline waits for a new deposit."""
    store = get_store()
    asyncio.run(store.reset())
    typer.echo("Status reset")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
