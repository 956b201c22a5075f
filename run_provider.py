#!/usr/bin/env python3
"""
run_provider.py - CLI entrypoint for one-off provider calls.

Usage:
    python run_provider.py call net_version
    python run_provider.py call eth_getBalance '["0xabc...", "latest"]'
    python run_provider.py --rpc-url http://127.0.0.1:8545 call eth_blockNumber
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import click

from core.exceptions import ProviderError
from core.logging import get_logger, set_global_context, setup_logging
from provider.config import ProviderConfig, load_provider_config
from provider.ethereum import create_provider
from transports.http import HttpTransport

logger = get_logger("provider.cli")


async def run_call(config: ProviderConfig, method: str, params: list[Any]) -> Any:
    """Connect over HTTP, send one call, close."""
    transport = HttpTransport(config.rpc_url, timeout_seconds=config.timeout_seconds)
    provider = create_provider(transport, config=config)
    try:
        return await provider.send(method, params)
    finally:
        await provider.aclose()


@click.group()
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to provider.yaml (default: config/provider.yaml)",
)
@click.option("--rpc-url", default=None, help="Override the node URL")
@click.option(
    "--log-level",
    "-l",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Log level",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=None,
    help="Use JSON log format",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path | None,
    rpc_url: str | None,
    log_level: str | None,
    json_logs: bool | None,
) -> None:
    """Ethereum provider CLI."""
    config = load_provider_config(config_path)
    if rpc_url:
        config.rpc_url = rpc_url
    if log_level:
        config.log_level = log_level
    if json_logs is not None:
        config.json_logs = json_logs

    setup_logging(level=config.log_level, json_output=config.json_logs)
    set_global_context(service="provider-cli", version="0.1.0")
    ctx.obj = config


@cli.command()
@click.argument("method")
@click.argument("params_json", default="[]")
@click.pass_obj
def call(config: ProviderConfig, method: str, params_json: str) -> None:
    """Send METHOD with PARAMS_JSON (a JSON array) and print the result."""
    try:
        params = json.loads(params_json)
    except ValueError as e:
        raise click.BadParameter(f"PARAMS_JSON is not valid JSON: {e}")

    try:
        result = asyncio.run(run_call(config, method, params))
    except ProviderError as e:
        logger.error(
            f"Call failed: {e}",
            extra={"context": {"method": method, **e.to_dict()}},
        )
        click.echo(json.dumps({"error": e.to_dict()}), err=True)
        sys.exit(1)

    click.echo(json.dumps(result, indent=2))


if __name__ == "__main__":
    cli()
