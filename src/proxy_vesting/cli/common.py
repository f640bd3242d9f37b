"""
Shared helpers for proxy-vesting CLI commands.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, NoReturn

import click
from rich.console import Console

from proxy_vesting.chain.client import ChainClient
from proxy_vesting.config_manager import ConfigManager
from proxy_vesting.core.exceptions import get_error_context, is_recoverable_error

logger = logging.getLogger(__name__)

# Rich console for human-readable output
console = Console()
# Spinners go to stderr; stdout carries only command output
status_console = Console(stderr=True)


def handle_cli_error(exc: Exception, exit_code: int = 1) -> NoReturn:
    """Centralized CLI error handler for consistent messaging/exit codes."""
    logger.error("CLI error: %s", exc, exc_info=True, extra={"event": "cli.error", **get_error_context(exc)})
    console.print(f"[bold red]Error:[/] {exc}")
    if is_recoverable_error(exc):
        console.print("[yellow]This looks temporary; retry the command.[/]")
    sys.exit(exit_code)


def get_config(ctx: click.Context) -> ConfigManager:
    return ctx.obj["config"]


def emit_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2))


def open_client(config: ConfigManager) -> ChainClient:
    network = config.network
    with status_console.status(f"[bold cyan]Connecting to {network.rpc_url}..."):
        return ChainClient.connect(
            network.rpc_url,
            ss58_format=network.ss58_format,
            type_registry_preset=network.type_registry_preset,
        )
