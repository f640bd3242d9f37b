#!/usr/bin/env python3
"""
Main CLI entry point for proxy-vesting.

    proxy-vesting plan
    proxy-vesting distribute
    proxy-vesting reconcile --recipients-file proxies.yaml
    proxy-vesting upgrade-runtime runtime.compact.compressed.wasm
"""

from __future__ import annotations

import logging
import sys

import click

from proxy_vesting.cli.common import console, handle_cli_error
from proxy_vesting.cli.distribution_commands import distribute, plan
from proxy_vesting.cli.reconcile_commands import reconcile_command
from proxy_vesting.cli.upgrade_commands import upgrade_runtime
from proxy_vesting.config_manager import ConfigManager
from proxy_vesting.core.exceptions import ConfigurationError
from proxy_vesting.core.logging_config import setup_logging

logger = logging.getLogger(__name__)


@click.group()
@click.option(
    "--environment",
    type=click.Choice(["development", "testnet", "production"]),
    help="Configuration environment (defaults to PROXY_VESTING_ENVIRONMENT or development)",
)
@click.option("--config-dir", type=click.Path(file_okay=False), help="Directory holding <environment>.yaml files")
@click.option("--rpc-url", help="Websocket RPC endpoint of the node")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False))
@click.option("--json-output", is_flag=True, help="Output raw JSON")
@click.pass_context
def cli(
    ctx: click.Context,
    environment: str | None,
    config_dir: str | None,
    rpc_url: str | None,
    log_level: str | None,
    json_output: bool,
):
    """Vesting distribution and runtime upgrade tooling for the parachain."""
    ctx.ensure_object(dict)
    try:
        config = ConfigManager(
            environment=environment,
            config_dir=config_dir,
            cli_overrides={"network.rpc_url": rpc_url, "logging.level": log_level},
        )
    except ConfigurationError as exc:
        handle_cli_error(exc)

    setup_logging(
        name="proxy_vesting",
        log_file=config.logging.log_file,
        level=config.logging.level,
        environment=config.environment.value,
        json_format=config.logging.json,
    )
    logger.debug("Loaded %r", config)

    ctx.obj["config"] = config
    ctx.obj["json_output"] = json_output


cli.add_command(plan)
cli.add_command(distribute)
cli.add_command(reconcile_command)
cli.add_command(upgrade_runtime)


def main():
    """Main CLI entry point"""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/]")
        sys.exit(130)


if __name__ == "__main__":
    main()
