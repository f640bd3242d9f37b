"""
Runtime upgrade command.
"""

from __future__ import annotations

from dataclasses import replace

import click

from proxy_vesting.chain.runtime_upgrade import RuntimeUpgrader
from proxy_vesting.cli.common import console, emit_json, get_config, handle_cli_error, open_client
from proxy_vesting.core.exceptions import ProxyVestingError, UpgradeTimeoutError


@click.command("upgrade-runtime")
@click.argument("wasm_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--timeout", type=int, help="Seconds to wait for the new runtime (default from config)")
@click.pass_context
def upgrade_runtime(ctx: click.Context, wasm_path: str, timeout: int | None):
    """
    Submit a runtime upgrade through sudo and wait until it is applied.

    Exits with status 2 if the spec version has not increased before the
    timeout.

    Example:
        proxy-vesting upgrade-runtime target/release/wbuild/runtime.compact.compressed.wasm
    """
    config = get_config(ctx)
    settings = config.upgrade
    if timeout is not None:
        settings = replace(settings, timeout_seconds=timeout)
    try:
        with open_client(config) as client:
            keypair = client.keypair_from_uri(config.account_secret())
            result = RuntimeUpgrader(client, keypair, settings).run(wasm_path)
    except UpgradeTimeoutError as exc:
        handle_cli_error(exc, exit_code=2)
    except ProxyVestingError as exc:
        handle_cli_error(exc)

    if ctx.obj.get("json_output"):
        emit_json({"old_spec_version": result.old_spec_version, "new_spec_version": result.new_spec_version})
        return
    console.print(
        f"[bold green]parachain was successfully upgraded[/] "
        f"{result.old_spec_version} -> {result.new_spec_version}"
    )
