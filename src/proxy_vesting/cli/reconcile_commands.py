"""
Reconcile command: compare provisioned proxies against the allocation table.
"""

from __future__ import annotations

from pathlib import Path

import click
import yaml
from rich import box
from rich.panel import Panel
from rich.table import Table

from proxy_vesting.blockchain.reconciliation import ReconciliationPlan
from proxy_vesting.chain.reconciliation_runner import ReconciliationRunner
from proxy_vesting.cli.common import console, emit_json, get_config, handle_cli_error, open_client
from proxy_vesting.core.exceptions import InvalidInputError, ProxyVestingError


def load_recipients(path: str | Path) -> list[str]:
    """
    Read recipient addresses, in allocation order, from a YAML or JSON file.

    Accepts either a bare list or a mapping with a ``recipients`` list.
    """
    with open(path, "r") as f:
        data = yaml.safe_load(f)
    if isinstance(data, dict):
        data = data.get("recipients")
    if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
        raise InvalidInputError(f"{path} must contain a list of recipient addresses")
    return data


def _plan_table(plan: ReconciliationPlan) -> Table:
    table = Table(box=box.ROUNDED)
    table.add_column("Kind", style="magenta")
    table.add_column("Recipient", style="cyan")
    table.add_column("Payload")
    for record in plan.records():
        payload = record["payload"]
        if "amount" in payload:
            detail = f"{payload['amount']} -> {payload['dest']}"
        else:
            detail = ", ".join(
                f"{s['per_period']} x {s['period_count']} every {s['period']} from #{s['start']}"
                for s in payload["vesting_schedules"]
            )
        table.add_row(record["kind"], record["recipient"], detail)
    return table


@click.command("reconcile")
@click.option("--recipient", "recipients", multiple=True, help="Proxy address, repeated in allocation order")
@click.option(
    "--recipients-file",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML/JSON list of proxy addresses in allocation order",
)
@click.option("--treasury", help="Claw-back destination (defaults to the treasury pallet account)")
@click.option("--apply", "apply_actions", is_flag=True, help="Submit the corrective actions via sudo")
@click.pass_context
def reconcile_command(
    ctx: click.Context,
    recipients: tuple[str, ...],
    recipients_file: str | None,
    treasury: str | None,
    apply_actions: bool,
):
    """
    Compare on-chain vesting schedules and balances with the allocation table.

    Lists schedule replacements and claw-backs of excess balance. With
    --apply the actions are submitted as a single sudo batch.

    Example:
        proxy-vesting reconcile --recipients-file proxies.yaml
        proxy-vesting reconcile --recipients-file proxies.yaml --apply
    """
    config = get_config(ctx)
    try:
        addresses = list(recipients)
        if recipients_file:
            addresses += load_recipients(recipients_file)
        if not addresses:
            raise click.UsageError("Provide --recipient or --recipients-file")

        with open_client(config) as client:
            runner = ReconciliationRunner(client, config.distribution, treasury=treasury)
            plan = runner.plan(addresses)
            receipt = None
            if apply_actions:
                keypair = client.keypair_from_uri(config.account_secret())
                receipt = runner.apply(plan, keypair)
    except ProxyVestingError as exc:
        handle_cli_error(exc)

    if ctx.obj.get("json_output"):
        emit_json({
            "treasury": runner.treasury,
            "actions": plan.records(),
            "applied": receipt is not None,
            "block_hash": receipt.block_hash if receipt is not None else None,
        })
        return

    if plan.is_empty:
        console.print("[bold green]On-chain state matches the allocation table.[/]")
        return

    console.print(Panel(_plan_table(plan), title="[bold yellow]Reconciliation actions", border_style="yellow"))
    if receipt is not None:
        console.print(f"[bold green]Applied[/] in block {receipt.block_hash}")
    else:
        console.print("[dim]Dry run; pass --apply to submit.[/]")
