"""
Distribution commands: preview the vesting plan and run the distribution.
"""

from __future__ import annotations

import click
from rich import box
from rich.panel import Panel
from rich.table import Table

from proxy_vesting.blockchain.vesting_schedule import ScheduleResult
from proxy_vesting.chain.distribution import DistributionRunner, plan_distribution
from proxy_vesting.cli.common import console, emit_json, get_config, handle_cli_error, open_client
from proxy_vesting.core.exceptions import ProxyVestingError


def _entry_record(index: int, amount: int, result: ScheduleResult) -> dict:
    return {
        "index": index,
        "amount": amount,
        "total_base_units": result.total_base_units,
        "remainder": result.remainder,
        "schedule": result.schedule.to_chain(),
    }


def _schedule_table(amounts: list[int], results: list[ScheduleResult], recipients: list[str] | None = None) -> Table:
    table = Table(box=box.ROUNDED)
    table.add_column("#", justify="right", style="dim")
    if recipients:
        table.add_column("Recipient", style="cyan")
    table.add_column("Amount", justify="right", style="green")
    table.add_column("Start", justify="right")
    table.add_column("Period", justify="right")
    table.add_column("Periods", justify="right")
    table.add_column("Per period", justify="right", style="yellow")
    table.add_column("Remainder", justify="right")

    for index, (amount, result) in enumerate(zip(amounts, results)):
        schedule = result.schedule
        row = [str(index)]
        if recipients:
            row.append(recipients[index])
        row += [
            f"{amount:,}",
            str(schedule.start),
            str(schedule.period),
            str(schedule.period_count),
            str(schedule.per_period),
            str(result.remainder),
        ]
        table.add_row(*row)
    return table


@click.command("plan")
@click.pass_context
def plan(ctx: click.Context):
    """
    Compute and verify the vesting schedules without touching the chain.

    Fails when any allocation does not divide evenly into its periods.

    Example:
        proxy-vesting plan
        proxy-vesting --json-output plan
    """
    config = get_config(ctx)
    try:
        amounts = [entry.amount for entry in config.distribution.allocation_entries()]
        result = plan_distribution(config.distribution)
    except ProxyVestingError as exc:
        handle_cli_error(exc)

    if ctx.obj.get("json_output"):
        emit_json({
            "total": result.total,
            "entries": [_entry_record(i, a, r) for i, (a, r) in enumerate(zip(amounts, result.results))],
        })
        return

    console.print(
        Panel(
            _schedule_table(amounts, result.results),
            title="[bold green]Vesting Distribution",
            subtitle=f"total {result.total} base units",
            border_style="green",
        )
    )


@click.command("distribute")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt")
@click.pass_context
def distribute(ctx: click.Context, yes: bool):
    """
    Create vesting proxies for every allocation and vest the funds into them.

    Submits four batches: create anonymous proxies, fund them, hand them to
    the multisig, and issue the vested transfers from the treasury.
    """
    config = get_config(ctx)
    settings = config.distribution
    try:
        preview = plan_distribution(settings)
    except ProxyVestingError as exc:
        handle_cli_error(exc)

    if not yes and not click.confirm(
        f"Distribute {preview.total} base units into {len(preview.results)} proxies via {config.network.rpc_url}?"
    ):
        console.print("[yellow]Aborted[/]")
        return

    try:
        with open_client(config) as client:
            keypair = client.keypair_from_uri(config.account_secret())
            report = DistributionRunner(client, keypair, settings).run()
    except ProxyVestingError as exc:
        handle_cli_error(exc)

    if ctx.obj.get("json_output"):
        emit_json({
            "total": report.total,
            "next_proxy_index": report.next_proxy_index,
            "recipients": report.recipients,
            "schedules": [r.schedule.to_chain() for r in report.results],
        })
        return

    amounts = [r.total_base_units // settings.unit for r in report.results]
    console.print(
        Panel(
            _schedule_table(amounts, report.results, report.recipients),
            title="[bold green]Funds distributed",
            subtitle=f"next proxy index {report.next_proxy_index}",
            border_style="green",
        )
    )
