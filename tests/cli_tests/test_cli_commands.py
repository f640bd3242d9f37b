import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import yaml
from click.testing import CliRunner

from chain_fakes import FakeReceipt, FakeSubstrate, address, set_account
from proxy_vesting.blockchain.vesting_schedule import AllocationEntry, VestingParams, compute_distribution
from proxy_vesting.chain.client import ChainClient
from proxy_vesting.chain.distribution import DistributionReport
from proxy_vesting.chain.runtime_upgrade import UpgradeResult
from proxy_vesting.cli.common import open_client
from proxy_vesting.cli.main import cli
from proxy_vesting.config_manager import ConfigManager
from proxy_vesting.core.constants import UNIT
from proxy_vesting.core.exceptions import ChainConnectionError, UpgradeTimeoutError

RECIPIENTS = [address(20), address(21)]


def _small_config_dir(tmp_path: Path, amounts=(100, 20), period_count=4) -> Path:
    """Config directory with a short allocation table in whole base units."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    data = {
        "distribution": {
            "unit": 1,
            "multisig": address(9),
            "vesting_templates": {"short": {"start": 100, "period": 10, "period_count": period_count}},
            "allocations": [{"amount": a, "vesting": "short"} for a in amounts],
        },
    }
    (config_dir / "default.yaml").write_text(yaml.safe_dump(data))
    return config_dir


def _invoke(args):
    return CliRunner().invoke(cli, ["--log-level", "CRITICAL", *args], obj={})


def test_plan_outputs_configured_schedules():
    result = _invoke(["--json-output", "plan"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["total"] == 3_375_000_000 * UNIT
    assert len(payload["entries"]) == 17
    assert payload["entries"][0]["amount"] == 450000000
    assert payload["entries"][0]["schedule"] == {
        "start": 13517962,
        "period": 1752,
        "period_count": 6000,
        "per_period": 75_000_000_000_000_000,
    }
    assert all(entry["remainder"] == 0 for entry in payload["entries"])


def test_plan_table_output():
    result = _invoke(["plan"])

    assert result.exit_code == 0, result.output
    assert "Vesting Distribution" in result.stdout


def test_plan_fails_on_uneven_allocation(tmp_path):
    config_dir = _small_config_dir(tmp_path, amounts=(7,), period_count=3)

    result = _invoke(["--config-dir", str(config_dir), "plan"])

    assert result.exit_code == 1
    assert "remainder is not zero" in result.stdout


def test_invalid_config_exits_with_error(tmp_path):
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "default.yaml").write_text(yaml.safe_dump({"network": {"rpc_url": "http://node"}}))

    result = _invoke(["--config-dir", str(config_dir), "plan"])

    assert result.exit_code == 1


def test_distribute_can_be_aborted(tmp_path):
    config_dir = _small_config_dir(tmp_path)

    with patch("proxy_vesting.cli.distribution_commands.open_client") as open_client:
        result = CliRunner().invoke(
            cli, ["--log-level", "CRITICAL", "--config-dir", str(config_dir), "distribute"], input="n\n", obj={}
        )

    assert result.exit_code == 0, result.output
    assert "Aborted" in result.stdout
    open_client.assert_not_called()


def test_distribute_reports_recipients(tmp_path):
    config_dir = _small_config_dir(tmp_path)
    fake_client = ChainClient(FakeSubstrate())
    results = compute_distribution([AllocationEntry(a, VestingParams(100, 10, 4)) for a in (100, 20)], 1)
    report = DistributionReport(recipients=RECIPIENTS, results=results, total=120, next_proxy_index=2002)

    with patch("proxy_vesting.cli.distribution_commands.open_client", return_value=fake_client), \
            patch("proxy_vesting.cli.distribution_commands.DistributionRunner") as runner_class:
        runner_class.return_value.run.return_value = report
        result = _invoke(["--config-dir", str(config_dir), "--json-output", "distribute", "--yes"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["total"] == 120
    assert payload["next_proxy_index"] == 2002
    assert payload["recipients"] == RECIPIENTS
    assert [s["per_period"] for s in payload["schedules"]] == [25, 5]
    assert runner_class.call_args.args[2].multisig == address(9)
    assert fake_client.substrate.closed


@pytest.fixture
def drifted_substrate():
    substrate = FakeSubstrate()
    schedule = {"start": 100, "period": 10, "period_count": 4}
    set_account(substrate, RECIPIENTS[0], free=100, schedules=[{**schedule, "per_period": 25}])
    set_account(substrate, RECIPIENTS[1], free=30, schedules=[{**schedule, "per_period": 5}])
    return substrate


def test_reconcile_lists_clawback(tmp_path, drifted_substrate):
    config_dir = _small_config_dir(tmp_path)
    recipients_file = tmp_path / "proxies.yaml"
    recipients_file.write_text(yaml.safe_dump({"recipients": RECIPIENTS}))

    with patch(
        "proxy_vesting.cli.reconcile_commands.open_client",
        return_value=ChainClient(drifted_substrate),
    ):
        result = _invoke([
            "--config-dir", str(config_dir), "--json-output",
            "reconcile", "--recipients-file", str(recipients_file), "--treasury", address(1),
        ])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["applied"] is False
    assert payload["actions"] == [
        {"kind": "clawback_transfer", "recipient": RECIPIENTS[1], "payload": {"dest": address(1), "amount": 10}},
    ]
    assert drifted_substrate.submitted == []


def test_reconcile_apply_submits_batch(tmp_path, drifted_substrate):
    config_dir = _small_config_dir(tmp_path)
    drifted_substrate.receipts.append(FakeReceipt())

    with patch(
        "proxy_vesting.cli.reconcile_commands.open_client",
        return_value=ChainClient(drifted_substrate),
    ):
        result = _invoke([
            "--config-dir", str(config_dir), "--json-output", "reconcile",
            "--recipient", RECIPIENTS[0], "--recipient", RECIPIENTS[1], "--apply",
        ])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["applied"] is True
    assert payload["block_hash"] == "0xblock"
    assert len(drifted_substrate.submitted) == 1


def test_reconcile_requires_recipients(tmp_path):
    result = _invoke(["--config-dir", str(_small_config_dir(tmp_path)), "reconcile"])

    assert result.exit_code != 0
    assert "--recipient" in result.output


def test_reconcile_rejects_wrong_recipient_count(tmp_path, drifted_substrate):
    with patch(
        "proxy_vesting.cli.reconcile_commands.open_client",
        return_value=ChainClient(drifted_substrate),
    ):
        result = _invoke([
            "--config-dir", str(_small_config_dir(tmp_path)), "reconcile", "--recipient", RECIPIENTS[0],
        ])

    assert result.exit_code == 1


@pytest.fixture
def wasm(tmp_path):
    path = tmp_path / "runtime.wasm"
    path.write_bytes(b"\x00asm")
    return path


def _upgrade(wasm, upgrader):
    client = MagicMock()
    client.__enter__.return_value = client
    with patch("proxy_vesting.cli.upgrade_commands.open_client", return_value=client), \
            patch("proxy_vesting.cli.upgrade_commands.RuntimeUpgrader", return_value=upgrader) as upgrader_class:
        result = _invoke(["--json-output", "upgrade-runtime", str(wasm), "--timeout", "30"])
    return result, upgrader_class


def test_upgrade_runtime_reports_versions(wasm):
    upgrader = MagicMock()
    upgrader.run.return_value = UpgradeResult(old_spec_version=100, new_spec_version=101)

    result, upgrader_class = _upgrade(wasm, upgrader)

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == {"old_spec_version": 100, "new_spec_version": 101}
    assert upgrader_class.call_args.args[2].timeout_seconds == 30


def test_upgrade_runtime_timeout_exits_2(wasm):
    upgrader = MagicMock()
    upgrader.run.side_effect = UpgradeTimeoutError("upgrade was not performed within 0.5 minutes")

    result, _ = _upgrade(wasm, upgrader)

    assert result.exit_code == 2
    assert "not performed" in result.stdout


def test_unreachable_node_suggests_retry(tmp_path):
    with patch(
        "proxy_vesting.cli.common.ChainClient.connect",
        side_effect=ChainConnectionError("Could not connect to ws://127.0.0.1:9988"),
    ):
        result = _invoke([
            "--config-dir", str(_small_config_dir(tmp_path)), "reconcile", "--recipient", RECIPIENTS[0],
        ])

    assert result.exit_code == 1
    assert "Could not connect" in result.stdout
    assert "retry the command" in result.stdout


def test_invalid_input_has_no_retry_hint(tmp_path, drifted_substrate):
    with patch(
        "proxy_vesting.cli.reconcile_commands.open_client",
        return_value=ChainClient(drifted_substrate),
    ):
        result = _invoke([
            "--config-dir", str(_small_config_dir(tmp_path)), "reconcile", "--recipient", RECIPIENTS[0],
        ])

    assert result.exit_code == 1
    assert "retry" not in result.stdout


def test_connection_status_stays_off_stdout(capsys):
    config = ConfigManager(environment="development")
    client = ChainClient(FakeSubstrate())

    with patch("proxy_vesting.cli.common.ChainClient.connect", return_value=client):
        assert open_client(config) is client

    assert capsys.readouterr().out == ""
