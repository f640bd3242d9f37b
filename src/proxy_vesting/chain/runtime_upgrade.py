"""
Runtime upgrade through sudo, watched until the new runtime is live.

The parachain applies a new validation function only after the relay chain
accepts it, so inclusion of ``set_code`` is not the end of the upgrade. After
submission the watcher waits for ``ParachainSystem.ValidationFunctionApplied``
and then for the reported spec version to move past the one it started with.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from substrateinterface import Keypair

from proxy_vesting.chain.client import ChainClient, event_attributes
from proxy_vesting.config_manager import UpgradeConfig
from proxy_vesting.core.constants import VALIDATION_FUNCTION_APPLIED
from proxy_vesting.core.exceptions import (
    RuntimeUpgradeError,
    SudoKeyMismatchError,
    UpgradeTimeoutError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpgradeResult:
    old_spec_version: int
    new_spec_version: int


def read_wasm(path: str | Path) -> str:
    """Hex encoded (``0x``-prefixed) runtime blob for ``system.set_code``."""
    wasm_path = Path(path)
    try:
        blob = wasm_path.read_bytes()
    except OSError as exc:
        raise RuntimeUpgradeError(f"Could not read runtime wasm {wasm_path}: {exc}") from exc
    if not blob:
        raise RuntimeUpgradeError(f"Runtime wasm {wasm_path} is empty")
    return "0x" + blob.hex()


class RuntimeUpgrader:
    def __init__(
        self,
        client: ChainClient,
        keypair: Keypair,
        settings: UpgradeConfig,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        poll_interval: float = 2.0,
    ):
        self.client = client
        self.keypair = keypair
        self.settings = settings
        self._clock = clock
        self._sleep = sleep
        self.poll_interval = poll_interval
        self._deadline: Optional[float] = None

    def _check_deadline(self, old_spec_version: int, last_spec_version: Optional[int] = None) -> None:
        if self._deadline is not None and self._clock() >= self._deadline:
            minutes = self.settings.timeout_seconds / 60
            raise UpgradeTimeoutError(
                f"upgrade was not performed within {minutes:g} minutes",
                old_spec_version=old_spec_version,
                last_spec_version=last_spec_version,
            )

    def verify_sudo(self) -> None:
        sudo_key = self.client.sudo_key()
        if not self.client.same_account(sudo_key, self.keypair.ss58_address):
            raise SudoKeyMismatchError(
                "imported account doesn't match sudo key",
                details={"sudo_key": sudo_key, "account": self.keypair.ss58_address},
            )

    def _log_watched(self, records) -> None:
        for record in records:
            value = record.value
            if value["module_id"] in self.settings.watched_sections:
                logger.info(
                    "event %s.%s %s",
                    value["module_id"],
                    value["event_id"],
                    value["attributes"],
                    extra={"event": "upgrade.chain_event", "chain_event": f"{value['module_id']}.{value['event_id']}"},
                )

    def submit_upgrade(self, code: str):
        logger.info("submitting runtime upgrade")
        set_code = self.client.compose("System", "set_code", {"code": code})
        call = self.client.sudo_unchecked_weight(set_code, self.settings.unchecked_weight)
        receipt = self.client.submit(call, self.keypair, wait_for_finalization=True)
        self._log_watched(receipt.triggered_events)
        return receipt

    def wait_for_validation_function(self, old_spec_version: int, from_block: int) -> int:
        """Scan blocks after ``from_block`` until the validation function is applied; returns its block."""
        module, event = VALIDATION_FUNCTION_APPLIED
        next_block = from_block
        while True:
            self._check_deadline(old_spec_version)
            head = self.client.head_number()
            while next_block <= head:
                records = self.client.system_events(next_block)
                self._log_watched(records)
                if event_attributes(records, module, event):
                    logger.info("validation function applied in block #%d", next_block)
                    return next_block
                next_block += 1
            self._sleep(self.poll_interval)

    def wait_for_spec_version(self, old_spec_version: int) -> int:
        while True:
            new_spec_version = self.client.spec_version()
            if new_spec_version > old_spec_version:
                return new_spec_version
            logger.info("api still on the older spec (%d)", new_spec_version)
            self._check_deadline(old_spec_version, new_spec_version)
            self._sleep(self.poll_interval)

    def run(self, wasm_path: str | Path) -> UpgradeResult:
        self._deadline = self._clock() + self.settings.timeout_seconds
        code = read_wasm(wasm_path)

        chain, node_version = self.client.chain_info()
        old_spec_version = self.client.spec_version()
        logger.info("connected to %s %s", chain, node_version)
        logger.info("current runtime version %d", old_spec_version)

        self.verify_sudo()

        logger.info("waiting for parachain to start producing blocks")
        self.client.wait_for_blocks(self.settings.wait_blocks)

        start_block = self.client.head_number()
        self.submit_upgrade(code)
        self.wait_for_validation_function(old_spec_version, start_block)
        new_spec_version = self.wait_for_spec_version(old_spec_version)

        logger.info(
            "parachain was successfully upgraded %d -> %d",
            old_spec_version,
            new_spec_version,
            extra={"event": "upgrade.completed", "old_spec": old_spec_version, "new_spec": new_spec_version},
        )
        return UpgradeResult(old_spec_version=old_spec_version, new_spec_version=new_spec_version)
