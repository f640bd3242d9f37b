"""
Thin wrapper over substrate-interface for the migration workflows.

Keeps call composition, signing, submission and the handful of storage
queries the workflows need in one place so the workflows read as a sequence
of chain steps and tests can substitute a fake ``SubstrateInterface``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from substrateinterface import Keypair, SubstrateInterface
from substrateinterface.exceptions import SubstrateRequestException
from substrateinterface.utils.ss58 import ss58_decode, ss58_encode
from websocket import WebSocketException

from proxy_vesting.blockchain.vesting_schedule import VestingSchedule
from proxy_vesting.core.constants import ACCOUNT_ID_LENGTH, SS58_FORMAT
from proxy_vesting.core.exceptions import ChainConnectionError, ExtrinsicFailedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountBalances:
    free: int
    reserved: int


def event_attributes(events: Iterable[Any], module: str, event: str) -> list[Any]:
    """Attributes of every ``module.event`` record in ``events``."""
    return [
        record.value["attributes"]
        for record in events
        if record.value["module_id"] == module and record.value["event_id"] == event
    ]


class ChainClient:
    """Client for one parachain node over websocket RPC."""

    def __init__(self, substrate: SubstrateInterface, ss58_format: int = SS58_FORMAT):
        self.substrate = substrate
        self.ss58_format = ss58_format

    @classmethod
    def connect(
        cls,
        url: str,
        ss58_format: int = SS58_FORMAT,
        type_registry_preset: Optional[str] = None,
    ) -> "ChainClient":
        """Open a websocket connection to ``url``."""
        logger.debug("Connecting to %s", url)
        try:
            substrate = SubstrateInterface(
                url=url,
                ss58_format=ss58_format,
                type_registry_preset=type_registry_preset,
            )
        except (OSError, WebSocketException, SubstrateRequestException) as exc:
            raise ChainConnectionError(
                f"Could not connect to {url}: {exc}",
                details={"url": url},
            ) from exc
        client = cls(substrate, ss58_format=ss58_format)
        chain, version = client.chain_info()
        logger.info(
            "connected to %s (%s %s)",
            url,
            chain,
            version,
            extra={"event": "chain.connected", "url": url, "chain": chain, "node_version": version},
        )
        return client

    def close(self) -> None:
        self.substrate.close()

    def __enter__(self) -> "ChainClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ==================== Accounts ====================

    def keypair_from_uri(self, secret: str) -> Keypair:
        return Keypair.create_from_uri(secret, ss58_format=self.ss58_format)

    def ss58_encode(self, public_key: bytes | str) -> str:
        return ss58_encode(public_key, ss58_format=self.ss58_format)

    def account_id(self, address: str) -> str:
        """Hex account id of an SS58 address, independent of its prefix."""
        return ss58_decode(address)

    def same_account(self, left: str, right: str) -> bool:
        return self.account_id(left) == self.account_id(right)

    def treasury_address(self, pallet_id: str) -> str:
        """Account of a pallet: its id padded with NUL bytes to an account id."""
        return self.ss58_encode(pallet_id.encode().ljust(ACCOUNT_ID_LENGTH, b"\0"))

    # ==================== Calls ====================

    def compose(self, module: str, function: str, params: Optional[dict[str, Any]] = None):
        return self.substrate.compose_call(
            call_module=module,
            call_function=function,
            call_params=params or {},
        )

    def batch_all(self, calls: list[Any]):
        return self.compose("Utility", "batch_all", {"calls": calls})

    def sudo(self, call):
        return self.compose("Sudo", "sudo", {"call": call})

    def sudo_as(self, who: str, call):
        return self.compose("Sudo", "sudo_as", {"who": who, "call": call})

    def sudo_unchecked_weight(self, call, weight: int):
        return self.compose("Sudo", "sudo_unchecked_weight", {"call": call, "weight": weight})

    def proxy_call(self, real: str, call, force_proxy_type: Optional[str] = None):
        return self.compose("Proxy", "proxy", {"real": real, "force_proxy_type": force_proxy_type, "call": call})

    def submit(self, call, keypair: Keypair, wait_for_finalization: bool = False):
        """
        Sign and submit ``call``, waiting for inclusion (and optionally finalization).

        Returns:
            The extrinsic receipt

        Raises:
            ExtrinsicFailedError: submission was rejected or dispatch failed
        """
        try:
            extrinsic = self.substrate.create_signed_extrinsic(call=call, keypair=keypair)
            receipt = self.substrate.submit_extrinsic(
                extrinsic,
                wait_for_inclusion=True,
                wait_for_finalization=wait_for_finalization,
            )
        except SubstrateRequestException as exc:
            raise ExtrinsicFailedError(f"Failed to submit extrinsic: {exc}") from exc

        if not receipt.is_success:
            raise ExtrinsicFailedError(
                f"Extrinsic failed: {receipt.error_message}",
                extrinsic_hash=receipt.extrinsic_hash,
                details={"block_hash": receipt.block_hash},
            )
        logger.info(
            "tx included in block %s",
            receipt.block_hash,
            extra={"event": "chain.tx_included", "extrinsic_hash": receipt.extrinsic_hash},
        )
        return receipt

    def events_named(self, receipt, module: str, event: str) -> list[Any]:
        return event_attributes(receipt.triggered_events, module, event)

    # ==================== Queries ====================

    def chain_info(self) -> tuple[str, str]:
        return self.substrate.chain, self.substrate.version

    def query_vesting_schedules(self, address: str) -> list[VestingSchedule]:
        result = self.substrate.query("Vesting", "VestingSchedules", [address])
        return [VestingSchedule.from_chain(entry) for entry in (result.value or [])]

    def query_account_balances(self, address: str) -> AccountBalances:
        data = self.substrate.query("System", "Account", [address]).value["data"]
        return AccountBalances(free=int(data["free"]), reserved=int(data["reserved"]))

    def sudo_key(self) -> str:
        return self.substrate.query("Sudo", "Key").value

    def spec_version(self) -> int:
        block_hash = self.substrate.get_chain_head()
        return int(self.substrate.get_block_runtime_version(block_hash)["specVersion"])

    def head_number(self) -> int:
        return int(self.substrate.get_block_number(self.substrate.get_chain_head()))

    def system_events(self, block_number: Optional[int] = None) -> list[Any]:
        """Events of block ``block_number``, or of the chain head."""
        block_hash = None
        if block_number is not None:
            block_hash = self.substrate.get_block_hash(block_number)
        return self.substrate.get_events(block_hash)

    def wait_for_blocks(self, count: int) -> Optional[int]:
        """Block until ``count`` new heads have been seen; returns the last block number."""
        if count <= 0:
            return None
        seen: list[int] = []

        def on_head(obj, update_nr, subscription_id):
            number = obj["header"]["number"]
            logger.info("block #%s", number, extra={"event": "chain.new_head", "block": number})
            seen.append(number)
            if len(seen) >= count:
                return number
            return None

        return self.substrate.subscribe_block_headers(on_head)
