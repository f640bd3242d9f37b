"""
Distribution of an allocation table into vesting proxy accounts.

Each recipient gets a fresh anonymous proxy account. The workflow:

1. computes and verifies the schedules (nothing is submitted if this fails),
2. creates one anonymous proxy per allocation entry,
3. funds every proxy with a small balance for fees,
4. replaces the active account with the multisig as each proxy's delegate,
5. moves the total into the treasury and issues one vested transfer per proxy
   from the treasury.

Steps 2-5 are each a single ``utility.batch_all`` extrinsic whose events are
checked before the next step starts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from substrateinterface import Keypair

from proxy_vesting.blockchain.proxy_index import ProxyIndexAllocator
from proxy_vesting.blockchain.reconciliation import IntendedState
from proxy_vesting.blockchain.vesting_schedule import (
    ScheduleResult,
    compute_distribution,
    distribution_total,
)
from proxy_vesting.chain.client import ChainClient
from proxy_vesting.config_manager import DistributionConfig
from proxy_vesting.core.exceptions import ConfigurationError, ProvisioningError

logger = logging.getLogger(__name__)


@dataclass
class DistributionPlan:
    results: list[ScheduleResult]
    total: int


@dataclass
class DistributionReport:
    recipients: list[str]
    results: list[ScheduleResult]
    total: int
    next_proxy_index: int

    def intended(self) -> list[IntendedState]:
        return [
            IntendedState.from_result(recipient, result)
            for recipient, result in zip(self.recipients, self.results)
        ]


def plan_distribution(settings: DistributionConfig) -> DistributionPlan:
    """Compute and verify the schedules for the configured allocation table."""
    entries = settings.allocation_entries()
    total = distribution_total(entries, settings.unit)
    logger.info(
        "total to be distributed: %d",
        total,
        extra={"event": "distribution.total", "total": str(total)},
    )
    results = compute_distribution(entries, settings.unit)
    return DistributionPlan(results=results, total=total)


class DistributionRunner:
    """Runs the provisioning and vesting steps against a live chain."""

    def __init__(
        self,
        client: ChainClient,
        keypair: Keypair,
        settings: DistributionConfig,
        allocator: Optional[ProxyIndexAllocator] = None,
    ):
        if not settings.multisig:
            raise ConfigurationError("distribution.multisig must be set before distributing")
        self.client = client
        self.keypair = keypair
        self.settings = settings
        self.allocator = allocator or ProxyIndexAllocator(settings.proxy_index_start)
        self.active_account = client.ss58_encode(keypair.public_key)
        self.treasury = client.treasury_address(settings.treasury_pallet_id)
        logger.info("active account: %s", self.active_account)
        logger.info("treasury account: %s", self.treasury)

    def create_proxies(self, count: int) -> list[str]:
        logger.info("creating anonymous proxies...")
        indices, self.allocator = self.allocator.allocate(count)
        calls = [
            self.client.compose(
                "Proxy",
                "anonymous",
                {"proxy_type": self.settings.proxy_type, "delay": 0, "index": index},
            )
            for index in indices
        ]
        receipt = self.client.submit(self.client.batch_all(calls), self.keypair)
        proxies = [
            attributes["anonymous"]
            for attributes in self.client.events_named(receipt, "Proxy", "AnonymousCreated")
        ]
        if len(proxies) != count:
            raise ProvisioningError(
                "not all proxies created",
                details={"expected": count, "created": len(proxies), "indices": indices},
            )
        logger.info(
            "proxies created: %s",
            ", ".join(proxies),
            extra={"event": "distribution.proxies_created", "count": len(proxies)},
        )
        return proxies

    def fund_proxies(self, proxies: list[str]) -> None:
        logger.info("funding proxies...")
        amount = self.settings.funding_amount * self.settings.unit
        transfers = [
            self.client.compose(
                "Balances",
                "force_transfer",
                {"source": self.active_account, "dest": proxy, "value": amount},
            )
            for proxy in proxies
        ]
        receipt = self.client.submit(self.client.sudo(self.client.batch_all(transfers)), self.keypair)
        funded = self.client.events_named(receipt, "Balances", "Transfer")
        if len(funded) != len(proxies):
            raise ProvisioningError(
                "not all proxies funded",
                details={"expected": len(proxies), "funded": len(funded)},
            )
        logger.info("all proxies funded", extra={"event": "distribution.proxies_funded"})

    def delegate_to_multisig(self, proxies: list[str]) -> None:
        logger.info("changing delegate to multisig...")
        proxy_type = self.settings.proxy_type
        changes = [
            self.client.proxy_call(
                proxy,
                self.client.batch_all([
                    self.client.compose(
                        "Proxy",
                        "remove_proxy",
                        {"delegate": self.active_account, "proxy_type": proxy_type, "delay": 0},
                    ),
                    self.client.compose(
                        "Proxy",
                        "add_proxy",
                        {"delegate": self.settings.multisig, "proxy_type": proxy_type, "delay": 0},
                    ),
                ]),
            )
            for proxy in proxies
        ]
        receipt = self.client.submit(self.client.batch_all(changes), self.keypair)
        delegates = [
            attributes["delegatee"]
            for attributes in self.client.events_named(receipt, "Proxy", "ProxyAdded")
        ]
        if len(delegates) != len(proxies):
            raise ProvisioningError(
                "not all proxies delegated to multisig",
                details={"expected": len(proxies), "delegated": len(delegates)},
            )
        for delegate in delegates:
            if not self.client.same_account(delegate, self.settings.multisig):
                raise ProvisioningError(
                    "not all proxies delegated to multisig",
                    details={"delegate": delegate, "multisig": self.settings.multisig},
                )
        logger.info("all proxies delegated to multisig", extra={"event": "distribution.delegated"})

    def distribute_funds(self, proxies: list[str], results: list[ScheduleResult], total: int) -> int:
        """Fund the treasury with ``total`` and vest each schedule from it; returns the amount vested."""
        logger.info("distributing funds...")
        to_treasury = self.client.compose("Balances", "transfer", {"dest": self.treasury, "value": total})
        vestings = [
            self.client.sudo_as(
                self.treasury,
                self.client.compose(
                    "Vesting",
                    "vested_transfer",
                    {"dest": proxy, "schedule": result.schedule.to_chain()},
                ),
            )
            for proxy, result in zip(proxies, results)
        ]
        receipt = self.client.submit(self.client.batch_all([to_treasury, *vestings]), self.keypair)
        moved = sum(int(attributes["amount"]) for attributes in self.client.events_named(receipt, "Balances", "Transfer"))
        # the treasury top-up is itself a Transfer event
        transferred = moved - total
        if transferred != total:
            raise ProvisioningError(
                "difference between total and transferred",
                details={"total": str(total), "transferred": str(transferred)},
            )
        logger.info(
            "funds distributed: %d",
            transferred,
            extra={"event": "distribution.completed", "transferred": str(transferred)},
        )
        return transferred

    def run(self) -> DistributionReport:
        plan = plan_distribution(self.settings)
        proxies = self.create_proxies(len(plan.results))
        self.fund_proxies(proxies)
        self.delegate_to_multisig(proxies)
        self.distribute_funds(proxies, plan.results, plan.total)
        return DistributionReport(
            recipients=proxies,
            results=plan.results,
            total=plan.total,
            next_proxy_index=self.allocator.next_index,
        )
