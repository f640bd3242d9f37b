"""
Chain side of reconciliation: read recipient accounts, plan, and apply.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from substrateinterface import Keypair

from proxy_vesting.blockchain.reconciliation import (
    IntendedState,
    OnChainObservation,
    ReconciliationPlan,
    reconcile,
)
from proxy_vesting.chain.client import ChainClient
from proxy_vesting.chain.distribution import plan_distribution
from proxy_vesting.config_manager import DistributionConfig
from proxy_vesting.core.exceptions import InvalidInputError

logger = logging.getLogger(__name__)


class ReconciliationRunner:
    def __init__(
        self,
        client: ChainClient,
        settings: DistributionConfig,
        treasury: Optional[str] = None,
    ):
        self.client = client
        self.settings = settings
        self.treasury = treasury or client.treasury_address(settings.treasury_pallet_id)

    def intended(self, recipients: Sequence[str]) -> list[IntendedState]:
        """Pair recipients, in allocation order, with the freshly computed schedules."""
        results = plan_distribution(self.settings).results
        if len(recipients) != len(results):
            raise InvalidInputError(
                f"Got {len(recipients)} recipients for {len(results)} allocation entries",
                details={"recipients": len(recipients), "allocations": len(results)},
            )
        return [IntendedState.from_result(r, result) for r, result in zip(recipients, results)]

    def observe(self, recipients: Sequence[str]) -> list[OnChainObservation]:
        observations = []
        for address in recipients:
            balances = self.client.query_account_balances(address)
            schedules = self.client.query_vesting_schedules(address)
            logger.debug(
                "observed %s: free=%d reserved=%d schedules=%d",
                address,
                balances.free,
                balances.reserved,
                len(schedules),
            )
            observations.append(
                OnChainObservation(
                    address=address,
                    schedules_as_observed=tuple(schedules),
                    free_balance=balances.free,
                    reserved_balance=balances.reserved,
                )
            )
        return observations

    def plan(self, recipients: Sequence[str]) -> ReconciliationPlan:
        return reconcile(self.intended(recipients), self.observe(recipients), self.treasury)

    def apply(self, plan: ReconciliationPlan, keypair: Keypair):
        """
        Submit every action of ``plan`` as one sudo batch.

        Returns:
            The receipt, or None when the plan is empty and nothing was sent
        """
        if plan.is_empty:
            logger.info("nothing to reconcile", extra={"event": "reconciliation.noop"})
            return None

        calls = [
            self.client.compose(
                "Vesting",
                "update_vesting_schedules",
                {"who": action.recipient, "vesting_schedules": [s.to_chain() for s in action.schedules]},
            )
            for action in plan.schedule_updates
        ]
        calls += [
            self.client.compose(
                "Balances",
                "force_transfer",
                {"source": action.source, "dest": action.dest, "value": action.amount},
            )
            for action in plan.clawbacks
        ]
        receipt = self.client.submit(self.client.sudo(self.client.batch_all(calls)), keypair)
        logger.info(
            "reconciliation applied: %d calls",
            len(calls),
            extra={"event": "reconciliation.applied", "calls": len(calls)},
        )
        return receipt
