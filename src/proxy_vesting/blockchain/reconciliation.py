"""
Reconciliation of intended vesting state against what the chain holds.

Given the schedules and totals a distribution meant to create, and a fresh
read of each recipient account, derive the corrective actions that converge
the two: full schedule replacements where the stored schedules differ, and
claw-back transfers to the treasury where an account holds more than its
allocation. Underfunded accounts are reported by nothing here; topping them
up is the funding step's job.

Nothing in this module talks to the chain.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from proxy_vesting.blockchain.vesting_schedule import ScheduleResult, VestingSchedule
from proxy_vesting.core.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

UPDATE_VESTING_SCHEDULES = "update_vesting_schedules"
CLAWBACK_TRANSFER = "clawback_transfer"


@dataclass(frozen=True)
class IntendedState:
    recipient: str
    schedules: tuple[VestingSchedule, ...]
    total_base_units: int

    @classmethod
    def from_result(cls, recipient: str, result: ScheduleResult) -> "IntendedState":
        return cls(
            recipient=recipient,
            schedules=(result.schedule,),
            total_base_units=result.total_base_units,
        )


@dataclass(frozen=True)
class OnChainObservation:
    """Point-in-time read of one recipient account."""

    address: str
    schedules_as_observed: tuple[VestingSchedule, ...]
    free_balance: int
    reserved_balance: int

    @property
    def total_balance(self) -> int:
        return self.free_balance + self.reserved_balance


@dataclass(frozen=True)
class UpdateAction:
    recipient: str
    schedules: tuple[VestingSchedule, ...]

    kind = UPDATE_VESTING_SCHEDULES

    def to_record(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "recipient": self.recipient,
            "payload": {"vesting_schedules": [s.to_chain() for s in self.schedules]},
        }


@dataclass(frozen=True)
class TransferAction:
    source: str
    dest: str
    amount: int

    kind = CLAWBACK_TRANSFER

    @property
    def recipient(self) -> str:
        return self.source

    def to_record(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "recipient": self.source,
            "payload": {"dest": self.dest, "amount": self.amount},
        }


@dataclass
class ReconciliationPlan:
    schedule_updates: list[UpdateAction] = field(default_factory=list)
    clawbacks: list[TransferAction] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.schedule_updates and not self.clawbacks

    def records(self) -> list[dict[str, Any]]:
        """All actions as ``{kind, recipient, payload}`` records, updates first."""
        return [a.to_record() for a in self.schedule_updates] + [
            a.to_record() for a in self.clawbacks
        ]


def _index_observations(observed: Sequence[OnChainObservation]) -> dict[str, OnChainObservation]:
    by_address: dict[str, OnChainObservation] = {}
    for observation in observed:
        if observation.address in by_address:
            raise InvalidInputError(
                f"Duplicate observation for {observation.address}",
                details={"address": observation.address},
            )
        by_address[observation.address] = observation
    return by_address


def reconcile(
    intended: Sequence[IntendedState],
    observed: Sequence[OnChainObservation],
    treasury: str,
) -> ReconciliationPlan:
    """
    Derive the actions that bring on-chain state in line with the intended state.

    Observations are matched to intended entries by recipient address, so the
    order in which the chain was queried does not matter. Actions come out in
    ``intended`` order.

    Raises:
        InvalidInputError: the two sequences do not cover the same recipients,
            or either one names a recipient twice
    """
    if len(intended) != len(observed):
        raise InvalidInputError(
            f"Expected {len(intended)} observations, got {len(observed)}",
            details={"intended": len(intended), "observed": len(observed)},
        )
    by_address = _index_observations(observed)

    seen: set[str] = set()
    for state in intended:
        if state.recipient in seen:
            raise InvalidInputError(
                f"Duplicate intended recipient {state.recipient}",
                details={"recipient": state.recipient},
            )
        seen.add(state.recipient)

    plan = ReconciliationPlan()
    for state in intended:
        observation = by_address.get(state.recipient)
        if observation is None:
            raise InvalidInputError(
                f"No on-chain observation for {state.recipient}",
                details={"recipient": state.recipient},
            )

        if tuple(state.schedules) != tuple(observation.schedules_as_observed):
            plan.schedule_updates.append(
                UpdateAction(recipient=state.recipient, schedules=tuple(state.schedules))
            )

        excess = observation.total_balance - state.total_base_units
        if excess > 0:
            plan.clawbacks.append(
                TransferAction(source=state.recipient, dest=treasury, amount=excess)
            )

    logger.info(
        "Reconciliation planned: %d schedule updates, %d clawbacks",
        len(plan.schedule_updates),
        len(plan.clawbacks),
        extra={
            "event": "reconciliation.planned",
            "updates": len(plan.schedule_updates),
            "clawbacks": len(plan.clawbacks),
        },
    )
    return plan
