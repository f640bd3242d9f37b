"""
Deterministic distribution logic:
- Linear vesting schedule computation with exact integer arithmetic
- Reconciliation of intended against observed on-chain state
- Proxy index allocation
"""

from proxy_vesting.blockchain.proxy_index import ProxyIndexAllocator
from proxy_vesting.blockchain.reconciliation import (
    IntendedState,
    OnChainObservation,
    ReconciliationPlan,
    TransferAction,
    UpdateAction,
    reconcile,
)
from proxy_vesting.blockchain.vesting_schedule import (
    AllocationEntry,
    ScheduleResult,
    VestingParams,
    VestingSchedule,
    compute_distribution,
    compute_schedule,
    distribution_total,
)

__all__ = [
    "AllocationEntry",
    "IntendedState",
    "OnChainObservation",
    "ProxyIndexAllocator",
    "ReconciliationPlan",
    "ScheduleResult",
    "TransferAction",
    "UpdateAction",
    "VestingParams",
    "VestingSchedule",
    "compute_distribution",
    "compute_schedule",
    "distribution_total",
    "reconcile",
]
