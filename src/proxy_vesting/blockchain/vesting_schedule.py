"""
Linear vesting schedule computation.

Turns an allocation table (whole-token amounts plus a vesting template) into
per-recipient schedules in base units. All arithmetic is done on Python ints:
base-unit totals are well past 2**53 so floats would silently drift.

Rounding is always floor. The scheduled disbursements can never exceed the
allocated amount; any shortfall surfaces as ``remainder`` and a distribution
with a nonzero remainder is refused outright.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from proxy_vesting.core.constants import UNIT
from proxy_vesting.core.exceptions import DistributionMismatchError, InvalidInputError

logger = logging.getLogger(__name__)


def _require_int(name: str, value: Any, minimum: int) -> int:
    # bool is an int subclass; True is not a block height
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(
            f"{name} must be an integer, got {type(value).__name__}",
            details={"field": name, "value": repr(value)},
        )
    if value < minimum:
        raise InvalidInputError(
            f"{name} must be >= {minimum}, got {value}",
            details={"field": name, "value": value},
        )
    return value


@dataclass(frozen=True)
class VestingParams:
    """Vesting template: release every ``period`` blocks from ``start``, ``period_count`` times."""

    start: int
    period: int
    period_count: int

    def validate(self) -> None:
        _require_int("start", self.start, 0)
        _require_int("period", self.period, 1)
        _require_int("period_count", self.period_count, 1)


@dataclass(frozen=True)
class VestingSchedule:
    """A schedule as the vesting pallet stores it."""

    start: int
    period: int
    period_count: int
    per_period: int

    @property
    def total(self) -> int:
        return self.per_period * self.period_count

    def to_chain(self) -> dict[str, int]:
        """Call parameter form for ``vested_transfer`` / ``update_vesting_schedules``."""
        return {
            "start": self.start,
            "period": self.period,
            "period_count": self.period_count,
            "per_period": self.per_period,
        }

    @classmethod
    def from_chain(cls, value: dict[str, Any]) -> "VestingSchedule":
        """Build from a decoded ``Vesting.VestingSchedules`` entry."""
        try:
            return cls(
                start=int(value["start"]),
                period=int(value["period"]),
                period_count=int(value["period_count"]),
                per_period=int(value["per_period"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidInputError(
                f"Malformed vesting schedule: {value!r}",
                details={"value": repr(value)},
            ) from exc


@dataclass(frozen=True)
class AllocationEntry:
    amount: int
    template: VestingParams


@dataclass(frozen=True)
class ScheduleResult:
    schedule: VestingSchedule
    remainder: int
    total_base_units: int


def compute_schedule(
    amount: int,
    template: VestingParams,
    unit_scale: int = UNIT,
    *,
    exact: bool = False,
) -> ScheduleResult:
    """
    Compute the linear schedule for a single allocation.

    Args:
        amount: Allocation in whole tokens
        template: Vesting start, period and period count
        unit_scale: Base units per whole token
        exact: Refuse a nonzero remainder instead of returning it

    Returns:
        ScheduleResult with the derived schedule, the undistributed remainder
        and the allocation in base units

    Raises:
        InvalidInputError: amount, template or unit_scale out of range
        DistributionMismatchError: ``exact`` is set and the total does not
            divide evenly by the period count
    """
    _require_int("amount", amount, 0)
    _require_int("unit_scale", unit_scale, 1)
    if not isinstance(template, VestingParams):
        raise InvalidInputError(
            f"template must be VestingParams, got {type(template).__name__}"
        )
    template.validate()

    total = amount * unit_scale
    per_period, remainder = divmod(total, template.period_count)

    if per_period * template.period_count + remainder != total:
        raise DistributionMismatchError(
            "Schedule does not reproduce allocated total",
            details={"amount": amount, "total": total},
        )

    if exact and remainder:
        raise DistributionMismatchError(
            f"Allocation of {amount} does not divide evenly into "
            f"{template.period_count} periods (remainder {remainder})",
            details={"amount": amount, "remainder": remainder, "period_count": template.period_count},
        )

    schedule = VestingSchedule(
        start=template.start,
        period=template.period,
        period_count=template.period_count,
        per_period=per_period,
    )
    return ScheduleResult(schedule=schedule, remainder=remainder, total_base_units=total)


def distribution_total(allocations: Iterable[AllocationEntry], unit_scale: int = UNIT) -> int:
    """Intended total of an allocation table in base units."""
    return sum(entry.amount for entry in allocations) * unit_scale


def compute_distribution(
    allocations: Sequence[AllocationEntry],
    unit_scale: int = UNIT,
) -> list[ScheduleResult]:
    """
    Compute schedules for a whole allocation table and verify the batch.

    Every entry is computed before anything is returned; a single invalid
    entry aborts the batch. The batch is then checked for conservation
    (scheduled base units plus remainders equal the allocated total) and for
    a zero remainder on every entry.

    Raises:
        InvalidInputError: any entry is malformed
        DistributionMismatchError: the batch fails conservation or has a
            nonzero remainder
    """
    allocations = list(allocations)
    results = []
    for index, entry in enumerate(allocations):
        try:
            results.append(compute_schedule(entry.amount, entry.template, unit_scale))
        except InvalidInputError as exc:
            raise InvalidInputError(
                f"Allocation entry {index} is invalid: {exc.message}",
                details={"index": index, **exc.details},
            ) from exc

    expected = distribution_total(allocations, unit_scale)
    accounted = sum(r.total_base_units for r in results)
    scheduled = sum(r.schedule.total + r.remainder for r in results)
    if accounted != expected or scheduled != expected:
        raise DistributionMismatchError(
            "total distributed does not match",
            details={"expected": expected, "accounted": accounted, "scheduled": scheduled},
        )

    nonzero = [index for index, r in enumerate(results) if r.remainder]
    if nonzero:
        raise DistributionMismatchError(
            f"remainder is not zero for entries {nonzero}",
            details={
                "indices": nonzero,
                "remainders": [results[i].remainder for i in nonzero],
            },
        )

    logger.info(
        "Distribution computed: %d entries, %d base units",
        len(results),
        expected,
        extra={"event": "distribution.computed", "entries": len(results), "total": str(expected)},
    )
    return results
