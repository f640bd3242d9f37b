"""
Unit tests for reconciliation of intended and observed vesting state.
"""

from dataclasses import replace

import pytest

from chain_fakes import address
from proxy_vesting.blockchain.reconciliation import (
    CLAWBACK_TRANSFER,
    UPDATE_VESTING_SCHEDULES,
    IntendedState,
    OnChainObservation,
    TransferAction,
    UpdateAction,
    reconcile,
)
from proxy_vesting.blockchain.vesting_schedule import VestingSchedule
from proxy_vesting.core.exceptions import InvalidInputError

TREASURY = address(1)
SCHEDULE = VestingSchedule(start=100, period=10, period_count=5, per_period=100)


def intended_state(recipient, total=500, schedules=(SCHEDULE,)):
    return IntendedState(recipient=recipient, schedules=tuple(schedules), total_base_units=total)


def matching_observation(state):
    return OnChainObservation(
        address=state.recipient,
        schedules_as_observed=state.schedules,
        free_balance=state.total_base_units,
        reserved_balance=0,
    )


def test_matching_state_needs_no_action():
    intended = [intended_state(address(10)), intended_state(address(11), total=700)]
    observed = [matching_observation(state) for state in intended]

    plan = reconcile(intended, observed, TREASURY)

    assert plan.schedule_updates == []
    assert plan.clawbacks == []
    assert plan.is_empty


def test_excess_balance_is_clawed_back():
    recipient = address(10)
    observed = [OnChainObservation(recipient, (SCHEDULE,), free_balance=600, reserved_balance=0)]

    plan = reconcile([intended_state(recipient, total=500)], observed, TREASURY)

    assert plan.clawbacks == [TransferAction(source=recipient, dest=TREASURY, amount=100)]
    assert plan.schedule_updates == []


def test_underfunded_account_is_left_alone():
    recipient = address(10)
    observed = [OnChainObservation(recipient, (SCHEDULE,), free_balance=600, reserved_balance=0)]

    plan = reconcile([intended_state(recipient, total=700)], observed, TREASURY)

    assert plan.clawbacks == []


def test_reserved_balance_counts_towards_holdings():
    recipient = address(10)
    observed = [OnChainObservation(recipient, (SCHEDULE,), free_balance=450, reserved_balance=80)]

    plan = reconcile([intended_state(recipient, total=500)], observed, TREASURY)

    assert [c.amount for c in plan.clawbacks] == [30]


def test_single_field_change_updates_only_that_recipient():
    intended = [intended_state(address(10)), intended_state(address(11)), intended_state(address(12))]
    observed = [matching_observation(state) for state in intended]
    observed[1] = replace(observed[1], schedules_as_observed=(replace(SCHEDULE, period_count=6),))

    plan = reconcile(intended, observed, TREASURY)

    assert plan.schedule_updates == [UpdateAction(recipient=address(11), schedules=(SCHEDULE,))]
    assert plan.clawbacks == []


def test_missing_schedule_on_chain_is_updated():
    state = intended_state(address(10))
    observed = [replace(matching_observation(state), schedules_as_observed=())]

    plan = reconcile([state], observed, TREASURY)

    assert [u.recipient for u in plan.schedule_updates] == [address(10)]


def test_schedule_comparison_is_order_sensitive():
    other = replace(SCHEDULE, start=200)
    state = intended_state(address(10), schedules=(SCHEDULE, other))
    observed = [replace(matching_observation(state), schedules_as_observed=(other, SCHEDULE))]

    plan = reconcile([state], observed, TREASURY)

    assert plan.schedule_updates[0].schedules == (SCHEDULE, other)


def test_observation_order_does_not_matter():
    intended = [intended_state(address(10), total=100), intended_state(address(11), total=200)]
    observed = [
        OnChainObservation(address(11), (SCHEDULE,), free_balance=250, reserved_balance=0),
        OnChainObservation(address(10), (SCHEDULE,), free_balance=100, reserved_balance=0),
    ]

    plan = reconcile(intended, observed, TREASURY)

    assert plan.clawbacks == [TransferAction(source=address(11), dest=TREASURY, amount=50)]


def test_actions_follow_intended_order():
    intended = [intended_state(address(n), total=100) for n in (12, 10, 11)]
    observed = [
        OnChainObservation(address(n), (), free_balance=150, reserved_balance=0) for n in (10, 11, 12)
    ]

    plan = reconcile(intended, observed, TREASURY)

    assert [u.recipient for u in plan.schedule_updates] == [address(12), address(10), address(11)]
    assert [c.source for c in plan.clawbacks] == [address(12), address(10), address(11)]


def test_unknown_recipient_is_rejected():
    intended = [intended_state(address(10))]
    observed = [matching_observation(intended_state(address(11)))]

    with pytest.raises(InvalidInputError):
        reconcile(intended, observed, TREASURY)


def test_duplicate_observation_is_rejected():
    state = intended_state(address(10))
    other = intended_state(address(11))

    with pytest.raises(InvalidInputError):
        reconcile([state, other], [matching_observation(state), matching_observation(state)], TREASURY)


def test_duplicate_intended_recipient_is_rejected():
    state = intended_state(address(10))
    observed = [
        OnChainObservation(address(10), (SCHEDULE,), free_balance=600, reserved_balance=0),
        OnChainObservation(address(11), (), free_balance=9999, reserved_balance=0),
    ]

    with pytest.raises(InvalidInputError) as exc_info:
        reconcile([state, state], observed, TREASURY)

    assert exc_info.value.details["recipient"] == address(10)


def test_length_mismatch_is_rejected():
    with pytest.raises(InvalidInputError):
        reconcile([intended_state(address(10))], [], TREASURY)


def test_records_use_kind_recipient_payload():
    recipient = address(10)
    observed = [OnChainObservation(recipient, (), free_balance=600, reserved_balance=0)]

    records = reconcile([intended_state(recipient)], observed, TREASURY).records()

    assert records == [
        {
            "kind": UPDATE_VESTING_SCHEDULES,
            "recipient": recipient,
            "payload": {"vesting_schedules": [SCHEDULE.to_chain()]},
        },
        {
            "kind": CLAWBACK_TRANSFER,
            "recipient": recipient,
            "payload": {"dest": TREASURY, "amount": 100},
        },
    ]
