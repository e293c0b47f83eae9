"""
Tests for the settlement state machine and paper settlement.
"""

import pytest

from conftest import TOKEN_A, TOKEN_B, cp_pool
from amm_arbitrage.amm import quoting
from amm_arbitrage.cost_model import CostModel
from amm_arbitrage.exceptions import ExecutionAborted, SettlementError
from amm_arbitrage.execution_plan import build_execution_plan
from amm_arbitrage.market_graph import cycle_from_pools
from amm_arbitrage.optimizer import optimal_amount
from amm_arbitrage.pool_store import PoolStateStore
from amm_arbitrage.settlement import (
    PaperSettlement,
    SettlementState,
    SettlementStateMachine,
)
from amm_arbitrage.validator import validate


@pytest.fixture
def store(clock, profitable_pair):
    store = PoolStateStore(clock=clock.current_timestamp)
    store.publish(profitable_pair)
    return store


@pytest.fixture
def trade(store, clock):
    snapshot = store.snapshot()
    first, second = snapshot.get("ab-1"), snapshot.get("ba-2")
    cycle = cycle_from_pools([TOKEN_A, TOKEN_B], [first, second])
    amount = optimal_amount(cycle, cap=900_000, premium_bps=5).amount
    return validate(
        cycle,
        amount,
        CostModel(loan_premium_bps=5, settlement_cost=100),
        snapshot.taken_at,
        clock.current_timestamp(),
        snapshot_version=snapshot.version,
    )


@pytest.fixture
def plan(trade):
    return build_execution_plan(trade, slippage_tolerance_bps=50)


class TestSettlementStateMachine:
    def test_happy_path(self, plan):
        machine = SettlementStateMachine(plan)
        assert machine.state == SettlementState.PENDING

        machine.borrow()
        assert machine.state == SettlementState.BORROWED
        for step in plan.swaps:
            machine.record_swap(step.hop_index, step.expected_out)
        assert machine.state == SettlementState.HOPS_EXECUTING

        surplus = machine.repay()

        assert machine.state == SettlementState.REPAID
        assert machine.is_terminal
        assert surplus == plan.swaps[-1].expected_out - plan.repay.amount

    def test_swap_below_floor_aborts(self, plan):
        machine = SettlementStateMachine(plan)
        machine.borrow()
        floor = plan.swaps[0].min_out

        with pytest.raises(ExecutionAborted) as exc_info:
            machine.record_swap(0, floor - 1)

        assert exc_info.value.hop_index == 0
        assert exc_info.value.expected == floor
        assert exc_info.value.actual == floor - 1
        assert machine.state == SettlementState.ABORTED
        assert machine.hops_completed == 0

    def test_swap_at_floor_is_accepted(self, plan):
        machine = SettlementStateMachine(plan)
        machine.borrow()
        machine.record_swap(0, plan.swaps[0].min_out)
        assert machine.hops_completed == 1

    def test_swap_before_borrow(self, plan):
        with pytest.raises(SettlementError):
            SettlementStateMachine(plan).record_swap(0, 10**12)

    def test_hops_out_of_order(self, plan):
        machine = SettlementStateMachine(plan)
        machine.borrow()
        with pytest.raises(SettlementError):
            machine.record_swap(1, 10**12)

    def test_repay_before_all_hops(self, plan):
        machine = SettlementStateMachine(plan)
        machine.borrow()
        machine.record_swap(0, plan.swaps[0].expected_out)
        with pytest.raises(SettlementError):
            machine.repay()

    def test_double_borrow(self, plan):
        machine = SettlementStateMachine(plan)
        machine.borrow()
        with pytest.raises(SettlementError):
            machine.borrow()

    def test_no_transition_out_of_terminal_state(self, plan):
        machine = SettlementStateMachine(plan)
        machine.abort("operator")
        assert machine.abort_reason == "operator"
        with pytest.raises(SettlementError):
            machine.abort("again")
        with pytest.raises(SettlementError):
            machine.borrow()


class TestPaperSettlement:
    def test_success_updates_store(self, store, plan, trade, clock):
        version = store.version
        settlement = PaperSettlement(store, time_provider=clock)

        receipt = settlement.execute(plan)

        assert receipt.success
        assert receipt.plan_id == plan.plan_id
        assert receipt.hops_completed == 2
        assert receipt.realized_profit == trade.net_profit
        assert receipt.cost_incurred == 100
        assert receipt.tx_ref == f"paper-{plan.plan_id[:12]}"

        snapshot = store.snapshot()
        assert snapshot.version == version + 1
        assert snapshot.get("ab-1").reserve0 == 1_000_000 + trade.amount_in
        assert snapshot.get("ba-2").reserve1 == 1_950_000 - trade.final_output

    def test_adverse_drift_aborts_without_commit(self, store, plan, clock):
        version = store.version
        settlement = PaperSettlement(store, adverse_drift_bps=100, time_provider=clock)

        receipt = settlement.execute(plan)

        assert not receipt.success
        assert receipt.hops_completed == 0
        assert receipt.cost_incurred == 100
        assert "below floor" in receipt.error
        assert receipt.aborted
        assert receipt.outcome == "aborted"
        assert store.version == version

    def test_small_drift_within_tolerance(self, store, plan, clock):
        receipt = PaperSettlement(store, adverse_drift_bps=10, time_provider=clock).execute(plan)

        assert receipt.success
        assert receipt.realized_profit < plan.trade.net_profit

    def test_drift_reduces_received_amount_not_pool_movement(self, store, plan, clock):
        before = store.snapshot()
        settlement = PaperSettlement(store, adverse_drift_bps=10, time_provider=clock)

        receipt = settlement.execute(plan)

        assert receipt.success
        quoted = quoting.quote_output(before.get("ab-1"), plan.borrow.amount, TOKEN_A)
        received = quoted * 9_990 // 10_000
        after = store.snapshot()
        # The first pool pays out the full quote; the plan only keeps the haircut amount
        assert after.get("ab-1") == quoting.apply_swap(
            before.get("ab-1"), plan.borrow.amount, TOKEN_A
        )
        assert after.get("ab-1").reserve1 == before.get("ab-1").reserve1 - quoted
        assert after.get("ba-2") == quoting.apply_swap(before.get("ba-2"), received, TOKEN_B)
        final = quoting.quote_output(before.get("ba-2"), received, TOKEN_B)
        final = final * 9_990 // 10_000
        assert receipt.realized_profit == final - plan.repay.amount - 100

    def test_dry_run(self, store, plan, clock):
        version = store.version
        receipt = PaperSettlement(store, dry_run=True, time_provider=clock).execute(plan)

        assert not receipt.success
        assert receipt.outcome == "dry_run"
        assert receipt.error == "dry run: not executed"
        assert store.version == version

    def test_deadline_passed(self, store, plan, clock):
        clock.advance_time(60)
        receipt = PaperSettlement(store, time_provider=clock).execute(plan)

        assert not receipt.success
        assert receipt.error == "deadline passed"

    def test_missing_pool(self, plan, clock):
        empty_store = PoolStateStore(clock=clock.current_timestamp)
        receipt = PaperSettlement(empty_store, time_provider=clock).execute(plan)

        assert not receipt.success
        assert "not in store" in receipt.error
        assert receipt.outcome == "failed"

    def test_unquotable_pool_fails_without_commit(self, store, plan, clock):
        # Reserves scaled past the uint256 range of the V2 product
        store.update([cp_pool("ba-2", TOKEN_B, TOKEN_A, 2**250, 2**250)])
        version = store.version

        receipt = PaperSettlement(store, time_provider=clock).execute(plan)

        assert not receipt.success
        assert not receipt.aborted
        assert receipt.hops_completed == 1
        assert receipt.error.startswith("Overflow")
        assert store.version == version

    def test_invalid_drift(self, store):
        with pytest.raises(ValueError):
            PaperSettlement(store, adverse_drift_bps=10_000)
