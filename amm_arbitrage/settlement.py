"""
Settlement of atomic execution plans.

``SettlementStateMachine`` enforces the legal order of an atomic arbitrage

    PENDING -> BORROWED -> HOPS_EXECUTING -> REPAID
                    \\____________\\________-> ABORTED

and the per-hop minimum-output floors. ``PaperSettlement`` drives the machine
against the pool store without touching a chain: swaps are replayed on a
private copy of the pools, which is only committed back when the plan repays.
"""

from enum import Enum
from typing import Dict, List, Optional

from .amm import quoting
from .exceptions import ExecutionAborted, InvalidPool, Overflow, SettlementError
from .execution_plan import ExecutionPlan
from .interfaces import SystemTimeProvider, TimeProvider
from .pool_store import PoolStateStore
from .types import ExecutionReceipt, Pool
from .utils import BPS_SCALE, get_logger

logger = get_logger(__name__)


class SettlementState(Enum):
    PENDING = "pending"
    BORROWED = "borrowed"
    HOPS_EXECUTING = "hops_executing"
    REPAID = "repaid"
    ABORTED = "aborted"


TERMINAL_STATES = (SettlementState.REPAID, SettlementState.ABORTED)


class SettlementStateMachine:
    """Tracks one plan through borrow, swaps and repay."""

    def __init__(self, plan: ExecutionPlan):
        self.plan = plan
        self.state = SettlementState.PENDING
        self.realized_outputs: List[int] = []
        self.abort_reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def hops_completed(self) -> int:
        return len(self.realized_outputs)

    def _require(self, *allowed: SettlementState) -> None:
        if self.state not in allowed:
            raise SettlementError(
                f"Illegal transition from {self.state.value}; expected one of "
                f"{[s.value for s in allowed]}",
                plan_id=self.plan.plan_id,
            )

    def borrow(self) -> None:
        self._require(SettlementState.PENDING)
        self.state = SettlementState.BORROWED

    def record_swap(self, hop_index: int, actual_out: int) -> None:
        """
        Record a hop's realized output.

        Raises:
            SettlementError: Hop out of order or machine not borrowing
            ExecutionAborted: ``actual_out`` is below the hop's floor
        """
        self._require(SettlementState.BORROWED, SettlementState.HOPS_EXECUTING)
        swaps = self.plan.swaps
        if hop_index != self.hops_completed or hop_index >= len(swaps):
            raise SettlementError(
                f"Hop {hop_index} out of order, next is {self.hops_completed}",
                plan_id=self.plan.plan_id,
            )

        step = swaps[hop_index]
        if actual_out < step.min_out:
            self.abort(
                f"hop {hop_index} returned {actual_out}, floor is {step.min_out}"
            )
            raise ExecutionAborted(
                f"Hop {hop_index} output {actual_out} below floor {step.min_out}",
                plan_id=self.plan.plan_id,
                hop_index=hop_index,
                expected=step.min_out,
                actual=actual_out,
            )

        self.realized_outputs.append(actual_out)
        self.state = SettlementState.HOPS_EXECUTING

    def repay(self) -> int:
        """Repay the loan from the last hop's output and return what is left."""
        self._require(SettlementState.HOPS_EXECUTING)
        if self.hops_completed != len(self.plan.swaps):
            raise SettlementError(
                f"Cannot repay after {self.hops_completed} of "
                f"{len(self.plan.swaps)} hops",
                plan_id=self.plan.plan_id,
            )
        final = self.realized_outputs[-1]
        owed = self.plan.repay.amount
        if final < owed:
            self.abort(f"final output {final} cannot repay {owed}")
            raise ExecutionAborted(
                f"Final output {final} below repayment {owed}",
                plan_id=self.plan.plan_id,
                hop_index=self.hops_completed - 1,
                expected=owed,
                actual=final,
            )
        self.state = SettlementState.REPAID
        return final - owed

    def abort(self, reason: str) -> None:
        if self.is_terminal:
            raise SettlementError(
                f"Plan already {self.state.value}", plan_id=self.plan.plan_id
            )
        self.abort_reason = reason
        self.state = SettlementState.ABORTED


class PaperSettlement:
    """
    Settlement client that simulates execution against the pool store.

    Every hop is applied to its pool in full, exactly as quoted. Adverse drift
    then reduces only the amount the plan receives from that hop, modeling
    value lost to state that moved between detection and inclusion, so the
    committed pool states always match an actual swap.

    Args:
        store: Pool store the plan is replayed against; updated on success
        adverse_drift_bps: Haircut on the amount received from every hop
        dry_run: Log the steps and report without executing
        time_provider: Clock used for the plan deadline
    """

    def __init__(
        self,
        store: PoolStateStore,
        adverse_drift_bps: int = 0,
        dry_run: bool = False,
        time_provider: Optional[TimeProvider] = None,
    ):
        if not 0 <= adverse_drift_bps < BPS_SCALE:
            raise ValueError(f"adverse_drift_bps out of range: {adverse_drift_bps}")
        self.store = store
        self.adverse_drift_bps = adverse_drift_bps
        self.dry_run = dry_run
        self.time_provider = time_provider or SystemTimeProvider()

    def _failed(
        self,
        plan: ExecutionPlan,
        error: str,
        hops: int = 0,
        cost: int = 0,
        aborted: bool = False,
        dry_run: bool = False,
    ) -> ExecutionReceipt:
        return ExecutionReceipt(
            plan_id=plan.plan_id,
            success=False,
            realized_profit=0,
            cost_incurred=cost,
            hops_completed=hops,
            error=error,
            aborted=aborted,
            dry_run=dry_run,
        )

    def _received(self, quoted: int) -> int:
        return quoted * (BPS_SCALE - self.adverse_drift_bps) // BPS_SCALE

    def execute(self, plan: ExecutionPlan) -> ExecutionReceipt:
        plan_log = get_logger(__name__, extra={"plan": plan.plan_id[:8]})

        if self.dry_run:
            for step in plan.steps:
                plan_log.info(f"[DRY RUN] {step.to_dict()}")
            return self._failed(plan, "dry run: not executed", dry_run=True)

        if self.time_provider.current_timestamp() > plan.deadline:
            plan_log.warning("Missed deadline")
            return self._failed(plan, "deadline passed")

        snapshot = self.store.snapshot()
        working: Dict[str, Pool] = dict(snapshot.pools)
        machine = SettlementStateMachine(plan)
        machine.borrow()
        holding = plan.borrow.amount
        cost = plan.trade.settlement_cost

        try:
            for step in plan.swaps:
                pool = working.get(step.pool_id)
                if pool is None:
                    machine.abort(f"pool {step.pool_id} not in store")
                    return self._failed(
                        plan,
                        f"pool {step.pool_id} not in store",
                        machine.hops_completed,
                        cost,
                    )
                quoted = quoting.quote_output(pool, holding, step.token_in)
                working[step.pool_id] = quoting.apply_swap(pool, holding, step.token_in)
                received = self._received(quoted)
                machine.record_swap(step.hop_index, received)
                holding = received
            surplus = machine.repay()
        except ExecutionAborted as e:
            plan_log.warning(f"Aborted: {e}")
            return self._failed(
                plan, str(e), machine.hops_completed, cost, aborted=True
            )
        except (InvalidPool, Overflow) as e:
            machine.abort(f"{type(e).__name__}: {e}")
            plan_log.error(f"Hop {machine.hops_completed} failed: {type(e).__name__}: {e}")
            return self._failed(
                plan, f"{type(e).__name__}: {e}", machine.hops_completed, cost
            )

        touched = [working[step.pool_id] for step in plan.swaps]
        self.store.update(touched, taken_at=snapshot.taken_at)
        plan_log.info(f"Repaid {plan.repay.amount}, surplus {surplus}")
        return ExecutionReceipt(
            plan_id=plan.plan_id,
            success=True,
            realized_profit=surplus - cost,
            cost_incurred=cost,
            hops_completed=machine.hops_completed,
            tx_ref=f"paper-{plan.plan_id[:12]}",
        )
