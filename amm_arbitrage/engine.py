"""
Detection pipeline: pool store -> graph -> cycles -> sizing -> validation.

One pass works on one immutable snapshot. Every candidate cycle ends up in
exactly one of three buckets: a plan, a classified rejection, or a failure
with the error class that caused it.
"""

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

import networkx as nx

from .config import EngineConfig
from .cost_model import StaticCostModelProvider
from .detector import find_best_cycle, merge_cycles, resolve_start_tokens
from .exceptions import (
    ExecutionAborted,
    InvalidPool,
    NoBracket,
    OptimizerError,
    Overflow,
)
from .execution_plan import ExecutionPlan, build_execution_plan
from .interfaces import (
    CostModelProvider,
    DiagnosticsSink,
    LoggingSink,
    PoolStateFeed,
    SettlementClient,
    SystemTimeProvider,
    TimeProvider,
)
from .market_graph import build_graph
from .metrics import EngineMetrics, get_metrics
from .optimizer import TradeSizeOptimizer
from .pool_store import PoolSnapshot, PoolStateStore
from .types import Cycle, ExecutionReceipt, RejectReason, Rejected, TradePlan
from .utils import format_duration, get_logger
from .validator import OpportunityValidator

logger = get_logger(__name__)

# Errors that drop a single candidate without stopping the pass
CANDIDATE_ERRORS = (Overflow, InvalidPool, OptimizerError)


@dataclass(frozen=True)
class CandidateFailure:
    cycle: Cycle
    error_type: str
    message: str


@dataclass
class PassResult:
    """Outcome of one detection pass, plans ordered by net profit descending."""

    snapshot_version: int
    plans: List[TradePlan] = field(default_factory=list)
    rejections: List[Rejected] = field(default_factory=list)
    failures: List[CandidateFailure] = field(default_factory=list)
    cycles_detected: int = 0
    duration_sec: float = 0.0

    @property
    def best(self) -> Optional[TradePlan]:
        return self.plans[0] if self.plans else None


class ArbitrageEngine:
    """
    Runs detection passes and hands the best plans to settlement.

    Args:
        config: Engine configuration
        feed: Source of pool states; optional when pools are published directly
        store: Pool store, created when not given
        cost_provider: Current cost model, defaults to the config's
        settlement: Settlement client; execution is skipped without one
        sink: Diagnostics sink for plans, rejections, failures and receipts
        metrics: Prometheus metrics, defaults to the global instance
        time_provider: Clock for staleness and deadlines
    """

    def __init__(
        self,
        config: EngineConfig,
        feed: Optional[PoolStateFeed] = None,
        store: Optional[PoolStateStore] = None,
        cost_provider: Optional[CostModelProvider] = None,
        settlement: Optional[SettlementClient] = None,
        sink: Optional[DiagnosticsSink] = None,
        metrics: Optional[EngineMetrics] = None,
        time_provider: Optional[TimeProvider] = None,
    ):
        self.config = config
        self.feed = feed
        self.time_provider = time_provider or SystemTimeProvider()
        self.store = store or PoolStateStore(clock=self.time_provider.current_timestamp)
        self.cost_provider = cost_provider or StaticCostModelProvider(
            config.cost_model()
        )
        self.settlement = settlement
        self.sink = sink or LoggingSink()
        self.metrics = metrics if metrics is not None else get_metrics()
        self.validator = OpportunityValidator(
            liquidity_cap_fraction=config.liquidity_cap_fraction,
            staleness_window_sec=config.staleness_window_sec,
            time_provider=self.time_provider,
        )
        self.pass_count = 0

    # === STATE ===

    def refresh(self) -> PoolSnapshot:
        """Pull pools from the feed and publish them as a new snapshot."""
        if self.feed is None:
            return self.store.snapshot()
        pools = self.feed.refresh()
        snapshot = self.store.publish(pools, taken_at=self.time_provider.current_timestamp())
        self.metrics.record_invalid_pools(len(snapshot.skipped))
        return snapshot

    # === DETECTION ===

    def detect(self, snapshot: PoolSnapshot) -> Tuple[nx.MultiDiGraph, List[Cycle]]:
        """Build the graph for ``snapshot`` and find candidate cycles."""
        graph = build_graph(snapshot.values())
        self.metrics.record_invalid_pools(graph.graph["skipped"])
        starts = resolve_start_tokens(graph, self.config.base_tokens)
        max_hops = self.config.max_hops

        if self.config.workers > 1 and len(starts) > 1:
            with ThreadPoolExecutor(max_workers=self.config.workers) as pool:
                found = list(
                    pool.map(lambda start: find_best_cycle(graph, start, max_hops), starts)
                )
        else:
            found = [find_best_cycle(graph, start, max_hops) for start in starts]

        return graph, merge_cycles(found)

    def evaluate(
        self, cycle: Cycle, snapshot: PoolSnapshot, optimizer: TradeSizeOptimizer
    ) -> Union[TradePlan, Rejected]:
        """
        Size and validate one cycle.

        Raises:
            Overflow, InvalidPool, OptimizerError: candidate-local failures
        """
        cost_model = self.cost_provider.current()
        try:
            sizing = optimizer.optimize(cycle)
        except NoBracket as e:
            return Rejected(
                cycle=cycle,
                amount=0,
                reason=RejectReason.UNPROFITABLE,
                detail=f"no profitable size: {e}",
            )
        return self.validator.validate(
            cycle,
            sizing.amount,
            cost_model,
            snapshot_taken_at=snapshot.taken_at,
            snapshot_version=snapshot.version,
        )

    def run_pass(self, snapshot: Optional[PoolSnapshot] = None) -> PassResult:
        """Run one detection pass against ``snapshot`` (the store's current one by default)."""
        started = time.perf_counter()
        if snapshot is None:
            snapshot = self.store.snapshot()
        self.pass_count += 1
        result = PassResult(snapshot_version=snapshot.version)

        cost_model = self.cost_provider.current()
        optimizer = TradeSizeOptimizer.from_config(
            self.config, premium_bps=cost_model.loan_premium_bps
        )

        _, cycles = self.detect(snapshot)
        result.cycles_detected = len(cycles)

        for cycle in cycles:
            self.metrics.record_cycle_detected(cycle.hops)
            try:
                outcome = self.evaluate(cycle, snapshot, optimizer)
            except CANDIDATE_ERRORS as e:
                logger.warning(
                    f"Dropping {cycle.describe()}: {type(e).__name__}: {e}"
                )
                result.failures.append(
                    CandidateFailure(cycle, type(e).__name__, str(e))
                )
                self.sink.on_failure(cycle, e)
                self.metrics.record_failure(type(e).__name__)
                continue

            if isinstance(outcome, Rejected):
                result.rejections.append(outcome)
                self.sink.on_rejected(outcome)
                self.metrics.record_rejection(outcome.reason.value)
            else:
                result.plans.append(outcome)

        result.plans.sort(key=lambda p: p.net_profit, reverse=True)
        for plan in result.plans:
            self.sink.on_plan(plan)
            self.metrics.record_plan(plan.token.symbol, plan.net_profit)

        result.duration_sec = time.perf_counter() - started
        self.metrics.record_pass(
            result.duration_sec,
            snapshot.age(self.time_provider.current_timestamp()),
            len(snapshot),
        )
        logger.info(
            f"Pass {self.pass_count} on snapshot v{snapshot.version}: "
            f"{result.cycles_detected} cycles, {len(result.plans)} plans, "
            f"{len(result.rejections)} rejected, {len(result.failures)} failed "
            f"in {format_duration(result.duration_sec)}"
        )
        return result

    # === EXECUTION ===

    def build_plan(self, trade: TradePlan) -> ExecutionPlan:
        return build_execution_plan(
            trade,
            slippage_tolerance_bps=self.config.slippage_tolerance_bps,
            staleness_window_sec=self.config.staleness_window_sec,
        )

    def execute(self, trade: TradePlan) -> Optional[ExecutionReceipt]:
        """
        Hand a plan to settlement.

        An aborted plan is logged and discarded; it is not retried on the same
        snapshot.
        """
        if self.settlement is None:
            logger.debug("No settlement client configured, skipping execution")
            return None

        plan = self.build_plan(trade)
        logger.info(
            f"Executing plan {plan.plan_id}: {trade.cycle.describe()} "
            f"amount={trade.amount_in} expected_net={trade.net_profit}"
        )
        try:
            receipt = self.settlement.execute(plan)
        except ExecutionAborted as e:
            logger.warning(f"Plan {plan.plan_id} aborted at hop {e.hop_index}: {e}")
            receipt = ExecutionReceipt(
                plan_id=plan.plan_id,
                success=False,
                realized_profit=0,
                cost_incurred=trade.settlement_cost,
                hops_completed=e.hop_index or 0,
                error=str(e),
                aborted=True,
            )

        if not receipt.success:
            logger.info(f"Plan {plan.plan_id} {receipt.outcome}: {receipt.error}")
        self.metrics.record_execution(
            receipt.outcome, trade.token.symbol, receipt.realized_profit
        )
        self.sink.on_receipt(receipt)
        return receipt

    # === LOOP ===

    def run_once(self) -> PassResult:
        """Refresh, run a pass and execute the top plans."""
        snapshot = self.refresh()
        result = self.run_pass(snapshot)
        if self.config.enable_execution:
            for plan in result.plans[: self.config.max_plans_per_pass]:
                self.execute(plan)
        return result

    async def run_async(self, max_passes: Optional[int] = None) -> List[PassResult]:
        """
        Main loop: refresh, pass, execute, sleep.

        Runs until ``config.once`` or ``max_passes`` stops it.
        """
        results: List[PassResult] = []
        attempts = 0
        metrics_started = False
        if self.config.metrics_port:
            metrics_started = await self.metrics.start_server(port=self.config.metrics_port)

        try:
            while True:
                attempts += 1
                try:
                    snapshot = await asyncio.to_thread(self.refresh)
                    result = self.run_pass(snapshot)
                    if self.config.enable_execution:
                        for plan in result.plans[: self.config.max_plans_per_pass]:
                            await asyncio.to_thread(self.execute, plan)
                    results.append(result)
                except Exception as e:
                    logger.error(f"Pass {self.pass_count} failed: {e}", exc_info=True)
                    if self.config.once:
                        raise

                if self.config.once:
                    break
                if max_passes is not None and attempts >= max_passes:
                    break

                await asyncio.sleep(self.config.poll_interval_sec)
        finally:
            if metrics_started:
                await self.metrics.stop_server()

        return results

    def run(self, max_passes: Optional[int] = None) -> List[PassResult]:
        return asyncio.run(self.run_async(max_passes=max_passes))
