"""
Collaborator interfaces for the engine.

Pool feeds, cost models, settlement and diagnostics are external to the
engine; they are described here as protocols so tests and the CLI can plug in
simple implementations. Time is injected the same way to keep staleness checks
deterministic under test.
"""

import time
from typing import Iterable, List, Protocol, runtime_checkable

from .cost_model import CostModel
from .execution_plan import ExecutionPlan
from .types import Cycle, ExecutionReceipt, Pool, Rejected, TradePlan
from .utils import get_logger

logger = get_logger(__name__)


@runtime_checkable
class TimeProvider(Protocol):
    """Protocol for time-related operations."""

    def current_timestamp(self) -> float:
        """Get current Unix timestamp."""
        ...

    def sleep(self, duration: float) -> None:
        """Sleep for specified duration in seconds."""
        ...


@runtime_checkable
class PoolStateFeed(Protocol):
    """Source of fresh pool states (RPC poller, indexer, fixture file)."""

    def refresh(self) -> List[Pool]:
        ...


@runtime_checkable
class CostModelProvider(Protocol):
    def current(self) -> CostModel:
        ...


@runtime_checkable
class SettlementClient(Protocol):
    """Executes an atomic plan and reports what actually happened."""

    def execute(self, plan: ExecutionPlan) -> ExecutionReceipt:
        ...


@runtime_checkable
class DiagnosticsSink(Protocol):
    """Receives every plan, rejection, failure and receipt of a pass."""

    def on_plan(self, plan: TradePlan) -> None:
        ...

    def on_rejected(self, rejected: Rejected) -> None:
        ...

    def on_failure(self, cycle: Cycle, error: Exception) -> None:
        ...

    def on_receipt(self, receipt: ExecutionReceipt) -> None:
        ...


class SystemTimeProvider:
    """Production time provider using system time."""

    def current_timestamp(self) -> float:
        return time.time()

    def sleep(self, duration: float) -> None:
        time.sleep(duration)


class DeterministicTimeProvider:
    """Deterministic time provider for tests."""

    def __init__(self, start_time: float = 1640995200.0):  # 2022-01-01
        self._current_time = start_time

    def current_timestamp(self) -> float:
        return self._current_time

    def sleep(self, duration: float) -> None:
        """Advance time by duration instead of actually sleeping."""
        self._current_time += duration

    def advance_time(self, seconds: float) -> None:
        self._current_time += seconds

    def set_time(self, timestamp: float) -> None:
        self._current_time = timestamp


class StaticPoolFeed:
    """Feed that returns a fixed pool list, e.g. loaded from a YAML file."""

    def __init__(self, pools: Iterable[Pool]):
        self._pools = list(pools)

    def refresh(self) -> List[Pool]:
        return list(self._pools)

    def replace(self, pools: Iterable[Pool]) -> None:
        self._pools = list(pools)


class LoggingSink:
    """Diagnostics sink writing one structured log line per event."""

    def __init__(self, name: str = "amm_arbitrage.diagnostics"):
        self.logger = get_logger(name)

    def on_plan(self, plan: TradePlan) -> None:
        self.logger.info(f"PLAN {plan.to_dict()}")

    def on_rejected(self, rejected: Rejected) -> None:
        self.logger.debug(f"REJECTED {rejected.to_dict()}")

    def on_failure(self, cycle: Cycle, error: Exception) -> None:
        self.logger.warning(
            f"FAILED {cycle.describe()} pools={list(cycle.pool_ids)} "
            f"error={type(error).__name__}: {error}"
        )

    def on_receipt(self, receipt: ExecutionReceipt) -> None:
        status = "OK" if receipt.success else receipt.outcome.upper()
        self.logger.info(
            f"RECEIPT {status} plan={receipt.plan_id} "
            f"profit={receipt.realized_profit} cost={receipt.cost_incurred} "
            f"hops={receipt.hops_completed} error={receipt.error}"
        )


class RecordingSink:
    """Diagnostics sink that keeps everything in memory."""

    def __init__(self):
        self.plans: List[TradePlan] = []
        self.rejections: List[Rejected] = []
        self.failures: List[tuple] = []
        self.receipts: List[ExecutionReceipt] = []

    def on_plan(self, plan: TradePlan) -> None:
        self.plans.append(plan)

    def on_rejected(self, rejected: Rejected) -> None:
        self.rejections.append(rejected)

    def on_failure(self, cycle: Cycle, error: Exception) -> None:
        self.failures.append((cycle, error))

    def on_receipt(self, receipt: ExecutionReceipt) -> None:
        self.receipts.append(receipt)
