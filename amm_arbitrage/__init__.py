"""
Multi-hop AMM arbitrage detection and trade-sizing engine.

Builds a weighted graph from AMM pool states, finds negative cycles, sizes
them for maximum net profit after fees and flash-loan premium, and emits
validated, atomically executable trade plans.
"""

from .config import EngineConfig, load_config, load_pools
from .cost_model import CostModel, StaticCostModelProvider
from .detector import find_best_cycle, find_cycles
from .engine import ArbitrageEngine, PassResult
from .exceptions import (
    ArbitrageEngineError,
    ConfigurationError,
    ExecutionAborted,
    InvalidPool,
    MaxIterationsExceeded,
    NoBracket,
    OptimizerError,
    Overflow,
    SettlementError,
)
from .execution_plan import ExecutionPlan, build_execution_plan
from .interfaces import (
    DeterministicTimeProvider,
    LoggingSink,
    RecordingSink,
    StaticPoolFeed,
    SystemTimeProvider,
)
from .market_graph import build_graph, cycle_from_pools
from .optimizer import OptimizationResult, TradeSizeOptimizer, optimal_amount
from .pool_store import PoolSnapshot, PoolStateStore
from .settlement import PaperSettlement, SettlementState, SettlementStateMachine
from .types import (
    ConcentratedLiquidityPool,
    ConstantProductPool,
    Cycle,
    Edge,
    ExecutionReceipt,
    PoolKind,
    RejectReason,
    Rejected,
    StableSwapPool,
    Token,
    TradePlan,
)
from .validator import OpportunityValidator, validate
from .version import __version__

__all__ = [
    "ArbitrageEngine",
    "ArbitrageEngineError",
    "ConcentratedLiquidityPool",
    "ConfigurationError",
    "ConstantProductPool",
    "CostModel",
    "Cycle",
    "DeterministicTimeProvider",
    "Edge",
    "EngineConfig",
    "ExecutionAborted",
    "ExecutionPlan",
    "ExecutionReceipt",
    "InvalidPool",
    "LoggingSink",
    "MaxIterationsExceeded",
    "NoBracket",
    "OpportunityValidator",
    "OptimizationResult",
    "OptimizerError",
    "Overflow",
    "PaperSettlement",
    "PassResult",
    "PoolKind",
    "PoolSnapshot",
    "PoolStateStore",
    "RecordingSink",
    "RejectReason",
    "Rejected",
    "SettlementError",
    "SettlementState",
    "SettlementStateMachine",
    "StableSwapPool",
    "StaticCostModelProvider",
    "StaticPoolFeed",
    "SystemTimeProvider",
    "Token",
    "TradePlan",
    "TradeSizeOptimizer",
    "__version__",
    "build_execution_plan",
    "build_graph",
    "cycle_from_pools",
    "find_best_cycle",
    "find_cycles",
    "load_config",
    "load_pools",
    "optimal_amount",
    "validate",
]
