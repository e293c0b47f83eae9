"""
Core data types for AMM arbitrage detection.

Pools are a tagged variant over three frozen dataclasses. Every monetary
quantity is an ``int`` in the token's raw base units; floats only appear in
log-space edge weights.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from .exceptions import InvalidPool


class PoolKind(Enum):
    """Type tag of an AMM pool."""

    CONSTANT_PRODUCT = "constant_product"
    CONCENTRATED_LIQUIDITY = "concentrated_liquidity"
    STABLE_SWAP = "stable_swap"


@dataclass(frozen=True)
class Token:
    """
    An ERC-20 style token.

    Attributes:
        address: Checksum address (graph node key)
        symbol: Human-readable ticker (e.g., "WETH")
        decimals: Decimal precision of the raw integer units
    """

    address: str
    symbol: str
    decimals: int = 18

    def __str__(self) -> str:
        return self.symbol


class _PoolMixin:
    """Token-side helpers shared by every pool variant."""

    pool_id: str
    token0: Token
    token1: Token

    @property
    def tokens(self) -> Tuple[Token, Token]:
        return (self.token0, self.token1)

    @property
    def pair_name(self) -> str:
        return f"{self.token0.symbol}/{self.token1.symbol}"

    def side_of(self, token: Token) -> int:
        """Return 0 or 1 for the side of ``token``; raise if not in the pool."""
        if token.address == self.token0.address:
            return 0
        if token.address == self.token1.address:
            return 1
        raise InvalidPool(
            f"Token {token.symbol} is not traded by pool {self.pool_id}",
            pool_id=self.pool_id,
        )

    def other_token(self, token: Token) -> Token:
        return self.token1 if self.side_of(token) == 0 else self.token0


@dataclass(frozen=True)
class ConstantProductPool(_PoolMixin):
    """Uniswap V2 style x*y=k pool."""

    pool_id: str
    token0: Token
    token1: Token
    reserve0: int
    reserve1: int
    fee_bps: int = 30
    dex: str = "uniswap_v2"
    kind: PoolKind = field(default=PoolKind.CONSTANT_PRODUCT, init=False)

    def reserves_for(self, token_in: Token) -> Tuple[int, int]:
        """Return (reserve_in, reserve_out) for a swap selling ``token_in``."""
        if self.side_of(token_in) == 0:
            return self.reserve0, self.reserve1
        return self.reserve1, self.reserve0


@dataclass(frozen=True)
class ConcentratedLiquidityPool(_PoolMixin):
    """
    Uniswap V3 style pool, quoted on the virtual reserves of the active range.

    Attributes:
        liquidity: Active in-range liquidity L
        sqrt_price_x96: sqrt(token1/token0 price) as a Q64.96 fixed-point value
    """

    pool_id: str
    token0: Token
    token1: Token
    liquidity: int
    sqrt_price_x96: int
    fee_bps: int = 30
    dex: str = "uniswap_v3"
    kind: PoolKind = field(default=PoolKind.CONCENTRATED_LIQUIDITY, init=False)


@dataclass(frozen=True)
class StableSwapPool(_PoolMixin):
    """Curve style two-coin StableSwap pool."""

    pool_id: str
    token0: Token
    token1: Token
    balance0: int
    balance1: int
    amplification: int = 100
    fee_bps: int = 4
    dex: str = "curve"
    kind: PoolKind = field(default=PoolKind.STABLE_SWAP, init=False)

    def balances_for(self, token_in: Token) -> Tuple[int, int]:
        if self.side_of(token_in) == 0:
            return self.balance0, self.balance1
        return self.balance1, self.balance0


Pool = Union[ConstantProductPool, ConcentratedLiquidityPool, StableSwapPool]


@dataclass(frozen=True)
class Edge:
    """A directed swap through one pool. weight = -ln(rate after fee)."""

    token_in: Token
    token_out: Token
    pool: Pool
    weight: float

    @property
    def pool_id(self) -> str:
        return self.pool.pool_id

    @property
    def rate(self) -> float:
        return math.exp(-self.weight)


@dataclass(frozen=True)
class Cycle:
    """
    A closed sequence of swaps starting and ending in the same token.

    The edges carry the pool objects of the snapshot the cycle was detected
    on, so sizing and validation always quote against that snapshot.
    """

    edges: Tuple[Edge, ...]

    def __post_init__(self):
        if not self.edges:
            raise ValueError("A cycle needs at least one edge")
        for prev, nxt in zip(self.edges, self.edges[1:]):
            if prev.token_out.address != nxt.token_in.address:
                raise ValueError(
                    f"Edges do not chain: {prev.token_out.symbol} -> "
                    f"{nxt.token_in.symbol}"
                )
        if self.edges[-1].token_out.address != self.edges[0].token_in.address:
            raise ValueError("Cycle does not return to its start token")

    @property
    def start_token(self) -> Token:
        return self.edges[0].token_in

    @property
    def hops(self) -> int:
        return len(self.edges)

    @property
    def total_weight(self) -> float:
        return sum(edge.weight for edge in self.edges)

    @property
    def is_arbitrage(self) -> bool:
        return self.total_weight < 0

    @property
    def profit_ratio(self) -> float:
        """Theoretical multiplicative edge of the loop at zero size."""
        return math.exp(-self.total_weight)

    @property
    def pools(self) -> Tuple[Pool, ...]:
        return tuple(edge.pool for edge in self.edges)

    @property
    def pool_ids(self) -> Tuple[str, ...]:
        return tuple(edge.pool_id for edge in self.edges)

    @property
    def path(self) -> List[str]:
        return [edge.token_in.symbol for edge in self.edges] + [
            self.start_token.symbol
        ]

    @property
    def key(self) -> Tuple[str, ...]:
        """Rotation-invariant identity: the pool sequence starting at its minimum."""
        ids = [f"{e.pool_id}:{e.token_in.address}" for e in self.edges]
        pivot = ids.index(min(ids))
        return tuple(ids[pivot:] + ids[:pivot])

    def describe(self) -> str:
        return " -> ".join(self.path)


@dataclass(frozen=True)
class HopQuote:
    """Expected result of one hop at the planned input size."""

    hop_index: int
    pool_id: str
    dex: str
    token_in: Token
    token_out: Token
    amount_in: int
    expected_out: int


@dataclass(frozen=True)
class TradePlan:
    """
    A validated, sized arbitrage opportunity.

    Invariant: repayment <= final_output for the captured snapshot.
    """

    cycle: Cycle
    amount_in: int
    hops: Tuple[HopQuote, ...]
    final_output: int
    loan_premium: int
    repayment: int
    settlement_cost: int
    gross_profit: int
    net_profit: int
    snapshot_version: int
    snapshot_taken_at: float
    created_at: float

    @property
    def token(self) -> Token:
        return self.cycle.start_token

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.cycle.describe(),
            "pools": list(self.cycle.pool_ids),
            "token": self.token.symbol,
            "amount_in": self.amount_in,
            "expected_outputs": [hop.expected_out for hop in self.hops],
            "final_output": self.final_output,
            "loan_premium": self.loan_premium,
            "repayment": self.repayment,
            "settlement_cost": self.settlement_cost,
            "gross_profit": self.gross_profit,
            "net_profit": self.net_profit,
            "snapshot_version": self.snapshot_version,
            "snapshot_taken_at": self.snapshot_taken_at,
        }


class RejectReason(Enum):
    """Classified cause for a validator rejection."""

    UNPROFITABLE = "unprofitable"
    INSUFFICIENT_LIQUIDITY = "insufficient_liquidity"
    STALE_STATE = "stale_state"


@dataclass(frozen=True)
class Rejected:
    """An opportunity the validator refused, with its structured reason."""

    cycle: Cycle
    amount: int
    reason: RejectReason
    detail: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.cycle.describe(),
            "pools": list(self.cycle.pool_ids),
            "amount": self.amount,
            "reason": self.reason.value,
            "detail": self.detail,
            **self.details,
        }


@dataclass(frozen=True)
class ExecutionReceipt:
    """
    Outcome reported by a settlement collaborator.

    A receipt that is not ``success`` is either ``aborted`` (a hop breached its
    floor or the output could not repay the loan), a ``dry_run``, or a plain
    failure such as a missed deadline or a pool that could not be quoted.
    """

    plan_id: str
    success: bool
    realized_profit: int
    cost_incurred: int
    hops_completed: int = 0
    error: Optional[str] = None
    tx_ref: Optional[str] = None
    aborted: bool = False
    dry_run: bool = False

    @property
    def outcome(self) -> str:
        if self.success:
            return "success"
        if self.aborted:
            return "aborted"
        if self.dry_run:
            return "dry_run"
        return "failed"
