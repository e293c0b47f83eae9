"""
Single dispatch point for pool math.

Every public quoting function looks up the pool's ``kind`` tag in one table,
so adding a pool type means adding one module and one table entry.
"""

import math
from types import ModuleType
from typing import Dict

from ..exceptions import InvalidPool
from ..types import Pool, PoolKind, Token
from . import concentrated, constant_product, stable_swap
from .fixed_point import FEE_SCALE

_IMPLEMENTATIONS: Dict[PoolKind, ModuleType] = {
    PoolKind.CONSTANT_PRODUCT: constant_product,
    PoolKind.CONCENTRATED_LIQUIDITY: concentrated,
    PoolKind.STABLE_SWAP: stable_swap,
}


def _impl(pool: Pool) -> ModuleType:
    try:
        return _IMPLEMENTATIONS[pool.kind]
    except KeyError:
        raise InvalidPool(
            f"Unsupported pool kind {pool.kind!r}", pool_id=pool.pool_id
        ) from None


def validate_pool(pool: Pool) -> None:
    """
    Check a snapshot entry is structurally usable.

    Raises:
        InvalidPool: identical tokens, fee outside [0, FEE_SCALE), negative
            reserves or variant-specific problems
    """
    if pool.token0.address == pool.token1.address:
        raise InvalidPool(
            f"Pool {pool.pool_id} trades {pool.token0.symbol} against itself",
            pool_id=pool.pool_id,
        )
    if not 0 <= pool.fee_bps < FEE_SCALE:
        raise InvalidPool(
            f"Fee must be in [0, {FEE_SCALE}) bps: {pool.fee_bps}",
            pool_id=pool.pool_id,
        )
    _impl(pool).validate(pool)


def is_empty(pool: Pool) -> bool:
    """True when either side has no reserves/liquidity to trade against."""
    return _impl(pool).is_empty(pool)


def quote_output(pool: Pool, amount_in: int, token_in: Token) -> int:
    """
    Output amount for selling ``amount_in`` of ``token_in`` into ``pool``.

    Raises:
        InvalidPool: zero reserves or token not traded by the pool
        Overflow: intermediate value outside the uint256 range
    """
    return _impl(pool).quote_output(pool, amount_in, token_in)


def quote_input(pool: Pool, amount_out: int, token_in: Token) -> int:
    """Minimal ``token_in`` amount whose quoted output is at least ``amount_out``."""
    return _impl(pool).quote_input(pool, amount_out, token_in)


def marginal_rate(pool: Pool, amount_in: float, token_in: Token) -> float:
    """d(out)/d(in) after fee, at trade size ``amount_in``."""
    return _impl(pool).marginal_rate(pool, amount_in, token_in)


def real_output(pool: Pool, amount_in: float, token_in: Token) -> float:
    """
    Unrounded output for a real-valued input.

    Only the sizing search uses this, to chain marginal rates without the
    truncation of integer quotes. Plans are always re-quoted with
    ``quote_output``.
    """
    return _impl(pool).real_output(pool, amount_in, token_in)


def effective_rate(pool: Pool, token_in: Token) -> float:
    """Fee-adjusted spot exchange rate, used only for edge weights."""
    return marginal_rate(pool, 0.0, token_in)


def edge_weight(pool: Pool, token_in: Token) -> float:
    """-ln(effective rate); finite for any non-empty pool."""
    rate = effective_rate(pool, token_in)
    if rate <= 0 or not math.isfinite(rate):
        raise InvalidPool(
            f"Pool {pool.pool_id} has no usable rate for {token_in.symbol}",
            pool_id=pool.pool_id,
        )
    return -math.log(rate)


def apply_swap(pool: Pool, amount_in: int, token_in: Token) -> Pool:
    """Post-trade pool state. The input pool object is left untouched."""
    return _impl(pool).apply_swap(pool, amount_in, token_in)


def input_reserve(pool: Pool, token_in: Token) -> int:
    """Reserve (virtual reserve for V3) on the input side."""
    return _impl(pool).input_reserve(pool, token_in)


def price_impact(pool: Pool, amount_in: int, token_in: Token) -> float:
    """
    Relative drop of the marginal price caused by the trade.

    Compares the fee-adjusted marginal rate before the swap with the marginal
    rate of the post-trade pool. Diagnostics only.

    Returns:
        Impact as a fraction (0.025 = 2.5%), clamped to [0, 1]
    """
    if amount_in == 0:
        return 0.0
    before = effective_rate(pool, token_in)
    after_pool = apply_swap(pool, amount_in, token_in)
    if is_empty(after_pool):
        return 1.0
    after = effective_rate(after_pool, token_in)
    if before <= 0:
        return 1.0
    return max(0.0, min(1.0, 1.0 - after / before))
