"""
Uniswap V2 style constant-product math.

Implements swap quoting using the x*y=k invariant with the fee taken from the
input, exactly as the pair contract computes it:

    amountInWithFee = amountIn * (FEE_SCALE - feeBps)
    amountOut = amountInWithFee * reserveOut / (reserveIn * FEE_SCALE + amountInWithFee)

All amounts are raw integer token units.
"""

import dataclasses

from ..exceptions import InvalidPool
from ..types import ConstantProductPool, Token
from .fixed_point import (
    FEE_SCALE,
    checked_add,
    checked_mul,
    checked_sub,
    div_up,
    require_uint,
)


def validate(pool: ConstantProductPool) -> None:
    """Raise InvalidPool for negative reserves."""
    if pool.reserve0 < 0 or pool.reserve1 < 0:
        raise InvalidPool(
            f"Negative reserves in pool {pool.pool_id}: "
            f"{pool.reserve0}/{pool.reserve1}",
            pool_id=pool.pool_id,
        )


def is_empty(pool: ConstantProductPool) -> bool:
    return pool.reserve0 <= 0 or pool.reserve1 <= 0


def _reserves(pool: ConstantProductPool, token_in: Token):
    reserve_in, reserve_out = pool.reserves_for(token_in)
    if reserve_in <= 0 or reserve_out <= 0:
        raise InvalidPool(
            f"Reserves must be positive: in={reserve_in}, out={reserve_out}",
            pool_id=pool.pool_id,
        )
    return reserve_in, reserve_out


def get_amount_out(
    amount_in: int, reserve_in: int, reserve_out: int, fee_bps: int
) -> int:
    """
    Calculate output amount for a V2 swap.

    Args:
        amount_in: Input token amount (raw units)
        reserve_in: Reserve of input token
        reserve_out: Reserve of output token
        fee_bps: Fee in basis points (30 for 0.3%)

    Returns:
        Output token amount (raw units), rounded down

    Raises:
        Overflow: If an intermediate product leaves the uint256 range
    """
    amount_in_with_fee = checked_mul(amount_in, FEE_SCALE - fee_bps)
    numerator = checked_mul(amount_in_with_fee, reserve_out)
    denominator = checked_add(checked_mul(reserve_in, FEE_SCALE), amount_in_with_fee)
    return numerator // denominator


def get_amount_in(
    amount_out: int, reserve_in: int, reserve_out: int, fee_bps: int
) -> int:
    """
    Minimal input whose get_amount_out is at least ``amount_out``.

    Solving the swap formula for amountIn gives
    amountIn >= amountOut * reserveIn * FEE_SCALE / ((reserveOut - amountOut) * (FEE_SCALE - fee)).
    """
    numerator = checked_mul(checked_mul(amount_out, reserve_in), FEE_SCALE)
    denominator = checked_mul(checked_sub(reserve_out, amount_out), FEE_SCALE - fee_bps)
    return div_up(numerator, denominator)


def quote_output(pool: ConstantProductPool, amount_in: int, token_in: Token) -> int:
    require_uint(amount_in, "amount_in")
    reserve_in, reserve_out = _reserves(pool, token_in)
    if amount_in == 0:
        return 0
    return get_amount_out(amount_in, reserve_in, reserve_out, pool.fee_bps)


def quote_input(pool: ConstantProductPool, amount_out: int, token_in: Token) -> int:
    require_uint(amount_out, "amount_out")
    reserve_in, reserve_out = _reserves(pool, token_in)
    if amount_out == 0:
        return 0
    if amount_out >= reserve_out:
        raise InvalidPool(
            f"Requested output {amount_out} exhausts reserve {reserve_out}",
            pool_id=pool.pool_id,
        )
    return get_amount_in(amount_out, reserve_in, reserve_out, pool.fee_bps)


def marginal_rate(pool: ConstantProductPool, amount_in: float, token_in: Token) -> float:
    """
    Derivative d(amountOut)/d(amountIn) at ``amount_in``.

    g * Rin * Rout / (Rin + g * x)^2 with g = 1 - fee. At x = 0 this is the
    fee-adjusted spot rate used for edge weights.
    """
    reserve_in, reserve_out = _reserves(pool, token_in)
    gamma = (FEE_SCALE - pool.fee_bps) / FEE_SCALE
    r_in = float(reserve_in)
    return gamma * r_in * float(reserve_out) / (r_in + gamma * amount_in) ** 2


def real_output(pool: ConstantProductPool, amount_in: float, token_in: Token) -> float:
    """Unrounded swap output g * x * Rout / (Rin + g * x), for the sizing search."""
    reserve_in, reserve_out = _reserves(pool, token_in)
    gamma = (FEE_SCALE - pool.fee_bps) / FEE_SCALE
    scaled_in = gamma * amount_in
    return scaled_in * float(reserve_out) / (float(reserve_in) + scaled_in)


def apply_swap(
    pool: ConstantProductPool, amount_in: int, token_in: Token
) -> ConstantProductPool:
    """Return the pool state after the swap. The fee stays in the reserves."""
    amount_out = quote_output(pool, amount_in, token_in)
    if pool.side_of(token_in) == 0:
        return dataclasses.replace(
            pool,
            reserve0=checked_add(pool.reserve0, amount_in),
            reserve1=checked_sub(pool.reserve1, amount_out),
        )
    return dataclasses.replace(
        pool,
        reserve0=checked_sub(pool.reserve0, amount_out),
        reserve1=checked_add(pool.reserve1, amount_in),
    )


def input_reserve(pool: ConstantProductPool, token_in: Token) -> int:
    return pool.reserves_for(token_in)[0]
