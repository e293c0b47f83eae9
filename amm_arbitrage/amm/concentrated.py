"""
Uniswap V3 style concentrated-liquidity quoting.

Inside the active tick range a V3 pool behaves like a constant-product pool on
its virtual reserves:

    x_virtual = L * 2**96 / sqrtPriceX96      (token0)
    y_virtual = L * sqrtPriceX96 / 2**96      (token1)

Quotes ignore tick crossings, so large trades are approximate. The fee is
taken from the input and, unlike V2, does not accrue to the active liquidity.
"""

import dataclasses
from typing import Tuple

from ..exceptions import InvalidPool
from ..types import ConcentratedLiquidityPool, Token
from . import constant_product
from .fixed_point import FEE_SCALE, Q96, checked_add, mul_div, require_uint


def validate(pool: ConcentratedLiquidityPool) -> None:
    if pool.liquidity < 0 or pool.sqrt_price_x96 < 0:
        raise InvalidPool(
            f"Negative liquidity or price in pool {pool.pool_id}",
            pool_id=pool.pool_id,
        )


def is_empty(pool: ConcentratedLiquidityPool) -> bool:
    return pool.liquidity <= 0 or pool.sqrt_price_x96 <= 0


def virtual_reserves(pool: ConcentratedLiquidityPool) -> Tuple[int, int]:
    """Return (x_virtual, y_virtual) of the active range."""
    if is_empty(pool):
        raise InvalidPool(
            f"Pool {pool.pool_id} has no active liquidity", pool_id=pool.pool_id
        )
    x_virtual = mul_div(pool.liquidity, Q96, pool.sqrt_price_x96)
    y_virtual = mul_div(pool.liquidity, pool.sqrt_price_x96, Q96)
    if x_virtual == 0 or y_virtual == 0:
        raise InvalidPool(
            f"Pool {pool.pool_id} virtual reserves round to zero",
            pool_id=pool.pool_id,
        )
    return x_virtual, y_virtual


def _reserves(pool: ConcentratedLiquidityPool, token_in: Token) -> Tuple[int, int]:
    x_virtual, y_virtual = virtual_reserves(pool)
    if pool.side_of(token_in) == 0:
        return x_virtual, y_virtual
    return y_virtual, x_virtual


def quote_output(
    pool: ConcentratedLiquidityPool, amount_in: int, token_in: Token
) -> int:
    require_uint(amount_in, "amount_in")
    reserve_in, reserve_out = _reserves(pool, token_in)
    if amount_in == 0:
        return 0
    return constant_product.get_amount_out(
        amount_in, reserve_in, reserve_out, pool.fee_bps
    )


def quote_input(
    pool: ConcentratedLiquidityPool, amount_out: int, token_in: Token
) -> int:
    require_uint(amount_out, "amount_out")
    reserve_in, reserve_out = _reserves(pool, token_in)
    if amount_out == 0:
        return 0
    if amount_out >= reserve_out:
        raise InvalidPool(
            f"Requested output {amount_out} exceeds active range of {pool.pool_id}",
            pool_id=pool.pool_id,
        )
    return constant_product.get_amount_in(
        amount_out, reserve_in, reserve_out, pool.fee_bps
    )


def marginal_rate(
    pool: ConcentratedLiquidityPool, amount_in: float, token_in: Token
) -> float:
    reserve_in, reserve_out = _reserves(pool, token_in)
    gamma = (FEE_SCALE - pool.fee_bps) / FEE_SCALE
    r_in = float(reserve_in)
    return gamma * r_in * float(reserve_out) / (r_in + gamma * amount_in) ** 2


def real_output(
    pool: ConcentratedLiquidityPool, amount_in: float, token_in: Token
) -> float:
    reserve_in, reserve_out = _reserves(pool, token_in)
    gamma = (FEE_SCALE - pool.fee_bps) / FEE_SCALE
    scaled_in = gamma * amount_in
    return scaled_in * float(reserve_out) / (float(reserve_in) + scaled_in)


def apply_swap(
    pool: ConcentratedLiquidityPool, amount_in: int, token_in: Token
) -> ConcentratedLiquidityPool:
    """Move the price along the virtual curve; liquidity is unchanged."""
    require_uint(amount_in, "amount_in")
    x_virtual, y_virtual = virtual_reserves(pool)
    amount_after_fee = amount_in * (FEE_SCALE - pool.fee_bps) // FEE_SCALE
    if pool.side_of(token_in) == 0:
        new_x = checked_add(x_virtual, amount_after_fee)
        sqrt_price = mul_div(pool.liquidity, Q96, new_x)
    else:
        new_y = checked_add(y_virtual, amount_after_fee)
        sqrt_price = mul_div(new_y, Q96, pool.liquidity)
    return dataclasses.replace(pool, sqrt_price_x96=sqrt_price)


def input_reserve(pool: ConcentratedLiquidityPool, token_in: Token) -> int:
    return _reserves(pool, token_in)[0]
