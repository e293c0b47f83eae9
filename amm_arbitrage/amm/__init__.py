"""
AMM math for the pool types the engine understands.
"""

from .fixed_point import FEE_SCALE, MAX_UINT256, Q96
from .quoting import (
    apply_swap,
    edge_weight,
    effective_rate,
    input_reserve,
    is_empty,
    marginal_rate,
    price_impact,
    quote_input,
    quote_output,
    real_output,
    validate_pool,
)

__all__ = [
    "FEE_SCALE",
    "MAX_UINT256",
    "Q96",
    "apply_swap",
    "edge_weight",
    "effective_rate",
    "input_reserve",
    "is_empty",
    "marginal_rate",
    "price_impact",
    "quote_input",
    "quote_output",
    "real_output",
    "validate_pool",
]
