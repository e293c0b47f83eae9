"""
Common helpers for the arbitrage engine.

Module loggers, timestamps and exact fraction scaling.
"""

import logging
import math
import time
from fractions import Fraction
from typing import Any, Dict, Optional, Union

BPS_SCALE = 10_000


# Timestamp utilities
def get_current_timestamp() -> float:
    """Get current Unix timestamp as float."""
    return time.time()


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 60:
        return f"{seconds:.2f}s"
    elif seconds < 3600:
        minutes = seconds / 60
        return f"{minutes:.1f}m"
    else:
        hours = seconds / 3600
        return f"{hours:.1f}h"


# Math utilities
def fraction_floor(amount: int, fraction: float) -> int:
    """floor(amount * fraction) with the fraction taken at its decimal value."""
    return math.floor(amount * Fraction(str(fraction)))


# Logging utilities
def get_logger(
    name: str,
    level: Optional[Union[str, int]] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> Union[logging.Logger, logging.LoggerAdapter]:
    """
    Get a logger for ``name`` with optional fixed context.

    Handlers and format are configured once by ``logging_config.setup()``;
    module loggers only propagate to the root.

    Args:
        name: Logger name (typically __name__)
        level: Explicit level for this logger, inherited when None
        extra: Context fields prefixed to every message (e.g. plan id)

    Returns:
        Logger, or a LoggerAdapter when ``extra`` is given
    """
    logger = logging.getLogger(name)

    if level is not None:
        logger.setLevel(level)

    if extra:
        return _ContextAdapter(logger, extra)
    return logger


class _ContextAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        context = " ".join(f"{k}={v}" for k, v in self.extra.items())
        return f"{context} | {msg}", kwargs
