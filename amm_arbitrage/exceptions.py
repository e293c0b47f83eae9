"""
Exception hierarchy for the AMM arbitrage engine.

Detection-time errors (overflow, invalid pools, optimizer failures) are local to
a single candidate and never stop a detection pass. Only configuration errors
are fatal, and only at startup.
"""

from typing import Any, Dict, Optional


class ArbitrageEngineError(Exception):
    """Base exception for all arbitrage engine related errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(ArbitrageEngineError):
    """Raised when engine configuration is missing or invalid."""

    pass


class Overflow(ArbitrageEngineError, ArithmeticError):
    """Raised when a fixed-point computation leaves the representable range."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.operation = operation


class InvalidPool(ArbitrageEngineError):
    """Raised when a pool snapshot cannot be quoted (empty or malformed)."""

    def __init__(
        self,
        message: str,
        pool_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.pool_id = pool_id


class OptimizerError(ArbitrageEngineError):
    """Raised when the trade-size optimizer cannot produce an amount."""

    pass


class NoBracket(OptimizerError):
    """Raised when the profit function has no usable sign change to bracket."""

    def __init__(
        self,
        message: str,
        lower: Optional[float] = None,
        upper: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.lower = lower
        self.upper = upper


class MaxIterationsExceeded(OptimizerError):
    """Raised when an iterative solver does not converge in time."""

    def __init__(
        self,
        message: str,
        iterations: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.iterations = iterations


class SettlementError(ArbitrageEngineError):
    """Raised when a settlement state machine is driven incorrectly."""

    def __init__(
        self,
        message: str,
        plan_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.plan_id = plan_id


class ExecutionAborted(SettlementError):
    """Raised when a hop's realized output breaches its minimum-output floor."""

    def __init__(
        self,
        message: str,
        plan_id: Optional[str] = None,
        hop_index: Optional[int] = None,
        expected: Optional[int] = None,
        actual: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, plan_id, details)
        self.hop_index = hop_index
        self.expected = expected
        self.actual = actual
