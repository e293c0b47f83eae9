"""Shared fixtures for pool, cycle and engine tests."""

import pytest
from prometheus_client import CollectorRegistry

from amm_arbitrage.interfaces import DeterministicTimeProvider, RecordingSink
from amm_arbitrage.metrics import EngineMetrics
from amm_arbitrage.types import ConstantProductPool, Token

TOKEN_A = Token(address="0x000000000000000000000000000000000000000a", symbol="A")
TOKEN_B = Token(address="0x000000000000000000000000000000000000000b", symbol="B")
TOKEN_C = Token(address="0x000000000000000000000000000000000000000c", symbol="C")


def cp_pool(pool_id, token0, token1, reserve0, reserve1, fee_bps=30):
    return ConstantProductPool(
        pool_id=pool_id,
        token0=token0,
        token1=token1,
        reserve0=reserve0,
        reserve1=reserve1,
        fee_bps=fee_bps,
    )


@pytest.fixture
def tokens():
    return TOKEN_A, TOKEN_B, TOKEN_C


@pytest.fixture
def profitable_pair():
    """ab-1 sells A for ~2 B, ba-2 buys A back at ~1.77 A per B."""
    first = cp_pool("ab-1", TOKEN_A, TOKEN_B, 1_000_000, 2_000_000)
    second = cp_pool("ba-2", TOKEN_B, TOKEN_A, 1_100_000, 1_950_000)
    return first, second


@pytest.fixture
def balanced_pair():
    first = cp_pool("ab-1", TOKEN_A, TOKEN_B, 1_000_000, 2_000_000)
    second = cp_pool("ab-2", TOKEN_A, TOKEN_B, 1_000_000, 2_000_000)
    return first, second


@pytest.fixture
def triangle_pools():
    return [
        cp_pool("ab", TOKEN_A, TOKEN_B, 100, 100),
        cp_pool("bc", TOKEN_B, TOKEN_C, 100, 100),
        cp_pool("ca", TOKEN_C, TOKEN_A, 90, 110),
    ]


@pytest.fixture
def clock():
    return DeterministicTimeProvider(start_time=1_700_000_000.0)


@pytest.fixture
def test_registry():
    return CollectorRegistry()


@pytest.fixture
def metrics(test_registry):
    return EngineMetrics(test_registry)


@pytest.fixture
def sink():
    return RecordingSink()
