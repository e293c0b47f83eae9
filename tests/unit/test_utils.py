"""
Unit tests for amm_arbitrage.utils module.
"""

import logging

from amm_arbitrage.utils import (
    fraction_floor,
    format_duration,
    get_current_timestamp,
    get_logger,
)


class TestTimestampUtils:
    def test_get_current_timestamp(self):
        timestamp = get_current_timestamp()
        assert isinstance(timestamp, float)
        assert timestamp > 0

    def test_format_duration(self):
        assert format_duration(30.5) == "30.50s"
        assert format_duration(90) == "1.5m"
        assert format_duration(7200) == "2.0h"


class TestMathUtils:
    def test_fraction_floor_is_exact(self):
        # 0.9 as a float is slightly above 0.9, Fraction("0.9") is not
        assert fraction_floor(10, 0.9) == 9
        assert fraction_floor(10**30, 0.9) == 9 * 10**29
        assert fraction_floor(7, 0.5) == 3
        assert fraction_floor(100, 1.0) == 100


class TestLoggingUtils:
    def test_get_logger(self):
        logger = get_logger("amm_arbitrage.test")
        assert isinstance(logger, logging.Logger)
        assert logger.name == "amm_arbitrage.test"
        assert not logger.handlers

    def test_get_logger_with_level(self):
        logger = get_logger("amm_arbitrage.test_level", level=logging.DEBUG)
        assert logger.level == logging.DEBUG

    def test_get_logger_with_context(self, caplog):
        logger = get_logger("amm_arbitrage.test_ctx", extra={"plan": "p1"})

        with caplog.at_level(logging.INFO, logger="amm_arbitrage.test_ctx"):
            logger.info("executing")

        assert isinstance(logger, logging.LoggerAdapter)
        assert "plan=p1 | executing" in caplog.text

