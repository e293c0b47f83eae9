"""
Logging configuration for the engine and CLI.

Usage:
    from amm_arbitrage import logging_config
    logging_config.setup()
"""

import logging
import sys


def setup(level=logging.INFO):
    """
    Configure root logging with a short, readable format.

    - HH:MM:SS timestamps
    - Quiet third-party loggers (aiohttp access log, asyncio)
    """
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-7s | %(message)s", datefmt="%H:%M:%S"
    )
    console.setFormatter(formatter)
    root.addHandler(console)

    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logging.getLogger("__main__").setLevel(level)
    logging.getLogger("amm_arbitrage").setLevel(level)


def setup_minimal():
    """Only warnings and errors."""
    setup(level=logging.WARNING)


def setup_debug():
    """Verbose logging, including per-candidate rejections and HTTP access."""
    setup(level=logging.DEBUG)
    logging.getLogger("aiohttp.access").setLevel(logging.INFO)
