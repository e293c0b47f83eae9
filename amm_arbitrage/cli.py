"""
AMM arbitrage engine CLI.

Loads pools from a YAML fixture, runs detection passes and, with --execute,
settles the best plans against the in-memory pool store.

Usage:
    amm-arb --pools configs/pools.example.yaml --once
    amm-arb --config configs/engine.example.yaml --pools configs/pools.example.yaml
    amm-arb --pools configs/pools.example.yaml --once --execute --debug
"""

import argparse
import sys
from typing import List, Optional

from . import logging_config
from .config import load_config, load_pools
from .engine import ArbitrageEngine
from .exceptions import ArbitrageEngineError, ConfigurationError
from .interfaces import StaticPoolFeed
from .settlement import PaperSettlement
from .utils import get_logger
from .version import get_version

logger = get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="amm-arb",
        description="Multi-hop AMM arbitrage detection and trade sizing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Single detection pass over a pool fixture
  amm-arb --pools configs/pools.example.yaml --once

  # Continuous paper execution with a custom engine config
  amm-arb --config configs/engine.example.yaml --pools configs/pools.example.yaml --execute
        """,
    )
    parser.add_argument("--config", help="Engine config YAML (defaults + ARB_* env if omitted)")
    parser.add_argument("--pools", required=True, help="Pools YAML file")
    parser.add_argument(
        "--once", action="store_true", help="Run a single pass and exit"
    )
    parser.add_argument(
        "--execute",
        action="store_true",
        help="Settle plans against the paper pool store instead of a dry run",
    )
    parser.add_argument(
        "--drift-bps",
        type=int,
        default=0,
        help="Adverse output drift applied per hop in paper settlement",
    )
    parser.add_argument(
        "--max-passes", type=int, default=None, help="Stop after this many passes"
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    parser.add_argument(
        "--quiet", action="store_true", help="Only log warnings and errors"
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {get_version()}"
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)

    if args.debug:
        logging_config.setup_debug()
    elif args.quiet:
        logging_config.setup_minimal()
    else:
        logging_config.setup()

    try:
        config = load_config(args.config)
        pools = load_pools(args.pools)
    except ConfigurationError as e:
        logger.error(f"Config error: {e}")
        return 1

    overrides = {}
    if args.once:
        overrides["once"] = True
    if args.execute:
        overrides.update(enable_execution=True, dry_run=False)
    if overrides:
        config = config.model_copy(update=overrides)

    engine = ArbitrageEngine(config, feed=StaticPoolFeed(pools))
    engine.settlement = PaperSettlement(
        engine.store,
        adverse_drift_bps=args.drift_bps,
        dry_run=config.dry_run,
        time_provider=engine.time_provider,
    )

    mode = "paper execution" if config.enable_execution else "detection only"
    logger.info(
        f"Starting engine ({mode}): {len(pools)} pools, max_hops={config.max_hops}, "
        f"poll={config.poll_interval_sec}s"
    )

    try:
        results = engine.run(max_passes=args.max_passes)
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        return 0
    except ArbitrageEngineError as e:
        logger.error(f"Engine error: {type(e).__name__}: {e}")
        return 1

    plans = sum(len(r.plans) for r in results)
    logger.info(f"Finished {len(results)} passes, {plans} plans emitted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
