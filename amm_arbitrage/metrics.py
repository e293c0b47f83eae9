"""
Prometheus metrics for the arbitrage engine.

Every dropped opportunity is counted with its classified reason, so the
metrics alone show where candidates are lost between detection and
execution.
"""

import logging
import threading
import time
from typing import Any, Dict, Optional

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

PREFIX = "amm_arbitrage"


class EngineMetrics:
    """
    Detection and execution metrics.

    Provides Prometheus-compatible metrics for:
    - Detection passes and their duration
    - Cycles detected, plans emitted
    - Rejections by reason and failures by error type
    - Executions by outcome and realized profit
    - Snapshot age
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize metrics with custom registry or default"""
        self.registry = registry or REGISTRY
        self._initialize_metrics()

        self._app = None
        self._runner = None
        self._site = None

        self._lock = threading.RLock()

    def _initialize_metrics(self):
        # === DETECTION ===
        self.passes_total = Counter(
            f"{PREFIX}_passes_total",
            "Total detection passes run",
            registry=self.registry,
        )

        self.pass_duration_seconds = Histogram(
            f"{PREFIX}_pass_duration_seconds",
            "Wall time of one detection pass",
            buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
            registry=self.registry,
        )

        self.cycles_detected_total = Counter(
            f"{PREFIX}_cycles_detected_total",
            "Negative cycles found by the detector",
            ["hops"],
            registry=self.registry,
        )

        self.plans_emitted_total = Counter(
            f"{PREFIX}_plans_emitted_total",
            "Validated trade plans emitted",
            ["token"],
            registry=self.registry,
        )

        self.plan_net_profit = Histogram(
            f"{PREFIX}_plan_net_profit",
            "Net profit of emitted plans in start-token units",
            ["token"],
            buckets=[0, 1e2, 1e4, 1e6, 1e9, 1e12, 1e15, 1e18, 1e21],
            registry=self.registry,
        )

        # === DROPS ===
        self.rejections_total = Counter(
            f"{PREFIX}_rejections_total",
            "Opportunities rejected by the validator",
            ["reason"],
            registry=self.registry,
        )

        self.failures_total = Counter(
            f"{PREFIX}_failures_total",
            "Candidates dropped because of a detection-time error",
            ["error_type"],
            registry=self.registry,
        )

        self.invalid_pools_total = Counter(
            f"{PREFIX}_invalid_pools_total",
            "Pools skipped as invalid when publishing a snapshot",
            registry=self.registry,
        )

        # === STATE ===
        self.snapshot_age_seconds = Gauge(
            f"{PREFIX}_snapshot_age_seconds",
            "Age of the snapshot used by the last pass",
            registry=self.registry,
        )

        self.snapshot_pools = Gauge(
            f"{PREFIX}_snapshot_pools",
            "Pools in the current snapshot",
            registry=self.registry,
        )

        # === EXECUTION ===
        self.executions_total = Counter(
            f"{PREFIX}_executions_total",
            "Plans handed to settlement, by outcome",
            ["outcome"],
            registry=self.registry,
        )

        self.realized_profit_total = Counter(
            f"{PREFIX}_realized_profit_total",
            "Cumulative realized profit of successful executions",
            ["token"],
            registry=self.registry,
        )

        self.last_activity_timestamp = Gauge(
            f"{PREFIX}_last_activity_timestamp",
            "Unix timestamp of the last completed pass",
            registry=self.registry,
        )

    # === RECORDING ===

    def record_pass(self, duration_seconds: float, snapshot_age: float, pools: int):
        with self._lock:
            self.passes_total.inc()
            self.pass_duration_seconds.observe(duration_seconds)
            self.snapshot_age_seconds.set(snapshot_age)
            self.snapshot_pools.set(pools)
            self.last_activity_timestamp.set(time.time())

    def record_cycle_detected(self, hops: int):
        with self._lock:
            self.cycles_detected_total.labels(hops=str(hops)).inc()

    def record_plan(self, token: str, net_profit: int):
        with self._lock:
            self.plans_emitted_total.labels(token=token).inc()
            self.plan_net_profit.labels(token=token).observe(float(net_profit))

    def record_rejection(self, reason: str):
        with self._lock:
            self.rejections_total.labels(reason=reason).inc()

    def record_failure(self, error_type: str):
        with self._lock:
            self.failures_total.labels(error_type=error_type).inc()

    def record_invalid_pools(self, count: int):
        if count > 0:
            with self._lock:
                self.invalid_pools_total.inc(count)

    def record_execution(self, outcome: str, token: str = "", realized_profit: int = 0):
        """Record a settlement outcome: "success", "aborted", "failed" or "dry_run"."""
        with self._lock:
            self.executions_total.labels(outcome=outcome).inc()
            if outcome == "success" and realized_profit > 0:
                self.realized_profit_total.labels(token=token).inc(realized_profit)

    # === SERVER MANAGEMENT ===

    async def start_server(
        self, port: int = 8000, host: str = "0.0.0.0", path: str = "/metrics"
    ):
        """Start Prometheus metrics HTTP server"""
        try:
            self._app = web.Application()
            self._app.router.add_get(path, self._metrics_handler)
            self._app.router.add_get("/health", self._health_handler)

            self._runner = web.AppRunner(self._app)
            await self._runner.setup()

            self._site = web.TCPSite(self._runner, host, port)
            await self._site.start()

            logger.info(f"Metrics server started on http://{host}:{port}{path}")
            return True

        except OSError as e:
            logger.error(f"Failed to start metrics server: {e}")
            return False

    async def stop_server(self):
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        logger.info("Metrics server stopped")

    async def _metrics_handler(self, request):
        metrics_output = generate_latest(self.registry)
        # aiohttp rejects a charset inside content_type
        content_type = CONTENT_TYPE_LATEST.split(";")[0]
        return web.Response(
            text=metrics_output.decode("utf-8"), content_type=content_type
        )

    async def _health_handler(self, request):
        return web.json_response({"status": "healthy", "service": "amm_arbitrage"})

    def get_metrics_summary(self) -> Dict[str, Any]:
        return {
            "metrics_available": True,
            "registry_collectors": len(list(self.registry.collect())),
            "timestamp": time.time(),
        }


_global_metrics: Optional[EngineMetrics] = None


def get_metrics() -> EngineMetrics:
    """Get or create global metrics instance"""
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = EngineMetrics()
    return _global_metrics


def initialize_metrics(registry: Optional[CollectorRegistry] = None) -> EngineMetrics:
    """Initialize global metrics with custom registry"""
    global _global_metrics
    _global_metrics = EngineMetrics(registry)
    return _global_metrics
