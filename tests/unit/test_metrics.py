"""
Unit tests for Prometheus metrics
"""

import threading

import aiohttp
import aiohttp.test_utils
import pytest
from aiohttp import web
from prometheus_client import CollectorRegistry, generate_latest

from amm_arbitrage.metrics import EngineMetrics, get_metrics, initialize_metrics


class TestEngineMetrics:
    """Test EngineMetrics functionality"""

    def test_initialization(self, metrics):
        assert metrics.registry is not None
        assert hasattr(metrics, "passes_total")
        assert hasattr(metrics, "rejections_total")
        assert hasattr(metrics, "failures_total")

    def test_pass_metrics(self, metrics, test_registry):
        metrics.record_pass(duration_seconds=0.02, snapshot_age=1.5, pools=12)
        metrics.record_pass(duration_seconds=0.03, snapshot_age=0.5, pools=14)

        assert test_registry.get_sample_value("amm_arbitrage_passes_total") == 2
        assert test_registry.get_sample_value("amm_arbitrage_snapshot_age_seconds") == 0.5
        assert test_registry.get_sample_value("amm_arbitrage_snapshot_pools") == 14
        assert (
            test_registry.get_sample_value("amm_arbitrage_pass_duration_seconds_count")
            == 2
        )

    def test_detection_metrics(self, metrics, test_registry):
        metrics.record_cycle_detected(2)
        metrics.record_cycle_detected(3)
        metrics.record_cycle_detected(3)
        metrics.record_plan("WETH", 10**15)

        assert (
            test_registry.get_sample_value(
                "amm_arbitrage_cycles_detected_total", {"hops": "3"}
            )
            == 2
        )
        assert (
            test_registry.get_sample_value(
                "amm_arbitrage_plans_emitted_total", {"token": "WETH"}
            )
            == 1
        )

    def test_drops_by_reason(self, metrics, test_registry):
        metrics.record_rejection("unprofitable")
        metrics.record_rejection("stale_state")
        metrics.record_rejection("stale_state")
        metrics.record_failure("Overflow")

        assert (
            test_registry.get_sample_value(
                "amm_arbitrage_rejections_total", {"reason": "stale_state"}
            )
            == 2
        )
        assert (
            test_registry.get_sample_value(
                "amm_arbitrage_failures_total", {"error_type": "Overflow"}
            )
            == 1
        )

    def test_invalid_pools_ignores_zero(self, metrics, test_registry):
        metrics.record_invalid_pools(0)
        metrics.record_invalid_pools(3)

        assert test_registry.get_sample_value("amm_arbitrage_invalid_pools_total") == 3

    def test_execution_metrics(self, metrics, test_registry):
        metrics.record_execution("success", "USDC", 2_500)
        metrics.record_execution("aborted")
        metrics.record_execution("failed", "USDC", 0)

        assert (
            test_registry.get_sample_value(
                "amm_arbitrage_executions_total", {"outcome": "aborted"}
            )
            == 1
        )
        assert (
            test_registry.get_sample_value(
                "amm_arbitrage_realized_profit_total", {"token": "USDC"}
            )
            == 2_500
        )

    def test_thread_safety(self, metrics, test_registry):
        def update_metrics():
            for _ in range(100):
                metrics.record_rejection("unprofitable")

        threads = [threading.Thread(target=update_metrics) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert (
            test_registry.get_sample_value(
                "amm_arbitrage_rejections_total", {"reason": "unprofitable"}
            )
            == 500
        )

    @pytest.mark.asyncio
    async def test_metrics_server(self, metrics):
        """Test metrics HTTP server"""
        success = await metrics.start_server(port=0, host="127.0.0.1")

        if success:
            assert metrics._app is not None
            assert metrics._runner is not None
            await metrics.stop_server()

    def test_metrics_summary(self, metrics):
        summary = metrics.get_metrics_summary()

        assert summary["metrics_available"] is True
        assert "timestamp" in summary


class TestMetricsGlobal:
    """Test global metrics functionality"""

    def test_get_metrics_singleton(self, test_registry):
        initialize_metrics(test_registry)

        metrics1 = get_metrics()
        metrics2 = get_metrics()

        assert metrics1 is metrics2
        assert metrics1.registry is test_registry

    def test_initialize_metrics(self):
        registry = CollectorRegistry()
        custom_metrics = initialize_metrics(registry)

        assert custom_metrics.registry is registry
        assert custom_metrics is get_metrics()


@pytest.mark.asyncio
async def test_metrics_server_endpoints():
    """Test metrics server HTTP endpoints"""
    metrics = EngineMetrics(CollectorRegistry())
    metrics.record_rejection("insufficient_liquidity")

    app = web.Application()
    app.router.add_get("/metrics", metrics._metrics_handler)
    app.router.add_get("/health", metrics._health_handler)

    async with aiohttp.test_utils.TestClient(aiohttp.test_utils.TestServer(app)) as client:
        resp = await client.get("/metrics")
        assert resp.status == 200
        text = await resp.text()
        assert 'amm_arbitrage_rejections_total{reason="insufficient_liquidity"} 1.0' in text

        resp = await client.get("/health")
        assert resp.status == 200
        json_data = await resp.json()
        assert json_data["status"] == "healthy"


def test_exposition_contains_all_families(metrics, test_registry):
    output = generate_latest(test_registry).decode("utf-8")

    for name in (
        "amm_arbitrage_passes_total",
        "amm_arbitrage_pass_duration_seconds",
        "amm_arbitrage_snapshot_age_seconds",
        "amm_arbitrage_invalid_pools_total",
        "amm_arbitrage_last_activity_timestamp",
    ):
        assert name in output
