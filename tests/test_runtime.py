import json
from types import SimpleNamespace

import pytest

from rebalancer.cache import ttl_cache
from rebalancer.cache.ttl_cache import TTLCache
from rebalancer.lib.errors import InvalidConfigurationError
from rebalancer.lib.formatters import FINANCIAL_DISCLAIMER
from rebalancer.portfolio.models import Allocation
from rebalancer.runtime.limits import RateLimitExceeded, RequestLimiter, enforce_iteration_limit
from rebalancer.runtime.monitoring import ServerMetrics
from rebalancer.runtime.response import payload_response
from rebalancer.tools.common import run_tool
from rebalancer.utils import rate_limit
from rebalancer.utils.rate_limit import RateLimiterRegistry


def test_ttl_cache_set_get_and_expiry(monkeypatch) -> None:
    cache = TTLCache(default_ttl_seconds=10)
    now = [1000.0]
    monkeypatch.setattr(ttl_cache, "time", SimpleNamespace(monotonic=lambda: now[0]))
    cache.set("a", 1)
    assert cache.get("a") == 1
    now[0] += 11
    assert cache.get("a") is None
    cache.set("b", 2)
    cache.clear()
    assert cache.get("b") is None


def test_request_limiter_per_client_window() -> None:
    limiter = RequestLimiter(requests_per_minute=2, queue_limit=10)
    limiter.acquire("client")
    limiter.release()
    limiter.acquire("client")
    limiter.release()
    with pytest.raises(RateLimitExceeded) as exc:
        limiter.acquire("client")
    assert exc.value.retry_after_seconds > 0
    limiter.acquire("other")
    assert limiter.inflight == 1


def test_request_limiter_queue_ceiling() -> None:
    limiter = RequestLimiter(requests_per_minute=100, queue_limit=1)
    limiter.acquire("a")
    with pytest.raises(RateLimitExceeded):
        limiter.acquire("b")
    limiter.release()
    limiter.acquire("b")


def test_enforce_iteration_limit() -> None:
    assert enforce_iteration_limit(100, 100) == 100
    with pytest.raises(InvalidConfigurationError) as exc:
        enforce_iteration_limit(101, 100)
    assert exc.value.field == "iterations"


def test_server_metrics_snapshot() -> None:
    metrics = ServerMetrics()
    metrics.record(latency_ms=10.0, success=True)
    metrics.record(latency_ms=30.0, success=False)
    metrics.record_rate_limit_hit("client")
    snapshot = metrics.snapshot()
    assert snapshot.total_requests == 2
    assert snapshot.error_rate == 0.5
    assert snapshot.avg_latency_ms == 20.0
    assert snapshot.rate_limit_hits == {"client": 1}


def test_payload_response_converts_dataclasses() -> None:
    allocation = Allocation(asset_class="stock", target_percent=60.0, current_percent=50.0, current_value=500.0)
    body = json.loads(payload_response({"ok": True, "allocations": [allocation]}))
    assert body["allocations"][0]["asset_class"] == "stock"
    assert body["disclaimer"] == FINANCIAL_DISCLAIMER

    failed = json.loads(payload_response({"ok": False, "error": {"type": "validation_error", "errors": []}}))
    assert "disclaimer" not in failed


def test_run_tool_records_metrics_and_logs(caplog) -> None:
    metrics = ServerMetrics()
    with caplog.at_level("INFO", logger="rebalancer.runtime.monitoring"):
        output = run_tool("analyze_allocation", lambda: {"ok": False, "error": {}}, metrics=metrics)
    assert json.loads(output)["ok"] is False
    assert metrics.snapshot().error_rate == 1.0
    assert metrics.snapshot().tool_calls == {"analyze_allocation": 1}
    event = json.loads(caplog.records[-1].getMessage())
    assert event["tool"] == "analyze_allocation"
    assert event["success"] is False


def test_ttl_cache_evicts_oldest_when_full() -> None:
    cache = TTLCache(default_ttl_seconds=60, max_entries=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)
    assert cache.get("a") is None
    assert cache.get("c") == 3
    assert len(cache) == 2


def test_request_limiter_slot_releases_on_error() -> None:
    limiter = RequestLimiter(requests_per_minute=10, queue_limit=1)
    with pytest.raises(RuntimeError):
        with limiter.slot("client"):
            assert limiter.inflight == 1
            raise RuntimeError("boom")
    assert limiter.inflight == 0


def test_rate_limiter_registry_spaces_calls(monkeypatch) -> None:
    sleeps: list[float] = []
    monkeypatch.setattr(rate_limit, "time", SimpleNamespace(monotonic=lambda: 100.0, sleep=sleeps.append))
    registry = RateLimiterRegistry(min_interval_seconds=0.5, overrides={"fast": 0.0})
    registry.wait("yahoo")
    registry.wait("yahoo")
    registry.wait("fast")
    assert sleeps == [0.5]
