import asyncio
import json
from types import SimpleNamespace

from mcp.server.fastmcp import FastMCP

from rebalancer.cache.ttl_cache import TTLCache
from rebalancer.portfolio.portfolio_service import PortfolioService
from rebalancer.runtime.monitoring import ServerMetrics
from rebalancer.services.base import ServiceContext
from rebalancer.tools.indicator_tools import register_indicator_tools
from rebalancer.tools.portfolio_tools import register_portfolio_tools
from rebalancer.tools.runtime_tools import register_runtime_tools
from rebalancer.utils.rate_limit import RateLimiterRegistry

HOLDINGS = [
    {"symbol": "BTC", "asset_class": "crypto", "quantity": 1, "current_price": 100.0, "purchase_price": 100.0},
]


class _MockPortfolioService:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []

    def analyze_allocation(self, **kwargs):
        self.calls.append(("analyze_allocation", kwargs))
        return {"ok": True, "allocations": []}

    def monte_carlo(self, **kwargs):
        self.calls.append(("monte_carlo", kwargs))
        return {"ok": False, "error": {"type": "validation_error", "errors": []}}


def _call(mcp: FastMCP, name: str, arguments: dict) -> dict:
    _, metadata = asyncio.run(mcp.call_tool(name, arguments))
    return json.loads(metadata.get("result"))


def make_real_services() -> SimpleNamespace:
    ctx = ServiceContext(
        providers={},
        cache=TTLCache(default_ttl_seconds=60),
        rate_limiter=RateLimiterRegistry(min_interval_seconds=0),
    )
    return SimpleNamespace(portfolio=PortfolioService(ctx), metrics=ServerMetrics())


def test_register_portfolio_tools() -> None:
    mcp = FastMCP(name="test-portfolio-tools")
    register_portfolio_tools(mcp, SimpleNamespace(portfolio=_MockPortfolioService(), metrics=None))
    names = {tool.name for tool in asyncio.run(mcp.list_tools())}
    assert {
        "validate_holdings",
        "analyze_allocation",
        "generate_rebalancing_trades",
        "simulate_rebalancing",
        "list_rebalancing_strategies",
        "run_scenario",
        "run_preset_scenarios",
        "run_monte_carlo",
        "generate_trading_signals",
        "portfolio_advisor_report",
    } <= names


def test_tool_forwards_arguments_and_adds_disclaimer() -> None:
    mcp = FastMCP(name="test-portfolio-tools-forward")
    service = _MockPortfolioService()
    register_portfolio_tools(mcp, SimpleNamespace(portfolio=service, metrics=None))

    payload = _call(mcp, "analyze_allocation", {"holdings": HOLDINGS, "strategy": "balanced"})
    assert payload["ok"] is True
    assert "disclaimer" in payload
    name, kwargs = service.calls[0]
    assert name == "analyze_allocation"
    assert kwargs["strategy"] == "balanced"
    assert kwargs["refresh_prices"] is False

    failed = _call(mcp, "run_monte_carlo", {"holdings": HOLDINGS, "iterations": 10})
    assert failed["ok"] is False
    assert "disclaimer" not in failed


def test_generate_rebalancing_trades_end_to_end() -> None:
    mcp = FastMCP(name="test-portfolio-tools-e2e")
    services = make_real_services()
    register_portfolio_tools(mcp, services)

    payload = _call(
        mcp,
        "generate_rebalancing_trades",
        {"holdings": HOLDINGS, "target_allocations": {"crypto": 50, "stock": 50}, "fee_percent": 0},
    )
    actions = [(trade["action"], trade["asset_class"], trade["amount"]) for trade in payload["trades"]]
    assert actions == [("sell", "crypto", 50.0), ("buy", "stock", 50.0)]
    assert services.metrics.snapshot().total_requests == 1


def test_list_strategies_tool() -> None:
    mcp = FastMCP(name="test-portfolio-tools-strategies")
    register_portfolio_tools(mcp, make_real_services())
    payload = _call(mcp, "list_rebalancing_strategies", {})
    assert payload["strategies"]["conservative"]["target_allocations"]["fund"] == 30


def test_calculate_indicators_tool_with_prices() -> None:
    mcp = FastMCP(name="test-indicator-tools")
    register_indicator_tools(mcp, make_real_services())
    payload = _call(mcp, "calculate_indicators", {"prices": [5.0] * 25})
    assert payload["latest"]["bollinger_upper"] == 5.0
    assert payload["volatility_30"] == 0.0


def test_server_health_tool() -> None:
    mcp = FastMCP(name="test-runtime-tools")
    services = make_real_services()
    services.metrics.record(latency_ms=10.0, success=False)
    register_runtime_tools(mcp, services)
    payload = _call(mcp, "get_server_health", {})
    assert payload["total_requests"] == 1
    assert payload["error_rate"] == 1.0
