import asyncio
import json
from types import SimpleNamespace

import pytest
from mcp.server.fastmcp import FastMCP

from rebalancer.cache.ttl_cache import TTLCache
from rebalancer.portfolio.portfolio_service import PortfolioService
from rebalancer.prompts.portfolio_prompts import register_portfolio_prompts
from rebalancer.resources.portfolio_resources import register_portfolio_resources
from rebalancer.services.base import ServiceContext
from rebalancer.utils.rate_limit import RateLimiterRegistry

HOLDINGS = [
    {"symbol": "AAPL", "asset_class": "stock", "quantity": 5, "current_price": 100.0, "purchase_price": 80.0},
    {"symbol": "GLD", "asset_class": "commodity", "quantity": 5, "current_price": 100.0, "purchase_price": 120.0},
]


def build_portfolio_mcp(name: str) -> tuple[FastMCP, PortfolioService]:
    ctx = ServiceContext(
        providers={},
        cache=TTLCache(default_ttl_seconds=60),
        rate_limiter=RateLimiterRegistry(min_interval_seconds=0),
    )
    service = PortfolioService(ctx)
    mcp = FastMCP(name=name)
    register_portfolio_prompts(mcp)
    register_portfolio_resources(mcp, SimpleNamespace(portfolio=service))
    return mcp, service


def read_json(mcp: FastMCP, uri: str) -> dict:
    contents = list(asyncio.run(mcp.read_resource(uri)))
    assert len(contents) == 1
    assert contents[0].mime_type == "application/json"
    return json.loads(contents[0].content)


def test_rebalancing_review_prompt_renders_strategy_targets() -> None:
    mcp, _ = build_portfolio_mcp("prompt-render")
    assert [prompt.name for prompt in asyncio.run(mcp.list_prompts())] == ["rebalancing_review"]

    result = asyncio.run(mcp.get_prompt("rebalancing_review", {"portfolio": "Family IRA", "strategy": "aggressive"}))
    text = str(result.messages[0].content.text)
    assert "'Family IRA'" in text
    assert "aggressive strategy" in text
    assert "crypto 20%" in text
    assert "not financial advice" in text


@pytest.mark.parametrize(
    ("prompt_name", "arguments", "message"),
    [
        ("unknown_prompt", {"portfolio": "x"}, "Unknown prompt"),
        ("rebalancing_review", {}, "Missing required arguments"),
        ("rebalancing_review", {"portfolio": "x", "strategy": "yolo"}, "strategy must be one of"),
    ],
)
def test_rebalancing_review_prompt_errors(prompt_name: str, arguments: dict, message: str) -> None:
    mcp, _ = build_portfolio_mcp("prompt-errors")
    with pytest.raises(ValueError, match=message):
        asyncio.run(mcp.get_prompt(prompt_name, arguments))


def test_resources_are_listed() -> None:
    mcp, _ = build_portfolio_mcp("resource-list")
    uris = {str(resource.uri) for resource in asyncio.run(mcp.list_resources())}
    assert uris == {"portfolio://current", "portfolio://strategies"}
    templates = asyncio.run(mcp.list_resource_templates())
    assert [template.uriTemplate for template in templates] == ["portfolio://snapshot/{report_type}"]


def test_workflow_result_is_readable_as_resource() -> None:
    mcp, service = build_portfolio_mcp("resource-read")
    payload = service.analyze_allocation(HOLDINGS, target_allocations={"stock": 50, "commodity": 50})
    assert payload["ok"] is True

    current = read_json(mcp, "portfolio://current")
    assert current["report_type"] == "allocation"
    assert current["source"] == "inline"
    assert current["payload"]["total_value"] == 1000.0

    by_type = read_json(mcp, "portfolio://snapshot/allocation")
    assert by_type == current


def test_strategies_resource() -> None:
    mcp, _ = build_portfolio_mcp("resource-strategies")
    data = read_json(mcp, "portfolio://strategies")
    assert set(data["strategies"]) == {"conservative", "balanced", "aggressive"}
    assert "crisis" in data["preset_scenarios"]


def test_missing_snapshot_raises_without_leaking_details() -> None:
    mcp, _ = build_portfolio_mcp("resource-missing")
    with pytest.raises(Exception) as exc:
        asyncio.run(mcp.read_resource("portfolio://current"))
    assert "Portfolio resource not found" in str(exc.value)

    with pytest.raises(Exception):
        asyncio.run(mcp.read_resource("portfolio://snapshot/trades"))

    with pytest.raises(Exception):
        asyncio.run(mcp.read_resource("portfolio://unknown"))
