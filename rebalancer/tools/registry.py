"""Domain tool registry entrypoint."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from mcp.server.fastmcp import FastMCP

from rebalancer.portfolio.portfolio_service import PortfolioService
from rebalancer.runtime.monitoring import ServerMetrics
from rebalancer.services.base import ServiceContext
from rebalancer.services.price_service import PriceService
from rebalancer.tools.indicator_tools import register_indicator_tools
from rebalancer.tools.portfolio_tools import register_portfolio_tools
from rebalancer.tools.runtime_tools import register_runtime_tools


@dataclass
class ToolServices:
    portfolio: PortfolioService
    prices: PriceService
    metrics: ServerMetrics | None = None


def build_tool_services(
    ctx: ServiceContext,
    default_fee_percent: float = 0.1,
    default_iterations: int = 1000,
    max_iterations: int = 100_000,
    risk_free_rate: float = 0.05,
    history_ttl_seconds: int | None = None,
    portfolio_resource_updated_callback: Callable[[str], None] | None = None,
) -> ToolServices:
    prices = PriceService(ctx, history_ttl_seconds=history_ttl_seconds)
    metrics = ctx.server_metrics
    return ToolServices(
        portfolio=PortfolioService(
            ctx,
            prices=prices,
            default_fee_percent=default_fee_percent,
            default_iterations=default_iterations,
            max_iterations=max_iterations,
            risk_free_rate=risk_free_rate,
            resource_updated_callback=portfolio_resource_updated_callback,
        ),
        prices=prices,
        metrics=metrics,
    )


def register_all_tools(mcp: FastMCP, services: ToolServices) -> None:
    register_portfolio_tools(mcp, services)
    register_indicator_tools(mcp, services)
    register_runtime_tools(mcp, services)
