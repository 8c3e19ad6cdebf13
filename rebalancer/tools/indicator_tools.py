"""Technical indicator MCP tools."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mcp.server.fastmcp import FastMCP

from rebalancer.tools.common import run_tool

if TYPE_CHECKING:
    from rebalancer.tools.registry import ToolServices


def register_indicator_tools(mcp: FastMCP, services: ToolServices) -> None:
    @mcp.tool(
        description=(
            "SMA, EMA, RSI, MACD, Bollinger Bands, realized volatility, Sharpe ratio, max drawdown and momentum "
            "for a symbol's daily closes or an explicit price list."
        )
    )
    def calculate_indicators(
        symbol: str | None = None,
        prices: list[float] | None = None,
        history_range: str = "6mo",
        include_series: bool = False,
    ) -> str:
        return run_tool(
            "calculate_indicators",
            lambda: services.portfolio.indicators(
                symbol=symbol,
                prices=prices,
                history_range=history_range,
                include_series=include_series,
            ),
            services.metrics,
        )
