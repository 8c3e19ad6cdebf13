"""Portfolio rebalancing MCP tools."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from mcp.server.fastmcp import FastMCP

from rebalancer.tools.common import run_tool

if TYPE_CHECKING:
    from rebalancer.tools.registry import ToolServices

HoldingsArg = list[dict[str, Any]] | None


def register_portfolio_tools(mcp: FastMCP, services: ToolServices) -> None:
    portfolio = services.portfolio

    @mcp.tool(description="Validate holdings (inline records or a CSV/Excel file) before analysis.")
    def validate_holdings(holdings: HoldingsArg = None, file_path: str | None = None) -> str:
        return run_tool(
            "validate_holdings",
            lambda: portfolio.validate_holdings(holdings=holdings, file_path=file_path),
            services.metrics,
        )

    @mcp.tool(description="Current allocation per asset class with target deviations and a rebalancing flag.")
    def analyze_allocation(
        holdings: HoldingsArg = None,
        target_allocations: dict[str, float] | None = None,
        strategy: str | None = None,
        file_path: str | None = None,
        refresh_prices: bool = False,
    ) -> str:
        return run_tool(
            "analyze_allocation",
            lambda: portfolio.analyze_allocation(
                holdings=holdings,
                target_allocations=target_allocations,
                strategy=strategy,
                file_path=file_path,
                refresh_prices=refresh_prices,
            ),
            services.metrics,
        )

    @mcp.tool(description="Fee-adjusted buy/sell trades that move the portfolio toward its target allocation.")
    def generate_rebalancing_trades(
        holdings: HoldingsArg = None,
        target_allocations: dict[str, float] | None = None,
        strategy: str | None = None,
        fee_percent: float | None = None,
        file_path: str | None = None,
        refresh_prices: bool = False,
    ) -> str:
        return run_tool(
            "generate_rebalancing_trades",
            lambda: portfolio.generate_trades(
                holdings=holdings,
                target_allocations=target_allocations,
                strategy=strategy,
                fee_percent=fee_percent,
                file_path=file_path,
                refresh_prices=refresh_prices,
            ),
            services.metrics,
        )

    @mcp.tool(description="Preview a rebalance: trades, expected cost and deviation before/after.")
    def simulate_rebalancing(
        holdings: HoldingsArg = None,
        target_allocations: dict[str, float] | None = None,
        strategy: str | None = None,
        fee_percent: float | None = None,
        file_path: str | None = None,
        refresh_prices: bool = False,
    ) -> str:
        return run_tool(
            "simulate_rebalancing",
            lambda: portfolio.simulate(
                holdings=holdings,
                target_allocations=target_allocations,
                strategy=strategy,
                fee_percent=fee_percent,
                file_path=file_path,
                refresh_prices=refresh_prices,
            ),
            services.metrics,
        )

    @mcp.tool(description="List preset rebalancing strategies and preset stress scenarios.")
    def list_rebalancing_strategies() -> str:
        return json.dumps(portfolio.list_strategies(), ensure_ascii=True)

    @mcp.tool(description="Project portfolio value under per-asset-class percent price changes.")
    def run_scenario(
        price_changes: dict[str, float],
        holdings: HoldingsArg = None,
        scenario_name: str = "Custom Scenario",
        file_path: str | None = None,
    ) -> str:
        return run_tool(
            "run_scenario",
            lambda: portfolio.run_scenario(
                price_changes,
                holdings=holdings,
                scenario_name=scenario_name,
                file_path=file_path,
            ),
            services.metrics,
        )

    @mcp.tool(description="Run crisis, boom, inflation, recession and stagflation scenarios and compare them.")
    def run_preset_scenarios(holdings: HoldingsArg = None, file_path: str | None = None) -> str:
        return run_tool(
            "run_preset_scenarios",
            lambda: portfolio.run_presets(holdings=holdings, file_path=file_path),
            services.metrics,
        )

    @mcp.tool(description="Monte Carlo distribution of portfolio value under uniform per-class price shocks.")
    def run_monte_carlo(
        holdings: HoldingsArg = None,
        iterations: int | None = None,
        volatility_by_class: dict[str, float] | None = None,
        seed: int | None = None,
        file_path: str | None = None,
    ) -> str:
        return run_tool(
            "run_monte_carlo",
            lambda: portfolio.monte_carlo(
                holdings=holdings,
                iterations=iterations,
                volatility_by_class=volatility_by_class,
                seed=seed,
                file_path=file_path,
            ),
            services.metrics,
        )

    @mcp.tool(description="Rule-based buy/sell signals per holding from technical indicators.")
    def generate_trading_signals(
        holdings: HoldingsArg = None,
        history_range: str = "6mo",
        file_path: str | None = None,
        price_history: dict[str, list[float]] | None = None,
    ) -> str:
        return run_tool(
            "generate_trading_signals",
            lambda: portfolio.signals(
                holdings=holdings,
                history_range=history_range,
                file_path=file_path,
                price_history=price_history,
            ),
            services.metrics,
        )

    @mcp.tool(description="Risk profile, portfolio grade, recommendations and a plain-language advisor summary.")
    def portfolio_advisor_report(
        holdings: HoldingsArg = None,
        target_allocations: dict[str, float] | None = None,
        strategy: str | None = None,
        file_path: str | None = None,
        refresh_prices: bool = False,
    ) -> str:
        return run_tool(
            "portfolio_advisor_report",
            lambda: portfolio.advisor_report(
                holdings=holdings,
                target_allocations=target_allocations,
                strategy=strategy,
                file_path=file_path,
                refresh_prices=refresh_prices,
            ),
            services.metrics,
        )
