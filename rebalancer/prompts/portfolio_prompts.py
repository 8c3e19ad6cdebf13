"""Portfolio prompt definitions."""

from __future__ import annotations

from mcp.server.fastmcp import FastMCP

from rebalancer.portfolio.allocation import PRESET_STRATEGIES


def _build_rebalancing_review_prompt(portfolio: str, strategy: str = "balanced") -> str:
    portfolio_name = portfolio.strip()
    if not portfolio_name:
        raise ValueError("Missing required argument: portfolio.")
    strategy_key = strategy.strip().lower()
    if strategy_key not in PRESET_STRATEGIES:
        raise ValueError(f"strategy must be one of: {', '.join(PRESET_STRATEGIES)}.")
    targets = ", ".join(
        f"{asset_class} {percent:g}%" for asset_class, percent in PRESET_STRATEGIES[strategy_key].target_allocations.items()
    )
    return (
        "You are a portfolio rebalancing analyst.\n"
        f"Review the portfolio named '{portfolio_name}' against the {strategy_key} strategy ({targets}) and provide:\n"
        "1) Allocation drift per asset class and whether total deviation exceeds the threshold\n"
        "2) The fee-adjusted trade list, sells before buys, with the rationale for each\n"
        "3) Stress-scenario and Monte Carlo downside after the rebalance\n"
        "4) A short action plan. State that this is not financial advice."
    )


def register_portfolio_prompts(mcp: FastMCP) -> None:
    @mcp.prompt(
        name="rebalancing_review",
        title="Rebalancing Review Prompt",
        description="Generate a structured rebalancing review prompt for a named portfolio and preset strategy.",
    )
    def rebalancing_review(portfolio: str, strategy: str = "balanced") -> str:
        return _build_rebalancing_review_prompt(portfolio, strategy)
