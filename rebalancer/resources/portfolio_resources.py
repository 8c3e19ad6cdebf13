"""Portfolio resource definitions."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from mcp.server.fastmcp import FastMCP

from rebalancer.portfolio.portfolio_service import CURRENT_RESOURCE_URI, REPORT_TYPES

if TYPE_CHECKING:
    from rebalancer.tools.registry import ToolServices

PORTFOLIO_SNAPSHOT_TEMPLATE_URI = "portfolio://snapshot/{report_type}"
STRATEGIES_URI = "portfolio://strategies"


def register_portfolio_resources(mcp: FastMCP, services: "ToolServices") -> None:
    @mcp.resource(
        CURRENT_RESOURCE_URI,
        name="current-portfolio",
        title="Current Portfolio Snapshot",
        description="Latest successful portfolio report captured by any rebalancing workflow.",
        mime_type="application/json",
    )
    def current_portfolio_resource() -> str:
        snapshot = services.portfolio.get_current_resource_snapshot()
        if not snapshot:
            raise ValueError("Portfolio resource not found. Run a portfolio workflow first.")
        return json.dumps(snapshot, ensure_ascii=True)

    @mcp.resource(
        PORTFOLIO_SNAPSHOT_TEMPLATE_URI,
        name="portfolio-snapshot",
        title="Portfolio Snapshot By Report Type",
        description=f"Returns the latest snapshot for a report type ({', '.join(REPORT_TYPES)}).",
        mime_type="application/json",
    )
    def portfolio_snapshot_by_type(report_type: str) -> str:
        snapshot = services.portfolio.get_resource_snapshot(report_type)
        if not snapshot:
            raise ValueError("Portfolio resource not found for the given report_type.")
        return json.dumps(snapshot, ensure_ascii=True)

    @mcp.resource(
        STRATEGIES_URI,
        name="rebalancing-strategies",
        title="Rebalancing Strategies",
        description="Preset target allocations and stress scenarios.",
        mime_type="application/json",
    )
    def strategies_resource() -> str:
        return json.dumps(services.portfolio.list_strategies(), ensure_ascii=True)
