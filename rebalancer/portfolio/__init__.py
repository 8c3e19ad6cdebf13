"""Portfolio rebalancing domain package."""

from rebalancer.portfolio.models import Holding
from rebalancer.portfolio.portfolio_service import PortfolioService

__all__ = ["Holding", "PortfolioService"]
