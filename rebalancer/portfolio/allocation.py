"""Current allocation and target deviation analytics."""

from __future__ import annotations

from dataclasses import replace

from rebalancer.portfolio.models import Allocation, Holding, RebalancingStrategy
from rebalancer.portfolio.validation import validate_target_allocations

PRESET_STRATEGIES: dict[str, RebalancingStrategy] = {
    "conservative": RebalancingStrategy(
        name="Conservative",
        target_allocations={"stock": 20, "fund": 30, "eurobond": 25, "currency": 15, "commodity": 10, "crypto": 0},
    ),
    "balanced": RebalancingStrategy(
        name="Balanced",
        target_allocations={"stock": 40, "fund": 20, "eurobond": 15, "currency": 10, "commodity": 10, "crypto": 5},
    ),
    "aggressive": RebalancingStrategy(
        name="Aggressive",
        target_allocations={"stock": 50, "crypto": 20, "fund": 15, "commodity": 10, "currency": 5, "eurobond": 0},
    ),
}

DEFAULT_TARGET_ALLOCATIONS: dict[str, float] = {
    "stock": 40,
    "crypto": 20,
    "currency": 15,
    "fund": 15,
    "eurobond": 5,
    "commodity": 5,
}


def calculate_total_value(holdings: list[Holding]) -> float:
    return sum(holding.market_value for holding in holdings)


def calculate_current_allocations(holdings: list[Holding]) -> list[Allocation]:
    total_value = calculate_total_value(holdings)
    if total_value == 0:
        return []
    values_by_class: dict[str, float] = {}
    for holding in holdings:
        values_by_class[holding.asset_class] = values_by_class.get(holding.asset_class, 0.0) + holding.market_value
    return [
        Allocation(
            asset_class=asset_class,
            current_value=value,
            current_percent=value / total_value * 100.0,
        )
        for asset_class, value in values_by_class.items()
    ]


def calculate_deviations(allocations: list[Allocation], target_allocations: dict[str, float]) -> list[Allocation]:
    targets = validate_target_allocations(target_allocations)
    output: list[Allocation] = []
    for allocation in allocations:
        target = targets.get(allocation.asset_class, 0.0)
        output.append(replace(allocation, target_percent=target, deviation=allocation.current_percent - target))
    return output


def calculate_total_deviation(allocations: list[Allocation]) -> float:
    """Half the summed absolute deviations.

    Signed deviations net to zero across classes, so the plain sum counts
    every traded unit twice.
    """
    return sum(abs(allocation.deviation) for allocation in allocations) / 2.0


def needs_rebalancing(allocations: list[Allocation], threshold: float = 10.0) -> bool:
    return calculate_total_deviation(allocations) > threshold


def allocation_percent_map(allocations: list[Allocation]) -> dict[str, float]:
    return {allocation.asset_class: allocation.current_percent for allocation in allocations}
