"""Portfolio what-if price shock scenarios."""

from __future__ import annotations

from rebalancer.portfolio.allocation import calculate_total_value
from rebalancer.portfolio.models import AssetImpact, Holding, ScenarioComparison, ScenarioResult
from rebalancer.portfolio.validation import validate_price_changes

PRESET_SCENARIOS: dict[str, dict[str, float]] = {
    "crisis": {"stock": -30, "crypto": -50, "fund": -20, "currency": 5, "commodity": 20, "eurobond": 10},
    "boom": {"stock": 50, "crypto": 100, "fund": 30, "currency": -5, "commodity": 10, "eurobond": 5},
    "inflation": {"stock": 10, "crypto": -20, "fund": 5, "currency": -25, "commodity": 40, "eurobond": 15},
    "recession": {"stock": -20, "crypto": -40, "fund": -15, "currency": 10, "commodity": -10, "eurobond": 20},
    "stagflation": {"stock": -10, "crypto": -30, "fund": -5, "currency": -15, "commodity": 25, "eurobond": 5},
}


def calculate_scenario(
    holdings: list[Holding],
    price_changes: dict[str, float],
    scenario_name: str = "Custom Scenario",
) -> ScenarioResult:
    changes = validate_price_changes(price_changes)
    current_value = calculate_total_value(holdings)
    impacts: list[AssetImpact] = []
    for holding in holdings:
        change_percent = changes.get(holding.asset_class, 0.0)
        new_price = holding.current_price * (1.0 + change_percent / 100.0)
        projected = new_price * holding.quantity
        impacts.append(
            AssetImpact(
                symbol=holding.symbol,
                asset_class=holding.asset_class,
                current_value=holding.market_value,
                projected_value=projected,
                change=projected - holding.market_value,
                change_percent=change_percent,
            )
        )
    projected_value = sum(impact.projected_value for impact in impacts)
    pnl_change = projected_value - current_value
    return ScenarioResult(
        scenario_name=scenario_name,
        current_value=current_value,
        projected_value=projected_value,
        pnl_change=pnl_change,
        pnl_percent=(pnl_change / current_value * 100.0) if current_value > 0 else 0.0,
        asset_impacts=impacts,
    )


def run_preset_scenarios(holdings: list[Holding]) -> dict[str, ScenarioResult]:
    return {name: calculate_scenario(holdings, changes, scenario_name=name) for name, changes in PRESET_SCENARIOS.items()}


def compare_scenarios(scenarios: list[ScenarioResult]) -> ScenarioComparison:
    if not scenarios:
        raise ValueError("No scenarios to compare.")
    best = scenarios[0]
    worst = scenarios[0]
    for scenario in scenarios[1:]:
        if scenario.pnl_change > best.pnl_change:
            best = scenario
        if scenario.pnl_change < worst.pnl_change:
            worst = scenario
    average_change = sum(scenario.pnl_change for scenario in scenarios) / len(scenarios)
    return ScenarioComparison(best=best, worst=worst, average_change=average_change)
