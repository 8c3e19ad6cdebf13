import pytest

from rebalancer.portfolio.models import Holding
from rebalancer.portfolio.scenarios import (
    PRESET_SCENARIOS,
    calculate_scenario,
    compare_scenarios,
    run_preset_scenarios,
)


def sample_holdings() -> list[Holding]:
    return [
        Holding(id="1", symbol="AAPL", asset_class="stock", quantity=10, current_price=100.0, purchase_price=90.0),
        Holding(id="2", symbol="BTC", asset_class="crypto", quantity=1, current_price=1000.0, purchase_price=800.0),
    ]


def test_zero_change_map_round_trips_value() -> None:
    result = calculate_scenario(sample_holdings(), {"stock": 0, "crypto": 0})
    assert result.projected_value == pytest.approx(result.current_value)
    assert result.pnl_change == 0
    assert result.pnl_percent == 0
    assert result.scenario_name == "Custom Scenario"


def test_shock_is_applied_per_class() -> None:
    result = calculate_scenario(sample_holdings(), {"stock": -30, "crypto": -50}, scenario_name="crash")
    assert result.current_value == pytest.approx(2000.0)
    assert result.projected_value == pytest.approx(700.0 + 500.0)
    assert result.pnl_change == pytest.approx(-800.0)
    assert result.pnl_percent == pytest.approx(-40.0)
    assert [impact.symbol for impact in result.asset_impacts] == ["AAPL", "BTC"]
    assert result.asset_impacts[1].change_percent == -50


def test_empty_holdings_give_zero_percent() -> None:
    result = calculate_scenario([], {"stock": -30})
    assert result.current_value == 0
    assert result.pnl_percent == 0


def test_presets_and_comparison() -> None:
    results = run_preset_scenarios(sample_holdings())
    assert set(results) == set(PRESET_SCENARIOS)
    comparison = compare_scenarios(list(results.values()))
    assert comparison.best.scenario_name == "boom"
    assert comparison.worst.scenario_name == "crisis"
    expected_average = sum(result.pnl_change for result in results.values()) / len(results)
    assert comparison.average_change == pytest.approx(expected_average)


def test_compare_scenarios_rejects_empty_list() -> None:
    with pytest.raises(ValueError, match="No scenarios"):
        compare_scenarios([])


def test_shock_keys_match_classes_case_insensitively() -> None:
    holdings = [Holding(id="1", symbol="AAPL", asset_class="Stock", quantity=10, current_price=100.0, purchase_price=90.0)]
    result = calculate_scenario(holdings, {"STOCK": -10})
    assert result.projected_value == pytest.approx(900.0)
