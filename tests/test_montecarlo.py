import numpy as np
import pytest

from rebalancer.lib.errors import InvalidConfigurationError
from rebalancer.portfolio.models import Holding
from rebalancer.portfolio.montecarlo import run_monte_carlo_simulation


def sample_holdings() -> list[Holding]:
    return [
        Holding(id="1", symbol="AAPL", asset_class="stock", quantity=10, current_price=100.0, purchase_price=90.0),
        Holding(id="2", symbol="BTC", asset_class="crypto", quantity=1, current_price=1000.0, purchase_price=800.0),
        Holding(id="3", symbol="ART", asset_class="collectible", quantity=2, current_price=50.0, purchase_price=50.0),
    ]


def test_zero_volatility_reproduces_current_value() -> None:
    zero = {"stock": 0, "crypto": 0, "collectible": 0}
    result = run_monte_carlo_simulation(sample_holdings(), 200, zero, seed=1)
    assert result.current_value == 2100.0
    assert result.worst_case == result.best_case == result.median == 2100.0
    assert result.mean == pytest.approx(2100.0)
    assert result.confidence_95_lower == result.confidence_99_upper == 2100.0
    assert result.probability_loss == 0
    assert result.probability_gain_10 == 0
    assert result.iterations == 200


def test_seeded_runs_are_deterministic() -> None:
    first = run_monte_carlo_simulation(sample_holdings(), 500, seed=7)
    second = run_monte_carlo_simulation(sample_holdings(), 500, seed=7)
    assert first == second


def test_supplied_generator_is_used() -> None:
    first = run_monte_carlo_simulation(sample_holdings(), 300, rng=np.random.default_rng(3))
    second = run_monte_carlo_simulation(sample_holdings(), 300, rng=np.random.default_rng(3))
    assert first.mean == second.mean


def test_results_are_bounded_by_uniform_shock() -> None:
    result = run_monte_carlo_simulation(sample_holdings(), 2000, seed=11)
    # stock 20%, crypto 50%, unknown class falls back to 20%
    max_swing = 1000 * 0.2 + 1000 * 0.5 + 100 * 0.2
    assert 2100 - max_swing <= result.worst_case <= result.confidence_99_lower
    assert result.confidence_95_lower <= result.median <= result.confidence_95_upper
    assert result.confidence_99_upper <= result.best_case <= 2100 + max_swing
    assert 0 <= result.probability_loss <= 100
    assert result.probability_gain_20 <= result.probability_gain_10


def test_empty_holdings_give_zero_result() -> None:
    result = run_monte_carlo_simulation([], 100)
    assert result.mean == 0
    assert result.probability_loss == 0


def test_invalid_iterations_and_volatility_are_rejected() -> None:
    with pytest.raises(InvalidConfigurationError):
        run_monte_carlo_simulation(sample_holdings(), 0)
    with pytest.raises(InvalidConfigurationError):
        run_monte_carlo_simulation(sample_holdings(), -5)
    with pytest.raises(InvalidConfigurationError):
        run_monte_carlo_simulation(sample_holdings(), 10, {"stock": -1})
