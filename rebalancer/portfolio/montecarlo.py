"""Monte Carlo projection of terminal portfolio value."""

from __future__ import annotations

import logging
import math

import numpy as np

from rebalancer.portfolio.models import Holding, MonteCarloResult
from rebalancer.portfolio.validation import validate_iterations, validate_volatility_map

LOGGER = logging.getLogger(__name__)

DEFAULT_ITERATIONS = 1000
DEFAULT_VOLATILITY_BY_CLASS: dict[str, float] = {
    "stock": 20,
    "crypto": 50,
    "fund": 10,
    "currency": 15,
    "commodity": 25,
    "eurobond": 5,
}
FALLBACK_VOLATILITY = 20.0


def _empty_result(iterations: int) -> MonteCarloResult:
    return MonteCarloResult(
        mean=0.0,
        median=0.0,
        worst_case=0.0,
        best_case=0.0,
        confidence_95_lower=0.0,
        confidence_95_upper=0.0,
        confidence_99_lower=0.0,
        confidence_99_upper=0.0,
        probability_loss=0.0,
        probability_gain_10=0.0,
        probability_gain_20=0.0,
        iterations=iterations,
        current_value=0.0,
    )


def _at(results: np.ndarray, fraction: float) -> float:
    idx = min(len(results) - 1, int(math.floor(len(results) * fraction)))
    return float(results[idx])


def run_monte_carlo_simulation(
    holdings: list[Holding],
    iterations: int = DEFAULT_ITERATIONS,
    volatility_by_class: dict[str, float] | None = None,
    rng: np.random.Generator | None = None,
    seed: int | None = None,
) -> MonteCarloResult:
    """Simulate ``iterations`` independent uniform price shocks per holding.

    Each holding moves by a uniform draw on [-volatility, +volatility] percent,
    where volatility comes from its asset class. A generator is created per
    call unless one is supplied.
    """
    validate_iterations(iterations)
    volatilities = validate_volatility_map(
        DEFAULT_VOLATILITY_BY_CLASS if volatility_by_class is None else volatility_by_class
    )
    if not holdings:
        return _empty_result(iterations)

    generator = rng if rng is not None else np.random.default_rng(seed)
    prices = np.array([holding.current_price for holding in holdings], dtype=float)
    quantities = np.array([holding.quantity for holding in holdings], dtype=float)
    class_volatility = np.array(
        [volatilities.get(holding.asset_class, FALLBACK_VOLATILITY) for holding in holdings],
        dtype=float,
    )
    current_value = float((prices * quantities).sum())

    uniform = generator.random((iterations, len(holdings)))
    random_change = (uniform - 0.5) * 2.0 * class_volatility
    simulated_prices = prices * (1.0 + random_change / 100.0)
    results = np.sort((simulated_prices * quantities).sum(axis=1))

    loss_count = int(np.count_nonzero(results < current_value))
    gain_10_count = int(np.count_nonzero(results >= current_value * 1.1))
    gain_20_count = int(np.count_nonzero(results >= current_value * 1.2))

    LOGGER.debug(
        "monte carlo complete: holdings=%s iterations=%s current_value=%s",
        len(holdings),
        iterations,
        current_value,
    )
    return MonteCarloResult(
        mean=float(results.mean()),
        median=float(results[iterations // 2]),
        worst_case=float(results[0]),
        best_case=float(results[-1]),
        confidence_95_lower=_at(results, 0.025),
        confidence_95_upper=_at(results, 0.975),
        confidence_99_lower=_at(results, 0.005),
        confidence_99_upper=_at(results, 0.995),
        probability_loss=loss_count / iterations * 100.0,
        probability_gain_10=gain_10_count / iterations * 100.0,
        probability_gain_20=gain_20_count / iterations * 100.0,
        iterations=iterations,
        current_value=current_value,
    )
