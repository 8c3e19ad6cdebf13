"""Technical indicators over an ordered price sequence (oldest to newest).

Series outputs are aligned 1:1 with the input. Positions without enough
history hold ``None`` and must be treated as undefined, not zero.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from rebalancer.lib.errors import InvalidConfigurationError

TRADING_PERIODS_PER_YEAR = 252


@dataclass
class MacdSeries:
    macd: list[float]
    signal: list[float]
    histogram: list[float]


@dataclass
class BollingerSeries:
    upper: list[float | None]
    middle: list[float | None]
    lower: list[float | None]


def _require_period(period: int, name: str = "period") -> None:
    if period <= 0:
        raise InvalidConfigurationError(name, f"must be a positive integer, received {period}.")


def _population_std(values: list[float]) -> float:
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    variance = sum((value - mean) ** 2 for value in values) / len(values)
    return math.sqrt(variance)


def average(values: list[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def simple_returns(prices: list[float]) -> list[float]:
    returns: list[float] = []
    for idx in range(1, len(prices)):
        if prices[idx - 1] <= 0:
            continue
        returns.append((prices[idx] - prices[idx - 1]) / prices[idx - 1])
    return returns


def latest(values: list[float | None]) -> float | None:
    for idx in range(len(values) - 1, -1, -1):
        value = values[idx]
        if value is not None:
            return float(value)
    return None


def sma(prices: list[float], period: int) -> list[float | None]:
    _require_period(period)
    output: list[float | None] = [None] * len(prices)
    if len(prices) < period:
        return output
    window_sum = sum(prices[:period])
    output[period - 1] = window_sum / period
    for idx in range(period, len(prices)):
        window_sum += prices[idx] - prices[idx - period]
        output[idx] = window_sum / period
    return output


def ema(prices: list[float], period: int) -> list[float]:
    """Exponential moving average seeded at the first price.

    Every index is defined, though early values carry little history.
    """
    _require_period(period)
    if not prices:
        return []
    multiplier = 2 / (period + 1)
    output = [float(prices[0])]
    for idx in range(1, len(prices)):
        previous = output[-1]
        output.append(previous + (prices[idx] - previous) * multiplier)
    return output


def rsi(prices: list[float], period: int = 14) -> list[float | None]:
    _require_period(period)
    output: list[float | None] = [None] * len(prices)
    gains: list[float] = []
    losses: list[float] = []
    for idx in range(1, len(prices)):
        delta = prices[idx] - prices[idx - 1]
        gains.append(max(delta, 0.0))
        losses.append(max(-delta, 0.0))
    for idx in range(period, len(prices)):
        # steps idx-period+1 .. idx, i.e. gains[idx-period:idx]
        avg_gain = sum(gains[idx - period : idx]) / period
        avg_loss = sum(losses[idx - period : idx]) / period
        if avg_loss == 0:
            output[idx] = 100.0
        else:
            output[idx] = 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)
    return output


def macd(
    prices: list[float],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> MacdSeries:
    _require_period(fast_period, "fast_period")
    _require_period(slow_period, "slow_period")
    _require_period(signal_period, "signal_period")
    fast = ema(prices, fast_period)
    slow = ema(prices, slow_period)
    macd_line = [f - s for f, s in zip(fast, slow)]
    signal_line = ema(macd_line, signal_period)
    histogram = [m - s for m, s in zip(macd_line, signal_line)]
    return MacdSeries(macd=macd_line, signal=signal_line, histogram=histogram)


def bollinger_bands(prices: list[float], period: int = 20, multiplier: float = 2.0) -> BollingerSeries:
    _require_period(period)
    if multiplier < 0:
        raise InvalidConfigurationError("multiplier", f"must be non-negative, received {multiplier}.")
    middle = sma(prices, period)
    upper: list[float | None] = [None] * len(prices)
    lower: list[float | None] = [None] * len(prices)
    for idx in range(period - 1, len(prices)):
        mean = middle[idx]
        if mean is None:
            continue
        window = prices[idx - period + 1 : idx + 1]
        half_width = multiplier * _population_std(window)
        upper[idx] = mean + half_width
        lower[idx] = mean - half_width
    return BollingerSeries(upper=upper, middle=middle, lower=lower)


def realized_volatility(prices: list[float], period: int = 30) -> float:
    """Annualized volatility of the trailing ``period`` simple returns, in percent."""
    _require_period(period)
    if len(prices) < period:
        return 0.0
    recent = simple_returns(prices)[-period:]
    if not recent:
        return 0.0
    return _population_std(recent) * math.sqrt(TRADING_PERIODS_PER_YEAR) * 100.0


def sharpe_ratio(prices: list[float], risk_free_rate: float = 0.05) -> float:
    if len(prices) < 2:
        return 0.0
    returns = simple_returns(prices)
    if not returns:
        return 0.0
    annualized_return = average(returns) * TRADING_PERIODS_PER_YEAR
    annualized_std = _population_std(returns) * math.sqrt(TRADING_PERIODS_PER_YEAR)
    if annualized_std == 0:
        return 0.0
    return (annualized_return - risk_free_rate) / annualized_std


def max_drawdown(prices: list[float]) -> float:
    if not prices:
        return 0.0
    peak = prices[0]
    worst = 0.0
    for price in prices:
        if price > peak:
            peak = price
        if peak <= 0:
            continue
        drawdown = (peak - price) / peak
        worst = max(worst, drawdown)
    return worst * 100.0


def momentum(prices: list[float], period: int = 10) -> float:
    _require_period(period)
    if len(prices) < period:
        return 0.0
    base = prices[-period]
    if base <= 0:
        return 0.0
    return (prices[-1] - base) / base * 100.0
