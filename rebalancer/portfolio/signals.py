"""Indicator snapshots and rule-based buy/sell signal scoring."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from rebalancer.lib import indicators
from rebalancer.portfolio.models import Holding

SignalType = Literal["strong_buy", "buy", "hold", "sell", "strong_sell"]
Timeframe = Literal["short", "medium", "long"]

MIN_SIGNAL_HISTORY = 14
STOP_LOSS_FRACTION = 0.92


@dataclass
class TechnicalSnapshot:
    rsi: float
    macd: float
    macd_signal: float
    macd_histogram: float
    ma20: float
    ma50: float
    ma200: float
    bollinger_upper: float
    bollinger_middle: float
    bollinger_lower: float
    momentum: float
    volatility: float


@dataclass
class TradingSignal:
    symbol: str
    signal: SignalType
    strength: float
    score: float
    target_price: float
    stop_loss: float
    expected_return: float
    timeframe: Timeframe
    technicals: TechnicalSnapshot
    reasons: list[str] = field(default_factory=list)


def _latest_or(values: list[float | None], fallback: float) -> float:
    value = indicators.latest(values)
    return fallback if value is None else value


def _trailing_average(prices: list[float], period: int) -> float:
    # short histories fall back to the latest price
    if len(prices) < period:
        return prices[-1]
    return sum(prices[-period:]) / period


def technical_snapshot(prices: list[float]) -> TechnicalSnapshot:
    """Latest indicator values; neutral readings when history is short."""
    last_price = prices[-1] if prices else 0.0
    if len(prices) < MIN_SIGNAL_HISTORY:
        return TechnicalSnapshot(
            rsi=50.0,
            macd=0.0,
            macd_signal=0.0,
            macd_histogram=0.0,
            ma20=last_price,
            ma50=last_price,
            ma200=last_price,
            bollinger_upper=last_price,
            bollinger_middle=last_price,
            bollinger_lower=last_price,
            momentum=0.0,
            volatility=0.0,
        )

    macd = indicators.macd(prices)
    band_period = min(20, len(prices))
    bands = indicators.bollinger_bands(prices, band_period)
    return TechnicalSnapshot(
        rsi=_latest_or(indicators.rsi(prices, 14), 50.0),
        macd=macd.macd[-1],
        macd_signal=macd.signal[-1],
        macd_histogram=macd.histogram[-1],
        ma20=_trailing_average(prices, 20),
        ma50=_trailing_average(prices, 50),
        ma200=_trailing_average(prices, 200),
        bollinger_upper=_latest_or(bands.upper, 0.0),
        bollinger_middle=_latest_or(bands.middle, 0.0),
        bollinger_lower=_latest_or(bands.lower, 0.0),
        momentum=indicators.momentum(prices, 10),
        volatility=indicators.realized_volatility(prices, min(20, len(prices))),
    )


def _classify(score: float) -> SignalType:
    if score >= 50:
        return "strong_buy"
    if score >= 20:
        return "buy"
    if score <= -50:
        return "strong_sell"
    if score <= -20:
        return "sell"
    return "hold"


def _timeframe(volatility: float) -> Timeframe:
    if volatility > 40:
        return "short"
    if volatility > 20:
        return "medium"
    return "long"


def determine_signal(holding: Holding, snapshot: TechnicalSnapshot, prices: list[float]) -> TradingSignal:
    reasons: list[str] = []
    score = 0.0

    if snapshot.rsi < 30:
        reasons.append("RSI oversold (< 30)")
        score += 30
    elif snapshot.rsi < 40:
        reasons.append("RSI low (< 40)")
        score += 15
    elif snapshot.rsi > 70:
        reasons.append("RSI overbought (> 70)")
        score -= 30
    elif snapshot.rsi > 60:
        reasons.append("RSI elevated (> 60)")
        score -= 15

    if snapshot.macd_histogram > 0 and snapshot.macd > snapshot.macd_signal:
        reasons.append("MACD bullish crossover")
        score += 20
    elif snapshot.macd_histogram < 0 and snapshot.macd < snapshot.macd_signal:
        reasons.append("MACD bearish crossover")
        score -= 20

    current_price = prices[-1] if prices else holding.current_price
    if current_price > snapshot.ma20 > snapshot.ma50 > snapshot.ma200:
        reasons.append("Moving averages aligned upward")
        score += 25
    elif current_price < snapshot.ma20 < snapshot.ma50 < snapshot.ma200:
        reasons.append("Moving averages aligned downward")
        score -= 25

    if current_price < snapshot.bollinger_lower:
        reasons.append("Price below lower Bollinger band")
        score += 20
    elif current_price > snapshot.bollinger_upper:
        reasons.append("Price above upper Bollinger band")
        score -= 20

    if snapshot.momentum > 5:
        reasons.append(f"Strong momentum (+{snapshot.momentum:.1f}%)")
        score += 15
    elif snapshot.momentum < -5:
        reasons.append(f"Weak momentum ({snapshot.momentum:.1f}%)")
        score -= 15

    pnl = holding.profit_percent
    if pnl < -15:
        reasons.append(f"Losing position ({pnl:.1f}%)")
        score -= 10
    elif pnl > 30:
        reasons.append(f"Large unrealized gain (+{pnl:.1f}%)")
        score -= 5

    target_price = current_price * (1 + score / 200)
    expected_return = ((target_price - current_price) / current_price * 100.0) if current_price > 0 else 0.0
    return TradingSignal(
        symbol=holding.symbol,
        signal=_classify(score),
        strength=abs(score),
        score=score,
        target_price=target_price,
        stop_loss=current_price * STOP_LOSS_FRACTION,
        expected_return=expected_return,
        timeframe=_timeframe(snapshot.volatility),
        technicals=snapshot,
        reasons=reasons,
    )


def generate_signals(holdings: list[Holding], history_by_symbol: dict[str, list[float]]) -> list[TradingSignal]:
    signals: list[TradingSignal] = []
    for holding in holdings:
        prices = list(history_by_symbol.get(holding.symbol) or [holding.current_price])
        if len(prices) < 2:
            prices.insert(0, holding.purchase_price)
        signals.append(determine_signal(holding, technical_snapshot(prices), prices))
    return sorted(signals, key=lambda item: item.strength, reverse=True)
