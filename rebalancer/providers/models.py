"""Normalized price data models returned by providers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ProviderName = Literal["yahoo"]
Interval = Literal["D", "W", "M"]
HistoryRange = Literal["1mo", "3mo", "6mo", "1y", "2y", "5y"]


@dataclass
class NormalizedQuote:
    symbol: str
    price: float
    change: float
    percent_change: float
    previous_close: float
    timestamp: int | None
    source: ProviderName


@dataclass
class NormalizedCandle:
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float
