"""Yahoo Finance chart adapter used as the historical and current price source."""

from __future__ import annotations

from itertools import zip_longest
from typing import Any
from urllib.parse import quote_plus

import requests

from rebalancer.providers.http import build_session, fetch_json
from rebalancer.providers.models import HistoryRange, Interval, NormalizedCandle, NormalizedQuote

CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart/{symbol}?range={range}&interval={interval}"
CHART_INTERVALS: dict[Interval, str] = {"D": "1d", "W": "1wk", "M": "1mo"}
QUOTE_RANGE = "5d"


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


class YahooFinanceClient:
    def __init__(self, timeout_seconds: float = 15.0, session: requests.Session | None = None) -> None:
        self.timeout_seconds = timeout_seconds
        self.session = session or build_session()

    def _chart(self, symbol: str, history_range: str, interval: Interval = "D") -> dict[str, Any] | None:
        url = CHART_URL.format(symbol=quote_plus(symbol), range=history_range, interval=CHART_INTERVALS[interval])
        data = fetch_json(url, provider="yahoo", timeout_seconds=self.timeout_seconds, session=self.session)
        results = ((data or {}).get("chart") or {}).get("result") or []
        return results[0] if results and isinstance(results[0], dict) else None

    def get_candles(
        self,
        symbol: str,
        history_range: HistoryRange = "6mo",
        interval: Interval = "D",
    ) -> list[NormalizedCandle] | None:
        chart = self._chart(symbol, history_range, interval)
        if chart is None:
            return None
        columns = ((chart.get("indicators") or {}).get("quote") or [{}])[0]
        rows = zip_longest(
            chart.get("timestamp") or [],
            *(columns.get(name) or [] for name in ("open", "high", "low", "close", "volume")),
        )
        candles: list[NormalizedCandle] = []
        for ts, *values in rows:
            if ts is None:
                continue
            open_, high, low, close, volume = (_number(value) for value in values)
            # sessions without trading come back as nulls
            if open_ is None or high is None or low is None or close is None:
                continue
            candles.append(
                NormalizedCandle(timestamp=int(ts), open=open_, high=high, low=low, close=close, volume=volume or 0.0)
            )
        return candles or None

    def get_closes(self, symbol: str, history_range: HistoryRange = "6mo") -> list[float]:
        return [candle.close for candle in self.get_candles(symbol, history_range) or []]

    def get_quote(self, symbol: str) -> NormalizedQuote | None:
        chart = self._chart(symbol, QUOTE_RANGE)
        if chart is None:
            return None
        meta = chart.get("meta") or {}
        price = _number(meta.get("regularMarketPrice"))
        if price is None:
            return None
        previous_close = _number(meta.get("chartPreviousClose")) or price
        change = price - previous_close
        market_time = meta.get("regularMarketTime")
        return NormalizedQuote(
            symbol=symbol,
            price=price,
            change=change,
            percent_change=change / previous_close * 100.0 if previous_close > 0 else 0.0,
            previous_close=previous_close,
            timestamp=market_time if isinstance(market_time, int) else None,
            source="yahoo",
        )
