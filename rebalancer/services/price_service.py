"""Historical price lookups backing indicator and signal workflows."""

from __future__ import annotations

from rebalancer.providers.models import HistoryRange, NormalizedQuote
from rebalancer.providers.yahoo_finance import YahooFinanceClient
from rebalancer.services.base import ServiceContext, ServiceResult, cached_call, call_provider

VALID_RANGES = ("1mo", "3mo", "6mo", "1y", "2y", "5y")
PROVIDER = "yahoo"


class PriceService:
    def __init__(self, ctx: ServiceContext, history_ttl_seconds: int | None = None) -> None:
        self.ctx = ctx
        self.history_ttl_seconds = history_ttl_seconds

    def _client(self) -> YahooFinanceClient | None:
        client = self.ctx.get_provider(PROVIDER)
        return client if isinstance(client, YahooFinanceClient) else None

    def get_closes(self, symbol: str, history_range: HistoryRange = "6mo") -> ServiceResult[list[float]]:
        """Daily closes, oldest first. Raises ``ValueError`` on an unsupported range."""
        if history_range not in VALID_RANGES:
            raise ValueError(f"history_range must be one of: {', '.join(VALID_RANGES)}.")
        client = self._client()
        if client is None:
            return ServiceResult.failure("NOT_CONFIGURED", "get_closes failed: no price provider is configured.")
        return cached_call(
            self.ctx,
            f"price:closes:{symbol}:{history_range}",
            lambda: call_provider("get_closes", PROVIDER, lambda: client.get_closes(symbol, history_range) or None, self.ctx),
            ttl_seconds=self.history_ttl_seconds,
        )

    def get_quote(self, symbol: str) -> ServiceResult[NormalizedQuote]:
        client = self._client()
        if client is None:
            return ServiceResult.failure("NOT_CONFIGURED", "get_quote failed: no price provider is configured.")
        # quotes use the context default TTL
        return cached_call(
            self.ctx,
            f"price:quote:{symbol}",
            lambda: call_provider("get_quote", PROVIDER, lambda: client.get_quote(symbol), self.ctx),
        )
