"""Service context and provider-call plumbing shared by the services."""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Callable, Generic, TypeVar

from rebalancer.cache.ttl_cache import TTLCache
from rebalancer.providers.http import ProviderError
from rebalancer.runtime.limits import RequestLimiter
from rebalancer.runtime.monitoring import ServerMetrics
from rebalancer.utils.rate_limit import RateLimiterRegistry

LOGGER = logging.getLogger(__name__)

# covers tickers plus Yahoo's crypto (BTC-USD), FX (EURUSD=X) and index (^GSPC) forms
SYMBOL_PATTERN = re.compile(r"^[A-Z0-9^][A-Z0-9.\-=_]{0,19}$")
RETRIABLE_CODES = {"RATE_LIMIT", "NETWORK", "UPSTREAM", "BAD_RESPONSE"}
T = TypeVar("T")


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    retriable: bool = True
    provider: str | None = None

    @classmethod
    def from_provider_error(cls, operation: str, error: ProviderError) -> ErrorEnvelope:
        return cls(
            code=error.code,
            message=f"{operation} failed: {error.message}",
            retriable=error.code in RETRIABLE_CODES,
            provider=error.provider,
        )


@dataclass
class ServiceResult(Generic[T]):
    data: T | None
    source: str | None = None
    error: ErrorEnvelope | None = None
    fetched_at: float = field(default_factory=time.time)

    @property
    def ok(self) -> bool:
        return self.error is None and self.data is not None

    @classmethod
    def failure(cls, code: str, message: str, retriable: bool = False) -> ServiceResult[T]:
        return cls(data=None, error=ErrorEnvelope(code=code, message=message, retriable=retriable))


@dataclass
class ServiceContext:
    providers: dict[str, object]
    cache: TTLCache
    rate_limiter: RateLimiterRegistry
    cache_ttl_seconds: int = 60
    request_limiter: RequestLimiter | None = None
    server_metrics: ServerMetrics | None = None

    def get_provider(self, name: str) -> object | None:
        return self.providers.get(name)


def validate_symbol(symbol: str) -> str:
    clean = symbol.strip().upper()
    if not SYMBOL_PATTERN.match(clean):
        raise ValueError("Symbol must be 1-20 chars: A-Z, 0-9, dot, hyphen, underscore, '=' or a leading '^'.")
    return clean


def cached_call(
    ctx: ServiceContext,
    cache_key: str,
    call: Callable[[], ServiceResult[T]],
    ttl_seconds: int | None = None,
) -> ServiceResult[T]:
    """Return a cached result for ``cache_key`` or run ``call``; only successes are stored."""
    hit = ctx.cache.get(cache_key)
    if isinstance(hit, ServiceResult):
        return hit
    result = call()
    if result.ok:
        ctx.cache.set(cache_key, result, ttl_seconds=ttl_seconds or ctx.cache_ttl_seconds)
    return result


def call_provider(
    operation: str,
    provider_name: str,
    call: Callable[[], T | None],
    ctx: ServiceContext,
) -> ServiceResult[T]:
    """Run one provider call behind the rate limiter, mapping failures to an envelope."""
    ctx.rate_limiter.wait(provider_name)
    try:
        value = call()
    except ProviderError as error:
        LOGGER.warning(
            "provider call failed: operation=%s provider=%s code=%s status=%s",
            operation,
            provider_name,
            error.code,
            error.status,
        )
        return ServiceResult(data=None, error=ErrorEnvelope.from_provider_error(operation, error))
    if value is None:
        return ServiceResult.failure("NOT_FOUND", f"{operation} failed: no data returned.")
    return ServiceResult(data=value, source=provider_name)
