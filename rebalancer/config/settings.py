"""Environment-driven settings."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace

from dotenv import load_dotenv

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    """Runtime settings for local/stdio and HTTP-hosted modes."""

    app_name: str = "portfolio-rebalancer"
    app_version: str = "1.0.0"
    transport_mode: str = "auto"
    http_transport: str = "sse"
    host: str = "0.0.0.0"
    port: int = 8000
    mcp_path: str = "/mcp"
    health_path: str = "/health"
    yahoo_finance_enabled: bool = True
    request_timeout_seconds: float = 15.0
    cache_ttl_seconds: int = 300
    cache_ttl_history_seconds: int = 900
    provider_min_interval_seconds: float = 0.2
    default_requests_per_minute: int = 100
    request_queue_limit: int = 200
    default_fee_percent: float = 0.1
    default_monte_carlo_iterations: int = 1000
    max_monte_carlo_iterations: int = 100_000
    risk_free_rate: float = 0.05
    log_level: str = "INFO"


# fields not listed here keep their defaults
ENV_VARS = {
    "app_name": "APP_NAME",
    "transport_mode": "TRANSPORT_MODE",
    "http_transport": "HTTP_TRANSPORT",
    "host": "HOST",
    "port": "PORT",
    "mcp_path": "MCP_PATH",
    "health_path": "HEALTH_PATH",
    "yahoo_finance_enabled": "YAHOO_FINANCE_ENABLED",
    "request_timeout_seconds": "REQUEST_TIMEOUT_SECONDS",
    "cache_ttl_seconds": "CACHE_TTL_SECONDS",
    "cache_ttl_history_seconds": "CACHE_TTL_HISTORY_SECONDS",
    "provider_min_interval_seconds": "PROVIDER_MIN_INTERVAL_SECONDS",
    "default_requests_per_minute": "DEFAULT_REQUESTS_PER_MINUTE",
    "request_queue_limit": "REQUEST_QUEUE_LIMIT",
    "default_fee_percent": "DEFAULT_FEE_PERCENT",
    "default_monte_carlo_iterations": "MONTE_CARLO_ITERATIONS",
    "max_monte_carlo_iterations": "MONTE_CARLO_MAX_ITERATIONS",
    "risk_free_rate": "RISK_FREE_RATE",
    "log_level": "LOG_LEVEL",
}
TRUTHY = {"1", "true", "yes", "on"}


def _coerce(raw: str, default: object) -> object:
    text = raw.strip()
    if isinstance(default, bool):
        return text.lower() in TRUTHY
    if isinstance(default, int):
        return int(text)
    if isinstance(default, float):
        return float(text)
    return text


def get_settings() -> Settings:
    """Load runtime settings from the environment (and a ``.env`` file when present).

    Malformed numeric values are logged and replaced by the field default.
    """
    load_dotenv()
    defaults = Settings()
    overrides: dict[str, object] = {}
    for item in fields(Settings):
        env_name = ENV_VARS.get(item.name)
        raw = os.getenv(env_name) if env_name else None
        if raw is None or not raw.strip():
            continue
        try:
            overrides[item.name] = _coerce(raw, getattr(defaults, item.name))
        except ValueError:
            LOGGER.warning("ignoring malformed setting: %s=%r", env_name, raw)

    settings = replace(defaults, **overrides)
    return replace(
        settings,
        transport_mode=settings.transport_mode.lower(),
        http_transport=settings.http_transport.lower(),
        log_level=settings.log_level.upper(),
    )
