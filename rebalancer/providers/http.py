"""Shared requests session and JSON fetching with retry and error mapping."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Literal

import requests
from requests.adapters import HTTPAdapter

from rebalancer.providers.models import ProviderName

LOGGER = logging.getLogger(__name__)

ProviderErrorCode = Literal["RATE_LIMIT", "AUTH", "NOT_FOUND", "UPSTREAM", "NETWORK", "BAD_RESPONSE"]
RETRY_STATUSES = frozenset({408, 425, 429, 500, 502, 503, 504})
BACKOFF_BASE_SECONDS = 0.25
USER_AGENT = "Mozilla/5.0 (compatible; portfolio-rebalancer/1.0)"


def build_session(pool_size: int = 20) -> requests.Session:
    session = requests.Session()
    adapter = HTTPAdapter(pool_connections=pool_size // 2, pool_maxsize=pool_size)
    for prefix in ("https://", "http://"):
        session.mount(prefix, adapter)
    session.headers["User-Agent"] = USER_AGENT
    return session


@dataclass
class ProviderError(Exception):
    """Upstream failure with a stable code; ``message`` never carries the upstream body."""

    provider: ProviderName
    code: ProviderErrorCode
    message: str
    status: int | None = None

    def __str__(self) -> str:
        return self.message


def map_status_to_code(status: int) -> ProviderErrorCode:
    return {401: "AUTH", 403: "AUTH", 404: "NOT_FOUND", 429: "RATE_LIMIT"}.get(status, "UPSTREAM")


def _backoff(attempt: int) -> None:
    time.sleep(BACKOFF_BASE_SECONDS * 2 ** (attempt - 1))


def _get(http: requests.Session, url: str, provider: ProviderName, timeout_seconds: float) -> requests.Response:
    try:
        return http.get(url, timeout=timeout_seconds)
    except requests.RequestException as error:
        LOGGER.warning("provider request failed: provider=%s error=%s", provider, type(error).__name__)
        raise ProviderError(provider, "NETWORK", "Provider request failed due to network error.") from error


def fetch_json(
    url: str,
    provider: ProviderName,
    timeout_seconds: float = 15.0,
    session: requests.Session | None = None,
    max_retries: int = 3,
) -> Any:
    """GET ``url`` and decode its JSON body.

    Network errors and retryable statuses are retried with exponential backoff
    up to ``max_retries`` attempts; the final failure is raised as
    ``ProviderError``. An empty body decodes to ``{}``.
    """
    http = session or build_session()
    attempts = max(1, max_retries)
    attempt = 0
    while True:
        attempt += 1
        try:
            response = _get(http, url, provider, timeout_seconds)
        except ProviderError:
            if attempt >= attempts:
                raise
            _backoff(attempt)
            continue

        if response.ok:
            break
        LOGGER.warning("provider returned error status: provider=%s attempt=%s status=%s", provider, attempt, response.status_code)
        if response.status_code not in RETRY_STATUSES or attempt >= attempts:
            raise ProviderError(
                provider,
                map_status_to_code(response.status_code),
                f"Provider request failed with status {response.status_code}.",
                response.status_code,
            )
        _backoff(attempt)

    if not response.text:
        return {}
    try:
        return response.json()
    except ValueError as error:
        raise ProviderError(provider, "BAD_RESPONSE", "Provider returned non-JSON content.", response.status_code) from error
