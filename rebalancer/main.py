"""Application entrypoint for the portfolio rebalancer MCP server."""

from __future__ import annotations

import asyncio
import gzip
import logging
import os
import time

from mcp.server.fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from rebalancer.cache.ttl_cache import TTLCache
from rebalancer.config.settings import Settings, get_settings
from rebalancer.prompts.portfolio_prompts import register_portfolio_prompts
from rebalancer.providers.yahoo_finance import YahooFinanceClient
from rebalancer.resources.portfolio_resources import register_portfolio_resources
from rebalancer.runtime.limits import RateLimitExceeded, RequestLimiter
from rebalancer.runtime.monitoring import ServerMetrics, log_tool_event
from rebalancer.services.base import ServiceContext
from rebalancer.tools.registry import build_tool_services, register_all_tools
from rebalancer.utils.rate_limit import RateLimiterRegistry

LOGGER = logging.getLogger(__name__)

TRANSPORT_MODES = {"stdio", "http"}
HTTP_TRANSPORTS = {"sse", "streamable"}


def resolve_transport_mode(configured_mode: str) -> str:
    hosted = bool(os.getenv("RENDER") or os.getenv("PORT"))
    # Render cannot speak stdio
    if configured_mode == "stdio" and os.getenv("RENDER"):
        return "http"
    if configured_mode in TRANSPORT_MODES:
        return configured_mode
    return "http" if hosted else "stdio"


def resolve_http_transport(configured_transport: str) -> str:
    return configured_transport if configured_transport in HTTP_TRANSPORTS else "sse"


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def build_server(settings: Settings) -> tuple[FastMCP, RequestLimiter, ServerMetrics]:
    """Wire the price provider, services, tools, prompts and resources onto a FastMCP instance."""
    metrics = ServerMetrics()
    limiter = RequestLimiter(
        requests_per_minute=settings.default_requests_per_minute,
        queue_limit=settings.request_queue_limit,
    )
    providers: dict[str, object] = {}
    if settings.yahoo_finance_enabled:
        providers["yahoo"] = YahooFinanceClient(settings.request_timeout_seconds)
    else:
        LOGGER.warning("Yahoo Finance disabled: indicator and signal tools need explicit price lists.")

    ctx = ServiceContext(
        providers=providers,
        cache=TTLCache(default_ttl_seconds=settings.cache_ttl_seconds),
        rate_limiter=RateLimiterRegistry(min_interval_seconds=settings.provider_min_interval_seconds),
        cache_ttl_seconds=settings.cache_ttl_seconds,
        request_limiter=limiter,
        server_metrics=metrics,
    )
    services = build_tool_services(
        ctx,
        default_fee_percent=settings.default_fee_percent,
        default_iterations=settings.default_monte_carlo_iterations,
        max_iterations=settings.max_monte_carlo_iterations,
        risk_free_rate=settings.risk_free_rate,
        history_ttl_seconds=settings.cache_ttl_history_seconds,
    )
    mcp = FastMCP(
        name=settings.app_name,
        host=settings.host,
        port=settings.port,
        streamable_http_path=settings.mcp_path,
    )
    register_all_tools(mcp, services)
    register_portfolio_prompts(mcp)
    register_portfolio_resources(mcp, services)
    return mcp, limiter, metrics


def _error_json(code: str, message: str, status_code: int, headers: dict[str, str] | None = None) -> JSONResponse:
    body = {"error": True, "code": code, "message": message, "timestamp": int(time.time())}
    return JSONResponse(body, status_code=status_code, headers=headers)


def _client_id(request: Request) -> str:
    for header in ("x-api-key", "x-client-id"):
        value = request.headers.get(header)
        if value:
            return value
    return str(request.client or "anonymous")


def _gzip_json(text: str) -> Response:
    return Response(
        content=gzip.compress(text.encode("utf-8")),
        media_type="application/json",
        headers={"Content-Encoding": "gzip"},
    )


def register_http_routes(
    mcp: FastMCP,
    settings: Settings,
    limiter: RequestLimiter,
    metrics: ServerMetrics,
    mode: str,
) -> None:
    @mcp.custom_route(settings.health_path, methods=["GET"])
    async def health_check(_: object) -> Response:
        snapshot = metrics.snapshot()
        return JSONResponse(
            {
                "status": "ok",
                "service": settings.app_name,
                "version": settings.app_version,
                "mode": mode,
                "tool_count": len(await mcp.list_tools()),
                "prompt_count": len(await mcp.list_prompts()),
                "resource_count": len(await mcp.list_resources()),
                "resource_template_count": len(await mcp.list_resource_templates()),
                "uptime_seconds": round(snapshot.uptime_seconds, 3),
                "total_requests": snapshot.total_requests,
            }
        )

    @mcp.custom_route("/tools/{tool_name}", methods=["POST"])
    async def guarded_tool_call(request: Request) -> Response:
        tool_name = request.path_params.get("tool_name", "unknown")
        client_id = _client_id(request)
        try:
            body = await request.json()
        except ValueError:
            body = None
        arguments = body.get("arguments") if isinstance(body, dict) else None

        started = time.perf_counter()
        try:
            with limiter.slot(client_id):
                _, metadata = await mcp.call_tool(tool_name, arguments if isinstance(arguments, dict) else {})
        except RateLimitExceeded as error:
            metrics.record_rate_limit_hit(client_id)
            retry_after = str(max(1, int(error.retry_after_seconds)))
            return _error_json("RATE_LIMITED", "Rate limit exceeded.", 429, {"Retry-After": retry_after})
        except Exception:
            latency_ms = (time.perf_counter() - started) * 1000.0
            LOGGER.exception("tool call failed: tool=%s client_id=%s", tool_name, client_id)
            log_tool_event(tool=tool_name, latency_ms=latency_ms, success=False, client_id=client_id)
            metrics.record(latency_ms=latency_ms, success=False, tool=tool_name)
            return _error_json("TOOL_FAILED", "Request failed.", 500)
        return _gzip_json(str(metadata.get("result") or ""))


async def run() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    mcp, limiter, metrics = build_server(settings)
    mode = resolve_transport_mode(settings.transport_mode)
    http_transport = resolve_http_transport(settings.http_transport)
    register_http_routes(mcp, settings, limiter, metrics, mode)

    LOGGER.info("starting server: mode=%s http_transport=%s", mode, http_transport)
    if mode == "stdio":
        await mcp.run_stdio_async()
    elif http_transport == "streamable":
        await mcp.run_streamable_http_async()
    else:
        await mcp.run_sse_async()


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
