"""Portfolio rebalancing orchestration service."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, replace
from typing import Any, Callable

from rebalancer.lib import indicators
from rebalancer.lib.errors import InvalidConfigurationError
from rebalancer.portfolio.allocation import (
    DEFAULT_TARGET_ALLOCATIONS,
    PRESET_STRATEGIES,
    calculate_current_allocations,
    calculate_deviations,
    calculate_total_deviation,
    calculate_total_value,
    needs_rebalancing,
)
from rebalancer.portfolio.data_loader import frame_to_records, load_holdings_file
from rebalancer.portfolio.intelligence import (
    analyze_market_sentiment,
    analyze_risk_profile,
    build_advisor_summary,
    calculate_portfolio_score,
    generate_portfolio_insights,
    generate_recommendations,
    generate_smart_suggestions,
)
from rebalancer.portfolio.models import Holding, ValidationIssue
from rebalancer.portfolio.montecarlo import run_monte_carlo_simulation
from rebalancer.portfolio.scenarios import PRESET_SCENARIOS, calculate_scenario, compare_scenarios, run_preset_scenarios
from rebalancer.portfolio.signals import generate_signals
from rebalancer.portfolio.trades import generate_rebalancing_trades, simulate_rebalancing
from rebalancer.portfolio.validation import (
    holdings_from_records,
    is_finite_number,
    validate_holding_records,
    validate_holdings_frame,
    validate_price_changes,
    validate_target_allocations,
)
from rebalancer.runtime.limits import enforce_iteration_limit
from rebalancer.services.base import ServiceContext, validate_symbol
from rebalancer.services.price_service import PriceService

LOGGER = logging.getLogger(__name__)

CURRENT_RESOURCE_URI = "portfolio://current"
REPORT_TYPES = (
    "allocation",
    "trades",
    "simulation",
    "scenario",
    "stress_test",
    "monte_carlo",
    "signals",
    "advisor",
)
HISTORY_WORKERS = 8

HoldingRecords = list[dict[str, Any]]


def _json_validation_error(errors: list[dict[str, Any]]) -> dict[str, Any]:
    return {"ok": False, "error": {"type": "validation_error", "errors": errors}}


def _issues_payload(issues: list[ValidationIssue]) -> dict[str, Any]:
    return _json_validation_error(
        [{"field": issue.field, "message": issue.message, "row": issue.row, "code": issue.code} for issue in issues]
    )


def _configuration_error(error: InvalidConfigurationError) -> dict[str, Any]:
    return _json_validation_error([{"field": error.field, "message": error.message, "code": "invalid_configuration"}])


class _PayloadError(Exception):
    """Carries an already-shaped error payload out of a workflow."""

    def __init__(self, payload: dict[str, Any]) -> None:
        super().__init__(payload)
        self.payload = payload


class PortfolioService:
    def __init__(
        self,
        ctx: ServiceContext,
        prices: PriceService | None = None,
        default_fee_percent: float = 0.1,
        default_iterations: int = 1000,
        max_iterations: int = 100_000,
        risk_free_rate: float = 0.05,
        resource_updated_callback: Callable[[str], None] | None = None,
    ) -> None:
        self.ctx = ctx
        self.prices = prices or PriceService(ctx)
        self.default_fee_percent = default_fee_percent
        self.default_iterations = default_iterations
        self.max_iterations = max_iterations
        self.risk_free_rate = risk_free_rate
        self._current_resource_cache_key = "portfolio:current_resource"
        self._resource_snapshot_prefix = "portfolio:resource_snapshot:"
        self._resource_updated_callback = resource_updated_callback

    # snapshots

    def _store_snapshot(self, report_type: str, source: str, payload: dict[str, Any]) -> None:
        snapshot = {
            "uri": CURRENT_RESOURCE_URI,
            "report_type": report_type,
            "source": source,
            "payload": payload,
        }
        self.ctx.cache.set(self._current_resource_cache_key, snapshot, ttl_seconds=self.ctx.cache_ttl_seconds)
        self.ctx.cache.set(
            f"{self._resource_snapshot_prefix}{report_type}",
            snapshot,
            ttl_seconds=self.ctx.cache_ttl_seconds,
        )
        LOGGER.debug("portfolio snapshot stored: report_type=%s source=%s", report_type, source)
        if self._resource_updated_callback is not None:
            self._resource_updated_callback(CURRENT_RESOURCE_URI)

    def get_current_resource_snapshot(self) -> dict[str, Any] | None:
        cached = self.ctx.cache.get(self._current_resource_cache_key)
        return cached if isinstance(cached, dict) else None

    def get_resource_snapshot(self, report_type: str) -> dict[str, Any] | None:
        normalized = report_type.strip().lower()
        if normalized not in REPORT_TYPES:
            return None
        cached = self.ctx.cache.get(f"{self._resource_snapshot_prefix}{normalized}")
        return cached if isinstance(cached, dict) else None

    # inputs

    def _resolve_holdings(
        self,
        holdings: HoldingRecords | None,
        file_path: str | None,
        refresh_prices: bool = False,
    ) -> tuple[list[Holding], str, list[str]]:
        if file_path:
            try:
                frame = load_holdings_file(file_path)
            except ValueError as error:
                raise _PayloadError(
                    _json_validation_error([{"field": "file_path", "message": str(error), "code": "file_error"}])
                ) from error
            issues = validate_holdings_frame(frame)
            records = frame_to_records(frame)
            source = file_path
        elif holdings is not None:
            records = holdings
            issues = validate_holding_records(records)
            source = "inline"
        else:
            raise _PayloadError(
                _json_validation_error(
                    [{"field": "holdings", "message": "Provide holdings or file_path.", "code": "missing_input"}]
                )
            )
        if issues:
            raise _PayloadError(_issues_payload(issues))

        parsed = holdings_from_records(records)
        warnings: list[str] = []
        if refresh_prices:
            parsed, warnings = self._refresh_prices(parsed)
        return parsed, source, warnings

    def _resolve_targets(self, target_allocations: dict[str, float] | None, strategy: str | None) -> tuple[dict[str, float], float]:
        if strategy:
            preset = PRESET_STRATEGIES.get(strategy.strip().lower())
            if preset is None:
                raise _PayloadError(
                    _json_validation_error(
                        [
                            {
                                "field": "strategy",
                                "message": f"strategy must be one of: {', '.join(PRESET_STRATEGIES)}.",
                                "code": "invalid_strategy",
                            }
                        ]
                    )
                )
            return validate_target_allocations(preset.target_allocations), preset.deviation_threshold
        if target_allocations is not None:
            return validate_target_allocations(target_allocations), 10.0
        return validate_target_allocations(DEFAULT_TARGET_ALLOCATIONS), 10.0

    def _refresh_prices(self, holdings: list[Holding]) -> tuple[list[Holding], list[str]]:
        refreshed: list[Holding] = []
        warnings: list[str] = []
        for holding in holdings:
            result = self.prices.get_quote(holding.symbol)
            if result.data is None:
                warnings.append(f"Kept stored price for {holding.symbol}: quote unavailable.")
                refreshed.append(holding)
                continue
            refreshed.append(replace(holding, current_price=result.data.price))
        return refreshed, warnings

    def _collect_histories(self, symbols: list[str], history_range: str) -> tuple[dict[str, list[float]], list[str]]:
        if not symbols:
            return {}, []

        def _fetch(symbol: str) -> list[float] | None:
            result = self.prices.get_closes(symbol, history_range)  # type: ignore[arg-type]
            return result.data

        with ThreadPoolExecutor(max_workers=min(HISTORY_WORKERS, len(symbols))) as executor:
            fetched = list(executor.map(_fetch, symbols))

        histories: dict[str, list[float]] = {}
        warnings: list[str] = []
        for symbol, closes in zip(symbols, fetched):
            if closes:
                histories[symbol] = closes
            else:
                warnings.append(f"No price history for {symbol}; signal uses stored prices only.")
        return histories, warnings

    def _run(self, report_type: str, workflow: Callable[[], tuple[dict[str, Any], str]]) -> dict[str, Any]:
        try:
            payload, source = workflow()
        except _PayloadError as error:
            LOGGER.info("portfolio workflow rejected input: report_type=%s", report_type)
            return error.payload
        except InvalidConfigurationError as error:
            LOGGER.info("portfolio workflow rejected configuration: report_type=%s field=%s", report_type, error.field)
            return _configuration_error(error)
        self._store_snapshot(report_type, source, payload)
        return payload

    # workflows

    def validate_holdings(self, holdings: HoldingRecords | None = None, file_path: str | None = None) -> dict[str, Any]:
        try:
            parsed, _, _ = self._resolve_holdings(holdings, file_path)
        except _PayloadError as error:
            return error.payload
        return {"ok": True, "message": "Holdings validated.", "rows": len(parsed)}

    def analyze_allocation(
        self,
        holdings: HoldingRecords | None = None,
        target_allocations: dict[str, float] | None = None,
        strategy: str | None = None,
        file_path: str | None = None,
        refresh_prices: bool = False,
    ) -> dict[str, Any]:
        def _workflow() -> tuple[dict[str, Any], str]:
            parsed, source, warnings = self._resolve_holdings(holdings, file_path, refresh_prices)
            targets, threshold = self._resolve_targets(target_allocations, strategy)
            allocations = calculate_deviations(calculate_current_allocations(parsed), targets)
            total_deviation = calculate_total_deviation(allocations)
            payload = {
                "ok": True,
                "total_value": calculate_total_value(parsed),
                "allocations": [asdict(allocation) for allocation in allocations],
                "target_allocations": targets,
                "total_deviation": total_deviation,
                "deviation_threshold": threshold,
                "needs_rebalancing": needs_rebalancing(allocations, threshold),
                "warnings": warnings,
            }
            return payload, source

        return self._run("allocation", _workflow)

    def generate_trades(
        self,
        holdings: HoldingRecords | None = None,
        target_allocations: dict[str, float] | None = None,
        strategy: str | None = None,
        fee_percent: float | None = None,
        file_path: str | None = None,
        refresh_prices: bool = False,
    ) -> dict[str, Any]:
        def _workflow() -> tuple[dict[str, Any], str]:
            parsed, source, warnings = self._resolve_holdings(holdings, file_path, refresh_prices)
            targets, _ = self._resolve_targets(target_allocations, strategy)
            fee = self.default_fee_percent if fee_percent is None else fee_percent
            trades = generate_rebalancing_trades(parsed, targets, fee)
            payload = {
                "ok": True,
                "fee_percent": fee,
                "trade_count": len(trades),
                "total_buy": sum(trade.amount for trade in trades if trade.action == "buy"),
                "total_sell": sum(trade.amount for trade in trades if trade.action == "sell"),
                "trades": [asdict(trade) for trade in trades],
                "warnings": warnings,
            }
            return payload, source

        return self._run("trades", _workflow)

    def simulate(
        self,
        holdings: HoldingRecords | None = None,
        target_allocations: dict[str, float] | None = None,
        strategy: str | None = None,
        fee_percent: float | None = None,
        file_path: str | None = None,
        refresh_prices: bool = False,
    ) -> dict[str, Any]:
        def _workflow() -> tuple[dict[str, Any], str]:
            parsed, source, warnings = self._resolve_holdings(holdings, file_path, refresh_prices)
            targets, _ = self._resolve_targets(target_allocations, strategy)
            fee = self.default_fee_percent if fee_percent is None else fee_percent
            simulation = simulate_rebalancing(parsed, targets, fee)
            payload = {"ok": True, "simulation": asdict(simulation), "warnings": warnings}
            return payload, source

        return self._run("simulation", _workflow)

    def list_strategies(self) -> dict[str, Any]:
        return {
            "ok": True,
            "strategies": {key: asdict(strategy) for key, strategy in PRESET_STRATEGIES.items()},
            "default_target_allocations": dict(DEFAULT_TARGET_ALLOCATIONS),
            "preset_scenarios": {name: dict(changes) for name, changes in PRESET_SCENARIOS.items()},
        }

    def run_scenario(
        self,
        price_changes: dict[str, float],
        holdings: HoldingRecords | None = None,
        scenario_name: str = "Custom Scenario",
        file_path: str | None = None,
    ) -> dict[str, Any]:
        def _workflow() -> tuple[dict[str, Any], str]:
            parsed, source, _ = self._resolve_holdings(holdings, file_path)
            changes = validate_price_changes(price_changes)
            result = calculate_scenario(parsed, changes, scenario_name=scenario_name)
            return {"ok": True, "scenario": asdict(result)}, source

        return self._run("scenario", _workflow)

    def run_presets(self, holdings: HoldingRecords | None = None, file_path: str | None = None) -> dict[str, Any]:
        def _workflow() -> tuple[dict[str, Any], str]:
            parsed, source, _ = self._resolve_holdings(holdings, file_path)
            results = run_preset_scenarios(parsed)
            comparison = compare_scenarios(list(results.values()))
            payload = {
                "ok": True,
                "scenarios": {name: asdict(result) for name, result in results.items()},
                "best": comparison.best.scenario_name,
                "worst": comparison.worst.scenario_name,
                "average_change": comparison.average_change,
            }
            return payload, source

        return self._run("stress_test", _workflow)

    def monte_carlo(
        self,
        holdings: HoldingRecords | None = None,
        iterations: int | None = None,
        volatility_by_class: dict[str, float] | None = None,
        seed: int | None = None,
        file_path: str | None = None,
    ) -> dict[str, Any]:
        def _workflow() -> tuple[dict[str, Any], str]:
            parsed, source, _ = self._resolve_holdings(holdings, file_path)
            count = self.default_iterations if iterations is None else iterations
            enforce_iteration_limit(count, self.max_iterations)
            result = run_monte_carlo_simulation(parsed, count, volatility_by_class, seed=seed)
            return {"ok": True, "monte_carlo": asdict(result)}, source

        return self._run("monte_carlo", _workflow)

    def indicators(
        self,
        symbol: str | None = None,
        prices: list[float] | None = None,
        history_range: str = "6mo",
        include_series: bool = False,
    ) -> dict[str, Any]:
        """Indicator readings for an explicit price list or a symbol's fetched history."""
        if prices is None:
            if not symbol:
                return _json_validation_error(
                    [{"field": "symbol", "message": "Provide symbol or prices.", "code": "missing_input"}]
                )
            try:
                clean_symbol = validate_symbol(symbol)
                result = self.prices.get_closes(clean_symbol, history_range)  # type: ignore[arg-type]
            except ValueError as error:
                return _json_validation_error([{"field": "symbol", "message": str(error), "code": "invalid_input"}])
            if result.data is None:
                envelope = result.error
                return {
                    "ok": False,
                    "error": {
                        "type": "provider_error",
                        "code": envelope.code if envelope else "NOT_FOUND",
                        "message": envelope.message if envelope else "No price history returned.",
                        "retriable": envelope.retriable if envelope else False,
                    },
                }
            series = result.data
        else:
            bad = [idx for idx, price in enumerate(prices) if not is_finite_number(price)]
            if bad:
                return _json_validation_error(
                    [
                        {
                            "field": "prices",
                            "message": f"Prices must be finite numbers; invalid entries at positions {bad[:5]}.",
                            "code": "invalid_prices",
                        }
                    ]
                )
            series = [float(price) for price in prices]

        macd = indicators.macd(series)
        bands = indicators.bollinger_bands(series)
        sma20 = indicators.sma(series, 20)
        ema20 = indicators.ema(series, 20)
        rsi = indicators.rsi(series, 14)
        payload: dict[str, Any] = {
            "ok": True,
            "symbol": symbol.strip().upper() if symbol else None,
            "points": len(series),
            "latest": {
                "price": series[-1] if series else None,
                "sma_20": indicators.latest(sma20),
                "ema_20": indicators.latest(ema20),
                "rsi_14": indicators.latest(rsi),
                "macd": indicators.latest(macd.macd),
                "macd_signal": indicators.latest(macd.signal),
                "macd_histogram": indicators.latest(macd.histogram),
                "bollinger_upper": indicators.latest(bands.upper),
                "bollinger_middle": indicators.latest(bands.middle),
                "bollinger_lower": indicators.latest(bands.lower),
            },
            "volatility_30": indicators.realized_volatility(series, 30),
            "sharpe_ratio": indicators.sharpe_ratio(series, self.risk_free_rate),
            "max_drawdown": indicators.max_drawdown(series),
            "momentum_10": indicators.momentum(series, 10),
        }
        if include_series:
            payload["series"] = {
                "sma_20": sma20,
                "ema_20": ema20,
                "rsi_14": rsi,
                "macd": asdict(macd),
                "bollinger": asdict(bands),
            }
        return payload

    def signals(
        self,
        holdings: HoldingRecords | None = None,
        history_range: str = "6mo",
        file_path: str | None = None,
        price_history: dict[str, list[float]] | None = None,
    ) -> dict[str, Any]:
        def _workflow() -> tuple[dict[str, Any], str]:
            parsed, source, _ = self._resolve_holdings(holdings, file_path)
            if price_history is not None:
                histories = {symbol.strip().upper(): [float(p) for p in closes] for symbol, closes in price_history.items()}
                warnings: list[str] = []
            else:
                symbols = list(dict.fromkeys(holding.symbol for holding in parsed))
                histories, warnings = self._collect_histories(symbols, history_range)
            signals = generate_signals(parsed, histories)
            payload = {
                "ok": True,
                "signals": [asdict(signal) for signal in signals],
                "warnings": warnings,
            }
            return payload, source

        return self._run("signals", _workflow)

    def advisor_report(
        self,
        holdings: HoldingRecords | None = None,
        target_allocations: dict[str, float] | None = None,
        strategy: str | None = None,
        file_path: str | None = None,
        refresh_prices: bool = False,
    ) -> dict[str, Any]:
        def _workflow() -> tuple[dict[str, Any], str]:
            parsed, source, warnings = self._resolve_holdings(holdings, file_path, refresh_prices)
            targets, threshold = self._resolve_targets(target_allocations, strategy)
            allocations = calculate_deviations(calculate_current_allocations(parsed), targets)
            total_deviation = calculate_total_deviation(allocations)
            profile = analyze_risk_profile(parsed)
            sentiment = analyze_market_sentiment(parsed)
            score = calculate_portfolio_score(parsed)
            payload = {
                "ok": True,
                "risk_profile": asdict(profile),
                "portfolio_score": asdict(score),
                "market_sentiment": asdict(sentiment),
                "recommendations": [asdict(item) for item in generate_recommendations(parsed, profile)],
                "insights": [asdict(item) for item in generate_portfolio_insights(parsed, profile, sentiment)],
                "suggestions": [asdict(item) for item in generate_smart_suggestions(parsed)],
                "total_deviation": total_deviation,
                "needs_rebalancing": needs_rebalancing(allocations, threshold),
                "summary": build_advisor_summary(profile, score, total_deviation, threshold),
                "warnings": warnings,
            }
            return payload, source

        return self._run("advisor", _workflow)
