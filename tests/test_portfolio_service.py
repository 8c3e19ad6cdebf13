import pytest

from rebalancer.cache.ttl_cache import TTLCache
from rebalancer.portfolio.portfolio_service import PortfolioService
from rebalancer.providers.models import NormalizedQuote
from rebalancer.services.base import ErrorEnvelope, ServiceContext, ServiceResult
from rebalancer.utils.rate_limit import RateLimiterRegistry

HOLDINGS = [
    {"symbol": "AAPL", "asset_class": "stock", "quantity": 10, "current_price": 100.0, "purchase_price": 80.0},
    {"symbol": "BTC", "asset_class": "crypto", "quantity": 1, "current_price": 1000.0, "purchase_price": 1200.0},
]


class _StubPrices:
    def __init__(self, closes: dict[str, list[float]] | None = None, quotes: dict[str, float] | None = None) -> None:
        self.closes = closes or {}
        self.quotes = quotes or {}
        self.close_calls: list[str] = []

    def get_closes(self, symbol: str, history_range: str = "6mo") -> ServiceResult[list[float]]:
        self.close_calls.append(symbol)
        if symbol in self.closes:
            return ServiceResult(data=self.closes[symbol], source="stub")
        return ServiceResult(data=None, error=ErrorEnvelope(code="NETWORK", message="get_closes failed."))

    def get_quote(self, symbol: str) -> ServiceResult[NormalizedQuote]:
        if symbol not in self.quotes:
            return ServiceResult(data=None, error=ErrorEnvelope(code="NOT_FOUND", message="no quote", retriable=False))
        price = self.quotes[symbol]
        return ServiceResult(
            data=NormalizedQuote(
                symbol=symbol,
                price=price,
                change=0.0,
                percent_change=0.0,
                previous_close=price,
                timestamp=None,
                source="yahoo",
            )
        )


def make_service(prices: _StubPrices | None = None, **kwargs) -> PortfolioService:
    ctx = ServiceContext(
        providers={},
        cache=TTLCache(default_ttl_seconds=60),
        rate_limiter=RateLimiterRegistry(min_interval_seconds=0),
    )
    return PortfolioService(ctx, prices=prices or _StubPrices(), **kwargs)


def test_analyze_allocation_with_strategy_stores_snapshot() -> None:
    updates: list[str] = []
    service = make_service(resource_updated_callback=updates.append)
    payload = service.analyze_allocation(HOLDINGS, strategy="balanced")

    assert payload["ok"] is True
    assert payload["total_value"] == pytest.approx(2000.0)
    assert payload["target_allocations"]["stock"] == 40.0
    by_class = {item["asset_class"]: item for item in payload["allocations"]}
    assert by_class["crypto"]["deviation"] == pytest.approx(45.0)
    assert payload["needs_rebalancing"] is True
    assert updates == ["portfolio://current"]
    snapshot = service.get_resource_snapshot("allocation")
    assert snapshot is not None
    assert snapshot["source"] == "inline"
    assert service.get_current_resource_snapshot()["report_type"] == "allocation"


def test_invalid_holdings_return_validation_payload() -> None:
    service = make_service()
    payload = service.analyze_allocation([{"symbol": "AAPL", "asset_class": "stock", "quantity": -1}])
    assert payload["ok"] is False
    assert payload["error"]["type"] == "validation_error"
    assert service.get_current_resource_snapshot() is None


def test_missing_input_and_unknown_strategy() -> None:
    service = make_service()
    assert service.generate_trades()["error"]["errors"][0]["code"] == "missing_input"
    payload = service.generate_trades(HOLDINGS, strategy="yolo")
    assert payload["error"]["errors"][0]["code"] == "invalid_strategy"


def test_invalid_configuration_is_reported_not_raised() -> None:
    service = make_service()
    payload = service.generate_trades(HOLDINGS, target_allocations={"stock": 80, "crypto": 80})
    assert payload["ok"] is False
    assert payload["error"]["errors"][0]["field"] == "target_allocations"


def test_generate_trades_uses_default_fee() -> None:
    service = make_service(default_fee_percent=1.0)
    payload = service.generate_trades(HOLDINGS, target_allocations={"stock": 75, "crypto": 25})
    assert payload["fee_percent"] == 1.0
    assert payload["trade_count"] == 2
    assert payload["total_sell"] == pytest.approx(500.0 * 1.01)
    assert payload["total_buy"] == pytest.approx(500.0 * 1.01)


def test_simulate_and_scenarios() -> None:
    service = make_service()
    simulation = service.simulate(HOLDINGS, target_allocations={"stock": 75, "crypto": 25}, fee_percent=0.0)
    assert simulation["simulation"]["deviation_before"] == pytest.approx(25.0)
    assert simulation["simulation"]["deviation_after"] == pytest.approx(0.0, abs=1e-9)

    scenario = service.run_scenario({"Stock": -10}, HOLDINGS, scenario_name="dip")
    assert scenario["scenario"]["pnl_change"] == pytest.approx(-100.0)

    presets = service.run_presets(HOLDINGS)
    assert presets["best"] == "boom"
    assert set(presets["scenarios"]) == {"crisis", "boom", "inflation", "recession", "stagflation"}
    assert service.get_resource_snapshot("stress_test")["payload"]["worst"] == "crisis"


def test_monte_carlo_respects_iteration_ceiling() -> None:
    service = make_service(max_iterations=500)
    payload = service.monte_carlo(HOLDINGS, iterations=1000)
    assert payload["ok"] is False
    assert payload["error"]["errors"][0]["field"] == "iterations"

    ok = service.monte_carlo(HOLDINGS, iterations=200, seed=4)
    assert ok["monte_carlo"]["iterations"] == 200
    assert ok["monte_carlo"]["current_value"] == pytest.approx(2000.0)


def test_indicators_from_prices_and_provider() -> None:
    prices = _StubPrices(closes={"AAPL": [100.0 + idx for idx in range(40)]})
    service = make_service(prices)

    inline = service.indicators(prices=[10.0] * 30, include_series=True)
    assert inline["latest"]["sma_20"] == pytest.approx(10.0)
    assert inline["max_drawdown"] == 0.0
    assert len(inline["series"]["rsi_14"]) == 30

    fetched = service.indicators(symbol="aapl")
    assert fetched["symbol"] == "AAPL"
    assert fetched["latest"]["rsi_14"] == pytest.approx(100.0)

    failed = service.indicators(symbol="MSFT")
    assert failed["ok"] is False
    assert failed["error"]["type"] == "provider_error"
    assert service.indicators()["ok"] is False


def test_signals_degrade_without_history() -> None:
    prices = _StubPrices(closes={"AAPL": [100.0 - idx for idx in range(40)]})
    service = make_service(prices)
    payload = service.signals(HOLDINGS)
    assert payload["ok"] is True
    assert len(payload["signals"]) == 2
    assert any("BTC" in warning for warning in payload["warnings"])
    assert sorted(prices.close_calls) == ["AAPL", "BTC"]


def test_refresh_prices_falls_back_to_stored_price() -> None:
    service = make_service(_StubPrices(quotes={"AAPL": 200.0}))
    payload = service.analyze_allocation(HOLDINGS, refresh_prices=True)
    assert payload["total_value"] == pytest.approx(3000.0)
    assert payload["warnings"] == ["Kept stored price for BTC: quote unavailable."]


def test_advisor_report_and_file_input(tmp_path) -> None:
    path = tmp_path / "holdings.csv"
    path.write_text(
        "symbol,asset_class,quantity,current_price,purchase_price\nAAPL,stock,10,100,80\nBTC,crypto,1,1000,1200\n",
        encoding="utf-8",
    )
    service = make_service()
    payload = service.advisor_report(file_path=str(path), strategy="conservative")
    assert payload["ok"] is True
    assert payload["portfolio_score"]["grade"]
    assert "threshold" in payload["summary"]
    assert service.get_resource_snapshot("advisor")["source"] == str(path)


def test_bad_file_path_is_a_validation_error(tmp_path) -> None:
    service = make_service()
    payload = service.validate_holdings(file_path=str(tmp_path / "missing.csv"))
    assert payload["error"]["errors"][0]["code"] == "file_error"
    assert service.validate_holdings(HOLDINGS) == {"ok": True, "message": "Holdings validated.", "rows": 2}


def test_unknown_snapshot_type_is_none() -> None:
    assert make_service().get_resource_snapshot("nope") is None


def test_list_strategies() -> None:
    payload = make_service().list_strategies()
    assert set(payload["strategies"]) == {"conservative", "balanced", "aggressive"}
    assert payload["strategies"]["aggressive"]["deviation_threshold"] == 10.0


@pytest.mark.parametrize("bad_price", [float("nan"), float("inf"), "101.0", None])
def test_indicators_reject_non_finite_prices(bad_price) -> None:
    payload = make_service().indicators(prices=[100.0, bad_price, 101.0] * 10)
    assert payload["ok"] is False
    error = payload["error"]["errors"][0]
    assert error["field"] == "prices"
    assert error["code"] == "invalid_prices"


def test_explicit_empty_targets_are_not_replaced_by_defaults() -> None:
    payload = make_service().analyze_allocation(HOLDINGS, target_allocations={})
    assert payload["ok"] is True
    assert payload["target_allocations"] == {}
    assert all(item["target_percent"] == 0.0 for item in payload["allocations"])


def test_legacy_excel_file_is_a_file_error(tmp_path) -> None:
    path = tmp_path / "holdings.xls"
    path.write_bytes(b"")
    payload = make_service().validate_holdings(file_path=str(path))
    assert payload["ok"] is False
    assert payload["error"]["errors"][0]["code"] == "file_error"
