"""Trade generation for closing target allocation gaps."""

from __future__ import annotations

import logging
from dataclasses import replace

from rebalancer.lib.formatters import rebalance_reason
from rebalancer.portfolio.allocation import (
    allocation_percent_map,
    calculate_current_allocations,
    calculate_deviations,
    calculate_total_deviation,
    calculate_total_value,
)
from rebalancer.portfolio.models import Allocation, Holding, RebalancingSimulation, Trade
from rebalancer.portfolio.validation import validate_fee_percent, validate_target_allocations

LOGGER = logging.getLogger(__name__)

DEFAULT_FEE_PERCENT = 0.1
DEAD_BAND_FRACTION = 0.01
PLACEHOLDER_PRICE = 100.0


def _placeholder_symbol(asset_class: str) -> str:
    return f"{asset_class.upper()}_INDEX"


def _group_by_class(holdings: list[Holding]) -> dict[str, list[Holding]]:
    grouped: dict[str, list[Holding]] = {}
    for holding in holdings:
        grouped.setdefault(holding.asset_class, []).append(holding)
    return grouped


def _plan_trades(holdings: list[Holding], target_allocations: dict[str, float]) -> list[Trade]:
    """Pre-fee trades, one pass per asset class in the target map or the holdings."""
    total_value = calculate_total_value(holdings)
    if total_value == 0:
        return []

    grouped = _group_by_class(holdings)
    asset_classes = list(dict.fromkeys([*target_allocations.keys(), *grouped.keys()]))
    dead_band = total_value * DEAD_BAND_FRACTION
    trades: list[Trade] = []

    for asset_class in asset_classes:
        class_holdings = grouped.get(asset_class, [])
        current_value = sum(holding.market_value for holding in class_holdings)
        target_percent = float(target_allocations.get(asset_class, 0.0))
        target_value = total_value * target_percent / 100.0
        difference = target_value - current_value
        if abs(difference) < dead_band:
            continue

        reason = rebalance_reason(target_percent, current_value / total_value * 100.0)
        if difference > 0:
            if class_holdings:
                symbol, price = class_holdings[0].symbol, class_holdings[0].current_price
            else:
                symbol, price = _placeholder_symbol(asset_class), PLACEHOLDER_PRICE
            trades.append(
                Trade(
                    symbol=symbol,
                    asset_class=asset_class,
                    action="buy",
                    amount=difference,
                    shares=difference / price if price > 0 else 0.0,
                    current_price=price,
                    reason=reason,
                )
            )
            continue

        # sell losers before winners
        remaining = abs(difference)
        for holding in sorted(class_holdings, key=lambda item: item.profit_percent):
            if remaining <= 0:
                break
            sell_value = min(holding.market_value, remaining)
            if sell_value <= 0:
                continue
            trades.append(
                Trade(
                    symbol=holding.symbol,
                    asset_class=asset_class,
                    action="sell",
                    amount=sell_value,
                    shares=sell_value / holding.current_price,
                    current_price=holding.current_price,
                    reason=reason,
                )
            )
            remaining -= sell_value
    return trades


def _apply_fee(trades: list[Trade], fee_percent: float) -> list[Trade]:
    factor = 1.0 + fee_percent / 100.0
    return [replace(trade, amount=trade.amount * factor) for trade in trades]


def generate_rebalancing_trades(
    holdings: list[Holding],
    target_allocations: dict[str, float],
    fee_percent: float = DEFAULT_FEE_PERCENT,
) -> list[Trade]:
    """Buy/sell trades that move each asset class toward its target percent.

    Amounts include the transaction fee; share counts are computed on the
    pre-fee amount.
    """
    targets = validate_target_allocations(target_allocations)
    fee = validate_fee_percent(fee_percent)
    trades = _apply_fee(_plan_trades(holdings, targets), fee)
    LOGGER.info(
        "rebalancing trades generated: holdings=%s classes=%s trades=%s fee_percent=%s",
        len(holdings),
        len(targets),
        len(trades),
        fee,
    )
    return trades


def _proforma_allocations(holdings: list[Holding], trades: list[Trade]) -> list[Allocation]:
    values: dict[str, float] = {}
    for holding in holdings:
        values[holding.asset_class] = values.get(holding.asset_class, 0.0) + holding.market_value
    for trade in trades:
        signed = trade.amount if trade.action == "buy" else -trade.amount
        values[trade.asset_class] = values.get(trade.asset_class, 0.0) + signed
    total = sum(values.values())
    if total <= 0:
        return []
    return [
        Allocation(asset_class=asset_class, current_value=value, current_percent=value / total * 100.0)
        for asset_class, value in values.items()
    ]


def simulate_rebalancing(
    holdings: list[Holding],
    target_allocations: dict[str, float],
    fee_percent: float = DEFAULT_FEE_PERCENT,
) -> RebalancingSimulation:
    targets = validate_target_allocations(target_allocations)
    fee = validate_fee_percent(fee_percent)
    planned = _plan_trades(holdings, targets)

    before = calculate_deviations(calculate_current_allocations(holdings), targets)
    after = calculate_deviations(_proforma_allocations(holdings, planned), targets)
    expected_cost = sum(trade.amount for trade in planned) * fee / 100.0

    return RebalancingSimulation(
        current_allocations=allocation_percent_map(before),
        target_allocations=targets,
        suggested_trades=_apply_fee(planned, fee),
        expected_cost=expected_cost,
        deviation_before=calculate_total_deviation(before),
        deviation_after=calculate_total_deviation(after),
    )
