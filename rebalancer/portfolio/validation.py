"""Portfolio validation logic."""

from __future__ import annotations

import math
from typing import Any

import pandas as pd

from rebalancer.lib.errors import InvalidConfigurationError
from rebalancer.portfolio.data_loader import REQUIRED_COLUMNS, frame_to_records
from rebalancer.portfolio.models import Holding, ValidationIssue, normalize_asset_class

TARGET_SUM_TOLERANCE = 0.01


def is_finite_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(float(value))


def _class_key(field: str, asset_class: Any, seen: dict[str, float]) -> str:
    if not isinstance(asset_class, str) or not asset_class.strip():
        raise InvalidConfigurationError(field, "Asset class keys must be non-empty strings.")
    key = normalize_asset_class(asset_class)
    if key in seen:
        raise InvalidConfigurationError(field, f"Asset class {asset_class!r} is listed more than once.")
    return key


def validate_target_allocations(target_allocations: dict[str, float]) -> dict[str, float]:
    """Reject negative, non-numeric, duplicated or over-allocated target maps."""
    clean: dict[str, float] = {}
    for asset_class, percent in target_allocations.items():
        key = _class_key("target_allocations", asset_class, clean)
        if not is_finite_number(percent):
            raise InvalidConfigurationError("target_allocations", f"Target for {asset_class} must be numeric.")
        if percent < 0 or percent > 100:
            raise InvalidConfigurationError(
                "target_allocations",
                f"Target for {asset_class} must be between 0 and 100, received {percent}.",
            )
        clean[key] = float(percent)
    total = sum(clean.values())
    if total > 100.0 + TARGET_SUM_TOLERANCE:
        raise InvalidConfigurationError(
            "target_allocations",
            f"Targets must not sum above 100, received {total:.4f}.",
        )
    return clean


def validate_fee_percent(fee_percent: float) -> float:
    if not is_finite_number(fee_percent) or fee_percent < 0:
        raise InvalidConfigurationError("fee_percent", f"must be a non-negative number, received {fee_percent}.")
    return float(fee_percent)


def validate_iterations(iterations: int) -> int:
    if not isinstance(iterations, int) or isinstance(iterations, bool) or iterations <= 0:
        raise InvalidConfigurationError("iterations", f"must be a positive integer, received {iterations}.")
    return iterations


def validate_volatility_map(volatility_by_class: dict[str, float]) -> dict[str, float]:
    clean: dict[str, float] = {}
    for asset_class, volatility in volatility_by_class.items():
        key = _class_key("volatility_by_class", asset_class, clean)
        if not is_finite_number(volatility) or volatility < 0:
            raise InvalidConfigurationError(
                "volatility_by_class",
                f"Volatility for {asset_class} must be a non-negative number, received {volatility}.",
            )
        clean[key] = float(volatility)
    return clean


def validate_price_changes(price_changes: dict[str, float]) -> dict[str, float]:
    clean: dict[str, float] = {}
    for asset_class, change in price_changes.items():
        key = _class_key("price_changes", asset_class, clean)
        if not is_finite_number(change):
            raise InvalidConfigurationError(
                "price_changes",
                f"Change for {asset_class} must be a finite number, received {change}.",
            )
        clean[key] = float(change)
    return clean


def validate_holding_records(records: list[dict[str, Any]]) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for idx, record in enumerate(records):
        row_num = idx + 1
        symbol = str(record.get("symbol") or "").strip()
        if not symbol:
            issues.append(ValidationIssue(field="symbol", row=row_num, code="missing_symbol", message="Symbol is required."))

        asset_class = str(record.get("asset_class") or "").strip()
        if not asset_class:
            issues.append(
                ValidationIssue(
                    field="asset_class",
                    row=row_num,
                    code="missing_asset_class",
                    message="Asset class is required.",
                )
            )

        for field_name in ("quantity", "current_price", "purchase_price"):
            value = record.get(field_name)
            if not is_finite_number(value) or float(value) < 0:
                issues.append(
                    ValidationIssue(
                        field=field_name,
                        row=row_num,
                        code=f"invalid_{field_name}",
                        message=f"{field_name} must be a non-negative number.",
                    )
                )
    return issues


def holdings_from_records(records: list[dict[str, Any]]) -> list[Holding]:
    """Build holdings from already-validated plain records."""
    holdings: list[Holding] = []
    for idx, record in enumerate(records):
        holdings.append(
            Holding(
                id=str(record.get("id") or idx + 1),
                symbol=str(record["symbol"]).strip().upper(),
                asset_class=str(record["asset_class"]),
                quantity=float(record["quantity"]),
                current_price=float(record["current_price"]),
                purchase_price=float(record["purchase_price"]),
            )
        )
    return holdings


def validate_holdings_frame(frame: pd.DataFrame) -> list[ValidationIssue]:
    """Column-level checks for a loaded holdings sheet; row checks reuse the record validator."""
    missing = [col for col in REQUIRED_COLUMNS if col not in frame.columns]
    if missing:
        return [
            ValidationIssue(field=col, code="missing_column", message=f"Required column is missing: {col}")
            for col in missing
        ]
    if frame.empty:
        return [ValidationIssue(field="file", code="empty_file", message="Holdings file has no rows.")]

    issues: list[ValidationIssue] = []
    for issue in validate_holding_records(frame_to_records(frame)):
        # header occupies the first sheet row
        issue.row = issue.row + 1 if issue.row is not None else None
        issues.append(issue)
    return issues
