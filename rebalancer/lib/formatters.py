"""Response formatting helpers."""

from __future__ import annotations

FINANCIAL_DISCLAIMER = "Informational use only. This is not financial advice."


def fmt_percent(value: float | None, decimals: int = 1) -> str:
    if value is None:
        return "n/a"
    return f"{value:.{decimals}f}%"


def rebalance_reason(target_percent: float, current_percent: float) -> str:
    return f"Target: {fmt_percent(target_percent)}, Current: {fmt_percent(current_percent)}"
