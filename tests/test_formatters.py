from rebalancer.lib.formatters import fmt_percent, rebalance_reason


def test_fmt_percent() -> None:
    assert fmt_percent(12.346) == "12.3%"
    assert fmt_percent(12.346, 2) == "12.35%"
    assert fmt_percent(None) == "n/a"


def test_rebalance_reason() -> None:
    assert rebalance_reason(40, 55.54) == "Target: 40.0%, Current: 55.5%"
