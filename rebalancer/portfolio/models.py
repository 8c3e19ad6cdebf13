"""Typed portfolio models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

KNOWN_ASSET_CLASSES = ("stock", "crypto", "fund", "eurobond", "currency", "commodity")

TradeAction = Literal["buy", "sell"]
SimulationStatus = Literal["pending", "executed", "cancelled"]


def normalize_asset_class(name: str) -> str:
    return str(name).strip().lower()


@dataclass(frozen=True)
class Holding:
    id: str
    symbol: str
    asset_class: str
    quantity: float
    current_price: float
    purchase_price: float

    def __post_init__(self) -> None:
        # class tags compare case-insensitively against target and scenario maps
        object.__setattr__(self, "asset_class", normalize_asset_class(self.asset_class))

    @property
    def market_value(self) -> float:
        return self.quantity * self.current_price

    @property
    def invested(self) -> float:
        return self.quantity * self.purchase_price

    @property
    def profit_percent(self) -> float:
        if self.purchase_price <= 0:
            return 0.0
        return (self.current_price - self.purchase_price) / self.purchase_price * 100.0


@dataclass
class Allocation:
    asset_class: str
    current_value: float
    current_percent: float
    target_percent: float = 0.0
    deviation: float = 0.0


@dataclass
class Trade:
    symbol: str
    asset_class: str
    action: TradeAction
    amount: float
    shares: float
    current_price: float
    reason: str


@dataclass
class RebalancingStrategy:
    name: str
    target_allocations: dict[str, float]
    deviation_threshold: float = 10.0
    is_active: bool = True


@dataclass
class RebalancingSimulation:
    current_allocations: dict[str, float]
    target_allocations: dict[str, float]
    suggested_trades: list[Trade]
    expected_cost: float
    deviation_before: float
    deviation_after: float
    status: SimulationStatus = "pending"


@dataclass
class AssetImpact:
    symbol: str
    asset_class: str
    current_value: float
    projected_value: float
    change: float
    change_percent: float


@dataclass
class ScenarioResult:
    scenario_name: str
    current_value: float
    projected_value: float
    pnl_change: float
    pnl_percent: float
    asset_impacts: list[AssetImpact] = field(default_factory=list)


@dataclass
class ScenarioComparison:
    best: ScenarioResult
    worst: ScenarioResult
    average_change: float


@dataclass
class MonteCarloResult:
    mean: float
    median: float
    worst_case: float
    best_case: float
    confidence_95_lower: float
    confidence_95_upper: float
    confidence_99_lower: float
    confidence_99_upper: float
    probability_loss: float
    probability_gain_10: float
    probability_gain_20: float
    iterations: int = 0
    current_value: float = 0.0


@dataclass
class ValidationIssue:
    field: str
    message: str
    row: int | None = None
    code: str = "invalid_value"
