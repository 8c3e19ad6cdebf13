"""Portfolio scoring, advisor heuristics and summary generation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from rebalancer.portfolio.allocation import calculate_total_value
from rebalancer.portfolio.models import KNOWN_ASSET_CLASSES, Holding

RiskLevel = Literal["conservative", "moderate", "aggressive", "very_aggressive"]
Priority = Literal["high", "medium", "low"]

VOLATILITY_WEIGHTS: dict[str, float] = {
    "crypto": 50,
    "stock": 30,
    "commodity": 25,
    "fund": 15,
    "currency": 10,
    "eurobond": 5,
}
DEFAULT_VOLATILITY_WEIGHT = 20.0
RISK_ASSET_CLASSES = ("crypto", "stock")
SUGGESTED_SYMBOLS: dict[str, str] = {
    "stock": "GARAN",
    "fund": "AFK",
    "eurobond": "USEUROBOND",
    "currency": "USD",
    "commodity": "GOLD",
    "crypto": "BTC",
}


@dataclass
class RiskFactors:
    diversification: float
    volatility: float
    concentration: float
    asset_allocation: float


@dataclass
class RiskProfile:
    level: RiskLevel
    score: float
    volatility_tolerance: float
    loss_tolerance: float
    investment_horizon: Literal["short", "medium", "long"]
    factors: RiskFactors


@dataclass
class AdvisorRecommendation:
    type: Literal["buy", "sell", "hold", "rebalance", "warning"]
    priority: Priority
    title: str
    description: str
    reason: str
    impact: str
    confidence: float
    action: dict[str, Any] = field(default_factory=dict)


@dataclass
class MarketSentiment:
    overall: Literal["bullish", "bearish", "neutral"]
    score: float
    technical: float
    fundamental: float
    sentiment: float
    short_term: str
    medium_term: str
    long_term: str


@dataclass
class PortfolioInsight:
    category: Literal["performance", "risk", "opportunity", "alert"]
    title: str
    message: str
    severity: Literal["info", "warning", "critical"]


@dataclass
class PortfolioScore:
    overall: float
    diversification: float
    performance: float
    risk_management: float
    asset_quality: float
    timing: float
    grade: str
    vs_market: float
    vs_peers: float


@dataclass
class SmartSuggestion:
    type: Literal["add_asset", "increase", "decrease", "exit"]
    symbol: str
    current_allocation: float
    suggested_allocation: float
    reason: str
    priority: int
    action_steps: list[str] = field(default_factory=list)


def _class_values(holdings: list[Holding]) -> dict[str, float]:
    values: dict[str, float] = {}
    for holding in holdings:
        values[holding.asset_class] = values.get(holding.asset_class, 0.0) + holding.market_value
    return values


def _share(value: float, total: float) -> float:
    return value / total if total > 0 else 0.0


def _total_pnl_percent(holdings: list[Holding]) -> float:
    invested = sum(holding.invested for holding in holdings)
    if invested <= 0:
        return 0.0
    return (calculate_total_value(holdings) - invested) / invested * 100.0


def _weighted_volatility(class_values: dict[str, float], total: float) -> float:
    return sum(
        _share(value, total) * VOLATILITY_WEIGHTS.get(asset_class, DEFAULT_VOLATILITY_WEIGHT)
        for asset_class, value in class_values.items()
    )


def analyze_risk_profile(holdings: list[Holding]) -> RiskProfile:
    total = calculate_total_value(holdings)
    if not holdings or total <= 0:
        return RiskProfile(
            level="conservative",
            score=0.0,
            volatility_tolerance=0.0,
            loss_tolerance=0.0,
            investment_horizon="short",
            factors=RiskFactors(diversification=0.0, volatility=0.0, concentration=0.0, asset_allocation=0.0),
        )

    class_values = _class_values(holdings)
    diversification = min(100.0, len(class_values) / len(KNOWN_ASSET_CLASSES) * 100.0)
    weighted_volatility = _weighted_volatility(class_values, total)
    risk_assets = sum(_share(class_values.get(name, 0.0), total) for name in RISK_ASSET_CLASSES)
    concentration = max(_share(value, total) * 100.0 for value in class_values.values())

    volatility_score = max(0.0, 100.0 - weighted_volatility * 2)
    concentration_score = max(0.0, 100.0 - concentration)
    allocation_score = 100.0 - abs(50.0 - risk_assets * 100.0)
    score = diversification * 0.3 + volatility_score * 0.3 + concentration_score * 0.2 + allocation_score * 0.2

    if score < 40:
        level: RiskLevel = "very_aggressive"
    elif score < 55:
        level = "aggressive"
    elif score < 70:
        level = "moderate"
    else:
        level = "conservative"

    horizon: Literal["short", "medium", "long"]
    if risk_assets > 0.6:
        horizon = "long"
    elif risk_assets > 0.3:
        horizon = "medium"
    else:
        horizon = "short"

    return RiskProfile(
        level=level,
        score=score,
        volatility_tolerance=100.0 - weighted_volatility,
        loss_tolerance=volatility_score,
        investment_horizon=horizon,
        factors=RiskFactors(
            diversification=diversification,
            volatility=volatility_score,
            concentration=concentration_score,
            asset_allocation=allocation_score,
        ),
    )


def generate_recommendations(holdings: list[Holding], profile: RiskProfile) -> list[AdvisorRecommendation]:
    recommendations: list[AdvisorRecommendation] = []
    total = calculate_total_value(holdings)
    class_values = _class_values(holdings)

    if len(holdings) < 5:
        recommendations.append(
            AdvisorRecommendation(
                type="buy",
                priority="high",
                title="Diversify your portfolio",
                description=f"The portfolio holds only {len(holdings)} positions.",
                reason="Diversification lowers risk and steadies returns.",
                impact="Risk may fall by 30-40%",
                confidence=85,
            )
        )

    crypto_percent = _share(class_values.get("crypto", 0.0), total) * 100.0
    if crypto_percent > 30 and profile.level == "conservative":
        recommendations.append(
            AdvisorRecommendation(
                type="rebalance",
                priority="high",
                title="Crypto weight is high",
                description=f"{crypto_percent:.1f}% of the portfolio is in crypto.",
                reason="A conservative profile suits 10-15% crypto.",
                impact="Volatility may fall by 40%",
                confidence=90,
                action={"target_allocation": {"crypto": 15}},
            )
        )
    if crypto_percent > 50 and profile.level == "aggressive":
        recommendations.append(
            AdvisorRecommendation(
                type="warning",
                priority="medium",
                title="Crypto concentration",
                description=f"{crypto_percent:.1f}% of the portfolio is in crypto.",
                reason="Even aggressive profiles rarely need more than 30-40% crypto.",
                impact="Excess volatility risk",
                confidence=80,
            )
        )

    for holding in holdings:
        if holding.invested > 0 and holding.profit_percent < -20:
            recommendations.append(
                AdvisorRecommendation(
                    type="sell",
                    priority="medium",
                    title=f"{holding.symbol} is losing value",
                    description=f"Down {abs(holding.profit_percent):.1f}%.",
                    reason="Consider a stop-loss or hold for the long term.",
                    impact="May stop further losses",
                    confidence=65,
                    action={"symbol": holding.symbol},
                )
            )

    winners = [holding for holding in holdings if holding.invested > 0 and holding.profit_percent > 50]
    for holding in winners[:2]:
        recommendations.append(
            AdvisorRecommendation(
                type="sell",
                priority="low",
                title=f"{holding.symbol} has a strong gain",
                description=f"Up {holding.profit_percent:.1f}%.",
                reason="Consider taking partial profit.",
                impact="Locks in gains",
                confidence=70,
                action={"symbol": holding.symbol, "amount": holding.market_value * 0.5},
            )
        )

    if len(class_values) >= 3 and any(_share(value, total) * 100.0 > 40 for value in class_values.values()):
        recommendations.append(
            AdvisorRecommendation(
                type="rebalance",
                priority="medium",
                title="Rebalancing needed",
                description="One asset class dominates the portfolio.",
                reason="A balanced spread is healthier.",
                impact="Improves the risk/return balance",
                confidence=85,
            )
        )

    bond_percent = _share(class_values.get("eurobond", 0.0), total) * 100.0
    if bond_percent < 10 and profile.level == "conservative":
        recommendations.append(
            AdvisorRecommendation(
                type="buy",
                priority="medium",
                title="Add bonds",
                description="The portfolio holds too few bonds.",
                reason="Conservative investors typically hold 20-30% bonds.",
                impact="Improves stability",
                confidence=80,
            )
        )

    order = {"high": 3, "medium": 2, "low": 1}
    return sorted(recommendations, key=lambda item: order[item.priority], reverse=True)


def _direction(score: float) -> str:
    if score > 55:
        return "up"
    if score < 45:
        return "down"
    return "sideways"


def analyze_market_sentiment(holdings: list[Holding]) -> MarketSentiment:
    total = calculate_total_value(holdings)
    class_values = _class_values(holdings)
    average_pnl = (sum(holding.profit_percent for holding in holdings) / len(holdings)) if holdings else 0.0

    technical = min(100.0, 50 + average_pnl * 2) if average_pnl > 0 else max(0.0, 50 + average_pnl * 2)
    fundamental = min(100.0, len(class_values) / len(KNOWN_ASSET_CLASSES) * 100.0)
    risk_ratio = sum(_share(class_values.get(name, 0.0), total) for name in RISK_ASSET_CLASSES)
    sentiment = 50 + risk_ratio * 50
    score = (technical + fundamental + sentiment) / 3

    if score > 60:
        overall: Literal["bullish", "bearish", "neutral"] = "bullish"
    elif score < 40:
        overall = "bearish"
    else:
        overall = "neutral"

    return MarketSentiment(
        overall=overall,
        score=score,
        technical=technical,
        fundamental=fundamental,
        sentiment=sentiment,
        short_term=_direction(technical),
        medium_term=_direction(fundamental),
        long_term=_direction(sentiment),
    )


def generate_portfolio_insights(
    holdings: list[Holding],
    profile: RiskProfile,
    sentiment: MarketSentiment,
) -> list[PortfolioInsight]:
    insights: list[PortfolioInsight] = []
    if profile.score < 50:
        insights.append(
            PortfolioInsight(
                category="risk",
                title="High risk detected",
                message=f"Risk score is {profile.score:.0f}/100 ({profile.level}).",
                severity="warning",
            )
        )

    pnl = _total_pnl_percent(holdings)
    if pnl > 20:
        insights.append(
            PortfolioInsight(
                category="performance",
                title="Strong performance",
                message=f"The portfolio is up {pnl:.1f}%.",
                severity="info",
            )
        )
    elif pnl < -10:
        insights.append(
            PortfolioInsight(
                category="alert",
                title="Negative return",
                message=f"The portfolio is down {abs(pnl):.1f}%. Review the strategy.",
                severity="critical",
            )
        )

    if sentiment.overall == "bearish":
        insights.append(
            PortfolioInsight(
                category="alert",
                title="Bearish tilt",
                message="Sentiment reads bearish. Consider defensive positioning.",
                severity="warning",
            )
        )
    elif sentiment.overall == "bullish":
        insights.append(
            PortfolioInsight(
                category="opportunity",
                title="Bullish tilt",
                message="Sentiment reads bullish.",
                severity="info",
            )
        )

    if profile.factors.diversification < 50:
        insights.append(
            PortfolioInsight(
                category="opportunity",
                title="Diversification opportunity",
                message="Adding asset classes can lower risk.",
                severity="info",
            )
        )
    return insights


def _grade(overall: float) -> str:
    for floor, grade in ((90, "A+"), (85, "A"), (80, "B+"), (70, "B"), (60, "C"), (50, "D")):
        if overall >= floor:
            return grade
    return "F"


def calculate_portfolio_score(holdings: list[Holding]) -> PortfolioScore:
    total = calculate_total_value(holdings)
    pnl = _total_pnl_percent(holdings)
    class_values = _class_values(holdings)

    diversification = min(100.0, len(class_values) / len(KNOWN_ASSET_CLASSES) * 100.0 + len(holdings) / 20 * 50)
    performance = min(100.0, max(0.0, 50 + pnl * 2))
    risk_management = max(0.0, 100.0 - _weighted_volatility(class_values, total) * 1.5)

    if holdings:
        average_pnl = sum(holding.profit_percent for holding in holdings) / len(holdings)
        dispersion = sum(abs(holding.profit_percent - average_pnl) for holding in holdings) / len(holdings)
        asset_quality = max(0.0, 100.0 - dispersion)
    else:
        asset_quality = 0.0
    timing = performance

    overall = (
        diversification * 0.25
        + performance * 0.25
        + risk_management * 0.2
        + asset_quality * 0.15
        + timing * 0.15
    )
    return PortfolioScore(
        overall=overall,
        diversification=diversification,
        performance=performance,
        risk_management=risk_management,
        asset_quality=asset_quality,
        timing=timing,
        grade=_grade(overall),
        vs_market=pnl - 15,
        vs_peers=overall - 70,
    )


def generate_smart_suggestions(holdings: list[Holding]) -> list[SmartSuggestion]:
    suggestions: list[SmartSuggestion] = []
    total = calculate_total_value(holdings)
    class_values = _class_values(holdings)

    missing = [asset_class for asset_class in KNOWN_ASSET_CLASSES if asset_class not in class_values]
    for asset_class in missing[:3]:
        symbol = SUGGESTED_SYMBOLS.get(asset_class, asset_class.upper())
        suggestions.append(
            SmartSuggestion(
                type="add_asset",
                symbol=symbol,
                current_allocation=0.0,
                suggested_allocation=10.0,
                reason=f"No {asset_class} exposure. Add it for diversification.",
                priority=80,
                action_steps=[f"Research {symbol}", "Buy about 10% of portfolio value", "Track it after the first buy"],
            )
        )

    for holding in holdings:
        allocation = _share(holding.market_value, total) * 100.0
        if allocation > 25:
            trim = (allocation - 15) / allocation * 100.0
            suggestions.append(
                SmartSuggestion(
                    type="decrease",
                    symbol=holding.symbol,
                    current_allocation=allocation,
                    suggested_allocation=15.0,
                    reason=f"{holding.symbol} is {allocation:.1f}% of the portfolio.",
                    priority=90,
                    action_steps=[f"Sell {trim:.0f}% of the {holding.symbol} position", "Spread proceeds across other classes"],
                )
            )
        if holding.invested > 0 and holding.profit_percent < -20:
            suggestions.append(
                SmartSuggestion(
                    type="exit",
                    symbol=holding.symbol,
                    current_allocation=allocation,
                    suggested_allocation=0.0,
                    reason=f"{holding.symbol} is down {abs(holding.profit_percent):.1f}%.",
                    priority=70,
                    action_steps=["Close the position to cap the loss", "Review why it fell"],
                )
            )
    return sorted(suggestions, key=lambda item: item.priority, reverse=True)


def build_advisor_summary(
    profile: RiskProfile,
    score: PortfolioScore,
    total_deviation: float,
    deviation_threshold: float = 10.0,
) -> str:
    tilt = "growth/aggressive" if profile.level in {"aggressive", "very_aggressive"} else "defensive"
    drift_note = (
        f"Allocation drift of {total_deviation:.1f}% exceeds the {deviation_threshold:.0f}% threshold; rebalancing is advised."
        if total_deviation > deviation_threshold
        else f"Allocation drift of {total_deviation:.1f}% is within the {deviation_threshold:.0f}% threshold."
    )
    return (
        f"Portfolio grade {score.grade} (score {score.overall:.1f}/100) with a {tilt} tilt "
        f"(risk profile {profile.level}, {profile.score:.1f}/100). {drift_note}"
    )
