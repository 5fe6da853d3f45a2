# src/dealengine/analysis/insights.py
"""
Narrative insights layered on top of metrics, scores and alerts.

Everything here is presentation-neutral plain data: strings and small
dataclasses a UI can render however it likes.
"""
from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Literal, Optional, Sequence

from dealengine.analysis.scoring import round_half_up
from dealengine.domain.alerts import Alert, AlertType
from dealengine.domain.market import MarketData
from dealengine.domain.metrics import FlipMetrics, PropertyMetrics
from dealengine.domain.scores import ScoreBreakdown, ScoreKind

Position = Literal["top", "above-average", "average", "below-average", "bottom", "unknown"]
Verdict = Literal["STRONG_BUY", "BUY", "PROCEED_WITH_CAUTION", "DO_NOT_PROCEED", "PASS"]
Level = Literal["HIGH", "MEDIUM"]

FLIP_TARGET_ROI = 0.20
RENTAL_TARGET_ROI = 0.12
RENTAL_TARGET_CASH_FLOW = 200.0
RENTAL_TARGET_EXPENSE_SHARE = 0.45


@dataclass(frozen=True)
class MarketPosition:
    position: Position
    percentile: int
    insight: str
    metric: str = "ROI"


@dataclass(frozen=True)
class InvestmentRecommendation:
    recommendation: Verdict
    confidence: Level
    reasoning: List[str]
    score: int


@dataclass(frozen=True)
class Improvement:
    category: str
    current: float
    target: float
    improvement: str
    impact: Level


@dataclass
class InsightsReport:
    quick_insights: List[str]
    market_position: MarketPosition
    recommendation: InvestmentRecommendation
    improvements: List[Improvement]
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


def _pct(x: float, digits: int = 0) -> str:
    return f"{x * 100:.{digits}f}%"


# =====================================================================
# Quick insights
# =====================================================================


def flip_insights(metrics: FlipMetrics, market: Optional[MarketData] = None) -> List[str]:
    out: List[str] = []
    roi = metrics.roi

    if roi >= 0.30:
        out.append(f"Exceptional {_pct(roi)} ROI, well above the 20% target")
    elif roi >= 0.20:
        out.append(f"Strong {_pct(roi)} ROI meets investment criteria")
    elif roi >= 0.15:
        out.append(f"{_pct(roi)} ROI is acceptable but below optimal range")
    else:
        out.append(f"{_pct(roi)} ROI is below minimum 15% threshold")

    months = metrics.months_to_flip
    if months > 0:
        per_month = metrics.net_profit / months
        if per_month >= 5000:
            out.append(f"Earning ${per_month:,.0f}/month, excellent velocity")
        elif per_month >= 3000:
            out.append(f"Earning ${per_month:,.0f}/month, good velocity")
        else:
            out.append(f"Earning ${per_month:,.0f}/month, consider a faster timeline")

    if metrics.purchase_price > 0:
        ratio = metrics.base_rehab / metrics.purchase_price
        if ratio <= 0.15:
            out.append(f"Light rehab ({_pct(ratio)} of purchase), lower risk")
        elif ratio <= 0.30:
            out.append(f"Moderate rehab ({_pct(ratio)} of purchase), manageable scope")
        elif ratio <= 0.50:
            out.append(f"Heavy rehab ({_pct(ratio)} of purchase), higher risk")
        else:
            out.append(f"Extensive rehab ({_pct(ratio)} of purchase), very high risk")

    if market is not None and market.avg_flip_roi:
        cmp = roi / market.avg_flip_roi
        if cmp >= 1.2:
            out.append(f"ROI is {_pct(cmp - 1)} above market average")
        elif cmp <= 0.8:
            out.append(f"ROI is {_pct(1 - cmp)} below market average")

    return out


def rental_insights(metrics: PropertyMetrics, market: Optional[MarketData] = None) -> List[str]:
    out: List[str] = []
    cf, roi, cap, dscr = metrics.monthly_cash_flow, metrics.roi, metrics.cap_rate, metrics.dscr

    if cf >= 500:
        out.append(f"Strong ${cf:,.0f}/month cash flow, excellent income")
    elif cf >= 300:
        out.append(f"Solid ${cf:,.0f}/month cash flow, good income")
    elif cf >= 100:
        out.append(f"Modest ${cf:,.0f}/month cash flow, minimal buffer")
    elif cf >= 0:
        out.append(f"Minimal ${cf:,.0f}/month cash flow, very tight margins")
    else:
        out.append(f"Negative ${abs(cf):,.0f}/month, losing money")

    if roi >= 0.15:
        out.append(f"Excellent {_pct(roi, 1)} ROI, well above 12% target")
    elif roi >= 0.12:
        out.append(f"Strong {_pct(roi, 1)} ROI meets investment criteria")
    elif roi >= 0.08:
        out.append(f"{_pct(roi, 1)} ROI is acceptable but below optimal")
    else:
        out.append(f"{_pct(roi, 1)} ROI is below minimum 8% threshold")

    if cap >= 0.10:
        out.append(f"{_pct(cap, 1)} cap rate, excellent value")
    elif cap >= 0.08:
        out.append(f"{_pct(cap, 1)} cap rate, good value")
    elif cap >= 0.06:
        out.append(f"{_pct(cap, 1)} cap rate, fair value")
    else:
        out.append(f"{_pct(cap, 1)} cap rate, may be overpriced")

    if dscr >= 1.5:
        out.append(f"DSCR of {dscr:.2f}, excellent financing qualification")
    elif dscr >= 1.25:
        out.append(f"DSCR of {dscr:.2f}, strong financing qualification")
    elif dscr >= 1.0:
        out.append(f"DSCR of {dscr:.2f}, marginal financing qualification")
    else:
        out.append(f"DSCR of {dscr:.2f}, may not qualify for financing")

    if metrics.monthly_rent > 0:
        ratio = metrics.total_monthly_expenses / metrics.monthly_rent
        if ratio <= 0.40:
            out.append(f"Operating expenses are {_pct(ratio)} of rent, efficient")
        elif ratio <= 0.50:
            out.append(f"Operating expenses are {_pct(ratio)} of rent, typical")
        else:
            out.append(f"Operating expenses are {_pct(ratio)} of rent, high")

    if market is not None:
        if market.avg_roi and roi > 0:
            cmp = roi / market.avg_roi
            if cmp >= 1.15:
                out.append(f"ROI is {_pct(cmp - 1)} above market average for this area")
            elif cmp <= 0.85:
                out.append(f"ROI is {_pct(1 - cmp)} below market average for this area")
        if market.avg_cap_rate and cap > 0:
            cmp = cap / market.avg_cap_rate
            if cmp >= 1.15:
                out.append(f"Cap rate is {_pct(cmp - 1)} above market average")
            elif cmp <= 0.85:
                out.append(f"Cap rate is {_pct(1 - cmp)} below market average")

    return out


# =====================================================================
# Market position
# =====================================================================


def percentile_rank(value: float, market_values: Optional[Sequence[float]]) -> int:
    """Index of the first market value >= ``value``, as a percentage."""
    if not market_values:
        return 50
    ordered = sorted(market_values)
    idx = bisect.bisect_left(ordered, value)
    if idx == len(ordered):
        return 100
    if idx == 0:
        return 0
    return round_half_up(idx / len(ordered) * 100)


def market_position(roi: float, market: Optional[MarketData]) -> MarketPosition:
    if market is None:
        return MarketPosition("unknown", 50, "Market data not available for comparison")

    pct = 50
    if market.roi_values and roi:
        pct = percentile_rank(roi, market.roi_values)

    if pct >= 90:
        return MarketPosition("top", pct, f"Top {100 - pct}%: ROI is in the top tier for this market")
    if pct >= 75:
        return MarketPosition("above-average", pct, f"Top {100 - pct}%: ROI is above average for this market")
    if pct >= 50:
        return MarketPosition("average", pct, f"ROI is around the market average ({pct}th percentile)")
    if pct >= 25:
        return MarketPosition("below-average", pct, f"ROI is below average for this market ({pct}th percentile)")
    return MarketPosition("bottom", pct, f"Bottom {pct}%: ROI is in the lower tier for this market")


# =====================================================================
# Recommendation
# =====================================================================


def investment_recommendation(score: ScoreBreakdown, alerts: Sequence[Alert]) -> InvestmentRecommendation:
    total = score.total
    errors = sum(1 for a in alerts if a.type is AlertType.ERROR)
    warnings = sum(1 for a in alerts if a.type is AlertType.WARNING)

    # a strong score does not outweigh a critical issue
    if errors:
        return InvestmentRecommendation(
            "DO_NOT_PROCEED", "HIGH",
            [f"{errors} critical issue(s) identified", "Significant risks present"],
            total,
        )
    if total >= 80:
        return InvestmentRecommendation(
            "STRONG_BUY", "HIGH",
            ["Excellent metrics across all categories", "No critical issues identified"],
            total,
        )
    if total >= 60:
        reasons = ["Solid investment opportunity"]
        if warnings:
            reasons.append(f"{warnings} warning(s) to address")
        return InvestmentRecommendation("BUY", "MEDIUM" if warnings else "HIGH", reasons, total)
    if total >= 40:
        return InvestmentRecommendation(
            "PROCEED_WITH_CAUTION", "MEDIUM",
            ["Mixed results, careful review needed", "Consider negotiating better terms"],
            total,
        )
    return InvestmentRecommendation(
        "PASS", "MEDIUM",
        ["Below minimum investment criteria", "Better opportunities likely available"],
        total,
    )


# =====================================================================
# Improvement suggestions
# =====================================================================


def flip_improvements(metrics: FlipMetrics) -> List[Improvement]:
    """
    Rule-of-thumb targets for a 20% ROI: 6% of ARV to sell, 8% of the
    purchase price for closing and holding.
    """
    out: List[Improvement] = []
    if metrics.roi >= FLIP_TARGET_ROI:
        return out

    arv, price, rehab = metrics.arv, metrics.purchase_price, metrics.base_rehab

    target_price = (arv * 0.94 - rehab - price * 0.08) / 1.08
    if target_price < price:
        out.append(Improvement(
            "Purchase Price", price, float(round_half_up(target_price)),
            f"Negotiate purchase price down to ${target_price:,.0f} for 20% ROI",
            "HIGH",
        ))

    target_rehab = arv * 0.94 - price * 1.08 - price * 0.08
    if 0 < target_rehab < rehab:
        out.append(Improvement(
            "Rehab Cost", rehab, float(round_half_up(target_rehab)),
            f"Reduce rehab costs to ${target_rehab:,.0f} for 20% ROI",
            "HIGH",
        ))

    return out


def rental_improvements(metrics: PropertyMetrics, purchase_price: float) -> List[Improvement]:
    out: List[Improvement] = []
    rent = metrics.monthly_rent
    expenses = metrics.total_monthly_expenses

    if metrics.monthly_cash_flow < RENTAL_TARGET_CASH_FLOW:
        target_rent = expenses + RENTAL_TARGET_CASH_FLOW
        out.append(Improvement(
            "Monthly Rent", rent, float(round_half_up(target_rent)),
            f"Increase rent to ${target_rent:,.0f} for $200/month cash flow",
            "HIGH",
        ))

    if metrics.roi < RENTAL_TARGET_ROI:
        target_investment = metrics.annual_cash_flow / RENTAL_TARGET_ROI
        if target_investment < metrics.total_cash_invested:
            target_price = purchase_price - (metrics.total_cash_invested - target_investment)
            out.append(Improvement(
                "Purchase Price", purchase_price, float(round_half_up(target_price)),
                "Negotiate purchase price down for 12% ROI target",
                "HIGH",
            ))

    if expenses > rent * RENTAL_TARGET_EXPENSE_SHARE:
        target_expenses = rent * RENTAL_TARGET_EXPENSE_SHARE
        out.append(Improvement(
            "Operating Expenses", expenses, float(round_half_up(target_expenses)),
            f"Reduce monthly expenses to ${target_expenses:,.0f} (45% of rent)",
            "MEDIUM",
        ))

    return out


def build_insights_report(
    kind: ScoreKind,
    metrics: FlipMetrics | PropertyMetrics,
    score: ScoreBreakdown,
    alerts: Sequence[Alert],
    market: Optional[MarketData] = None,
    purchase_price: float = 0.0,
) -> InsightsReport:
    if kind == "flip":
        quick = flip_insights(metrics, market)
        improvements = flip_improvements(metrics)
    else:
        quick = rental_insights(metrics, market)
        improvements = rental_improvements(metrics, purchase_price)

    return InsightsReport(
        quick_insights=quick,
        market_position=market_position(metrics.roi, market),
        recommendation=investment_recommendation(score, alerts),
        improvements=improvements,
    )
