# src/dealengine/analysis/scoring.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from dealengine.domain.market import MarketData
from dealengine.domain.metrics import FlipMetrics, PropertyMetrics
from dealengine.domain.scores import (
    MetricHighlight,
    Recommendation,
    ScoreBreakdown,
    ScoreKind,
    ScoreReport,
)


@dataclass(frozen=True)
class Bands:
    """Band edges for one metric, best to worst."""
    excellent: float
    good: float
    fair: float
    poor: float


FLIP_WEIGHTS: Dict[str, float] = {
    "roi": 0.40,
    "profit": 0.30,
    "timeline": 0.15,
    "risk": 0.15,
}

RENTAL_WEIGHTS: Dict[str, float] = {
    "cash_flow": 0.25,
    "roi": 0.25,
    "cap_rate": 0.20,
    "dscr": 0.15,
    "market": 0.15,
}

FLIP_BANDS: Dict[str, Bands] = {
    "roi": Bands(0.30, 0.20, 0.15, 0.10),
    "profit": Bands(50_000, 30_000, 20_000, 10_000),
    # months, lower is better
    "timeline": Bands(3, 6, 9, 12),
}

RENTAL_BANDS: Dict[str, Bands] = {
    "cash_flow": Bands(500, 300, 100, 0),
    "roi": Bands(0.15, 0.12, 0.08, 0.05),
    "cap_rate": Bands(0.10, 0.08, 0.06, 0.04),
    "dscr": Bands(1.5, 1.25, 1.1, 1.0),
}


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _lerp(base: float, num: float, den: float) -> float:
    # collapsed band: treat as the top of the band
    if den == 0:
        return base + 25.0
    return base + (num / den) * 25.0


def score_metric(value: Optional[float], bands: Bands, higher_is_better: bool = True) -> float:
    """
    Piecewise-linear 0-100 sub-score.

    >= excellent -> 100, good..excellent -> 75..100, fair..good -> 50..75,
    poor..fair -> 25..50, below poor -> 0..25 scaled by value/poor. The
    lower-is-better branch mirrors this. A missing value scores 0.
    """
    if value is None:
        return 0.0
    try:
        v = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(v):
        return 0.0

    ex, good, fair, poor = bands.excellent, bands.good, bands.fair, bands.poor

    if higher_is_better:
        if v >= ex:
            return 100.0
        if v >= good:
            return _lerp(75.0, v - good, ex - good)
        if v >= fair:
            return _lerp(50.0, v - fair, good - fair)
        if v >= poor:
            return _lerp(25.0, v - poor, fair - poor)
        if poor <= 0:
            return 0.0
        return max(0.0, min(25.0, (v / poor) * 25.0))

    if v <= ex:
        return 100.0
    if v <= good:
        return _lerp(75.0, good - v, good - ex)
    if v <= fair:
        return _lerp(50.0, fair - v, fair - good)
    if v <= poor:
        return _lerp(25.0, poor - v, poor - fair)
    if poor <= 0:
        return 0.0
    return max(0.0, 25.0 - ((v - poor) / poor) * 25.0)


def rehab_risk_score(rehab_cost: float, purchase_price: float) -> float:
    """Step function on rehab / purchase price; not interpolated."""
    ratio = rehab_cost / purchase_price if purchase_price > 0 else 0.0
    if ratio > 0.50:
        return 25.0
    if ratio > 0.30:
        return 50.0
    if ratio > 0.15:
        return 75.0
    return 100.0


def market_score(roi: float, market: Optional[MarketData]) -> float:
    if market is None or not market.avg_roi:
        return 50.0
    ratio = roi / market.avg_roi
    if ratio >= 1.2:
        return 100.0
    if ratio >= 1.1:
        return 80.0
    if ratio >= 0.9:
        return 60.0
    if ratio >= 0.8:
        return 40.0
    return 20.0


def _weighted(kind: ScoreKind, raw: Dict[str, float], weights: Dict[str, float]) -> ScoreBreakdown:
    total = round_half_up(sum(raw[k] * weights[k] for k in weights))
    return ScoreBreakdown(
        kind=kind,
        scores={k: round_half_up(v) for k, v in raw.items()},
        weights=dict(weights),
        total=total,
    )


def score_flip(metrics: FlipMetrics) -> ScoreBreakdown:
    raw = {
        "roi": score_metric(metrics.roi, FLIP_BANDS["roi"]),
        "profit": score_metric(metrics.net_profit, FLIP_BANDS["profit"]),
        "timeline": score_metric(metrics.months_to_flip, FLIP_BANDS["timeline"], higher_is_better=False),
        "risk": rehab_risk_score(metrics.base_rehab, metrics.purchase_price),
    }
    return _weighted("flip", raw, FLIP_WEIGHTS)


def score_rental(metrics: PropertyMetrics, market: Optional[MarketData] = None) -> ScoreBreakdown:
    raw = {
        "cash_flow": score_metric(metrics.monthly_cash_flow, RENTAL_BANDS["cash_flow"]),
        "roi": score_metric(metrics.roi, RENTAL_BANDS["roi"]),
        "cap_rate": score_metric(metrics.cap_rate, RENTAL_BANDS["cap_rate"]),
        "dscr": score_metric(metrics.dscr, RENTAL_BANDS["dscr"]),
        "market": market_score(metrics.roi, market),
    }
    return _weighted("rental", raw, RENTAL_WEIGHTS)


# =====================================================================
# Recommendation, stars, report
# =====================================================================


def recommend(score: float) -> Recommendation:
    if score >= 80:
        return Recommendation(
            "excellent",
            "Excellent Investment",
            "Strong metrics across all categories. Highly recommended.",
        )
    if score >= 60:
        return Recommendation("good", "Good Investment", "Solid opportunity with good potential returns.")
    if score >= 40:
        return Recommendation("caution", "Proceed with Caution", "Mixed results. Review carefully before proceeding.")
    if score >= 20:
        return Recommendation("high_risk", "High Risk", "Below-average metrics. Significant risks identified.")
    return Recommendation("not_recommended", "Not Recommended", "Poor metrics. Not recommended for investment.")


def star_rating(score: float) -> int:
    return max(0, min(5, round_half_up(score / 20.0)))


_IMPORTANCE_ORDER = {"high": 3, "medium": 2, "low": 1}


def _importance(weight: float) -> str:
    if weight >= 0.20:
        return "high"
    if weight >= 0.10:
        return "medium"
    return "low"


def score_report(breakdown: ScoreBreakdown) -> ScoreReport:
    """Top three strengths (>= 75) and weaknesses (< 50), most heavily weighted first."""
    strengths: List[MetricHighlight] = []
    weaknesses: List[MetricHighlight] = []

    for metric, score in breakdown.scores.items():
        importance = _importance(breakdown.weights.get(metric, 0.0))
        if score >= 75:
            strengths.append(MetricHighlight(metric, score, importance))
        elif score < 50:
            weaknesses.append(MetricHighlight(metric, score, importance))

    # stable sort keeps breakdown order within an importance tier
    strengths.sort(key=lambda h: -_IMPORTANCE_ORDER[h.importance])
    weaknesses.sort(key=lambda h: -_IMPORTANCE_ORDER[h.importance])

    return ScoreReport(
        kind=breakdown.kind,
        score=breakdown.total,
        stars=star_rating(breakdown.total),
        recommendation=recommend(breakdown.total),
        breakdown=dict(breakdown.scores),
        strengths=strengths[:3],
        weaknesses=weaknesses[:3],
    )


def compare_properties(scored: Sequence[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Rank properties by score. Each item must carry a ``score`` that is either a
    ScoreBreakdown or a plain number; other keys are passed through.
    """
    if not scored:
        return None

    def _total(item: Mapping[str, Any]) -> float:
        s = item.get("score")
        return float(s.total) if isinstance(s, ScoreBreakdown) else float(s or 0)

    ranked = [
        {**item, "original_index": idx, "rank": 0}
        for idx, item in enumerate(scored)
    ]
    ranked.sort(key=_total, reverse=True)
    for pos, item in enumerate(ranked, start=1):
        item["rank"] = pos

    totals = [_total(item) for item in scored]
    return {
        "ranked": ranked,
        "statistics": {
            "average": round_half_up(sum(totals) / len(totals)),
            "highest": max(totals),
            "lowest": min(totals),
            "count": len(totals),
        },
    }
