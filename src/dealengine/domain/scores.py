# src/dealengine/domain/scores.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal

ScoreKind = Literal["flip", "rental"]
RecommendationLabel = Literal["excellent", "good", "caution", "high_risk", "not_recommended"]


@dataclass(frozen=True)
class ScoreBreakdown:
    kind: ScoreKind
    scores: Dict[str, int]      # metric -> sub-score in [0, 100]
    weights: Dict[str, float]   # metric -> weight, sums to 1.0
    total: int


@dataclass(frozen=True)
class Recommendation:
    label: RecommendationLabel
    title: str
    description: str


@dataclass(frozen=True)
class MetricHighlight:
    metric: str
    score: int
    importance: Literal["high", "medium", "low"]


@dataclass
class ScoreReport:
    kind: ScoreKind
    score: int
    stars: int
    recommendation: Recommendation
    breakdown: Dict[str, int]
    strengths: List[MetricHighlight] = field(default_factory=list)
    weaknesses: List[MetricHighlight] = field(default_factory=list)
