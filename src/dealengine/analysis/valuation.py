# src/dealengine/analysis/valuation.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional, Sequence

import numpy as np
import pandas as pd

from dealengine.domain.assumptions import FlipAssumptions
from dealengine.domain.comps import CompRecord

ArvSource = Literal["comps", "purchase_price"]


@dataclass(frozen=True)
class ArvEstimate:
    arv: float
    source: ArvSource
    comp_count: int = 0
    median_price: Optional[float] = None
    avg_price_per_sqft: Optional[float] = None

    @property
    def degraded(self) -> bool:
        return self.source != "comps"


@dataclass(frozen=True)
class SourceEstimate:
    value: float
    weight: float
    source: str = "unknown"


@dataclass(frozen=True)
class BlendedArv:
    arv: float
    confidence: int      # 50..100
    std_dev: float
    sources: List[SourceEstimate] = field(default_factory=list)


@dataclass(frozen=True)
class ArvInterval:
    conservative: float
    moderate: float
    aggressive: float
    std_dev: float
    confidence: int = 68


def comps_frame(comps: Sequence[CompRecord]) -> pd.DataFrame:
    cols = ["address", "price", "sqft", "beds", "baths", "sale_date", "distance_from_subject"]
    if not comps:
        return pd.DataFrame(columns=cols)
    df = pd.DataFrame([c.model_dump() for c in comps])
    for col in ("price", "sqft", "beds", "baths", "distance_from_subject"):
        df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def estimate_arv(
    comps: Sequence[CompRecord],
    purchase_price: float,
    assumptions: FlipAssumptions | None = None,
) -> ArvEstimate:
    """
    Mean comp price. With no usable comps, fall back to purchase price times
    ``fallback_arv_multiplier`` and mark the estimate as degraded.
    """
    a = assumptions or FlipAssumptions()
    df = comps_frame(comps)
    priced = df[df["price"] > 0] if not df.empty else df

    if priced.empty:
        return ArvEstimate(arv=purchase_price * a.fallback_arv_multiplier, source="purchase_price")

    ppsf = priced["price"] / priced["sqft"].where(priced["sqft"] > 0)
    avg_ppsf = ppsf.mean(skipna=True)

    return ArvEstimate(
        arv=float(priced["price"].mean()),
        source="comps",
        comp_count=int(len(priced)),
        median_price=float(priced["price"].median()),
        avg_price_per_sqft=None if pd.isna(avg_ppsf) else float(avg_ppsf),
    )


def blend_arv_estimates(estimates: Sequence[SourceEstimate]) -> Optional[BlendedArv]:
    """
    Weighted average of several ARV sources. Confidence is 100 while the
    weighted coefficient of variation is at most 5%, falling linearly to 50
    at 20% and floored there.
    """
    valid = [e for e in estimates if e.value > 0 and e.weight > 0]
    if not valid:
        return None

    values = np.array([e.value for e in valid], dtype=float)
    weights = np.array([e.weight for e in valid], dtype=float)
    weights = weights / weights.sum()

    mean = float(np.sum(values * weights))
    std = float(np.sqrt(np.sum(weights * (values - mean) ** 2)))
    cv = std / mean

    confidence = 100.0
    if cv > 0.05:
        confidence = max(50.0, 100.0 - (cv - 0.05) / 0.15 * 50.0)

    return BlendedArv(
        arv=mean,
        confidence=int(round(confidence)),
        std_dev=std,
        sources=[SourceEstimate(e.value, float(w), e.source) for e, w in zip(valid, weights)],
    )


def arv_confidence_interval(values: Sequence[float]) -> Optional[ArvInterval]:
    """Mean plus/minus one population standard deviation of the positive values."""
    arr = np.array([v for v in values if v and v > 0], dtype=float)
    if arr.size == 0:
        return None
    mean = float(arr.mean())
    std = float(arr.std())
    return ArvInterval(conservative=mean - std, moderate=mean, aggressive=mean + std, std_dev=std)
