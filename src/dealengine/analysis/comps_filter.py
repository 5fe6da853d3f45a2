# src/dealengine/analysis/comps_filter.py
from __future__ import annotations

from typing import Callable, List, Optional, Sequence

import numpy as np
import pandas as pd

from dealengine.adapters.geo import haversine
from dealengine.domain.comps import CompFilters, CompRecord

Predicate = Callable[[CompRecord], bool]


def _sale_date_cutoff(months: int, now: Optional[pd.Timestamp] = None) -> pd.Timestamp:
    now = now if now is not None else pd.Timestamp.now()
    return now - pd.DateOffset(months=int(months))


def _within_window(cutoff: pd.Timestamp) -> Predicate:
    def keep(c: CompRecord) -> bool:
        if not c.sale_date:
            return True
        sold = pd.to_datetime(c.sale_date, errors="coerce", utc=True)
        if pd.isna(sold):
            # unparseable dates are treated like missing ones
            return True
        return sold.tz_convert(None) >= cutoff
    return keep


def _min(attr: str, bound: float) -> Predicate:
    def keep(c: CompRecord) -> bool:
        v = getattr(c, attr)
        return not v or v >= bound
    return keep


def _max(attr: str, bound: float) -> Predicate:
    def keep(c: CompRecord) -> bool:
        v = getattr(c, attr)
        return not v or v <= bound
    return keep


def _same_type(wanted: str) -> Predicate:
    wanted_l = wanted.strip().lower()

    def keep(c: CompRecord) -> bool:
        if not c.property_type:
            return True
        return c.property_type.strip().lower() == wanted_l
    return keep


def attach_distances(comps: Sequence[CompRecord], lat: float, lng: float) -> List[CompRecord]:
    """Copies of ``comps`` with ``distance_from_subject`` set where coordinates exist."""
    if not comps:
        return []

    coords = np.array(
        [[c.latitude, c.longitude] if c.has_coordinates else [np.nan, np.nan] for c in comps],
        dtype=float,
    )
    dists = haversine(lat, lng, coords[:, 0], coords[:, 1])

    out: List[CompRecord] = []
    for comp, d in zip(comps, dists):
        if np.isnan(d):
            out.append(comp)
        else:
            out.append(comp.model_copy(update={"distance_from_subject": float(d)}))
    return out


def filter_comps(
    comps: Sequence[CompRecord],
    filters: Optional[CompFilters] = None,
    now: Optional[pd.Timestamp] = None,
) -> List[CompRecord]:
    """
    Apply each configured criterion in turn. A comp that lacks the field a
    criterion looks at is kept, not dropped. When subject coordinates are
    given, surviving comps carry ``distance_from_subject``.
    """
    if not comps:
        return []
    f = filters or CompFilters()

    has_subject = bool(f.subject_lat) and bool(f.subject_lng)
    out: List[CompRecord] = list(comps)
    if has_subject:
        out = attach_distances(out, float(f.subject_lat), float(f.subject_lng))

    predicates: List[Predicate] = []
    if f.date_range_months:
        predicates.append(_within_window(_sale_date_cutoff(f.date_range_months, now)))
    if f.max_distance_mi and has_subject:
        predicates.append(_max("distance_from_subject", f.max_distance_mi))
    if f.property_type and f.property_type.strip().lower() != "all":
        predicates.append(_same_type(f.property_type))
    if f.min_beds:
        predicates.append(_min("beds", f.min_beds))
    if f.min_baths:
        predicates.append(_min("baths", f.min_baths))
    if f.min_sqft:
        predicates.append(_min("sqft", f.min_sqft))
    if f.max_sqft:
        predicates.append(_max("sqft", f.max_sqft))

    for keep in predicates:
        out = [c for c in out if keep(c)]
    return out


def closest_comps(comps: Sequence[CompRecord], top_n: int = 3) -> List[CompRecord]:
    """Nearest first; comps without a distance sort last."""
    ranked = sorted(
        comps,
        key=lambda c: c.distance_from_subject if c.distance_from_subject is not None else float("inf"),
    )
    return ranked[: max(0, int(top_n))]
