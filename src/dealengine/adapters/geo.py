# src/dealengine/adapters/geo.py
from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike

EARTH_R_MI = 3959.0


def haversine(lat1: ArrayLike, lon1: ArrayLike, lat2: ArrayLike, lon2: ArrayLike) -> np.ndarray:
    """Great-circle distance in miles; broadcasts like any numpy ufunc."""
    lat1_arr, lon1_arr, lat2_arr, lon2_arr = map(lambda a: np.radians(np.asarray(a, dtype=float)),
                                                 [lat1, lon1, lat2, lon2])
    dlat = lat2_arr - lat1_arr
    dlon = lon2_arr - lon1_arr
    a = np.sin(dlat / 2.0) ** 2 + np.cos(lat1_arr) * np.cos(lat2_arr) * np.sin(dlon / 2.0) ** 2
    # clip guards sqrt(1 - a) against tiny float overshoot
    a = np.clip(a, 0.0, 1.0)
    return 2.0 * EARTH_R_MI * np.arctan2(np.sqrt(a), np.sqrt(1.0 - a))


def distance_mi(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    return float(haversine(lat1, lon1, lat2, lon2))
