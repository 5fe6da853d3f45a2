# src/dealengine/domain/market.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class MarketData(BaseModel):
    """Market averages for comparison. All optional; zero means unknown."""

    zipcode: str = ""
    avg_roi: float = 0.0
    avg_cap_rate: float = 0.0
    avg_cash_flow: float = 0.0
    avg_flip_roi: float = 0.0
    roi_values: Optional[List[float]] = Field(default=None, description="for percentile ranking")
