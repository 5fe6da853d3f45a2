# src/dealengine/domain/comps.py
from __future__ import annotations

import math
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator


def _coerce_number(v: Any) -> Optional[float]:
    """Best-effort numeric parse for provider fields ("$825,000" -> 825000.0)."""
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        f = float(v)
    else:
        s = str(v).strip().replace("$", "").replace(",", "")
        if not s:
            return None
        try:
            f = float(s)
        except ValueError:
            return None
    if math.isnan(f) or math.isinf(f):
        return None
    return f


class CompRecord(BaseModel):
    """Normalized comparable sale, whatever provider it came from."""

    model_config = ConfigDict(extra="ignore")

    address: str = "Unknown"
    price: float = 0.0
    sqft: Optional[float] = None
    beds: Optional[float] = None
    baths: Optional[float] = None
    property_type: Optional[str] = None
    sale_date: Optional[str] = None
    condition: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    distance_from_subject: Optional[float] = None
    data_source: Optional[str] = None

    @field_validator("price", mode="before")
    @classmethod
    def _price(cls, v: Any) -> float:
        f = _coerce_number(v)
        return f if f is not None else 0.0

    @field_validator("sqft", "beds", "baths", "latitude", "longitude", "distance_from_subject", mode="before")
    @classmethod
    def _optional_number(cls, v: Any) -> Optional[float]:
        return _coerce_number(v)

    @field_validator("address", mode="before")
    @classmethod
    def _address(cls, v: Any) -> str:
        s = str(v).strip() if v is not None else ""
        return s or "Unknown"

    @field_validator("property_type", "sale_date", "condition", mode="before")
    @classmethod
    def _optional_text(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        s = str(v).strip()
        return s or None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def price_per_sqft(self) -> Optional[float]:
        if not self.sqft:
            return None
        return self.price / self.sqft


class CompQuery(BaseModel):
    address: str
    city: str
    state: str
    zipcode: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def full_address(self) -> str:
        return f"{self.address}, {self.city}, {self.state} {self.zipcode}".strip()


class CompFilters(BaseModel):
    """Unset criteria are not applied."""

    date_range_months: Optional[int] = None
    max_distance_mi: Optional[float] = None
    subject_lat: Optional[float] = None
    subject_lng: Optional[float] = None
    property_type: Optional[str] = None   # "All" disables the filter
    min_beds: Optional[float] = None
    min_baths: Optional[float] = None
    min_sqft: Optional[float] = None
    max_sqft: Optional[float] = None
