# src/dealengine/api/schemas.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from dealengine.domain.comps import CompFilters, CompRecord
from dealengine.domain.inputs import Strategy
from dealengine.domain.market import MarketData


# --------------------------------------------
# Analyze
# --------------------------------------------


class AnalyzeRequest(BaseModel):
    """
    ``fields`` uses the host field vocabulary (purchasePrice, downPayment,
    loanInterestRate, ...). Comps can be supplied inline or resolved from
    ``provider``.
    """
    model_config = ConfigDict(extra="allow")

    strategy: Strategy = "rental"
    fields: Dict[str, Any] = Field(default_factory=dict)

    provider: Optional[str] = None
    force_refresh: bool = False
    comps: Optional[List[CompRecord]] = None
    filters: Optional[CompFilters] = None

    market: Optional[MarketData] = None
    thresholds: Optional[Dict[str, float]] = None
    years: Optional[int] = Field(default=None, ge=1, le=50)
    discount_rate: Optional[float] = None


class AnalyzeResponse(BaseModel):
    """Rich nested result; permissive so new fields don't break clients."""
    model_config = ConfigDict(extra="allow")


# --------------------------------------------
# Returns
# --------------------------------------------


class IrrRequest(BaseModel):
    cash_flows: List[float]
    guess: float = 0.10


class IrrResponse(BaseModel):
    irr: Optional[float] = None
    defined: bool = False


class NpvRequest(BaseModel):
    cash_flows: List[float]
    rate: float = Field(gt=-1.0)


class NpvResponse(BaseModel):
    npv: float


# --------------------------------------------
# Loans
# --------------------------------------------


class AmortizationRequest(BaseModel):
    principal: float = Field(ge=0.0)
    annual_rate: float = Field(ge=0.0, description="fraction, e.g. 0.07")
    term_years: int = Field(default=30, ge=1, le=50)
    months: int = Field(default=12, ge=0)


class LoanScenariosRequest(BaseModel):
    loan_amount: float = Field(ge=0.0)
    rate: float = Field(ge=0.0)
    term_years: int = Field(default=30, ge=1, le=50)


# --------------------------------------------
# Comps
# --------------------------------------------


class CompsFilterRequest(BaseModel):
    comps: List[CompRecord] = Field(default_factory=list)
    filters: CompFilters = Field(default_factory=CompFilters)
    top_n: int = Field(default=3, ge=0)


class CompsResolveRequest(BaseModel):
    address: str
    city: str
    state: str
    zipcode: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    provider: str
    force_refresh: bool = False
