# src/dealengine/domain/loans.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal, Optional

ScenarioKind = Literal["amortizing", "interest_only"]


def annuity_payment(rate_monthly: float, n_months: int, principal: float) -> float:
    r = rate_monthly
    if n_months <= 0 or principal <= 0:
        return 0.0
    if r == 0:
        return principal / n_months
    # 1 - (1+r)^-n, accurate for tiny r
    denom = -math.expm1(-n_months * math.log1p(r))
    if denom == 0:
        return principal / n_months
    return principal * r / denom


@dataclass(frozen=True)
class LoanTerms:
    principal: float
    annual_rate: float   # e.g. 0.07
    term_years: int      # e.g. 30

    @property
    def monthly_rate(self) -> float:
        return self.annual_rate / 12.0

    @property
    def total_periods(self) -> int:
        return int(self.term_years * 12)

    @property
    def payment(self) -> float:
        """Level monthly payment (closed-form annuity)."""
        return annuity_payment(self.monthly_rate, self.total_periods, self.principal)


@dataclass(frozen=True)
class AmortizationRow:
    period: int
    payment: float
    principal: float
    interest: float
    balance: float             # floored at 0
    cumulative_interest: float


@dataclass(frozen=True)
class LoanScenario:
    name: str
    kind: ScenarioKind
    loan_amount: float
    rate: float
    term_years: int
    monthly_payment: float     # first-year payment
    total_payments: float
    total_interest: float
    first_year_interest: float
    first_year_principal: float
    balance_after_year1: float
    io_years: Optional[int] = None
    io_monthly_payment: Optional[float] = None
    amortizing_monthly_payment: Optional[float] = None
