# src/dealengine/domain/metrics.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class PropertyMetrics:
    """
    Rental metrics for one analysis run. Derived data only; recomputed on
    every run and never persisted by the engine.
    """
    gross_income_annual: float
    vacancy_loss_annual: float
    effective_gross_income: float
    operating_expenses_annual: float
    noi: float                    # annual, before debt service
    cap_rate: float               # NOI / purchase price
    annual_debt_service: float
    annual_cash_flow: float
    monthly_cash_flow: float
    cash_on_cash: float
    roi: float                    # annual cash flow / total cash invested
    dscr: float                   # inf when there is no debt
    total_cash_invested: float
    monthly_rent: float
    total_monthly_expenses: float  # operating expenses + debt service, monthly
    expense_ratio: float           # operating expenses / gross income
    return_on_time: Optional[float] = None  # cash-on-cash per month of project
    mao: Optional[float] = None


@dataclass
class FlipMetrics:
    arv: float
    purchase_price: float
    down_payment: float
    closing_costs: float
    base_rehab: float
    rehab_contingency: float
    total_rehab: float
    monthly_holding_costs: float
    total_holding_costs: float
    selling_costs: float
    total_costs: float
    total_cash_invested: float
    net_profit: float
    profit_margin: float          # net profit / ARV
    roi: float                    # net profit / total cash invested
    mao: float                    # ARV * rule - total rehab
    months_to_flip: float


@dataclass(frozen=True)
class FlipScenario:
    name: str
    arv: float
    rehab_cost: float
    net_profit: float


@dataclass(frozen=True)
class YearProjection:
    year: int
    rent: float
    effective_gross_income: float
    operating_expenses: float
    noi: float
    debt_service: float
    cash_flow: float
    property_value: float
    cumulative_cash_flow: float


@dataclass
class CashFlowProjection:
    """
    ``cash_flows`` is the CashFlowSeries: index 0 is the (negative) total
    cash invested, then one entry per projected year. Direct input to
    IRR/NPV.
    """
    cash_flows: List[float]
    years: List[YearProjection] = field(default_factory=list)
    total_cash_invested: float = 0.0

    @property
    def total_cash_flow(self) -> float:
        return sum(self.cash_flows[1:])

    @property
    def final_property_value(self) -> float:
        return self.years[-1].property_value if self.years else 0.0


@dataclass(frozen=True)
class BreakEven:
    break_even_rent_no_mgmt: float
    break_even_rent_with_mgmt: float
    break_even_occupancy: float    # inf when there is no rent estimate
    current_rent: float
    monthly_debt_service: float
    monthly_operating_expenses: float
