# src/dealengine/domain/assumptions.py
from pydantic import BaseModel


class ProjectionAssumptions(BaseModel):
    rent_growth_rate: float = 0.03
    expense_growth_rate: float = 0.025
    appreciation_rate: float = 0.04


class FlipAssumptions(BaseModel):
    closing_cost_rate: float = 0.02
    rehab_contingency_rate: float = 0.10
    commission_rate: float = 0.05
    seller_closing_rate: float = 0.01
    mao_rule: float = 0.70
    # no-comps fallback: ARV = purchase price * this
    fallback_arv_multiplier: float = 1.10
