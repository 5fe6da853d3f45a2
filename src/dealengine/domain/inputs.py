# src/dealengine/domain/inputs.py
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

Strategy = Literal["flip", "rental"]


class DealInputs(BaseModel):
    """
    Typed deal inputs, populated once at the boundary.

    All rates are fractions (0.07 == 7%). Percent-like values (``"7%"`` or
    ``7``) are normalized by the validator, so callers building this directly
    may pass either form.
    """

    purchase_price: float = Field(default=0.0, ge=0.0)
    down_payment_pct: float = Field(default=0.20, description="0.20 means 20% down")
    interest_rate: float = Field(default=0.07, description="annual, e.g. 0.07")
    loan_term_years: int = Field(default=30, ge=0)

    rehab_cost: float = Field(default=0.0, ge=0.0)
    months_to_flip: float = Field(default=6.0, ge=0.0)
    cash_investment: float = Field(default=0.0, ge=0.0)

    heloc_amount: float = Field(default=0.0, ge=0.0)
    heloc_interest_rate: float = 0.07

    rent_estimate: float = Field(default=3500.0, ge=0.0, description="monthly")
    vacancy_rate: float = 0.06
    maintenance_rate: float = Field(default=0.01, description="of property value, per year")
    management_rate: float = Field(default=0.08, description="of effective gross income")
    property_tax_rate: float = Field(default=0.0125, description="of property value, per year")
    insurance_monthly: float = Field(default=100.0, ge=0.0)
    hoa_monthly: float = Field(default=0.0, ge=0.0)
    utilities_monthly: float = Field(default=0.0, ge=0.0)

    @field_validator(
        "down_payment_pct",
        "interest_rate",
        "heloc_interest_rate",
        "vacancy_rate",
        "maintenance_rate",
        "management_rate",
        "property_tax_rate",
        mode="before",
    )
    @classmethod
    def _to_fraction(cls, v: Any) -> Any:
        if v is None:
            return 0.0
        if isinstance(v, str):
            v = v.strip().replace("%", "")
        try:
            f = float(v)
        except Exception as err:
            raise ValueError("rate must be numeric or percent-like") from err
        if f > 1.0:
            f = f / 100.0
        if f < 0:
            raise ValueError("rate must be non-negative")
        return f

    # --- derived ---------------------------------------------------------

    @property
    def down_payment(self) -> float:
        return self.purchase_price * self.down_payment_pct

    @property
    def loan_amount(self) -> float:
        return self.purchase_price - self.down_payment

    @property
    def total_investment(self) -> float:
        """Purchase plus rehab; the basis for tax, maintenance and appreciation."""
        return self.purchase_price + self.rehab_cost
