# src/dealengine/adapters/field_resolver.py
"""
Boundary between the host's named input fields and typed DealInputs.

The host exposes inputs by name (``purchasePrice``, ``downPayment``, ...).
Only this module knows those names; everything downstream works with
DealInputs and CompQuery.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from dealengine.adapters.logging_utils import get_logger, log_event
from dealengine.domain.comps import CompQuery
from dealengine.domain.inputs import DealInputs
from dealengine.domain.ports import FieldResolver

logger = get_logger(__name__)


# host field name -> (DealInputs attribute, default in host units)
FIELDS: Dict[str, tuple[str, Any]] = {
    "purchasePrice": ("purchase_price", 0),
    "downPayment": ("down_payment_pct", 20),          # percent
    "loanInterestRate": ("interest_rate", 7),         # percent
    "loanTerm": ("loan_term_years", 30),
    "rehabCost": ("rehab_cost", 0),
    "monthsToFlip": ("months_to_flip", 6),
    "cashInvestment": ("cash_investment", 0),
    "helocAmount": ("heloc_amount", 0),
    "helocInterest": ("heloc_interest_rate", 0.07),
    "rentEstimate": ("rent_estimate", 3500),
    "vacancyRate": ("vacancy_rate", 0.06),
    "maintenanceRate": ("maintenance_rate", 0.01),
    "propertyManagementRate": ("management_rate", 0.08),
    "propertyTaxRate": ("property_tax_rate", 0.0125),
    "insuranceMonthly": ("insurance_monthly", 100),
    "hoaFees": ("hoa_monthly", 0),
    "utilitiesCost": ("utilities_monthly", 0),
}

# always entered as whole percents, whatever their magnitude
PERCENT_FIELDS = frozenset({"downPayment", "loanInterestRate"})

LOCATION_FIELDS = ("address", "city", "state", "zip")


class DictFieldResolver:
    """In-memory FieldResolver. ``refs`` maps a field name to a host locator."""

    def __init__(self, values: Optional[Mapping[str, Any]] = None, refs: Optional[Mapping[str, str]] = None) -> None:
        self._values: Dict[str, Any] = dict(values or {})
        self._refs: Dict[str, str] = dict(refs or {})

    def get(self, name: str, default: Any = None) -> Any:
        v = self._values.get(name)
        if v is None or v == "":
            return default
        return v

    def set(self, name: str, value: Any) -> None:
        self._values[name] = value

    def get_ref(self, name: str) -> str | None:
        if name in self._refs:
            return self._refs[name]
        return f"field:{name}" if name in self._values else None


@dataclass
class FieldContext:
    """
    Memoized field lookups for one analysis run. Populate with ``load`` and
    call ``invalidate`` when the host's input layout changes; nothing clears
    it implicitly.
    """

    values: Dict[str, Any] = field(default_factory=dict)
    refs: Dict[str, Optional[str]] = field(default_factory=dict)
    loaded: bool = False

    def load(self, resolver: FieldResolver) -> "FieldContext":
        for name in (*FIELDS, *LOCATION_FIELDS, "includePropertyManagement", "apiSource"):
            self.refs[name] = resolver.get_ref(name)
            self.values[name] = resolver.get(name, None)
        self.loaded = True
        log_event(logger, "field_context_loaded", fields=len(self.values),
                  missing=sorted(k for k, v in self.refs.items() if v is None))
        return self

    def invalidate(self) -> None:
        self.values.clear()
        self.refs.clear()
        self.loaded = False

    def get(self, name: str, default: Any = None) -> Any:
        v = self.values.get(name)
        return default if v is None or v == "" else v


def _number(v: Any, default: Any) -> Any:
    if isinstance(v, str):
        s = v.strip().replace("$", "").replace(",", "").replace("%", "")
        if not s:
            return default
        try:
            return float(s)
        except ValueError:
            return default
    return v


def _yes(v: Any) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in ("yes", "y", "true", "1")
    return bool(v)


def load_deal_inputs(resolver: FieldResolver, context: Optional[FieldContext] = None) -> DealInputs:
    """Read the field vocabulary once and build validated DealInputs."""
    ctx = context if context is not None else FieldContext()
    if not ctx.loaded:
        ctx.load(resolver)

    kwargs: Dict[str, Any] = {}
    for name, (attr, default) in FIELDS.items():
        v = _number(ctx.get(name, default), default)
        if name in PERCENT_FIELDS:
            v = float(v) / 100.0
        kwargs[attr] = v

    if not _yes(ctx.get("includePropertyManagement", "Yes")):
        kwargs["management_rate"] = 0.0

    return DealInputs(**kwargs)


def load_comp_query(resolver: FieldResolver, context: Optional[FieldContext] = None) -> Optional[CompQuery]:
    """None when any part of the address is missing."""
    ctx = context if context is not None else FieldContext()
    if not ctx.loaded:
        ctx.load(resolver)
    parts = {k: str(ctx.get(k, "")).strip() for k in LOCATION_FIELDS}
    if not all(parts.values()):
        return None
    return CompQuery(address=parts["address"], city=parts["city"], state=parts["state"], zipcode=parts["zip"])
