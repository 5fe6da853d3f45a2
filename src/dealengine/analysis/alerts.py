# src/dealengine/analysis/alerts.py
from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Type, TypeVar, Union

from pydantic import BaseModel

from dealengine.adapters.logging_utils import get_logger, log_event
from dealengine.domain.alerts import (
    Alert,
    AlertPriority,
    AlertReport,
    AlertSummary,
    AlertType,
    OverallStatus,
)
from dealengine.domain.market import MarketData
from dealengine.domain.metrics import FlipMetrics, PropertyMetrics

ERROR, WARNING, INFO, SUCCESS = AlertType.ERROR, AlertType.WARNING, AlertType.INFO, AlertType.SUCCESS
HIGH, MEDIUM, LOW = AlertPriority.HIGH, AlertPriority.MEDIUM, AlertPriority.LOW

# "comfortably above" markers; not overridable
FLIP_GREAT_ROI = 0.25
RENTAL_GREAT_CASH_FLOW = 500.0
RENTAL_GREAT_DSCR = 1.5
MAX_EXPENSE_RATIO = 0.50

MARKET_ROI_BAND = 0.05
MARKET_CAP_RATE_BAND = 0.10

logger = get_logger(__name__)


# =====================================================================
# Thresholds and rule inputs
# =====================================================================


class FlipAlertThresholds(BaseModel):
    min_roi: float = 0.15
    min_profit: float = 15_000.0
    max_timeline: float = 12.0  # months
    max_rehab_ratio: float = 0.50
    budget_variance: float = 0.10


class RentalAlertThresholds(BaseModel):
    min_cash_flow: float = 100.0
    min_roi: float = 0.08
    min_cap_rate: float = 0.06
    min_dscr: float = 1.0
    max_vacancy: float = 0.10


T = TypeVar("T", bound=BaseModel)
Overrides = Union[BaseModel, Mapping[str, Any], None]


def resolve_thresholds(model: Type[T], overrides: Overrides) -> T:
    """Defaults with per-field overrides; unknown keys are logged and ignored."""
    if overrides is None:
        return model()
    if isinstance(overrides, model):
        return overrides
    if isinstance(overrides, BaseModel):
        overrides = overrides.model_dump()
    known = model.model_fields
    ignored = sorted(k for k in overrides if k.lower() not in known)
    if ignored:
        log_event(logger, "threshold_overrides_ignored", logging.WARNING, model=model.__name__, keys=ignored)
    picked = {k.lower(): v for k, v in overrides.items() if k.lower() in known and v is not None}
    return model(**picked)


class FlipAlertData(BaseModel):
    roi: float = 0.0
    total_profit: float = 0.0
    timeline_months: float = 6.0
    rehab_cost: float = 0.0
    purchase_price: float = 0.0
    rehab_budget: float = 0.0
    actual_rehab_cost: float = 0.0

    @classmethod
    def from_metrics(cls, m: FlipMetrics, **extra: float) -> "FlipAlertData":
        return cls(
            roi=m.roi,
            total_profit=m.net_profit,
            timeline_months=m.months_to_flip,
            rehab_cost=m.base_rehab,
            purchase_price=m.purchase_price,
            **extra,
        )


class RentalAlertData(BaseModel):
    monthly_cash_flow: float = 0.0
    roi: float = 0.0
    cap_rate: float = 0.0
    dscr: float = 0.0
    vacancy_rate: float = 0.06
    monthly_rent: float = 0.0
    total_monthly_expenses: float = 0.0

    @classmethod
    def from_metrics(cls, m: PropertyMetrics, vacancy_rate: float) -> "RentalAlertData":
        return cls(
            monthly_cash_flow=m.monthly_cash_flow,
            roi=m.roi,
            cap_rate=m.cap_rate,
            dscr=m.dscr,
            vacancy_rate=vacancy_rate,
            monthly_rent=m.monthly_rent,
            total_monthly_expenses=m.total_monthly_expenses,
        )


def _pct(x: float, digits: int = 1) -> str:
    return f"{x * 100:.{digits}f}%"


def _below_min(value: float, minimum: float) -> AlertType:
    """Below half the minimum is an error, otherwise a warning."""
    return ERROR if value < minimum * 0.5 else WARNING


# =====================================================================
# Rule sets
# =====================================================================


def generate_flip_alerts(data: FlipAlertData, thresholds: Overrides = None) -> List[Alert]:
    t = resolve_thresholds(FlipAlertThresholds, thresholds)
    alerts: List[Alert] = []

    # 1. ROI
    if data.roi < t.min_roi:
        alerts.append(Alert(
            _below_min(data.roi, t.min_roi), HIGH, "ROI",
            "Low Return on Investment",
            f"ROI of {_pct(data.roi)} is below the {_pct(t.min_roi, 0)} threshold",
            "Consider negotiating a lower purchase price or reducing rehab costs",
        ))
    elif data.roi >= FLIP_GREAT_ROI:
        alerts.append(Alert(
            SUCCESS, LOW, "ROI", "Excellent ROI",
            f"ROI of {_pct(data.roi)} exceeds expectations",
            "Strong investment opportunity",
        ))

    # 2. Profit
    if data.total_profit < t.min_profit:
        alerts.append(Alert(
            WARNING, HIGH, "Profit", "Low Profit Margin",
            f"Projected profit of ${data.total_profit:,.0f} is below ${t.min_profit:,.0f} threshold",
            "Verify ARV estimate and consider reducing costs",
        ))

    # 3. Timeline
    if data.timeline_months > t.max_timeline:
        alerts.append(Alert(
            WARNING, MEDIUM, "Timeline", "Extended Timeline",
            f"Project timeline of {data.timeline_months:g} months exceeds "
            f"{t.max_timeline:g} month threshold",
            "Long holding periods increase costs and risk",
        ))

    # 4. Rehab ratio
    rehab_ratio = data.rehab_cost / data.purchase_price if data.purchase_price > 0 else 0.0
    if rehab_ratio > t.max_rehab_ratio:
        alerts.append(Alert(
            WARNING, HIGH, "Rehab", "High Rehab Cost Ratio",
            f"Rehab cost is {_pct(rehab_ratio, 0)} of purchase price (max {_pct(t.max_rehab_ratio, 0)})",
            "High rehab ratios increase risk. Verify scope and budget carefully",
        ))

    # 5. Budget variance (only once actuals exist)
    if data.rehab_budget > 0 and data.actual_rehab_cost > 0:
        overrun = data.actual_rehab_cost - data.rehab_budget
        variance = overrun / data.rehab_budget
        if variance > t.budget_variance:
            alerts.append(Alert(
                ERROR, HIGH, "Budget", "Over Budget",
                f"Actual rehab cost exceeds budget by {_pct(variance)} (${overrun:,.0f})",
                "Review scope changes and cost overruns immediately",
            ))

    return alerts


def generate_rental_alerts(data: RentalAlertData, thresholds: Overrides = None) -> List[Alert]:
    t = resolve_thresholds(RentalAlertThresholds, thresholds)
    alerts: List[Alert] = []
    cf = data.monthly_cash_flow

    # 1. Cash flow
    if cf < 0:
        alerts.append(Alert(
            ERROR, HIGH, "Cash Flow", "Negative Cash Flow",
            f"Monthly cash flow of -${abs(cf):,.2f} indicates property loses money each month",
            "Increase rent, reduce expenses, or reconsider this investment",
        ))
    elif cf < t.min_cash_flow:
        alerts.append(Alert(
            WARNING, HIGH, "Cash Flow", "Low Cash Flow",
            f"Monthly cash flow of ${cf:,.2f} is below ${t.min_cash_flow:,.0f} threshold",
            "Consider increasing rent or reducing operating expenses",
        ))
    elif cf >= RENTAL_GREAT_CASH_FLOW:
        alerts.append(Alert(
            SUCCESS, LOW, "Cash Flow", "Strong Cash Flow",
            f"Monthly cash flow of ${cf:,.2f} exceeds expectations",
            "Excellent cash-flowing property",
        ))

    # 2. ROI
    if data.roi < t.min_roi:
        alerts.append(Alert(
            _below_min(data.roi, t.min_roi), HIGH, "ROI",
            "Low Return on Investment",
            f"ROI of {_pct(data.roi)} is below the {_pct(t.min_roi, 0)} threshold",
            "Consider negotiating a lower purchase price or increasing rent",
        ))

    # 3. Cap rate
    if data.cap_rate < t.min_cap_rate:
        alerts.append(Alert(
            WARNING, MEDIUM, "Cap Rate", "Low Capitalization Rate",
            f"Cap rate of {_pct(data.cap_rate)} is below {_pct(t.min_cap_rate, 0)} threshold",
            "Property may be overpriced relative to income potential",
        ))

    # 4. DSCR
    if data.dscr < t.min_dscr:
        alerts.append(Alert(
            ERROR, HIGH, "DSCR", "Low Debt Service Coverage",
            f"DSCR of {data.dscr:.2f} is below {t.min_dscr:.1f} (may not qualify for financing)",
            "Increase down payment, reduce purchase price, or increase rent",
        ))
    elif data.dscr >= RENTAL_GREAT_DSCR:
        alerts.append(Alert(
            SUCCESS, LOW, "DSCR", "Strong DSCR",
            f"DSCR of {data.dscr:.2f} indicates strong debt coverage",
            "Excellent financing qualification potential",
        ))

    # 5. Vacancy
    if data.vacancy_rate > t.max_vacancy:
        alerts.append(Alert(
            WARNING, MEDIUM, "Vacancy", "High Vacancy Rate",
            f"Vacancy rate of {_pct(data.vacancy_rate, 0)} exceeds {_pct(t.max_vacancy, 0)} threshold",
            "High vacancy reduces effective income. Verify market conditions",
        ))

    # 6. Expense ratio
    if data.monthly_rent > 0:
        ratio = data.total_monthly_expenses / data.monthly_rent
        if ratio > MAX_EXPENSE_RATIO:
            alerts.append(Alert(
                WARNING, MEDIUM, "Expenses", "High Expense Ratio",
                f"Operating expenses are {_pct(ratio, 0)} of rent (typically should be <50%)",
                "Review expenses for potential reductions",
            ))

    return alerts


def generate_market_insights(
    roi: float,
    cap_rate: Optional[float],
    market: Optional[MarketData],
) -> List[Alert]:
    """Only deviations beyond the materiality band are reported."""
    insights: List[Alert] = []
    if market is None:
        return insights

    if market.avg_roi > 0:
        diff = (roi - market.avg_roi) / market.avg_roi
        if abs(diff) > MARKET_ROI_BAND:
            above = diff > 0
            where = f" for {market.zipcode}" if market.zipcode else ""
            insights.append(Alert(
                SUCCESS if above else INFO, LOW, "Market", "ROI vs Market Average",
                f"ROI is {_pct(abs(diff), 0)} {'above' if above else 'below'} market average{where}",
                "Above-average returns for this market" if above else "Below-average returns for this market",
            ))

    if cap_rate is not None and market.avg_cap_rate > 0:
        diff = (cap_rate - market.avg_cap_rate) / market.avg_cap_rate
        if abs(diff) > MARKET_CAP_RATE_BAND:
            above = diff > 0
            insights.append(Alert(
                INFO, LOW, "Market", "Cap Rate vs Market",
                f"Cap rate is {_pct(abs(diff), 0)} {'above' if above else 'below'} market average",
                "Higher than typical for this area" if above else "Lower than typical for this area",
            ))

    return insights


def generate_valuation_alerts(arv: float, purchase_price: float, comps_count: int) -> List[Alert]:
    """Sanity checks on the ARV estimate itself."""
    alerts: List[Alert] = []

    if comps_count == 0:
        alerts.append(Alert(
            INFO, MEDIUM, "Valuation", "Comparables Unavailable",
            "No comparable sales were found; ARV is estimated from the purchase price",
            "Verify ARV with a local agent or appraisal before committing",
        ))

    if purchase_price > 0 and arv > 0:
        if arv < purchase_price * 0.8:
            alerts.append(Alert(
                WARNING, MEDIUM, "Valuation", "Low ARV",
                "ARV is unusually low relative to purchase price (possible data issue)",
                "Check comparable selection and filters",
            ))
        elif arv > purchase_price * 2.0:
            alerts.append(Alert(
                WARNING, MEDIUM, "Valuation", "High ARV",
                "ARV is more than 2x purchase price; check if this is realistic",
                "Confirm comparables match the subject's size and condition",
            ))

    return alerts


# =====================================================================
# Ordering and summaries
# =====================================================================


def sort_alerts(alerts: Iterable[Alert]) -> List[Alert]:
    """Priority descending, then type severity (error > warning > info > success)."""
    return sorted(alerts, key=lambda a: (-int(a.priority), -a.type.severity))


def filter_alerts_by_type(
    alerts: Iterable[Alert],
    types: Union[AlertType, str, Sequence[Union[AlertType, str]]],
) -> List[Alert]:
    if isinstance(types, (AlertType, str)):
        types = [types]
    wanted = {AlertType(t) for t in types}
    return [a for a in alerts if a.type in wanted]


def alert_summary(alerts: Sequence[Alert]) -> AlertSummary:
    return AlertSummary(
        total=len(alerts),
        errors=sum(1 for a in alerts if a.type is ERROR),
        warnings=sum(1 for a in alerts if a.type is WARNING),
        info=sum(1 for a in alerts if a.type is INFO),
        success=sum(1 for a in alerts if a.type is SUCCESS),
        high_priority=sum(1 for a in alerts if a.priority is HIGH),
    )


def overall_status(summary: AlertSummary) -> OverallStatus:
    if summary.errors:
        return "CRITICAL"
    if summary.warnings:
        return "CAUTION"
    if summary.success:
        return "EXCELLENT"
    return "GOOD"


def build_alert_report(*groups: Iterable[Alert]) -> AlertReport:
    """Merge alert groups, then sort and summarize."""
    merged = sort_alerts(a for group in groups for a in group)
    summary = alert_summary(merged)
    return AlertReport(alerts=merged, summary=summary, overall_status=overall_status(summary))
