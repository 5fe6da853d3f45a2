# src/dealengine/services/deal_analyzer.py
from __future__ import annotations

import dataclasses
import math
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from dealengine.adapters.config import config
from dealengine.adapters.field_resolver import FieldContext, load_comp_query, load_deal_inputs
from dealengine.adapters.logging_utils import get_logger, log_event
from dealengine.analysis.alerts import (
    FlipAlertData,
    Overrides,
    RentalAlertData,
    build_alert_report,
    generate_flip_alerts,
    generate_market_insights,
    generate_rental_alerts,
    generate_valuation_alerts,
)
from dealengine.analysis.amortization import compare_loan_scenarios
from dealengine.analysis.comps_filter import filter_comps
from dealengine.analysis.finance import (
    compute_break_even,
    compute_flip_metrics,
    compute_rental_metrics,
    flip_scenarios,
    project_cash_flows,
)
from dealengine.analysis.insights import InsightsReport, build_insights_report
from dealengine.analysis.returns import compute_irr, compute_npv
from dealengine.analysis.scoring import score_flip, score_rental, score_report
from dealengine.analysis.valuation import ArvEstimate, estimate_arv
from dealengine.domain.alerts import AlertReport
from dealengine.domain.comps import CompFilters, CompRecord
from dealengine.domain.inputs import DealInputs, Strategy
from dealengine.domain.loans import LoanScenario
from dealengine.domain.market import MarketData
from dealengine.domain.metrics import BreakEven, CashFlowProjection, FlipMetrics, FlipScenario, PropertyMetrics
from dealengine.domain.ports import FieldResolver
from dealengine.domain.scores import ScoreBreakdown, ScoreReport
from dealengine.services.comp_resolver import CompResolver, normalize_comps

logger = get_logger(__name__)


def to_plain(obj: Any) -> Any:
    """JSON-ready copy: dataclasses and models become dicts, non-finite floats None."""
    if isinstance(obj, BaseModel):
        return to_plain(obj.model_dump())
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_plain(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, float):
        return obj if math.isfinite(obj) else None
    if isinstance(obj, dict):
        return {str(k): to_plain(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_plain(v) for v in obj]
    return obj


@dataclasses.dataclass
class DealAnalysis:
    strategy: Strategy
    inputs: DealInputs
    arv: ArvEstimate
    comps: List[CompRecord]
    score: ScoreBreakdown
    report: ScoreReport
    alerts: AlertReport
    insights: InsightsReport
    loan_scenarios: List[LoanScenario]
    comps_notice: Optional[str] = None
    rental: Optional[PropertyMetrics] = None
    flip: Optional[FlipMetrics] = None
    flip_scenarios: List[FlipScenario] = dataclasses.field(default_factory=list)
    projection: Optional[CashFlowProjection] = None
    irr: Optional[float] = None
    npv: Optional[float] = None
    break_even: Optional[BreakEven] = None

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)


def analyze_deal(
    resolver: FieldResolver,
    strategy: Strategy,
    *,
    comp_resolver: CompResolver | None = None,
    provider: Optional[str] = None,
    force_refresh: bool = False,
    comps: Optional[List[CompRecord]] = None,
    filters: Optional[CompFilters] = None,
    market: Optional[MarketData] = None,
    thresholds: Overrides = None,
    context: Optional[FieldContext] = None,
    years: Optional[int] = None,
    discount_rate: Optional[float] = None,
) -> DealAnalysis:
    """
    One request-scoped analysis. Comps come from ``comps`` when given,
    otherwise from ``comp_resolver`` + ``provider`` when both are set; with
    neither, the ARV falls back to the purchase-price estimate.
    """
    if strategy not in ("flip", "rental"):
        raise ValueError(f"strategy must be 'flip' or 'rental', got {strategy!r}")

    ctx = context if context is not None else FieldContext()
    if not ctx.loaded:
        ctx.load(resolver)
    inputs = load_deal_inputs(resolver, ctx)

    # 1. comps
    notice: Optional[str] = None
    found: List[CompRecord] = normalize_comps(comps or [])
    if comps is None and comp_resolver is not None and provider:
        query = load_comp_query(resolver, ctx)
        if query is None:
            notice = "Property address incomplete; comps were not requested."
        else:
            resolution = comp_resolver.resolve(query, provider, force_refresh=force_refresh)
            found, notice = resolution.comps, resolution.notice

    if filters is not None:
        found = filter_comps(found, filters)

    # 2. valuation
    arv = estimate_arv(found, inputs.purchase_price)

    # 3. metrics, score, alerts
    loans = compare_loan_scenarios(inputs.loan_amount, inputs.interest_rate, term_years=inputs.loan_term_years or 30)
    result_kwargs: Dict[str, Any] = {}

    if strategy == "flip":
        flip = compute_flip_metrics(inputs, arv.arv)
        score = score_flip(flip)
        rule_alerts = generate_flip_alerts(FlipAlertData.from_metrics(flip), thresholds)
        market_alerts = generate_market_insights(flip.roi, None, market)
        metrics: Any = flip
        result_kwargs.update(flip=flip, flip_scenarios=flip_scenarios(flip))
    else:
        rental = compute_rental_metrics(inputs, arv=arv.arv if arv.source == "comps" else None)
        score = score_rental(rental, market)
        rule_alerts = generate_rental_alerts(RentalAlertData.from_metrics(rental, inputs.vacancy_rate), thresholds)
        market_alerts = generate_market_insights(rental.roi, rental.cap_rate, market)
        metrics = rental

        projection = project_cash_flows(inputs, years or config.DEFAULT_PROJECTION_YEARS)
        rate = discount_rate if discount_rate is not None else config.DEFAULT_DISCOUNT_RATE
        result_kwargs.update(
            rental=rental,
            projection=projection,
            irr=compute_irr(projection.cash_flows),
            npv=compute_npv(projection.cash_flows, rate),
            break_even=compute_break_even(inputs),
        )

    valuation_alerts = generate_valuation_alerts(arv.arv, inputs.purchase_price, arv.comp_count)
    alerts = build_alert_report(rule_alerts, market_alerts, valuation_alerts)
    insights = build_insights_report(
        strategy, metrics, score, alerts.alerts, market, purchase_price=inputs.purchase_price,
    )

    log_event(
        logger, "deal_analyzed",
        strategy=strategy, score=score.total, status=alerts.overall_status,
        comps=len(found), arv_source=arv.source,
    )

    return DealAnalysis(
        strategy=strategy,
        inputs=inputs,
        arv=arv,
        comps=found,
        comps_notice=notice,
        score=score,
        report=score_report(score),
        alerts=alerts,
        insights=insights,
        loan_scenarios=loans,
        **result_kwargs,
    )
