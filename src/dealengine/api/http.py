# src/dealengine/api/http.py
from __future__ import annotations

from typing import Any

from fastapi import Depends, FastAPI, HTTPException

from dealengine.adapters.comp_providers import ProviderConfigError, UnknownProviderError
from dealengine.adapters.config import config
from dealengine.adapters.field_resolver import DictFieldResolver
from dealengine.adapters.logging_utils import get_logger
from dealengine.analysis.amortization import (
    amortization_summary,
    best_scenario,
    build_amortization_schedule,
    compare_loan_scenarios,
)
from dealengine.analysis.comps_filter import closest_comps, filter_comps
from dealengine.analysis.returns import compute_irr, compute_npv
from dealengine.domain.comps import CompQuery
from dealengine.domain.loans import LoanTerms
from dealengine.services.comp_resolver import CompResolver
from dealengine.services.deal_analyzer import analyze_deal, to_plain
from .schemas import (
    AmortizationRequest,
    AnalyzeRequest,
    AnalyzeResponse,
    CompsFilterRequest,
    CompsResolveRequest,
    IrrRequest,
    IrrResponse,
    LoanScenariosRequest,
    NpvRequest,
    NpvResponse,
)

logger = get_logger(__name__)

app = FastAPI(title="dealengine")

# one resolver (and so one comp cache) per process
_comp_resolver = CompResolver()


def get_comp_resolver() -> CompResolver:
    return _comp_resolver


@app.get("/health")
def health() -> dict[str, Any]:
    return {"status": "ok", "env": config.ENV}


@app.post("/analyze", response_model=AnalyzeResponse)
def analyze_endpoint(
    payload: AnalyzeRequest,
    resolver: CompResolver = Depends(get_comp_resolver),
) -> AnalyzeResponse:
    try:
        result = analyze_deal(
            DictFieldResolver(payload.fields),
            payload.strategy,
            comp_resolver=resolver,
            provider=payload.provider,
            force_refresh=payload.force_refresh,
            comps=payload.comps,
            filters=payload.filters,
            market=payload.market,
            thresholds=payload.thresholds,
            years=payload.years,
            discount_rate=payload.discount_rate,
        )
    except ProviderConfigError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return AnalyzeResponse(**result.to_dict())


# -----------------------------
# Returns
# -----------------------------


@app.post("/metrics/irr", response_model=IrrResponse)
def irr_endpoint(payload: IrrRequest) -> IrrResponse:
    irr = compute_irr(payload.cash_flows, guess=payload.guess)
    return IrrResponse(irr=irr, defined=irr is not None)


@app.post("/metrics/npv", response_model=NpvResponse)
def npv_endpoint(payload: NpvRequest) -> NpvResponse:
    return NpvResponse(npv=compute_npv(payload.cash_flows, payload.rate))


# -----------------------------
# Loans
# -----------------------------


@app.post("/amortization")
def amortization_endpoint(payload: AmortizationRequest) -> dict[str, Any]:
    terms = LoanTerms(principal=payload.principal, annual_rate=payload.annual_rate, term_years=payload.term_years)
    return {
        "monthly_payment": terms.payment,
        "schedule": to_plain(build_amortization_schedule(terms, payload.months)),
        "summary": amortization_summary(terms),
    }


@app.post("/loan-scenarios")
def loan_scenarios_endpoint(payload: LoanScenariosRequest) -> dict[str, Any]:
    scenarios = compare_loan_scenarios(payload.loan_amount, payload.rate, term_years=payload.term_years)
    best = best_scenario(scenarios)
    return {
        "scenarios": to_plain(scenarios),
        "lowest_interest": best.name if best else None,
    }


# -----------------------------
# Comps
# -----------------------------


@app.post("/comps/filter")
def comps_filter_endpoint(payload: CompsFilterRequest) -> dict[str, Any]:
    kept = filter_comps(payload.comps, payload.filters)
    return {
        "count": len(kept),
        "comps": to_plain(kept),
        "closest": to_plain(closest_comps(kept, payload.top_n)),
    }


@app.post("/comps/resolve")
def comps_resolve_endpoint(
    payload: CompsResolveRequest,
    resolver: CompResolver = Depends(get_comp_resolver),
) -> dict[str, Any]:
    query = CompQuery(**payload.model_dump(exclude={"provider", "force_refresh"}))
    try:
        res = resolver.resolve(query, payload.provider, force_refresh=payload.force_refresh)
    except UnknownProviderError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ProviderConfigError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    return to_plain(res)
