# entrypoints/cli/analyze.py
from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

import typer

from dealengine.adapters.config import config
from dealengine.adapters.field_resolver import DictFieldResolver
from dealengine.analysis.amortization import amortization_summary, build_amortization_schedule
from dealengine.analysis.returns import compute_irr, compute_npv
from dealengine.domain.comps import CompFilters, CompRecord
from dealengine.domain.loans import LoanTerms
from dealengine.domain.market import MarketData
from dealengine.services.comp_resolver import CompResolver
from dealengine.services.deal_analyzer import analyze_deal, to_plain

app = typer.Typer(help="Deal analysis: metrics, scores, alerts, loans and returns.")


def _read_json(path: Path) -> dict:
    try:
        data = json.loads(path.read_text())
    except (OSError, ValueError) as e:
        raise typer.BadParameter(f"cannot read JSON from {path}: {e}") from e
    if not isinstance(data, dict):
        raise typer.BadParameter(f"{path} must contain a JSON object")
    return data


@app.command("analyze")
def analyze_cmd(
    inputs: Path = typer.Argument(..., help="JSON file: {'fields': {...}, 'comps': [...], 'market': {...}} or a bare fields object"),
    strategy: str = typer.Option("rental", help="flip or rental"),
    provider: Optional[str] = typer.Option(None, help="Comp provider tag (bridge, openai, gemini)"),
    force_refresh: bool = typer.Option(False, help="Bypass the comp cache"),
    years: int = typer.Option(config.DEFAULT_PROJECTION_YEARS, help="Projection horizon (rental)"),
    out: Optional[Path] = typer.Option(None, help="Write the report here instead of stdout"),
) -> None:
    """
    Run one full analysis and print the JSON report.
    """
    doc = _read_json(inputs)
    fields = doc.get("fields", doc)

    comps = None
    if "comps" in doc:
        comps = [CompRecord(**c) for c in doc["comps"]]
    filters = CompFilters(**doc["filters"]) if doc.get("filters") else None
    market = MarketData(**doc["market"]) if doc.get("market") else None

    try:
        result = analyze_deal(
            DictFieldResolver(fields),
            strategy,  # type: ignore[arg-type]
            comp_resolver=CompResolver() if provider else None,
            provider=provider,
            force_refresh=force_refresh,
            comps=comps,
            filters=filters,
            market=market,
            years=years,
        )
    except ValueError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1)

    text = json.dumps(result.to_dict(), indent=2)
    if out is not None:
        out.write_text(text)
        typer.echo(f"wrote {out}")
    else:
        typer.echo(text)


@app.command("amortization")
def amortization_cmd(
    principal: float = typer.Option(..., help="Loan amount"),
    rate: float = typer.Option(..., help="Annual rate as a fraction, e.g. 0.07"),
    years: int = typer.Option(30, help="Term in years"),
    months: int = typer.Option(12, help="Rows to print"),
) -> None:
    """
    Print the first MONTHS rows of the schedule plus a loan summary.
    """
    terms = LoanTerms(principal, rate, years)
    typer.echo(json.dumps({
        "summary": amortization_summary(terms),
        "schedule": to_plain(build_amortization_schedule(terms, months)),
    }, indent=2))


@app.command("irr")
def irr_cmd(
    cash_flows: List[float] = typer.Argument(..., help="Period 0 first (negative outlay), e.g. -- -1000 300 400 500"),
    discount_rate: float = typer.Option(config.DEFAULT_DISCOUNT_RATE, help="Rate for the NPV line"),
) -> None:
    """
    IRR (or 'undefined') and NPV of a cash-flow series.
    """
    irr = compute_irr(cash_flows)
    npv = compute_npv(cash_flows, discount_rate)
    typer.echo(f"irr: {'undefined' if irr is None else f'{irr:.6f}'}")
    typer.echo(f"npv@{discount_rate:g}: {npv:.2f}")


if __name__ == "__main__":
    app()
