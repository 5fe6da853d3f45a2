# src/dealengine/analysis/finance.py
from __future__ import annotations

from typing import Dict, List, Optional

from dealengine.analysis.amortization import monthly_payment
from dealengine.domain.assumptions import FlipAssumptions, ProjectionAssumptions
from dealengine.domain.inputs import DealInputs
from dealengine.domain.metrics import (
    BreakEven,
    CashFlowProjection,
    FlipMetrics,
    FlipScenario,
    PropertyMetrics,
    YearProjection,
)


def _mortgage_monthly(inputs: DealInputs) -> float:
    return monthly_payment(inputs.loan_amount, inputs.interest_rate, inputs.loan_term_years)


def _heloc_monthly_interest(inputs: DealInputs) -> float:
    return inputs.heloc_amount * inputs.heloc_interest_rate / 12.0


def _operating_expenses_annual(
    inputs: DealInputs,
    effective_gross_income: float,
    value_basis: float,
) -> Dict[str, float]:
    """
    Operating expenses do NOT include the mortgage (financing, not operations).
    Tax and maintenance are a share of ``value_basis`` per year; management is
    a share of effective gross income.
    """
    taxes = value_basis * inputs.property_tax_rate
    insurance = inputs.insurance_monthly * 12.0
    maintenance = value_basis * inputs.maintenance_rate
    management = effective_gross_income * inputs.management_rate
    hoa = inputs.hoa_monthly * 12.0
    utilities = inputs.utilities_monthly * 12.0

    return {
        "taxes": taxes,
        "insurance": insurance,
        "maintenance": maintenance,
        "management": management,
        "hoa": hoa,
        "utilities": utilities,
        "total": taxes + insurance + maintenance + management + hoa + utilities,
    }


def expense_breakdown(inputs: DealInputs) -> Dict[str, float]:
    gross = inputs.rent_estimate * 12.0
    egi = gross - gross * inputs.vacancy_rate
    return _operating_expenses_annual(inputs, egi, inputs.purchase_price)


def compute_rental_metrics(inputs: DealInputs, arv: Optional[float] = None) -> PropertyMetrics:
    """
    As-is rental underwriting.

    Never raises on degenerate inputs: zero rent gives zero income, no debt
    gives DSCR = inf, no cash invested gives a 0 return.
    """
    purchase_price = inputs.purchase_price

    # --- income side ---
    gross_income = inputs.rent_estimate * 12.0
    vacancy_loss = gross_income * inputs.vacancy_rate
    egi = gross_income - vacancy_loss

    # --- operating expenses ---
    opx = _operating_expenses_annual(inputs, egi, purchase_price)

    # --- NOI (before debt) ---
    noi = egi - opx["total"]
    cap_rate = noi / purchase_price if purchase_price > 0 else 0.0

    # --- debt service ---
    monthly_debt = _mortgage_monthly(inputs) + _heloc_monthly_interest(inputs)
    annual_debt_service = monthly_debt * 12.0
    dscr = noi / annual_debt_service if annual_debt_service > 0 else float("inf")

    # --- cash flow after debt ---
    annual_cash_flow = noi - annual_debt_service
    total_cash_invested = inputs.down_payment + inputs.cash_investment + inputs.rehab_cost
    coc = annual_cash_flow / total_cash_invested if total_cash_invested > 0 else 0.0

    return_on_time = None
    if inputs.months_to_flip > 0:
        return_on_time = coc / inputs.months_to_flip

    mao = None
    if arv is not None and arv > 0:
        flip = FlipAssumptions()
        mao = arv * flip.mao_rule - inputs.rehab_cost * (1 + flip.rehab_contingency_rate)

    return PropertyMetrics(
        gross_income_annual=gross_income,
        vacancy_loss_annual=vacancy_loss,
        effective_gross_income=egi,
        operating_expenses_annual=opx["total"],
        noi=noi,
        cap_rate=cap_rate,
        annual_debt_service=annual_debt_service,
        annual_cash_flow=annual_cash_flow,
        monthly_cash_flow=annual_cash_flow / 12.0,
        cash_on_cash=coc,
        roi=coc,
        dscr=dscr,
        total_cash_invested=total_cash_invested,
        monthly_rent=inputs.rent_estimate,
        total_monthly_expenses=(opx["total"] + annual_debt_service) / 12.0,
        expense_ratio=opx["total"] / gross_income if gross_income > 0 else 0.0,
        return_on_time=return_on_time,
        mao=mao,
    )


def compute_flip_metrics(
    inputs: DealInputs,
    arv: float,
    assumptions: FlipAssumptions | None = None,
) -> FlipMetrics:
    a = assumptions or FlipAssumptions()
    purchase_price = inputs.purchase_price
    months = inputs.months_to_flip

    down_payment = inputs.down_payment
    closing_costs = purchase_price * a.closing_cost_rate

    contingency = inputs.rehab_cost * a.rehab_contingency_rate
    total_rehab = inputs.rehab_cost + contingency

    monthly_holding = (
        _mortgage_monthly(inputs)
        + _heloc_monthly_interest(inputs)
        + purchase_price * inputs.property_tax_rate / 12.0
        + inputs.insurance_monthly
        + inputs.utilities_monthly
    )
    total_holding = monthly_holding * months

    selling_costs = arv * (a.commission_rate + a.seller_closing_rate)

    total_costs = purchase_price + total_rehab + closing_costs + total_holding + selling_costs
    net_profit = arv - total_costs

    total_cash_invested = down_payment + inputs.cash_investment + total_rehab
    roi = net_profit / total_cash_invested if total_cash_invested > 0 else 0.0
    margin = net_profit / arv if arv > 0 else 0.0

    return FlipMetrics(
        arv=arv,
        purchase_price=purchase_price,
        down_payment=down_payment,
        closing_costs=closing_costs,
        base_rehab=inputs.rehab_cost,
        rehab_contingency=contingency,
        total_rehab=total_rehab,
        monthly_holding_costs=monthly_holding,
        total_holding_costs=total_holding,
        selling_costs=selling_costs,
        total_costs=total_costs,
        total_cash_invested=total_cash_invested,
        net_profit=net_profit,
        profit_margin=margin,
        roi=roi,
        mao=arv * a.mao_rule - total_rehab,
        months_to_flip=months,
    )


def flip_scenarios(
    metrics: FlipMetrics,
    arv_variance: float = 0.10,
    rehab_increase: float = 0.20,
    rehab_decrease: float = 0.10,
) -> List[FlipScenario]:
    """Base, worst (ARV down, rehab up) and best (ARV up, rehab down)."""
    fixed_costs = metrics.total_costs - metrics.total_rehab - metrics.selling_costs
    selling_rate = metrics.selling_costs / metrics.arv if metrics.arv > 0 else 0.0

    def _profit(arv: float, rehab: float) -> float:
        return arv - (fixed_costs + rehab + arv * selling_rate)

    worst_arv = metrics.arv * (1 - arv_variance)
    worst_rehab = metrics.total_rehab * (1 + rehab_increase)
    best_arv = metrics.arv * (1 + arv_variance)
    best_rehab = metrics.total_rehab * (1 - rehab_decrease)

    return [
        FlipScenario("base", metrics.arv, metrics.total_rehab, metrics.net_profit),
        FlipScenario("worst", worst_arv, worst_rehab, _profit(worst_arv, worst_rehab)),
        FlipScenario("best", best_arv, best_rehab, _profit(best_arv, best_rehab)),
    ]


def project_cash_flows(
    inputs: DealInputs,
    years: int = 10,
    assumptions: ProjectionAssumptions | None = None,
) -> CashFlowProjection:
    """
    Multi-year rental projection. Rent grows at ``rent_growth_rate``; tax,
    insurance, maintenance, HOA and utilities grow at ``expense_growth_rate``;
    value appreciates at ``appreciation_rate``. Vacancy is a share of gross
    rent and management a share of effective income, so both track rent.
    """
    a = assumptions or ProjectionAssumptions()
    basis = inputs.total_investment
    total_cash_invested = inputs.down_payment + inputs.rehab_cost
    debt_service = _mortgage_monthly(inputs) * 12.0

    cash_flows: List[float] = [-total_cash_invested]
    rows: List[YearProjection] = []
    cumulative = 0.0

    for year in range(1, int(years) + 1):
        rent_growth = (1 + a.rent_growth_rate) ** (year - 1)
        expense_growth = (1 + a.expense_growth_rate) ** (year - 1)

        annual_rent = inputs.rent_estimate * 12.0 * rent_growth
        egi = annual_rent - annual_rent * inputs.vacancy_rate

        fixed = (
            basis * inputs.property_tax_rate
            + inputs.insurance_monthly * 12.0
            + basis * inputs.maintenance_rate
            + inputs.hoa_monthly * 12.0
            + inputs.utilities_monthly * 12.0
        ) * expense_growth
        expenses = fixed + egi * inputs.management_rate

        noi = egi - expenses
        cash_flow = noi - debt_service
        cumulative += cash_flow
        cash_flows.append(cash_flow)

        rows.append(
            YearProjection(
                year=year,
                rent=annual_rent,
                effective_gross_income=egi,
                operating_expenses=expenses,
                noi=noi,
                debt_service=debt_service,
                cash_flow=cash_flow,
                property_value=basis * (1 + a.appreciation_rate) ** year,
                cumulative_cash_flow=cumulative,
            )
        )

    return CashFlowProjection(cash_flows=cash_flows, years=rows, total_cash_invested=total_cash_invested)


def compute_break_even(inputs: DealInputs) -> BreakEven:
    """
    Break-even rent without management = debt service + tax + insurance +
    maintenance (monthly). With management and vacancy it is grossed up by
    ``1 - management_rate - vacancy_rate``. Occupancy is relative to the
    current rent estimate.
    """
    basis = inputs.total_investment
    debt = _mortgage_monthly(inputs)

    tax = basis * inputs.property_tax_rate / 12.0
    insurance = inputs.insurance_monthly
    maintenance = basis * inputs.maintenance_rate / 12.0
    operating = tax + insurance + maintenance

    no_mgmt = debt + operating

    keep = 1.0 - inputs.management_rate - inputs.vacancy_rate
    with_mgmt = no_mgmt / keep if keep > 0 else float("inf")

    rent = inputs.rent_estimate
    occupancy = no_mgmt / rent if rent > 0 else float("inf")

    return BreakEven(
        break_even_rent_no_mgmt=no_mgmt,
        break_even_rent_with_mgmt=with_mgmt,
        break_even_occupancy=occupancy,
        current_rent=rent,
        monthly_debt_service=debt,
        monthly_operating_expenses=operating,
    )
