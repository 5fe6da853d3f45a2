# src/dealengine/analysis/amortization.py
"""
Loan payment, amortization schedule and loan-scenario comparison.

Every schedule here is produced by the same recurrence:

    interest  = balance * r
    principal = payment - interest
    balance  -= principal

with the reported balance floored at 0 to absorb float rounding on the
last period.
"""
from __future__ import annotations

from typing import Dict, List

from dealengine.domain.loans import AmortizationRow, LoanScenario, LoanTerms, annuity_payment


def monthly_payment(principal: float, annual_rate: float, years: int) -> float:
    """
    Standard fixed-rate amortization formula:
    M = P * r / (1 - (1+r)^-n)
    r = annual_rate / 12, n = years * 12. At r == 0 this is P / n.
    """
    return LoanTerms(principal, annual_rate, years).payment


def build_amortization_schedule(terms: LoanTerms, months: int = 12) -> List[AmortizationRow]:
    """
    First ``min(months, total_periods)`` rows of the schedule.
    Use ``months=terms.total_periods`` for the full term.
    """
    n = min(int(months), terms.total_periods)
    if n <= 0:
        return []

    r = terms.monthly_rate
    payment = terms.payment
    balance = terms.principal
    cumulative = 0.0
    rows: List[AmortizationRow] = []

    for period in range(1, n + 1):
        interest = balance * r
        principal = payment - interest
        balance -= principal
        cumulative += interest
        rows.append(
            AmortizationRow(
                period=period,
                payment=payment,
                principal=principal,
                interest=interest,
                balance=max(0.0, balance),
                cumulative_interest=cumulative,
            )
        )

    return rows


def interest_paid(terms: LoanTerms, months: int) -> float:
    rows = build_amortization_schedule(terms, months)
    return rows[-1].cumulative_interest if rows else 0.0


def remaining_balance(terms: LoanTerms, months: int) -> float:
    rows = build_amortization_schedule(terms, months)
    return rows[-1].balance if rows else terms.principal


def amortization_summary(terms: LoanTerms) -> Dict[str, float]:
    payment = terms.payment
    total_payments = payment * terms.total_periods
    return {
        "loan_amount": terms.principal,
        "interest_rate": terms.annual_rate,
        "loan_term_years": terms.term_years,
        "monthly_payment": payment,
        "total_payments": total_payments,
        "total_interest": total_payments - terms.principal,
        "first_year_interest": interest_paid(terms, 12),
    }


# ---------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------

def amortizing_scenario(loan_amount: float, rate: float, years: int, name: str) -> LoanScenario:
    terms = LoanTerms(loan_amount, rate, years)
    payment = terms.payment
    total_payments = payment * terms.total_periods

    first_year = build_amortization_schedule(terms, 12)
    first_year_interest = sum(row.interest for row in first_year)
    first_year_principal = sum(row.principal for row in first_year)
    balance = first_year[-1].balance if first_year else loan_amount

    return LoanScenario(
        name=name,
        kind="amortizing",
        loan_amount=loan_amount,
        rate=rate,
        term_years=years,
        monthly_payment=payment,
        total_payments=total_payments,
        total_interest=total_payments - loan_amount,
        first_year_interest=first_year_interest,
        first_year_principal=first_year_principal,
        balance_after_year1=balance,
    )


def clamp_io_years(io_years: int, total_years: int) -> int:
    return max(0, min(io_years, total_years - 1))


def interest_only_scenario(
    loan_amount: float,
    rate: float,
    io_years: int,
    total_years: int,
    name: str,
) -> LoanScenario:
    """
    Interest-only for ``io_years``, then the full balance re-amortized over
    the remaining term. Total interest = IO-period interest + interest of the
    post-IO amortization.

    The IO period is capped so at least one year is left to amortize.
    """
    io_years = clamp_io_years(io_years, total_years)
    r = rate / 12.0
    io_months = int(io_years * 12)
    io_payment = loan_amount * r
    io_total = io_payment * io_months

    remaining_months = int((total_years - io_years) * 12)
    amort_payment = annuity_payment(r, remaining_months, loan_amount)
    amort_total = amort_payment * remaining_months
    total_payments = io_total + amort_total

    # One pass of the recurrence over year 1 (principal portion is 0 while IO).
    balance = loan_amount
    first_year_interest = 0.0
    first_year_principal = 0.0
    for month in range(1, 13):
        payment = io_payment if month <= io_months else amort_payment
        interest = balance * r
        principal = payment - interest
        balance -= principal
        first_year_interest += interest
        first_year_principal += principal

    return LoanScenario(
        name=name,
        kind="interest_only",
        loan_amount=loan_amount,
        rate=rate,
        term_years=total_years,
        monthly_payment=io_payment,
        total_payments=total_payments,
        total_interest=total_payments - loan_amount,
        first_year_interest=first_year_interest,
        first_year_principal=first_year_principal,
        balance_after_year1=max(0.0, balance),
        io_years=io_years,
        io_monthly_payment=io_payment,
        amortizing_monthly_payment=amort_payment,
    )


def compare_loan_scenarios(
    loan_amount: float,
    rate: float,
    term_years: int = 30,
    short_term_years: int = 15,
    rate_discount: float = 0.005,
    io_years: int = 10,
) -> List[LoanScenario]:
    """
    Standard amortizing at the quoted rate/term, a shorter term at a reduced
    rate, interest-only then amortizing, and an ARM initial-rate view.
    """
    reduced = max(0.0, rate - rate_discount)
    io = clamp_io_years(io_years, term_years)
    return [
        amortizing_scenario(loan_amount, rate, term_years, f"{term_years}-Year Fixed"),
        amortizing_scenario(loan_amount, reduced, short_term_years, f"{short_term_years}-Year Fixed"),
        interest_only_scenario(loan_amount, rate, io, term_years, f"Interest-Only ({io}yr)"),
        amortizing_scenario(loan_amount, reduced, term_years, "ARM 5/1 (initial)"),
    ]


def best_scenario(scenarios: List[LoanScenario]) -> LoanScenario | None:
    """Lowest total interest."""
    if not scenarios:
        return None
    return min(scenarios, key=lambda s: s.total_interest)
