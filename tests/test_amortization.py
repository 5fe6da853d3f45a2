# tests/test_amortization.py
import pytest
from hypothesis import given, strategies as st

from dealengine.analysis.amortization import (
    amortization_summary,
    best_scenario,
    build_amortization_schedule,
    compare_loan_scenarios,
    interest_only_scenario,
    monthly_payment,
    remaining_balance,
)
from dealengine.domain.loans import LoanTerms


def test_monthly_payment_thirty_year_fixed():
    assert monthly_payment(240_000, 0.07, 30) == pytest.approx(1596.73, abs=0.01)


def test_zero_rate_payment_is_straight_line():
    assert monthly_payment(120_000, 0.0, 10) == pytest.approx(1000.0)


def test_zero_principal_has_no_payment():
    assert monthly_payment(0, 0.07, 30) == 0.0


def test_first_year_schedule():
    terms = LoanTerms(240_000, 0.07, 30)
    rows = build_amortization_schedule(terms, 12)

    assert len(rows) == 12
    assert [r.period for r in rows] == list(range(1, 13))
    assert rows[0].interest == pytest.approx(1400.0)
    assert rows[0].principal == pytest.approx(196.73, abs=0.01)
    assert rows[-1].cumulative_interest == pytest.approx(16_722.7, abs=3)
    assert rows[-1].balance == pytest.approx(237_562.0, abs=3)


def test_schedule_is_capped_at_term():
    terms = LoanTerms(10_000, 0.05, 1)
    rows = build_amortization_schedule(terms, 60)
    assert len(rows) == 12
    assert rows[-1].balance == pytest.approx(0.0, abs=1e-6)
    assert build_amortization_schedule(terms, 0) == []


def test_summary_totals():
    terms = LoanTerms(240_000, 0.07, 30)
    summary = amortization_summary(terms)
    assert summary["total_payments"] == pytest.approx(summary["monthly_payment"] * 360)
    assert summary["total_interest"] == pytest.approx(summary["total_payments"] - 240_000)
    assert summary["first_year_interest"] == pytest.approx(16_722.7, abs=3)


def test_remaining_balance_before_any_payment():
    terms = LoanTerms(50_000, 0.06, 15)
    assert remaining_balance(terms, 0) == 50_000


def test_interest_only_scenario():
    s = interest_only_scenario(240_000, 0.07, 10, 30, "IO")
    assert s.kind == "interest_only"
    assert s.io_monthly_payment == pytest.approx(1400.0)
    assert s.first_year_principal == pytest.approx(0.0, abs=1e-9)
    assert s.balance_after_year1 == pytest.approx(240_000)
    # 10 years of interest plus 20 years amortizing the full balance
    expected_total = 1400.0 * 120 + s.amortizing_monthly_payment * 240
    assert s.total_payments == pytest.approx(expected_total)


@pytest.mark.parametrize("term_years, io_years", [(10, 9), (5, 4)])
def test_interest_only_period_leaves_time_to_amortize(term_years, io_years):
    scenarios = compare_loan_scenarios(240_000, 0.07, term_years=term_years)
    io = scenarios[2]
    assert io.name == f"Interest-Only ({io_years}yr)"
    assert io.io_years == io_years
    assert io.amortizing_monthly_payment > 0
    assert io.total_interest >= 0
    # paying interest only for a while never beats amortizing from day one
    assert io.total_interest > scenarios[0].total_interest
    assert best_scenario(scenarios) is not io


def test_compare_scenarios_shape_and_best():
    scenarios = compare_loan_scenarios(240_000, 0.07)
    names = [s.name for s in scenarios]
    assert names == ["30-Year Fixed", "15-Year Fixed", "Interest-Only (10yr)", "ARM 5/1 (initial)"]
    assert scenarios[1].rate == pytest.approx(0.065)
    best = best_scenario(scenarios)
    assert best is scenarios[1]
    assert best_scenario([]) is None


@given(
    principal=st.floats(min_value=1_000, max_value=2_000_000),
    rate=st.floats(min_value=0.0, max_value=0.15),
    years=st.integers(min_value=1, max_value=40),
)
def test_schedule_conserves_payments(principal, rate, years):
    terms = LoanTerms(principal, rate, years)
    rows = build_amortization_schedule(terms, 12)
    paid = sum(r.payment for r in rows)
    split = sum(r.principal + r.interest for r in rows)
    assert paid == pytest.approx(split)
    assert all(r.balance >= 0 for r in rows)
    balances = [r.balance for r in rows]
    assert balances == sorted(balances, reverse=True)


@given(
    principal=st.floats(min_value=1_000, max_value=2_000_000),
    rate=st.floats(min_value=0.0, max_value=0.15),
    years=st.integers(min_value=1, max_value=40),
)
def test_full_term_pays_off_the_loan(principal, rate, years):
    terms = LoanTerms(principal, rate, years)
    rows = build_amortization_schedule(terms, terms.total_periods)
    assert rows[-1].balance == pytest.approx(0.0, abs=principal * 1e-6)
    assert sum(r.principal for r in rows) == pytest.approx(principal, rel=1e-6)
