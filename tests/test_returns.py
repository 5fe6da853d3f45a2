# tests/test_returns.py
import math

import pytest
from hypothesis import given, strategies as st

from dealengine.analysis.returns import compute_irr, compute_npv, equity_multiple


def test_irr_single_period_is_simple_return():
    assert compute_irr([-1000.0, 1100.0]) == pytest.approx(0.10, abs=1e-6)


def test_irr_two_period_series():
    irr = compute_irr([-100.0, 60.0, 60.0])
    assert irr == pytest.approx(0.1307, abs=1e-4)
    assert compute_npv([-100.0, 60.0, 60.0], irr) == pytest.approx(0.0, abs=1e-6)


def test_irr_can_be_negative():
    irr = compute_irr([-1000.0, 500.0, 400.0])
    assert irr is not None
    assert irr < 0


@pytest.mark.parametrize(
    "flows",
    [
        [],
        [-1000.0],
        [100.0, 200.0, 300.0],
        [-100.0, -200.0, -300.0],
        [0.0, 0.0, 0.0],
    ],
)
def test_irr_undefined_without_two_flows_and_a_sign_change(flows):
    assert compute_irr(flows) is None


def test_irr_rejects_results_above_1000_percent():
    # true IRR is 19 (1900%), outside the accepted range
    assert compute_irr([-100.0, 2000.0]) is None


def test_npv_at_zero_rate_is_plain_sum():
    flows = [-250_000.0, 12_000.0, 12_500.0, 13_000.0, 300_000.0]
    assert compute_npv(flows, 0.0) == pytest.approx(sum(flows))


def test_npv_discounts_each_period():
    assert compute_npv([-100.0, 110.0], 0.10) == pytest.approx(0.0)
    assert compute_npv([0.0, 0.0, 121.0], 0.10) == pytest.approx(100.0)


def test_equity_multiple():
    assert equity_multiple([-100.0, 50.0, 100.0]) == pytest.approx(1.5)
    assert equity_multiple([10.0, 20.0]) is None


@given(
    rate=st.floats(min_value=0.0, max_value=0.5),
    inflows=st.lists(st.floats(min_value=100.0, max_value=5_000.0), min_size=1, max_size=8),
)
def test_irr_recovers_the_discount_rate(rate, inflows):
    outlay = compute_npv([0.0, *inflows], rate)
    flows = [-outlay, *inflows]
    irr = compute_irr(flows)
    assert irr is not None
    assert irr == pytest.approx(rate, abs=1e-4)
    assert abs(compute_npv(flows, irr)) < 1e-3


@given(st.lists(st.floats(min_value=0.0, max_value=1e6), min_size=0, max_size=10))
def test_irr_never_numeric_for_one_signed_series(values):
    assert compute_irr(values) is None
    assert compute_irr([-v for v in values]) is None


@given(
    flows=st.lists(st.floats(min_value=-1e5, max_value=1e5), min_size=1, max_size=10),
)
def test_npv_zero_rate_matches_sum(flows):
    assert math.isclose(compute_npv(flows, 0.0), sum(flows), rel_tol=1e-9, abs_tol=1e-6)
