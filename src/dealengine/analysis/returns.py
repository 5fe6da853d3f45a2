# src/dealengine/analysis/returns.py
"""
IRR and NPV over a CashFlowSeries (period 0 = initial outlay, negative).

IRR is a Newton-Raphson root-find on NPV(rate) = 0. Every failure mode
(bad input, flat derivative, divergence, no convergence, out-of-range
result) returns ``None`` instead of raising; the reason is logged.
"""
from __future__ import annotations

import logging
import math
from typing import Optional, Sequence

from dealengine.adapters.logging_utils import get_logger, log_event

logger = get_logger(__name__)

MAX_ITERATIONS = 100
TOLERANCE = 1e-5
DERIVATIVE_FLOOR = 1e-6
DIVERGENCE_LIMIT = 100.0
MIN_REASONABLE_RATE = -1.0   # -100%
MAX_REASONABLE_RATE = 10.0   # 1000%
DEFAULT_GUESS = 0.10


def compute_npv(cash_flows: Sequence[float], rate: float) -> float:
    """Discounted sum; defined for rate > -1."""
    npv = 0.0
    for period, cf in enumerate(cash_flows):
        npv += cf / (1 + rate) ** period
    return npv


def _npv_derivative(cash_flows: Sequence[float], rate: float) -> float:
    dnpv = 0.0
    for period, cf in enumerate(cash_flows):
        dnpv -= period * cf / (1 + rate) ** (period + 1)
    return dnpv


def _undefined(reason: str, **context) -> None:
    log_event(logger, "irr_undefined", level=logging.WARNING, reason=reason, **context)
    return None


def compute_irr(cash_flows: Sequence[float], guess: float = DEFAULT_GUESS) -> Optional[float]:
    """
    Internal rate of return as a decimal (0.15 == 15%), or ``None`` when it
    is undefined for this series.
    """
    if cash_flows is None or len(cash_flows) < 2:
        return _undefined("fewer_than_two_flows")

    has_positive = any(cf > 0 for cf in cash_flows)
    has_negative = any(cf < 0 for cf in cash_flows)
    if not has_positive or not has_negative:
        return _undefined("no_sign_change")

    rate = float(guess)

    for iteration in range(MAX_ITERATIONS):
        try:
            npv = compute_npv(cash_flows, rate)
            derivative = _npv_derivative(cash_flows, rate)
        except (ZeroDivisionError, OverflowError):
            return _undefined("evaluation_failed", rate=rate, iteration=iteration)

        if abs(derivative) < DERIVATIVE_FLOOR:
            return _undefined("derivative_too_small", rate=rate, iteration=iteration)

        new_rate = rate - npv / derivative

        if abs(new_rate - rate) < TOLERANCE:
            if new_rate < MIN_REASONABLE_RATE or new_rate > MAX_REASONABLE_RATE:
                return _undefined("unreasonable_rate", rate=new_rate)
            return new_rate

        if not math.isfinite(new_rate) or abs(new_rate) > DIVERGENCE_LIMIT:
            return _undefined("diverged", rate=new_rate, iteration=iteration)

        rate = new_rate

    return _undefined("no_convergence", iterations=MAX_ITERATIONS)


def equity_multiple(cash_flows: Sequence[float]) -> Optional[float]:
    """Total inflows / total outflows; ``None`` with no outflow."""
    inflows = sum(cf for cf in cash_flows if cf > 0)
    outflows = abs(sum(cf for cf in cash_flows if cf < 0))
    if outflows == 0:
        return None
    return inflows / outflows
