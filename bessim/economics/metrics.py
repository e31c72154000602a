"""Core financial metrics for storage investments.

Net present value, internal rate of return (Newton-Raphson), simple and
discounted payback, and levelised cost of energy.  Cash-flow series are
indexed by year, starting at year 0 (normally the negative investment).

All monetary values are in USD ($).  Energy is in kWh.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Mapping, Sequence

import numpy as np
from numpy.typing import ArrayLike


# ======================================================================
# Constants
# ======================================================================

IRR_INITIAL_GUESS: float = 0.10
IRR_TOLERANCE: float = 0.001  # |NPV| in $
IRR_MAX_ITERATIONS: int = 100
IRR_LOWER_BOUND: float = -0.9
IRR_UPPER_BOUND: float = 0.9


# ======================================================================
# Discounting
# ======================================================================

def discount_factor(rate: float, year: int) -> float:
    """Return ``1 / (1 + rate) ** year``."""
    return 1.0 / (1.0 + rate) ** year


def npv(cash_flows: ArrayLike, rate: float) -> float:
    """Net present value of a year-indexed cash-flow series (year 0 undiscounted)."""
    flows = np.asarray(cash_flows, dtype=np.float64)
    years = np.arange(flows.size, dtype=np.float64)
    return float(np.sum(flows / (1.0 + rate) ** years))


def annuity_npv(
    initial_investment: float,
    annual_savings: float,
    annual_om_cost: float,
    discount_rate: float,
    years: int,
) -> float:
    """NPV of a flat net saving ``annual_savings - annual_om_cost`` over *years*."""
    net = annual_savings - annual_om_cost
    return -initial_investment + sum(
        net * discount_factor(discount_rate, y) for y in range(1, years + 1)
    )


# ======================================================================
# IRR
# ======================================================================

@dataclass(frozen=True)
class IRRSolution:
    """Newton-Raphson IRR estimate.

    ``converged`` is ``False`` when the iteration budget ran out (or the
    derivative vanished) before ``|NPV|`` dropped below the tolerance; the
    rate is then only the last iterate.
    """

    rate: float
    converged: bool
    iterations: int


def solve_irr(
    cash_flows: ArrayLike,
    *,
    initial_guess: float = IRR_INITIAL_GUESS,
    tolerance: float = IRR_TOLERANCE,
    max_iterations: int = IRR_MAX_ITERATIONS,
) -> IRRSolution:
    """Solve ``NPV(r) = 0`` by Newton-Raphson.

    Parameters
    ----------
    cash_flows : array-like
        Cash flows for years 0..N.
    initial_guess : float
        Starting rate.
    tolerance : float
        Stop when ``|NPV| < tolerance``.
    max_iterations : int
        Iteration budget.

    Returns
    -------
    IRRSolution
        Each iterate is clamped to ``[-0.9, 0.9]``.
    """
    flows = np.asarray(cash_flows, dtype=np.float64)
    years = np.arange(flows.size, dtype=np.float64)
    rate = initial_guess

    for iteration in range(max_iterations):
        growth = (1.0 + rate) ** years
        value = float(np.sum(flows / growth))
        if abs(value) < tolerance:
            return IRRSolution(rate=rate, converged=True, iterations=iteration)

        derivative = float(np.sum(-years * flows / (growth * (1.0 + rate))))
        if derivative == 0.0 or not math.isfinite(derivative):
            return IRRSolution(rate=rate, converged=False, iterations=iteration)

        rate -= value / derivative
        rate = min(max(rate, IRR_LOWER_BOUND), IRR_UPPER_BOUND)

    return IRRSolution(rate=rate, converged=False, iterations=max_iterations)


# ======================================================================
# Payback
# ======================================================================

def simple_payback(
    investment: float,
    annual_savings: float,
    replacement_costs: Mapping[int, float] | None = None,
) -> float:
    """Years to recover *investment* from flat *annual_savings*.

    Each replacement whose year falls before the running payback estimate
    extends it by ``cost / annual_savings``.  Returns ``inf`` when the
    savings are not positive.
    """
    if annual_savings <= 0:
        return float("inf")
    payback = investment / annual_savings
    for year, cost in sorted((replacement_costs or {}).items()):
        if year < payback:
            payback += cost / annual_savings
    return payback


def discounted_payback(cash_flows: ArrayLike, rate: float) -> float:
    """First year in which the cumulative discounted cash flow reaches zero.

    Year 0 is not eligible.  Returns ``inf`` when the series never pays
    back within its horizon.
    """
    flows = np.asarray(cash_flows, dtype=np.float64)
    cumulative = 0.0
    for year, flow in enumerate(flows):
        cumulative += flow * discount_factor(rate, year)
        if year > 0 and cumulative >= 0:
            return float(year)
    return float("inf")


# ======================================================================
# LCOE
# ======================================================================

def lcoe(
    initial_investment: float,
    annual_om_cost: float,
    annual_energy_kwh: float,
    discount_rate: float,
    years: int,
) -> float:
    """Levelised cost of energy ($/kWh).

    Discounted lifetime cost (investment plus O&M) divided by discounted
    lifetime energy.  Returns ``inf`` when no energy is delivered.
    """
    factors: Sequence[float] = [discount_factor(discount_rate, y) for y in range(1, years + 1)]
    energy = annual_energy_kwh * sum(factors)
    if energy <= 0:
        return float("inf")
    cost = initial_investment + annual_om_cost * sum(factors)
    return cost / energy
