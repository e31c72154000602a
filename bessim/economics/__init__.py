"""Economic analysis: financial metrics and multi-year projection."""

from .metrics import (
    IRRSolution,
    annuity_npv,
    discount_factor,
    discounted_payback,
    lcoe,
    npv,
    simple_payback,
    solve_irr,
)
from .projection import (
    CashFlowProjection,
    EconomicsReport,
    battery_lifespan_years,
    battery_size_npv,
    project_cash_flows,
    project_economics,
    replacement_schedule,
    replacements_needed,
)

__all__ = [
    "CashFlowProjection",
    "EconomicsReport",
    "IRRSolution",
    "annuity_npv",
    "battery_lifespan_years",
    "battery_size_npv",
    "discount_factor",
    "discounted_payback",
    "lcoe",
    "npv",
    "project_cash_flows",
    "project_economics",
    "replacement_schedule",
    "replacements_needed",
    "simple_payback",
    "solve_irr",
]
