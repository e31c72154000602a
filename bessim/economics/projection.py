"""Multi-year financial projection of a battery installation.

A representative day is simulated once and extrapolated: daily savings
against the no-battery baseline become annual savings (grown with
electricity-price inflation), O&M is a fixed share of the installed cost,
and the battery is replaced whenever its cycle or calendar life runs out.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Optional

import numpy as np

from bessim.battery.degradation import DAYS_PER_YEAR
from bessim.battery.spec import BatterySpec
from bessim.battery.state import BatteryState
from bessim.config import settings
from bessim.core.errors import InvalidInputError
from bessim.dispatch.policies import DispatchPolicy, SelfConsumption
from bessim.simulation.day import simulate_day
from bessim.simulation.profiles import (
    HOURS_PER_DAY,
    baseline_cost,
    typical_load_profile,
    typical_pv_profile,
)

from .metrics import (
    IRRSolution,
    discount_factor,
    discounted_payback,
    lcoe,
    npv,
    simple_payback,
    solve_irr,
)

logger = logging.getLogger(__name__)


# ======================================================================
# Result records
# ======================================================================

@dataclass(frozen=True)
class CashFlowProjection:
    """Year-by-year cash flows and the metrics derived from them.

    ``yearly_cash_flow[0]`` is the negative investment; index ``y`` holds
    year ``y``.
    """

    investment: float
    annual_om_cost: float
    annual_savings: float
    battery_lifespan_years: float
    replacements_needed: int
    replacement_costs: dict[int, float]
    yearly_cash_flow: tuple[float, ...]
    cumulative_cash_flow: tuple[float, ...]
    npv: float
    irr: IRRSolution
    simple_payback_years: float
    discounted_payback_years: float


@dataclass(frozen=True)
class EconomicsReport:
    """Financial outlook for one battery under one dispatch policy.

    Payback values are ``inf`` when the investment never pays back.
    Rates are fractions.
    """

    strategy: str
    years_projected: int
    npv: float
    irr: float
    irr_converged: bool
    simple_payback_years: float
    discounted_payback_years: float
    battery_lifespan_years: float
    replacements_needed: int
    replacement_costs: dict[int, float]
    yearly_cash_flow: tuple[float, ...]
    cumulative_cash_flow: tuple[float, ...]
    daily_savings: float
    annual_savings: float
    battery_daily_usage: float
    self_consumption_rate: float
    self_sufficiency_rate: float
    levelized_cost_of_storage: float

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["yearly_cash_flow"] = list(self.yearly_cash_flow)
        data["cumulative_cash_flow"] = list(self.cumulative_cash_flow)
        return data


# ======================================================================
# Battery life and replacements
# ======================================================================

def battery_lifespan_years(spec: BatterySpec, cycle_equivalent: float) -> float:
    """Years until end of life at *cycle_equivalent* full cycles per day.

    The shorter of cycle life and calendar life; calendar life alone when
    the battery does not cycle.
    """
    if cycle_equivalent <= 0:
        return spec.calendar_life_years
    cycle_years = spec.cycle_life / (cycle_equivalent * DAYS_PER_YEAR)
    return min(cycle_years, spec.calendar_life_years)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def replacements_needed(lifespan_years: float, years_to_project: int) -> int:
    if lifespan_years <= 0:
        return 0
    return int(math.floor(years_to_project / lifespan_years))


def replacement_schedule(
    total_cost: float,
    lifespan_years: float,
    years_to_project: int,
    price_decline: Optional[float] = None,
) -> dict[int, float]:
    """Replacement cost keyed by the year it is paid.

    Replacement ``k`` lands in year ``round(lifespan * k)`` (half rounds
    up) and is kept only if that year is inside the horizon.  Battery
    prices fall by *price_decline* per year, so the cost is
    ``total_cost * (1 - price_decline) ** year``.
    """
    if price_decline is None:
        price_decline = settings.replacement_price_decline
    costs: dict[int, float] = {}
    for k in range(1, replacements_needed(lifespan_years, years_to_project) + 1):
        year = _round_half_up(lifespan_years * k)
        if year < years_to_project:
            costs[year] = total_cost * (1.0 - price_decline) ** year
    return costs


# ======================================================================
# Cash-flow projection
# ======================================================================

def project_cash_flows(
    spec: BatterySpec,
    *,
    daily_savings: float,
    cycle_equivalent: float,
    years_to_project: int,
    annual_electricity_price_inflation: float = 0.0,
    discount_rate: float = 0.05,
) -> CashFlowProjection:
    """Extrapolate one representative day over *years_to_project* years.

    Parameters
    ----------
    spec : BatterySpec
        Installed battery; its ``total_cost`` is the year-0 investment.
    daily_savings : float
        Bill reduction of the representative day ($).
    cycle_equivalent : float
        Full-equivalent cycles of the representative day.
    years_to_project : int
        Horizon in years (>= 1).
    annual_electricity_price_inflation : float
        Savings in year ``y`` are scaled by ``(1 + inflation) ** (y - 1)``.
    discount_rate : float
        Rate for NPV and discounted payback.

    Returns
    -------
    CashFlowProjection
    """
    if years_to_project < 1:
        raise InvalidInputError(f"years_to_project must be >= 1, got {years_to_project}")

    investment = spec.total_cost
    annual_om = investment * settings.om_cost_fraction
    annual_savings = daily_savings * DAYS_PER_YEAR

    lifespan = battery_lifespan_years(spec, cycle_equivalent)
    replacements = replacement_schedule(investment, lifespan, years_to_project)

    flows = [-investment]
    for year in range(1, years_to_project + 1):
        inflation = (1.0 + annual_electricity_price_inflation) ** (year - 1)
        flows.append(annual_savings * inflation - annual_om - replacements.get(year, 0.0))

    cumulative = np.cumsum(flows)
    irr = solve_irr(flows)
    if not irr.converged:
        logger.debug("IRR did not converge after %d iterations", irr.iterations)

    return CashFlowProjection(
        investment=investment,
        annual_om_cost=annual_om,
        annual_savings=annual_savings,
        battery_lifespan_years=lifespan,
        replacements_needed=replacements_needed(lifespan, years_to_project),
        replacement_costs=replacements,
        yearly_cash_flow=tuple(float(f) for f in flows),
        cumulative_cash_flow=tuple(float(c) for c in cumulative),
        npv=npv(flows, discount_rate),
        irr=irr,
        simple_payback_years=simple_payback(investment, annual_savings, replacements),
        discounted_payback_years=discounted_payback(flows, discount_rate),
    )


def project_economics(
    spec: BatterySpec,
    *,
    years_to_project: int,
    annual_load_kwh: float,
    annual_pv_production_kwh: float,
    grid_import_rate: Optional[float] = None,
    grid_export_rate: Optional[float] = None,
    annual_electricity_price_inflation: float = 0.0,
    discount_rate: float = 0.05,
    policy: Optional[DispatchPolicy] = None,
    initial_soc_percent: Optional[float] = None,
) -> EconomicsReport:
    """Simulate a typical day from annual totals and project it forward.

    The typical day spreads ``annual / 365`` over residential load and
    clear-sky PV shapes.  The battery day runs from a fresh state under
    *policy* (self-consumption by default).  The no-battery baseline buys
    at the same per-hour rates the policy charges the battery day.
    """
    if annual_load_kwh < 0 or annual_pv_production_kwh < 0:
        raise InvalidInputError("Annual load and PV production must be >= 0")
    if grid_import_rate is None:
        grid_import_rate = settings.default_import_rate
    if grid_export_rate is None:
        grid_export_rate = settings.default_export_rate
    if initial_soc_percent is None:
        initial_soc_percent = settings.initial_soc_percent
    policy = policy or SelfConsumption()

    load = typical_load_profile(annual_load_kwh / DAYS_PER_YEAR)
    production = typical_pv_profile(annual_pv_production_kwh / DAYS_PER_YEAR)
    hourly_import_rates = np.array(
        [policy.import_rate(hour, grid_import_rate) for hour in range(HOURS_PER_DAY)],
        dtype=np.float64,
    )
    baseline = baseline_cost(load, production, hourly_import_rates, grid_export_rate)

    day, _ = simulate_day(
        spec,
        BatteryState.initial(spec, initial_soc_percent),
        load,
        production,
        policy,
        import_rate=grid_import_rate,
        export_rate=grid_export_rate,
    )
    daily_savings = baseline - day.daily_cost

    projection = project_cash_flows(
        spec,
        daily_savings=daily_savings,
        cycle_equivalent=day.cycle_equivalent,
        years_to_project=years_to_project,
        annual_electricity_price_inflation=annual_electricity_price_inflation,
        discount_rate=discount_rate,
    )

    storage_cost = lcoe(
        projection.investment,
        projection.annual_om_cost,
        day.discharge_throughput_kwh * DAYS_PER_YEAR,
        discount_rate,
        years_to_project,
    )

    logger.info(
        "Projected %s over %d years: npv=%.2f, irr=%.4f",
        policy.name,
        years_to_project,
        projection.npv,
        projection.irr.rate,
        extra={"strategy": policy.name, "npv": projection.npv},
    )

    return EconomicsReport(
        strategy=policy.name,
        years_projected=years_to_project,
        npv=projection.npv,
        irr=projection.irr.rate,
        irr_converged=projection.irr.converged,
        simple_payback_years=projection.simple_payback_years,
        discounted_payback_years=projection.discounted_payback_years,
        battery_lifespan_years=projection.battery_lifespan_years,
        replacements_needed=projection.replacements_needed,
        replacement_costs=projection.replacement_costs,
        yearly_cash_flow=projection.yearly_cash_flow,
        cumulative_cash_flow=projection.cumulative_cash_flow,
        daily_savings=daily_savings,
        annual_savings=projection.annual_savings,
        battery_daily_usage=day.cycle_equivalent,
        self_consumption_rate=day.self_consumption_rate,
        self_sufficiency_rate=day.self_sufficiency_rate,
        levelized_cost_of_storage=storage_cost,
    )


# ======================================================================
# Sizing NPV
# ======================================================================

def battery_size_npv(
    total_cost: float,
    annual_savings: float,
    *,
    battery_lifespan_years: int,
    system_lifespan_years: int,
    discount_rate: Optional[float] = None,
) -> float:
    """NPV of one candidate battery size with flat annual savings.

    Replacement ``k`` is paid in year ``k * battery_lifespan_years`` (while
    inside the system life) at ``total_cost * 0.8 ** k``.  O&M is a fixed
    share of ``total_cost`` every year.
    """
    if battery_lifespan_years < 1:
        raise InvalidInputError(
            f"battery_lifespan_years must be >= 1, got {battery_lifespan_years}"
        )
    if discount_rate is None:
        discount_rate = settings.size_discount_rate

    om_cost = total_cost * settings.om_cost_fraction
    value = -total_cost
    for year in range(1, system_lifespan_years + 1):
        df = discount_factor(discount_rate, year)
        if year % battery_lifespan_years == 0:
            k = year // battery_lifespan_years
            value -= total_cost * settings.size_replacement_cost_factor ** k * df
        value += (annual_savings - om_cost) * df
    return value
