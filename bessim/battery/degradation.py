"""
Linear battery degradation proxy: cycle aging and calendar aging.

Both mechanisms are expressed as a fraction of the way to end-of-life:

* **Cycle aging** -- cumulative equivalent full cycles over the rated
  cycle life.
* **Calendar aging** -- elapsed years over the rated calendar life.

The worse of the two dominates (they are *not* summed).  End-of-life is
defined as 20 % capacity loss, so the remaining-capacity factor falls
linearly from 1.0 to 0.8 as the dominant aging fraction goes from 0 to 1.
"""

from __future__ import annotations

from dataclasses import replace

from .spec import BatterySpec
from .state import BatteryState

# Capacity lost at end-of-life (80 % remaining).
END_OF_LIFE_FADE: float = 0.2

DAYS_PER_YEAR: float = 365.0


def aging_factors(
    spec: BatterySpec, cycle_count: float, calendar_age_years: float
) -> tuple[float, float]:
    """Return ``(cycle_aging, calendar_aging)``, each clamped to [0, 1]."""
    cycle_aging = min(1.0, max(cycle_count, 0.0) / spec.cycle_life)
    calendar_aging = min(1.0, max(calendar_age_years, 0.0) / spec.calendar_life_years)
    return cycle_aging, calendar_aging


def degradation_factor(
    spec: BatterySpec, cycle_count: float, calendar_age_years: float
) -> float:
    """Remaining-capacity fraction in [0.8, 1.0].

    Parameters
    ----------
    spec : BatterySpec
        Supplies ``cycle_life`` and ``calendar_life_years``.
    cycle_count : float
        Cumulative equivalent full cycles.
    calendar_age_years : float
        Elapsed calendar time in years.
    """
    cycle_aging, calendar_aging = aging_factors(spec, cycle_count, calendar_age_years)
    combined = max(cycle_aging, calendar_aging)
    return 1.0 - END_OF_LIFE_FADE * combined


def apply_daily_aging(
    spec: BatterySpec,
    state: BatteryState,
    cycle_equivalent: float,
    days: float = 1.0,
) -> BatteryState:
    """Advance *state* by *days* of calendar time and *cycle_equivalent* cycles.

    The stored energy is clamped to the new effective capacity so the
    SOC never sits above what the faded battery can hold.
    """
    cycles = state.cycle_count + cycle_equivalent
    age = state.calendar_age_years + days / DAYS_PER_YEAR
    factor = degradation_factor(spec, cycles, age)
    soc = min(state.soc_kwh, spec.capacity_kwh * factor)
    return replace(
        state,
        soc_kwh=soc,
        cycle_count=cycles,
        calendar_age_years=age,
        degradation_factor=factor,
    )
