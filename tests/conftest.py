"""Shared test fixtures for bessim engine tests."""

from __future__ import annotations

import numpy as np
import pytest
from numpy.typing import NDArray

from bessim.battery.spec import BatterySpec
from bessim.grid.tariff import TimeOfUseRate, TimeOfUseSchedule

HOURS_PER_DAY = 24


# ======================================================================
# Battery fixtures
# ======================================================================

@pytest.fixture
def battery() -> BatterySpec:
    """10 kWh / 5 kW pack, 92 % round-trip, 90 % DoD."""
    return BatterySpec(
        capacity_kwh=10.0,
        max_charge_kw=5.0,
        max_discharge_kw=5.0,
        round_trip_efficiency=0.92,
        max_depth_of_discharge=0.9,
        cycle_life=4000.0,
        calendar_life_years=10.0,
        cost_per_kwh=500.0,
        installation_cost=1000.0,
    )


@pytest.fixture
def lossless_battery() -> BatterySpec:
    """Ideal pack for hand-checkable energy arithmetic."""
    return BatterySpec(
        capacity_kwh=10.0,
        max_charge_kw=5.0,
        max_discharge_kw=5.0,
        round_trip_efficiency=1.0,
        max_depth_of_discharge=1.0,
    )


# ======================================================================
# Profile fixtures
# ======================================================================

@pytest.fixture
def flat_load() -> NDArray[np.float64]:
    """1 kW around the clock."""
    return np.ones(HOURS_PER_DAY, dtype=np.float64)


@pytest.fixture
def midday_pv() -> NDArray[np.float64]:
    """6 kW from hour 10 through hour 14, zero otherwise."""
    pv = np.zeros(HOURS_PER_DAY, dtype=np.float64)
    pv[10:15] = 6.0
    return pv


@pytest.fixture
def evening_peak_load() -> NDArray[np.float64]:
    """1 kW base with a 6 kW spike at hours 18-19."""
    load = np.ones(HOURS_PER_DAY, dtype=np.float64)
    load[18:20] = 6.0
    return load


@pytest.fixture
def solar_day() -> NDArray[np.float64]:
    """Bell-shaped PV peaking at 5 kW around noon."""
    hours = np.arange(HOURS_PER_DAY, dtype=np.float64)
    shape = np.where((hours >= 6) & (hours <= 18), np.sin(np.pi * (hours - 6) / 12), 0.0)
    return (5.0 * shape).astype(np.float64)


@pytest.fixture
def annual_profiles(solar_day) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """One year of a jittered residential day: (load_kw, production_kw)."""
    rng = np.random.default_rng(7)
    days = 365
    load_day = np.array(
        [0.4, 0.3, 0.3, 0.3, 0.3, 0.5, 0.9, 1.2, 1.0, 0.8, 0.7, 0.7,
         0.8, 0.8, 0.7, 0.8, 1.0, 1.6, 2.2, 2.0, 1.5, 1.0, 0.7, 0.5],
        dtype=np.float64,
    )
    load = np.tile(load_day, days) * rng.uniform(0.9, 1.1, days * HOURS_PER_DAY)
    production = np.tile(solar_day, days) * rng.uniform(0.7, 1.0, days * HOURS_PER_DAY)
    return load, production


# ======================================================================
# Tariff fixtures
# ======================================================================

@pytest.fixture
def tou_schedule() -> TimeOfUseSchedule:
    """Three-band residential tariff covering all 24 hours."""
    return TimeOfUseSchedule.from_rates([
        TimeOfUseRate(0, 7, 0.08, "off-peak"),
        TimeOfUseRate(7, 17, 0.15, "shoulder"),
        TimeOfUseRate(17, 21, 0.30, "peak"),
        TimeOfUseRate(21, 24, 0.08, "off-peak"),
    ])
