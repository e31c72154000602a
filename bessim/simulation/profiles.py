"""Profile validation, typical daily shapes, and no-battery baselines.

Load and production profiles arrive from outside the package (the PV
generation chain, metered data).  The helpers here check their shape,
split annual series into days, synthesise representative days from
annual totals, and price the site with no battery installed.
"""

from __future__ import annotations

from typing import Sequence, Union

import numpy as np
from numpy.typing import ArrayLike, NDArray

from bessim.core.errors import InvalidInputError

HOURS_PER_DAY: int = 24

# Residential load with morning and evening peaks (hours 0-23).
_TYPICAL_LOAD_FACTORS = np.array(
    [
        0.3, 0.2, 0.2, 0.2, 0.2, 0.3,
        0.5, 0.7, 0.9, 0.7, 0.6, 0.6,
        0.7, 0.7, 0.6, 0.6, 0.7, 1.0,
        1.2, 1.0, 0.8, 0.6, 0.4, 0.3,
    ],
    dtype=np.float64,
)

# Bell curve centred on solar noon (hours 0-23).
_TYPICAL_PV_FACTORS = np.array(
    [
        0.0, 0.0, 0.0, 0.0, 0.0, 0.0,
        0.1, 0.3, 0.5, 0.7, 0.9, 1.0,
        1.0, 0.9, 0.7, 0.5, 0.3, 0.1,
        0.0, 0.0, 0.0, 0.0, 0.0, 0.0,
    ],
    dtype=np.float64,
)

Rate = Union[float, Sequence[float], NDArray[np.floating]]


# ======================================================================
# Validation
# ======================================================================

def validate_day_profile(values: ArrayLike, name: str = "profile") -> NDArray[np.float64]:
    """Return *values* as a float array of shape (24,).

    Raises
    ------
    InvalidInputError
        If the profile is not one-dimensional or does not hold exactly 24
        finite values.
    """
    arr = np.asarray(values, dtype=np.float64)
    if arr.ndim != 1:
        raise InvalidInputError(f"{name} must be one-dimensional, got shape {arr.shape}")
    if arr.shape != (HOURS_PER_DAY,):
        raise InvalidInputError(
            f"{name} must have {HOURS_PER_DAY} hourly values, got {arr.size}"
        )
    if not np.all(np.isfinite(arr)):
        raise InvalidInputError(f"{name} contains non-finite values")
    return arr


def split_into_days(
    annual_load_kw: ArrayLike, annual_production_kw: ArrayLike
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Reshape hourly series into ``(n_days, 24)`` arrays.

    A trailing partial day is dropped.  Both series are truncated to the
    shorter of the two.
    """
    load = np.asarray(annual_load_kw, dtype=np.float64).ravel()
    production = np.asarray(annual_production_kw, dtype=np.float64).ravel()
    n_hours = min(load.size, production.size)
    n_days = n_hours // HOURS_PER_DAY
    if n_days == 0:
        raise InvalidInputError(
            f"Need at least {HOURS_PER_DAY} hourly values, got {n_hours}"
        )
    usable = n_days * HOURS_PER_DAY
    return (
        load[:usable].reshape(n_days, HOURS_PER_DAY),
        production[:usable].reshape(n_days, HOURS_PER_DAY),
    )


# ======================================================================
# Representative days
# ======================================================================

def typical_load_profile(daily_kwh: float) -> NDArray[np.float64]:
    """Residential-shaped 24-hour load (kW) summing to *daily_kwh*."""
    return _TYPICAL_LOAD_FACTORS * daily_kwh / _TYPICAL_LOAD_FACTORS.sum()


def typical_pv_profile(daily_kwh: float) -> NDArray[np.float64]:
    """Clear-sky-shaped 24-hour PV production (kW) summing to *daily_kwh*."""
    return _TYPICAL_PV_FACTORS * daily_kwh / _TYPICAL_PV_FACTORS.sum()


# ======================================================================
# No-battery baseline
# ======================================================================

def net_load(load_kw: ArrayLike, production_kw: ArrayLike) -> NDArray[np.float64]:
    """``load - production`` per hour; positive values are grid imports."""
    return np.asarray(load_kw, dtype=np.float64) - np.asarray(
        production_kw, dtype=np.float64
    )


def peak_net_load(load_kw: ArrayLike, production_kw: ArrayLike) -> float:
    """Highest hourly grid import without storage (kW, >= 0)."""
    net = net_load(load_kw, production_kw)
    if net.size == 0:
        return 0.0
    return float(max(np.max(net), 0.0))


def baseline_cost(
    load_kw: ArrayLike,
    production_kw: ArrayLike,
    import_rate: Rate,
    export_rate: Rate,
) -> float:
    """Grid bill with no battery: imports at *import_rate*, exports at *export_rate*.

    Rates may be scalars or per-hour arrays aligned with the profiles.
    """
    net = net_load(load_kw, production_kw)
    imports = np.maximum(net, 0.0)
    exports = np.maximum(-net, 0.0)
    buy = np.asarray(import_rate, dtype=np.float64)
    sell = np.asarray(export_rate, dtype=np.float64)
    return float(np.sum(imports * buy) - np.sum(exports * sell))


def baseline_self_consumption_rate(load_kw: ArrayLike, production_kw: ArrayLike) -> float:
    """Share of production used directly by the load with no battery."""
    load = np.asarray(load_kw, dtype=np.float64)
    production = np.asarray(production_kw, dtype=np.float64)
    total = float(np.sum(production))
    if total <= 0:
        return 0.0
    return float(np.sum(np.minimum(load, production))) / total
