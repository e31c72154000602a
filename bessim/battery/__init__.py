"""Battery engine -- nameplate spec, immutable SOC state, and degradation."""

from .spec import BatteryChemistry, BatterySpec
from .state import BatteryState
from .degradation import (
    aging_factors,
    apply_daily_aging,
    degradation_factor,
)

__all__ = [
    "BatteryChemistry",
    "BatterySpec",
    "BatteryState",
    "aging_factors",
    "apply_daily_aging",
    "degradation_factor",
]
