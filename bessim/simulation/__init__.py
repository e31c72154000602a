"""Daily simulation sessions and load/production profile helpers."""

from .day import DailyResult, DaySimulator, simulate_day
from .profiles import (
    HOURS_PER_DAY,
    baseline_cost,
    baseline_self_consumption_rate,
    net_load,
    peak_net_load,
    split_into_days,
    typical_load_profile,
    typical_pv_profile,
    validate_day_profile,
)

__all__ = [
    "DailyResult",
    "DaySimulator",
    "HOURS_PER_DAY",
    "baseline_cost",
    "baseline_self_consumption_rate",
    "net_load",
    "peak_net_load",
    "simulate_day",
    "split_into_days",
    "typical_load_profile",
    "typical_pv_profile",
    "validate_day_profile",
]
