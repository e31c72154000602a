"""Dispatch engine and policies.

Available policies:

* **self_consumption** -- store PV surplus, cover deficits from the battery.
* **time_of_use** -- price-driven charging against the average rate.
* **peak_shaving** -- discharge only into deficits near the import limit.
* **backup** / **grid_services** -- reserved, behave like self-consumption.
* **custom** -- caller-supplied decision callback.
"""

from .policies import (
    ALLOW_ALL,
    Backup,
    ChargeDischargeDecision,
    CustomPolicy,
    DispatchPolicy,
    GridServices,
    PeakShaving,
    SelfConsumption,
    TimeOfUse,
)
from .engine import HourlyFlow, dispatch_hour

__all__ = [
    "ALLOW_ALL",
    "Backup",
    "ChargeDischargeDecision",
    "CustomPolicy",
    "DispatchPolicy",
    "GridServices",
    "HourlyFlow",
    "PeakShaving",
    "SelfConsumption",
    "TimeOfUse",
    "dispatch_hour",
]
