"""bessim -- battery dispatch simulation, strategy optimization and economics."""

from bessim.battery import BatteryChemistry, BatterySpec, BatteryState
from bessim.core.errors import BessimError, InvalidInputError
from bessim.dispatch import (
    Backup,
    CustomPolicy,
    GridServices,
    HourlyFlow,
    PeakShaving,
    SelfConsumption,
    TimeOfUse,
    dispatch_hour,
)
from bessim.economics import EconomicsReport, project_cash_flows, project_economics
from bessim.grid import TimeOfUseRate, TimeOfUseSchedule
from bessim.optimization import OptimizationResult, StrategyOptimizer
from bessim.simulation import DailyResult, DaySimulator, simulate_day

__version__ = "0.1.0"

__all__ = [
    "Backup",
    "BatteryChemistry",
    "BatterySpec",
    "BatteryState",
    "BessimError",
    "CustomPolicy",
    "DailyResult",
    "DaySimulator",
    "EconomicsReport",
    "GridServices",
    "HourlyFlow",
    "InvalidInputError",
    "OptimizationResult",
    "PeakShaving",
    "SelfConsumption",
    "StrategyOptimizer",
    "TimeOfUse",
    "TimeOfUseRate",
    "TimeOfUseSchedule",
    "dispatch_hour",
    "project_cash_flows",
    "project_economics",
    "simulate_day",
]
