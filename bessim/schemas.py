"""Pydantic schemas for the reporting layer.

Input models build the engine's frozen dataclasses; output models validate
the dicts produced by the engine's ``to_dict()`` methods.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field

from bessim.battery.spec import BatteryChemistry, BatterySpec
from bessim.dispatch.policies import (
    Backup,
    DispatchPolicy,
    GridServices,
    PeakShaving,
    SelfConsumption,
    TimeOfUse,
)
from bessim.grid.tariff import TimeOfUseRate, TimeOfUseSchedule


# ======================================================================
# Inputs
# ======================================================================

class BatterySpecIn(BaseModel):
    capacity_kwh: float = Field(ge=0.0, description="Usable energy capacity")
    max_charge_kw: float = Field(ge=0.0)
    max_discharge_kw: float = Field(ge=0.0)
    round_trip_efficiency: float = Field(default=0.92, gt=0.0, le=1.0)
    max_depth_of_discharge: float = Field(default=0.9, gt=0.0, le=1.0)
    self_discharge_rate: float = Field(default=0.002, ge=0.0, description="Fraction per day")
    cycle_life: float = Field(default=4000.0, gt=0.0, description="Full-equivalent cycles to end of life")
    calendar_life_years: float = Field(default=10.0, gt=0.0)
    cost_per_kwh: float = Field(default=500.0, ge=0.0)
    installation_cost: float = Field(default=1000.0, ge=0.0)
    chemistry: BatteryChemistry = BatteryChemistry.LITHIUM_ION
    name: str = Field(default="battery", max_length=255)

    def to_spec(self) -> BatterySpec:
        return BatterySpec(**self.model_dump())


class TimeOfUseRateIn(BaseModel):
    start_hour: int = Field(ge=0, le=23)
    end_hour: int = Field(ge=1, le=24)
    rate: float = Field(ge=0.0, description="$/kWh")
    name: str = ""


class TimeOfUseScheduleIn(BaseModel):
    rates: list[TimeOfUseRateIn] = Field(default_factory=list)
    default_rate: Optional[float] = Field(default=None, ge=0.0, description="Defaults to settings")

    def to_schedule(self) -> TimeOfUseSchedule:
        return TimeOfUseSchedule.from_rates(
            [TimeOfUseRate(**r.model_dump()) for r in self.rates],
            default_rate=self.default_rate,
        )


class DispatchPolicyIn(BaseModel):
    strategy: Literal[
        "self_consumption", "time_of_use", "peak_shaving", "backup", "grid_services"
    ] = "self_consumption"
    schedule: Optional[TimeOfUseScheduleIn] = None
    grid_import_limit_kw: Optional[float] = Field(default=None, ge=0.0)

    def to_policy(self) -> DispatchPolicy:
        if self.strategy == "time_of_use":
            schedule = self.schedule.to_schedule() if self.schedule else TimeOfUseSchedule()
            return TimeOfUse(schedule=schedule)
        if self.strategy == "peak_shaving":
            return PeakShaving(grid_import_limit_kw=self.grid_import_limit_kw)
        if self.strategy == "backup":
            return Backup()
        if self.strategy == "grid_services":
            return GridServices()
        return SelfConsumption()


# ======================================================================
# Outputs
# ======================================================================

class HourlyFlowOut(BaseModel):
    hour: int = Field(ge=0, le=23)
    load_kw: float
    production_kw: float
    soc_before_kwh: float
    soc_after_kwh: float
    soc_percent: float
    battery_charge_kw: float = Field(ge=0.0)
    battery_discharge_kw: float = Field(ge=0.0)
    grid_import_kw: float = Field(ge=0.0)
    grid_export_kw: float = Field(ge=0.0)
    pv_to_load_kw: float
    pv_to_battery_kw: float
    pv_to_grid_kw: float
    battery_to_load_kw: float
    grid_to_load_kw: float
    unserved_kw: float = Field(ge=0.0)
    curtailed_kw: float = Field(ge=0.0)
    import_rate: float
    cost: float


class DailyResultOut(BaseModel):
    hourly: list[HourlyFlowOut]
    initial_soc_kwh: float
    final_soc_kwh: float
    effective_capacity_kwh: float
    total_production_kwh: float
    total_load_kwh: float
    total_grid_import_kwh: float
    total_grid_export_kwh: float
    total_self_consumed_kwh: float
    charge_throughput_kwh: float
    discharge_throughput_kwh: float
    total_unserved_kwh: float
    total_curtailed_kwh: float
    self_consumption_rate: float = Field(ge=0.0, le=1.0)
    self_sufficiency_rate: float = Field(ge=0.0, le=1.0)
    daily_cost: float
    cycle_equivalent: float = Field(ge=0.0)
    battery_utilization: float = Field(ge=0.0)
    peak_grid_import_kw: float = Field(ge=0.0)


class OptimizationTrialOut(BaseModel):
    parameters: dict[str, float]
    objective: float


class OptimizationResultOut(BaseModel):
    strategy: str
    parameters: dict[str, float]
    objective: float
    evaluations: int = Field(ge=0)
    history: list[OptimizationTrialOut] = Field(default_factory=list)


class EconomicsReportOut(BaseModel):
    strategy: str
    years_projected: int = Field(ge=1)
    npv: float
    irr: float
    irr_converged: bool
    simple_payback_years: float = Field(description="inf when the battery never pays back")
    discounted_payback_years: float = Field(description="inf when beyond the horizon")
    battery_lifespan_years: float
    replacements_needed: int = Field(ge=0)
    replacement_costs: dict[int, float]
    yearly_cash_flow: list[float]
    cumulative_cash_flow: list[float]
    daily_savings: float
    annual_savings: float
    battery_daily_usage: float
    self_consumption_rate: float
    self_sufficiency_rate: float
    levelized_cost_of_storage: float


class StrategyComparisonOut(BaseModel):
    savings: dict[str, float]
    annual_savings: dict[str, float]
    payback_years: dict[str, float]
    optimizations: dict[str, OptimizationResultOut]
    recommended_strategy: str
    explanation: str
    battery_cost: float
    daily_results: dict[str, DailyResultOut]
