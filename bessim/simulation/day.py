"""
Daily battery simulation: 24 dispatched hours plus the daily ageing step.

``simulate_day`` is the pure form: it takes a :class:`BatteryState` and
returns the day's :class:`DailyResult` together with the next state.
``DaySimulator`` is the stateful session used by callers that step a
single battery through consecutive days; it owns exactly one state value
and exposes ``reset`` / ``fork`` for independent comparative runs.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Optional, Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray

from bessim.battery.degradation import apply_daily_aging
from bessim.battery.spec import BatterySpec
from bessim.battery.state import BatteryState
from bessim.config import settings
from bessim.core.errors import InvalidInputError
from bessim.dispatch.engine import HourlyFlow, dispatch_hour
from bessim.dispatch.policies import DispatchPolicy

from .profiles import HOURS_PER_DAY, validate_day_profile

logger = logging.getLogger(__name__)


# ======================================================================
# Result record
# ======================================================================

@dataclass(frozen=True)
class DailyResult:
    """Hourly flows and daily aggregates for one simulated day.

    Rates (``self_consumption_rate``, ``self_sufficiency_rate``,
    ``battery_utilization``) are fractions, not percentages.
    """

    hourly: tuple[HourlyFlow, ...]
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
    self_consumption_rate: float
    self_sufficiency_rate: float
    daily_cost: float
    cycle_equivalent: float
    battery_utilization: float

    def series(self, key: str) -> NDArray[np.float64]:
        """Hourly values of one :class:`HourlyFlow` field as an array."""
        return np.array([getattr(flow, key) for flow in self.hourly], dtype=np.float64)

    @property
    def peak_grid_import_kw(self) -> float:
        return max((flow.grid_import_kw for flow in self.hourly), default=0.0)

    def to_dict(self, include_hourly: bool = True) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        data = asdict(self)
        data["hourly"] = [flow.to_dict() for flow in self.hourly] if include_hourly else []
        data["peak_grid_import_kw"] = self.peak_grid_import_kw
        return data


# ======================================================================
# Pure simulation
# ======================================================================

def _safe_ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


def simulate_day(
    spec: BatterySpec,
    state: BatteryState,
    load_kw: ArrayLike,
    production_kw: ArrayLike,
    policy: DispatchPolicy,
    *,
    import_rate: Optional[float] = None,
    export_rate: Optional[float] = None,
    grid_import_limit_kw: Optional[float] = None,
    grid_export_limit_kw: Optional[float] = None,
) -> tuple[DailyResult, BatteryState]:
    """Simulate 24 hours starting from *state*.

    Parameters
    ----------
    spec : BatterySpec
        Battery nameplate.
    state : BatteryState
        State at midnight.
    load_kw, production_kw : array-like, shape (24,)
        Hourly load and PV production.
    policy : DispatchPolicy
        Charge/discharge rule.
    import_rate, export_rate : float or None
        Flat grid prices ($/kWh); default from settings (0.15 / 0.05).
    grid_import_limit_kw : float or None
        Import cap.  Defaults to ``policy.grid_import_limit_kw``.
    grid_export_limit_kw : float or None
        Export cap.

    Returns
    -------
    tuple[DailyResult, BatteryState]
        Day result and the aged state at the end of the day.

    Raises
    ------
    InvalidInputError
        If either profile does not hold 24 finite values.
    """
    load = validate_day_profile(load_kw, "load_kw")
    production = validate_day_profile(production_kw, "production_kw")

    if import_rate is None:
        import_rate = settings.default_import_rate
    if export_rate is None:
        export_rate = settings.default_export_rate
    if grid_import_limit_kw is None:
        grid_import_limit_kw = policy.grid_import_limit_kw

    effective_capacity = state.effective_capacity(spec)

    flows: list[HourlyFlow] = []
    current = state
    for hour in range(HOURS_PER_DAY):
        flow, current = dispatch_hour(
            spec,
            current,
            hour,
            float(load[hour]),
            float(production[hour]),
            policy,
            import_rate=import_rate,
            export_rate=export_rate,
            grid_import_limit_kw=grid_import_limit_kw,
            grid_export_limit_kw=grid_export_limit_kw,
        )
        flows.append(flow)

    total_production = float(np.sum(production))
    total_load = float(np.sum(load))
    total_import = sum(f.grid_import_kw for f in flows)
    total_export = sum(f.grid_export_kw for f in flows)
    self_consumed = sum(f.pv_to_load_kw + f.pv_to_battery_kw for f in flows)
    charge_throughput = sum(f.battery_charge_kw for f in flows)
    discharge_throughput = sum(f.battery_discharge_kw for f in flows)

    cycle_equivalent = _safe_ratio(charge_throughput, effective_capacity)
    utilization = _safe_ratio(
        charge_throughput + discharge_throughput, 2.0 * effective_capacity
    )

    end_state = apply_daily_aging(spec, current, cycle_equivalent)

    result = DailyResult(
        hourly=tuple(flows),
        initial_soc_kwh=state.soc_kwh,
        final_soc_kwh=end_state.soc_kwh,
        effective_capacity_kwh=effective_capacity,
        total_production_kwh=total_production,
        total_load_kwh=total_load,
        total_grid_import_kwh=total_import,
        total_grid_export_kwh=total_export,
        total_self_consumed_kwh=self_consumed,
        charge_throughput_kwh=charge_throughput,
        discharge_throughput_kwh=discharge_throughput,
        total_unserved_kwh=sum(f.unserved_kw for f in flows),
        total_curtailed_kwh=sum(f.curtailed_kw for f in flows),
        self_consumption_rate=_safe_ratio(self_consumed, total_production),
        self_sufficiency_rate=_safe_ratio(total_load - total_import, total_load),
        daily_cost=sum(f.cost for f in flows),
        cycle_equivalent=cycle_equivalent,
        battery_utilization=utilization,
    )
    return result, end_state


# ======================================================================
# Stateful session
# ======================================================================

class DaySimulator:
    """Session that steps one battery through consecutive simulated days.

    The session owns its current :class:`BatteryState`.  It is not safe to
    share one session between concurrent trials; use :meth:`fork` (or a
    new session) per trial, or :meth:`reset` between sequential ones.

    Parameters
    ----------
    spec : BatterySpec
        Battery nameplate.
    initial_soc_percent : float or None
        Starting SOC as a percentage of capacity.  Default from settings
        (50 %).
    """

    def __init__(
        self, spec: BatterySpec, initial_soc_percent: Optional[float] = None
    ) -> None:
        if initial_soc_percent is None:
            initial_soc_percent = settings.initial_soc_percent
        self.spec: BatterySpec = spec
        self._initial_soc_percent: float = initial_soc_percent
        self._state: BatteryState = BatteryState.initial(spec, initial_soc_percent)

    # ------------------------------------------------------------------
    # Session control
    # ------------------------------------------------------------------

    def reset(self, initial_soc_percent: Optional[float] = None) -> None:
        """Restore a fresh battery: SOC reset, zero cycles and calendar age."""
        if initial_soc_percent is not None:
            self._initial_soc_percent = initial_soc_percent
        self._state = BatteryState.initial(self.spec, self._initial_soc_percent)

    def fork(self) -> "DaySimulator":
        """Independent session starting from this session's current state."""
        twin = DaySimulator(self.spec, self._initial_soc_percent)
        twin._state = self._state
        return twin

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------

    @property
    def state(self) -> BatteryState:
        return self._state

    @property
    def soc_kwh(self) -> float:
        return self._state.soc_kwh

    @property
    def soc_percent(self) -> float:
        return self._state.soc_percent(self.spec)

    @property
    def remaining_capacity_kwh(self) -> float:
        return self._state.effective_capacity(self.spec)

    @property
    def degradation_factor(self) -> float:
        return self._state.degradation_factor

    @property
    def cycle_count(self) -> float:
        return self._state.cycle_count

    @property
    def calendar_age_years(self) -> float:
        return self._state.calendar_age_years

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    def simulate_day(
        self,
        load_kw: ArrayLike,
        production_kw: ArrayLike,
        policy: DispatchPolicy,
        **kwargs: Any,
    ) -> DailyResult:
        """Simulate one day and advance the session state.

        Keyword arguments are forwarded to :func:`simulate_day`.
        """
        result, self._state = simulate_day(
            self.spec, self._state, load_kw, production_kw, policy, **kwargs
        )
        logger.debug(
            "Simulated day (%s): cost=%.4f, cycles=%.3f, degradation=%.5f",
            policy.name,
            result.daily_cost,
            result.cycle_equivalent,
            self._state.degradation_factor,
        )
        return result

    def simulate_days(
        self,
        daily_loads: Sequence[ArrayLike],
        daily_productions: Sequence[ArrayLike],
        policy: DispatchPolicy,
        **kwargs: Any,
    ) -> list[DailyResult]:
        """Simulate consecutive days, one load/production pair per day."""
        if len(daily_loads) != len(daily_productions):
            raise InvalidInputError(
                f"Got {len(daily_loads)} load days but "
                f"{len(daily_productions)} production days"
            )
        return [
            self.simulate_day(load, production, policy, **kwargs)
            for load, production in zip(daily_loads, daily_productions)
        ]

    # ------------------------------------------------------------------
    # Dunder
    # ------------------------------------------------------------------

    def __repr__(self) -> str:
        return (
            f"DaySimulator("
            f"soc={self.soc_kwh:.3f} kWh, "
            f"degradation={self.degradation_factor:.4f}, "
            f"cycles={self.cycle_count:.1f}, "
            f"age={self.calendar_age_years:.2f} y)"
        )
