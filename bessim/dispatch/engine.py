"""Hourly energy balance for a PV + battery + grid site.

Production serves the load first; the net balance then cascades through
the battery and the grid in a fixed order:

**Surplus priority:** PV -> load -> battery charge -> grid export -> curtailment
**Deficit priority:** PV -> load, then battery discharge -> grid import -> unserved

The active :class:`DispatchPolicy` only decides *whether* the battery may
charge or discharge this hour.  ``dispatch_hour`` is a pure function: it
takes a :class:`BatteryState` and returns the flows together with the
next state.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Optional

from bessim.battery.spec import BatterySpec
from bessim.battery.state import BatteryState
from bessim.config import settings

from .policies import DispatchPolicy


@dataclass(frozen=True)
class HourlyFlow:
    """Energy flows for one simulated hour (kW over a 1-hour step = kWh).

    Conservation holds per hour::

        load       = pv_to_load + battery_to_load + grid_to_load + unserved
        production = pv_to_load + pv_to_battery + pv_to_grid + curtailed

    ``unserved_kw`` and ``curtailed_kw`` are non-zero only when a grid
    import or export cap binds.
    """

    hour: int
    load_kw: float
    production_kw: float
    soc_before_kwh: float
    soc_after_kwh: float
    soc_percent: float
    battery_charge_kw: float
    battery_discharge_kw: float
    grid_import_kw: float
    grid_export_kw: float
    pv_to_load_kw: float
    pv_to_battery_kw: float
    pv_to_grid_kw: float
    battery_to_load_kw: float
    grid_to_load_kw: float
    unserved_kw: float
    curtailed_kw: float
    import_rate: float
    cost: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _cap(power_kw: float, limit_kw: Optional[float]) -> float:
    """Clamp a grid flow to an optional interconnect limit."""
    power_kw = max(power_kw, 0.0)
    if limit_kw is None:
        return power_kw
    return min(power_kw, limit_kw)


def dispatch_hour(
    spec: BatterySpec,
    state: BatteryState,
    hour: int,
    load_kw: float,
    production_kw: float,
    policy: DispatchPolicy,
    *,
    import_rate: Optional[float] = None,
    export_rate: Optional[float] = None,
    grid_import_limit_kw: Optional[float] = None,
    grid_export_limit_kw: Optional[float] = None,
) -> tuple[HourlyFlow, BatteryState]:
    """Dispatch one hour.

    Parameters
    ----------
    spec : BatterySpec
        Battery nameplate.
    state : BatteryState
        State at the start of the hour.
    hour : int
        Hour of day, 0 -- 23 (drives time-of-use pricing).
    load_kw, production_kw : float
        Average load and PV production over the hour.
    policy : DispatchPolicy
        Charge/discharge decision rule.
    import_rate, export_rate : float or None
        Flat grid prices ($/kWh); default from settings (0.15 / 0.05).
        Policies with a schedule override the import price.
    grid_import_limit_kw, grid_export_limit_kw : float or None
        Interconnect caps.  Energy beyond a binding cap is left unserved
        (import) or curtailed (export).

    Returns
    -------
    tuple[HourlyFlow, BatteryState]
        The hour's flows and the state at the end of the hour.
    """
    if import_rate is None:
        import_rate = settings.default_import_rate
    if export_rate is None:
        export_rate = settings.default_export_rate

    balance = load_kw - production_kw  # positive = deficit
    decision = policy.decide(hour, state, balance, spec)
    rate = policy.import_rate(hour, import_rate)

    charge = discharge = 0.0
    grid_import = grid_export = 0.0
    unserved = curtailed = 0.0
    new_state = state

    if balance < 0:
        # ----- SURPLUS: PV exceeds load ------------------------------------
        surplus = -balance
        pv_to_load = load_kw

        if decision.charge:
            charge, new_state = state.charge(spec, surplus)

        remaining = surplus - charge
        grid_export = _cap(remaining, grid_export_limit_kw)
        curtailed = max(remaining - grid_export, 0.0)
    else:
        # ----- DEFICIT: load exceeds PV ------------------------------------
        deficit = balance
        pv_to_load = production_kw

        if decision.discharge:
            discharge, new_state = state.discharge(spec, deficit)

        remaining = deficit - discharge
        grid_import = _cap(remaining, grid_import_limit_kw)
        unserved = max(remaining - grid_import, 0.0)

    cost = grid_import * rate - grid_export * export_rate

    flow = HourlyFlow(
        hour=hour,
        load_kw=load_kw,
        production_kw=production_kw,
        soc_before_kwh=state.soc_kwh,
        soc_after_kwh=new_state.soc_kwh,
        soc_percent=new_state.soc_percent(spec),
        battery_charge_kw=charge,
        battery_discharge_kw=discharge,
        grid_import_kw=grid_import,
        grid_export_kw=grid_export,
        pv_to_load_kw=pv_to_load,
        pv_to_battery_kw=charge,
        pv_to_grid_kw=grid_export,
        battery_to_load_kw=discharge,
        grid_to_load_kw=grid_import,
        unserved_kw=unserved,
        curtailed_kw=curtailed,
        import_rate=rate,
        cost=cost,
    )
    return flow, new_state
