"""
Battery state of charge and ageing bookkeeping as an immutable value.

Energy flows are applied with the symmetric efficiency convention: the
round-trip efficiency ``eta`` is split across the two legs using
``sqrt(eta)``.

* **Charging** -- of the ``P`` kW injected, only ``P * sqrt(eta)`` is
  stored.
* **Discharging** -- to deliver ``P`` kW to the load, the battery must
  release ``P / sqrt(eta)`` internally.

Every operation returns a new :class:`BatteryState`; nothing is mutated
in place, so a state can be handed to several independent trials.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

import numpy as np

from .spec import BatterySpec

# Energy below this is rounding residue from the DoD and efficiency arithmetic.
ENERGY_TOLERANCE_KWH: float = 1e-12


@dataclass(frozen=True)
class BatteryState:
    """Dynamic state of one battery.

    Attributes
    ----------
    soc_kwh : float
        Energy currently stored (kWh).
    cycle_count : float
        Cumulative equivalent full cycles.
    calendar_age_years : float
        Simulated calendar age (years).
    degradation_factor : float
        Remaining fraction of nameplate capacity, 1.0 when new.
    """

    soc_kwh: float
    cycle_count: float = 0.0
    calendar_age_years: float = 0.0
    degradation_factor: float = 1.0

    @classmethod
    def initial(
        cls, spec: BatterySpec, initial_soc_percent: float = 50.0
    ) -> "BatteryState":
        """Fresh, undegraded state at *initial_soc_percent* of capacity.

        The starting charge is clamped into ``[min_soc, capacity]`` so the
        depth-of-discharge floor holds from the first hour.
        """
        soc = initial_soc_percent / 100.0 * spec.capacity_kwh
        floor = spec.capacity_kwh * (1.0 - spec.max_depth_of_discharge)
        soc = float(np.clip(soc, floor, spec.capacity_kwh))
        return cls(soc_kwh=soc)

    # ------------------------------------------------------------------
    # Derived quantities
    # ------------------------------------------------------------------

    def effective_capacity(self, spec: BatterySpec) -> float:
        """Nameplate capacity reduced by degradation (kWh)."""
        return spec.capacity_kwh * self.degradation_factor

    def min_soc(self, spec: BatterySpec) -> float:
        """SOC floor imposed by the depth-of-discharge limit (kWh)."""
        return self.effective_capacity(spec) * (1.0 - spec.max_depth_of_discharge)

    def soc_percent(self, spec: BatterySpec) -> float:
        """SOC as a percentage of the effective capacity."""
        capacity = self.effective_capacity(spec)
        if capacity <= 0:
            return 0.0
        return self.soc_kwh / capacity * 100.0

    # ------------------------------------------------------------------
    # Energy flows
    # ------------------------------------------------------------------

    def charge(self, spec: BatterySpec, power_kw: float) -> tuple[float, "BatteryState"]:
        """Charge with up to *power_kw* for one hour.

        Returns
        -------
        tuple[float, BatteryState]
            ``(accepted_kw, new_state)`` where ``accepted_kw`` is the
            grid/PV-side power actually taken, bounded by the charge
            rating and the headroom below the effective capacity.
        """
        eta_one_way = float(np.sqrt(spec.round_trip_efficiency))
        headroom = self.effective_capacity(spec) - self.soc_kwh
        if power_kw <= 0 or headroom <= ENERGY_TOLERANCE_KWH:
            return 0.0, self

        accepted = min(power_kw, spec.max_charge_kw, headroom / eta_one_way)
        return accepted, replace(self, soc_kwh=self.soc_kwh + accepted * eta_one_way)

    def discharge(
        self, spec: BatterySpec, power_kw: float
    ) -> tuple[float, "BatteryState"]:
        """Discharge up to *power_kw* for one hour.

        Returns
        -------
        tuple[float, BatteryState]
            ``(delivered_kw, new_state)`` where ``delivered_kw`` is the
            power reaching the load after discharge losses, bounded by the
            discharge rating and the energy above the SOC floor.
        """
        eta_one_way = float(np.sqrt(spec.round_trip_efficiency))
        available = self.soc_kwh - self.min_soc(spec)
        if power_kw <= 0 or available <= ENERGY_TOLERANCE_KWH:
            return 0.0, self

        delivered = min(power_kw, spec.max_discharge_kw, available * eta_one_way)
        return delivered, replace(self, soc_kwh=self.soc_kwh - delivered / eta_one_way)
