"""
Static nameplate description of a battery asset.

``BatterySpec`` is the immutable input every simulation, optimization
and economics routine is parameterised with.  It carries the energy and
power ratings, efficiency and depth-of-discharge limits, the two
end-of-life horizons used by the degradation model, and the capital
cost terms used by the financial projector.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace

from bessim.core.errors import InvalidInputError


class BatteryChemistry(enum.Enum):
    """Cell chemistry label (informational, not used by the dispatch)."""

    LITHIUM_ION = "lithium_ion"
    LITHIUM_IRON_PHOSPHATE = "lithium_iron_phosphate"
    LEAD_ACID = "lead_acid"
    FLOW = "flow"
    SODIUM_ION = "sodium_ion"


@dataclass(frozen=True)
class BatterySpec:
    """Battery nameplate parameters.

    Parameters
    ----------
    capacity_kwh : float
        Usable energy capacity in kWh.
    max_charge_kw : float
        Maximum charge power in kW.
    max_discharge_kw : float
        Maximum discharge power in kW.
    round_trip_efficiency : float
        Round-trip efficiency in (0, 1].  Losses are split equally between
        the charge and discharge legs using ``sqrt(eta)``.
    max_depth_of_discharge : float
        Fraction of capacity usable before the SOC floor, in (0, 1].
    self_discharge_rate : float
        Self-discharge per day as a fraction.  Informational only.
    cycle_life : float
        Full equivalent cycles to end-of-life.
    calendar_life_years : float
        Years to end-of-life regardless of cycling.
    cost_per_kwh : float
        Capital cost per kWh of capacity ($).
    installation_cost : float
        Fixed installation cost ($).
    chemistry : BatteryChemistry
        Chemistry label.  Default lithium-ion.
    name : str
        Free-form model label.
    """

    capacity_kwh: float
    max_charge_kw: float
    max_discharge_kw: float
    round_trip_efficiency: float = 0.92
    max_depth_of_discharge: float = 0.9
    self_discharge_rate: float = 0.002
    cycle_life: float = 4000.0
    calendar_life_years: float = 10.0
    cost_per_kwh: float = 500.0
    installation_cost: float = 1000.0
    chemistry: BatteryChemistry = BatteryChemistry.LITHIUM_ION
    name: str = "battery"

    def __post_init__(self) -> None:
        for field_name in (
            "capacity_kwh",
            "max_charge_kw",
            "max_discharge_kw",
            "self_discharge_rate",
            "cost_per_kwh",
            "installation_cost",
        ):
            value = getattr(self, field_name)
            if value < 0:
                raise InvalidInputError(
                    f"{field_name} must be >= 0, got {value}"
                )
        if not 0 < self.round_trip_efficiency <= 1.0:
            raise InvalidInputError(
                "round_trip_efficiency must be in (0, 1], "
                f"got {self.round_trip_efficiency}"
            )
        if not 0 < self.max_depth_of_discharge <= 1.0:
            raise InvalidInputError(
                "max_depth_of_discharge must be in (0, 1], "
                f"got {self.max_depth_of_discharge}"
            )
        if self.cycle_life <= 0:
            raise InvalidInputError(
                f"cycle_life must be positive, got {self.cycle_life}"
            )
        if self.calendar_life_years <= 0:
            raise InvalidInputError(
                "calendar_life_years must be positive, "
                f"got {self.calendar_life_years}"
            )

    # ------------------------------------------------------------------
    # Derived quantities
    # ------------------------------------------------------------------

    @property
    def total_cost(self) -> float:
        """Capital cost of the installed system ($)."""
        return self.capacity_kwh * self.cost_per_kwh + self.installation_cost

    @property
    def nominal_capacity_kwh(self) -> float:
        """Nominal capacity before the depth-of-discharge limit (kWh)."""
        return self.capacity_kwh / self.max_depth_of_discharge

    @property
    def effective_cost_per_kwh(self) -> float:
        """Total cost per usable kWh ($/kWh)."""
        if self.capacity_kwh <= 0:
            return float("inf")
        return self.total_cost / self.capacity_kwh

    def with_capacity(
        self,
        capacity_kwh: float,
        c_rate: float | None = None,
        **overrides: float,
    ) -> "BatterySpec":
        """Return a copy resized to *capacity_kwh*.

        When *c_rate* is given the charge and discharge ratings scale with
        the new capacity (``capacity * c_rate``); otherwise they are kept.
        """
        changes: dict = {"capacity_kwh": capacity_kwh}
        if c_rate is not None:
            changes["max_charge_kw"] = capacity_kwh * c_rate
            changes["max_discharge_kw"] = capacity_kwh * c_rate
        changes.update(overrides)
        return replace(self, **changes)

    # ------------------------------------------------------------------
    # Presets
    # ------------------------------------------------------------------

    @classmethod
    def default_lithium_ion(cls, capacity_kwh: float = 10.0) -> "BatterySpec":
        """Generic NMC pack with a 0.5C power rating."""
        return cls(
            capacity_kwh=capacity_kwh,
            max_charge_kw=capacity_kwh * 0.5,
            max_discharge_kw=capacity_kwh * 0.5,
            round_trip_efficiency=0.92,
            max_depth_of_discharge=0.9,
            self_discharge_rate=0.002,
            cycle_life=4000,
            calendar_life_years=10,
            cost_per_kwh=500.0,
            installation_cost=1000.0,
            chemistry=BatteryChemistry.LITHIUM_ION,
            name=f"Lithium Ion {capacity_kwh:g} kWh",
        )

    @classmethod
    def default_lfp(cls, capacity_kwh: float = 10.0) -> "BatterySpec":
        """Generic LiFePO4 pack: 0.3C charge, 0.5C discharge."""
        return cls(
            capacity_kwh=capacity_kwh,
            max_charge_kw=capacity_kwh * 0.3,
            max_discharge_kw=capacity_kwh * 0.5,
            round_trip_efficiency=0.94,
            max_depth_of_discharge=0.95,
            self_discharge_rate=0.001,
            cycle_life=6000,
            calendar_life_years=15,
            cost_per_kwh=450.0,
            installation_cost=1000.0,
            chemistry=BatteryChemistry.LITHIUM_IRON_PHOSPHATE,
            name=f"LiFePO4 {capacity_kwh:g} kWh",
        )
