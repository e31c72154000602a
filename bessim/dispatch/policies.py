"""Dispatch policies: per-hour charge/discharge decisions.

Each policy answers one question for the energy-balance core: given the
hour, the battery state and the net balance (``load - production``),
may the battery charge from a surplus and may it discharge into a
deficit?  The core applies power ratings, SOC bounds and grid caps; a
policy never touches energy quantities itself.

* **SelfConsumption** -- store every surplus, cover every deficit.
* **TimeOfUse** -- charge when the hour is at or below the schedule's
  average price, discharge when it is above.
* **PeakShaving** -- always charge; discharge only when the deficit is
  close to (above 80 % of) the grid import limit.
* **Backup**, **GridServices** -- placeholders that behave like
  self-consumption until dedicated logic exists.
* **CustomPolicy** -- wraps an arbitrary decision callback.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Optional

from bessim.battery.spec import BatterySpec
from bessim.battery.state import BatteryState
from bessim.core.errors import InvalidInputError
from bessim.grid.tariff import TimeOfUseSchedule

# Fraction of the import limit above which peak shaving discharges.
PEAK_SHAVING_TRIGGER: float = 0.8


@dataclass(frozen=True)
class ChargeDischargeDecision:
    """Whether the battery may charge / discharge in the current hour."""

    charge: bool
    discharge: bool


ALLOW_ALL = ChargeDischargeDecision(charge=True, discharge=True)


# ======================================================================
# Abstract base
# ======================================================================

class DispatchPolicy(ABC):
    """Interface that every dispatch policy must implement."""

    name: str = "policy"

    # Import cap implied by the policy itself (peak shaving only).
    grid_import_limit_kw: Optional[float] = None

    @abstractmethod
    def decide(
        self,
        hour: int,
        state: BatteryState,
        balance_kw: float,
        spec: BatterySpec,
    ) -> ChargeDischargeDecision:
        """Return the charge/discharge permission for this hour.

        Parameters
        ----------
        hour : int
            Hour of day, 0 -- 23.
        state : BatteryState
            Battery state at the start of the hour.
        balance_kw : float
            ``load - production``; negative means surplus.
        spec : BatterySpec
            Battery nameplate.
        """

    def import_rate(self, hour: int, flat_rate: float) -> float:
        """Import price for *hour*; flat unless the policy carries a schedule."""
        return flat_rate


# ======================================================================
# Concrete policies
# ======================================================================

@dataclass(frozen=True)
class SelfConsumption(DispatchPolicy):
    """Maximise on-site use of PV energy."""

    name: str = field(default="self_consumption", init=False)

    def decide(self, hour, state, balance_kw, spec) -> ChargeDischargeDecision:  # noqa: D401
        return ALLOW_ALL


@dataclass(frozen=True)
class TimeOfUse(DispatchPolicy):
    """Price-driven arbitrage against the schedule's average rate.

    ``charge_threshold`` and ``discharge_threshold`` are carried for
    reporting the parameters found by the optimizer; the decision rule
    itself compares each hour's rate to ``schedule.average_rate()``.
    """

    schedule: TimeOfUseSchedule = field(default_factory=TimeOfUseSchedule)
    charge_threshold: Optional[float] = None
    discharge_threshold: Optional[float] = None
    name: str = field(default="time_of_use", init=False)

    def decide(self, hour, state, balance_kw, spec) -> ChargeDischargeDecision:
        rate = self.schedule.rate_at(hour)
        average = self.schedule.average_rate()
        return ChargeDischargeDecision(charge=rate <= average, discharge=rate > average)

    def import_rate(self, hour: int, flat_rate: float) -> float:
        return self.schedule.rate_at(hour, default=flat_rate)


@dataclass(frozen=True)
class PeakShaving(DispatchPolicy):
    """Hold stored energy back for hours that would push imports toward the limit.

    Parameters
    ----------
    grid_import_limit_kw : float or None
        Target import ceiling (kW).  Also used by the simulator as the
        hard import cap unless an explicit cap is given.  When ``None``
        the policy discharges whenever there is a deficit.
    """

    grid_import_limit_kw: Optional[float] = None
    name: str = field(default="peak_shaving", init=False)

    def __post_init__(self) -> None:
        if self.grid_import_limit_kw is not None and self.grid_import_limit_kw < 0:
            raise InvalidInputError(
                f"grid_import_limit_kw must be >= 0, got {self.grid_import_limit_kw}"
            )

    def decide(self, hour, state, balance_kw, spec) -> ChargeDischargeDecision:
        if self.grid_import_limit_kw is None:
            return ALLOW_ALL
        discharge = balance_kw > self.grid_import_limit_kw * PEAK_SHAVING_TRIGGER
        return ChargeDischargeDecision(charge=True, discharge=discharge)


@dataclass(frozen=True)
class Backup(DispatchPolicy):
    """Backup-reserve operation (currently self-consumption behaviour)."""

    name: str = field(default="backup", init=False)

    def decide(self, hour, state, balance_kw, spec) -> ChargeDischargeDecision:  # noqa: D401
        return ALLOW_ALL


@dataclass(frozen=True)
class GridServices(DispatchPolicy):
    """Frequency/ancillary services (currently self-consumption behaviour)."""

    name: str = field(default="grid_services", init=False)

    def decide(self, hour, state, balance_kw, spec) -> ChargeDischargeDecision:  # noqa: D401
        return ALLOW_ALL


DecisionCallback = Callable[[int, float, float], ChargeDischargeDecision]


@dataclass(frozen=True)
class CustomPolicy(DispatchPolicy):
    """Delegate the decision to ``callback(hour, soc_kwh, max_capacity_kwh)``.

    Parameters
    ----------
    callback : callable
        Returns a :class:`ChargeDischargeDecision`.  ``max_capacity_kwh``
        is the effective (degraded) capacity.
    schedule : TimeOfUseSchedule or None
        Optional price schedule used for import pricing.
    """

    callback: DecisionCallback
    schedule: Optional[TimeOfUseSchedule] = None
    name: str = "custom"

    def decide(self, hour, state, balance_kw, spec) -> ChargeDischargeDecision:
        return self.callback(hour, state.soc_kwh, state.effective_capacity(spec))

    def import_rate(self, hour: int, flat_rate: float) -> float:
        if self.schedule is None:
            return flat_rate
        return self.schedule.rate_at(hour, default=flat_rate)
