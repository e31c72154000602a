"""Parameter and sizing optimization for battery dispatch strategies.

:class:`StrategyOptimizer` repeatedly simulates a representative day (or
a full year, for sizing) and hands the resulting score to a search
procedure from :mod:`bessim.optimization.search`:

* **time of use** -- decaying-step search over charge/discharge price
  thresholds, scored as daily savings against a no-battery bill.
* **peak shaving** -- grid search over the import limit, scored as the
  monthly demand-charge reduction plus 30 days of energy savings.
* **battery size** -- grid search over capacity, scored as lifetime NPV.

Every trial starts from a fresh :class:`BatteryState`, so trials never
share state and grid-search trials can run on a thread pool.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np
from numpy.typing import ArrayLike, NDArray

from bessim.battery.spec import BatterySpec
from bessim.battery.state import BatteryState
from bessim.config import settings
from bessim.core.errors import InvalidInputError
from bessim.dispatch.policies import (
    ChargeDischargeDecision,
    CustomPolicy,
    DispatchPolicy,
    PeakShaving,
    SelfConsumption,
)
from bessim.economics.projection import battery_size_npv
from bessim.grid.tariff import TimeOfUseSchedule
from bessim.simulation.day import DailyResult, DaySimulator, simulate_day
from bessim.simulation.profiles import (
    baseline_cost,
    peak_net_load,
    split_into_days,
    validate_day_profile,
)

from .search import DecayingStepSearch, GridSearch, Optimizer, SearchOutcome

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR: int = 12


# ======================================================================
# Result records
# ======================================================================

@dataclass(frozen=True)
class OptimizationResult:
    """Best parameters found by one optimization run.

    ``objective`` is daily savings (time of use), monthly savings (peak
    shaving) or lifetime NPV (battery size), all in $.
    """

    strategy: str
    parameters: dict[str, float]
    objective: float
    evaluations: int
    history: tuple[tuple[dict[str, float], float], ...] = ()

    def to_dict(self, include_history: bool = True) -> dict[str, Any]:
        return {
            "strategy": self.strategy,
            "parameters": dict(self.parameters),
            "objective": self.objective,
            "evaluations": self.evaluations,
            "history": [
                {"parameters": dict(params), "objective": value}
                for params, value in self.history
            ]
            if include_history
            else [],
        }


@dataclass(frozen=True)
class StrategyComparison:
    """Side-by-side savings of the main strategies on one representative day."""

    daily_results: dict[str, DailyResult]
    savings: dict[str, float]
    annual_savings: dict[str, float]
    payback_years: dict[str, float]
    optimizations: dict[str, OptimizationResult]
    recommended_strategy: str
    explanation: str
    battery_cost: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "savings": dict(self.savings),
            "annual_savings": dict(self.annual_savings),
            "payback_years": dict(self.payback_years),
            "optimizations": {
                name: result.to_dict(include_history=False)
                for name, result in self.optimizations.items()
            },
            "recommended_strategy": self.recommended_strategy,
            "explanation": self.explanation,
            "battery_cost": self.battery_cost,
            "daily_results": {
                name: result.to_dict(include_hourly=False)
                for name, result in self.daily_results.items()
            },
        }


def threshold_policy(
    schedule: TimeOfUseSchedule, charge_threshold: float, discharge_threshold: float
) -> CustomPolicy:
    """Time-of-use arbitrage driven by explicit price thresholds.

    Charge when the hour's rate is at or below *charge_threshold* and the
    battery is not full; discharge when it is at or above
    *discharge_threshold* and the battery is not empty.
    """

    def decide(hour: int, soc_kwh: float, max_capacity_kwh: float) -> ChargeDischargeDecision:
        rate = schedule.rate_at(hour)
        return ChargeDischargeDecision(
            charge=rate <= charge_threshold and soc_kwh < max_capacity_kwh,
            discharge=rate >= discharge_threshold and soc_kwh > 0,
        )

    return CustomPolicy(callback=decide, schedule=schedule, name="time_of_use_thresholds")


def _labelled_history(
    outcome: SearchOutcome, names: tuple[str, ...]
) -> tuple[tuple[dict[str, float], float], ...]:
    return tuple(
        (dict(zip(names, point)), value) for point, value in outcome.history
    )


# ======================================================================
# Optimizer
# ======================================================================

class StrategyOptimizer:
    """Tune dispatch-strategy parameters and battery size for one site.

    Parameters
    ----------
    spec : BatterySpec
        Battery used for the strategy searches; its efficiency, depth of
        discharge and lifetimes are carried into the sizing trials.
    initial_soc_percent : float or None
        Starting SOC of every trial.  Default from settings (50 %).
    max_workers : int or None
        Thread-pool size for grid-search trials; sequential when ``None``.
    threshold_search : Optimizer or None
        Search used for the time-of-use thresholds.  Defaults to a
        :class:`DecayingStepSearch` configured from settings.
    """

    def __init__(
        self,
        spec: BatterySpec,
        *,
        initial_soc_percent: Optional[float] = None,
        max_workers: Optional[int] = None,
        threshold_search: Optional[Optimizer] = None,
    ) -> None:
        if initial_soc_percent is None:
            initial_soc_percent = settings.initial_soc_percent
        self.spec = spec
        self.initial_soc_percent = initial_soc_percent
        self.max_workers = max_workers
        self.threshold_search: Optimizer = threshold_search or DecayingStepSearch(
            iterations=settings.tou_max_iterations,
            learning_rate=settings.tou_learning_rate,
        )

    def _fresh_state(self) -> BatteryState:
        return BatteryState.initial(self.spec, self.initial_soc_percent)

    def _run_day(
        self,
        load: NDArray[np.float64],
        production: NDArray[np.float64],
        policy: DispatchPolicy,
        **kwargs: Any,
    ) -> DailyResult:
        result, _ = simulate_day(
            self.spec, self._fresh_state(), load, production, policy, **kwargs
        )
        return result

    # ------------------------------------------------------------------
    # Time of use
    # ------------------------------------------------------------------

    def evaluate_time_of_use_thresholds(
        self,
        schedule: TimeOfUseSchedule,
        load_kw: ArrayLike,
        production_kw: ArrayLike,
        charge_threshold: float,
        discharge_threshold: float,
    ) -> float:
        """Daily savings of :func:`threshold_policy` against no battery.

        The no-battery bill buys at the schedule rate and sells at a fixed
        fraction of it; the battery day sells at the default export rate.
        """
        load = validate_day_profile(load_kw, "load_kw")
        production = validate_day_profile(production_kw, "production_kw")

        result = self._run_day(
            load,
            production,
            threshold_policy(schedule, charge_threshold, discharge_threshold),
            import_rate=schedule.default_rate,
            export_rate=settings.default_export_rate,
        )

        rates = np.asarray(schedule.hourly_rates(), dtype=np.float64)
        baseline = baseline_cost(
            load, production, rates, rates * settings.tou_feed_in_fraction
        )
        return baseline - result.daily_cost

    def optimize_time_of_use(
        self,
        schedule: TimeOfUseSchedule,
        load_kw: ArrayLike,
        production_kw: ArrayLike,
    ) -> OptimizationResult:
        """Search charge/discharge price thresholds for a time-of-use tariff.

        Starts from 90 % / 110 % of the schedule's average rate; the charge
        threshold is bounded to ``[min_rate, average]`` and the discharge
        threshold to ``[average, max_rate]``.
        """
        load = validate_day_profile(load_kw, "load_kw")
        production = validate_day_profile(production_kw, "production_kw")

        average = schedule.average_rate()
        x0 = [average * 0.9, average * 1.1]
        lower = [schedule.min_rate(), average]
        upper = [average, schedule.max_rate()]

        def objective(point: NDArray[np.float64]) -> float:
            return self.evaluate_time_of_use_thresholds(
                schedule, load, production, float(point[0]), float(point[1])
            )

        outcome = self.threshold_search.maximize(objective, x0, lower, upper)
        names = ("charge_threshold", "discharge_threshold")
        result = OptimizationResult(
            strategy="time_of_use",
            parameters=dict(zip(names, outcome.best_point)),
            objective=outcome.best_value,
            evaluations=outcome.evaluations,
            history=_labelled_history(outcome, names),
        )
        self._log_result(result)
        return result

    # ------------------------------------------------------------------
    # Peak shaving
    # ------------------------------------------------------------------

    def evaluate_peak_shaving_threshold(
        self,
        load_kw: ArrayLike,
        production_kw: ArrayLike,
        threshold_kw: float,
        demand_charge_rate: float,
    ) -> float:
        """Monthly savings of peak shaving at *threshold_kw*.

        ``(peak_without - peak_with) * demand_charge_rate`` plus the daily
        energy savings (flat default rates) times the demand-charge days.
        """
        load = validate_day_profile(load_kw, "load_kw")
        production = validate_day_profile(production_kw, "production_kw")
        import_rate = settings.default_import_rate
        export_rate = settings.default_export_rate

        result = self._run_day(
            load,
            production,
            PeakShaving(grid_import_limit_kw=threshold_kw),
            import_rate=import_rate,
            export_rate=export_rate,
        )
        peak_reduction = peak_net_load(load, production) - result.peak_grid_import_kw
        energy_savings = baseline_cost(load, production, import_rate, export_rate) - result.daily_cost
        return peak_reduction * demand_charge_rate + energy_savings * settings.demand_charge_days

    def optimize_peak_shaving(
        self,
        load_kw: ArrayLike,
        production_kw: ArrayLike,
        demand_charge_rate: float,
    ) -> OptimizationResult:
        """Grid-search the import limit between 50 % and 95 % of the base peak.

        Returns 80 % of the peak with a zero objective when no candidate
        scores above zero.
        """
        load = validate_day_profile(load_kw, "load_kw")
        production = validate_day_profile(production_kw, "production_kw")
        base_peak = peak_net_load(load, production)

        def objective(point: NDArray[np.float64]) -> float:
            return self.evaluate_peak_shaving_threshold(
                load, production, float(point[0]), demand_charge_rate
            )

        search = GridSearch(
            points=settings.peak_search_points,
            max_workers=self.max_workers,
            floor=0.0,
        )
        outcome = search.maximize(
            objective,
            x0=[base_peak * 0.8],
            lower=[base_peak * settings.peak_search_low_fraction],
            upper=[base_peak * settings.peak_search_high_fraction],
        )
        names = ("grid_import_limit_kw",)
        result = OptimizationResult(
            strategy="peak_shaving",
            parameters={**dict(zip(names, outcome.best_point)), "base_peak_kw": base_peak},
            objective=outcome.best_value,
            evaluations=outcome.evaluations,
            history=_labelled_history(outcome, names),
        )
        self._log_result(result)
        return result

    # ------------------------------------------------------------------
    # Battery size
    # ------------------------------------------------------------------

    def max_battery_size_kwh(
        self, annual_load_kw: ArrayLike, annual_production_kw: ArrayLike
    ) -> float:
        """Upper bound for the size search.

        The smaller of the average daily surplus and deficit, with a 20 %
        margin and one-way efficiency losses.
        """
        loads, productions = split_into_days(annual_load_kw, annual_production_kw)
        net = productions - loads
        avg_surplus = float(np.sum(np.maximum(net, 0.0))) / loads.shape[0]
        avg_deficit = float(np.sum(np.maximum(-net, 0.0))) / loads.shape[0]
        return min(avg_surplus, avg_deficit) * 1.2 / math.sqrt(self.spec.round_trip_efficiency)

    def evaluate_battery_size(
        self,
        capacity_kwh: float,
        daily_loads: NDArray[np.float64],
        daily_productions: NDArray[np.float64],
        *,
        buy_price: float,
        sell_price: float,
        capital_cost_per_kwh: float,
        battery_lifespan_years: int,
        system_lifespan_years: int,
    ) -> float:
        """Lifetime NPV of a self-consumption battery of *capacity_kwh*."""
        trial_spec = self.spec.with_capacity(
            capacity_kwh,
            c_rate=settings.size_c_rate,
            cost_per_kwh=capital_cost_per_kwh,
            installation_cost=settings.size_installation_cost,
        )
        session = DaySimulator(trial_spec, self.initial_soc_percent)
        days = session.simulate_days(
            daily_loads,
            daily_productions,
            SelfConsumption(),
            import_rate=buy_price,
            export_rate=sell_price,
        )
        annual_savings = sum(
            baseline_cost(load, production, buy_price, sell_price) - day.daily_cost
            for load, production, day in zip(daily_loads, daily_productions, days)
        )
        value = battery_size_npv(
            trial_spec.total_cost,
            annual_savings,
            battery_lifespan_years=battery_lifespan_years,
            system_lifespan_years=system_lifespan_years,
        )
        logger.debug("Size %.2f kWh: annual savings=%.2f, npv=%.2f", capacity_kwh, annual_savings, value)
        return value

    def optimize_battery_size(
        self,
        annual_load_kw: ArrayLike,
        annual_production_kw: ArrayLike,
        *,
        buy_price: float,
        sell_price: float,
        capital_cost_per_kwh: float,
        battery_lifespan_years: int,
        system_lifespan_years: int,
    ) -> OptimizationResult:
        """Pick the capacity with the highest strictly positive lifetime NPV.

        Candidates are evenly spaced up to :meth:`max_battery_size_kwh`;
        sizes below the minimum are skipped.  Returns 0 kWh with a zero
        objective when no candidate has a positive NPV.
        """
        if battery_lifespan_years < 1:
            raise InvalidInputError(
                f"battery_lifespan_years must be >= 1, got {battery_lifespan_years}"
            )
        daily_loads, daily_productions = split_into_days(annual_load_kw, annual_production_kw)
        max_size = self.max_battery_size_kwh(annual_load_kw, annual_production_kw)

        sizes = np.linspace(0.0, max_size, settings.size_search_candidates + 1)[1:]
        candidates = [[s] for s in sizes if s >= settings.size_min_kwh]

        def objective(point: NDArray[np.float64]) -> float:
            return self.evaluate_battery_size(
                float(point[0]),
                daily_loads,
                daily_productions,
                buy_price=buy_price,
                sell_price=sell_price,
                capital_cost_per_kwh=capital_cost_per_kwh,
                battery_lifespan_years=battery_lifespan_years,
                system_lifespan_years=system_lifespan_years,
            )

        search = GridSearch(max_workers=self.max_workers, floor=0.0)
        outcome = search.maximize_over(objective, candidates, x0=[0.0])
        names = ("capacity_kwh",)
        result = OptimizationResult(
            strategy="battery_size",
            parameters={**dict(zip(names, outcome.best_point)), "max_size_kwh": max_size},
            objective=outcome.best_value,
            evaluations=outcome.evaluations,
            history=_labelled_history(outcome, names),
        )
        self._log_result(result, capacity_kwh=outcome.best_point[0])
        return result

    # ------------------------------------------------------------------
    # Strategy comparison
    # ------------------------------------------------------------------

    def compare_strategies(
        self,
        load_kw: ArrayLike,
        production_kw: ArrayLike,
        schedule: TimeOfUseSchedule,
        demand_charge_rate: float,
    ) -> StrategyComparison:
        """Compare self-consumption, time of use and peak shaving.

        Self-consumption is priced at the flat default rates; the other
        two use their optimized parameters.  Annual savings are daily
        savings times 365, except peak shaving whose monthly score is
        times 12.  The recommendation is the strategy with the highest
        annual savings.
        """
        load = validate_day_profile(load_kw, "load_kw")
        production = validate_day_profile(production_kw, "production_kw")
        import_rate = settings.default_import_rate
        export_rate = settings.default_export_rate

        self_consumption = self._run_day(
            load, production, SelfConsumption(), import_rate=import_rate, export_rate=export_rate
        )
        sc_savings = baseline_cost(load, production, import_rate, export_rate) - self_consumption.daily_cost

        tou = self.optimize_time_of_use(schedule, load, production)
        tou_policy = threshold_policy(
            schedule,
            tou.parameters["charge_threshold"],
            tou.parameters["discharge_threshold"],
        )
        tou_day = self._run_day(
            load, production, tou_policy, import_rate=schedule.default_rate, export_rate=export_rate
        )

        peak = self.optimize_peak_shaving(load, production, demand_charge_rate)
        peak_day = self._run_day(
            load,
            production,
            PeakShaving(grid_import_limit_kw=peak.parameters["grid_import_limit_kw"]),
            import_rate=import_rate,
            export_rate=export_rate,
        )

        savings = {
            "self_consumption": sc_savings,
            "time_of_use": tou.objective,
            "peak_shaving": peak.objective,
        }
        annual = {
            "self_consumption": sc_savings * 365,
            "time_of_use": tou.objective * 365,
            "peak_shaving": peak.objective * MONTHS_PER_YEAR,
        }
        cost = self.spec.total_cost
        payback = {
            name: cost / value if value > 0 else float("inf")
            for name, value in annual.items()
        }

        recommended = max(annual, key=annual.__getitem__)
        if annual[recommended] > 0:
            explanation = (
                f"{recommended.replace('_', ' ')} gives the highest annual savings "
                f"(${annual[recommended]:.2f}/year)"
            )
        else:
            explanation = "No strategy saves money with this battery; savings shown for reference"

        comparison = StrategyComparison(
            daily_results={
                "self_consumption": self_consumption,
                "time_of_use": tou_day,
                "peak_shaving": peak_day,
            },
            savings=savings,
            annual_savings=annual,
            payback_years=payback,
            optimizations={"time_of_use": tou, "peak_shaving": peak},
            recommended_strategy=recommended,
            explanation=explanation,
            battery_cost=cost,
        )
        logger.info("Recommended strategy: %s", recommended, extra={"strategy": recommended})
        return comparison

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    def _log_result(self, result: OptimizationResult, **extra: Any) -> None:
        logger.info(
            "Optimized %s in %d evaluations: objective=%.4f, parameters=%s",
            result.strategy,
            result.evaluations,
            result.objective,
            result.parameters,
            extra={
                "strategy": result.strategy,
                "evaluations": result.evaluations,
                "objective": result.objective,
                **extra,
            },
        )
