"""Tests for bessim.optimization -- search procedures and strategy tuning."""

from __future__ import annotations

import math

import numpy as np
import pytest

from bessim.core.errors import InvalidInputError
from bessim.dispatch.policies import PeakShaving
from bessim.optimization.search import DecayingStepSearch, GridSearch
from bessim.optimization.strategy import (
    MONTHS_PER_YEAR,
    OptimizationResult,
    StrategyOptimizer,
    threshold_policy,
)
from bessim.simulation.day import DaySimulator
from bessim.simulation.profiles import baseline_cost, peak_net_load


# ======================================================================
# Decaying-step search
# ======================================================================


class TestDecayingStepSearch:
    """Hill climb with a linearly shrinking step."""

    def test_step_schedule(self):
        search = DecayingStepSearch(iterations=100, learning_rate=0.05)
        assert search.step_size(0) == pytest.approx(0.05)
        assert search.step_size(50) == pytest.approx(0.025)
        assert search.step_size(99) == pytest.approx(0.0005)

    def test_three_evaluations_per_iteration(self):
        outcome = DecayingStepSearch(iterations=100).maximize(lambda x: -x[0] ** 2, [0.0], [-1.0], [1.0])
        assert outcome.evaluations == 300
        assert len(outcome.history) == 300

    def test_climbs_to_concave_maximum(self):
        outcome = DecayingStepSearch().maximize(
            lambda x: -(x[0] - 0.3) ** 2, [0.0], [-1.0], [1.0]
        )
        assert outcome.best_point[0] == pytest.approx(0.3, abs=0.02)
        assert outcome.best_value <= 0.0

    def test_coordinates_move_together(self):
        outcome = DecayingStepSearch().maximize(
            lambda x: -float(np.sum((x - 0.1) ** 2)), [0.0, 0.0], [-1.0, -1.0], [1.0, 1.0]
        )
        assert outcome.best_point[0] == pytest.approx(outcome.best_point[1])
        assert outcome.best_point[0] == pytest.approx(0.1, abs=0.02)

    def test_upward_moves_clipped(self):
        outcome = DecayingStepSearch().maximize(lambda x: float(x[0]), [0.0], [0.0], [0.2])
        assert outcome.best_point[0] == pytest.approx(0.2)
        assert outcome.best_value == pytest.approx(0.2)

    def test_starting_point_is_first_trial(self):
        outcome = DecayingStepSearch(iterations=5).maximize(lambda x: 1.0, [0.4], [0.0], [1.0])
        assert outcome.history[0][0] == (0.4,)
        assert outcome.best_point == (0.4,)

    @pytest.mark.parametrize("kwargs", [{"iterations": 0}, {"learning_rate": 0.0}])
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(InvalidInputError):
            DecayingStepSearch(**kwargs)


# ======================================================================
# Grid search
# ======================================================================


class TestGridSearch:
    """Exhaustive candidate evaluation."""

    def test_finds_maximum(self):
        outcome = GridSearch(points=11).maximize(lambda x: x[0] * (1 - x[0]), [0.0], [0.0], [1.0])
        assert outcome.best_point[0] == pytest.approx(0.5)
        assert outcome.best_value == pytest.approx(0.25)
        assert outcome.evaluations == 11

    def test_grid_is_cartesian_product(self):
        grid = GridSearch(points=3).grid([0.0, 10.0], [1.0, 20.0])
        assert len(grid) == 9
        assert tuple(grid[0]) == (0.0, 10.0)
        assert tuple(grid[-1]) == (1.0, 20.0)

    def test_floor_keeps_starting_point(self):
        outcome = GridSearch(points=5, floor=0.0).maximize(lambda x: -1.0, [0.8], [0.0], [1.0])
        assert outcome.best_point == (0.8,)
        assert outcome.best_value == 0.0
        assert outcome.evaluations == 5

    def test_ties_go_to_earliest_candidate(self):
        outcome = GridSearch(points=5).maximize(lambda x: 1.0, [0.0], [0.0], [1.0])
        assert outcome.best_point == (0.0,)

    def test_thread_pool_matches_sequential(self):
        def objective(x):
            return math.sin(5 * x[0])

        sequential = GridSearch(points=21).maximize(objective, [0.0], [0.0], [2.0])
        pooled = GridSearch(points=21, max_workers=4).maximize(objective, [0.0], [0.0], [2.0])
        assert pooled.best_point == sequential.best_point
        assert pooled.history == sequential.history

    def test_explicit_candidates(self):
        outcome = GridSearch().maximize_over(lambda x: x[0], [[3.0], [1.0], [2.0]], x0=[0.0])
        assert outcome.best_point == (3.0,)
        assert [p for p, _ in outcome.history] == [(3.0,), (1.0,), (2.0,)]

    def test_invalid_points(self):
        with pytest.raises(InvalidInputError):
            GridSearch(points=0)


# ======================================================================
# Time of use
# ======================================================================


class TestTimeOfUseOptimization:
    """Price-threshold search on a three-band tariff."""

    def test_threshold_policy_decisions(self, tou_schedule):
        policy = threshold_policy(tou_schedule, 0.10, 0.25)
        assert policy.name == "time_of_use_thresholds"
        assert policy.callback(3, 5.0, 10.0).charge
        assert not policy.callback(3, 10.0, 10.0).charge
        assert policy.callback(18, 5.0, 10.0).discharge
        assert not policy.callback(12, 5.0, 10.0).discharge

    def test_parameters_within_bounds(self, battery, tou_schedule, flat_load, midday_pv):
        result = StrategyOptimizer(battery).optimize_time_of_use(tou_schedule, flat_load, midday_pv)
        average = tou_schedule.average_rate()
        charge = result.parameters["charge_threshold"]
        discharge = result.parameters["discharge_threshold"]
        assert tou_schedule.min_rate() - 1e-12 <= charge <= average + 1e-12
        assert average - 1e-12 <= discharge <= tou_schedule.max_rate() + 1e-12
        assert result.strategy == "time_of_use"
        assert result.evaluations == 300

    def test_never_worse_than_start(self, battery, tou_schedule, evening_peak_load, midday_pv):
        optimizer = StrategyOptimizer(battery)
        average = tou_schedule.average_rate()
        start = optimizer.evaluate_time_of_use_thresholds(
            tou_schedule, evening_peak_load, midday_pv, average * 0.9, average * 1.1
        )
        result = optimizer.optimize_time_of_use(tou_schedule, evening_peak_load, midday_pv)
        assert result.objective >= start
        assert result.history[0][1] == pytest.approx(start)

    def test_custom_search(self, battery, tou_schedule, flat_load, midday_pv):
        optimizer = StrategyOptimizer(
            battery, threshold_search=DecayingStepSearch(iterations=4)
        )
        assert optimizer.optimize_time_of_use(tou_schedule, flat_load, midday_pv).evaluations == 12


# ======================================================================
# Peak shaving
# ======================================================================


class TestPeakShavingOptimization:
    """Demand-charge reduction plus energy savings."""

    def test_score_breakdown(self, battery, evening_peak_load, midday_pv):
        optimizer = StrategyOptimizer(battery, initial_soc_percent=50.0)
        score = optimizer.evaluate_peak_shaving_threshold(evening_peak_load, midday_pv, 1.0, 10.0)

        sim = DaySimulator(battery, initial_soc_percent=50.0)
        day = sim.simulate_day(evening_peak_load, midday_pv, PeakShaving(grid_import_limit_kw=1.0))
        assert day.peak_grid_import_kw == pytest.approx(1.0)

        energy_savings = baseline_cost(evening_peak_load, midday_pv, 0.15, 0.05) - day.daily_cost
        assert score == pytest.approx(5.0 * 10.0 + 30.0 * energy_savings)

    def test_optimized_limit_in_range(self, battery, evening_peak_load, midday_pv):
        result = StrategyOptimizer(battery).optimize_peak_shaving(evening_peak_load, midday_pv, 10.0)
        base_peak = peak_net_load(evening_peak_load, midday_pv)
        limit = result.parameters["grid_import_limit_kw"]
        assert result.parameters["base_peak_kw"] == pytest.approx(base_peak)
        assert result.evaluations == 21
        assert base_peak * 0.5 - 1e-9 <= limit <= base_peak * 0.95 + 1e-9
        assert result.objective > 0.0
        assert result.objective == pytest.approx(max(v for _, v in result.history))

    def test_thread_pool_matches_sequential(self, battery, evening_peak_load, midday_pv):
        sequential = StrategyOptimizer(battery).optimize_peak_shaving(evening_peak_load, midday_pv, 10.0)
        pooled = StrategyOptimizer(battery, max_workers=4).optimize_peak_shaving(
            evening_peak_load, midday_pv, 10.0
        )
        assert pooled.parameters == sequential.parameters
        assert pooled.objective == sequential.objective


# ======================================================================
# Battery size
# ======================================================================


class TestBatterySizeOptimization:
    """Capacity grid search scored by lifetime NPV."""

    SIZE_KWARGS = {
        "buy_price": 0.30,
        "sell_price": 0.02,
        "battery_lifespan_years": 10,
        "system_lifespan_years": 20,
    }

    def test_max_size(self, battery, flat_load, midday_pv):
        # 25 kWh surplus and 19 kWh deficit per day
        loads = np.tile(flat_load, 2)
        productions = np.tile(midday_pv, 2)
        expected = 19.0 * 1.2 / math.sqrt(0.92)
        assert StrategyOptimizer(battery).max_battery_size_kwh(loads, productions) == pytest.approx(expected)

    def test_profitable_size(self, battery, annual_profiles):
        load, production = annual_profiles
        optimizer = StrategyOptimizer(battery)
        result = optimizer.optimize_battery_size(
            load, production, capital_cost_per_kwh=50.0, **self.SIZE_KWARGS
        )
        max_size = result.parameters["max_size_kwh"]
        assert result.strategy == "battery_size"
        assert 0.0 < result.parameters["capacity_kwh"] <= max_size + 1e-9
        assert result.objective > 0.0
        assert result.evaluations == 10
        candidates = [p["capacity_kwh"] for p, _ in result.history]
        assert candidates == pytest.approx(list(np.linspace(0.0, max_size, 11)[1:]))

    def test_unprofitable_returns_zero(self, battery, annual_profiles):
        load, production = annual_profiles
        result = StrategyOptimizer(battery).optimize_battery_size(
            load, production, capital_cost_per_kwh=1e6, **self.SIZE_KWARGS
        )
        assert result.parameters["capacity_kwh"] == 0.0
        assert result.objective == 0.0

    def test_no_surplus_means_no_candidates(self, battery):
        load = np.ones(48)
        result = StrategyOptimizer(battery).optimize_battery_size(
            load, np.zeros(48), capital_cost_per_kwh=50.0, **self.SIZE_KWARGS
        )
        assert result.parameters["max_size_kwh"] == 0.0
        assert result.evaluations == 0
        assert result.parameters["capacity_kwh"] == 0.0

    def test_short_battery_lifespan_rejected(self, battery, annual_profiles):
        load, production = annual_profiles
        kwargs = dict(self.SIZE_KWARGS, battery_lifespan_years=0)
        with pytest.raises(InvalidInputError):
            StrategyOptimizer(battery).optimize_battery_size(
                load, production, capital_cost_per_kwh=50.0, **kwargs
            )


# ======================================================================
# Comparison and records
# ======================================================================


class TestStrategyComparison:
    """Self-consumption vs time of use vs peak shaving."""

    @pytest.fixture
    def comparison(self, battery, evening_peak_load, midday_pv, tou_schedule):
        return StrategyOptimizer(battery).compare_strategies(
            evening_peak_load, midday_pv, tou_schedule, demand_charge_rate=10.0
        )

    def test_strategies_covered(self, comparison):
        names = {"self_consumption", "time_of_use", "peak_shaving"}
        assert set(comparison.savings) == names
        assert set(comparison.daily_results) == names
        assert set(comparison.optimizations) == {"time_of_use", "peak_shaving"}

    def test_annualization(self, comparison):
        assert comparison.annual_savings["self_consumption"] == pytest.approx(
            comparison.savings["self_consumption"] * 365
        )
        assert comparison.annual_savings["peak_shaving"] == pytest.approx(
            comparison.savings["peak_shaving"] * MONTHS_PER_YEAR
        )

    def test_recommendation_has_highest_annual_savings(self, comparison):
        best = max(comparison.annual_savings.values())
        assert comparison.annual_savings[comparison.recommended_strategy] == best
        assert comparison.explanation

    def test_payback(self, comparison, battery):
        for name, annual in comparison.annual_savings.items():
            if annual > 0:
                assert comparison.payback_years[name] == pytest.approx(battery.total_cost / annual)
            else:
                assert math.isinf(comparison.payback_years[name])

    def test_to_dict(self, comparison):
        data = comparison.to_dict()
        assert data["recommended_strategy"] == comparison.recommended_strategy
        assert data["optimizations"]["time_of_use"]["history"] == []
        assert data["daily_results"]["peak_shaving"]["hourly"] == []


class TestOptimizationResult:
    """Serialization."""

    def test_to_dict(self):
        result = OptimizationResult(
            strategy="peak_shaving",
            parameters={"grid_import_limit_kw": 4.0},
            objective=12.5,
            evaluations=2,
            history=(({"grid_import_limit_kw": 3.0}, 10.0), ({"grid_import_limit_kw": 4.0}, 12.5)),
        )
        data = result.to_dict()
        assert data["history"][1] == {"parameters": {"grid_import_limit_kw": 4.0}, "objective": 12.5}
        assert result.to_dict(include_history=False)["history"] == []
