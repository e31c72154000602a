"""Tests for the reporting layer: schemas, settings and logging."""

from __future__ import annotations

import json
import logging

import pytest
from pydantic import ValidationError

from bessim.battery.spec import BatterySpec
from bessim.config import Settings, settings
from bessim.core.logging import JSONFormatter, setup_logging
from bessim.dispatch.policies import PeakShaving, SelfConsumption, TimeOfUse
from bessim.economics.projection import project_economics
from bessim.optimization.strategy import StrategyOptimizer
from bessim.schemas import (
    BatterySpecIn,
    DailyResultOut,
    DispatchPolicyIn,
    EconomicsReportOut,
    OptimizationResultOut,
    StrategyComparisonOut,
    TimeOfUseScheduleIn,
)
from bessim.simulation.day import DaySimulator


# ======================================================================
# Input schemas
# ======================================================================


class TestInputSchemas:
    """Request models build engine objects."""

    def test_battery_spec(self):
        spec = BatterySpecIn(capacity_kwh=13.5, max_charge_kw=5.0, max_discharge_kw=5.0).to_spec()
        assert isinstance(spec, BatterySpec)
        assert spec.capacity_kwh == 13.5
        assert spec.round_trip_efficiency == pytest.approx(0.92)

    @pytest.mark.parametrize("eta", [0.0, 1.2])
    def test_battery_spec_rejects_efficiency(self, eta):
        with pytest.raises(ValidationError):
            BatterySpecIn(
                capacity_kwh=10.0, max_charge_kw=5.0, max_discharge_kw=5.0, round_trip_efficiency=eta
            )

    def test_schedule(self):
        schedule = TimeOfUseScheduleIn(
            rates=[
                {"start_hour": 0, "end_hour": 12, "rate": 0.1},
                {"start_hour": 12, "end_hour": 24, "rate": 0.2},
            ]
        ).to_schedule()
        assert schedule.rate_at(13) == 0.2
        assert schedule.is_complete()
        assert TimeOfUseScheduleIn().to_schedule().default_rate == settings.default_tou_rate

    def test_schedule_rejects_bad_hour(self):
        with pytest.raises(ValidationError):
            TimeOfUseScheduleIn(rates=[{"start_hour": 0, "end_hour": 30, "rate": 0.1}])

    def test_policies(self):
        assert isinstance(DispatchPolicyIn().to_policy(), SelfConsumption)
        peak = DispatchPolicyIn(strategy="peak_shaving", grid_import_limit_kw=4.0).to_policy()
        assert isinstance(peak, PeakShaving)
        assert peak.grid_import_limit_kw == 4.0
        tou = DispatchPolicyIn(
            strategy="time_of_use",
            schedule={"rates": [{"start_hour": 17, "end_hour": 21, "rate": 0.3}]},
        ).to_policy()
        assert isinstance(tou, TimeOfUse)
        assert tou.schedule.rate_at(18) == 0.3

    def test_unknown_strategy(self):
        with pytest.raises(ValidationError):
            DispatchPolicyIn(strategy="arbitrage")


# ======================================================================
# Output schemas
# ======================================================================


class TestOutputSchemas:
    """Engine to_dict() payloads validate against the response models."""

    def test_daily_result(self, battery, flat_load, midday_pv):
        day = DaySimulator(battery).simulate_day(flat_load, midday_pv, SelfConsumption())
        out = DailyResultOut.model_validate(day.to_dict())
        assert len(out.hourly) == 24
        assert out.daily_cost == pytest.approx(day.daily_cost)
        assert out.hourly[12].pv_to_battery_kw == pytest.approx(day.hourly[12].pv_to_battery_kw)

    def test_optimization_result(self, battery, evening_peak_load, midday_pv):
        result = StrategyOptimizer(battery).optimize_peak_shaving(evening_peak_load, midday_pv, 10.0)
        out = OptimizationResultOut.model_validate(result.to_dict())
        assert out.evaluations == 21
        assert len(out.history) == 21

    def test_economics_report(self, battery):
        report = project_economics(
            battery, years_to_project=20, annual_load_kwh=5000.0, annual_pv_production_kwh=6000.0
        )
        out = EconomicsReportOut.model_validate(report.to_dict())
        assert out.yearly_cash_flow == pytest.approx(list(report.yearly_cash_flow))
        assert out.replacement_costs == report.replacement_costs

    def test_strategy_comparison(self, battery, evening_peak_load, midday_pv, tou_schedule):
        comparison = StrategyOptimizer(battery).compare_strategies(
            evening_peak_load, midday_pv, tou_schedule, demand_charge_rate=10.0
        )
        out = StrategyComparisonOut.model_validate(comparison.to_dict())
        assert out.recommended_strategy == comparison.recommended_strategy
        assert out.daily_results["self_consumption"].hourly == []


# ======================================================================
# Settings and logging
# ======================================================================


class TestSettings:
    """Environment overrides."""

    def test_defaults(self):
        config = Settings()
        assert config.default_import_rate == pytest.approx(0.15)
        assert config.peak_search_points == 21

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("BESSIM_DEFAULT_IMPORT_RATE", "0.22")
        monkeypatch.setenv("BESSIM_TOU_MAX_ITERATIONS", "10")
        config = Settings()
        assert config.default_import_rate == pytest.approx(0.22)
        assert config.tou_max_iterations == 10


class TestLogging:
    """JSON formatter and root-logger setup."""

    @pytest.fixture
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        simulation_level = logging.getLogger("bessim.simulation").level
        yield root
        root.handlers[:] = handlers
        root.setLevel(level)
        logging.getLogger("bessim.simulation").setLevel(simulation_level)

    def test_json_formatter_extras(self):
        record = logging.LogRecord(
            "bessim.optimization.strategy", logging.INFO, __file__, 1, "Optimized %s", ("peak_shaving",), None
        )
        record.strategy = "peak_shaving"
        record.evaluations = 21
        data = json.loads(JSONFormatter().format(record))
        assert data["message"] == "Optimized peak_shaving"
        assert data["level"] == "INFO"
        assert data["strategy"] == "peak_shaving"
        assert data["evaluations"] == 21
        assert "npv" not in data

    def test_setup_json(self, restore_root):
        setup_logging(json_format=True, level="DEBUG")
        assert len(restore_root.handlers) == 1
        assert isinstance(restore_root.handlers[0].formatter, JSONFormatter)
        assert restore_root.level == logging.DEBUG
        assert logging.getLogger("bessim.simulation").level == logging.NOTSET
        assert logging.getLogger("bessim.simulation.day").isEnabledFor(logging.DEBUG)

    def test_setup_console(self, restore_root):
        setup_logging(json_format=False, level=logging.WARNING)
        assert not isinstance(restore_root.handlers[0].formatter, JSONFormatter)
        assert logging.getLogger("bessim.simulation").level == logging.WARNING
        assert not logging.getLogger("bessim.simulation.day").isEnabledFor(logging.INFO)

    def test_optimizer_logs_result(self, battery, evening_peak_load, midday_pv, caplog):
        with caplog.at_level(logging.INFO, logger="bessim.optimization.strategy"):
            StrategyOptimizer(battery).optimize_peak_shaving(evening_peak_load, midday_pv, 10.0)
        records = [r for r in caplog.records if getattr(r, "strategy", None) == "peak_shaving"]
        assert records
        assert records[0].evaluations == 21
