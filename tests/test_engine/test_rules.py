"""
Tests for the flag rule set.
"""

from datetime import date

import pytest

from meterflags.engine.history import ReadingSeries
from meterflags.engine.rules import (
    RULES,
    check_backward,
    check_gradual_creep,
    check_percentage_spike,
    check_seasonal_anomaly,
    check_spike,
    check_unchanged,
    check_vacancy_contradiction,
    check_zero_consumption,
    detect_gradual_creep,
    run_rules,
)
from meterflags.models.enums import UnitStatus
from meterflags.schemas.entities import Meter, Reading, Unit
from meterflags.schemas.flags import AutoFlag
from meterflags.schemas.validation_config import ValidationConfig

from conftest import months_before


NOW = date(2025, 6, 15)
DEFAULTS = ValidationConfig()


def _meter(last_reading=100.0, unit_id=None):
    return Meter(
        id="m1", scheme_id="s1", meter_number="U-001",
        last_reading=last_reading, unit_id=unit_id,
    )


def _reading(value, consumption=None, reading_date=NOW):
    return Reading(
        id="r-now", cycle_id="c1", meter_id="m1",
        reading_value=value, consumption=consumption, reading_date=reading_date,
    )


def _series(consumptions, end=NOW):
    """Chronological consumptions, newest one month before `end`."""
    count = len(consumptions)
    return ReadingSeries([
        Reading(
            id=f"h{i}", cycle_id="c", meter_id="m1", reading_value=0.0,
            consumption=c, reading_date=months_before(end, count - i),
        )
        for i, c in enumerate(consumptions)
    ])


EMPTY = ReadingSeries([])


class TestBackward:
    """Reading below the previous value."""

    def test_fires_when_value_drops(self):
        flag = check_backward(_reading(90.0), _meter(100.0), EMPTY, DEFAULTS)
        assert flag.type == "backward"
        assert flag.severity == "high"

    def test_allowed_by_config(self):
        config = ValidationConfig(backward_allowed=True)
        assert check_backward(_reading(90.0), _meter(100.0), EMPTY, config) is None

    def test_no_previous_reading(self):
        assert check_backward(_reading(90.0), _meter(None), EMPTY, DEFAULTS) is None

    def test_forward_reading(self):
        assert check_backward(_reading(110.0), _meter(100.0), EMPTY, DEFAULTS) is None


class TestSpike:
    """Average-based spike at the multiplier boundary."""

    def test_at_threshold_does_not_fire(self):
        reading = _reading(130.0, consumption=30.0)
        assert check_spike(reading, _meter(), _series([10, 10, 10]), DEFAULTS) is None

    def test_above_threshold_fires(self):
        reading = _reading(130.01, consumption=30.01)
        flag = check_spike(reading, _meter(), _series([10, 10, 10]), DEFAULTS)
        assert flag.type == "spike"
        assert flag.severity == "high"

    def test_no_history_no_average(self):
        reading = _reading(1100.0, consumption=1000.0)
        assert check_spike(reading, _meter(), EMPTY, DEFAULTS) is None

    def test_window_uses_min_history_cycles(self):
        # Only the newest two count: avg 10, threshold 30
        config = ValidationConfig(min_history_cycles=2)
        reading = _reading(140.0, consumption=40.0)
        flag = check_spike(reading, _meter(), _series([1000, 10, 10]), config)
        assert flag is not None

    def test_baseline_reading_skipped(self):
        assert check_spike(_reading(500.0), _meter(None), _series([10, 10, 10]), DEFAULTS) is None


class TestPercentageSpike:
    """Growth over the previous cycle."""

    def test_fires_above_threshold(self):
        reading = _reading(251.0, consumption=151.0)
        flag = check_percentage_spike(reading, _meter(), _series([100]), DEFAULTS)
        assert flag.type == "percentage-spike"
        assert flag.severity == "medium"
        assert "51.0% increase" in flag.message

    def test_exactly_at_threshold(self):
        reading = _reading(250.0, consumption=150.0)
        assert check_percentage_spike(reading, _meter(), _series([100]), DEFAULTS) is None

    def test_compares_to_most_recent_cycle(self):
        reading = _reading(240.0, consumption=140.0)
        flag = check_percentage_spike(reading, _meter(), _series([1000, 90]), DEFAULTS)
        assert flag is not None

    def test_previous_zero_skipped(self):
        reading = _reading(150.0, consumption=50.0)
        assert check_percentage_spike(reading, _meter(), _series([0]), DEFAULTS) is None


class TestZeroConsumptionAndUnchanged:
    """Zero consumption and unchanged are independent rules."""

    def test_zero_last_reading_only_unchanged(self):
        reading = _reading(0.0)
        meter = _meter(0.0)
        assert check_unchanged(reading, meter, EMPTY, DEFAULTS).type == "unchanged"
        assert check_zero_consumption(reading, meter, EMPTY, DEFAULTS) is None

    def test_active_meter_both_fire(self):
        reading = _reading(100.0)
        meter = _meter(100.0)
        assert check_zero_consumption(reading, meter, EMPTY, DEFAULTS).type == "zero-consumption"
        assert check_unchanged(reading, meter, EMPTY, DEFAULTS).type == "unchanged"

    def test_zero_tolerance_disabled(self):
        config = ValidationConfig(zero_tolerance=False)
        assert check_zero_consumption(_reading(100.0), _meter(100.0), EMPTY, config) is None

    def test_unchanged_needs_previous(self):
        assert check_unchanged(_reading(0.0), _meter(None), EMPTY, DEFAULTS) is None


class TestGradualCreep:
    """Sustained growth across recent cycles."""

    def test_fires_on_steady_increase(self):
        series = _series([100, 110, 121, 133, 146, 161])
        flag = check_gradual_creep(_reading(200.0), _meter(), series, DEFAULTS)
        assert flag.type == "gradual-creep"
        assert flag.severity == "low"
        assert "over 6 cycles" in flag.message

    def test_needs_four_cycles(self):
        series = _series([100, 150, 200])
        assert check_gradual_creep(_reading(200.0), _meter(), series, DEFAULTS) is None

    def test_four_cycles_enough(self):
        assert detect_gradual_creep(_series([100, 120, 140, 170]), 7) is not None

    def test_flat_usage(self):
        assert detect_gradual_creep(_series([100, 100, 100, 100, 100]), 7) is None

    def test_small_increases_below_threshold(self):
        assert detect_gradual_creep(_series([100, 101, 102, 103, 104]), 7) is None

    def test_only_last_six_cycles(self):
        # The spike in the oldest entry falls outside the window
        series = _series([1, 100, 100, 100, 100, 100, 100])
        assert detect_gradual_creep(series, 7) is None


class TestSeasonalAnomaly:
    """Comparison with the same season last year."""

    def _last_year(self, consumption):
        return ReadingSeries([
            Reading(
                id="ly", cycle_id="c", meter_id="m1", reading_value=0.0,
                consumption=consumption, reading_date=date(2024, 6, 12),
            )
        ])

    def test_higher_than_last_year(self):
        flag = check_seasonal_anomaly(
            _reading(240.0, consumption=140.0), _meter(), self._last_year(100.0), DEFAULTS,
        )
        assert flag.type == "seasonal-anomaly"
        assert flag.severity == "low"
        assert flag.message.startswith("Higher")

    def test_lower_than_last_year(self):
        flag = check_seasonal_anomaly(
            _reading(150.0, consumption=50.0), _meter(), self._last_year(100.0), DEFAULTS,
        )
        assert flag.message.startswith("Lower")

    def test_within_thirty_percent(self):
        assert check_seasonal_anomaly(
            _reading(230.0, consumption=130.0), _meter(), self._last_year(100.0), DEFAULTS,
        ) is None

    def test_no_same_season_reading(self):
        assert check_seasonal_anomaly(
            _reading(500.0, consumption=400.0), _meter(), _series([100, 100]), DEFAULTS,
        ) is None

    def test_last_year_zero_skipped(self):
        assert check_seasonal_anomaly(
            _reading(150.0, consumption=50.0), _meter(), self._last_year(0.0), DEFAULTS,
        ) is None

    def test_comparison_months_from_config(self):
        config = ValidationConfig(seasonal_comparison_months=6)
        assert check_seasonal_anomaly(
            _reading(240.0, consumption=140.0), _meter(), self._last_year(100.0), config,
        ) is None


class TestVacancyContradiction:
    """Consumption on a vacant unit."""

    def _unit(self, status):
        return Unit(id="u1", scheme_id="s1", unit_number="1A", status=status)

    def test_vacant_with_consumption(self):
        flag = check_vacancy_contradiction(
            _reading(160.0, consumption=60.0), _meter(unit_id="u1"), EMPTY, DEFAULTS,
            unit=self._unit(UnitStatus.VACANT),
        )
        assert flag.type == "vacancy-contradiction"
        assert flag.severity == "medium"

    def test_vacant_small_consumption(self):
        assert check_vacancy_contradiction(
            _reading(150.0, consumption=50.0), _meter(unit_id="u1"), EMPTY, DEFAULTS,
            unit=self._unit(UnitStatus.VACANT),
        ) is None

    def test_occupied(self):
        assert check_vacancy_contradiction(
            _reading(500.0, consumption=400.0), _meter(unit_id="u1"), EMPTY, DEFAULTS,
            unit=self._unit(UnitStatus.OCCUPIED),
        ) is None

    def test_no_unit(self):
        assert check_vacancy_contradiction(
            _reading(500.0, consumption=400.0), _meter(), EMPTY, DEFAULTS,
        ) is None


class TestRuleSetTotality:
    """Every rule returns None or a flag for edge-case inputs."""

    @pytest.mark.parametrize("rule", RULES)
    @pytest.mark.parametrize("last_reading,value,consumption", [
        (None, 0.0, None),
        (0.0, 0.0, 0.0),
        (100.0, 50.0, -50.0),
        (100.0, 100.0, 0.0),
    ])
    def test_no_exceptions(self, rule, last_reading, value, consumption):
        reading = _reading(value, consumption=consumption)
        result = rule(reading, _meter(last_reading), EMPTY, DEFAULTS, unit=None)
        assert result is None or isinstance(result, AutoFlag)

    def test_rules_do_not_suppress_each_other(self):
        flags = run_rules(
            _reading(400.0, consumption=300.0), _meter(), _series([10, 10, 10]), DEFAULTS,
        )
        assert [f.type for f in flags] == ["spike", "percentage-spike"]
