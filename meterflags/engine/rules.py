"""
Flag rule set.

Every rule is a pure function of (reading, meter, series, config, unit)
returning one AutoFlag or None. Rules run independently and in the
order of RULES; no rule suppresses another.

A rule whose history, linkage or consumption is missing returns None.
"""

from typing import Callable, Optional

from meterflags.engine.consumption import calculate_consumption, prior_value
from meterflags.engine.history import ReadingSeries
from meterflags.models.enums import FlagType, Severity, UnitStatus
from meterflags.schemas.entities import Meter, Reading, Unit
from meterflags.schemas.flags import AutoFlag
from meterflags.schemas.validation_config import ValidationConfig


# Fixed thresholds (not part of ValidationConfig)
CREEP_WINDOW = 6
CREEP_MIN_CYCLES = 4
SEASONAL_VARIANCE_PERCENT = 30.0
VACANCY_CONSUMPTION_KWH = 50.0


Rule = Callable[..., Optional[AutoFlag]]


def reading_consumption(reading: Reading, meter: Meter) -> Optional[float]:
    """Stored consumption, or derived from the prior value for candidates."""
    if reading.consumption is not None:
        return reading.consumption
    return calculate_consumption(reading.reading_value, prior_value(reading, meter))


# ── Rules ────────────────────────────────────────────────────

def check_backward(
    reading: Reading,
    meter: Meter,
    series: ReadingSeries,
    config: ValidationConfig,
    unit: Optional[Unit] = None,
) -> Optional[AutoFlag]:
    last = prior_value(reading, meter)
    if config.backward_allowed or last is None:
        return None
    if reading.reading_value >= last:
        return None

    return AutoFlag(
        type=FlagType.BACKWARD.value,
        severity=Severity.HIGH,
        message=f"Backward reading: {_fmt(reading.reading_value)} < {_fmt(last)}",
        description="Reading decreased from previous value. Possible meter rollover or replacement.",
    )


def check_spike(
    reading: Reading,
    meter: Meter,
    series: ReadingSeries,
    config: ValidationConfig,
    unit: Optional[Unit] = None,
) -> Optional[AutoFlag]:
    consumption = reading_consumption(reading, meter)
    if consumption is None:
        return None

    average = series.moving_average(config.min_history_cycles)
    if average <= 0:
        return None
    if consumption <= average * config.spike_multiplier:
        return None

    multiplier = _fmt(config.spike_multiplier)
    return AutoFlag(
        type=FlagType.SPIKE.value,
        severity=Severity.HIGH,
        message=(
            f"Huge spike: {consumption:.2f} kWh "
            f"(avg: {average:.2f} kWh, threshold: {multiplier}×)"
        ),
        description=(
            f"Consumption exceeds {multiplier}× historical average. "
            "May indicate leak or reading error."
        ),
    )


def check_percentage_spike(
    reading: Reading,
    meter: Meter,
    series: ReadingSeries,
    config: ValidationConfig,
    unit: Optional[Unit] = None,
) -> Optional[AutoFlag]:
    consumption = reading_consumption(reading, meter)
    if consumption is None:
        return None

    previous = series.previous_cycle_consumption()
    if previous <= 0:
        return None
    if consumption <= previous * (1 + config.percentage_threshold / 100):
        return None

    increase = (consumption - previous) / previous * 100
    return AutoFlag(
        type=FlagType.PERCENTAGE_SPIKE.value,
        severity=Severity.MEDIUM,
        message=(
            f"{increase:.1f}% increase from last cycle "
            f"(was {previous:.2f} kWh, now {consumption:.2f} kWh)"
        ),
        description=(
            f"Consumption increased by more than {_fmt(config.percentage_threshold)}%. "
            "Review for accuracy."
        ),
    )


def check_zero_consumption(
    reading: Reading,
    meter: Meter,
    series: ReadingSeries,
    config: ValidationConfig,
    unit: Optional[Unit] = None,
) -> Optional[AutoFlag]:
    if not config.zero_tolerance:
        return None
    last = prior_value(reading, meter)
    consumption = reading_consumption(reading, meter)
    if last is None or last <= 0 or consumption != 0:
        return None

    return AutoFlag(
        type=FlagType.ZERO_CONSUMPTION.value,
        severity=Severity.MEDIUM,
        message="Zero consumption detected",
        description="No electricity used this cycle. Verify unit occupancy and meter status.",
    )


def check_unchanged(
    reading: Reading,
    meter: Meter,
    series: ReadingSeries,
    config: ValidationConfig,
    unit: Optional[Unit] = None,
) -> Optional[AutoFlag]:
    # Fires for a last value of 0 too, unlike zero-consumption
    last = prior_value(reading, meter)
    if last is None or reading.reading_value != last:
        return None

    return AutoFlag(
        type=FlagType.UNCHANGED.value,
        severity=Severity.MEDIUM,
        message="Reading unchanged from previous cycle",
        description=(
            "Meter reading identical to last cycle. "
            "Check if meter is stuck or reading was not updated."
        ),
    )


def check_gradual_creep(
    reading: Reading,
    meter: Meter,
    series: ReadingSeries,
    config: ValidationConfig,
    unit: Optional[Unit] = None,
) -> Optional[AutoFlag]:
    creep = detect_gradual_creep(series, config.gradual_creep_threshold)
    if creep is None:
        return None

    average_increase, cycles = creep
    return AutoFlag(
        type=FlagType.GRADUAL_CREEP.value,
        severity=Severity.LOW,
        message=f"Gradual increase detected: {average_increase:.1f}% per cycle over {cycles} cycles",
        description=(
            "Usage consistently increasing. May indicate growing occupancy, "
            "new appliances, or developing issue."
        ),
    )


def check_seasonal_anomaly(
    reading: Reading,
    meter: Meter,
    series: ReadingSeries,
    config: ValidationConfig,
    unit: Optional[Unit] = None,
) -> Optional[AutoFlag]:
    consumption = reading_consumption(reading, meter)
    if not consumption:
        return None

    match = series.same_season_reading(reading.reading_date, config.seasonal_comparison_months)
    if match is None or not match.consumption:
        return None

    last_year = match.consumption
    difference = consumption - last_year
    percent_diff = difference / last_year * 100
    if abs(percent_diff) <= SEASONAL_VARIANCE_PERCENT:
        return None

    direction = "Higher" if difference > 0 else "Lower"
    return AutoFlag(
        type=FlagType.SEASONAL_ANOMALY.value,
        severity=Severity.LOW,
        message=f"{direction} than same period last year by {abs(percent_diff):.1f}%",
        description=(
            f"Last year same period: {last_year:.2f} kWh. "
            f"Current: {consumption:.2f} kWh."
        ),
    )


def check_vacancy_contradiction(
    reading: Reading,
    meter: Meter,
    series: ReadingSeries,
    config: ValidationConfig,
    unit: Optional[Unit] = None,
) -> Optional[AutoFlag]:
    if unit is None or unit.status != UnitStatus.VACANT:
        return None
    consumption = reading_consumption(reading, meter)
    if consumption is None or consumption <= VACANCY_CONSUMPTION_KWH:
        return None

    return AutoFlag(
        type=FlagType.VACANCY_CONTRADICTION.value,
        severity=Severity.MEDIUM,
        message=f"Unit marked VACANT but consumed {consumption:.2f} kWh",
        description=(
            "Significant consumption detected in vacant unit. "
            "Update occupancy status or investigate unauthorized usage."
        ),
    )


# Evaluation order is emission order
RULES: list[Rule] = [
    check_backward,
    check_spike,
    check_percentage_spike,
    check_zero_consumption,
    check_unchanged,
    check_gradual_creep,
    check_seasonal_anomaly,
    check_vacancy_contradiction,
]


def run_rules(
    reading: Reading,
    meter: Meter,
    series: ReadingSeries,
    config: ValidationConfig,
    unit: Optional[Unit] = None,
) -> list[AutoFlag]:
    flags = []
    for rule in RULES:
        flag = rule(reading, meter, series, config, unit=unit)
        if flag is not None:
            flags.append(flag)
    return flags


# ── Helper Functions ─────────────────────────────────────────

def detect_gradual_creep(
    series: ReadingSeries, threshold_percent: float,
) -> Optional[tuple[float, int]]:
    """
    Look at the last CREEP_WINDOW consumptions (newest first). Returns
    (average % increase per transition, cycles examined) when at least
    half of the transitions rise and the average meets the threshold.
    """
    window = series.consumptions(CREEP_WINDOW)
    if len(window) < CREEP_MIN_CYCLES:
        return None

    transitions = len(window) - 1
    increasing = 0
    total_increase = 0.0
    for current, previous in zip(window, window[1:]):
        if current > previous and previous > 0:
            increasing += 1
            total_increase += (current - previous) / previous * 100

    average_increase = total_increase / transitions
    if increasing >= transitions / 2 and average_increase >= threshold_percent:
        return average_increase, len(window)
    return None


def _fmt(value: float) -> str:
    """Render whole numbers without a trailing .0."""
    return f"{value:g}"
