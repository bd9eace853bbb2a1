"""
Historical series accessor.

A meter's series is its past readings with a known consumption, newest
first. "Past" is relative to the reading under validation: only readings
dated strictly before it are kept, so a re-validation sees the same
history the capture did.

Averages over an empty series are 0, which callers read as "no basis
for comparison" and skip the rule.
"""

import math
from datetime import date
from typing import Optional

from pydantic import BaseModel

from meterflags.config import settings
from meterflags.models.enums import FlagType, Severity
from meterflags.schemas.entities import Meter, Reading
from meterflags.storage.repository import ReadingRepository

# Capture hint: consumption above this multiple of the average is a spike
SPIKE_HINT_FACTOR = 3


class ReadingSeries:
    """Ordered history for one meter (most recent first)."""

    def __init__(self, readings: list[Reading]):
        with_consumption = [r for r in readings if r.consumption is not None]
        self.readings = sorted(
            with_consumption, key=lambda r: r.reading_date, reverse=True,
        )

    def __len__(self) -> int:
        return len(self.readings)

    def __iter__(self):
        return iter(self.readings)

    def consumptions(self, limit: Optional[int] = None) -> list[float]:
        items = self.readings if limit is None else self.readings[:limit]
        return [r.consumption for r in items]

    def moving_average(self, window_size: int) -> float:
        window = self.consumptions(window_size)
        if not window:
            return 0.0
        return sum(window) / len(window)

    def previous_cycle_consumption(self) -> float:
        if not self.readings:
            return 0.0
        return self.readings[0].consumption

    def same_season_reading(
        self, current_date: date, months_back: int,
    ) -> Optional[Reading]:
        """
        First reading dated months_back (plus or minus one) calendar months
        before current_date. Later readings never match.
        """
        current_index = _month_index(current_date)
        for reading in self.readings:
            month_diff = current_index - _month_index(reading.reading_date)
            if months_back - 1 <= month_diff <= months_back + 1:
                return reading
        return None


class ExpectedRange(BaseModel):
    has_history: bool = False
    average: Optional[float] = None
    typical_low: Optional[float] = None
    typical_high: Optional[float] = None
    message: str = "No historical data yet"


class ExpectedReading(BaseModel):
    expected_low: float
    expected_high: float
    message: str


class CaptureFeedback(BaseModel):
    """
    Advisory result for a value typed at capture time. Only a value that
    is not a number is invalid; every other outcome may be submitted.
    """
    valid: bool = True
    severity: Optional[Severity] = None   # None: nothing to report
    flag: Optional[str] = None
    message: str
    context: Optional[str] = None


class HistoryAccessor:
    """Builds reading series from the repository, keyed by meter id."""

    def __init__(self, repository: ReadingRepository):
        self.repository = repository

    def series(
        self,
        meter_id: str,
        before: Optional[date] = None,
        exclude_reading_id: Optional[str] = None,
    ) -> ReadingSeries:
        """
        Readings of a meter dated strictly before `before` (all of them
        when `before` is None), minus the excluded reading.
        """
        readings = self.repository.list_readings(meter_id=meter_id)
        if before is not None:
            readings = [r for r in readings if r.reading_date < before]
        if exclude_reading_id is not None:
            readings = [r for r in readings if r.id != exclude_reading_id]
        return ReadingSeries(readings)

    def moving_average(
        self, meter_id: str, window_size: int, before: Optional[date] = None,
    ) -> float:
        return self.series(meter_id, before=before).moving_average(window_size)

    def previous_cycle_consumption(
        self, meter_id: str, before: Optional[date] = None,
    ) -> float:
        return self.series(meter_id, before=before).previous_cycle_consumption()

    def same_season_reading(
        self, meter_id: str, current_date: date, months_back: int,
    ) -> Optional[Reading]:
        series = self.series(meter_id, before=current_date)
        return series.same_season_reading(current_date, months_back)

    def expected_range(self, meter_id: str) -> ExpectedRange:
        """Typical consumption band around the recent average, for capture hints."""
        average = self.moving_average(meter_id, settings.EXPECTED_RANGE_WINDOW)
        if average == 0:
            return ExpectedRange()

        spread = settings.EXPECTED_RANGE_SPREAD
        low = round(average * (1 - spread))
        high = round(average * (1 + spread))
        return ExpectedRange(
            has_history=True,
            average=round(average),
            typical_low=low,
            typical_high=high,
            message=f"Typical usage: {low}–{high} kWh",
        )

    def expected_reading(self, meter: Meter) -> Optional[ExpectedReading]:
        if not meter.last_reading:
            return None
        band = self.expected_range(meter.id)
        if not band.has_history:
            return None

        low = round(meter.last_reading + band.typical_low)
        high = round(meter.last_reading + band.typical_high)
        return ExpectedReading(
            expected_low=low,
            expected_high=high,
            message=f"Expected reading: {low}–{high}",
        )

    def realtime_feedback(self, meter: Meter, value) -> CaptureFeedback:
        """
        Classify a candidate reading before it is submitted. Checks run in
        order and the first match wins: backward, zero, unchanged, then the
        candidate's consumption against the expected range.
        """
        try:
            reading = float(value)
        except (TypeError, ValueError):
            return CaptureFeedback(valid=False, message="Please enter a valid number")
        if math.isnan(reading):
            return CaptureFeedback(valid=False, message="Please enter a valid number")

        last = meter.last_reading or 0.0
        consumption = reading - last

        if reading < last:
            return CaptureFeedback(
                severity=Severity.HIGH,
                flag=FlagType.BACKWARD.value,
                message="Lower than previous reading. This will be flagged for review.",
                context=f"Previous: {last:.2f} -> Current: {reading:.2f}",
            )
        if consumption == 0 and last > 0:
            return CaptureFeedback(
                severity=Severity.MEDIUM,
                flag=FlagType.ZERO_CONSUMPTION.value,
                message="No consumption detected. It will be reviewed.",
                context="Reading unchanged from last month",
            )
        if reading == last:
            return CaptureFeedback(
                severity=Severity.MEDIUM,
                flag=FlagType.UNCHANGED.value,
                message="Same as last reading. It will be reviewed.",
                context="No change detected",
            )

        band = self.expected_range(meter.id)
        if not band.has_history:
            return CaptureFeedback(
                message="Reading accepted",
                context=f"Consumption: {consumption:.2f} kWh",
            )

        typical = f"typical: {band.typical_low:g}–{band.typical_high:g} kWh"
        if consumption > band.average * SPIKE_HINT_FACTOR:
            return CaptureFeedback(
                severity=Severity.HIGH,
                flag=FlagType.SPIKE.value,
                message="Much higher than usual. It will be reviewed.",
                context=f"Consumption: {consumption:.2f} kWh (usual: ~{band.average:g} kWh)",
            )
        if consumption > band.typical_high:
            return CaptureFeedback(
                severity=Severity.LOW,
                flag="above-typical",
                message="Higher than typical usage",
                context=f"Consumption: {consumption:.2f} kWh ({typical})",
            )
        if 0 < consumption < band.typical_low:
            return CaptureFeedback(
                severity=Severity.LOW,
                flag="below-typical",
                message="Lower than typical usage",
                context=f"Consumption: {consumption:.2f} kWh ({typical})",
            )
        return CaptureFeedback(
            message="Within typical range",
            context=f"Consumption: {consumption:.2f} kWh",
        )


def _month_index(d: date) -> int:
    return d.year * 12 + d.month - 1
