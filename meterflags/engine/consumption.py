"""
Consumption calculation.
"""

from typing import Optional

from meterflags.models.enums import ReviewStatus
from meterflags.schemas.entities import Meter, Reading


def calculate_consumption(current: float, previous: Optional[float]) -> Optional[float]:
    """
    Consumption between two register values.
    None when there is no previous value: the reading is a baseline.
    Negative results are returned as-is; the backward rule flags them.
    """
    if previous is None:
        return None
    return current - previous


def prior_value(reading: Reading, meter: Meter) -> Optional[float]:
    """
    Register value the reading is compared against.

    A saved reading keeps the previous value it was captured against, so
    re-validation after meter.last_reading has advanced still compares
    against the right value. Unsaved candidates use the meter.
    """
    if reading.previous_reading is not None:
        return reading.previous_reading
    return meter.last_reading


def effective_consumption(reading: Reading) -> Optional[float]:
    """Consumption after review: an estimate replaces the computed value."""
    if reading.review_status == ReviewStatus.ESTIMATED and reading.estimated_value is not None:
        return reading.estimated_value
    return reading.consumption
