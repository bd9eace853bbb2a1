"""
Repository interface the engine reads records through, plus an
in-memory implementation for single-process use and tests.

Auto flags and manual flags are written by separate calls. No method
writes both, so a re-validation can never overwrite a manual edit.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Optional

from meterflags.models.enums import CycleStatus, MeterType
from meterflags.schemas.entities import Cycle, Meter, Reading, Unit
from meterflags.schemas.flags import AutoFlag, ManualFlag


_FLAG_FIELDS = {"flags", "manual_flags"}


class ReadingRepository(ABC):
    """Record access used by the validation engine."""

    @abstractmethod
    def get_meter(self, meter_id: str) -> Optional[Meter]:
        ...

    @abstractmethod
    def get_unit(self, unit_id: str) -> Optional[Unit]:
        ...

    @abstractmethod
    def get_cycle(self, cycle_id: str) -> Optional[Cycle]:
        ...

    @abstractmethod
    def get_reading(self, reading_id: str) -> Optional[Reading]:
        ...

    @abstractmethod
    def list_meters(
        self, scheme_id: str, meter_type: Optional[MeterType] = None,
    ) -> list[Meter]:
        ...

    @abstractmethod
    def list_readings(
        self, cycle_id: Optional[str] = None, meter_id: Optional[str] = None,
    ) -> list[Reading]:
        """Readings filtered by cycle and/or meter, in insertion order."""
        ...

    @abstractmethod
    def add_reading(self, reading: Reading) -> Reading:
        ...

    @abstractmethod
    def update_reading(self, reading_id: str, values: dict) -> Optional[Reading]:
        """
        Update scalar reading fields. Flag fields are rejected here;
        use save_auto_flags / save_manual_flags.
        """
        ...

    @abstractmethod
    def save_auto_flags(self, reading_id: str, flags: list[AutoFlag]) -> bool:
        ...

    @abstractmethod
    def save_manual_flags(self, reading_id: str, manual_flags: list[ManualFlag]) -> bool:
        ...

    @abstractmethod
    def update_meter_last_reading(
        self, meter_id: str, value: float, reading_date: date,
    ) -> bool:
        ...

    @abstractmethod
    def update_cycle_status(
        self, cycle_id: str, status: CycleStatus, closed_at: Optional[datetime],
    ) -> bool:
        ...


def check_scalar_update(values: dict) -> None:
    bad = _FLAG_FIELDS.intersection(values)
    if bad:
        raise ValueError(f"Flag fields must be saved separately: {sorted(bad)}")


class InMemoryRepository(ReadingRepository):
    """
    Dict-backed repository. Returns copies so callers cannot mutate
    stored state without going through the write methods.
    """

    def __init__(self):
        self.meters: dict[str, Meter] = {}
        self.units: dict[str, Unit] = {}
        self.cycles: dict[str, Cycle] = {}
        self.readings: dict[str, Reading] = {}

    # ── Seeding ──────────────────────────────────────────────

    def add_meter(self, meter: Meter) -> Meter:
        self.meters[meter.id] = meter.model_copy(deep=True)
        return meter

    def add_unit(self, unit: Unit) -> Unit:
        self.units[unit.id] = unit.model_copy(deep=True)
        return unit

    def add_cycle(self, cycle: Cycle) -> Cycle:
        self.cycles[cycle.id] = cycle.model_copy(deep=True)
        return cycle

    # ── Reads ────────────────────────────────────────────────

    def get_meter(self, meter_id: str) -> Optional[Meter]:
        return _copy(self.meters.get(meter_id))

    def get_unit(self, unit_id: str) -> Optional[Unit]:
        return _copy(self.units.get(unit_id))

    def get_cycle(self, cycle_id: str) -> Optional[Cycle]:
        return _copy(self.cycles.get(cycle_id))

    def get_reading(self, reading_id: str) -> Optional[Reading]:
        return _copy(self.readings.get(reading_id))

    def list_meters(
        self, scheme_id: str, meter_type: Optional[MeterType] = None,
    ) -> list[Meter]:
        return [
            m.model_copy(deep=True) for m in self.meters.values()
            if m.scheme_id == scheme_id
            and (meter_type is None or m.meter_type == meter_type)
        ]

    def list_readings(
        self, cycle_id: Optional[str] = None, meter_id: Optional[str] = None,
    ) -> list[Reading]:
        return [
            r.model_copy(deep=True) for r in self.readings.values()
            if (cycle_id is None or r.cycle_id == cycle_id)
            and (meter_id is None or r.meter_id == meter_id)
        ]

    # ── Writes ───────────────────────────────────────────────

    def add_reading(self, reading: Reading) -> Reading:
        self.readings[reading.id] = reading.model_copy(deep=True)
        return reading

    def update_reading(self, reading_id: str, values: dict) -> Optional[Reading]:
        check_scalar_update(values)
        stored = self.readings.get(reading_id)
        if stored is None:
            return None
        self.readings[reading_id] = stored.model_copy(update=values, deep=True)
        return self.get_reading(reading_id)

    def save_auto_flags(self, reading_id: str, flags: list[AutoFlag]) -> bool:
        stored = self.readings.get(reading_id)
        if stored is None:
            return False
        stored.flags = list(flags)
        return True

    def save_manual_flags(self, reading_id: str, manual_flags: list[ManualFlag]) -> bool:
        stored = self.readings.get(reading_id)
        if stored is None:
            return False
        stored.manual_flags = [f.model_copy() for f in manual_flags]
        return True

    def update_meter_last_reading(
        self, meter_id: str, value: float, reading_date: date,
    ) -> bool:
        meter = self.meters.get(meter_id)
        if meter is None:
            return False
        meter.last_reading = value
        meter.last_reading_date = reading_date
        return True

    def update_cycle_status(
        self, cycle_id: str, status: CycleStatus, closed_at: Optional[datetime],
    ) -> bool:
        cycle = self.cycles.get(cycle_id)
        if cycle is None:
            return False
        cycle.status = status
        cycle.closed_at = closed_at
        return True


def _copy(record):
    return record.model_copy(deep=True) if record is not None else None
