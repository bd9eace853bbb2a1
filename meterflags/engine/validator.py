"""
Validation engine: capture, validate and re-validate readings.

Flow for a capture:
  consumption calculator -> every rule in the rule set -> flags stored
  on the reading -> meter.last_reading advanced.

Missing linkage (meter, cycle, unit) reduces the flags produced; it
never fails a validation.
"""

import time
import uuid
from datetime import date
from typing import Optional

import structlog

from meterflags.engine.config_resolver import ConfigResolver
from meterflags.engine.consumption import calculate_consumption
from meterflags.engine.history import CaptureFeedback, HistoryAccessor
from meterflags.engine.rules import run_rules
from meterflags.errors import NotFoundError
from meterflags.models.enums import CycleStatus, ReviewStatus
from meterflags.observability.metrics import (
    flags_emitted_total,
    readings_validated_total,
    validation_duration_seconds,
)
from meterflags.schemas.entities import Reading
from meterflags.schemas.flags import AutoFlag
from meterflags.storage.repository import ReadingRepository

logger = structlog.get_logger(__name__)


class ValidationEngine:
    """Runs the flag rule set with an injected repository and config resolver."""

    def __init__(self, repository: ReadingRepository, resolver: ConfigResolver):
        self.repository = repository
        self.resolver = resolver
        self.history = HistoryAccessor(repository)

    def validate_reading(self, reading: Reading, trigger: str = "validate") -> list[AutoFlag]:
        """
        Evaluate every rule for a reading. Returns the complete auto-flag
        list; nothing is stored.
        """
        meter = self.repository.get_meter(reading.meter_id)
        if meter is None:
            logger.warning(
                "validation_skipped_unknown_meter",
                reading_id=reading.id,
                meter_id=reading.meter_id,
            )
            return []

        started = time.perf_counter()

        cycle = self.repository.get_cycle(reading.cycle_id)
        scheme_id = cycle.scheme_id if cycle is not None else meter.scheme_id
        config = self.resolver.resolve_config(scheme_id)
        unit = self.repository.get_unit(meter.unit_id) if meter.unit_id else None
        series = self.history.series(
            meter.id, before=reading.reading_date, exclude_reading_id=reading.id,
        )

        flags = run_rules(reading, meter, series, config, unit=unit)

        validation_duration_seconds.observe(time.perf_counter() - started)
        readings_validated_total.labels(trigger=trigger).inc()
        for flag in flags:
            flags_emitted_total.labels(
                flag_type=flag.type, severity=flag.severity.value,
            ).inc()

        logger.info(
            "reading_validated",
            reading_id=reading.id,
            meter_id=meter.id,
            scheme_id=scheme_id,
            history_cycles=len(series),
            flag_count=len(flags),
            flag_types=[f.type for f in flags],
        )
        return flags

    def capture_reading(
        self,
        cycle_id: str,
        meter_id: str,
        reading_value: float,
        reading_date: date,
        captured_by: Optional[str] = None,
        notes: Optional[str] = None,
        reading_id: Optional[str] = None,
    ) -> Reading:
        """
        Create, validate and persist a reading, then advance the meter.

        A meter has at most one reading per cycle. Capturing again into the
        same cycle corrects the existing reading: it keeps its id, its
        previous value and its manual flags, while consumption, auto flags
        and the review outcome start over.

        Readings captured into a CLOSED cycle are accepted and marked late;
        whether late captures are allowed is the caller's policy.
        """
        meter = self.repository.get_meter(meter_id)
        if meter is None:
            raise NotFoundError("Meter", meter_id)
        cycle = self.repository.get_cycle(cycle_id)
        if cycle is None:
            raise NotFoundError("Cycle", cycle_id)

        existing = next(
            iter(self.repository.list_readings(cycle_id=cycle_id, meter_id=meter_id)),
            None,
        )
        if existing is not None:
            previous = existing.previous_reading
        else:
            previous = meter.last_reading

        reading = Reading(
            id=existing.id if existing is not None else (reading_id or str(uuid.uuid4())),
            cycle_id=cycle_id,
            meter_id=meter_id,
            reading_value=reading_value,
            previous_reading=previous,
            consumption=calculate_consumption(reading_value, previous),
            reading_date=reading_date,
            captured_by=captured_by,
            notes=notes,
            manual_flags=existing.manual_flags if existing is not None else [],
            is_late=cycle.status == CycleStatus.CLOSED,
        )
        reading = reading.model_copy(
            update={"flags": self.validate_reading(reading, trigger="capture")}
        )

        if existing is None:
            self.repository.add_reading(reading)
        else:
            self.repository.update_reading(reading.id, _correction_values(reading))
            self.repository.save_auto_flags(reading.id, reading.flags)
        self.repository.update_meter_last_reading(meter_id, reading_value, reading_date)

        logger.info(
            "reading_corrected" if existing is not None else "reading_captured",
            reading_id=reading.id,
            meter_id=meter_id,
            cycle_id=cycle_id,
            consumption=reading.consumption,
            is_late=reading.is_late,
        )
        return reading

    def capture_feedback(self, meter_id: str, value) -> CaptureFeedback:
        """Advisory check of a value before capture_reading is called."""
        meter = self.repository.get_meter(meter_id)
        if meter is None:
            return CaptureFeedback(valid=False, message="Meter not found")
        return self.history.realtime_feedback(meter, value)

    def revalidate_reading(self, reading_id: str) -> Optional[list[AutoFlag]]:
        """
        Regenerate a stored reading's auto flags in full. Manual flags are
        not read or written. Returns None if the reading does not exist.
        """
        reading = self.repository.get_reading(reading_id)
        if reading is None:
            return None

        flags = self.validate_reading(reading, trigger="revalidate")
        self.repository.save_auto_flags(reading_id, flags)
        return flags


def _correction_values(reading: Reading) -> dict:
    """Scalar fields rewritten when a cycle's reading is captured again."""
    return {
        "reading_value": reading.reading_value,
        "previous_reading": reading.previous_reading,
        "consumption": reading.consumption,
        "reading_date": reading.reading_date,
        "captured_by": reading.captured_by,
        "notes": reading.notes,
        "is_late": reading.is_late,
        "review_status": ReviewStatus.PENDING,
        "estimated_value": None,
        "admin_notes": None,
        "reviewed_by": None,
        "reviewed_at": None,
    }
