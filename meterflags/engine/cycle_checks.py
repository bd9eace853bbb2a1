"""
Cycle housekeeping: missing readings, duplicate meter numbers, flag
summaries, closure readiness and closing.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog
from pydantic import BaseModel

from meterflags.errors import CycleClosedError, NotFoundError
from meterflags.models.enums import CycleStatus, MeterType, ReviewStatus, Severity
from meterflags.schemas.entities import Cycle, Meter
from meterflags.schemas.flags import FlagSummary
from meterflags.storage.repository import ReadingRepository

logger = structlog.get_logger(__name__)


class DuplicateMeter(BaseModel):
    meter_number: str
    meter_ids: list[str]


class SetupWarning(BaseModel):
    type: str
    severity: Severity
    message: str


class ClosureReadiness(BaseModel):
    cycle_id: str
    total_units: int
    units_read: int
    units_not_read: int
    completion_rate: int                  # Whole percent
    is_complete: bool
    missing_meter_ids: list[str] = []
    flagged_readings: int = 0
    flags_by_type: dict[str, int] = {}
    has_high_flags: bool = False
    unreviewed_flags: int = 0
    should_warn: bool = False


class CycleChecks:

    def __init__(self, repository: ReadingRepository):
        self.repository = repository

    def get_missing_readings(self, cycle_id: str) -> list[Meter]:
        """UNIT meters of the cycle's scheme with no reading in the cycle."""
        cycle = self.repository.get_cycle(cycle_id)
        if cycle is None:
            return []

        meters = self.repository.list_meters(cycle.scheme_id, MeterType.UNIT)
        read_meter_ids = {r.meter_id for r in self.repository.list_readings(cycle_id=cycle_id)}
        return [m for m in meters if m.id not in read_meter_ids]

    def check_duplicate_meters(self, scheme_id: str) -> list[DuplicateMeter]:
        first_seen: dict[str, str] = {}
        duplicates = []
        for meter in self.repository.list_meters(scheme_id):
            if meter.meter_number in first_seen:
                duplicates.append(DuplicateMeter(
                    meter_number=meter.meter_number,
                    meter_ids=[first_seen[meter.meter_number], meter.id],
                ))
            else:
                first_seen[meter.meter_number] = meter.id
        return duplicates

    def check_bulk_meter_presence(self, scheme_id: str) -> list[SetupWarning]:
        """Exactly one bulk meter per scheme is expected but not enforced."""
        bulk = self.repository.list_meters(scheme_id, MeterType.BULK)
        if not bulk:
            return [SetupWarning(
                type="no-bulk-meter",
                severity=Severity.MEDIUM,
                message="No bulk meter registered",
            )]
        if len(bulk) > 1:
            return [SetupWarning(
                type="multiple-bulk-meters",
                severity=Severity.MEDIUM,
                message=f"{len(bulk)} bulk meters registered; reconciliation needs exactly one",
            )]
        return []

    def get_cycle_flags_summary(self, cycle_id: str) -> FlagSummary:
        readings = self.repository.list_readings(cycle_id=cycle_id)
        summary = FlagSummary(total=len(readings))

        for reading in readings:
            if not reading.flags:
                continue
            summary.flagged += 1
            for flag in reading.flags:
                summary.by_type[flag.type] = summary.by_type.get(flag.type, 0) + 1
                key = flag.severity.value
                summary.by_severity[key] = summary.by_severity.get(key, 0) + 1
        return summary

    def get_closure_readiness(self, cycle_id: str) -> Optional[ClosureReadiness]:
        cycle = self.repository.get_cycle(cycle_id)
        if cycle is None:
            return None

        total_units = len(self.repository.list_meters(cycle.scheme_id, MeterType.UNIT))
        readings = self.repository.list_readings(cycle_id=cycle_id)
        missing = self.get_missing_readings(cycle_id)
        summary = self.get_cycle_flags_summary(cycle_id)

        units_read = total_units - len(missing)
        is_complete = not missing
        has_high_flags = any(
            f.severity == Severity.HIGH for r in readings for f in r.flags
        )
        unreviewed = sum(
            1 for r in readings
            if r.flags and r.review_status == ReviewStatus.PENDING
        )

        return ClosureReadiness(
            cycle_id=cycle_id,
            total_units=total_units,
            units_read=units_read,
            units_not_read=len(missing),
            completion_rate=round(units_read / total_units * 100) if total_units else 0,
            is_complete=is_complete,
            missing_meter_ids=[m.id for m in missing],
            flagged_readings=summary.flagged,
            flags_by_type=summary.by_type,
            has_high_flags=has_high_flags,
            unreviewed_flags=unreviewed,
            should_warn=not is_complete or has_high_flags or unreviewed > 0,
        )

    def close_cycle(self, cycle_id: str) -> Cycle:
        """OPEN -> CLOSED. There is no transition back."""
        cycle = self.repository.get_cycle(cycle_id)
        if cycle is None:
            raise NotFoundError("Cycle", cycle_id)
        if cycle.status == CycleStatus.CLOSED:
            raise CycleClosedError(cycle_id)

        closed_at = datetime.now(timezone.utc)
        self.repository.update_cycle_status(cycle_id, CycleStatus.CLOSED, closed_at)
        logger.info("cycle_closed", cycle_id=cycle_id, scheme_id=cycle.scheme_id)
        return cycle.model_copy(update={"status": CycleStatus.CLOSED, "closed_at": closed_at})
