"""
Cycle-level bulk reconciliation.

    common_kwh       = bulk consumption - sum(unit consumptions)
    mismatch_percent = |common_kwh / bulk| * 100   (0 when bulk is 0)

Reconciliation is optional: no bulk meter, several bulk meters, or no
bulk reading in the cycle all return None.

Severity bands are relative to the configured threshold T, so every
firing flag lands in a reachable band:
    T < mismatch <= 1.5 T  -> medium
    mismatch > 1.5 T       -> high
With the default T = 20 these are the 20-30% / >30% bands.
"""

from typing import Optional

import structlog

from meterflags.engine.config_resolver import ConfigResolver
from meterflags.engine.consumption import effective_consumption
from meterflags.models.enums import FlagType, MeterType, Severity
from meterflags.observability.metrics import reconciliation_checks_total
from meterflags.schemas.flags import ReconciliationDetails, ReconciliationFlag
from meterflags.storage.repository import ReadingRepository

logger = structlog.get_logger(__name__)


HIGH_BAND_FACTOR = 1.5


def reconciliation_severity(mismatch_percent: float, threshold: float) -> Severity:
    if mismatch_percent > threshold * HIGH_BAND_FACTOR:
        return Severity.HIGH
    return Severity.MEDIUM


def compute_mismatch(bulk_kwh: float, sum_units_kwh: float) -> ReconciliationDetails:
    common_kwh = bulk_kwh - sum_units_kwh
    mismatch = abs(common_kwh / bulk_kwh * 100) if bulk_kwh != 0 else 0.0
    return ReconciliationDetails(
        bulk_kwh=bulk_kwh,
        sum_units_kwh=sum_units_kwh,
        common_kwh=common_kwh,
        mismatch_percent=mismatch,
    )


class BulkReconciler:

    def __init__(self, repository: ReadingRepository, resolver: ConfigResolver):
        self.repository = repository
        self.resolver = resolver

    def check_bulk_reconciliation(self, cycle_id: str) -> Optional[ReconciliationFlag]:
        cycle = self.repository.get_cycle(cycle_id)
        if cycle is None:
            reconciliation_checks_total.labels(outcome="no_cycle").inc()
            return None

        bulk_meters = self.repository.list_meters(cycle.scheme_id, MeterType.BULK)
        if len(bulk_meters) != 1:
            if bulk_meters:
                logger.warning(
                    "reconciliation_multiple_bulk_meters",
                    cycle_id=cycle_id,
                    scheme_id=cycle.scheme_id,
                    bulk_meter_ids=[m.id for m in bulk_meters],
                )
            reconciliation_checks_total.labels(outcome="no_bulk_meter").inc()
            return None
        bulk_meter = bulk_meters[0]

        readings = self.repository.list_readings(cycle_id=cycle_id)
        bulk_kwh = next(
            (effective_consumption(r) for r in readings
             if r.meter_id == bulk_meter.id and effective_consumption(r) is not None),
            None,
        )
        if bulk_kwh is None:
            reconciliation_checks_total.labels(outcome="no_bulk_reading").inc()
            return None

        unit_meter_ids = {
            m.id for m in self.repository.list_meters(cycle.scheme_id, MeterType.UNIT)
        }
        unit_consumptions = [
            effective_consumption(r) for r in readings if r.meter_id in unit_meter_ids
        ]
        sum_units = sum(c for c in unit_consumptions if c is not None)

        details = compute_mismatch(bulk_kwh, sum_units)
        config = self.resolver.resolve_config(cycle.scheme_id)
        threshold = config.bulk_mismatch_threshold

        if details.mismatch_percent <= threshold:
            reconciliation_checks_total.labels(outcome="within_threshold").inc()
            return None

        severity = reconciliation_severity(details.mismatch_percent, threshold)
        reconciliation_checks_total.labels(outcome="flagged").inc()
        logger.info(
            "bulk_mismatch_flagged",
            cycle_id=cycle_id,
            mismatch_percent=round(details.mismatch_percent, 2),
            threshold=threshold,
            severity=severity.value,
        )

        pct = details.mismatch_percent
        return ReconciliationFlag(
            type=FlagType.BULK_MISMATCH.value,
            severity=severity,
            message=f"Bulk reconciliation issue: {pct:.1f}% discrepancy",
            description=(
                f"Bulk meter: {details.bulk_kwh:.2f} kWh, "
                f"Sum of units: {details.sum_units_kwh:.2f} kWh, "
                f"Common area: {details.common_kwh:.2f} kWh ({pct:.1f}%)"
            ),
            details=details,
        )
