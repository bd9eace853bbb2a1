"""
SQLAlchemy-backed repository and config store.

Each write method runs in its own short transaction. Auto flags and
manual flags are written with column-scoped UPDATE statements so one
never rewrites the other.
"""

import json
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.orm import sessionmaker

from meterflags.models.enums import CycleStatus, MeterType
from meterflags.models.tables import (
    CycleRow,
    MeterRow,
    ReadingRow,
    UnitRow,
    ValidationConfigRow,
)
from meterflags.schemas.entities import Cycle, Meter, Reading, Unit
from meterflags.schemas.flags import AutoFlag, ManualFlag
from meterflags.storage.config_store import ConfigStore
from meterflags.storage.repository import ReadingRepository, check_scalar_update

logger = structlog.get_logger(__name__)


class SqlRepository(ReadingRepository):

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    # ── Seeding ──────────────────────────────────────────────

    def add_meter(self, meter: Meter) -> Meter:
        self._add(MeterRow(**_column_values(meter.model_dump())))
        return meter

    def add_unit(self, unit: Unit) -> Unit:
        self._add(UnitRow(**_column_values(unit.model_dump())))
        return unit

    def add_cycle(self, cycle: Cycle) -> Cycle:
        self._add(CycleRow(**_column_values(cycle.model_dump())))
        return cycle

    # ── Reads ────────────────────────────────────────────────

    def get_meter(self, meter_id: str) -> Optional[Meter]:
        return self._get(MeterRow, meter_id, Meter)

    def get_unit(self, unit_id: str) -> Optional[Unit]:
        return self._get(UnitRow, unit_id, Unit)

    def get_cycle(self, cycle_id: str) -> Optional[Cycle]:
        return self._get(CycleRow, cycle_id, Cycle)

    def get_reading(self, reading_id: str) -> Optional[Reading]:
        return self._get(ReadingRow, reading_id, Reading)

    def list_meters(
        self, scheme_id: str, meter_type: Optional[MeterType] = None,
    ) -> list[Meter]:
        stmt = select(MeterRow).where(MeterRow.scheme_id == scheme_id)
        if meter_type is not None:
            stmt = stmt.where(MeterRow.meter_type == MeterType(meter_type).value)
        with self.session_factory() as session:
            rows = session.execute(stmt.order_by(MeterRow.id)).scalars().all()
            return [Meter.model_validate(row) for row in rows]

    def list_readings(
        self, cycle_id: Optional[str] = None, meter_id: Optional[str] = None,
    ) -> list[Reading]:
        stmt = select(ReadingRow)
        if cycle_id is not None:
            stmt = stmt.where(ReadingRow.cycle_id == cycle_id)
        if meter_id is not None:
            stmt = stmt.where(ReadingRow.meter_id == meter_id)
        with self.session_factory() as session:
            rows = session.execute(
                stmt.order_by(ReadingRow.reading_date, ReadingRow.id)
            ).scalars().all()
            return [Reading.model_validate(row) for row in rows]

    # ── Writes ───────────────────────────────────────────────

    def add_reading(self, reading: Reading) -> Reading:
        values = _column_values(reading.model_dump(exclude={"flags", "manual_flags"}))
        row = ReadingRow(
            **values,
            flags=[f.model_dump(mode="json") for f in reading.flags],
            manual_flags=[f.model_dump(mode="json") for f in reading.manual_flags],
        )
        self._add(row)
        return reading

    def update_reading(self, reading_id: str, values: dict) -> Optional[Reading]:
        check_scalar_update(values)
        if not self._update(ReadingRow, reading_id, _column_values(values)):
            return None
        return self.get_reading(reading_id)

    def save_auto_flags(self, reading_id: str, flags: list[AutoFlag]) -> bool:
        return self._update(
            ReadingRow, reading_id,
            {"flags": [f.model_dump(mode="json") for f in flags]},
        )

    def save_manual_flags(self, reading_id: str, manual_flags: list[ManualFlag]) -> bool:
        return self._update(
            ReadingRow, reading_id,
            {"manual_flags": [f.model_dump(mode="json") for f in manual_flags]},
        )

    def update_meter_last_reading(
        self, meter_id: str, value: float, reading_date: date,
    ) -> bool:
        return self._update(
            MeterRow, meter_id,
            {"last_reading": value, "last_reading_date": reading_date},
        )

    def update_cycle_status(
        self, cycle_id: str, status: CycleStatus, closed_at: Optional[datetime],
    ) -> bool:
        return self._update(
            CycleRow, cycle_id,
            {"status": CycleStatus(status).value, "closed_at": closed_at},
        )

    # ── Helpers ──────────────────────────────────────────────

    def _add(self, row) -> None:
        with self.session_factory.begin() as session:
            session.add(row)

    def _get(self, row_cls, record_id: str, schema_cls):
        with self.session_factory() as session:
            row = session.get(row_cls, record_id)
            return schema_cls.model_validate(row) if row is not None else None

    def _update(self, row_cls, record_id: str, values: dict) -> bool:
        with self.session_factory.begin() as session:
            result = session.execute(
                update(row_cls).where(row_cls.id == record_id).values(**values)
            )
            return result.rowcount > 0


class SqlConfigStore(ConfigStore):
    """
    Stores each scope's override as a JSON text blob. Blobs are returned
    raw; a malformed blob is the resolver's concern.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def get(self, scope: str) -> Optional[Any]:
        with self.session_factory() as session:
            row = session.get(ValidationConfigRow, scope)
            return row.config_json if row is not None else None

    def set(self, scope: str, partial: dict) -> None:
        blob = json.dumps(partial)
        with self.session_factory.begin() as session:
            row = session.get(ValidationConfigRow, scope)
            if row is None:
                session.add(ValidationConfigRow(scope=scope, config_json=blob))
            else:
                row.config_json = blob
        logger.debug("config_override_stored", scope=scope)


def _column_values(values: dict) -> dict:
    """Enums to their stored string values."""
    return {k: v.value if isinstance(v, Enum) else v for k, v in values.items()}
