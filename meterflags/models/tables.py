"""
SQLAlchemy ORM models.

readings.flags and readings.manual_flags are separate JSON columns and
are always written by separate statements.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from meterflags.models.database import Base


# ────────────────────────────────────────────────────────────
# UNITS
# ────────────────────────────────────────────────────────────
class UnitRow(Base):
    __tablename__ = "units"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    scheme_id: Mapped[str] = mapped_column(String(64), nullable=False)
    unit_number: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="OCCUPIED")

    __table_args__ = (
        Index("idx_units_scheme", "scheme_id"),
    )


# ────────────────────────────────────────────────────────────
# METERS
# ────────────────────────────────────────────────────────────
class MeterRow(Base):
    __tablename__ = "meters"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    scheme_id: Mapped[str] = mapped_column(String(64), nullable=False)
    unit_id: Mapped[Optional[str]] = mapped_column(
        String(64), ForeignKey("units.id"), nullable=True
    )
    meter_type: Mapped[str] = mapped_column(String(8), nullable=False, default="UNIT")
    meter_number: Mapped[str] = mapped_column(Text, nullable=False)
    last_reading: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    last_reading_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="ACTIVE")

    __table_args__ = (
        Index("idx_meters_scheme_type", "scheme_id", "meter_type"),
    )


# ────────────────────────────────────────────────────────────
# CYCLES
# ────────────────────────────────────────────────────────────
class CycleRow(Base):
    __tablename__ = "cycles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    scheme_id: Mapped[str] = mapped_column(String(64), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(8), nullable=False, default="OPEN")
    closed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("idx_cycles_scheme_status", "scheme_id", "status"),
    )


# ────────────────────────────────────────────────────────────
# READINGS
# ────────────────────────────────────────────────────────────
class ReadingRow(Base):
    __tablename__ = "readings"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    cycle_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("cycles.id"), nullable=False
    )
    meter_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("meters.id"), nullable=False
    )
    reading_value: Mapped[float] = mapped_column(Float, nullable=False)
    previous_reading: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    consumption: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    reading_date: Mapped[date] = mapped_column(Date, nullable=False)
    captured_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    flags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    manual_flags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    review_status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    estimated_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_late: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("idx_readings_cycle", "cycle_id"),
        Index("idx_readings_meter_date", "meter_id", "reading_date"),
        UniqueConstraint("cycle_id", "meter_id", name="uq_readings_cycle_meter"),
    )


# ────────────────────────────────────────────────────────────
# VALIDATION CONFIG OVERRIDES
# ────────────────────────────────────────────────────────────
class ValidationConfigRow(Base):
    __tablename__ = "validation_configs"

    scope: Mapped[str] = mapped_column(String(64), primary_key=True)
    config_json: Mapped[str] = mapped_column(Text, nullable=False)
