"""
Record schemas for the entities the engine reads and updates.
Persistence collaborators map their storage rows onto these shapes.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel

from meterflags.models.enums import (
    CycleStatus,
    MeterStatus,
    MeterType,
    ReviewStatus,
    UnitStatus,
)
from meterflags.schemas.flags import AutoFlag, ManualFlag


class Meter(BaseModel):
    """A bulk or unit meter belonging to a scheme."""
    id: str
    scheme_id: str
    unit_id: Optional[str] = None
    meter_type: MeterType = MeterType.UNIT
    meter_number: str
    last_reading: Optional[float] = None     # Previous value for the next capture
    last_reading_date: Optional[date] = None
    status: MeterStatus = MeterStatus.ACTIVE

    model_config = {"from_attributes": True}


class Unit(BaseModel):
    """An occupiable unit; only its occupancy matters to the rule set."""
    id: str
    scheme_id: str
    unit_number: str
    status: UnitStatus = UnitStatus.OCCUPIED

    model_config = {"from_attributes": True}


class Cycle(BaseModel):
    """A billing/reading period for one scheme."""
    id: str
    scheme_id: str
    start_date: date
    end_date: Optional[date] = None
    status: CycleStatus = CycleStatus.OPEN
    closed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class Reading(BaseModel):
    """
    One captured reading for a (cycle, meter) pair.

    `flags` is owned by the rule engine and replaced wholesale on every
    validation. `manual_flags` is owned by administrators. Persistence
    must write the two as separate fields.
    """
    id: str
    cycle_id: str
    meter_id: str
    reading_value: float
    previous_reading: Optional[float] = None
    consumption: Optional[float] = None
    reading_date: date
    captured_by: Optional[str] = None
    notes: Optional[str] = None
    flags: list[AutoFlag] = []
    manual_flags: list[ManualFlag] = []
    review_status: ReviewStatus = ReviewStatus.PENDING
    estimated_value: Optional[float] = None
    admin_notes: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    is_late: bool = False                    # Captured after the cycle closed

    model_config = {"from_attributes": True}
