"""
Python enums for meters, cycles, readings and flags.
Values are the strings stored in the database and in flag payloads.
"""

from enum import Enum


class MeterType(str, Enum):
    BULK = "BULK"
    UNIT = "UNIT"


class MeterStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    REPLACED = "REPLACED"


class UnitStatus(str, Enum):
    OCCUPIED = "OCCUPIED"
    VACANT = "VACANT"


class CycleStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class ReviewStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    ESTIMATED = "estimated"
    SITE_VISIT = "site-visit"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class FlagType(str, Enum):
    """Auto flag types, in rule evaluation order."""
    BACKWARD = "backward"
    SPIKE = "spike"
    PERCENTAGE_SPIKE = "percentage-spike"
    ZERO_CONSUMPTION = "zero-consumption"
    UNCHANGED = "unchanged"
    GRADUAL_CREEP = "gradual-creep"
    SEASONAL_ANOMALY = "seasonal-anomaly"
    VACANCY_CONTRADICTION = "vacancy-contradiction"
    BULK_MISMATCH = "bulk-mismatch"
