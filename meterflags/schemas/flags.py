"""
Flag schemas.

Auto and manual flags are separate variants of one tagged union keyed
on `kind`, so a merged flag view is typed rather than annotated at read.
"""

from datetime import datetime, timezone
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from meterflags.models.enums import Severity


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AutoFlag(BaseModel):
    """A flag produced by the rule set. Never edited after creation."""
    kind: Literal["auto"] = "auto"
    type: str
    severity: Severity
    message: str
    description: str = ""

    model_config = {"frozen": True}

    @property
    def source(self) -> str:
        return self.kind


class ManualFlag(BaseModel):
    """A flag entered by an administrator during review."""
    kind: Literal["manual"] = "manual"
    type: str = "custom"
    severity: Severity = Severity.MEDIUM
    message: str
    description: str = ""
    added_by: Optional[str] = None
    added_at: datetime = Field(default_factory=_utcnow)

    @property
    def source(self) -> str:
        return self.kind


class ManualFlagInput(BaseModel):
    """Fields an administrator supplies when adding a manual flag."""
    type: str = "custom"
    severity: Severity = Severity.MEDIUM
    message: str
    description: str = ""
    added_by: Optional[str] = None


Flag = Annotated[Union[AutoFlag, ManualFlag], Field(discriminator="kind")]


class ReconciliationDetails(BaseModel):
    bulk_kwh: float
    sum_units_kwh: float
    common_kwh: float
    mismatch_percent: float


class ReconciliationFlag(BaseModel):
    """Cycle-level flag raised when units do not add up to the bulk meter."""
    type: str = "bulk-mismatch"
    severity: Severity
    message: str
    description: str
    details: ReconciliationDetails


class FlagSummary(BaseModel):
    """Auto flag counts for one cycle."""
    total: int = 0
    flagged: int = 0
    by_type: dict[str, int] = {}
    by_severity: dict[str, int] = {
        Severity.HIGH.value: 0,
        Severity.MEDIUM.value: 0,
        Severity.LOW.value: 0,
    }
