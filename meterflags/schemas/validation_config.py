"""
Validation config schemas.

Stored overrides may use the camelCase keys used by stored config blobs
(`spikeMultiplier`) or the Python field names (`spike_multiplier`).
"""

from typing import Optional

from pydantic import BaseModel, Field


_CONFIG_MODEL = {
    "populate_by_name": True,
    "extra": "ignore",
}


class ValidationConfig(BaseModel):
    """Effective thresholds for one scheme."""
    spike_multiplier: float = Field(3, gt=0, alias="spikeMultiplier")
    percentage_threshold: float = Field(50, ge=0, alias="percentageThreshold")
    zero_tolerance: bool = Field(True, alias="zeroTolerance")
    backward_allowed: bool = Field(False, alias="backwardAllowed")
    min_history_cycles: int = Field(3, ge=1, alias="minHistoryCycles")
    bulk_mismatch_threshold: float = Field(20, ge=0, alias="bulkMismatchThreshold")
    gradual_creep_threshold: float = Field(7, ge=0, alias="gradualCreepThreshold")
    seasonal_comparison_months: int = Field(12, ge=1, alias="seasonalComparisonMonths")

    model_config = {**_CONFIG_MODEL, "frozen": True}


class PartialValidationConfig(BaseModel):
    """One stored override layer; unset keys fall through to the next layer."""
    spike_multiplier: Optional[float] = Field(None, gt=0, alias="spikeMultiplier")
    percentage_threshold: Optional[float] = Field(None, ge=0, alias="percentageThreshold")
    zero_tolerance: Optional[bool] = Field(None, alias="zeroTolerance")
    backward_allowed: Optional[bool] = Field(None, alias="backwardAllowed")
    min_history_cycles: Optional[int] = Field(None, ge=1, alias="minHistoryCycles")
    bulk_mismatch_threshold: Optional[float] = Field(None, ge=0, alias="bulkMismatchThreshold")
    gradual_creep_threshold: Optional[float] = Field(None, ge=0, alias="gradualCreepThreshold")
    seasonal_comparison_months: Optional[int] = Field(None, ge=1, alias="seasonalComparisonMonths")

    model_config = _CONFIG_MODEL

    def overrides(self) -> dict:
        """Keys explicitly set to a value, by field name."""
        return {
            k: v for k, v in self.model_dump(exclude_unset=True).items()
            if v is not None
        }
