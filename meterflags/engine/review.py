"""
Review outcomes for flagged readings.
An `estimated` outcome replaces the reading's consumption with the
administrator's estimate.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog

from meterflags.errors import NotFoundError, ReviewError
from meterflags.models.enums import ReviewStatus
from meterflags.schemas.entities import Reading
from meterflags.storage.repository import ReadingRepository

logger = structlog.get_logger(__name__)


def apply_review(
    repository: ReadingRepository,
    reading_id: str,
    status: ReviewStatus,
    reviewed_by: str,
    admin_notes: Optional[str] = None,
    estimated_value: Optional[float] = None,
) -> Reading:
    reading = repository.get_reading(reading_id)
    if reading is None:
        raise NotFoundError("Reading", reading_id)

    status = ReviewStatus(status)
    values = {
        "review_status": status,
        "admin_notes": admin_notes,
        "reviewed_by": reviewed_by,
        "reviewed_at": datetime.now(timezone.utc),
    }

    if status == ReviewStatus.ESTIMATED:
        if estimated_value is None:
            raise ReviewError("An estimated review outcome needs an estimated value")
        values["estimated_value"] = estimated_value
        values["consumption"] = estimated_value
    elif estimated_value is not None:
        raise ReviewError(f"Estimated value given for review outcome '{status.value}'")

    updated = repository.update_reading(reading_id, values)
    logger.info(
        "reading_reviewed",
        reading_id=reading_id,
        review_status=status.value,
        reviewed_by=reviewed_by,
        estimated_value=estimated_value,
    )
    return updated
