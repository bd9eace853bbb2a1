"""
Manual flag store.
Administrator flags live beside auto flags and are never regenerated.
"""

from typing import Union

import structlog

from meterflags.observability.metrics import manual_flag_operations_total
from meterflags.schemas.entities import Reading
from meterflags.schemas.flags import AutoFlag, ManualFlag, ManualFlagInput
from meterflags.storage.repository import ReadingRepository

logger = structlog.get_logger(__name__)


class ManualFlagStore:

    def __init__(self, repository: ReadingRepository):
        self.repository = repository

    def add_manual_flag(self, reading_id: str, data: Union[ManualFlagInput, dict]) -> bool:
        """Append a manual flag with a fresh timestamp. False if the reading is unknown."""
        reading = self.repository.get_reading(reading_id)
        if reading is None:
            manual_flag_operations_total.labels(operation="add", result="not_found").inc()
            return False

        if isinstance(data, dict):
            data = ManualFlagInput.model_validate(data)
        flag = ManualFlag(**data.model_dump())

        self.repository.save_manual_flags(reading_id, [*reading.manual_flags, flag])
        manual_flag_operations_total.labels(operation="add", result="ok").inc()
        logger.info(
            "manual_flag_added",
            reading_id=reading_id,
            flag_type=flag.type,
            severity=flag.severity.value,
            added_by=flag.added_by,
        )
        return True

    def remove_manual_flag(self, reading_id: str, index: int) -> bool:
        """
        Remove by position. Unknown reading or out-of-range index is a
        no-op returning False.
        """
        reading = self.repository.get_reading(reading_id)
        if reading is None or not 0 <= index < len(reading.manual_flags):
            manual_flag_operations_total.labels(operation="remove", result="invalid").inc()
            return False

        remaining = [f for i, f in enumerate(reading.manual_flags) if i != index]
        self.repository.save_manual_flags(reading_id, remaining)
        manual_flag_operations_total.labels(operation="remove", result="ok").inc()
        logger.info("manual_flag_removed", reading_id=reading_id, index=index)
        return True


def get_all_flags(reading: Reading) -> list[Union[AutoFlag, ManualFlag]]:
    """Auto flags then manual flags, each in stored order."""
    return [*reading.flags, *reading.manual_flags]
