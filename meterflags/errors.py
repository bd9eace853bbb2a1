"""
Exception types raised for caller errors.

Gaps in business data (missing meter, empty history, no unit) never raise;
rules degrade to fewer flags. These exceptions cover misuse that a caller
can correct.
"""


class MeterFlagsError(Exception):
    """Base class for engine errors."""

    def __init__(self, error_code: str, message: str):
        self.error_code = error_code
        self.message = message
        super().__init__(f"{error_code}: {message}")


class NotFoundError(MeterFlagsError):
    """A referenced record does not exist."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__("ERR_NOT_FOUND", f"{entity} {entity_id} not found")


class InvalidConfigError(MeterFlagsError):
    """A validation config override failed validation on write."""

    def __init__(self, message: str):
        super().__init__("ERR_INVALID_CONFIG", message)


class CycleClosedError(MeterFlagsError):
    """Closing is one-way; the cycle is already closed."""

    def __init__(self, cycle_id: str):
        self.cycle_id = cycle_id
        super().__init__("ERR_CYCLE_CLOSED", f"Cycle {cycle_id} is already closed")


class ReviewError(MeterFlagsError):
    """A review outcome is missing data it requires."""

    def __init__(self, message: str):
        super().__init__("ERR_REVIEW", message)
