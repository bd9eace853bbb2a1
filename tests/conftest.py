"""
Shared test fixtures.
"""

from datetime import date

import pytest

from meterflags.engine.config_resolver import ConfigResolver
from meterflags.engine.validator import ValidationEngine
from meterflags.models.enums import MeterType
from meterflags.schemas.entities import Cycle, Meter, Reading
from meterflags.storage.config_store import InMemoryConfigStore
from meterflags.storage.repository import InMemoryRepository


CAPTURE_DATE = date(2025, 6, 15)


def months_before(d: date, months: int) -> date:
    index = d.year * 12 + d.month - 1 - months
    return date(index // 12, index % 12 + 1, min(d.day, 28))


@pytest.fixture
def repo():
    repository = InMemoryRepository()
    repository.add_cycle(Cycle(id="c-jun", scheme_id="s1", start_date=date(2025, 6, 1)))
    repository.add_meter(Meter(
        id="m1", scheme_id="s1", meter_number="U-001", last_reading=1000.0,
    ))
    return repository


@pytest.fixture
def config_store():
    return InMemoryConfigStore()


@pytest.fixture
def resolver(config_store):
    return ConfigResolver(config_store)


@pytest.fixture
def engine(repo, resolver):
    return ValidationEngine(repo, resolver)


@pytest.fixture
def add_history(repo):
    """
    Seed past readings for a meter. Consumptions are oldest first; the
    newest lands one month before `end`.
    """
    def _add(meter_id, consumptions, end=CAPTURE_DATE, months_apart=1):
        readings = []
        count = len(consumptions)
        for i, consumption in enumerate(consumptions):
            reading = Reading(
                id=f"{meter_id}-h{i}",
                cycle_id=f"c-hist-{i}",
                meter_id=meter_id,
                reading_value=1000.0,
                consumption=consumption,
                reading_date=months_before(end, (count - i) * months_apart),
            )
            repo.add_reading(reading)
            readings.append(reading)
        return readings
    return _add


@pytest.fixture
def bulk_scheme(repo):
    """Scheme s1 with a bulk meter and two more unit meters."""
    repo.add_meter(Meter(
        id="bulk", scheme_id="s1", meter_number="B-001",
        meter_type=MeterType.BULK, last_reading=0.0,
    ))
    repo.add_meter(Meter(id="m2", scheme_id="s1", meter_number="U-002", last_reading=0.0))
    repo.add_meter(Meter(id="m3", scheme_id="s1", meter_number="U-003", last_reading=0.0))
    return repo
