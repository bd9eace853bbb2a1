"""
Tests for cycle housekeeping and review outcomes.
"""

import pytest

from meterflags.engine.cycle_checks import CycleChecks
from meterflags.engine.review import apply_review
from meterflags.errors import CycleClosedError, NotFoundError, ReviewError
from meterflags.models.enums import CycleStatus, MeterType, ReviewStatus
from meterflags.schemas.entities import Meter

from conftest import CAPTURE_DATE


class TestMissingReadings:
    """Unit meters not yet read in a cycle."""

    def test_unit_meters_without_reading(self, engine, bulk_scheme):
        engine.capture_reading("c-jun", "m1", 1100.0, CAPTURE_DATE)
        missing = CycleChecks(bulk_scheme).get_missing_readings("c-jun")
        assert sorted(m.id for m in missing) == ["m2", "m3"]

    def test_unknown_cycle(self, repo):
        assert CycleChecks(repo).get_missing_readings("nope") == []


class TestDuplicateMeters:
    """Meter numbers registered twice in a scheme."""

    def test_duplicate_numbers(self, repo):
        repo.add_meter(Meter(id="dup", scheme_id="s1", meter_number="U-001"))
        duplicates = CycleChecks(repo).check_duplicate_meters("s1")
        assert len(duplicates) == 1
        assert duplicates[0].meter_number == "U-001"
        assert duplicates[0].meter_ids == ["m1", "dup"]

    def test_no_duplicates(self, bulk_scheme):
        assert CycleChecks(bulk_scheme).check_duplicate_meters("s1") == []


class TestBulkMeterPresence:
    """Setup warnings for bulk meter count."""

    def test_missing_bulk(self, repo):
        warnings = CycleChecks(repo).check_bulk_meter_presence("s1")
        assert [w.type for w in warnings] == ["no-bulk-meter"]

    def test_single_bulk(self, bulk_scheme):
        assert CycleChecks(bulk_scheme).check_bulk_meter_presence("s1") == []

    def test_several_bulk(self, bulk_scheme):
        bulk_scheme.add_meter(Meter(
            id="bulk2", scheme_id="s1", meter_number="B-002", meter_type=MeterType.BULK,
        ))
        warnings = CycleChecks(bulk_scheme).check_bulk_meter_presence("s1")
        assert [w.type for w in warnings] == ["multiple-bulk-meters"]


class TestFlagsSummaryAndReadiness:
    """Flag counts and closure readiness."""

    def test_summary_counts(self, engine, bulk_scheme):
        engine.capture_reading("c-jun", "m1", 900.0, CAPTURE_DATE)   # backward
        engine.capture_reading("c-jun", "m2", 0.0, CAPTURE_DATE)     # unchanged
        engine.capture_reading("c-jun", "m3", 20.0, CAPTURE_DATE)

        summary = CycleChecks(bulk_scheme).get_cycle_flags_summary("c-jun")

        assert summary.total == 3
        assert summary.flagged == 2
        assert summary.by_type == {"backward": 1, "unchanged": 1}
        assert summary.by_severity == {"high": 1, "medium": 1, "low": 0}

    def test_readiness_incomplete_with_high_flag(self, engine, bulk_scheme):
        engine.capture_reading("c-jun", "m1", 900.0, CAPTURE_DATE)

        readiness = CycleChecks(bulk_scheme).get_closure_readiness("c-jun")

        assert readiness.total_units == 3
        assert readiness.units_read == 1
        assert readiness.completion_rate == 33
        assert not readiness.is_complete
        assert readiness.has_high_flags
        assert readiness.unreviewed_flags == 1
        assert readiness.should_warn

    def test_readiness_clean(self, engine, repo):
        engine.capture_reading("c-jun", "m1", 1100.0, CAPTURE_DATE)
        readiness = CycleChecks(repo).get_closure_readiness("c-jun")
        assert readiness.is_complete
        assert readiness.completion_rate == 100
        assert not readiness.should_warn


class TestCloseCycle:
    """One-way cycle closing."""

    def test_close_once(self, repo):
        checks = CycleChecks(repo)
        closed = checks.close_cycle("c-jun")
        assert closed.status == CycleStatus.CLOSED
        assert closed.closed_at is not None
        assert repo.get_cycle("c-jun").status == CycleStatus.CLOSED

    def test_close_twice_raises(self, repo):
        checks = CycleChecks(repo)
        checks.close_cycle("c-jun")
        with pytest.raises(CycleClosedError):
            checks.close_cycle("c-jun")

    def test_unknown_cycle(self, repo):
        with pytest.raises(NotFoundError):
            CycleChecks(repo).close_cycle("nope")


class TestApplyReview:
    """Review outcomes written to a reading."""

    def test_estimate_replaces_consumption(self, engine, repo):
        reading = engine.capture_reading("c-jun", "m1", 5000.0, CAPTURE_DATE)
        updated = apply_review(
            repo, reading.id, ReviewStatus.ESTIMATED, "admin", estimated_value=120.0,
        )
        assert updated.consumption == 120.0
        assert updated.estimated_value == 120.0
        assert updated.review_status == ReviewStatus.ESTIMATED
        assert updated.reviewed_at is not None

    def test_approve_keeps_consumption(self, engine, repo):
        reading = engine.capture_reading("c-jun", "m1", 1100.0, CAPTURE_DATE)
        updated = apply_review(repo, reading.id, "approved", "admin", admin_notes="ok")
        assert updated.consumption == 100.0
        assert updated.admin_notes == "ok"

    def test_estimate_requires_value(self, engine, repo):
        reading = engine.capture_reading("c-jun", "m1", 1100.0, CAPTURE_DATE)
        with pytest.raises(ReviewError):
            apply_review(repo, reading.id, ReviewStatus.ESTIMATED, "admin")

    def test_value_without_estimate(self, engine, repo):
        reading = engine.capture_reading("c-jun", "m1", 1100.0, CAPTURE_DATE)
        with pytest.raises(ReviewError):
            apply_review(repo, reading.id, ReviewStatus.APPROVED, "admin", estimated_value=5.0)

    def test_unknown_reading(self, repo):
        with pytest.raises(NotFoundError):
            apply_review(repo, "nope", ReviewStatus.APPROVED, "admin")
