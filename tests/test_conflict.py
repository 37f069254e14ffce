"""Tests for conflict detection."""
from datetime import datetime, timedelta

import pytest

from appointment_engine.models import AppointmentStatus
from appointment_engine.services.appointment_store import AppointmentStore
from appointment_engine.services.conflict_service import ConflictDetector, intervals_overlap


T10 = datetime(2024, 1, 10, 10, 0)
T11 = datetime(2024, 1, 10, 11, 0)
T12 = datetime(2024, 1, 10, 12, 0)


class TestIntervalsOverlap:
    """Half-open interval overlap."""

    def test_adjacent_intervals_do_not_overlap(self):
        assert intervals_overlap(T10, T11, T11, T12) is False
        assert intervals_overlap(T11, T12, T10, T11) is False

    def test_partial_overlap(self):
        assert intervals_overlap(T10, T11 + timedelta(minutes=1), T11, T12) is True

    def test_containment(self):
        assert intervals_overlap(T10, T12, T11, T11 + timedelta(minutes=15)) is True

    def test_identical_intervals(self):
        assert intervals_overlap(T10, T11, T10, T11) is True

    def test_disjoint(self):
        assert intervals_overlap(T10, T11, T12, T12 + timedelta(hours=1)) is False

    @pytest.mark.parametrize("offset_minutes", [-120, -61, -60, -30, 0, 30, 59, 60, 120])
    def test_matches_definition(self, offset_minutes):
        """Overlap iff s1 < s2 + d2 and s2 < s1 + d1."""
        s1, d1 = T10, timedelta(minutes=60)
        s2, d2 = T10 + timedelta(minutes=offset_minutes), timedelta(minutes=60)

        expected = s1 < s2 + d2 and s2 < s1 + d1

        assert intervals_overlap(s1, s1 + d1, s2, s2 + d2) is expected


class TestConflictDetector:
    """Conflict checks against stored appointments."""

    @pytest.fixture
    def detector(self, db):
        return ConflictDetector(AppointmentStore(db))

    @pytest.mark.asyncio
    async def test_overlapping_confirmed_appointment_conflicts(self, detector, make_appointment):
        await make_appointment(scheduled_at=T10, duration_minutes=60)

        assert await detector.has_conflict("lecturer-1", T10 + timedelta(minutes=30), T12)

    @pytest.mark.asyncio
    async def test_back_to_back_is_not_a_conflict(self, detector, make_appointment):
        await make_appointment(scheduled_at=T10, duration_minutes=60)

        assert not await detector.has_conflict("lecturer-1", T11, T12)

    @pytest.mark.asyncio
    async def test_pending_appointment_blocks(self, detector, make_appointment):
        await make_appointment(scheduled_at=T10, status=AppointmentStatus.PENDING)

        assert await detector.has_conflict("lecturer-1", T10, T11)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status",
        [AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW],
    )
    async def test_non_blocking_statuses_are_ignored(self, detector, make_appointment, status):
        await make_appointment(scheduled_at=T10, status=status)

        assert not await detector.has_conflict("lecturer-1", T10, T11)

    @pytest.mark.asyncio
    async def test_party_can_be_requester(self, detector, make_appointment):
        await make_appointment(scheduled_at=T10, requester_id="student-9")

        assert await detector.has_conflict("student-9", T10, T11)

    @pytest.mark.asyncio
    async def test_other_party_is_not_affected(self, detector, make_appointment):
        await make_appointment(scheduled_at=T10)

        assert not await detector.has_conflict("lecturer-2", T10, T11)

    @pytest.mark.asyncio
    async def test_exclude_id_removes_appointment(self, detector, make_appointment):
        existing = await make_appointment(scheduled_at=T10)

        assert not await detector.has_conflict("lecturer-1", T10, T11, exclude_id=existing.id)

    @pytest.mark.asyncio
    async def test_find_conflicts_returns_only_overlapping(self, detector, make_appointment):
        overlapping = await make_appointment(scheduled_at=T10)
        await make_appointment(scheduled_at=T12)

        conflicts = await detector.find_conflicts("lecturer-1", T10, T11)

        assert [c.id for c in conflicts] == [overlapping.id]
