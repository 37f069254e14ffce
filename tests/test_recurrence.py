"""Tests for recurring series generation."""
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from appointment_engine.config import Settings
from appointment_engine.exceptions import InvalidRecurrenceError
from appointment_engine.models import (
    Appointment,
    AppointmentStatus,
    RecurringPattern,
    SystemActor,
)
from appointment_engine.services.appointment_store import AppointmentStore
from appointment_engine.services.recurrence_service import (
    RecurrenceOutcome,
    RecurrenceService,
    advance,
    next_occurrence,
    should_materialize_next,
)


ROOT_START = datetime(2024, 1, 1, 10, 0)


def fake_root(pattern=RecurringPattern.WEEKLY, start=ROOT_START, end_date=None):
    return SimpleNamespace(
        id="root",
        scheduled_at=start,
        recurring_pattern=pattern.value if pattern else None,
        recurring_end_date=end_date,
    )


def fake_instance(start):
    return SimpleNamespace(scheduled_at=start)


class TestAdvance:
    def test_weekly(self):
        assert advance(ROOT_START, RecurringPattern.WEEKLY) == datetime(2024, 1, 8, 10, 0)

    def test_biweekly(self):
        assert advance(ROOT_START, "BIWEEKLY") == datetime(2024, 1, 15, 10, 0)

    def test_monthly_same_day(self):
        assert advance(datetime(2024, 1, 15, 9, 30), "MONTHLY") == datetime(2024, 2, 15, 9, 30)

    def test_monthly_clamps_to_month_end(self):
        assert advance(datetime(2024, 1, 31, 9, 0), "MONTHLY") == datetime(2024, 2, 29, 9, 0)
        assert advance(datetime(2023, 1, 31, 9, 0), "MONTHLY") == datetime(2023, 2, 28, 9, 0)

    def test_unknown_pattern(self):
        with pytest.raises(InvalidRecurrenceError):
            advance(ROOT_START, "DAILY")


class TestNextOccurrence:
    def test_uses_root_when_no_instances(self):
        assert next_occurrence(fake_root(), []) == datetime(2024, 1, 8, 10, 0)

    def test_uses_latest_instance(self):
        instances = [fake_instance(datetime(2024, 1, 8, 10)), fake_instance(datetime(2024, 1, 15, 10))]

        assert next_occurrence(fake_root(), instances) == datetime(2024, 1, 22, 10, 0)

    def test_missing_pattern(self):
        with pytest.raises(InvalidRecurrenceError):
            next_occurrence(fake_root(pattern=None), [])


class TestShouldMaterializeNext:
    def test_due_within_lookahead(self):
        assert should_materialize_next(fake_root(), [], now=ROOT_START)

    def test_beyond_lookahead(self):
        root = fake_root(pattern=RecurringPattern.MONTHLY)

        # next is 2024-02-01 10:00, more than 30 days after 2024-01-01 09:00
        assert not should_materialize_next(root, [], now=datetime(2024, 1, 1, 9, 0))

    def test_lookahead_boundary_is_inclusive(self):
        root = fake_root(pattern=RecurringPattern.MONTHLY)
        now = datetime(2024, 2, 1, 10, 0) - timedelta(days=30)

        assert should_materialize_next(root, [], now=now)

    def test_past_end_date(self):
        root = fake_root(end_date=datetime(2024, 1, 7, 23, 59))

        assert not should_materialize_next(root, [], now=ROOT_START)

    def test_end_date_inclusive(self):
        root = fake_root(end_date=datetime(2024, 1, 8, 10, 0))

        assert should_materialize_next(root, [], now=ROOT_START)

    def test_custom_lookahead(self):
        assert not should_materialize_next(fake_root(), [], now=ROOT_START, lookahead_days=5)


@pytest.fixture
def service(db):
    return RecurrenceService(AppointmentStore(db), settings=Settings())


@pytest.fixture
def make_root(make_appointment):
    async def _make(**overrides):
        fields = {
            "scheduled_at": ROOT_START,
            "is_recurring": True,
            "recurring_pattern": RecurringPattern.WEEKLY,
            "status": AppointmentStatus.CONFIRMED,
            "location": "Room 101",
            "meeting_link": "https://meet.example.com/abc",
        }
        fields.update(overrides)
        return await make_appointment(**fields)

    return _make


async def instances_of(db, root) -> list[Appointment]:
    result = await db.execute(
        select(Appointment)
        .where(Appointment.parent_appointment_id == root.id)
        .order_by(Appointment.scheduled_at)
    )
    return list(result.scalars().all())


class TestRecurrenceService:
    @pytest.mark.asyncio
    async def test_first_run_creates_one_period_ahead(self, db, service, make_root):
        root = await make_root()

        outcome = await service.process_series(root, now=datetime(2024, 1, 1))

        assert outcome is RecurrenceOutcome.CREATED
        instances = await instances_of(db, root)
        assert [i.scheduled_at for i in instances] == [datetime(2024, 1, 8, 10, 0)]

    @pytest.mark.asyncio
    async def test_instance_copies_root_and_is_pending(self, db, service, make_root):
        root = await make_root()
        now = datetime(2024, 1, 1, 1, 0)

        instance = await service.materialize_next(root, now)

        assert instance.status == AppointmentStatus.PENDING.value
        assert instance.is_recurring is False
        assert instance.parent_appointment_id == root.id
        assert instance.requester_id == root.requester_id
        assert instance.provider_id == root.provider_id
        assert instance.subject == root.subject
        assert instance.location == "Room 101"
        assert instance.meeting_link == "https://meet.example.com/abc"
        assert instance.duration_minutes == root.duration_minutes
        assert instance.booked_at == now
        assert instance.last_modified_by == SystemActor.RECURRING.value

    @pytest.mark.asyncio
    async def test_repeated_runs_never_duplicate_a_start(self, db, service, make_root):
        root = await make_root()
        now = datetime(2024, 1, 1)

        await service.process_series(root, now)
        await service.process_series(root, now)

        starts = [i.scheduled_at for i in await instances_of(db, root)]
        assert len(starts) == len(set(starts))

    @pytest.mark.asyncio
    async def test_existing_occurrence_is_not_recreated(self, db, service, make_root, make_appointment):
        root = await make_root()
        existing = await make_appointment(
            scheduled_at=datetime(2024, 1, 8, 10, 0),
            parent_appointment_id=root.id,
            status=AppointmentStatus.PENDING,
        )

        await service.process_series(root, now=datetime(2024, 1, 1))

        instances = await instances_of(db, root)
        assert existing.id in {i.id for i in instances}
        assert [i.scheduled_at for i in instances].count(datetime(2024, 1, 8, 10, 0)) == 1

    @pytest.mark.asyncio
    async def test_daily_runs_stay_within_lookahead(self, db, service, make_root):
        root = await make_root()

        for day in range(60):
            now = datetime(2024, 1, 1) + timedelta(days=day)
            await service.process_series(root, now)

            instances = await instances_of(db, root)
            assert all(i.scheduled_at <= now + timedelta(days=30) for i in instances)

        # one occurrence per daily run at most, so the series caught up week by week
        starts = [i.scheduled_at for i in await instances_of(db, root)]
        assert starts == [ROOT_START + timedelta(weeks=n) for n in range(1, len(starts) + 1)]

    @pytest.mark.asyncio
    async def test_respects_end_date(self, db, service, make_root):
        root = await make_root(recurring_end_date=datetime(2024, 1, 10))

        first = await service.process_series(root, now=datetime(2024, 1, 1))
        second = await service.process_series(root, now=datetime(2024, 1, 2))

        assert first is RecurrenceOutcome.CREATED
        assert second is RecurrenceOutcome.NOT_DUE
        assert len(await instances_of(db, root)) == 1

    @pytest.mark.asyncio
    async def test_provider_conflict_skips_creation(self, db, service, make_root, make_appointment):
        root = await make_root()
        await make_appointment(
            requester_id="student-2",
            scheduled_at=datetime(2024, 1, 8, 10, 30),
            duration_minutes=30,
        )

        outcome = await service.process_series(root, now=datetime(2024, 1, 1))

        assert outcome is RecurrenceOutcome.CONFLICT
        assert await instances_of(db, root) == []

    @pytest.mark.asyncio
    async def test_cancelled_appointment_does_not_block(self, db, service, make_root, make_appointment):
        root = await make_root()
        await make_appointment(
            requester_id="student-2",
            scheduled_at=datetime(2024, 1, 8, 10, 0),
            status=AppointmentStatus.CANCELLED,
        )

        outcome = await service.process_series(root, now=datetime(2024, 1, 1))

        assert outcome is RecurrenceOutcome.CREATED
