"""Appointment service - Business logic for booking-side operations."""

import logging
from datetime import date, datetime, time, timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from appointment_engine.clock import utcnow
from appointment_engine.exceptions import (
    AppointmentNotFoundError,
    InvalidStatusTransitionError,
    SchedulingConflictError,
)
from appointment_engine.models.appointment import (
    Appointment,
    AppointmentStatus,
    BLOCKING_STATUSES,
)
from appointment_engine.schemas.appointment import (
    AppointmentCreate,
    AppointmentReschedule,
    AppointmentStatistics,
    AvailableSlot,
)
from appointment_engine.services.appointment_store import AppointmentStore
from appointment_engine.services.conflict_service import ConflictDetector, intervals_overlap

logger = logging.getLogger(__name__)


# Bookable window of a provider's day, offered on a fixed grid
SLOT_DAY_START = time(hour=9, minute=0)
SLOT_DAY_END = time(hour=17, minute=0)
SLOT_STEP = timedelta(minutes=30)


# Statuses an explicit status change may start from
ALLOWED_TRANSITIONS: dict[AppointmentStatus, set[AppointmentStatus]] = {
    AppointmentStatus.CONFIRMED: {AppointmentStatus.PENDING},
    AppointmentStatus.COMPLETED: {AppointmentStatus.CONFIRMED},
    AppointmentStatus.NO_SHOW: {AppointmentStatus.CONFIRMED},
    AppointmentStatus.CANCELLED: {
        AppointmentStatus.PENDING,
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.NO_SHOW,
    },
    AppointmentStatus.PENDING: set(),
}


def validate_status_transition(current: str, new: AppointmentStatus) -> None:
    """Raise if `current` may not be changed to `new`. Same status is allowed."""
    if current == new.value:
        return
    if AppointmentStatus(current) not in ALLOWED_TRANSITIONS[new]:
        raise InvalidStatusTransitionError(current, new.value)


class AppointmentService:
    """Service class for appointment operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = AppointmentStore(db)
        self.conflicts = ConflictDetector(self.store)

    async def _ensure_free(
        self,
        appointment: Appointment | AppointmentCreate,
        start: datetime,
        duration_minutes: int,
        exclude_id: UUID | None = None,
    ) -> None:
        end = start + timedelta(minutes=duration_minutes)
        for party_id in (appointment.provider_id, appointment.requester_id):
            conflicts = await self.conflicts.find_conflicts(party_id, start, end, exclude_id)
            if conflicts:
                raise SchedulingConflictError(party_id, [c.id for c in conflicts])

    async def book_appointment(
        self,
        appointment_data: AppointmentCreate,
        actor_id: str,
        now: datetime | None = None,
    ) -> Appointment:
        """Create a new PENDING appointment after checking both calendars."""
        now = now or utcnow()
        if appointment_data.scheduled_at < now:
            raise ValueError("Cannot schedule appointments in the past")

        await self._ensure_free(
            appointment_data, appointment_data.scheduled_at, appointment_data.duration_minutes
        )

        data = appointment_data.model_dump(mode="python")
        data["appointment_type"] = appointment_data.appointment_type.value
        if appointment_data.recurring_pattern:
            data["recurring_pattern"] = appointment_data.recurring_pattern.value

        appointment = Appointment(
            **data,
            status=AppointmentStatus.PENDING.value,
            booked_at=now,
            last_modified_at=now,
            last_modified_by=actor_id,
        )
        await self.store.save(appointment)
        logger.info(
            "Appointment %s booked by %s for %s", appointment.id, actor_id, appointment.scheduled_at
        )
        return appointment

    async def get_appointment_by_id(self, appointment_id: UUID) -> Appointment:
        """Get an appointment by ID."""
        appointment = await self.store.get(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(appointment_id)
        return appointment

    async def get_party_appointments(
        self, party_id: str, status: AppointmentStatus | None = None
    ) -> list[Appointment]:
        """Get all appointments a party takes part in."""
        statuses = [status] if status else list(AppointmentStatus)
        return await self.store.fetch_by_owner_and_status(party_id, statuses)

    async def get_upcoming_appointments(
        self, party_id: str, now: datetime | None = None
    ) -> list[Appointment]:
        """Get blocking appointments that have not started yet."""
        now = now or utcnow()
        appointments = await self.store.fetch_by_owner_and_status(party_id, BLOCKING_STATUSES)
        return [a for a in appointments if a.scheduled_at > now]

    async def get_today_appointments(
        self, party_id: str, now: datetime | None = None
    ) -> list[Appointment]:
        """Get a party's appointments starting on the current UTC day, any status."""
        now = now or utcnow()
        start_of_day = datetime.combine(now.date(), time.min)
        return await self.store.fetch_by_owner_between(
            party_id, start_of_day, start_of_day + timedelta(days=1)
        )

    async def get_available_slots(
        self, provider_id: str, day: date, duration_minutes: int = 30
    ) -> list[AvailableSlot]:
        """Free slots of `duration_minutes` in a provider's working day."""
        if duration_minutes <= 0:
            raise ValueError("duration_minutes must be positive")

        day_start = datetime.combine(day, SLOT_DAY_START)
        day_end = datetime.combine(day, SLOT_DAY_END)
        duration = timedelta(minutes=duration_minutes)

        busy = [
            a
            for a in await self.store.fetch_by_owner_and_status(provider_id, BLOCKING_STATUSES)
            if intervals_overlap(a.scheduled_at, a.end_time, day_start, day_end)
        ]

        available = []
        slot_start = day_start
        while slot_start + duration <= day_end:
            slot_end = slot_start + duration
            if not any(
                intervals_overlap(slot_start, slot_end, a.scheduled_at, a.end_time) for a in busy
            ):
                available.append(
                    AvailableSlot(
                        start_time=slot_start,
                        end_time=slot_end,
                        duration_minutes=duration_minutes,
                        formatted=(
                            slot_start.strftime("%A, %B %d")
                            + " at "
                            + slot_start.strftime("%I:%M %p")
                        ),
                    )
                )
            slot_start += SLOT_STEP

        logger.debug(
            "Found %d available slots for provider %s on %s", len(available), provider_id, day
        )
        return available

    async def update_status(
        self,
        appointment_id: UUID,
        new_status: AppointmentStatus,
        actor_id: str,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> Appointment:
        """Apply an explicit status change (confirm, cancel, complete, no-show)."""
        now = now or utcnow()
        appointment = await self.get_appointment_by_id(appointment_id)
        validate_status_transition(appointment.status, new_status)

        appointment.status = new_status.value
        if notes:
            appointment.append_note(notes)
        appointment.touch(actor_id, now)
        await self.store.save(appointment)
        logger.info("Appointment %s status updated to %s", appointment_id, new_status.value)
        return appointment

    async def reschedule_appointment(
        self,
        appointment_id: UUID,
        reschedule_data: AppointmentReschedule,
        actor_id: str,
        now: datetime | None = None,
    ) -> Appointment:
        """Move an active appointment to a new time."""
        now = now or utcnow()
        appointment = await self.get_appointment_by_id(appointment_id)
        if not appointment.is_blocking:
            raise InvalidStatusTransitionError(appointment.status, "RESCHEDULED")
        if reschedule_data.scheduled_at < now:
            raise ValueError("Cannot schedule appointments in the past")

        duration = reschedule_data.duration_minutes or appointment.duration_minutes
        await self._ensure_free(
            appointment, reschedule_data.scheduled_at, duration, exclude_id=appointment.id
        )

        appointment.scheduled_at = reschedule_data.scheduled_at
        appointment.duration_minutes = duration
        appointment.touch(actor_id, now)
        await self.store.save(appointment)
        logger.info("Appointment %s rescheduled to %s", appointment_id, appointment.scheduled_at)
        return appointment

    async def delete_appointment(self, appointment_id: UUID) -> int:
        """Delete a pending appointment; a series root takes its instances with it."""
        appointment = await self.get_appointment_by_id(appointment_id)
        if appointment.status != AppointmentStatus.PENDING.value:
            raise InvalidStatusTransitionError(appointment.status, "DELETED")

        ids = []
        if appointment.is_series_root:
            instances = await self.store.fetch_by_series_root(appointment.id)
            ids.extend(instance.id for instance in instances)
            logger.info(
                "Deleting %d recurring instances for appointment %s", len(instances), appointment_id
            )
        ids.append(appointment.id)
        return await self.store.delete_batch(ids)

    async def get_statistics(
        self, party_id: str, now: datetime | None = None
    ) -> AppointmentStatistics:
        """Counters for a party's dashboard."""
        now = now or utcnow()
        appointments = await self.get_party_appointments(party_id)
        active = [a for a in appointments if a.is_blocking]
        return AppointmentStatistics(
            today=sum(1 for a in active if a.scheduled_at.date() == now.date()),
            upcoming=sum(1 for a in active if a.scheduled_at > now),
            pending=sum(1 for a in appointments if a.status == AppointmentStatus.PENDING.value),
            total=len(appointments),
        )
