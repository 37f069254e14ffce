"""Appointment store - every lookup the lifecycle engine needs, filtered in SQL."""

from collections.abc import Iterable
from datetime import datetime
from typing import Literal
from uuid import UUID

from sqlalchemy import select, delete, func, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from appointment_engine.models.appointment import (
    Appointment,
    AppointmentStatus,
    TERMINAL_STATUSES,
)


def _values(statuses: Iterable[AppointmentStatus | str]) -> list[str]:
    return [s.value if isinstance(s, AppointmentStatus) else s for s in statuses]


class AppointmentStore:
    """Data access for appointment records."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, appointment_id: UUID) -> Appointment | None:
        """Get an appointment by ID."""
        return await self.db.get(Appointment, appointment_id)

    async def fetch_by_owner_and_status(
        self, party_id: str, statuses: Iterable[AppointmentStatus | str]
    ) -> list[Appointment]:
        """Appointments where the party is requester or provider, in the given statuses."""
        result = await self.db.execute(
            select(Appointment)
            .where(
                and_(
                    or_(
                        Appointment.requester_id == party_id,
                        Appointment.provider_id == party_id,
                    ),
                    Appointment.status.in_(_values(statuses)),
                )
            )
            .order_by(Appointment.scheduled_at)
        )
        return list(result.scalars().all())

    async def fetch_by_owner_between(
        self, party_id: str, start: datetime, end: datetime
    ) -> list[Appointment]:
        """Appointments of the party starting in [start, end), any status."""
        result = await self.db.execute(
            select(Appointment)
            .where(
                and_(
                    or_(
                        Appointment.requester_id == party_id,
                        Appointment.provider_id == party_id,
                    ),
                    Appointment.scheduled_at >= start,
                    Appointment.scheduled_at < end,
                )
            )
            .order_by(Appointment.scheduled_at)
        )
        return list(result.scalars().all())

    async def fetch_by_status_and_time_before(
        self,
        status: AppointmentStatus,
        cutoff: datetime,
        field: Literal["scheduled_at", "booked_at"] = "scheduled_at",
    ) -> list[Appointment]:
        """Appointments in a status whose `field` is strictly before the cutoff."""
        column = getattr(Appointment, field)
        result = await self.db.execute(
            select(Appointment).where(
                and_(
                    Appointment.status == status.value,
                    column < cutoff,
                )
            )
        )
        return list(result.scalars().all())

    async def fetch_by_status_and_time_between(
        self, status: AppointmentStatus, start: datetime, end: datetime
    ) -> list[Appointment]:
        """Appointments in a status starting strictly inside (start, end)."""
        result = await self.db.execute(
            select(Appointment)
            .where(
                and_(
                    Appointment.status == status.value,
                    Appointment.scheduled_at > start,
                    Appointment.scheduled_at < end,
                )
            )
            .order_by(Appointment.scheduled_at)
        )
        return list(result.scalars().all())

    async def fetch_scheduled_between(self, start: datetime, end: datetime) -> list[Appointment]:
        """All appointments starting strictly inside (start, end), any status."""
        result = await self.db.execute(
            select(Appointment).where(
                and_(
                    Appointment.scheduled_at > start,
                    Appointment.scheduled_at < end,
                )
            )
        )
        return list(result.scalars().all())

    async def fetch_by_series_root(self, root_id: UUID) -> list[Appointment]:
        """Materialized instances of a series, oldest first."""
        result = await self.db.execute(
            select(Appointment)
            .where(Appointment.parent_appointment_id == root_id)
            .order_by(Appointment.scheduled_at.asc())
        )
        return list(result.scalars().all())

    async def fetch_all_series_roots(self) -> list[Appointment]:
        """Recurring appointments that are not themselves instances."""
        result = await self.db.execute(
            select(Appointment).where(
                and_(
                    Appointment.is_recurring.is_(True),
                    Appointment.parent_appointment_id.is_(None),
                )
            )
        )
        return list(result.scalars().all())

    async def fetch_retention_candidates(self, cutoff: datetime) -> list[Appointment]:
        """Terminal appointments scheduled before the cutoff.

        Series roots are never candidates, and neither is the latest instance
        of a series, which is the anchor the next occurrence is computed from.
        """
        later = aliased(Appointment)
        has_later_sibling = (
            select(later.id)
            .where(
                and_(
                    later.parent_appointment_id == Appointment.parent_appointment_id,
                    later.scheduled_at > Appointment.scheduled_at,
                )
            )
            .exists()
        )
        result = await self.db.execute(
            select(Appointment).where(
                and_(
                    Appointment.status.in_(_values(TERMINAL_STATUSES)),
                    Appointment.scheduled_at < cutoff,
                    or_(
                        and_(
                            Appointment.is_recurring.is_(False),
                            Appointment.parent_appointment_id.is_(None),
                        ),
                        and_(
                            Appointment.parent_appointment_id.is_not(None),
                            has_later_sibling,
                        ),
                    ),
                )
            )
        )
        return list(result.scalars().all())

    async def count_by_status(self) -> dict[str, int]:
        """Number of appointments per status."""
        result = await self.db.execute(
            select(Appointment.status, func.count(Appointment.id)).group_by(Appointment.status)
        )
        return {status: count for status, count in result.all()}

    async def save(self, appointment: Appointment) -> Appointment:
        """Insert or update an appointment."""
        self.db.add(appointment)
        await self.db.flush()
        return appointment

    async def delete_batch(self, appointment_ids: list[UUID]) -> int:
        """Delete appointments by ID, returning how many rows went away."""
        if not appointment_ids:
            return 0
        result = await self.db.execute(
            delete(Appointment)
            .where(Appointment.id.in_(appointment_ids))
        )
        await self.db.flush()
        return result.rowcount
