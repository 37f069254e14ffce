"""Conflict detection - half-open interval overlap against blocking appointments."""

from datetime import datetime
from uuid import UUID

from appointment_engine.models.appointment import Appointment, BLOCKING_STATUSES
from appointment_engine.services.appointment_store import AppointmentStore


def intervals_overlap(
    start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime
) -> bool:
    """True when [start_a, end_a) and [start_b, end_b) share any instant.

    Touching endpoints (one ends exactly when the other starts) do not overlap.
    """
    return start_a < end_b and start_b < end_a


class ConflictDetector:
    """Checks a party's calendar for overlapping PENDING/CONFIRMED appointments."""

    def __init__(self, store: AppointmentStore):
        self.store = store

    async def find_conflicts(
        self,
        party_id: str,
        start: datetime,
        end: datetime,
        exclude_id: UUID | None = None,
    ) -> list[Appointment]:
        """Blocking appointments of `party_id` overlapping [start, end)."""
        candidates = await self.store.fetch_by_owner_and_status(party_id, BLOCKING_STATUSES)
        return [
            appointment
            for appointment in candidates
            if appointment.id != exclude_id
            and intervals_overlap(appointment.scheduled_at, appointment.end_time, start, end)
        ]

    async def has_conflict(
        self,
        party_id: str,
        start: datetime,
        end: datetime,
        exclude_id: UUID | None = None,
    ) -> bool:
        """Whether any blocking appointment of `party_id` overlaps [start, end)."""
        conflicts = await self.find_conflicts(party_id, start, end, exclude_id)
        return bool(conflicts)
