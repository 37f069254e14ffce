"""Recurrence service - generates the next occurrence of recurring series.

A series root is a recurring appointment with no parent. Its occurrences are
materialized one at a time as ordinary PENDING appointments pointing back at
the root. Each call looks at the latest materialized instance (or the root
itself when there is none), steps one period forward and creates that
occurrence only if it is inside the look-ahead window, not past the series
end date, and not already present. A series that fell behind catches up one
occurrence per call.
"""

import logging
from datetime import datetime, timedelta
from enum import Enum

import logfire
from dateutil.relativedelta import relativedelta

from appointment_engine.config import Settings, settings as default_settings
from appointment_engine.exceptions import InvalidRecurrenceError
from appointment_engine.models.appointment import (
    Appointment,
    AppointmentStatus,
    RecurringPattern,
    SystemActor,
)
from appointment_engine.services.appointment_store import AppointmentStore
from appointment_engine.services.conflict_service import ConflictDetector

logger = logging.getLogger(__name__)


# MONTHLY clamps to the last day of shorter months (Jan 31 -> Feb 28/29)
PERIODS = {
    RecurringPattern.WEEKLY: relativedelta(weeks=1),
    RecurringPattern.BIWEEKLY: relativedelta(weeks=2),
    RecurringPattern.MONTHLY: relativedelta(months=1),
}

# Descriptive fields copied from the root onto each instance
COPIED_FIELDS = (
    "requester_id",
    "provider_id",
    "subject",
    "description",
    "location",
    "appointment_type",
    "course_id",
    "meeting_link",
    "meeting_password",
    "duration_minutes",
)


class RecurrenceOutcome(str, Enum):
    CREATED = "created"
    NOT_DUE = "not_due"
    CONFLICT = "conflict"


def advance(instant: datetime, pattern: RecurringPattern | str) -> datetime:
    """Step `instant` forward by one recurrence period."""
    try:
        return instant + PERIODS[RecurringPattern(pattern)]
    except ValueError as e:
        raise InvalidRecurrenceError(f"Unknown recurring pattern: {pattern!r}") from e


def next_occurrence(root: Appointment, instances: list[Appointment]) -> datetime:
    """Start time of the occurrence after the latest materialized one."""
    if not root.recurring_pattern:
        raise InvalidRecurrenceError(f"Series root {root.id} has no recurring pattern")

    if instances:
        base = max(instance.scheduled_at for instance in instances)
    else:
        base = root.scheduled_at
    return advance(base, root.recurring_pattern)


def should_materialize_next(
    root: Appointment,
    instances: list[Appointment],
    now: datetime,
    lookahead_days: int = 30,
) -> bool:
    """Whether the next occurrence is due for creation right now."""
    next_time = next_occurrence(root, instances)

    if next_time > now + timedelta(days=lookahead_days):
        return False

    if root.recurring_end_date is not None and next_time > root.recurring_end_date:
        return False

    return all(instance.scheduled_at != next_time for instance in instances)


class RecurrenceService:
    """Service class for materializing recurring series."""

    def __init__(
        self,
        store: AppointmentStore,
        conflicts: ConflictDetector | None = None,
        settings: Settings = default_settings,
    ):
        self.store = store
        self.conflicts = conflicts or ConflictDetector(store)
        self.settings = settings

    async def materialize_next(
        self,
        root: Appointment,
        now: datetime,
        instances: list[Appointment] | None = None,
    ) -> Appointment | None:
        """Create the next instance of a series, or return None if the provider is busy."""
        if instances is None:
            instances = await self.store.fetch_by_series_root(root.id)
        next_time = next_occurrence(root, instances)
        next_end = next_time + timedelta(minutes=root.duration_minutes)

        if await self.conflicts.has_conflict(
            root.provider_id, next_time, next_end, exclude_id=root.id
        ):
            logger.info(
                "Skipping recurring instance for appointment %s at %s due to conflicts",
                root.id,
                next_time,
            )
            logfire.info(
                "recurrence_conflict_skip",
                root_id=str(root.id),
                scheduled_at=next_time.isoformat(),
            )
            return None

        instance = Appointment(
            **{field: getattr(root, field) for field in COPIED_FIELDS},
            scheduled_at=next_time,
            status=AppointmentStatus.PENDING.value,
            is_recurring=False,
            parent_appointment_id=root.id,
            booked_at=now,
            last_modified_at=now,
            last_modified_by=SystemActor.RECURRING.value,
        )
        await self.store.save(instance)
        logger.info("Created new recurring instance for appointment %s at %s", root.id, next_time)
        return instance

    async def process_series(self, root: Appointment, now: datetime) -> RecurrenceOutcome:
        """Materialize at most one new instance of a series."""
        instances = await self.store.fetch_by_series_root(root.id)
        if not should_materialize_next(
            root, instances, now, self.settings.recurrence_lookahead_days
        ):
            return RecurrenceOutcome.NOT_DUE

        instance = await self.materialize_next(root, now, instances)
        if instance is None:
            return RecurrenceOutcome.CONFLICT
        return RecurrenceOutcome.CREATED
