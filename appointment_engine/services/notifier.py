"""Reminder notifier - the boundary to whatever delivers reminders to people."""

import logging
from uuid import UUID

import logfire

from appointment_engine.schemas.reports import ReminderPayload

logger = logging.getLogger(__name__)


class Notifier:
    """Base class for reminder delivery.

    Implementations return True when the reminder was handed off and False
    when delivery failed. Raising is treated the same as returning False.
    """

    async def emit(self, party_id: str, appointment_id: UUID, payload: ReminderPayload) -> bool:
        raise NotImplementedError


class LogNotifier(Notifier):
    """Records reminders in the logs instead of delivering them."""

    async def emit(self, party_id: str, appointment_id: UUID, payload: ReminderPayload) -> bool:
        logger.info(
            "Reminder: appointment '%s' for %s with %s at %s",
            payload.subject,
            payload.requester_id,
            payload.provider_id,
            payload.scheduled_at,
        )
        logfire.info(
            "appointment_reminder",
            party_id=party_id,
            appointment_id=str(appointment_id),
            scheduled_at=payload.scheduled_at.isoformat(),
        )
        return True
