"""Lifecycle service - the automated sweeps over appointment state.

Transitions applied here:

    CONFIRMED -> COMPLETED   end time at least `completion_grace_hours` ago
    PENDING   -> CANCELLED   booked more than `abandonment_hours` ago
    terminal  -> (deleted)   scheduled more than `retention_years` ago,
                             never a series root or its latest instance

Every sweep fetches its candidates once, re-checks the guard on each record
before touching it and tags the change with a synthetic actor, so running a
sweep twice in a row changes nothing the second time.
"""

import asyncio
import logging
from datetime import datetime, timedelta

import logfire
from dateutil.relativedelta import relativedelta
from sqlalchemy.ext.asyncio import AsyncSession

from appointment_engine.clock import utcnow
from appointment_engine.config import Settings, settings as default_settings
from appointment_engine.models.appointment import (
    Appointment,
    AppointmentStatus,
    SystemActor,
)
from appointment_engine.schemas.reports import (
    MetricsSnapshot,
    RecurrenceRunResult,
    ReminderPayload,
    ReminderRunResult,
    WeeklyReport,
)
from appointment_engine.services.appointment_store import AppointmentStore
from appointment_engine.services.notifier import LogNotifier, Notifier
from appointment_engine.services.recurrence_service import RecurrenceOutcome, RecurrenceService

logger = logging.getLogger(__name__)


def _rate(part: int, total: int) -> float:
    return round(part / total * 100, 2) if total else 0.0


class LifecycleService:
    """Service class for scheduled appointment maintenance."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: Notifier | None = None,
        settings: Settings = default_settings,
    ):
        self.db = db
        self.store = AppointmentStore(db)
        self.recurrence = RecurrenceService(self.store, settings=settings)
        self.notifier = notifier or LogNotifier()
        self.settings = settings

    async def complete_expired_appointments(self, now: datetime | None = None) -> int:
        """Mark confirmed appointments that ended long enough ago as completed."""
        now = now or utcnow()
        cutoff = now - timedelta(hours=self.settings.completion_grace_hours)
        logger.info("Starting auto-completion of expired appointments")

        with logfire.span("complete_expired_appointments"):
            # start < end <= cutoff, so filtering on start keeps every candidate
            candidates = await self.store.fetch_by_status_and_time_before(
                AppointmentStatus.CONFIRMED, cutoff
            )

            completed = 0
            for appointment in candidates:
                if appointment.status != AppointmentStatus.CONFIRMED.value:
                    continue
                if appointment.end_time > cutoff:
                    continue

                appointment.status = AppointmentStatus.COMPLETED.value
                appointment.touch(SystemActor.AUTO_COMPLETE.value, now)
                appointment.append_note(f"Auto-completed by system at {now.isoformat()}")
                await self.store.save(appointment)
                completed += 1

        if completed:
            logger.info("Auto-completed %d expired appointments", completed)
        else:
            logger.debug("No expired appointments found to auto-complete")
        return completed

    async def cancel_abandoned_appointments(self, now: datetime | None = None) -> int:
        """Cancel pending appointments nobody confirmed in time."""
        now = now or utcnow()
        cutoff = now - timedelta(hours=self.settings.abandonment_hours)
        logger.info("Starting cancellation of abandoned pending appointments")

        with logfire.span("cancel_abandoned_appointments"):
            candidates = await self.store.fetch_by_status_and_time_before(
                AppointmentStatus.PENDING, cutoff, field="booked_at"
            )

            cancelled = 0
            for appointment in candidates:
                if appointment.status != AppointmentStatus.PENDING.value:
                    continue
                if appointment.booked_at >= cutoff:
                    continue

                appointment.status = AppointmentStatus.CANCELLED.value
                appointment.touch(SystemActor.AUTO_CANCEL.value, now)
                appointment.append_note(
                    f"Auto-cancelled due to no response within "
                    f"{self.settings.abandonment_hours} hours"
                )
                await self.store.save(appointment)
                cancelled += 1

        if cancelled:
            logger.info("Auto-cancelled %d abandoned pending appointments", cancelled)
        else:
            logger.debug("No abandoned pending appointments found")
        return cancelled

    async def cleanup_old_appointments(self, now: datetime | None = None) -> int:
        """Delete finished appointments past the retention horizon."""
        now = now or utcnow()
        cutoff = now - relativedelta(years=self.settings.retention_years)
        logger.info("Starting cleanup of old appointments")

        with logfire.span("cleanup_old_appointments"):
            candidates = await self.store.fetch_retention_candidates(cutoff)
            deleted = await self.store.delete_batch([a.id for a in candidates])

        if deleted:
            logger.info(
                "Cleaned up %d old appointments (older than %d years)",
                deleted,
                self.settings.retention_years,
            )
        else:
            logger.debug("No old appointments found for cleanup")
        return deleted

    async def send_reminders(self, now: datetime | None = None) -> ReminderRunResult:
        """Emit one reminder per confirmed appointment starting roughly a day from now."""
        now = now or utcnow()
        window_start = now + timedelta(hours=self.settings.reminder_window_start_hours)
        window_end = now + timedelta(hours=self.settings.reminder_window_end_hours)
        logger.info("Starting appointment reminder notifications")

        result = ReminderRunResult()
        with logfire.span("send_reminders"):
            upcoming = await self.store.fetch_by_status_and_time_between(
                AppointmentStatus.CONFIRMED, window_start, window_end
            )

            for appointment in upcoming:
                if await self._emit_reminder(appointment):
                    result.sent += 1
                else:
                    result.failed += 1

        if result.sent or result.failed:
            logger.info("Sent %d appointment reminders (%d failed)", result.sent, result.failed)
        else:
            logger.debug("No appointment reminders to send")
        return result

    async def _emit_reminder(self, appointment: Appointment) -> bool:
        payload = ReminderPayload(
            appointment_id=appointment.id,
            subject=appointment.subject,
            requester_id=appointment.requester_id,
            provider_id=appointment.provider_id,
            scheduled_at=appointment.scheduled_at,
            duration_minutes=appointment.duration_minutes,
            location=appointment.location,
            meeting_link=appointment.meeting_link,
        )
        try:
            delivered = await asyncio.wait_for(
                self.notifier.emit(appointment.requester_id, appointment.id, payload),
                timeout=self.settings.notifier_timeout_seconds,
            )
        except Exception:
            logger.exception("Failed to send reminder for appointment %s", appointment.id)
            return False

        if not delivered:
            logger.warning("Notifier rejected reminder for appointment %s", appointment.id)
        return delivered

    async def process_recurring_appointments(
        self, now: datetime | None = None
    ) -> RecurrenceRunResult:
        """Create the next due instance of every recurring series."""
        now = now or utcnow()
        logger.info("Starting processing of recurring appointments")

        result = RecurrenceRunResult()
        with logfire.span("process_recurring_appointments"):
            roots = await self.store.fetch_all_series_roots()

            for root in roots:
                try:
                    # A failed flush only rolls back this root's savepoint
                    async with self.db.begin_nested():
                        outcome = await self.recurrence.process_series(root, now)
                except Exception:
                    logger.exception("Failed to process recurring appointment %s", root.id)
                    result.failed += 1
                    continue

                if outcome is RecurrenceOutcome.CREATED:
                    result.created += 1
                elif outcome is RecurrenceOutcome.CONFLICT:
                    result.skipped_conflict += 1
                else:
                    result.not_due += 1

        if result.created:
            logger.info("Created %d new recurring appointment instances", result.created)
        else:
            logger.debug("No new recurring appointment instances needed")
        return result

    async def compute_metrics(self, now: datetime | None = None) -> MetricsSnapshot:
        """Snapshot of appointment counts by status."""
        now = now or utcnow()
        counts = await self.store.count_by_status()
        snapshot = MetricsSnapshot(
            generated_at=now,
            total=sum(counts.values()),
            by_status={status.value: counts.get(status.value, 0) for status in AppointmentStatus},
        )
        logger.debug(
            "Appointment metrics - Total: %d, %s",
            snapshot.total,
            ", ".join(f"{k}: {v}" for k, v in snapshot.by_status.items()),
        )
        logfire.info("appointment_metrics", total=snapshot.total, **snapshot.by_status)
        return snapshot

    async def generate_weekly_report(self, now: datetime | None = None) -> WeeklyReport:
        """Completion and cancellation rates over the trailing week."""
        now = now or utcnow()
        window_start = now - timedelta(days=self.settings.weekly_report_days)
        logger.info("Generating weekly appointment reports")

        appointments = await self.store.fetch_scheduled_between(window_start, now)
        total = len(appointments)
        completed = sum(1 for a in appointments if a.status == AppointmentStatus.COMPLETED.value)
        cancelled = sum(1 for a in appointments if a.status == AppointmentStatus.CANCELLED.value)

        report = WeeklyReport(
            window_start=window_start,
            window_end=now,
            total=total,
            completed=completed,
            cancelled=cancelled,
            completion_rate=_rate(completed, total),
            cancellation_rate=_rate(cancelled, total),
        )
        logger.info(
            "Weekly Report - Total appointments: %d, Completed: %d, Cancelled: %d, "
            "Completion rate: %.2f%%",
            report.total,
            report.completed,
            report.cancelled,
            report.completion_rate,
        )
        logfire.info("appointment_weekly_report", **report.model_dump(mode="json"))
        return report
