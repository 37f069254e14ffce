"""The appointment maintenance jobs and their cadences."""

import logging
from collections.abc import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from appointment_engine.config import Settings, settings as default_settings
from appointment_engine.database import AsyncSessionLocal, session_scope
from appointment_engine.scheduler.driver import JobFunc, Scheduler
from appointment_engine.scheduler.triggers import CronTrigger, IntervalTrigger
from appointment_engine.services.lifecycle_service import LifecycleService
from appointment_engine.services.notifier import LogNotifier, Notifier

logger = logging.getLogger(__name__)


Operation = Callable[[LifecycleService], Awaitable[object]]


def lifecycle_job(
    operation: Operation,
    session_factory: async_sessionmaker[AsyncSession],
    notifier: Notifier,
    settings: Settings,
) -> JobFunc:
    """Wrap a LifecycleService operation so each run gets its own session."""

    async def run() -> object:
        async with session_scope(session_factory) as session:
            service = LifecycleService(session, notifier=notifier, settings=settings)
            return await operation(service)

    return run


def build_scheduler(
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
    notifier: Notifier | None = None,
    settings: Settings = default_settings,
) -> Scheduler:
    """Create a scheduler with all seven appointment maintenance jobs registered."""
    notifier = notifier or LogNotifier()
    scheduler = Scheduler()

    jobs = [
        (
            "complete_expired_appointments",
            lambda s: s.complete_expired_appointments(),
            IntervalTrigger(settings.completion_interval_seconds),
        ),
        (
            "cleanup_old_appointments",
            lambda s: s.cleanup_old_appointments(),
            CronTrigger(settings.retention_cron_hour, settings.retention_cron_minute),
        ),
        (
            "send_reminders",
            lambda s: s.send_reminders(),
            IntervalTrigger(settings.reminder_interval_seconds),
        ),
        (
            "process_recurring_appointments",
            lambda s: s.process_recurring_appointments(),
            CronTrigger(settings.recurrence_cron_hour, settings.recurrence_cron_minute),
        ),
        (
            "compute_metrics",
            lambda s: s.compute_metrics(),
            IntervalTrigger(settings.metrics_interval_seconds),
        ),
        (
            "cancel_abandoned_appointments",
            lambda s: s.cancel_abandoned_appointments(),
            CronTrigger(settings.abandonment_cron_hour, settings.abandonment_cron_minute),
        ),
        (
            "generate_weekly_report",
            lambda s: s.generate_weekly_report(),
            CronTrigger(
                settings.weekly_report_hour,
                settings.weekly_report_minute,
                weekday=settings.weekly_report_weekday,
            ),
        ),
    ]

    for name, operation, trigger in jobs:
        scheduler.add_job(
            name, lifecycle_job(operation, session_factory, notifier, settings), trigger
        )

    logger.info("Scheduler configured with %d jobs", len(jobs))
    return scheduler
