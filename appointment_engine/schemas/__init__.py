from appointment_engine.schemas.appointment import (
    AppointmentCreate,
    AppointmentReschedule,
    AppointmentStatusUpdate,
    AppointmentStatistics,
    AvailableSlot,
)
from appointment_engine.schemas.reports import (
    ReminderPayload,
    ReminderRunResult,
    RecurrenceRunResult,
    MetricsSnapshot,
    WeeklyReport,
)

__all__ = [
    "AppointmentCreate",
    "AppointmentReschedule",
    "AppointmentStatusUpdate",
    "AppointmentStatistics",
    "AvailableSlot",
    "ReminderPayload",
    "ReminderRunResult",
    "RecurrenceRunResult",
    "MetricsSnapshot",
    "WeeklyReport",
]
