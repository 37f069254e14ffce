from appointment_engine.models.appointment import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    RecurringPattern,
    SystemActor,
    BLOCKING_STATUSES,
    TERMINAL_STATUSES,
)

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "AppointmentType",
    "RecurringPattern",
    "SystemActor",
    "BLOCKING_STATUSES",
    "TERMINAL_STATUSES",
]
