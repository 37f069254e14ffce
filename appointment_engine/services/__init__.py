"""Services package - Business logic layer."""

from appointment_engine.services.appointment_store import AppointmentStore
from appointment_engine.services.conflict_service import ConflictDetector
from appointment_engine.services.recurrence_service import RecurrenceService
from appointment_engine.services.lifecycle_service import LifecycleService
from appointment_engine.services.appointment_service import AppointmentService
from appointment_engine.services.notifier import Notifier, LogNotifier

__all__ = [
    "AppointmentStore",
    "ConflictDetector",
    "RecurrenceService",
    "LifecycleService",
    "AppointmentService",
    "Notifier",
    "LogNotifier",
]
