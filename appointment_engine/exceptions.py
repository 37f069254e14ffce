"""Domain errors raised by the appointment services."""

from uuid import UUID


class AppointmentError(Exception):
    """Base class for appointment domain errors."""


class AppointmentNotFoundError(AppointmentError):
    def __init__(self, appointment_id: UUID):
        super().__init__(f"Appointment {appointment_id} not found")
        self.appointment_id = appointment_id


class SchedulingConflictError(AppointmentError):
    """The requested interval overlaps a blocking appointment of a party."""

    def __init__(self, party_id: str, conflicting_ids: list[UUID]):
        super().__init__(f"Party {party_id} has a conflicting appointment at this time")
        self.party_id = party_id
        self.conflicting_ids = conflicting_ids


class InvalidStatusTransitionError(AppointmentError):
    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot change appointment status from {current} to {requested}")
        self.current = current
        self.requested = requested


class InvalidRecurrenceError(AppointmentError):
    """A series root is missing data needed to compute its next occurrence."""
