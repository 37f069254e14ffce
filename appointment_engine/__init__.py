"""Appointment lifecycle engine - conflicts, recurring series and scheduled sweeps."""

__version__ = "1.0.0"
