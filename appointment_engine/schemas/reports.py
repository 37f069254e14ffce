from pydantic import BaseModel, Field
from datetime import datetime
from uuid import UUID


class ReminderPayload(BaseModel):
    """What the notifier receives for an upcoming appointment."""
    appointment_id: UUID
    subject: str
    requester_id: str
    provider_id: str
    scheduled_at: datetime
    duration_minutes: int
    location: str | None = None
    meeting_link: str | None = None


class ReminderRunResult(BaseModel):
    """Outcome of one reminder sweep."""
    sent: int = 0
    failed: int = 0


class RecurrenceRunResult(BaseModel):
    """Outcome of one recurrence sweep."""
    created: int = 0
    skipped_conflict: int = 0
    not_due: int = 0
    failed: int = 0


class MetricsSnapshot(BaseModel):
    """Appointment counts by status at a point in time."""
    generated_at: datetime
    total: int
    by_status: dict[str, int] = Field(default_factory=dict)


class WeeklyReport(BaseModel):
    """Aggregates over appointments scheduled in the trailing window."""
    window_start: datetime
    window_end: datetime
    total: int
    completed: int
    cancelled: int
    completion_rate: float = Field(..., description="Percentage of total")
    cancellation_rate: float = Field(..., description="Percentage of total")
