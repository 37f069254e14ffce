from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime
from appointment_engine.clock import to_naive_utc
from appointment_engine.models.appointment import (
    AppointmentStatus,
    AppointmentType,
    RecurringPattern,
)


class AppointmentBase(BaseModel):
    """Base appointment schema."""
    subject: str = Field(..., min_length=1, max_length=200, description="Short title")
    description: str | None = Field(None, description="Optional details")
    scheduled_at: datetime = Field(..., description="Start time (UTC)")
    duration_minutes: int = Field(30, ge=1, le=480, description="Length in minutes")
    location: str | None = Field(None, max_length=200, description="Room or 'Online'")
    appointment_type: AppointmentType = AppointmentType.OTHER
    course_id: str | None = None
    meeting_link: str | None = None
    meeting_password: str | None = None

    @field_validator("scheduled_at")
    @classmethod
    def normalize_scheduled_at(cls, value: datetime) -> datetime:
        return to_naive_utc(value)


class AppointmentCreate(AppointmentBase):
    """Schema for booking an appointment."""
    requester_id: str = Field(..., min_length=1, max_length=64)
    provider_id: str = Field(..., min_length=1, max_length=64)
    notes: str | None = None
    is_recurring: bool = False
    recurring_pattern: RecurringPattern | None = None
    recurring_end_date: datetime | None = None

    @field_validator("recurring_end_date")
    @classmethod
    def normalize_end_date(cls, value: datetime | None) -> datetime | None:
        return to_naive_utc(value)

    @model_validator(mode="after")
    def check_recurrence(self) -> "AppointmentCreate":
        if self.requester_id == self.provider_id:
            raise ValueError("requester and provider must be different parties")
        if self.is_recurring and self.recurring_pattern is None:
            raise ValueError("recurring_pattern is required for recurring appointments")
        if not self.is_recurring and (self.recurring_pattern or self.recurring_end_date):
            raise ValueError("recurrence fields require is_recurring")
        if self.recurring_end_date and self.recurring_end_date <= self.scheduled_at:
            raise ValueError("recurring_end_date must be after scheduled_at")
        return self


class AppointmentReschedule(BaseModel):
    """Schema for moving an appointment."""
    scheduled_at: datetime
    duration_minutes: int | None = Field(None, ge=1, le=480)

    @field_validator("scheduled_at")
    @classmethod
    def normalize_scheduled_at(cls, value: datetime) -> datetime:
        return to_naive_utc(value)


class AppointmentStatusUpdate(BaseModel):
    """Schema for an explicit status change."""
    status: AppointmentStatus
    notes: str | None = None


class AvailableSlot(BaseModel):
    """Schema for a free slot in a provider's day."""
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    formatted: str = Field(..., description="Human-readable format")


class AppointmentStatistics(BaseModel):
    """Per-party counters."""
    today: int
    upcoming: int
    pending: int
    total: int
