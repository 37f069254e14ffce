import uuid
from datetime import datetime, timedelta
from enum import Enum
from sqlalchemy import String, DateTime, ForeignKey, Text, Integer, Boolean, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from appointment_engine.clock import utcnow
from appointment_engine.database import Base


class AppointmentStatus(str, Enum):
    """Appointment status enum."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


# Statuses that occupy the calendar for conflict purposes
BLOCKING_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})
TERMINAL_STATUSES = frozenset(
    {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
)


class RecurringPattern(str, Enum):
    """Recurrence period of a series root."""
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"


class AppointmentType(str, Enum):
    """Kind of meeting (descriptive only)."""
    OFFICE_HOURS = "OFFICE_HOURS"
    CONSULTATION = "CONSULTATION"
    PROJECT_DISCUSSION = "PROJECT_DISCUSSION"
    EXAM_REVIEW = "EXAM_REVIEW"
    THESIS_GUIDANCE = "THESIS_GUIDANCE"
    ACADEMIC_ADVISING = "ACADEMIC_ADVISING"
    OTHER = "OTHER"


class SystemActor(str, Enum):
    """Synthetic `last_modified_by` tags for automated changes."""
    AUTO_COMPLETE = "SYSTEM_AUTO_COMPLETE"
    AUTO_CANCEL = "SYSTEM_AUTO_CANCEL"
    RECURRING = "SYSTEM_RECURRING"


NOTE_SEPARATOR = " | "


class Appointment(Base):
    """Appointment model."""

    __tablename__ = "appointments"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # Parties
    requester_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    provider_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Details (opaque to the lifecycle logic)
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    appointment_type: Mapped[str] = mapped_column(
        String(32),
        default=AppointmentType.OTHER.value,
    )
    course_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    meeting_link: Mapped[str | None] = mapped_column(String(500), nullable=True)
    meeting_password: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Time
    scheduled_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)

    status: Mapped[str] = mapped_column(
        String(20),
        default=AppointmentStatus.PENDING.value,
    )

    # Series linkage
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False)
    recurring_pattern: Mapped[str | None] = mapped_column(String(20), nullable=True)
    recurring_end_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    parent_appointment_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("appointments.id"),
        nullable=True,
        index=True,
    )

    # Audit
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    booked_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    last_modified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_modified_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
    )

    __table_args__ = (
        Index("ix_appointments_status_scheduled_at", "status", "scheduled_at"),
        Index("ix_appointments_status_booked_at", "status", "booked_at"),
        # One instance per series start; roots have no parent and are unaffected
        UniqueConstraint(
            "parent_appointment_id", "scheduled_at", name="uq_appointments_series_start"
        ),
    )

    @property
    def end_time(self) -> datetime:
        """Exclusive end of the appointment."""
        return self.scheduled_at + timedelta(minutes=self.duration_minutes)

    @property
    def is_series_root(self) -> bool:
        return self.is_recurring and self.parent_appointment_id is None

    @property
    def is_blocking(self) -> bool:
        return self.status in {s.value for s in BLOCKING_STATUSES}

    def append_note(self, entry: str) -> None:
        """Append an entry to the notes log."""
        self.notes = f"{self.notes}{NOTE_SEPARATOR}{entry}" if self.notes else entry

    def touch(self, actor: str, now: datetime) -> None:
        """Record who changed the appointment and when."""
        self.last_modified_at = now
        self.last_modified_by = actor

    def __repr__(self) -> str:
        return f"<Appointment {self.id} {self.status} {self.scheduled_at}>"
