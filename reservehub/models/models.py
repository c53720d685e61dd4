from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Integer,
    Text,
    Index,
    UniqueConstraint,
    Enum as SAEnum,
    text,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base
from .enums import (
    Role,
    Position,
    UserStatus,
    ApplicationStatus,
    PriorExperience,
    Availability,
    Condition,
    EventType,
    TrainingType,
    CompletionStatus,
    NotificationType,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise to aware UTC before it is written or compared.

    SQLite drops offsets and hands back naive datetimes, so every stored value
    is UTC wall-clock time and naive input is read as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def int_pk() -> Mapped[int]:
    return mapped_column(Integer, primary_key=True, autoincrement=True)


def enum_type(enum_cls) -> SAEnum:
    # Stored as plain strings (value, not member name) so the DB stays readable
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=50,
        validate_strings=True,
        values_callable=lambda members: [m.value for m in members],
    )


# =====================
# Members
# =====================

class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = int_pk()
    auth_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)  # Subject issued by the identity provider
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    driver_license: Mapped[Optional[str]] = mapped_column(String(50))
    driver_license_state: Mapped[Optional[str]] = mapped_column(String(50))
    street_address: Mapped[Optional[str]] = mapped_column(String(255))
    city: Mapped[Optional[str]] = mapped_column(String(100))
    state: Mapped[Optional[str]] = mapped_column(String(50))
    zip_code: Mapped[Optional[str]] = mapped_column(String(20))
    callsign: Mapped[Optional[str]] = mapped_column(String(50))
    radio_number: Mapped[Optional[str]] = mapped_column(String(50))
    role: Mapped[Role] = mapped_column(enum_type(Role), nullable=False, default=Role.guest, index=True)
    position: Mapped[Position] = mapped_column(enum_type(Position), nullable=False, default=Position.reserve, index=True)
    status: Mapped[UserStatus] = mapped_column(enum_type(UserStatus), nullable=False, default=UserStatus.active)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    applications = relationship("Application", back_populates="user", cascade="all, delete-orphan")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin


class Application(Base):
    """Applicant intake form submitted by a guest"""
    __tablename__ = "applications"

    id: Mapped[int] = int_pk()
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    driver_license: Mapped[str] = mapped_column(String(50), nullable=False)
    street_address: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(50), nullable=False)
    zip_code: Mapped[str] = mapped_column(String(20), nullable=False)
    prior_experience: Mapped[PriorExperience] = mapped_column(enum_type(PriorExperience), nullable=False)
    availability: Mapped[Availability] = mapped_column(enum_type(Availability), nullable=False)
    resume: Mapped[Optional[str]] = mapped_column(String(500))  # Object key in the resumes bucket
    position: Mapped[Position] = mapped_column(enum_type(Position), nullable=False, default=Position.reserve)
    status: Mapped[ApplicationStatus] = mapped_column(enum_type(ApplicationStatus), nullable=False, default=ApplicationStatus.pending, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="applications")


# =====================
# Equipment
# =====================

class Equipment(Base):
    """Issued gear: radios, vests, uniforms, flashlights"""
    __tablename__ = "equipment"

    id: Mapped[int] = int_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    serial_number: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    purchase_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    is_assigned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    assigned_to: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True)
    is_obsolete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)  # Terminal, never reset
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    assignments = relationship("AssignedEquipment", back_populates="equipment", cascade="all, delete-orphan", order_by="AssignedEquipment.checked_out_at.desc()")
    assigned_user = relationship("User", foreign_keys=[assigned_to])


class AssignedEquipment(Base):
    """One checkout episode of one equipment item; checked_in_at IS NULL while active"""
    __tablename__ = "assigned_equipment"

    id: Mapped[int] = int_pk()
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    equipment_id: Mapped[int] = mapped_column(Integer, ForeignKey("equipment.id", ondelete="CASCADE"), nullable=False, index=True)
    condition: Mapped[Condition] = mapped_column(enum_type(Condition), nullable=False)
    checked_out_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    checked_in_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    expected_return_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    equipment = relationship("Equipment", back_populates="assignments")
    user = relationship("User", foreign_keys=[user_id])

    @property
    def is_active(self) -> bool:
        return self.checked_in_at is None

    __table_args__ = (
        # At most one open checkout per equipment item
        Index(
            "uq_assigned_equipment_active",
            "equipment_id",
            unique=True,
            sqlite_where=text("checked_in_at IS NULL"),
            postgresql_where=text("checked_in_at IS NULL"),
        ),
        Index("idx_assigned_equipment_user_checkout", "user_id", "checked_out_at"),
    )


# =====================
# Events & Training
# =====================

class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = int_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    event_type: Mapped[EventType] = mapped_column(enum_type(EventType), nullable=False, index=True)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    min_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_participants: Mapped[Optional[int]] = mapped_column(Integer)
    last_reminder_sent: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    assignments = relationship("EventAssignment", back_populates="event", cascade="all, delete-orphan")


class EventAssignment(Base):
    __tablename__ = "event_assignments"

    id: Mapped[int] = int_pk()
    event_id: Mapped[int] = mapped_column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    event = relationship("Event", back_populates="assignments")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_assignment_user"),
    )


class Training(Base):
    __tablename__ = "trainings"

    id: Mapped[int] = int_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    training_type: Mapped[TrainingType] = mapped_column(enum_type(TrainingType), nullable=False, default=TrainingType.other)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    instructor: Mapped[Optional[str]] = mapped_column(String(255))
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    min_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_participants: Mapped[Optional[int]] = mapped_column(Integer)
    last_reminder_sent: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    assignments = relationship("TrainingAssignment", back_populates="training", cascade="all, delete-orphan")


class TrainingAssignment(Base):
    __tablename__ = "training_assignments"

    id: Mapped[int] = int_pk()
    training_id: Mapped[int] = mapped_column(Integer, ForeignKey("trainings.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    completion_status: Mapped[Optional[CompletionStatus]] = mapped_column(enum_type(CompletionStatus))  # Null until the session has passed
    completion_notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    training = relationship("Training", back_populates="assignments")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("training_id", "user_id", name="uq_training_assignment_user"),
    )


# =====================
# Policies
# =====================

class Policy(Base):
    __tablename__ = "policies"

    id: Mapped[int] = int_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    policy_type: Mapped[Optional[str]] = mapped_column(String(100))
    policy_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    policy_url: Mapped[Optional[str]] = mapped_column(String(500))  # Object key in the policies bucket
    effective_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_reminder_sent: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    completions = relationship("PolicyCompletion", back_populates="policy", cascade="all, delete-orphan")


class PolicyCompletion(Base):
    """Append-only acknowledgement of a policy by a user"""
    __tablename__ = "policy_completions"

    id: Mapped[int] = int_pk()
    policy_id: Mapped[int] = mapped_column(Integer, ForeignKey("policies.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    acknowledged_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    policy = relationship("Policy", back_populates="completions")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("policy_id", "user_id", name="uq_policy_completion_user"),
    )


# =====================
# Notifications
# =====================

class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = int_pk()
    type: Mapped[NotificationType] = mapped_column(enum_type(NotificationType), nullable=False, index=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[Optional[str]] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    recipients = relationship("NotificationRecipient", back_populates="notification", cascade="all, delete-orphan")


class NotificationRecipient(Base):
    __tablename__ = "notification_recipients"

    id: Mapped[int] = int_pk()
    notification_id: Mapped[int] = mapped_column(Integer, ForeignKey("notifications.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    notification = relationship("Notification", back_populates="recipients")

    __table_args__ = (
        UniqueConstraint("notification_id", "user_id", name="uq_notification_recipient_user"),
        Index("idx_notification_recipient_user_read", "user_id", "is_read"),
    )
