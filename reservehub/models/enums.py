"""Closed value sets shared by the ORM models, schemas and services."""
from enum import Enum


class Role(str, Enum):
    admin = "admin"
    member = "member"
    guest = "guest"


class Position(str, Enum):
    reserve = "reserve"
    officer = "officer"
    admin = "admin"
    staff = "staff"
    dispatcher = "dispatcher"
    candidate = "candidate"


class UserStatus(str, Enum):
    active = "active"
    inactive = "inactive"
    denied = "denied"


class ApplicationStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class PriorExperience(str, Enum):
    none = "none"
    less_than_1_year = "less_than_1_year"
    one_to_3_years = "1_to_3_years"
    more_than_3_years = "more_than_3_years"


class Availability(str, Enum):
    weekdays = "weekdays"
    weekends = "weekends"
    both = "both"
    flexible = "flexible"


class Condition(str, Enum):
    new = "new"
    good = "good"
    fair = "fair"
    poor = "poor"
    damaged_broken = "damaged/broken"


class EventType(str, Enum):
    patrol = "patrol"
    training = "training"
    meeting = "meeting"
    community_event = "community_event"
    special_event = "special_event"


class TrainingType(str, Enum):
    firearms = "firearms"
    defensive_tactics = "defensive_tactics"
    first_aid = "first_aid"
    legal = "legal"
    patrol_procedures = "patrol_procedures"
    other = "other"


class CompletionStatus(str, Enum):
    completed = "completed"
    incomplete = "incomplete"
    excused = "excused"
    unexcused = "unexcused"


class NotificationType(str, Enum):
    application_submitted = "application_submitted"
    application_approved = "application_approved"
    application_rejected = "application_rejected"
    event_created = "event_created"
    event_updated = "event_updated"
    event_signup = "event_signup"
    event_signup_reminder = "event_signup_reminder"
    event_reminder = "event_reminder"
    training_created = "training_created"
    training_updated = "training_updated"
    training_signup = "training_signup"
    training_signup_reminder = "training_signup_reminder"
    training_reminder = "training_reminder"
    equipment_assigned = "equipment_assigned"
    equipment_returned = "equipment_returned"
    equipment_return_reminder = "equipment_return_reminder"
    policy_created = "policy_created"
    policy_updated = "policy_updated"
    policy_reminder = "policy_reminder"
    general = "general"
    announcement = "announcement"
