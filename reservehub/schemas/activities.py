from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ..models.enums import EventType, TrainingType, CompletionStatus
from .users import UserSummary


# Event Schemas
class EventBase(BaseModel):
    name: str
    event_type: EventType
    location: str
    start_time: datetime
    end_time: datetime
    notes: Optional[str] = None
    min_participants: int = Field(default=1, ge=0)
    max_participants: Optional[int] = Field(default=None, ge=0)


class EventCreate(EventBase):
    pass


class EventUpdate(BaseModel):
    name: Optional[str] = None
    event_type: Optional[EventType] = None
    location: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    notes: Optional[str] = None
    min_participants: Optional[int] = Field(default=None, ge=0)
    max_participants: Optional[int] = Field(default=None, ge=0)


class EventResponse(EventBase):
    id: int
    last_reminder_sent: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EventAssignmentResponse(BaseModel):
    id: int
    event_id: int
    user_id: int
    created_at: datetime
    user: Optional[UserSummary] = None
    event: Optional[EventResponse] = None

    class Config:
        from_attributes = True


# Training Schemas
class TrainingBase(BaseModel):
    name: str
    description: Optional[str] = None
    training_type: TrainingType = TrainingType.other
    location: str
    instructor: Optional[str] = None
    start_time: datetime
    end_time: datetime
    min_participants: int = Field(default=1, ge=0)
    max_participants: Optional[int] = Field(default=None, ge=0)


class TrainingCreate(TrainingBase):
    pass


class TrainingUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    training_type: Optional[TrainingType] = None
    location: Optional[str] = None
    instructor: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    min_participants: Optional[int] = Field(default=None, ge=0)
    max_participants: Optional[int] = Field(default=None, ge=0)


class TrainingResponse(TrainingBase):
    id: int
    last_reminder_sent: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TrainingAssignmentResponse(BaseModel):
    id: int
    training_id: int
    user_id: int
    completion_status: Optional[CompletionStatus] = None
    completion_notes: Optional[str] = None
    created_at: datetime
    user: Optional[UserSummary] = None
    training: Optional[TrainingResponse] = None

    class Config:
        from_attributes = True


class CompletionUpdate(BaseModel):
    status: CompletionStatus
    notes: Optional[str] = None
