"""
Events and training sessions: scheduling and rosters.
Sign-up and leave live in services/signups.py.
"""
from datetime import datetime
from typing import Optional, List

import structlog
from sqlalchemy.orm import Session, joinedload

from ..db import transaction
from ..models.enums import EventType, TrainingType
from ..models.models import Event, EventAssignment, Training, TrainingAssignment, utcnow, as_utc
from . import notifications
from .errors import NotFoundError, PreconditionError

logger = structlog.get_logger(__name__)


def _check_window(start_time: datetime, end_time: datetime, min_participants: int, max_participants: Optional[int]) -> None:
    if as_utc(end_time) <= as_utc(start_time):
        raise PreconditionError("End time must be after start time")
    if min_participants < 0:
        raise PreconditionError("Minimum participants cannot be negative")
    if max_participants is not None and max_participants < min_participants:
        raise PreconditionError("Maximum participants cannot be lower than the minimum")


# ---------- EVENTS ----------
_EVENT_FIELDS = ("name", "event_type", "location", "start_time", "end_time", "notes", "min_participants", "max_participants")


def get_event(db: Session, event_id: int) -> Event:
    event = db.query(Event).filter(Event.id == event_id).first()
    if not event:
        raise NotFoundError("Event not found")
    return event


def list_events(db: Session, upcoming_only: bool = False, now: Optional[datetime] = None) -> List[Event]:
    query = db.query(Event)
    if upcoming_only:
        query = query.filter(Event.end_time >= (as_utc(now) or utcnow()))
    return query.order_by(Event.start_time.asc(), Event.id.asc()).all()


def create_event(
    db: Session,
    name: str,
    event_type: EventType,
    location: str,
    start_time: datetime,
    end_time: datetime,
    notes: Optional[str] = None,
    min_participants: int = 1,
    max_participants: Optional[int] = None,
) -> Event:
    """Schedule an event and tell every reserve about it."""
    _check_window(start_time, end_time, min_participants, max_participants)
    with transaction(db):
        event = Event(
            name=name,
            event_type=EventType(event_type),
            location=location,
            start_time=as_utc(start_time),
            end_time=as_utc(end_time),
            notes=notes,
            min_participants=min_participants,
            max_participants=max_participants,
        )
        db.add(event)
        db.flush()
        notifications.notify_event_created(db, event)
    db.refresh(event)
    logger.info("event_created", event_id=event.id, event_type=event.event_type.value)
    return event


def update_event(db: Session, event_id: int, **fields) -> Event:
    with transaction(db):
        event = get_event(db, event_id)
        for key, value in fields.items():
            if key not in _EVENT_FIELDS:
                raise PreconditionError(f"Field '{key}' cannot be updated")
            if isinstance(value, datetime):
                value = as_utc(value)
            setattr(event, key, value)
        _check_window(event.start_time, event.end_time, event.min_participants, event.max_participants)
        event.updated_at = utcnow()
        db.flush()
        notifications.notify_event_updated(db, event)
    db.refresh(event)
    logger.info("event_updated", event_id=event_id, fields=sorted(fields))
    return event


def delete_event(db: Session, event_id: int) -> None:
    """Removes the event together with its sign-ups."""
    with transaction(db):
        event = get_event(db, event_id)
        db.delete(event)
    logger.info("event_deleted", event_id=event_id)


def list_event_assignments(db: Session, event_id: int) -> List[EventAssignment]:
    get_event(db, event_id)
    return (
        db.query(EventAssignment)
        .options(joinedload(EventAssignment.user))
        .filter(EventAssignment.event_id == event_id)
        .order_by(EventAssignment.created_at.asc(), EventAssignment.id.asc())
        .all()
    )


def list_user_event_assignments(db: Session, user_id: int) -> List[EventAssignment]:
    return (
        db.query(EventAssignment)
        .join(Event, Event.id == EventAssignment.event_id)
        .options(joinedload(EventAssignment.event))
        .filter(EventAssignment.user_id == user_id)
        .order_by(Event.start_time.asc())
        .all()
    )


# ---------- TRAINING ----------
_TRAINING_FIELDS = (
    "name", "description", "training_type", "location", "instructor",
    "start_time", "end_time", "min_participants", "max_participants",
)


def get_training(db: Session, training_id: int) -> Training:
    training = db.query(Training).filter(Training.id == training_id).first()
    if not training:
        raise NotFoundError("Training not found")
    return training


def list_trainings(db: Session, upcoming_only: bool = False, now: Optional[datetime] = None) -> List[Training]:
    query = db.query(Training)
    if upcoming_only:
        query = query.filter(Training.end_time >= (as_utc(now) or utcnow()))
    return query.order_by(Training.start_time.asc(), Training.id.asc()).all()


def create_training(
    db: Session,
    name: str,
    location: str,
    start_time: datetime,
    end_time: datetime,
    training_type: TrainingType = TrainingType.other,
    description: Optional[str] = None,
    instructor: Optional[str] = None,
    min_participants: int = 1,
    max_participants: Optional[int] = None,
) -> Training:
    _check_window(start_time, end_time, min_participants, max_participants)
    with transaction(db):
        training = Training(
            name=name,
            description=description,
            training_type=TrainingType(training_type),
            location=location,
            instructor=instructor,
            start_time=as_utc(start_time),
            end_time=as_utc(end_time),
            min_participants=min_participants,
            max_participants=max_participants,
        )
        db.add(training)
        db.flush()
        notifications.notify_training_created(db, training)
    db.refresh(training)
    logger.info("training_created", training_id=training.id, training_type=training.training_type.value)
    return training


def update_training(db: Session, training_id: int, **fields) -> Training:
    with transaction(db):
        training = get_training(db, training_id)
        for key, value in fields.items():
            if key not in _TRAINING_FIELDS:
                raise PreconditionError(f"Field '{key}' cannot be updated")
            if isinstance(value, datetime):
                value = as_utc(value)
            setattr(training, key, value)
        _check_window(training.start_time, training.end_time, training.min_participants, training.max_participants)
        training.updated_at = utcnow()
        db.flush()
        notifications.notify_training_updated(db, training)
    db.refresh(training)
    logger.info("training_updated", training_id=training_id, fields=sorted(fields))
    return training


def delete_training(db: Session, training_id: int) -> None:
    with transaction(db):
        training = get_training(db, training_id)
        db.delete(training)
    logger.info("training_deleted", training_id=training_id)


def list_training_assignments(db: Session, training_id: int) -> List[TrainingAssignment]:
    get_training(db, training_id)
    return (
        db.query(TrainingAssignment)
        .options(joinedload(TrainingAssignment.user))
        .filter(TrainingAssignment.training_id == training_id)
        .order_by(TrainingAssignment.created_at.asc(), TrainingAssignment.id.asc())
        .all()
    )


def list_user_training_assignments(db: Session, user_id: int) -> List[TrainingAssignment]:
    return (
        db.query(TrainingAssignment)
        .join(Training, Training.id == TrainingAssignment.training_id)
        .options(joinedload(TrainingAssignment.training))
        .filter(TrainingAssignment.user_id == user_id)
        .order_by(Training.start_time.asc())
        .all()
    )
