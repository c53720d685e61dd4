"""
Sign-up, leave and completion tracking for events and training sessions.
"""
from dataclasses import dataclass
from typing import Optional, Union

import structlog
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..db import transaction
from ..models.enums import CompletionStatus
from ..models.models import EventAssignment, TrainingAssignment, User, utcnow
from . import notifications
from .activities import get_event, get_training
from .errors import NotFoundError, PreconditionError, DuplicateError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CapacityPolicy:
    """Whether `max_participants` blocks further sign-ups.

    Off by default: capacity is shown to members but not enforced unless
    ENFORCE_ACTIVITY_CAPACITY is set.
    """

    enforce: bool = False

    @classmethod
    def from_settings(cls) -> "CapacityPolicy":
        return cls(enforce=settings.enforce_activity_capacity)

    def check(self, activity, current_count: int) -> None:
        if not self.enforce or activity.max_participants is None:
            return
        if current_count >= activity.max_participants:
            raise PreconditionError(f"{activity.name} is full")


def _get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


# ---------- EVENTS ----------
def sign_up_for_event(
    db: Session,
    event_id: int,
    user_id: int,
    capacity: Optional[CapacityPolicy] = None,
) -> EventAssignment:
    capacity = capacity or CapacityPolicy.from_settings()
    try:
        with transaction(db):
            event = get_event(db, event_id)
            user = _get_user(db, user_id)
            existing = (
                db.query(EventAssignment.id)
                .filter(EventAssignment.event_id == event_id, EventAssignment.user_id == user_id)
                .first()
            )
            if existing:
                raise DuplicateError("Already signed up for this event")
            count = db.query(func.count(EventAssignment.id)).filter(EventAssignment.event_id == event_id).scalar()
            capacity.check(event, count)

            assignment = EventAssignment(event_id=event_id, user_id=user_id)
            db.add(assignment)
            db.flush()
            notifications.notify_event_signup(db, event, user)
    except IntegrityError as exc:
        raise DuplicateError("Already signed up for this event") from exc

    db.refresh(assignment)
    logger.info("event_signup", event_id=event_id, user_id=user_id, assignment_id=assignment.id)
    return assignment


def leave_event(db: Session, event_id: int, user_id: int) -> Optional[EventAssignment]:
    """Drop a sign-up. Returns None when the user was not signed up."""
    with transaction(db):
        event = get_event(db, event_id)
        assignment = (
            db.query(EventAssignment)
            .filter(EventAssignment.event_id == event_id, EventAssignment.user_id == user_id)
            .first()
        )
        if not assignment:
            logger.info("event_leave_not_signed_up", event_id=event_id, user_id=user_id)
            return None
        user = _get_user(db, user_id)
        db.delete(assignment)
        db.flush()
        notifications.notify_event_leave(db, event, user)
    logger.info("event_leave", event_id=event_id, user_id=user_id)
    return assignment


# ---------- TRAINING ----------
def sign_up_for_training(
    db: Session,
    training_id: int,
    user_id: int,
    capacity: Optional[CapacityPolicy] = None,
) -> TrainingAssignment:
    capacity = capacity or CapacityPolicy.from_settings()
    try:
        with transaction(db):
            training = get_training(db, training_id)
            user = _get_user(db, user_id)
            existing = (
                db.query(TrainingAssignment.id)
                .filter(TrainingAssignment.training_id == training_id, TrainingAssignment.user_id == user_id)
                .first()
            )
            if existing:
                raise DuplicateError("Already signed up for this training")
            count = (
                db.query(func.count(TrainingAssignment.id))
                .filter(TrainingAssignment.training_id == training_id)
                .scalar()
            )
            capacity.check(training, count)

            assignment = TrainingAssignment(training_id=training_id, user_id=user_id)
            db.add(assignment)
            db.flush()
            notifications.notify_training_signup(db, training, user)
    except IntegrityError as exc:
        raise DuplicateError("Already signed up for this training") from exc

    db.refresh(assignment)
    logger.info("training_signup", training_id=training_id, user_id=user_id, assignment_id=assignment.id)
    return assignment


def leave_training(db: Session, training_id: int, user_id: int) -> Optional[TrainingAssignment]:
    """Drop a sign-up before completion is recorded; afterwards the row is history."""
    with transaction(db):
        training = get_training(db, training_id)
        assignment = (
            db.query(TrainingAssignment)
            .filter(TrainingAssignment.training_id == training_id, TrainingAssignment.user_id == user_id)
            .first()
        )
        if not assignment:
            logger.info("training_leave_not_signed_up", training_id=training_id, user_id=user_id)
            return None
        if assignment.completion_status is not None:
            raise PreconditionError("Completion has already been recorded for this training")
        user = _get_user(db, user_id)
        db.delete(assignment)
        db.flush()
        notifications.notify_training_leave(db, training, user)
    logger.info("training_leave", training_id=training_id, user_id=user_id)
    return assignment


def update_completion(
    db: Session,
    training_id: int,
    user_id: int,
    status: Union[CompletionStatus, str],
    notes: Optional[str] = None,
) -> TrainingAssignment:
    # Any status may follow any other
    status = CompletionStatus(status)
    assignment = (
        db.query(TrainingAssignment)
        .filter(TrainingAssignment.training_id == training_id, TrainingAssignment.user_id == user_id)
        .first()
    )
    if not assignment:
        raise NotFoundError("Training assignment not found")
    assignment.completion_status = status
    assignment.completion_notes = notes
    assignment.updated_at = utcnow()
    db.commit()
    db.refresh(assignment)
    logger.info("training_completion_updated", training_id=training_id, user_id=user_id, status=status.value)
    return assignment
