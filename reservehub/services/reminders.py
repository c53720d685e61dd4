"""
Periodic reminders, run from scripts/send_reminders.py (cron).

Each kind is independent: a failure in one is logged and reported as False
without stopping the others.
"""
from datetime import datetime, timedelta, time, timezone
from typing import Dict, Optional, Callable, Tuple

import pytz
import structlog
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..config import settings
from ..db import transaction
from ..models.enums import NotificationType
from ..models.models import (
    Event,
    EventAssignment,
    Training,
    TrainingAssignment,
    Policy,
    PolicyCompletion,
    AssignedEquipment,
    Equipment,
    utcnow,
    as_utc,
)
from . import notifications

logger = structlog.get_logger(__name__)


def _lead_day(now: datetime) -> Tuple[datetime, datetime]:
    """UTC bounds of the local calendar day `reminder_lead_days` from now."""
    tz = pytz.timezone(settings.tz_default)
    target = (now.astimezone(tz) + timedelta(days=settings.reminder_lead_days)).date()
    start = tz.localize(datetime.combine(target, time.min))
    end = tz.localize(datetime.combine(target + timedelta(days=1), time.min))
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def send_event_reminders(db: Session, now: Optional[datetime] = None) -> int:
    now = as_utc(now) or utcnow()
    start, end = _lead_day(now)
    events = (
        db.query(Event)
        .filter(
            Event.start_time >= start,
            Event.start_time < end,
            or_(Event.last_reminder_sent.is_(None), Event.last_reminder_sent < now - timedelta(days=1)),
        )
        .all()
    )
    for event in events:
        with transaction(db):
            notifications.fan_out(
                db,
                NotificationType.event_reminder,
                notifications.format_message(NotificationType.event_reminder, event_name=event.name),
                notifications.reserve_user_ids(db),
                url=f"/events/{event.id}",
            )
            signed_up = [
                row[0] for row in db.query(EventAssignment.user_id).filter(EventAssignment.event_id == event.id).all()
            ]
            if signed_up:
                notifications.fan_out(
                    db,
                    NotificationType.event_signup_reminder,
                    notifications.format_message(NotificationType.event_signup_reminder, event_name=event.name),
                    signed_up,
                    url=f"/events/{event.id}",
                )
            event.last_reminder_sent = now
    logger.info("event_reminders_sent", count=len(events))
    return len(events)


def send_training_reminders(db: Session, now: Optional[datetime] = None) -> int:
    now = as_utc(now) or utcnow()
    start, end = _lead_day(now)
    sessions = (
        db.query(Training)
        .filter(
            Training.start_time >= start,
            Training.start_time < end,
            or_(Training.last_reminder_sent.is_(None), Training.last_reminder_sent < now - timedelta(days=1)),
        )
        .all()
    )
    for training in sessions:
        with transaction(db):
            notifications.fan_out(
                db,
                NotificationType.training_reminder,
                notifications.format_message(NotificationType.training_reminder, training_name=training.name),
                notifications.reserve_user_ids(db),
                url=f"/training/{training.id}",
            )
            signed_up = [
                row[0]
                for row in db.query(TrainingAssignment.user_id).filter(TrainingAssignment.training_id == training.id).all()
            ]
            if signed_up:
                notifications.fan_out(
                    db,
                    NotificationType.training_signup_reminder,
                    notifications.format_message(NotificationType.training_signup_reminder, training_name=training.name),
                    signed_up,
                    url=f"/training/{training.id}",
                )
            training.last_reminder_sent = now
    logger.info("training_reminders_sent", count=len(sessions))
    return len(sessions)


def send_policy_reminders(db: Session, now: Optional[datetime] = None) -> int:
    """Nag reserves who have not acknowledged an active policy, every few days."""
    now = as_utc(now) or utcnow()
    cutoff = now - timedelta(days=settings.policy_reminder_interval_days)
    policies = (
        db.query(Policy)
        .filter(
            Policy.is_active.is_(True),
            or_(Policy.last_reminder_sent.is_(None), Policy.last_reminder_sent < cutoff),
        )
        .all()
    )
    sent = 0
    for policy in policies:
        with transaction(db):
            acknowledged = {
                row[0]
                for row in db.query(PolicyCompletion.user_id).filter(PolicyCompletion.policy_id == policy.id).all()
            }
            pending = [uid for uid in notifications.reserve_user_ids(db) if uid not in acknowledged]
            if pending:
                notifications.fan_out(
                    db,
                    NotificationType.policy_reminder,
                    notifications.format_message(NotificationType.policy_reminder, policy_name=policy.name),
                    pending,
                    url=f"/policies/{policy.id}",
                )
                sent += 1
            policy.last_reminder_sent = now
    logger.info("policy_reminders_sent", count=sent)
    return sent


def send_equipment_return_reminders(db: Session, now: Optional[datetime] = None) -> int:
    now = as_utc(now) or utcnow()
    start, end = _lead_day(now)
    due = (
        db.query(AssignedEquipment, Equipment.name)
        .join(Equipment, Equipment.id == AssignedEquipment.equipment_id)
        .filter(
            AssignedEquipment.checked_in_at.is_(None),
            AssignedEquipment.expected_return_date >= start,
            AssignedEquipment.expected_return_date < end,
        )
        .all()
    )
    with transaction(db):
        for assignment, equipment_name in due:
            notifications.notify_equipment(
                db, NotificationType.equipment_return_reminder, equipment_name, assignment.user_id
            )
    logger.info("equipment_return_reminders_sent", count=len(due))
    return len(due)


REMINDERS: Dict[str, Callable[..., int]] = {
    "events": send_event_reminders,
    "training": send_training_reminders,
    "policies": send_policy_reminders,
    "equipment": send_equipment_return_reminders,
}


def process_all_reminders(db: Session, now: Optional[datetime] = None) -> Dict[str, bool]:
    now = as_utc(now) or utcnow()
    results: Dict[str, bool] = {}
    for kind, sender in REMINDERS.items():
        try:
            sender(db, now=now)
            results[kind] = True
        except Exception as exc:
            # Leave the session usable for the next kind
            db.rollback()
            logger.error("reminders_failed", kind=kind, error=str(exc), exc_info=True)
            results[kind] = False
    logger.info("reminders_processed", **results)
    return results
