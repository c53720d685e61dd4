"""
Notification fan-out service.

One Notification row plus one NotificationRecipient row per audience member.
Audiences are resolved against the roster at call time; nothing is cached.
"""
from typing import Optional, Dict, Any, List, Iterable, Sequence, Union

import structlog
from sqlalchemy import update, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import transaction
from ..models.enums import NotificationType, Role, Position
from ..models.models import Notification, NotificationRecipient, User, utcnow
from .errors import NotFoundError, TransactionError

logger = structlog.get_logger(__name__)


TEMPLATES: Dict[NotificationType, str] = {
    NotificationType.application_submitted: "{user_name} submitted an application",
    NotificationType.application_approved: "Your application has been approved",
    NotificationType.application_rejected: "Your application has been rejected",
    NotificationType.event_created: 'A new event "{event_name}" has been created',
    NotificationType.event_updated: 'Event "{event_name}" has been updated',
    NotificationType.event_signup: "{user_name} has signed up for event: {event_name}",
    NotificationType.event_signup_reminder: "Reminder: You are signed up for {event_name}",
    NotificationType.event_reminder: "Reminder: Event {event_name} is happening soon",
    NotificationType.training_created: 'A new training "{training_name}" has been created',
    NotificationType.training_updated: 'Training "{training_name}" has been updated',
    NotificationType.training_signup: "{user_name} has signed up for {training_name}",
    NotificationType.training_signup_reminder: "Reminder: You are signed up for {training_name}",
    NotificationType.training_reminder: "Reminder: Training {training_name} is happening soon",
    NotificationType.equipment_assigned: 'Equipment "{equipment_name}" has been assigned to you',
    NotificationType.equipment_returned: 'Equipment "{equipment_name}" has been returned',
    NotificationType.equipment_return_reminder: 'Please return equipment "{equipment_name}"',
    NotificationType.policy_created: "New policy: {policy_name} ({policy_number})",
    NotificationType.policy_updated: "Policy updated: {policy_name} ({policy_number})",
    NotificationType.policy_reminder: "Please review policy: {policy_name}",
    NotificationType.general: "{message}",
    NotificationType.announcement: "{message}",
}

# Messages that reuse a type but read differently
EVENT_LEAVE_MESSAGE = "{user_name} has left event: {event_name}"
TRAINING_LEAVE_MESSAGE = "{user_name} has left training: {training_name}"
POLICY_ACKNOWLEDGED_MESSAGE = "{user_name} acknowledged policy: {policy_name}"


class _KeepMissing(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def format_message(
    notification_type: Union[NotificationType, str],
    template: Optional[str] = None,
    **data: Any,
) -> str:
    """Fill a template; placeholders without data are left untouched."""
    text = template or TEMPLATES[NotificationType(notification_type)]
    return text.format_map(_KeepMissing({k: str(v) for k, v in data.items()}))


# ---------- AUDIENCES ----------
def user_ids_by_role(db: Session, role: Role) -> List[int]:
    return [row[0] for row in db.query(User.id).filter(User.role == role).order_by(User.id).all()]


def user_ids_by_position(db: Session, position: Position) -> List[int]:
    return [row[0] for row in db.query(User.id).filter(User.position == position).order_by(User.id).all()]


def admin_user_ids(db: Session) -> List[int]:
    return user_ids_by_role(db, Role.admin)


def reserve_user_ids(db: Session) -> List[int]:
    return user_ids_by_position(db, Position.reserve)


def _dedupe(user_ids: Iterable[int]) -> List[int]:
    seen = set()
    result = []
    for uid in user_ids:
        if uid in seen:
            continue
        seen.add(uid)
        result.append(uid)
    return result


# ---------- FAN-OUT ----------
def fan_out(
    db: Session,
    notification_type: Union[NotificationType, str],
    message: str,
    recipient_user_ids: Iterable[int],
    url: Optional[str] = None,
) -> Notification:
    """Stage a notification and its recipients in the caller's transaction.

    Only flushes; the caller owns commit/rollback, so the notification lands
    together with whatever domain write triggered it.
    """
    notification_type = NotificationType(notification_type)
    recipients = _dedupe(recipient_user_ids)

    notification = Notification(type=notification_type, message=message, url=url)
    db.add(notification)
    db.flush()

    if not recipients:
        logger.warning(
            "notification_without_recipients",
            notification_id=notification.id,
            type=notification_type.value,
        )
    db.add_all(
        NotificationRecipient(notification_id=notification.id, user_id=uid, is_read=False)
        for uid in recipients
    )
    db.flush()
    logger.info(
        "notification_staged",
        notification_id=notification.id,
        type=notification_type.value,
        recipient_count=len(recipients),
    )
    return notification


def notify(
    db: Session,
    notification_type: Union[NotificationType, str],
    message: str,
    url: Optional[str] = None,
    recipient_user_ids: Sequence[int] = (),
) -> Notification:
    """Create one notification with one unread recipient row per user, atomically."""
    try:
        with transaction(db):
            notification = fan_out(db, notification_type, message, recipient_user_ids, url=url)
    except SQLAlchemyError as exc:
        logger.error("notification_create_failed", error=str(exc), type=str(notification_type))
        raise TransactionError("Failed to create notification") from exc
    return notification


# ---------- READS ----------
def list_for_user(
    db: Session,
    user_id: int,
    unread_only: bool = False,
    notification_type: Optional[NotificationType] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Dict[str, Any]]:
    """Notifications addressed to a user, newest first, with the user's read flag."""
    query = (
        db.query(Notification, NotificationRecipient.is_read)
        .join(NotificationRecipient, NotificationRecipient.notification_id == Notification.id)
        .filter(NotificationRecipient.user_id == user_id)
    )
    if unread_only:
        query = query.filter(NotificationRecipient.is_read.is_(False))
    if notification_type:
        query = query.filter(Notification.type == NotificationType(notification_type))
    rows = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return [
        {
            "id": n.id,
            "type": n.type,
            "message": n.message,
            "url": n.url,
            "created_at": n.created_at,
            "updated_at": n.updated_at,
            "is_read": bool(is_read),
        }
        for n, is_read in rows
    ]


def unread_count(db: Session, user_id: int) -> int:
    return (
        db.query(func.count(NotificationRecipient.id))
        .filter(NotificationRecipient.user_id == user_id, NotificationRecipient.is_read.is_(False))
        .scalar()
        or 0
    )


def get_notification(db: Session, notification_id: int) -> Notification:
    notification = db.query(Notification).filter(Notification.id == notification_id).first()
    if not notification:
        raise NotFoundError("Notification not found")
    return notification


# ---------- WRITES ----------
def mark_read(db: Session, notification_id: int, user_id: int) -> None:
    db.execute(
        update(NotificationRecipient)
        .where(
            NotificationRecipient.notification_id == notification_id,
            NotificationRecipient.user_id == user_id,
            NotificationRecipient.is_read.is_(False),
        )
        .values(is_read=True, updated_at=utcnow())
    )
    db.commit()


def mark_all_read(db: Session, user_id: int) -> None:
    result = db.execute(
        update(NotificationRecipient)
        .where(NotificationRecipient.user_id == user_id, NotificationRecipient.is_read.is_(False))
        .values(is_read=True, updated_at=utcnow())
    )
    db.commit()
    logger.info("notifications_marked_read", user_id=user_id, count=result.rowcount)


def delete_notification(db: Session, notification_id: int) -> None:
    with transaction(db):
        notification = get_notification(db, notification_id)
        db.query(NotificationRecipient).filter(
            NotificationRecipient.notification_id == notification_id
        ).delete(synchronize_session=False)
        db.delete(notification)
    logger.info("notification_deleted", notification_id=notification_id)


# ---------- DOMAIN TRIGGERS ----------
# Each trigger stages its fan-out in the caller's transaction.

def notify_application_submitted(db: Session, applicant_name: str) -> Notification:
    return fan_out(
        db,
        NotificationType.application_submitted,
        format_message(NotificationType.application_submitted, user_name=applicant_name),
        admin_user_ids(db),
    )


def notify_application_decided(db: Session, user_id: int, approved: bool) -> Notification:
    notification_type = NotificationType.application_approved if approved else NotificationType.application_rejected
    return fan_out(db, notification_type, format_message(notification_type), [user_id])


def notify_event_created(db: Session, event) -> Notification:
    return fan_out(
        db,
        NotificationType.event_created,
        format_message(NotificationType.event_created, event_name=event.name),
        reserve_user_ids(db),
        url=f"/events/{event.id}",
    )


def notify_event_updated(db: Session, event) -> Notification:
    return fan_out(
        db,
        NotificationType.event_updated,
        format_message(NotificationType.event_updated, event_name=event.name),
        reserve_user_ids(db),
        url=f"/events/{event.id}",
    )


def notify_event_signup(db: Session, event, user: User) -> Notification:
    return fan_out(
        db,
        NotificationType.event_signup,
        format_message(NotificationType.event_signup, user_name=user.full_name, event_name=event.name),
        admin_user_ids(db),
    )


def notify_event_leave(db: Session, event, user: User) -> Notification:
    return fan_out(
        db,
        NotificationType.event_signup,
        format_message(
            NotificationType.event_signup,
            template=EVENT_LEAVE_MESSAGE,
            user_name=user.full_name,
            event_name=event.name,
        ),
        admin_user_ids(db),
    )


def notify_training_created(db: Session, training) -> Notification:
    return fan_out(
        db,
        NotificationType.training_created,
        format_message(NotificationType.training_created, training_name=training.name),
        reserve_user_ids(db),
        url=f"/training/{training.id}",
    )


def notify_training_updated(db: Session, training) -> Notification:
    return fan_out(
        db,
        NotificationType.training_updated,
        format_message(NotificationType.training_updated, training_name=training.name),
        reserve_user_ids(db),
        url=f"/training/{training.id}",
    )


def notify_training_signup(db: Session, training, user: User) -> Notification:
    return fan_out(
        db,
        NotificationType.training_signup,
        format_message(NotificationType.training_signup, user_name=user.full_name, training_name=training.name),
        admin_user_ids(db),
    )


def notify_training_leave(db: Session, training, user: User) -> Notification:
    return fan_out(
        db,
        NotificationType.training_signup,
        format_message(
            NotificationType.training_signup,
            template=TRAINING_LEAVE_MESSAGE,
            user_name=user.full_name,
            training_name=training.name,
        ),
        admin_user_ids(db),
    )


def notify_equipment(db: Session, notification_type: NotificationType, equipment_name: str, user_id: int) -> Notification:
    """equipment_assigned | equipment_returned | equipment_return_reminder, addressed to the holder."""
    return fan_out(
        db,
        notification_type,
        format_message(notification_type, equipment_name=equipment_name),
        [user_id],
        url="/equipment/mine",
    )


def notify_policy_created(db: Session, policy) -> Notification:
    return fan_out(
        db,
        NotificationType.policy_created,
        format_message(NotificationType.policy_created, policy_name=policy.name, policy_number=policy.policy_number),
        reserve_user_ids(db),
        url=f"/policies/{policy.id}",
    )


def notify_policy_acknowledged(db: Session, policy, user: User) -> Notification:
    return fan_out(
        db,
        NotificationType.policy_updated,
        format_message(
            NotificationType.policy_updated,
            template=POLICY_ACKNOWLEDGED_MESSAGE,
            user_name=user.full_name,
            policy_name=policy.name,
        ),
        admin_user_ids(db),
    )
