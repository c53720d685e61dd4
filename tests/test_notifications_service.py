from datetime import datetime, timedelta, timezone

import pytest

from reservehub.db import transaction
from reservehub.models.enums import NotificationType, Role, Position
from reservehub.models.models import Notification, NotificationRecipient
from reservehub.services import notifications as notification_service
from reservehub.services.errors import NotFoundError


def test_notify_creates_one_row_per_recipient(db_session, make_user):
    users = [make_user(f"User{i}", "Reserve") for i in range(3)]

    notification = notification_service.notify(
        db_session, "event_created", "Patrol briefing scheduled", None, [u.id for u in users]
    )

    assert db_session.query(Notification).count() == 1
    recipients = db_session.query(NotificationRecipient).filter(
        NotificationRecipient.notification_id == notification.id
    ).all()
    assert sorted(r.user_id for r in recipients) == sorted(u.id for u in users)
    assert all(r.is_read is False for r in recipients)


def test_notify_without_recipients_still_creates_notification(db_session):
    notification = notification_service.notify(db_session, NotificationType.general, "Nobody home")

    assert notification.id is not None
    assert db_session.query(NotificationRecipient).count() == 0


def test_duplicate_recipients_are_collapsed(db_session, member):
    notification_service.notify(db_session, NotificationType.general, "Hi", None, [member.id, member.id])

    assert db_session.query(NotificationRecipient).count() == 1


def test_fan_out_rolls_back_with_callers_transaction(db_session, member):
    with pytest.raises(RuntimeError):
        with transaction(db_session):
            notification_service.fan_out(db_session, NotificationType.general, "Hi", [member.id])
            raise RuntimeError("domain write failed")

    assert db_session.query(Notification).count() == 0
    assert db_session.query(NotificationRecipient).count() == 0


def test_audiences_follow_current_roster(db_session, make_user):
    boss = make_user("Alex", "Admin", role=Role.admin, position=Position.admin)
    reserve = make_user("Jordan", "Rivera")
    officer = make_user("Casey", "Officer", position=Position.officer)

    assert notification_service.admin_user_ids(db_session) == [boss.id]
    assert notification_service.reserve_user_ids(db_session) == [reserve.id]

    officer.position = Position.reserve
    db_session.commit()
    assert notification_service.reserve_user_ids(db_session) == [reserve.id, officer.id]


def test_list_for_user_newest_first_with_read_flag(db_session, make_user):
    reader = make_user("Robin", "Reader")
    other = make_user("Taylor", "Other")
    first = notification_service.notify(db_session, NotificationType.general, "first", None, [reader.id, other.id])
    second = notification_service.notify(db_session, NotificationType.general, "second", None, [reader.id])
    notification_service.notify(db_session, NotificationType.general, "not mine", None, [other.id])

    notification_service.mark_read(db_session, first.id, reader.id)
    items = notification_service.list_for_user(db_session, reader.id)

    assert [n["id"] for n in items] == [second.id, first.id]
    assert [n["is_read"] for n in items] == [False, True]
    # Read state is per recipient
    other_items = notification_service.list_for_user(db_session, other.id)
    assert all(n["is_read"] is False for n in other_items)


def test_list_for_user_filters_and_pages(db_session, member):
    for i in range(3):
        notification_service.notify(db_session, NotificationType.general, f"general {i}", None, [member.id])
    notification_service.notify(db_session, NotificationType.announcement, "announcement", None, [member.id])

    announcements = notification_service.list_for_user(
        db_session, member.id, notification_type=NotificationType.announcement
    )
    page = notification_service.list_for_user(db_session, member.id, limit=2, offset=1)

    assert [n["message"] for n in announcements] == ["announcement"]
    assert [n["message"] for n in page] == ["general 2", "general 1"]


def test_list_for_user_pages_long_history(db_session, make_user):
    reader = make_user("Robin", "Reader")
    other = make_user("Taylor", "Other")
    base = datetime(2030, 1, 1, tzinfo=timezone.utc)
    for i in range(1200):
        notification = Notification(
            type=NotificationType.general, message=f"note {i}", created_at=base + timedelta(minutes=i)
        )
        notification.recipients.append(NotificationRecipient(user_id=reader.id, is_read=i % 2 == 0))
        if i % 3 == 0:
            notification.recipients.append(NotificationRecipient(user_id=other.id))
        db_session.add(notification)
    db_session.commit()

    page = notification_service.list_for_user(db_session, reader.id, limit=3, offset=2)
    unread = notification_service.list_for_user(db_session, reader.id, unread_only=True, limit=2)

    assert [n["message"] for n in page] == ["note 1197", "note 1196", "note 1195"]
    assert [n["is_read"] for n in page] == [False, True, False]
    assert [n["message"] for n in unread] == ["note 1199", "note 1197"]
    assert len(notification_service.list_for_user(db_session, other.id, limit=1000)) == 400


def test_mark_read_is_idempotent(db_session, member):
    notification = notification_service.notify(db_session, NotificationType.general, "Hi", None, [member.id])

    notification_service.mark_read(db_session, notification.id, member.id)
    notification_service.mark_read(db_session, notification.id, member.id)

    assert notification_service.unread_count(db_session, member.id) == 0
    assert notification_service.list_for_user(db_session, member.id, unread_only=True) == []


def test_mark_all_read(db_session, member):
    for i in range(3):
        notification_service.notify(db_session, NotificationType.general, str(i), None, [member.id])
    assert notification_service.unread_count(db_session, member.id) == 3

    notification_service.mark_all_read(db_session, member.id)
    notification_service.mark_all_read(db_session, member.id)

    assert notification_service.unread_count(db_session, member.id) == 0


def test_delete_notification_removes_recipients(db_session, member):
    notification = notification_service.notify(db_session, NotificationType.general, "Hi", None, [member.id])

    notification_service.delete_notification(db_session, notification.id)

    assert db_session.query(Notification).count() == 0
    assert db_session.query(NotificationRecipient).count() == 0
    with pytest.raises(NotFoundError):
        notification_service.get_notification(db_session, notification.id)


def test_format_message_leaves_unknown_placeholders():
    message = notification_service.format_message(NotificationType.policy_created, policy_name="Use of Force")

    assert message == "New policy: Use of Force ({policy_number})"
