from datetime import datetime, timedelta, timezone

from reservehub.models.enums import Condition, EventType, NotificationType
from reservehub.models.models import Notification, NotificationRecipient
from reservehub.services import activities as activity_service
from reservehub.services import equipment as equipment_service
from reservehub.services import policies as policy_service
from reservehub.services import reminders
from reservehub.services import signups as signup_service

NOW = datetime(2030, 3, 20, 16, 0, tzinfo=timezone.utc)


def _count(db_session, notification_type):
    return db_session.query(Notification).filter(Notification.type == notification_type).count()


def _make_event(db_session, days_ahead, name="Parade Detail"):
    start = NOW + timedelta(days=days_ahead, hours=8)
    return activity_service.create_event(
        db_session,
        name=name,
        event_type=EventType.community_event,
        location="Main St",
        start_time=start,
        end_time=start + timedelta(hours=2),
    )


def test_event_reminders_only_for_lead_day(db_session, member):
    due = _make_event(db_session, 4)
    _make_event(db_session, 10, name="Later")
    signup_service.sign_up_for_event(db_session, due.id, member.id)

    sent = reminders.send_event_reminders(db_session, now=NOW)

    assert sent == 1
    assert due.last_reminder_sent is not None
    assert _count(db_session, NotificationType.event_reminder) == 1
    assert _count(db_session, NotificationType.event_signup_reminder) == 1


def test_event_reminders_not_repeated_same_day(db_session, member):
    _make_event(db_session, 4)

    reminders.send_event_reminders(db_session, now=NOW)
    reminders.send_event_reminders(db_session, now=NOW + timedelta(hours=2))

    assert _count(db_session, NotificationType.event_reminder) == 1


def test_training_reminders(db_session, member):
    start = NOW + timedelta(days=4, hours=1)
    activity_service.create_training(
        db_session, name="Legal Update", location="HQ", start_time=start, end_time=start + timedelta(hours=2)
    )

    assert reminders.send_training_reminders(db_session, now=NOW) == 1
    assert _count(db_session, NotificationType.training_reminder) == 1


def test_policy_reminders_skip_acknowledged(db_session, make_user):
    done = make_user("Done", "Reader")
    pending = make_user("Pending", "Reader")
    policy = policy_service.create_policy(db_session, "Pursuits", "314", NOW)
    policy_service.acknowledge(db_session, policy.id, done.id)

    reminders.send_policy_reminders(db_session, now=NOW)

    rows = (
        db_session.query(NotificationRecipient.user_id)
        .join(Notification, Notification.id == NotificationRecipient.notification_id)
        .filter(Notification.type == NotificationType.policy_reminder)
        .all()
    )
    assert [r[0] for r in rows] == [pending.id]

    # Inside the interval nothing is resent
    reminders.send_policy_reminders(db_session, now=NOW + timedelta(days=2))
    assert _count(db_session, NotificationType.policy_reminder) == 1


def test_equipment_return_reminders(db_session, member):
    radio = equipment_service.create_equipment(db_session, "Radio")
    equipment_service.assign(
        db_session, radio.id, member.id, Condition.good, expected_return_date=NOW + timedelta(days=4, hours=3)
    )

    assert reminders.send_equipment_return_reminders(db_session, now=NOW) == 1
    notification = db_session.query(Notification).filter(
        Notification.type == NotificationType.equipment_return_reminder
    ).one()
    assert notification.message == 'Please return equipment "Radio"'


def test_process_all_reminders_isolates_failures(db_session, monkeypatch):
    def broken(db, now=None):
        raise RuntimeError("boom")

    monkeypatch.setitem(reminders.REMINDERS, "events", broken)

    results = reminders.process_all_reminders(db_session, now=NOW)

    assert results == {"events": False, "training": True, "policies": True, "equipment": True}


def test_equipment_return_window_uses_utc_instant(db_session, member):
    # Lead day is 2030-03-24 in Los Angeles: 07:00 UTC to 07:00 UTC the next day.
    # 03:00-05:00 is 08:00 UTC, inside the window only once the offset is applied.
    radio = equipment_service.create_equipment(db_session, "Radio")
    equipment_service.assign(
        db_session,
        radio.id,
        member.id,
        Condition.good,
        expected_return_date=datetime(2030, 3, 24, 3, 0, tzinfo=timezone(timedelta(hours=-5))),
    )

    assert reminders.send_equipment_return_reminders(db_session, now=NOW) == 1


def test_process_all_reminders_recovers_after_failed_flush(db_session, member, monkeypatch):
    radio = equipment_service.create_equipment(db_session, "Radio")
    equipment_service.assign(
        db_session, radio.id, member.id, Condition.good, expected_return_date=NOW + timedelta(days=4, hours=3)
    )

    def broken(db, now=None):
        db.add(Notification(type=NotificationType.event_reminder, message=None))
        db.flush()

    monkeypatch.setitem(reminders.REMINDERS, "events", broken)

    results = reminders.process_all_reminders(db_session, now=NOW)

    assert results == {"events": False, "training": True, "policies": True, "equipment": True}
    assert _count(db_session, NotificationType.equipment_return_reminder) == 1
    assert _count(db_session, NotificationType.event_reminder) == 0
