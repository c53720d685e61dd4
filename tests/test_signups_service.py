from datetime import datetime, timedelta, timezone

import pytest

from reservehub.models.enums import EventType, CompletionStatus
from reservehub.models.models import EventAssignment, TrainingAssignment, Notification, NotificationRecipient
from reservehub.services import activities as activity_service
from reservehub.services import signups as signup_service
from reservehub.services.errors import NotFoundError, PreconditionError, DuplicateError

START = datetime(2030, 6, 1, 18, 0, tzinfo=timezone.utc)


@pytest.fixture()
def event(db_session):
    return activity_service.create_event(
        db_session,
        name="Night Patrol",
        event_type=EventType.patrol,
        location="Station 2",
        start_time=START,
        end_time=START + timedelta(hours=4),
        max_participants=1,
    )


@pytest.fixture()
def training(db_session):
    return activity_service.create_training(
        db_session,
        name="First Aid Refresher",
        location="Training Room",
        start_time=START,
        end_time=START + timedelta(hours=3),
    )


def _admin_messages(db_session, admin_id):
    rows = (
        db_session.query(Notification.message)
        .join(NotificationRecipient, NotificationRecipient.notification_id == Notification.id)
        .filter(NotificationRecipient.user_id == admin_id)
        .order_by(Notification.id)
        .all()
    )
    return [r[0] for r in rows]


def test_duplicate_signup_rejected(db_session, event, member):
    signup_service.sign_up_for_event(db_session, event.id, member.id)

    with pytest.raises(PreconditionError):
        signup_service.sign_up_for_event(db_session, event.id, member.id)

    count = (
        db_session.query(EventAssignment)
        .filter(EventAssignment.event_id == event.id, EventAssignment.user_id == member.id)
        .count()
    )
    assert count == 1


def test_signup_notifies_admins(db_session, event, admin, member):
    signup_service.sign_up_for_event(db_session, event.id, member.id)

    assert _admin_messages(db_session, admin.id) == ["Jordan Rivera has signed up for event: Night Patrol"]


def test_leave_deletes_row_and_notifies_admins(db_session, event, admin, member):
    signup_service.sign_up_for_event(db_session, event.id, member.id)

    removed = signup_service.leave_event(db_session, event.id, member.id)

    assert removed is not None
    assert db_session.query(EventAssignment).count() == 0
    messages = _admin_messages(db_session, admin.id)
    assert len(messages) == 2
    assert "Jordan Rivera" in messages[-1]
    assert "Night Patrol" in messages[-1]


def test_leave_without_signup_returns_none(db_session, event, admin, member):
    assert signup_service.leave_event(db_session, event.id, member.id) is None
    assert _admin_messages(db_session, admin.id) == []


def test_signup_for_missing_event(db_session, member):
    with pytest.raises(NotFoundError):
        signup_service.sign_up_for_event(db_session, 404, member.id)


def test_capacity_not_enforced_by_default(db_session, event, make_user):
    first = make_user("Sam", "One")
    second = make_user("Kim", "Two")

    signup_service.sign_up_for_event(db_session, event.id, first.id)
    signup_service.sign_up_for_event(db_session, event.id, second.id)

    assert db_session.query(EventAssignment).count() == 2


def test_capacity_enforced_when_enabled(db_session, event, make_user):
    policy = signup_service.CapacityPolicy(enforce=True)
    first = make_user("Sam", "One")
    second = make_user("Kim", "Two")

    signup_service.sign_up_for_event(db_session, event.id, first.id, capacity=policy)
    with pytest.raises(PreconditionError):
        signup_service.sign_up_for_event(db_session, event.id, second.id, capacity=policy)
    assert db_session.query(EventAssignment).count() == 1


def test_capacity_toggle_reads_settings(monkeypatch):
    monkeypatch.setattr(signup_service.settings, "enforce_activity_capacity", True)

    assert signup_service.CapacityPolicy.from_settings().enforce is True


def test_training_signup_and_completion(db_session, training, admin, member):
    signup_service.sign_up_for_training(db_session, training.id, member.id)
    assert _admin_messages(db_session, admin.id) == ["Jordan Rivera has signed up for First Aid Refresher"]

    assignment = signup_service.update_completion(
        db_session, training.id, member.id, CompletionStatus.completed, notes="passed"
    )
    assert assignment.completion_status == CompletionStatus.completed

    # No terminal states
    assignment = signup_service.update_completion(db_session, training.id, member.id, "unexcused")
    assert assignment.completion_status == CompletionStatus.unexcused
    assert assignment.completion_notes is None


def test_duplicate_training_signup_rejected(db_session, training, member):
    signup_service.sign_up_for_training(db_session, training.id, member.id)

    with pytest.raises(DuplicateError):
        signup_service.sign_up_for_training(db_session, training.id, member.id)


def test_training_leave_keeps_recorded_history(db_session, training, member):
    signup_service.sign_up_for_training(db_session, training.id, member.id)
    signup_service.update_completion(db_session, training.id, member.id, CompletionStatus.excused)

    with pytest.raises(PreconditionError):
        signup_service.leave_training(db_session, training.id, member.id)
    assert db_session.query(TrainingAssignment).count() == 1


def test_update_completion_requires_signup(db_session, training, member):
    with pytest.raises(NotFoundError):
        signup_service.update_completion(db_session, training.id, member.id, CompletionStatus.completed)


def test_deleting_event_removes_its_signups(db_session, event, member):
    signup_service.sign_up_for_event(db_session, event.id, member.id)

    activity_service.delete_event(db_session, event.id)

    assert db_session.query(EventAssignment).count() == 0
    with pytest.raises(NotFoundError):
        activity_service.get_event(db_session, event.id)


def test_deleting_training_removes_its_signups(db_session, training, make_user):
    first = make_user("Sam", "One")
    second = make_user("Kim", "Two")
    signup_service.sign_up_for_training(db_session, training.id, first.id)
    signup_service.sign_up_for_training(db_session, training.id, second.id)
    signup_service.update_completion(db_session, training.id, first.id, CompletionStatus.completed)

    activity_service.delete_training(db_session, training.id)

    assert db_session.query(TrainingAssignment).count() == 0
    assert activity_service.list_user_training_assignments(db_session, first.id) == []
