from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from reservehub.models.enums import Condition, NotificationType
from reservehub.models.models import Equipment, AssignedEquipment, Notification, NotificationRecipient, utcnow, as_utc
from reservehub.services import equipment as equipment_service
from reservehub.services.errors import NotFoundError, PreconditionError, TransactionError


def _assert_assignment_invariant(db_session):
    for equipment in db_session.query(Equipment).all():
        active = (
            db_session.query(func.count(AssignedEquipment.id))
            .filter(AssignedEquipment.equipment_id == equipment.id, AssignedEquipment.checked_in_at.is_(None))
            .scalar()
        )
        assert equipment.is_assigned == (active == 1)
        assert active <= 1


def test_assign_marks_equipment_and_notifies_assignee(db_session, member):
    radio = equipment_service.create_equipment(db_session, "Radio", serial_number="R-100")

    assignment = equipment_service.assign(db_session, radio.id, member.id, Condition.good, notes="with charger")

    db_session.refresh(radio)
    assert assignment.checked_in_at is None
    assert assignment.condition == Condition.good
    assert radio.is_assigned is True
    assert radio.assigned_to == member.id
    _assert_assignment_invariant(db_session)

    recipient = db_session.query(NotificationRecipient).filter(NotificationRecipient.user_id == member.id).one()
    notification = db_session.get(Notification, recipient.notification_id)
    assert notification.type == NotificationType.equipment_assigned
    assert notification.message == 'Equipment "Radio" has been assigned to you'


def test_return_flow_releases_equipment(db_session, member):
    vest = equipment_service.create_equipment(db_session, "Vest")
    assignment = equipment_service.assign(db_session, vest.id, member.id, "good")

    equipment_service.return_equipment(db_session, assignment.id, "fair", notes="scuffed")

    db_session.refresh(vest)
    db_session.refresh(assignment)
    assert vest.is_assigned is False
    assert vest.assigned_to is None
    assert assignment.checked_in_at is not None
    assert assignment.condition == Condition.fair
    assert assignment.notes == "scuffed"
    _assert_assignment_invariant(db_session)


def test_return_unknown_assignment_is_not_found(db_session):
    with pytest.raises(NotFoundError):
        equipment_service.return_equipment(db_session, 999, Condition.good)


def test_return_twice_is_rejected(db_session, member):
    light = equipment_service.create_equipment(db_session, "Flashlight")
    assignment = equipment_service.assign(db_session, light.id, member.id, Condition.new)
    equipment_service.return_equipment(db_session, assignment.id, Condition.good)

    with pytest.raises(PreconditionError):
        equipment_service.return_equipment(db_session, assignment.id, Condition.good)


def test_assign_is_atomic_when_equipment_update_fails(db_session, member, monkeypatch):
    radio = equipment_service.create_equipment(db_session, "Radio")

    def broken_update(equipment, user_id):
        raise SQLAlchemyError("connection lost")

    monkeypatch.setattr(equipment_service, "_mark_assigned", broken_update)

    with pytest.raises(TransactionError) as exc_info:
        equipment_service.assign(db_session, radio.id, member.id, Condition.good)

    assert exc_info.value.message == "Failed to create assignment"
    assert db_session.query(AssignedEquipment).count() == 0
    assert db_session.query(Notification).count() == 0
    db_session.refresh(radio)
    assert radio.is_assigned is False
    assert radio.assigned_to is None


def test_return_is_atomic_when_equipment_update_fails(db_session, member, monkeypatch):
    radio = equipment_service.create_equipment(db_session, "Radio")
    assignment = equipment_service.assign(db_session, radio.id, member.id, Condition.good)

    def broken_release(equipment):
        raise SQLAlchemyError("connection lost")

    monkeypatch.setattr(equipment_service, "_mark_released", broken_release)

    with pytest.raises(TransactionError):
        equipment_service.return_equipment(db_session, assignment.id, Condition.fair, notes="scuffed")

    db_session.refresh(assignment)
    db_session.refresh(radio)
    assert assignment.checked_in_at is None
    assert assignment.condition == Condition.good
    assert assignment.notes is None
    assert radio.is_assigned is True
    assert radio.assigned_to == member.id
    assert (
        db_session.query(Notification)
        .filter(Notification.type == NotificationType.equipment_returned)
        .count()
        == 0
    )
    _assert_assignment_invariant(db_session)


def test_same_user_cannot_be_assigned_same_item_twice(db_session, member):
    radio = equipment_service.create_equipment(db_session, "Radio")
    first = equipment_service.assign(db_session, radio.id, member.id, Condition.good)
    equipment_service.return_equipment(db_session, first.id, Condition.good)

    # Exact pair check covers returned rows too
    with pytest.raises(PreconditionError):
        equipment_service.assign(db_session, radio.id, member.id, Condition.good)
    assert db_session.query(AssignedEquipment).count() == 1


def test_assigned_item_cannot_go_to_another_user(db_session, make_user):
    first = make_user("Sam", "One")
    second = make_user("Kim", "Two")
    radio = equipment_service.create_equipment(db_session, "Radio")
    equipment_service.assign(db_session, radio.id, first.id, Condition.good)

    with pytest.raises(PreconditionError):
        equipment_service.assign(db_session, radio.id, second.id, Condition.good)
    _assert_assignment_invariant(db_session)


def test_store_rejects_second_open_checkout(db_session, make_user):
    first = make_user("Sam", "One")
    second = make_user("Kim", "Two")
    radio = equipment_service.create_equipment(db_session, "Radio")
    db_session.add(AssignedEquipment(equipment_id=radio.id, user_id=first.id, condition=Condition.good))
    db_session.commit()

    db_session.add(AssignedEquipment(equipment_id=radio.id, user_id=second.id, condition=Condition.good))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_list_for_user_puts_active_first_then_newest(db_session, member):
    now = utcnow()
    a_item = equipment_service.create_equipment(db_session, "A")
    b_item = equipment_service.create_equipment(db_session, "B")
    c_item = equipment_service.create_equipment(db_session, "C")

    a = equipment_service.assign(db_session, a_item.id, member.id, Condition.good, checked_out_at=now - timedelta(days=5))
    b = equipment_service.assign(db_session, b_item.id, member.id, Condition.good, checked_out_at=now - timedelta(days=10))
    c = equipment_service.assign(db_session, c_item.id, member.id, Condition.good, checked_out_at=now - timedelta(days=2))
    equipment_service.return_equipment(db_session, b.id, Condition.good)
    equipment_service.return_equipment(db_session, c.id, Condition.good)

    first = [row.id for row in equipment_service.list_for_user(db_session, member.id)]
    second = [row.id for row in equipment_service.list_for_user(db_session, member.id)]

    assert first == [a.id, c.id, b.id]
    assert first == second


def test_obsolete_equipment_cannot_be_assigned(db_session, member):
    old_radio = equipment_service.create_equipment(db_session, "Old radio")
    equipment_service.mark_obsolete(db_session, old_radio.id)

    with pytest.raises(PreconditionError):
        equipment_service.assign(db_session, old_radio.id, member.id, Condition.poor)
    assert equipment_service.list_available_equipment(db_session) == []


def test_assigned_equipment_cannot_be_marked_obsolete(db_session, member):
    radio = equipment_service.create_equipment(db_session, "Radio")
    equipment_service.assign(db_session, radio.id, member.id, Condition.good)

    with pytest.raises(PreconditionError):
        equipment_service.mark_obsolete(db_session, radio.id)


def test_obsolete_equipment_hidden_from_user_history(db_session, member):
    radio = equipment_service.create_equipment(db_session, "Radio")
    assignment = equipment_service.assign(db_session, radio.id, member.id, Condition.good)
    equipment_service.return_equipment(db_session, assignment.id, Condition.damaged_broken)
    equipment_service.mark_obsolete(db_session, radio.id)

    assert equipment_service.list_for_user(db_session, member.id) == []
    assert equipment_service.list_equipment(db_session) == []
    assert [e.id for e in equipment_service.list_equipment(db_session, include_obsolete=True)] == [radio.id]


def test_update_notes_touches_only_notes(db_session, member):
    radio = equipment_service.create_equipment(db_session, "Radio")
    assignment = equipment_service.assign(db_session, radio.id, member.id, Condition.good)

    updated = equipment_service.update_notes(db_session, assignment.id, "antenna replaced")

    assert updated.notes == "antenna replaced"
    assert updated.checked_in_at is None
    assert updated.condition == Condition.good


def test_delete_active_assignment_releases_equipment(db_session, member):
    radio = equipment_service.create_equipment(db_session, "Radio")
    assignment = equipment_service.assign(db_session, radio.id, member.id, Condition.good)

    equipment_service.delete_assignment(db_session, assignment.id)

    db_session.refresh(radio)
    assert radio.is_assigned is False
    assert equipment_service.get_current_assignment(db_session, member.id) is None
    _assert_assignment_invariant(db_session)


def test_update_equipment_rejects_assignment_fields(db_session):
    radio = equipment_service.create_equipment(db_session, "Radio")

    with pytest.raises(PreconditionError):
        equipment_service.update_equipment(db_session, radio.id, is_assigned=True)
    assert equipment_service.update_equipment(db_session, radio.id, name="Radio 2").name == "Radio 2"


def test_checkout_times_with_offsets_are_stored_in_utc(db_session, member):
    a_item = equipment_service.create_equipment(db_session, "A")
    b_item = equipment_service.create_equipment(db_session, "B")
    eastern = timezone(timedelta(hours=-5))

    # 10:00-05:00 is 15:00 UTC, later than B's 12:00 UTC checkout
    a = equipment_service.assign(
        db_session, a_item.id, member.id, Condition.good, checked_out_at=datetime(2030, 1, 10, 10, 0, tzinfo=eastern)
    )
    b = equipment_service.assign(
        db_session, b_item.id, member.id, Condition.good, checked_out_at=datetime(2030, 1, 10, 12, 0, tzinfo=timezone.utc)
    )
    equipment_service.return_equipment(db_session, a.id, Condition.good)
    equipment_service.return_equipment(db_session, b.id, Condition.good)

    db_session.refresh(a)
    assert as_utc(a.checked_out_at) == datetime(2030, 1, 10, 15, 0, tzinfo=timezone.utc)
    assert [row.id for row in equipment_service.list_for_user(db_session, member.id)] == [a.id, b.id]
