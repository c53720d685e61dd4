"""
Equipment assignment lifecycle.

An item is free, assigned (exactly one open AssignedEquipment row) or obsolete.
`Equipment.is_assigned` / `assigned_to` mirror the open row and are always
written in the same transaction as the row itself.
"""
from datetime import datetime
from typing import Optional, List, Union

import structlog
from sqlalchemy import case
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import transaction
from ..models.enums import Condition, NotificationType
from ..models.models import Equipment, AssignedEquipment, User, utcnow, as_utc
from . import notifications
from .errors import NotFoundError, PreconditionError, DuplicateError, TransactionError

logger = structlog.get_logger(__name__)


# ---------- CATALOG ----------
def get_equipment(db: Session, equipment_id: int) -> Equipment:
    equipment = db.query(Equipment).filter(Equipment.id == equipment_id).first()
    if not equipment:
        raise NotFoundError("Equipment not found")
    return equipment


def list_equipment(db: Session, include_obsolete: bool = False) -> List[Equipment]:
    query = db.query(Equipment)
    if not include_obsolete:
        query = query.filter(Equipment.is_obsolete.is_(False))
    return query.order_by(Equipment.name.asc(), Equipment.id.asc()).all()


def list_available_equipment(db: Session) -> List[Equipment]:
    """Items that can be handed out right now."""
    return (
        db.query(Equipment)
        .filter(Equipment.is_assigned.is_(False), Equipment.is_obsolete.is_(False))
        .order_by(Equipment.name.asc(), Equipment.id.asc())
        .all()
    )


def create_equipment(
    db: Session,
    name: str,
    serial_number: Optional[str] = None,
    description: Optional[str] = None,
    purchase_date: Optional[datetime] = None,
    notes: Optional[str] = None,
) -> Equipment:
    equipment = Equipment(
        name=name,
        serial_number=serial_number,
        description=description,
        purchase_date=as_utc(purchase_date),
        notes=notes,
        is_assigned=False,
        is_obsolete=False,
    )
    db.add(equipment)
    db.commit()
    db.refresh(equipment)
    logger.info("equipment_created", equipment_id=equipment.id, serial_number=serial_number)
    return equipment


_EDITABLE_FIELDS = ("name", "serial_number", "description", "purchase_date", "notes")


def update_equipment(db: Session, equipment_id: int, **fields) -> Equipment:
    """Edit catalog fields; assignment state and the obsolete flag are not editable here."""
    equipment = get_equipment(db, equipment_id)
    for key, value in fields.items():
        if key not in _EDITABLE_FIELDS:
            raise PreconditionError(f"Field '{key}' cannot be updated")
        if isinstance(value, datetime):
            value = as_utc(value)
        setattr(equipment, key, value)
    equipment.updated_at = utcnow()
    db.commit()
    db.refresh(equipment)
    return equipment


def mark_obsolete(db: Session, equipment_id: int) -> Equipment:
    """Retire an item for good. There is no way back."""
    equipment = get_equipment(db, equipment_id)
    if equipment.is_obsolete:
        return equipment
    if equipment.is_assigned:
        raise PreconditionError("Equipment is currently assigned; return it before marking it obsolete")
    equipment.is_obsolete = True
    equipment.updated_at = utcnow()
    db.commit()
    db.refresh(equipment)
    logger.info("equipment_marked_obsolete", equipment_id=equipment_id)
    return equipment


# ---------- ASSIGNMENTS ----------
def get_assignment(db: Session, assignment_id: int) -> AssignedEquipment:
    assignment = db.query(AssignedEquipment).filter(AssignedEquipment.id == assignment_id).first()
    if not assignment:
        raise NotFoundError("Assignment not found")
    return assignment


def _mark_assigned(equipment: Equipment, user_id: int) -> None:
    equipment.is_assigned = True
    equipment.assigned_to = user_id
    equipment.updated_at = utcnow()


def _mark_released(equipment: Equipment) -> None:
    equipment.is_assigned = False
    equipment.assigned_to = None
    equipment.updated_at = utcnow()


def assign(
    db: Session,
    equipment_id: int,
    user_id: int,
    condition: Union[Condition, str],
    notes: Optional[str] = None,
    checked_out_at: Optional[datetime] = None,
    expected_return_date: Optional[datetime] = None,
) -> AssignedEquipment:
    """Check an item out to a user.

    The assignment row, the equipment flags and the assignee's notification
    commit together or not at all. A user who already holds (or once held)
    this exact item is rejected.
    """
    condition = Condition(condition)
    try:
        with transaction(db):
            equipment = get_equipment(db, equipment_id)
            if equipment.is_obsolete:
                raise PreconditionError("Obsolete equipment cannot be assigned")
            if not db.query(User.id).filter(User.id == user_id).first():
                raise NotFoundError("User not found")

            existing = (
                db.query(AssignedEquipment.id)
                .filter(
                    AssignedEquipment.equipment_id == equipment_id,
                    AssignedEquipment.user_id == user_id,
                )
                .first()
            )
            if existing:
                raise PreconditionError("This equipment has already been assigned to this user")
            if equipment.is_assigned:
                raise PreconditionError("Equipment is already assigned")

            assignment = AssignedEquipment(
                equipment_id=equipment_id,
                user_id=user_id,
                condition=condition,
                notes=notes,
                checked_out_at=as_utc(checked_out_at) or utcnow(),
                checked_in_at=None,
                expected_return_date=as_utc(expected_return_date),
            )
            db.add(assignment)
            db.flush()

            _mark_assigned(equipment, user_id)
            db.flush()

            notifications.notify_equipment(db, NotificationType.equipment_assigned, equipment.name, user_id)
    except IntegrityError as exc:
        # Another checkout of this item committed first
        logger.warning("equipment_assign_conflict", equipment_id=equipment_id, user_id=user_id, error=str(exc.orig))
        raise DuplicateError("Equipment is already assigned") from exc
    except SQLAlchemyError as exc:
        logger.error("equipment_assign_failed", equipment_id=equipment_id, user_id=user_id, error=str(exc))
        raise TransactionError("Failed to create assignment") from exc

    db.refresh(assignment)
    logger.info(
        "equipment_assigned",
        assignment_id=assignment.id,
        equipment_id=equipment_id,
        user_id=user_id,
        condition=condition.value,
    )
    return assignment


def return_equipment(
    db: Session,
    assignment_id: int,
    condition: Union[Condition, str],
    notes: Optional[str] = None,
) -> None:
    """Close an open assignment and free the item in one transaction."""
    condition = Condition(condition)
    try:
        with transaction(db):
            assignment = get_assignment(db, assignment_id)
            if assignment.checked_in_at is not None:
                raise PreconditionError("Assignment is already returned")

            assignment.checked_in_at = utcnow()
            assignment.condition = condition
            assignment.notes = notes
            assignment.updated_at = utcnow()
            db.flush()

            equipment = get_equipment(db, assignment.equipment_id)
            _mark_released(equipment)
            db.flush()

            notifications.notify_equipment(
                db, NotificationType.equipment_returned, equipment.name, assignment.user_id
            )
    except SQLAlchemyError as exc:
        logger.error("equipment_return_failed", assignment_id=assignment_id, error=str(exc))
        raise TransactionError("Failed to return equipment") from exc

    logger.info("equipment_returned", assignment_id=assignment_id, condition=condition.value)


def update_notes(db: Session, assignment_id: int, notes: Optional[str]) -> AssignedEquipment:
    assignment = get_assignment(db, assignment_id)
    assignment.notes = notes
    assignment.updated_at = utcnow()
    db.commit()
    db.refresh(assignment)
    return assignment


def list_for_user(db: Session, user_id: int) -> List[AssignedEquipment]:
    """A user's checkouts: open ones first, then most recently checked out."""
    return (
        db.query(AssignedEquipment)
        .join(Equipment, Equipment.id == AssignedEquipment.equipment_id)
        .filter(AssignedEquipment.user_id == user_id, Equipment.is_obsolete.is_(False))
        .order_by(
            case((AssignedEquipment.checked_in_at.is_(None), 0), else_=1),
            AssignedEquipment.checked_out_at.desc(),
            AssignedEquipment.id.desc(),
        )
        .all()
    )


def list_for_equipment(db: Session, equipment_id: int) -> List[AssignedEquipment]:
    get_equipment(db, equipment_id)
    return (
        db.query(AssignedEquipment)
        .filter(AssignedEquipment.equipment_id == equipment_id)
        .order_by(AssignedEquipment.checked_out_at.desc(), AssignedEquipment.id.desc())
        .all()
    )


def get_current_assignment(db: Session, user_id: int) -> Optional[AssignedEquipment]:
    return (
        db.query(AssignedEquipment)
        .filter(AssignedEquipment.user_id == user_id, AssignedEquipment.checked_in_at.is_(None))
        .order_by(AssignedEquipment.checked_out_at.desc())
        .first()
    )


def delete_assignment(db: Session, assignment_id: int) -> None:
    """Administrative cleanup. Deleting an open row frees its item."""
    with transaction(db):
        assignment = get_assignment(db, assignment_id)
        if assignment.checked_in_at is None:
            equipment = db.query(Equipment).filter(Equipment.id == assignment.equipment_id).first()
            if equipment and equipment.assigned_to == assignment.user_id:
                _mark_released(equipment)
        db.delete(assignment)
    logger.info("equipment_assignment_deleted", assignment_id=assignment_id)
