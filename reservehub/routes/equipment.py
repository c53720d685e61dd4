from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import get_current_user, require_roles, ensure_self_or_admin
from ..models.models import User
from ..schemas.equipment import (
    EquipmentCreate,
    EquipmentUpdate,
    EquipmentResponse,
    AssignmentCreate,
    AssignmentReturn,
    AssignmentNotesUpdate,
    AssignmentResponse,
)
from ..services import equipment as equipment_service

router = APIRouter(prefix="/equipment", tags=["equipment"])


# ---------- CATALOG ----------
@router.get("", response_model=List[EquipmentResponse])
def list_equipment(
    include_obsolete: bool = Query(False),
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    return equipment_service.list_equipment(db, include_obsolete=include_obsolete)


@router.get("/available", response_model=List[EquipmentResponse])
def list_available_equipment(
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    return equipment_service.list_available_equipment(db)


@router.get("/mine", response_model=List[AssignmentResponse])
def list_my_equipment(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Current equipment first, then history"""
    return equipment_service.list_for_user(db, user.id)


@router.get("/users/{user_id}/assignments", response_model=List[AssignmentResponse])
def list_user_assignments(
    user_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    ensure_self_or_admin(user, user_id)
    return equipment_service.list_for_user(db, user_id)


@router.post("", response_model=EquipmentResponse)
def create_equipment(
    payload: EquipmentCreate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    return equipment_service.create_equipment(db, **payload.model_dump())


@router.get("/{equipment_id}", response_model=EquipmentResponse)
def get_equipment(
    equipment_id: int,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    return equipment_service.get_equipment(db, equipment_id)


@router.put("/{equipment_id}", response_model=EquipmentResponse)
def update_equipment(
    equipment_id: int,
    payload: EquipmentUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    return equipment_service.update_equipment(db, equipment_id, **payload.model_dump(exclude_unset=True))


@router.post("/{equipment_id}/obsolete", response_model=EquipmentResponse)
def mark_obsolete(
    equipment_id: int,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    return equipment_service.mark_obsolete(db, equipment_id)


# ---------- ASSIGNMENTS ----------
@router.get("/{equipment_id}/assignments", response_model=List[AssignmentResponse])
def get_equipment_assignments(
    equipment_id: int,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    """Checkout history for one item"""
    return equipment_service.list_for_equipment(db, equipment_id)


@router.post("/{equipment_id}/assign", response_model=AssignmentResponse)
def assign_equipment(
    equipment_id: int,
    payload: AssignmentCreate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    return equipment_service.assign(
        db,
        equipment_id,
        payload.user_id,
        payload.condition,
        notes=payload.notes,
        checked_out_at=payload.checked_out_at,
        expected_return_date=payload.expected_return_date,
    )


@router.put("/assignments/{assignment_id}/return", response_model=AssignmentResponse)
def return_equipment(
    assignment_id: int,
    payload: AssignmentReturn,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    equipment_service.return_equipment(db, assignment_id, payload.condition, notes=payload.notes)
    return equipment_service.get_assignment(db, assignment_id)


@router.put("/assignments/{assignment_id}/notes", response_model=AssignmentResponse)
def update_assignment_notes(
    assignment_id: int,
    payload: AssignmentNotesUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    return equipment_service.update_notes(db, assignment_id, payload.notes)


@router.delete("/assignments/{assignment_id}")
def delete_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    equipment_service.delete_assignment(db, assignment_id)
    return {"message": "Assignment deleted successfully"}
