from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import get_current_user, require_roles, ensure_self_or_admin
from ..models.models import User
from ..schemas.activities import (
    TrainingCreate,
    TrainingUpdate,
    TrainingResponse,
    TrainingAssignmentResponse,
    CompletionUpdate,
)
from ..services import activities as activity_service
from ..services import signups as signup_service

router = APIRouter(prefix="/training", tags=["training"])


@router.get("", response_model=List[TrainingResponse])
def list_trainings(
    upcoming_only: bool = Query(False),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return activity_service.list_trainings(db, upcoming_only=upcoming_only)


@router.get("/users/{user_id}/assignments", response_model=List[TrainingAssignmentResponse])
def list_user_training_assignments(
    user_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    ensure_self_or_admin(user, user_id)
    return activity_service.list_user_training_assignments(db, user_id)


@router.post("", response_model=TrainingResponse)
def create_training(
    payload: TrainingCreate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    return activity_service.create_training(db, **payload.model_dump())


@router.get("/{training_id}", response_model=TrainingResponse)
def get_training(
    training_id: int,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return activity_service.get_training(db, training_id)


@router.put("/{training_id}", response_model=TrainingResponse)
def update_training(
    training_id: int,
    payload: TrainingUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    return activity_service.update_training(db, training_id, **payload.model_dump(exclude_unset=True))


@router.delete("/{training_id}")
def delete_training(
    training_id: int,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    activity_service.delete_training(db, training_id)
    return {"message": "Training deleted successfully"}


@router.get("/{training_id}/assignments", response_model=List[TrainingAssignmentResponse])
def list_training_assignments(
    training_id: int,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    return activity_service.list_training_assignments(db, training_id)


@router.post("/{training_id}/signup", response_model=TrainingAssignmentResponse)
def sign_up(
    training_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("admin", "member")),
):
    return signup_service.sign_up_for_training(db, training_id, user.id)


@router.delete("/{training_id}/signup")
def leave(
    training_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    assignment = signup_service.leave_training(db, training_id, user.id)
    if assignment is None:
        return {"left": False, "message": "Not signed up for this training"}
    return {"left": True, "message": "Left training successfully"}


@router.put("/{training_id}/assignments/{user_id}/completion", response_model=TrainingAssignmentResponse)
def update_completion(
    training_id: int,
    user_id: int,
    payload: CompletionUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    return signup_service.update_completion(db, training_id, user_id, payload.status, notes=payload.notes)
