from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import get_current_user, require_roles, ensure_self_or_admin
from ..models.models import User
from ..schemas.activities import EventCreate, EventUpdate, EventResponse, EventAssignmentResponse
from ..services import activities as activity_service
from ..services import signups as signup_service

router = APIRouter(prefix="/events", tags=["events"])


@router.get("", response_model=List[EventResponse])
def list_events(
    upcoming_only: bool = Query(False),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return activity_service.list_events(db, upcoming_only=upcoming_only)


@router.get("/users/{user_id}/assignments", response_model=List[EventAssignmentResponse])
def list_user_event_assignments(
    user_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    ensure_self_or_admin(user, user_id)
    return activity_service.list_user_event_assignments(db, user_id)


@router.post("", response_model=EventResponse)
def create_event(
    payload: EventCreate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    return activity_service.create_event(db, **payload.model_dump())


@router.get("/{event_id}", response_model=EventResponse)
def get_event(
    event_id: int,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return activity_service.get_event(db, event_id)


@router.put("/{event_id}", response_model=EventResponse)
def update_event(
    event_id: int,
    payload: EventUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    return activity_service.update_event(db, event_id, **payload.model_dump(exclude_unset=True))


@router.delete("/{event_id}")
def delete_event(
    event_id: int,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    activity_service.delete_event(db, event_id)
    return {"message": "Event deleted successfully"}


@router.get("/{event_id}/assignments", response_model=List[EventAssignmentResponse])
def list_event_assignments(
    event_id: int,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    return activity_service.list_event_assignments(db, event_id)


@router.post("/{event_id}/signup", response_model=EventAssignmentResponse)
def sign_up(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("admin", "member")),
):
    return signup_service.sign_up_for_event(db, event_id, user.id)


@router.delete("/{event_id}/signup")
def leave(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    assignment = signup_service.leave_event(db, event_id, user.id)
    if assignment is None:
        return {"left": False, "message": "Not signed up for this event"}
    return {"left": True, "message": "Left event successfully"}
