from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import get_current_user, require_roles, ensure_self_or_admin
from ..models.enums import Role, Position
from ..models.models import User
from ..schemas.users import UserResponse, ProfileUpdate, AdminUserUpdate, RoleUpdate
from ..services import users as user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
def get_me(user: User = Depends(get_current_user)):
    return user


@router.put("/me", response_model=UserResponse)
def update_me(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Members edit their own contact details"""
    return user_service.update_user(
        db, user.id, allowed=user_service.PROFILE_FIELDS, **payload.model_dump(exclude_unset=True)
    )


@router.get("", response_model=List[UserResponse])
def list_users(
    role: Optional[Role] = Query(None),
    position: Optional[Position] = Query(None),
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    return user_service.list_users(db, role=role, position=position)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    ensure_self_or_admin(user, user_id)
    return user_service.get_user(db, user_id)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    payload: AdminUserUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    return user_service.update_user(db, user_id, **payload.model_dump(exclude_unset=True))


@router.put("/{user_id}/role", response_model=UserResponse)
def update_user_role(
    user_id: int,
    payload: RoleUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    return user_service.update_user_role(db, user_id, payload.role)
