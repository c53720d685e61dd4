"""
Member roster. Users are created on first authenticated access and never hard-deleted.
"""
from dataclasses import dataclass
from typing import Optional, List, Union

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.enums import Role, Position, UserStatus
from ..models.models import User, utcnow
from .errors import NotFoundError, PreconditionError, DuplicateError

logger = structlog.get_logger(__name__)


@dataclass
class Identity:
    """The authenticated principal as reported by the identity provider."""

    id: str
    email: str
    first_name: str = ""
    last_name: str = ""


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def get_or_create_user(db: Session, identity: Identity) -> User:
    user = db.query(User).filter(User.auth_id == identity.id).first()
    if user:
        if identity.email and user.email != identity.email:
            logger.info("user_email_synced", user_id=user.id)
            user.email = identity.email
            user.updated_at = utcnow()
            db.commit()
            db.refresh(user)
        return user

    user = User(
        auth_id=identity.id,
        email=identity.email,
        first_name=identity.first_name or "",
        last_name=identity.last_name or "",
        role=Role.guest,
        position=Position.reserve,
        status=UserStatus.active,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Two first requests raced; the other one created the row
        db.rollback()
        user = db.query(User).filter(User.auth_id == identity.id).first()
        if not user:
            raise DuplicateError("Email is already registered to another account")
        return user
    db.refresh(user)
    logger.info("user_created", user_id=user.id, role=user.role.value)
    return user


def list_users(
    db: Session,
    role: Optional[Role] = None,
    position: Optional[Position] = None,
) -> List[User]:
    query = db.query(User)
    if role:
        query = query.filter(User.role == Role(role))
    if position:
        query = query.filter(User.position == Position(position))
    return query.order_by(User.last_name.asc(), User.first_name.asc(), User.id.asc()).all()


def update_user_role(db: Session, user_id: int, role: Union[Role, str]) -> User:
    user = get_user(db, user_id)
    user.role = Role(role)
    user.updated_at = utcnow()
    db.commit()
    db.refresh(user)
    logger.info("user_role_updated", user_id=user_id, role=user.role.value)
    return user


PROFILE_FIELDS = (
    "first_name", "last_name", "phone", "driver_license", "driver_license_state",
    "street_address", "city", "state", "zip_code",
)
ADMIN_FIELDS = PROFILE_FIELDS + ("position", "status", "callsign", "radio_number")


def update_user(db: Session, user_id: int, allowed: tuple = ADMIN_FIELDS, **fields) -> User:
    """Apply profile edits. Members may only touch PROFILE_FIELDS on themselves."""
    user = get_user(db, user_id)
    for key, value in fields.items():
        if key not in allowed:
            raise PreconditionError(f"Field '{key}' cannot be updated")
        if key == "position" and value is not None:
            value = Position(value)
        if key == "status" and value is not None:
            value = UserStatus(value)
        setattr(user, key, value)
    user.updated_at = utcnow()
    db.commit()
    db.refresh(user)
    logger.info("user_updated", user_id=user_id, fields=sorted(fields))
    return user
