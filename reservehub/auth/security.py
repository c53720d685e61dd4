"""
Bearer-token verification for tokens issued by the identity provider.
We never mint user tokens; we verify them and map the subject to a roster row.
"""
from typing import Optional

import jwt
import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..models.enums import UserStatus
from ..models.models import User
from ..services.users import Identity, get_or_create_user

logger = structlog.get_logger(__name__)

http_bearer = HTTPBearer(auto_error=False)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            audience=settings.auth_jwt_audience,
            options={"verify_aud": settings.auth_jwt_audience is not None},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


def identity_from_claims(payload: dict) -> Identity:
    subject = payload.get("sub")
    email = payload.get("email")
    if not subject or not email:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid subject")
    # Providers put profile names either at the top level or under user_metadata
    metadata = payload.get("user_metadata") or {}
    return Identity(
        id=str(subject),
        email=email,
        first_name=payload.get("first_name") or metadata.get("first_name") or "",
        last_name=payload.get("last_name") or metadata.get("last_name") or "",
    )


def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    db: Session = Depends(get_db),
) -> User:
    if creds is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    identity = identity_from_claims(decode_token(creds.credentials))
    user = get_or_create_user(db, identity)
    if user.status != UserStatus.active:
        logger.warning("inactive_user_rejected", user_id=user.id, status=user.status.value)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User not active")
    return user


def require_roles(*required_roles: str):
    """Allow the request when the user holds any of the given roles."""
    def _dep(user: User = Depends(get_current_user)):
        if user.role.value not in required_roles:
            raise HTTPException(status_code=403, detail="Forbidden")
        return user

    return _dep


def ensure_self_or_admin(user: User, target_user_id: int) -> None:
    if user.id != target_user_id and not user.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden")
