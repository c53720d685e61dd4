"""
Policy documents and their acknowledgements.

A PolicyCompletion row per (policy, user) means "acknowledged"; the store's
unique constraint is what rejects a second acknowledgement.
"""
import re
from datetime import datetime
from typing import Optional, List, Dict, Tuple

import structlog
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..config import settings
from ..db import transaction
from ..models.models import Policy, PolicyCompletion, User, utcnow, as_utc
from ..storage.factory import get_storage
from ..storage.provider import StorageProvider, UploadedFile
from . import notifications
from .errors import NotFoundError, PreconditionError, DuplicateError, PermissionDeniedError

logger = structlog.get_logger(__name__)


def policy_document_key(policy_number: str, policy_name: str, extension: str) -> str:
    sanitized = re.sub(r"[^a-z0-9]", "_", policy_name.lower())
    return f"{policy_number}_{sanitized}.{extension}"


def get_policy(db: Session, policy_id: int) -> Policy:
    policy = db.query(Policy).filter(Policy.id == policy_id).first()
    if not policy:
        raise NotFoundError("Policy not found")
    return policy


def list_policies(db: Session, active_only: bool = False) -> List[Policy]:
    query = db.query(Policy)
    if active_only:
        query = query.filter(Policy.is_active.is_(True))
    return query.order_by(Policy.policy_number.asc(), Policy.id.asc()).all()


def create_policy(
    db: Session,
    name: str,
    policy_number: str,
    effective_date: datetime,
    description: Optional[str] = None,
    policy_type: Optional[str] = None,
    is_active: bool = True,
    document: Optional[UploadedFile] = None,
    storage: Optional[StorageProvider] = None,
) -> Policy:
    """Publish a policy, upload its document and ask every reserve to read it."""
    document_path = None
    if document is not None:
        storage = storage or get_storage()
        document_path = storage.upload(
            settings.policy_bucket,
            policy_document_key(policy_number, name, document.extension or "pdf"),
            document.data,
            content_type=document.content_type,
        )

    with transaction(db):
        policy = Policy(
            name=name,
            policy_number=policy_number,
            effective_date=as_utc(effective_date),
            description=description,
            policy_type=policy_type,
            is_active=is_active,
            policy_url=document_path,
        )
        db.add(policy)
        db.flush()
        notifications.notify_policy_created(db, policy)
    db.refresh(policy)
    logger.info("policy_created", policy_id=policy.id, policy_number=policy_number)
    return policy


def get_policy_url(db: Session, policy_id: int, storage: Optional[StorageProvider] = None) -> str:
    policy = get_policy(db, policy_id)
    if not policy.policy_url:
        raise PreconditionError("Policy has no document")
    storage = storage or get_storage()
    return storage.get_signed_url(settings.policy_bucket, policy.policy_url, settings.signed_url_ttl_seconds)


def delete_policy(db: Session, policy_id: int, storage: Optional[StorageProvider] = None) -> None:
    with transaction(db):
        policy = get_policy(db, policy_id)
        document_path = policy.policy_url
        db.delete(policy)
    if document_path:
        storage = storage or get_storage()
        try:
            storage.delete(settings.policy_bucket, document_path)
        except Exception as exc:
            logger.warning("policy_document_delete_failed", policy_id=policy_id, error=str(exc))
    logger.info("policy_deleted", policy_id=policy_id)


# ---------- ACKNOWLEDGEMENTS ----------
def acknowledge(db: Session, policy_id: int, user_id: int) -> PolicyCompletion:
    try:
        with transaction(db):
            policy = get_policy(db, policy_id)
            user = db.query(User).filter(User.id == user_id).first()
            if not user:
                raise NotFoundError("User not found")
            completion = PolicyCompletion(policy_id=policy_id, user_id=user_id, acknowledged_at=utcnow())
            db.add(completion)
            db.flush()
            notifications.notify_policy_acknowledged(db, policy, user)
    except IntegrityError as exc:
        raise DuplicateError("Policy already acknowledged") from exc
    db.refresh(completion)
    logger.info("policy_acknowledged", policy_id=policy_id, user_id=user_id)
    return completion


def is_completed(db: Session, policy_id: int, user_id: int) -> bool:
    count = (
        db.query(func.count(PolicyCompletion.id))
        .filter(PolicyCompletion.policy_id == policy_id, PolicyCompletion.user_id == user_id)
        .scalar()
    )
    return count > 0


def list_completions(db: Session, policy_id: int) -> List[PolicyCompletion]:
    get_policy(db, policy_id)
    return (
        db.query(PolicyCompletion)
        .options(joinedload(PolicyCompletion.user))
        .filter(PolicyCompletion.policy_id == policy_id)
        .order_by(PolicyCompletion.acknowledged_at.desc(), PolicyCompletion.id.desc())
        .all()
    )


def list_policies_with_status(db: Session, user_id: int) -> Tuple[List[Policy], Dict[int, bool]]:
    """Active policies plus {policy_id: acknowledged} for one user."""
    policies = list_policies(db, active_only=True)
    done = {
        row[0]
        for row in db.query(PolicyCompletion.policy_id).filter(PolicyCompletion.user_id == user_id).all()
    }
    return policies, {p.id: p.id in done for p in policies}


def reset_completion(db: Session, actor: User, policy_id: int, user_id: Optional[int] = None) -> int:
    """Forget acknowledgements for one user, or for everyone when user_id is None."""
    if not actor.is_admin:
        raise PermissionDeniedError("Only admins can reset policy completions")
    with transaction(db):
        get_policy(db, policy_id)
        query = db.query(PolicyCompletion).filter(PolicyCompletion.policy_id == policy_id)
        if user_id is not None:
            query = query.filter(PolicyCompletion.user_id == user_id)
        deleted = query.delete(synchronize_session=False)
    logger.info("policy_completions_reset", policy_id=policy_id, user_id=user_id, deleted=deleted, actor_id=actor.id)
    return deleted
