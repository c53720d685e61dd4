from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import get_current_user, require_roles
from ..models.models import User
from ..schemas.applications import SignedUrlResponse
from ..schemas.policies import PolicyResponse, PolicyWithStatus, PolicyCompletionResponse, ResetResult
from ..services import policies as policy_service
from ..storage.provider import UploadedFile

router = APIRouter(prefix="/policies", tags=["policies"])


@router.post("", response_model=PolicyResponse)
def create_policy(
    name: str = Form(...),
    policy_number: str = Form(...),
    effective_date: datetime = Form(...),
    description: Optional[str] = Form(None),
    policy_type: Optional[str] = Form(None),
    is_active: bool = Form(True),
    document: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    upload = None
    if document is not None and document.filename:
        upload = UploadedFile(document.filename, document.file, document.content_type)
    return policy_service.create_policy(
        db,
        name=name,
        policy_number=policy_number,
        effective_date=effective_date,
        description=description,
        policy_type=policy_type,
        is_active=is_active,
        document=upload,
    )


@router.get("", response_model=List[PolicyResponse])
def list_policies(
    active_only: bool = Query(False),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return policy_service.list_policies(db, active_only=active_only)


@router.get("/status", response_model=List[PolicyWithStatus])
def list_policies_with_status(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Active policies with the caller's acknowledgement flag"""
    policies, status = policy_service.list_policies_with_status(db, user.id)
    return [
        PolicyWithStatus.model_validate(p).model_copy(update={"acknowledged": status.get(p.id, False)})
        for p in policies
    ]


@router.get("/{policy_id}", response_model=PolicyResponse)
def get_policy(
    policy_id: int,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return policy_service.get_policy(db, policy_id)


@router.get("/{policy_id}/url", response_model=SignedUrlResponse)
def get_policy_url(
    policy_id: int,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return {"url": policy_service.get_policy_url(db, policy_id)}


@router.post("/{policy_id}/acknowledge", response_model=PolicyCompletionResponse)
def acknowledge_policy(
    policy_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return policy_service.acknowledge(db, policy_id, user.id)


@router.get("/{policy_id}/completions", response_model=List[PolicyCompletionResponse])
def list_completions(
    policy_id: int,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    return policy_service.list_completions(db, policy_id)


@router.delete("/{policy_id}/completions", response_model=ResetResult)
def reset_completions(
    policy_id: int,
    user_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("admin")),
):
    """Reset acknowledgements for one user, or everyone when user_id is omitted"""
    return {"deleted": policy_service.reset_completion(db, user, policy_id, user_id=user_id)}


@router.delete("/{policy_id}")
def delete_policy(
    policy_id: int,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    policy_service.delete_policy(db, policy_id)
    return {"message": "Policy deleted successfully"}
