from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import get_current_user, require_roles
from ..models.enums import NotificationType
from ..models.models import User
from ..schemas.notifications import NotificationResponse, UnreadCount
from ..services import notifications as notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationResponse])
def list_notifications(
    unread_only: bool = Query(False),
    type: Optional[NotificationType] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Newest first, with the caller's read flag"""
    return notification_service.list_for_user(
        db, user.id, unread_only=unread_only, notification_type=type, limit=limit, offset=offset
    )


@router.get("/unread-count", response_model=UnreadCount)
def get_unread_count(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return {"count": notification_service.unread_count(db, user.id)}


@router.post("/read-all")
def mark_all_read(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    notification_service.mark_all_read(db, user.id)
    return {"message": "All notifications marked as read"}


@router.post("/{notification_id}/read")
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    notification_service.mark_read(db, notification_id, user.id)
    return {"message": "Notification marked as read"}


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    notification_service.delete_notification(db, notification_id)
    return {"message": "Notification deleted successfully"}
