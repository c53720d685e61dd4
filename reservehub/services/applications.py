"""
Applicant intake: guests apply, admins approve or reject.
"""
import re
from typing import Optional, List, Union, Dict, Any

import structlog
from sqlalchemy.orm import Session

from ..config import settings
from ..db import transaction
from ..models.enums import ApplicationStatus, Role, Position, PriorExperience, Availability
from ..models.models import Application, User, utcnow
from ..storage.factory import get_storage
from ..storage.provider import StorageProvider, UploadedFile
from . import notifications
from .errors import NotFoundError, PreconditionError

logger = structlog.get_logger(__name__)

APPLICATION_FIELDS = (
    "first_name", "last_name", "email", "phone", "driver_license",
    "street_address", "city", "state", "zip_code", "prior_experience", "availability", "position",
)


def resume_key(first_name: str, last_name: str, filename: str) -> str:
    folder = re.sub(r"[^a-z0-9_]", "", f"{first_name.lower()}_{last_name.lower()}")
    return f"{folder}/{filename}"


def get_application(db: Session, application_id: int) -> Application:
    application = db.query(Application).filter(Application.id == application_id).first()
    if not application:
        raise NotFoundError("Application not found")
    return application


def create_application(
    db: Session,
    user_id: int,
    data: Dict[str, Any],
    resume: Optional[UploadedFile] = None,
    storage: Optional[StorageProvider] = None,
) -> Application:
    """Store the resume (if any), record the application and tell the admins."""
    unknown = set(data) - set(APPLICATION_FIELDS)
    if unknown:
        raise PreconditionError(f"Unknown application fields: {', '.join(sorted(unknown))}")
    applicant = db.query(User).filter(User.id == user_id).first()
    if not applicant:
        raise NotFoundError("User not found")

    resume_path = None
    if resume is not None:
        storage = storage or get_storage()
        resume_path = storage.upload(
            settings.resume_bucket,
            resume_key(data["first_name"], data["last_name"], resume.filename),
            resume.data,
            content_type=resume.content_type,
        )
        logger.info("resume_uploaded", user_id=user_id, path=resume_path)

    try:
        with transaction(db):
            application = Application(
                user_id=user_id,
                resume=resume_path,
                status=ApplicationStatus.pending,
                **{
                    **data,
                    "prior_experience": PriorExperience(data["prior_experience"]),
                    "availability": Availability(data["availability"]),
                    "position": Position(data.get("position") or Position.reserve),
                },
            )
            db.add(application)
            db.flush()
            notifications.notify_application_submitted(
                db, f"{application.first_name} {application.last_name}"
            )
    except Exception:
        if resume_path:
            _discard_object(storage, settings.resume_bucket, resume_path)
        raise

    db.refresh(application)
    logger.info("application_submitted", application_id=application.id, user_id=user_id)
    return application


def list_applications(db: Session, status: Optional[ApplicationStatus] = None) -> List[Application]:
    query = db.query(Application)
    if status:
        query = query.filter(Application.status == ApplicationStatus(status))
    return query.order_by(Application.created_at.desc(), Application.id.desc()).all()


def list_user_applications(db: Session, user_id: int) -> List[Application]:
    return (
        db.query(Application)
        .filter(Application.user_id == user_id)
        .order_by(Application.created_at.asc(), Application.id.asc())
        .all()
    )


def update_application_status(
    db: Session, application_id: int, status: Union[ApplicationStatus, str]
) -> Application:
    """Approval promotes the applicant to member/candidate; both outcomes notify the applicant."""
    status = ApplicationStatus(status)
    with transaction(db):
        application = get_application(db, application_id)
        application.status = status
        application.updated_at = utcnow()

        if status == ApplicationStatus.approved:
            user = db.query(User).filter(User.id == application.user_id).first()
            if not user:
                raise NotFoundError("Applicant not found")
            user.role = Role.member
            user.position = Position.candidate
            user.updated_at = utcnow()

        if status != ApplicationStatus.pending:
            notifications.notify_application_decided(
                db, application.user_id, approved=status == ApplicationStatus.approved
            )
    db.refresh(application)
    logger.info("application_status_updated", application_id=application_id, status=status.value)
    return application


def delete_application(db: Session, application_id: int, storage: Optional[StorageProvider] = None) -> None:
    with transaction(db):
        application = get_application(db, application_id)
        resume_path = application.resume
        db.delete(application)
    if resume_path:
        _discard_object(storage or get_storage(), settings.resume_bucket, resume_path)
    logger.info("application_deleted", application_id=application_id)


def get_resume_url(path: str, storage: Optional[StorageProvider] = None) -> str:
    storage = storage or get_storage()
    return storage.get_signed_url(settings.resume_bucket, path, settings.signed_url_ttl_seconds)


def _discard_object(storage: StorageProvider, bucket: str, key: str) -> None:
    # The row is the source of truth; a stray object is only logged
    try:
        storage.delete(bucket, key)
    except Exception as exc:
        logger.warning("storage_delete_failed", bucket=bucket, key=key, error=str(exc))
