from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import EmailStr
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import get_current_user, require_roles
from ..models.enums import ApplicationStatus, PriorExperience, Availability, Position
from ..models.models import User
from ..schemas.applications import ApplicationResponse, ApplicationStatusUpdate, SignedUrlResponse
from ..services import applications as application_service
from ..services.errors import NotFoundError
from ..storage.provider import UploadedFile

router = APIRouter(prefix="/applications", tags=["applications"])


@router.post("", response_model=ApplicationResponse)
def submit_application(
    first_name: str = Form(...),
    last_name: str = Form(...),
    email: EmailStr = Form(...),
    phone: str = Form(...),
    driver_license: str = Form(...),
    street_address: str = Form(...),
    city: str = Form(...),
    state: str = Form(...),
    zip_code: str = Form(...),
    prior_experience: PriorExperience = Form(...),
    availability: Availability = Form(...),
    position: Position = Form(Position.reserve),
    resume: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    data = {
        "first_name": first_name,
        "last_name": last_name,
        "email": str(email),
        "phone": phone,
        "driver_license": driver_license,
        "street_address": street_address,
        "city": city,
        "state": state,
        "zip_code": zip_code,
        "prior_experience": prior_experience,
        "availability": availability,
        "position": position,
    }
    upload = None
    if resume is not None and resume.filename:
        upload = UploadedFile(resume.filename, resume.file, resume.content_type)
    return application_service.create_application(db, user.id, data, resume=upload)


@router.get("", response_model=List[ApplicationResponse])
def list_applications(
    status: Optional[ApplicationStatus] = None,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    return application_service.list_applications(db, status=status)


@router.get("/mine", response_model=List[ApplicationResponse])
def list_my_applications(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return application_service.list_user_applications(db, user.id)


@router.put("/{application_id}/status", response_model=ApplicationResponse)
def update_application_status(
    application_id: int,
    payload: ApplicationStatusUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    return application_service.update_application_status(db, application_id, payload.status)


@router.delete("/{application_id}")
def delete_application(
    application_id: int,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    application_service.delete_application(db, application_id)
    return {"message": "Application deleted successfully"}


@router.get("/{application_id}/resume-url", response_model=SignedUrlResponse)
def get_resume_url(
    application_id: int,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    application = application_service.get_application(db, application_id)
    if not application.resume:
        raise NotFoundError("Application has no resume")
    return {"url": application_service.get_resume_url(application.resume)}
