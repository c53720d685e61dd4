from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr

from ..models.enums import ApplicationStatus, Position, PriorExperience, Availability


class ApplicationBase(BaseModel):
    first_name: str
    last_name: str
    email: EmailStr
    phone: str
    driver_license: str
    street_address: str
    city: str
    state: str
    zip_code: str
    prior_experience: PriorExperience
    availability: Availability
    position: Position = Position.reserve


class ApplicationCreate(ApplicationBase):
    pass


class ApplicationResponse(ApplicationBase):
    id: int
    user_id: int
    email: str
    resume: Optional[str] = None
    status: ApplicationStatus
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ApplicationStatusUpdate(BaseModel):
    status: ApplicationStatus


class SignedUrlResponse(BaseModel):
    url: str
