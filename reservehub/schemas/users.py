from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ..models.enums import Role, Position, UserStatus


class UserSummary(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str

    class Config:
        from_attributes = True


class UserResponse(UserSummary):
    phone: Optional[str] = None
    driver_license: Optional[str] = None
    driver_license_state: Optional[str] = None
    street_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    callsign: Optional[str] = None
    radio_number: Optional[str] = None
    role: Role
    position: Position
    status: UserStatus
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    driver_license: Optional[str] = None
    driver_license_state: Optional[str] = None
    street_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None


class AdminUserUpdate(ProfileUpdate):
    position: Optional[Position] = None
    status: Optional[UserStatus] = None
    callsign: Optional[str] = None
    radio_number: Optional[str] = None


class RoleUpdate(BaseModel):
    role: Role
