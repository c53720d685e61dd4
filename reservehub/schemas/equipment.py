from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ..models.enums import Condition
from .users import UserSummary


class EquipmentBase(BaseModel):
    name: str
    serial_number: Optional[str] = None
    description: Optional[str] = None
    purchase_date: Optional[datetime] = None
    notes: Optional[str] = None


class EquipmentCreate(EquipmentBase):
    pass


class EquipmentUpdate(BaseModel):
    name: Optional[str] = None
    serial_number: Optional[str] = None
    description: Optional[str] = None
    purchase_date: Optional[datetime] = None
    notes: Optional[str] = None


class EquipmentResponse(EquipmentBase):
    id: int
    is_assigned: bool
    assigned_to: Optional[int] = None
    is_obsolete: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Assignment Schemas
class AssignmentCreate(BaseModel):
    user_id: int
    condition: Condition
    notes: Optional[str] = None
    checked_out_at: Optional[datetime] = None
    expected_return_date: Optional[datetime] = None


class AssignmentReturn(BaseModel):
    condition: Condition
    notes: Optional[str] = None


class AssignmentNotesUpdate(BaseModel):
    notes: Optional[str] = None


class AssignmentResponse(BaseModel):
    id: int
    equipment_id: int
    user_id: int
    condition: Condition
    checked_out_at: datetime
    checked_in_at: Optional[datetime] = None
    expected_return_date: Optional[datetime] = None
    notes: Optional[str] = None
    equipment: Optional[EquipmentResponse] = None
    user: Optional[UserSummary] = None

    class Config:
        from_attributes = True
