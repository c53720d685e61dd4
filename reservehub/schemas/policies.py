from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel

from .users import UserSummary


class PolicyResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    policy_type: Optional[str] = None
    policy_number: str
    policy_url: Optional[str] = None
    effective_date: datetime
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PolicyWithStatus(PolicyResponse):
    acknowledged: bool = False


class PolicyCompletionResponse(BaseModel):
    id: int
    policy_id: int
    user_id: int
    acknowledged_at: datetime
    user: Optional[UserSummary] = None

    class Config:
        from_attributes = True


class ResetResult(BaseModel):
    deleted: int


class PolicyStatusList(BaseModel):
    policies: List[PolicyWithStatus]
