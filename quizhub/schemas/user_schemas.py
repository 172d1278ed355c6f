# quizhub/schemas/user_schemas.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from uuid import UUID

from ..models.user import UserRole
from ..services.access_control import Action


class UserCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    phone_number: str = Field(..., pattern=r"^\+?[1-9]\d{1,14}$")
    email: Optional[str] = Field(default=None, pattern=r"^[^@]+@[^@]+\.[^@]+$")
    role: UserRole
    institution_id: Optional[UUID] = None


class UserApproval(BaseModel):
    approved: bool


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    phone_number: str
    email: Optional[str]
    role: UserRole
    institution_id: Optional[UUID]
    approved: bool


class AccessCheck(BaseModel):
    """Payload of the authorization endpoint, only the ids relevant to the action are needed"""
    action: Action
    institution_id: Optional[UUID] = None
    quiz_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    attempt_id: Optional[UUID] = None
