# quizhub/schemas/institution_schemas.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from uuid import UUID


class InstitutionCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    address: Optional[str] = Field(default=None, max_length=500)
    admin_id: Optional[UUID] = None


class InstitutionApproval(BaseModel):
    approved: bool


class InstitutionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    address: Optional[str]
    approved: bool
    admin_id: Optional[UUID]
    created_at: Optional[datetime] = None


class GradeCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)


class GradeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    institution_id: UUID
    name: str


class SubjectCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)


class SubjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    grade_id: UUID
    name: str
