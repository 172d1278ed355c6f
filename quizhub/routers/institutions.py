# quizhub/routers/institutions.py
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.security import get_current_principal
from ..schemas.institution_schemas import (
    GradeCreate, GradeResponse, InstitutionApproval, InstitutionCreate,
    InstitutionResponse, SubjectCreate, SubjectResponse
)
from ..schemas.pagination import PaginatedResponse
from ..schemas.response import success_response
from ..services.access_control import Principal
from ..services.institution_service import InstitutionService

router = APIRouter(prefix="/api/v1/institutions", tags=["Institutions"])


@router.post("/", status_code=201)
async def create_institution(
    institution_data: InstitutionCreate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Register an institution, it stays unapproved until a super admin approves it"""
    institution = await InstitutionService(db).create_institution(institution_data, principal)
    return success_response(InstitutionResponse.model_validate(institution), "Institution created successfully")


@router.get("/")
async def get_institutions(
    approved_only: bool = Query(False),
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    result = await InstitutionService(db).get_institutions(principal, approved_only, page, size)
    result["items"] = [InstitutionResponse.model_validate(item) for item in result["items"]]
    return success_response(PaginatedResponse[InstitutionResponse](**result), "Institutions retrieved successfully")


@router.get("/{institution_id}")
async def get_institution(
    institution_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    institution = await InstitutionService(db).get_institution(institution_id, principal)
    return success_response(InstitutionResponse.model_validate(institution), "Institution retrieved successfully")


@router.put("/{institution_id}/approval")
async def set_institution_approval(
    institution_id: UUID,
    approval: InstitutionApproval,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    institution = await InstitutionService(db).set_approval(institution_id, approval.approved, principal)
    return success_response(InstitutionResponse.model_validate(institution), "Institution approval updated")


# Grades and subjects

@router.post("/{institution_id}/grades", status_code=201)
async def create_grade(
    institution_id: UUID,
    grade_data: GradeCreate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    grade = await InstitutionService(db).create_grade(institution_id, grade_data, principal)
    return success_response(GradeResponse.model_validate(grade), "Grade created successfully")


@router.get("/{institution_id}/grades")
async def get_grades(
    institution_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    grades = await InstitutionService(db).get_grades(institution_id, principal)
    return success_response([GradeResponse.model_validate(grade) for grade in grades], "Grades retrieved successfully")


@router.post("/grades/{grade_id}/subjects", status_code=201)
async def create_subject(
    grade_id: UUID,
    subject_data: SubjectCreate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    subject = await InstitutionService(db).create_subject(grade_id, subject_data, principal)
    return success_response(SubjectResponse.model_validate(subject), "Subject created successfully")


@router.get("/grades/{grade_id}/subjects")
async def get_subjects(
    grade_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    subjects = await InstitutionService(db).get_subjects(grade_id, principal)
    return success_response(
        [SubjectResponse.model_validate(subject) for subject in subjects], "Subjects retrieved successfully"
    )
