# quizhub/routers/users.py
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.security import get_current_principal
from ..schemas.response import success_response
from ..schemas.user_schemas import UserApproval, UserCreate, UserResponse
from ..services.access_control import Principal
from ..services.user_service import UserService

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


@router.post("/", status_code=201)
async def create_user(
    user_data: UserCreate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    user = await UserService(db).create_user(user_data, principal)
    return success_response(UserResponse.model_validate(user), "User created successfully")


@router.get("/me")
async def get_me(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    user = await UserService(db).get_user(principal.id, principal)
    return success_response(UserResponse.model_validate(user), "User retrieved successfully")


@router.get("/{user_id}")
async def get_user(
    user_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    user = await UserService(db).get_user(user_id, principal)
    return success_response(UserResponse.model_validate(user), "User retrieved successfully")


@router.put("/{user_id}/approval")
async def set_user_approval(
    user_id: UUID,
    approval: UserApproval,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    user = await UserService(db).set_approval(user_id, approval.approved, principal)
    return success_response(UserResponse.model_validate(user), "User approval updated")
