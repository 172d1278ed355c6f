# quizhub/routers/access.py
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.database import get_db
from ..core.exceptions import NotFound, ValidationFailed
from ..core.security import get_current_principal
from ..models.tenant_specific.quiz import Quiz, QuizAttempt
from ..models.user import User, UserRole
from ..schemas.response import success_response
from ..schemas.user_schemas import AccessCheck
from ..services.access_control import (
    Action, AttemptResource, InstitutionResource, Principal, QuizResource,
    UserResource, authorize_action, quiz_institution_id
)

router = APIRouter(prefix="/api/v1/access", tags=["Access Control"])


def _require(value, field: str):
    if value is None:
        raise ValidationFailed(f"{field} is required for this action", field=field)
    return value


async def resolve_resource(check: AccessCheck, db: AsyncSession):
    """Load the resource descriptor an action is decided against"""
    if check.action == Action.ACCESS_INSTITUTION:
        return InstitutionResource(_require(check.institution_id, "institution_id"))

    if check.action == Action.ACCESS_QUIZ:
        quiz_id = _require(check.quiz_id, "quiz_id")
        quiz = (await db.execute(
            select(Quiz)
            .options(selectinload(Quiz.subject))
            .where(Quiz.id == quiz_id, Quiz.is_deleted.is_(False))
        )).scalar_one_or_none()
        if not quiz:
            raise NotFound("Quiz", quiz_id)
        return QuizResource(quiz_institution_id(quiz))

    if check.action == Action.MANAGE_USER:
        user_id = _require(check.user_id, "user_id")
        user = await db.get(User, user_id)
        if not user or user.is_deleted:
            raise NotFound("User", user_id)
        return UserResource(id=user.id, role=UserRole(user.role), institution_id=user.institution_id)

    if check.action == Action.VIEW_RESULTS:
        attempt_id = _require(check.attempt_id, "attempt_id")
        attempt = await db.get(QuizAttempt, attempt_id)
        if not attempt:
            raise NotFound("Quiz attempt", attempt_id)
        return AttemptResource(student_id=attempt.student_id, institution_id=attempt.institution_id)

    return None


@router.post("/check")
async def check_access(
    check: AccessCheck,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Answer whether the caller may perform an action, without performing it"""
    resource = await resolve_resource(check, db)
    allowed = authorize_action(principal, resource, check.action)
    return success_response({"action": check.action, "allowed": allowed}, "Access decision")
