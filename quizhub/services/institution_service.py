# quizhub/services/institution_service.py
from typing import Any, Dict, List
from uuid import UUID
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import Conflict, Forbidden, NotFound, StorageFailure
from ..models.shared.institution import Institution
from ..models.tenant_specific.academic import Grade, Subject
from ..models.user import User, UserRole
from ..schemas.institution_schemas import GradeCreate, InstitutionCreate, SubjectCreate
from .access_control import GLOBAL_ROLES, Principal, can_access_institution, ensure, has_role
from .base_service import BaseService

logger = logging.getLogger(__name__)

INSTITUTION_CREATORS = frozenset({UserRole.SUPER_ADMIN, UserRole.ADMIN})
INSTITUTION_VIEWERS = GLOBAL_ROLES | {UserRole.ADMIN}
GRADE_MANAGERS = GLOBAL_ROLES | {UserRole.ADMIN}
SUBJECT_MANAGERS = GLOBAL_ROLES | {UserRole.ADMIN, UserRole.TEACHER}


class InstitutionService(BaseService[Institution]):
    def __init__(self, db: AsyncSession):
        super().__init__(Institution, db)

    async def _commit(self, action: str, duplicate_message: str = None):
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if duplicate_message:
                raise Conflict(duplicate_message) from e
            logger.error(f"Integrity error during {action}: {e.orig}")
            raise StorageFailure(f"Could not {action}") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error during {action}: {e}")
            raise StorageFailure(f"Could not {action}") from e

    async def get_or_404(self, institution_id: UUID) -> Institution:
        institution = await self.get(institution_id)
        if not institution:
            raise NotFound("Institution", institution_id)
        return institution

    async def create_institution(self, data: InstitutionCreate, principal: Principal) -> Institution:
        ensure(has_role(principal, INSTITUTION_CREATORS), "Insufficient permissions")

        admin_id = data.admin_id or principal.id
        admin = await self.db.get(User, admin_id)
        if not admin:
            raise NotFound("Admin user", admin_id)
        if not admin.approved:
            raise Forbidden("Admin account must be approved")

        institution = Institution(
            name=data.name,
            address=data.address,
            admin_id=admin_id,
            approved=False,
        )
        self.db.add(institution)
        await self._commit("create institution", "Institution with this name and address already exists")
        await self.db.refresh(institution)

        logger.info(f"New institution created: {institution.id} with admin {admin_id}")
        return institution

    async def get_institutions(
        self, principal: Principal, approved_only: bool = False, page: int = 1, size: int = 10
    ) -> Dict[str, Any]:
        ensure(has_role(principal, INSTITUTION_VIEWERS), "Insufficient permissions")

        stmt = select(Institution).where(Institution.is_deleted.is_(False))
        if not has_role(principal, GLOBAL_ROLES):
            stmt = stmt.where(Institution.id == principal.institution_id)
        if approved_only:
            stmt = stmt.where(Institution.approved.is_(True))

        return await self.paginate(stmt.order_by(Institution.created_at.desc()), page, size)

    async def get_institution(self, institution_id: UUID, principal: Principal) -> Institution:
        ensure(can_access_institution(principal, institution_id), "Access to this institution is denied")
        return await self.get_or_404(institution_id)

    async def set_approval(self, institution_id: UUID, approved: bool, principal: Principal) -> Institution:
        ensure(principal.role == UserRole.SUPER_ADMIN, "Only super admins can approve institutions")
        institution = await self.get_or_404(institution_id)

        institution.approved = approved
        await self._commit("approve institution")
        await self.db.refresh(institution)

        logger.info(f"Institution {institution_id} {'approved' if approved else 'rejected'} by {principal.id}")
        return institution

    # Grades

    async def create_grade(self, institution_id: UUID, data: GradeCreate, principal: Principal) -> Grade:
        ensure(can_access_institution(principal, institution_id), "Access to this institution is denied")
        ensure(has_role(principal, GRADE_MANAGERS), "Insufficient permissions")

        institution = await self.get_or_404(institution_id)
        if not institution.approved:
            raise Forbidden("Institution must be approved")

        grade = Grade(institution_id=institution.id, name=data.name.strip())
        self.db.add(grade)
        await self._commit("create grade", "Grade with this name already exists in this institution")

        logger.info(f"Grade created: {grade.id} in institution {institution_id}")
        return grade

    async def get_grades(self, institution_id: UUID, principal: Principal) -> List[Grade]:
        ensure(can_access_institution(principal, institution_id), "Access to this institution is denied")
        await self.get_or_404(institution_id)

        result = await self.db.execute(
            select(Grade)
            .where(Grade.institution_id == institution_id, Grade.is_deleted.is_(False))
            .order_by(Grade.name)
        )
        return list(result.scalars().all())

    # Subjects

    async def get_grade_or_404(self, grade_id: UUID) -> Grade:
        grade = (await self.db.execute(
            select(Grade).where(Grade.id == grade_id, Grade.is_deleted.is_(False))
        )).scalar_one_or_none()
        if not grade:
            raise NotFound("Grade", grade_id)
        return grade

    async def create_subject(self, grade_id: UUID, data: SubjectCreate, principal: Principal) -> Subject:
        ensure(has_role(principal, SUBJECT_MANAGERS), "Insufficient permissions")

        grade = await self.get_grade_or_404(grade_id)
        ensure(can_access_institution(principal, grade.institution_id), "Access to this institution is denied")

        institution = await self.get_or_404(grade.institution_id)
        if not institution.approved:
            raise Forbidden("Institution must be approved")

        subject = Subject(grade_id=grade.id, name=data.name.strip())
        self.db.add(subject)
        await self._commit("create subject", "Subject with this name already exists in this grade")

        logger.info(f"Subject created: {subject.id} in grade {grade_id}")
        return subject

    async def get_subjects(self, grade_id: UUID, principal: Principal) -> List[Subject]:
        grade = await self.get_grade_or_404(grade_id)
        ensure(can_access_institution(principal, grade.institution_id), "Access to this institution is denied")

        result = await self.db.execute(
            select(Subject)
            .where(Subject.grade_id == grade.id, Subject.is_deleted.is_(False))
            .order_by(Subject.name)
        )
        return list(result.scalars().all())
