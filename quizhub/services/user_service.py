# quizhub/services/user_service.py
from uuid import UUID
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import Conflict, NotFound, StorageFailure, ValidationFailed
from ..models.shared.institution import Institution
from ..models.user import User, UserRole
from ..schemas.user_schemas import UserCreate
from .access_control import GLOBAL_ROLES, Principal, UserResource, can_manage_user, ensure
from .base_service import BaseService

logger = logging.getLogger(__name__)


class UserService(BaseService[User]):
    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    async def get_or_404(self, user_id: UUID) -> User:
        user = await self.get(user_id)
        if not user:
            raise NotFound("User", user_id)
        return user

    async def create_user(self, data: UserCreate, principal: Principal) -> User:
        target = UserResource(id=None, role=data.role, institution_id=data.institution_id)
        ensure(can_manage_user(principal, target), "Cannot create a user with this role")

        if data.role in GLOBAL_ROLES:
            if data.institution_id is not None:
                raise ValidationFailed("Global roles cannot belong to an institution", field="institution_id")
        else:
            if data.institution_id is None:
                raise ValidationFailed("Institution is required for this role", field="institution_id")
            institution = await self.db.get(Institution, data.institution_id)
            if not institution or institution.is_deleted:
                raise NotFound("Institution", data.institution_id)

        user = User(
            name=data.name,
            phone_number=data.phone_number,
            email=data.email,
            role=data.role,
            institution_id=data.institution_id,
            approved=principal.role == UserRole.SUPER_ADMIN,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise Conflict("User with this phone number or email already exists") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error creating user: {e}")
            raise StorageFailure("Could not create user") from e
        await self.db.refresh(user)

        logger.info(f"User created: {user.id} ({user.role.value}) by {principal.id}")
        return user

    async def get_user(self, user_id: UUID, principal: Principal) -> User:
        user = await self.get_or_404(user_id)
        if user.id != principal.id:
            ensure(can_manage_user(principal, self.as_resource(user)), "Cannot view this user")
        return user

    async def set_approval(self, user_id: UUID, approved: bool, principal: Principal) -> User:
        user = await self.get_or_404(user_id)
        ensure(can_manage_user(principal, self.as_resource(user)), "Cannot approve this user")

        user.approved = approved
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error approving user {user_id}: {e}")
            raise StorageFailure("Could not update user") from e
        await self.db.refresh(user)

        logger.info(f"User {user_id} {'approved' if approved else 'unapproved'} by {principal.id}")
        return user

    @staticmethod
    def as_resource(user: User) -> UserResource:
        return UserResource(id=user.id, role=UserRole(user.role), institution_id=user.institution_id)
