# quizhub/services/access_control.py
"""Authorization decision engine.

Every check here is a pure function of an already verified principal and the
attributes of the target resource: no database access, no logging, no
mutation. Callers load the resource (raising ``NotFound`` themselves) and turn
a ``False`` into ``Forbidden`` with :func:`ensure`.

Role branches are evaluated top-down and the first branch whose role matches
decides the outcome. A failed ADMIN check never falls through to the TEACHER
rules.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Union
from uuid import UUID

from ..core.exceptions import Forbidden
from ..models.user import UserRole

GLOBAL_ROLES = frozenset({UserRole.SUPER_ADMIN, UserRole.GLOBAL_CONTENT_CREATOR})
INSTITUTION_STAFF_ROLES = frozenset({UserRole.ADMIN, UserRole.TEACHER})
QUIZ_AUTHOR_ROLES = GLOBAL_ROLES | INSTITUTION_STAFF_ROLES

MANAGEABLE_BY_GLOBAL_CREATOR = frozenset({
    UserRole.GLOBAL_CONTENT_CREATOR, UserRole.ADMIN, UserRole.TEACHER, UserRole.STUDENT,
})
MANAGEABLE_BY_ADMIN = frozenset({UserRole.ADMIN, UserRole.TEACHER, UserRole.STUDENT})


@dataclass(frozen=True)
class Principal:
    """The verified actor behind a request."""
    id: UUID
    role: UserRole
    institution_id: Optional[UUID] = None
    approved: bool = False

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(
            id=user.id,
            role=UserRole(user.role),
            institution_id=user.institution_id,
            approved=bool(user.approved),
        )


@dataclass(frozen=True)
class InstitutionResource:
    institution_id: UUID


@dataclass(frozen=True)
class QuizResource:
    # Effective institution, see quiz_institution_id()
    institution_id: Optional[UUID]


@dataclass(frozen=True)
class UserResource:
    id: UUID
    role: UserRole
    institution_id: Optional[UUID] = None


@dataclass(frozen=True)
class AttemptResource:
    student_id: UUID
    institution_id: Optional[UUID] = None


Resource = Union[InstitutionResource, QuizResource, UserResource, AttemptResource, None]


class Action(str, Enum):
    ACCESS_INSTITUTION = "ACCESS_INSTITUTION"
    ACCESS_QUIZ = "ACCESS_QUIZ"
    MANAGE_USER = "MANAGE_USER"
    CREATE_QUIZ = "CREATE_QUIZ"
    TAKE_QUIZ = "TAKE_QUIZ"
    VIEW_RESULTS = "VIEW_RESULTS"


def has_role(principal: Principal, roles: Iterable[UserRole]) -> bool:
    return principal.role in roles


def _same_institution(principal: Principal, institution_id: Optional[UUID]) -> bool:
    return principal.institution_id is not None and principal.institution_id == institution_id


def can_access_institution(principal: Principal, institution_id: Optional[UUID]) -> bool:
    if principal.role in GLOBAL_ROLES:
        return True
    return _same_institution(principal, institution_id)


def can_manage_user(principal: Principal, target: UserResource) -> bool:
    role = principal.role
    if role == UserRole.SUPER_ADMIN:
        return True
    if role == UserRole.GLOBAL_CONTENT_CREATOR:
        return target.role in MANAGEABLE_BY_GLOBAL_CREATOR
    if role == UserRole.ADMIN:
        return _same_institution(principal, target.institution_id) and target.role in MANAGEABLE_BY_ADMIN
    if role == UserRole.TEACHER:
        return _same_institution(principal, target.institution_id) and target.role == UserRole.STUDENT
    return False


def can_create_quiz(principal: Principal) -> bool:
    return principal.role in QUIZ_AUTHOR_ROLES


def can_take_quiz(principal: Principal) -> bool:
    return principal.role == UserRole.STUDENT


def can_view_results(principal: Principal, attempt: AttemptResource) -> bool:
    if principal.id == attempt.student_id:
        return True
    if principal.role in INSTITUTION_STAFF_ROLES:
        return _same_institution(principal, attempt.institution_id)
    if principal.role in GLOBAL_ROLES:
        return True
    return False


def quiz_institution_id(quiz) -> Optional[UUID]:
    """Effective institution of a quiz.

    ``quiz.institution_id`` when set, otherwise the institution reached through
    ``quiz.subject.grade``. The subject (and its grade) must already be loaded.
    """
    if quiz.institution_id is not None:
        return quiz.institution_id
    subject = quiz.subject
    if subject is None or subject.grade is None:
        return None
    return subject.grade.institution_id


def authorize_action(principal: Principal, resource: Resource, action: Action) -> bool:
    """Single entry point mapping (principal, resource, action) to allow/deny.

    Unapproved principals are denied everything.
    """
    if not principal.approved:
        return False

    if action == Action.CREATE_QUIZ:
        return can_create_quiz(principal)
    if action == Action.TAKE_QUIZ:
        return can_take_quiz(principal)
    if action == Action.ACCESS_INSTITUTION:
        _expect(resource, InstitutionResource, action)
        return can_access_institution(principal, resource.institution_id)
    if action == Action.ACCESS_QUIZ:
        _expect(resource, QuizResource, action)
        return can_access_institution(principal, resource.institution_id)
    if action == Action.MANAGE_USER:
        _expect(resource, UserResource, action)
        return can_manage_user(principal, resource)
    if action == Action.VIEW_RESULTS:
        _expect(resource, AttemptResource, action)
        return can_view_results(principal, resource)
    raise ValueError(f"Unknown action: {action}")


def _expect(resource: Resource, kind: type, action: Action):
    if not isinstance(resource, kind):
        raise TypeError(f"{action.value} requires a {kind.__name__}, got {type(resource).__name__}")


def ensure(allowed: bool, message: str = "Insufficient permissions"):
    """Translate a denied decision into Forbidden"""
    if not allowed:
        raise Forbidden(message)
