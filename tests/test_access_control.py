import itertools
import uuid

import pytest

from quizhub.models.user import UserRole
from quizhub.services.access_control import (
    Action, AttemptResource, InstitutionResource, Principal, QuizResource, UserResource,
    authorize_action, can_access_institution, can_create_quiz, can_manage_user,
    can_take_quiz, can_view_results, quiz_institution_id
)

SCHOOL = uuid.uuid4()
OTHER_SCHOOL = uuid.uuid4()


def make(role, institution_id=SCHOOL, approved=True):
    return Principal(id=uuid.uuid4(), role=role, institution_id=institution_id, approved=approved)


@pytest.mark.parametrize("role,own,other", [
    (UserRole.SUPER_ADMIN, True, True),
    (UserRole.GLOBAL_CONTENT_CREATOR, True, True),
    (UserRole.ADMIN, True, False),
    (UserRole.TEACHER, True, False),
    (UserRole.STUDENT, True, False),
])
def test_institution_access(role, own, other):
    principal = make(role)
    assert can_access_institution(principal, SCHOOL) is own
    assert can_access_institution(principal, OTHER_SCHOOL) is other


def test_principal_without_institution_never_matches_missing_institution():
    principal = make(UserRole.TEACHER, institution_id=None)
    assert can_access_institution(principal, None) is False


@pytest.mark.parametrize("role,creates,takes", [
    (UserRole.SUPER_ADMIN, True, False),
    (UserRole.GLOBAL_CONTENT_CREATOR, True, False),
    (UserRole.ADMIN, True, False),
    (UserRole.TEACHER, True, False),
    (UserRole.STUDENT, False, True),
])
def test_quiz_roles(role, creates, takes):
    principal = make(role)
    assert can_create_quiz(principal) is creates
    assert can_take_quiz(principal) is takes


MANAGE_TABLE = {
    UserRole.SUPER_ADMIN: set(UserRole),
    UserRole.GLOBAL_CONTENT_CREATOR: {
        UserRole.GLOBAL_CONTENT_CREATOR, UserRole.ADMIN, UserRole.TEACHER, UserRole.STUDENT,
    },
    UserRole.ADMIN: {UserRole.ADMIN, UserRole.TEACHER, UserRole.STUDENT},
    UserRole.TEACHER: {UserRole.STUDENT},
    UserRole.STUDENT: set(),
}


@pytest.mark.parametrize("actor,target", list(itertools.product(UserRole, UserRole)))
def test_manage_user_same_institution(actor, target):
    principal = make(actor)
    resource = UserResource(id=uuid.uuid4(), role=target, institution_id=SCHOOL)
    assert can_manage_user(principal, resource) is (target in MANAGE_TABLE[actor])


@pytest.mark.parametrize("actor", [UserRole.ADMIN, UserRole.TEACHER])
def test_institution_staff_cannot_manage_other_institutions(actor):
    principal = make(actor)
    for target in UserRole:
        resource = UserResource(id=uuid.uuid4(), role=target, institution_id=OTHER_SCHOOL)
        assert can_manage_user(principal, resource) is False


def test_global_roles_manage_across_institutions():
    resource = UserResource(id=uuid.uuid4(), role=UserRole.TEACHER, institution_id=OTHER_SCHOOL)
    assert can_manage_user(make(UserRole.SUPER_ADMIN), resource)
    assert can_manage_user(make(UserRole.GLOBAL_CONTENT_CREATOR), resource)


def test_teacher_never_manages_admin_anywhere():
    teacher = make(UserRole.TEACHER)
    for institution_id in (SCHOOL, OTHER_SCHOOL, None):
        resource = UserResource(id=uuid.uuid4(), role=UserRole.ADMIN, institution_id=institution_id)
        assert can_manage_user(teacher, resource) is False


def test_view_results_owner_staff_and_globals():
    student = make(UserRole.STUDENT)
    own_attempt = AttemptResource(student_id=student.id, institution_id=SCHOOL)
    other_attempt = AttemptResource(student_id=uuid.uuid4(), institution_id=SCHOOL)
    foreign_attempt = AttemptResource(student_id=uuid.uuid4(), institution_id=OTHER_SCHOOL)

    assert can_view_results(student, own_attempt)
    assert not can_view_results(student, other_attempt)

    for role in (UserRole.ADMIN, UserRole.TEACHER):
        staff = make(role)
        assert can_view_results(staff, other_attempt)
        assert not can_view_results(staff, foreign_attempt)

    for role in (UserRole.SUPER_ADMIN, UserRole.GLOBAL_CONTENT_CREATOR):
        assert can_view_results(make(role), foreign_attempt)


def test_quiz_institution_falls_back_to_subject_grade():
    class Obj:
        def __init__(self, **kwargs):
            self.__dict__.update(kwargs)

    grade = Obj(institution_id=SCHOOL)
    quiz = Obj(institution_id=None, subject=Obj(grade=grade))
    assert quiz_institution_id(quiz) == SCHOOL

    quiz.institution_id = OTHER_SCHOOL
    assert quiz_institution_id(quiz) == OTHER_SCHOOL

    assert quiz_institution_id(Obj(institution_id=None, subject=None)) is None


def test_authorize_action_dispatch():
    teacher = make(UserRole.TEACHER)
    assert authorize_action(teacher, None, Action.CREATE_QUIZ)
    assert not authorize_action(teacher, None, Action.TAKE_QUIZ)
    assert authorize_action(teacher, InstitutionResource(SCHOOL), Action.ACCESS_INSTITUTION)
    assert not authorize_action(teacher, QuizResource(OTHER_SCHOOL), Action.ACCESS_QUIZ)
    assert authorize_action(
        teacher, UserResource(id=uuid.uuid4(), role=UserRole.STUDENT, institution_id=SCHOOL), Action.MANAGE_USER
    )
    assert authorize_action(
        teacher, AttemptResource(student_id=uuid.uuid4(), institution_id=SCHOOL), Action.VIEW_RESULTS
    )


def test_unapproved_principal_is_denied_everything():
    admin = make(UserRole.SUPER_ADMIN, institution_id=None, approved=False)
    assert not authorize_action(admin, None, Action.CREATE_QUIZ)
    assert not authorize_action(admin, InstitutionResource(SCHOOL), Action.ACCESS_INSTITUTION)


def test_authorize_action_rejects_mismatched_resource():
    with pytest.raises(TypeError):
        authorize_action(make(UserRole.ADMIN), InstitutionResource(SCHOOL), Action.MANAGE_USER)


def test_decisions_are_deterministic():
    principal = make(UserRole.ADMIN)
    resource = UserResource(id=uuid.uuid4(), role=UserRole.TEACHER, institution_id=SCHOOL)
    decisions = {authorize_action(principal, resource, Action.MANAGE_USER) for _ in range(50)}
    assert decisions == {True}
