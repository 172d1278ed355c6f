import uuid
import warnings

import pytest
from sqlalchemy.exc import SADeprecationWarning
from sqlalchemy.orm import configure_mappers

from quizhub.core.exceptions import Conflict, Forbidden, NotFound, ValidationFailed
from quizhub.models import Institution, Subject, UserRole
from quizhub.schemas.institution_schemas import GradeCreate, InstitutionCreate, SubjectCreate
from quizhub.schemas.user_schemas import UserCreate
from quizhub.services.institution_service import InstitutionService
from quizhub.services.user_service import UserService

from .conftest import principal_of


def new_user(role, institution=None, phone="+919800000001"):
    return UserCreate(
        name="New Person",
        phone_number=phone,
        role=role,
        institution_id=institution.id if institution else None,
    )


async def test_new_institution_waits_for_approval(world, db):
    service = InstitutionService(db)
    institution = await service.create_institution(
        InstitutionCreate(name="Hill Top Academy", address="1 Summit Lane"), principal_of(world.super_admin)
    )
    assert institution.approved is False
    assert institution.admin_id == world.super_admin.id

    with pytest.raises(Forbidden):
        await service.create_grade(institution.id, GradeCreate(name="Grade 1"), principal_of(world.super_admin))

    with pytest.raises(Forbidden):
        await service.set_approval(institution.id, True, principal_of(world.creator))

    approved = await service.set_approval(institution.id, True, principal_of(world.super_admin))
    assert approved.approved is True
    grade = await service.create_grade(institution.id, GradeCreate(name="Grade 1"), principal_of(world.super_admin))
    assert grade.institution_id == institution.id


async def test_teachers_cannot_register_institutions(world, db):
    with pytest.raises(Forbidden):
        await InstitutionService(db).create_institution(
            InstitutionCreate(name="Side School"), principal_of(world.teacher)
        )


async def test_duplicate_institution_conflicts(world, db):
    with pytest.raises(Conflict):
        await InstitutionService(db).create_institution(
            InstitutionCreate(name="Green Valley School", address="12 Hill Road"), principal_of(world.super_admin)
        )


async def test_admin_lists_only_own_institution(world, db):
    service = InstitutionService(db)

    own = await service.get_institutions(principal_of(world.admin))
    assert [item.id for item in own["items"]] == [world.institution.id]

    everything = await service.get_institutions(principal_of(world.super_admin))
    assert everything["total"] == 2

    with pytest.raises(Forbidden):
        await service.get_institution(world.other_institution.id, principal_of(world.admin))


async def test_grades_and_subjects_are_unique_by_name(world, db):
    service = InstitutionService(db)
    admin, teacher = principal_of(world.admin), principal_of(world.teacher)
    institution_id = world.institution.id

    grade = await service.create_grade(institution_id, GradeCreate(name="Grade 8"), admin)
    grade_id = grade.id
    subject = await service.create_subject(grade_id, SubjectCreate(name="Science"), teacher)
    assert subject.grade_id == grade_id

    names = [item.name for item in await service.get_grades(institution_id, admin)]
    assert names == ["Grade 7", "Grade 8"]
    subjects = await service.get_subjects(grade_id, principal_of(world.student))
    assert [item.name for item in subjects] == ["Science"]

    # A failed insert rolls the session back, so the duplicates go last
    with pytest.raises(Conflict):
        await service.create_subject(grade_id, SubjectCreate(name="Science"), admin)
    with pytest.raises(Conflict):
        await service.create_grade(institution_id, GradeCreate(name="Grade 7"), admin)


async def test_subjects_of_foreign_grade_are_hidden(world, db):
    with pytest.raises(Forbidden):
        await InstitutionService(db).get_subjects(world.other_subject.grade_id, principal_of(world.teacher))


async def test_teacher_creates_students_only(world, db):
    service = UserService(db)
    teacher = principal_of(world.teacher)

    student = await service.create_user(new_user(UserRole.STUDENT, world.institution), teacher)
    assert student.approved is False
    assert student.institution_id == world.institution.id

    with pytest.raises(Forbidden):
        await service.create_user(new_user(UserRole.ADMIN, world.institution, "+919800000002"), teacher)
    with pytest.raises(Forbidden):
        await service.create_user(new_user(UserRole.STUDENT, world.other_institution, "+919800000003"), teacher)


async def test_super_admin_creations_are_approved(world, db):
    user = await UserService(db).create_user(
        new_user(UserRole.GLOBAL_CONTENT_CREATOR), principal_of(world.super_admin)
    )
    assert user.approved is True


async def test_user_creation_validates_institution(world, db):
    service = UserService(db)
    admin = principal_of(world.super_admin)

    with pytest.raises(ValidationFailed):
        await service.create_user(new_user(UserRole.TEACHER), admin)
    with pytest.raises(ValidationFailed):
        await service.create_user(new_user(UserRole.SUPER_ADMIN, world.institution), admin)

    with pytest.raises(NotFound):
        await service.create_user(
            UserCreate(name="New Person", phone_number="+919800000004", role=UserRole.TEACHER, institution_id=uuid.uuid4()),
            admin,
        )


async def test_duplicate_phone_conflicts(world, db):
    with pytest.raises(Conflict):
        await UserService(db).create_user(
            UserCreate(
                name="Copy", phone_number=world.student.phone_number,
                role=UserRole.STUDENT, institution_id=world.institution.id,
            ),
            principal_of(world.admin),
        )


async def test_approval_follows_management_rules(world, db):
    service = UserService(db)
    pending = await service.create_user(new_user(UserRole.TEACHER, world.institution), principal_of(world.admin))

    with pytest.raises(Forbidden):
        await service.set_approval(pending.id, True, principal_of(world.teacher))

    approved = await service.set_approval(pending.id, True, principal_of(world.admin))
    assert approved.approved is True

    assert (await service.get_user(world.student.id, principal_of(world.student))).id == world.student.id
    with pytest.raises(Forbidden):
        await service.get_user(world.classmate.id, principal_of(world.student))


def test_back_references_refuse_to_lazy_load():
    with warnings.catch_warnings():
        warnings.simplefilter("error", SADeprecationWarning)
        configure_mappers()

    assert Subject.quizzes.property.lazy == "raise"
    assert Institution.users.property.lazy == "raise"
