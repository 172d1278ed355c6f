from datetime import timedelta

import pytest

from quizhub.core.cache import CacheManager
from quizhub.core.exceptions import Conflict, Forbidden, NotFound, ValidationFailed
from quizhub.models import DifficultyLevel
from quizhub.schemas.quiz_schemas import (
    QuestionCreate, QuestionUpdate, QuizCreate, QuizSchedule, QuizStatus, QuizUpdate
)
from quizhub.services.quiz_attempt_service import QuizAttemptStateMachine
from quizhub.services.quiz_attempt_store import QuizAttemptStore
from quizhub.services.quiz_service import QuizService

from .conftest import T0, add_quiz, principal_of


@pytest.fixture
def service(db, clock):
    return QuizService(db, clock=clock, cache=CacheManager(enabled=False))


def quiz_payload(subject, **overrides):
    data = {
        "title": "Weekly algebra",
        "subject_id": subject.id,
        "start_time": T0 + timedelta(days=1),
        "end_time": T0 + timedelta(days=1, hours=1),
        "duration_mins": 45,
    }
    data.update(overrides)
    return QuizCreate(**data)


def question_payload(**overrides):
    data = {"text": "What is 2 + 2?", "options": ["3", "4", "5"], "answer": "4", "difficulty": DifficultyLevel.EASY}
    data.update(overrides)
    return QuestionCreate(**data)


async def start_attempt(session_factory, clock, quiz, student):
    async with QuizAttemptStore(session_factory) as store:
        return await QuizAttemptStateMachine(store, clock=clock).start(quiz.id, principal_of(student))


def test_question_answer_must_be_an_option():
    with pytest.raises(ValueError):
        question_payload(answer="22")


def test_quiz_window_must_be_ordered(world):
    with pytest.raises(ValueError):
        quiz_payload(world.subject, end_time=T0)


async def test_create_quiz_derives_institution_from_subject(world, service):
    quiz = await service.create_quiz(quiz_payload(world.subject), principal_of(world.teacher))

    assert quiz.institution_id == world.institution.id
    assert quiz.created_by_id == world.teacher.id
    assert quiz.settings["passing_score"] == 60
    assert quiz.questions == []


async def test_create_quiz_rejects_past_start(world, service):
    with pytest.raises(ValidationFailed):
        await service.create_quiz(
            quiz_payload(world.subject, start_time=T0 - timedelta(minutes=1)), principal_of(world.teacher)
        )


async def test_create_quiz_requires_author_role(world, service):
    with pytest.raises(Forbidden):
        await service.create_quiz(quiz_payload(world.subject), principal_of(world.student))


async def test_create_quiz_in_foreign_subject_is_forbidden(world, service):
    with pytest.raises(Forbidden):
        await service.create_quiz(quiz_payload(world.other_subject), principal_of(world.teacher))


async def test_global_creator_can_author_anywhere(world, service):
    quiz = await service.create_quiz(quiz_payload(world.other_subject), principal_of(world.creator))
    assert quiz.institution_id == world.other_institution.id


async def test_list_by_status_is_confined_to_own_institution(world, service, db):
    await add_quiz(db, world.subject, world.teacher, world.institution,
                   start=T0 + timedelta(days=2), end=T0 + timedelta(days=3))
    await add_quiz(db, world.subject, world.teacher, world.institution,
                   start=T0 - timedelta(days=3), end=T0 - timedelta(days=2))
    await add_quiz(db, world.other_subject, world.creator, world.other_institution)

    teacher = principal_of(world.teacher)
    assert (await service.get_quizzes(teacher))["total"] == 3
    assert (await service.get_quizzes(teacher, status=QuizStatus.ACTIVE))["total"] == 1
    assert (await service.get_quizzes(teacher, status=QuizStatus.UPCOMING))["total"] == 1
    assert (await service.get_quizzes(teacher, status=QuizStatus.COMPLETED))["total"] == 1

    everything = await service.get_quizzes(principal_of(world.super_admin), size=2)
    assert everything["total"] == 4
    assert everything["has_next"] is True
    assert len(everything["items"]) == 2


async def test_quiz_without_institution_is_listed_under_its_subjects_institution(world, service, db):
    orphan = await add_quiz(db, world.subject, world.teacher, None)
    orphan_id = orphan.id

    teacher = principal_of(world.teacher)
    assert (await service.get_quiz(orphan_id, teacher))["id"] == str(orphan_id)

    listed = await service.get_quizzes(teacher)
    assert orphan_id in {item.id for item in listed["items"]}
    assert listed["total"] == 2

    super_admin = principal_of(world.super_admin)
    own = await service.get_quizzes(super_admin, institution_id=world.institution.id)
    assert orphan_id in {item.id for item in own["items"]}
    foreign = await service.get_quizzes(super_admin, institution_id=world.other_institution.id)
    assert orphan_id not in {item.id for item in foreign["items"]}

    outsider = await service.get_quizzes(principal_of(world.outsider))
    assert orphan_id not in {item.id for item in outsider["items"]}


async def test_get_quiz_hides_answers_from_students(world, service):
    payload = await service.get_quiz(world.quiz.id, principal_of(world.student))
    assert len(payload["questions"]) == 3
    assert all("answer" not in question for question in payload["questions"])

    with pytest.raises(Forbidden):
        await service.get_quiz(world.quiz.id, principal_of(world.student), include_answers=True)

    full = await service.get_quiz(world.quiz.id, principal_of(world.teacher), include_answers=True)
    assert {question["answer"] for question in full["questions"]} == {"A"}


async def test_get_quiz_from_other_institution_is_forbidden(world, service):
    with pytest.raises(Forbidden):
        await service.get_quiz(world.quiz.id, principal_of(world.outsider))


async def test_update_and_schedule(world, service):
    teacher = principal_of(world.teacher)

    updated = await service.update_quiz(world.quiz.id, QuizUpdate(title="Fractions recap"), teacher)
    assert updated.title == "Fractions recap"

    start = T0 + timedelta(days=5)
    scheduled = await service.schedule_quiz(
        world.quiz.id, QuizSchedule(start_time=start, end_time=start + timedelta(hours=2), duration_mins=60), teacher
    )
    assert scheduled.duration_mins == 60


async def test_question_lifecycle(world, service):
    teacher = principal_of(world.teacher)
    quiz = await service.create_quiz(quiz_payload(world.subject), teacher)

    first = await service.add_question(quiz.id, question_payload(), teacher)
    second = await service.add_question(quiz.id, question_payload(text="What is 3 + 3?", answer="5"), teacher)
    assert (first.order_number, second.order_number) == (1, 2)

    updated = await service.update_question(quiz.id, second.id, QuestionUpdate(points=4), teacher)
    assert updated.points == 4

    with pytest.raises(ValidationFailed):
        await service.update_question(quiz.id, second.id, QuestionUpdate(answer="nope"), teacher)

    await service.delete_question(quiz.id, first.id, teacher)
    remaining = await service.get_quiz_or_404(quiz.id)
    assert [question.id for question in remaining.questions] == [second.id]


async def test_question_set_is_frozen_once_attempted(world, service, session_factory, clock):
    await start_attempt(session_factory, clock, world.quiz, world.student)
    teacher = principal_of(world.teacher)

    with pytest.raises(Conflict):
        await service.add_question(world.quiz.id, question_payload(), teacher)

    quiz = await service.get_quiz_or_404(world.quiz.id)
    with pytest.raises(Conflict):
        await service.update_question(world.quiz.id, quiz.questions[0].id, QuestionUpdate(points=9), teacher)


async def test_delete_quiz(world, service, session_factory, clock, db):
    teacher = principal_of(world.teacher)

    await start_attempt(session_factory, clock, world.quiz, world.student)
    with pytest.raises(Conflict):
        await service.delete_quiz(world.quiz.id, teacher)

    untouched = await add_quiz(db, world.subject, world.teacher, world.institution)
    await service.delete_quiz(untouched.id, teacher)
    with pytest.raises(NotFound):
        await service.get_quiz_or_404(untouched.id)


async def test_statistics(world, service, session_factory, clock):
    started = await start_attempt(session_factory, clock, world.quiz, world.student)
    await start_attempt(session_factory, clock, world.quiz, world.classmate)

    async with QuizAttemptStore(session_factory) as store:
        machine = QuizAttemptStateMachine(store, clock=clock)
        clock.advance(minutes=12)
        await machine.submit(started.attempt_id, principal_of(world.student), {})

    statistics = await service.get_statistics(world.quiz.id, principal_of(world.teacher))
    assert statistics.total_attempts == 2
    assert statistics.completed_attempts == 1
    assert statistics.pending_attempts == 1
    assert statistics.average_time_spent == 12
    assert statistics.completion_rate == 50

    with pytest.raises(Forbidden):
        await service.get_statistics(world.quiz.id, principal_of(world.student))
