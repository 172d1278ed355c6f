# quizhub/routers/quizzes.py
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.cache import CacheManager, get_cache
from ..core.clock import Clock, get_clock
from ..core.database import get_db
from ..core.rate_limiter import submission_rate_limit
from ..core.security import get_current_principal
from ..schemas.quiz_schemas import (
    QuestionCreate, QuestionResponse, QuestionUpdate, QuizAttemptSubmit,
    QuizCreate, QuizDetail, QuizResponse, QuizSchedule, QuizStatus, QuizUpdate
)
from ..schemas.pagination import PaginatedResponse
from ..schemas.response import success_response
from ..services.access_control import Principal
from ..services.quiz_attempt_service import QuizAttemptStateMachine, get_attempt_state_machine
from ..services.quiz_service import QuizService

router = APIRouter(prefix="/api/v1/quizzes", tags=["Quizzes"])


def get_quiz_service(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    cache: CacheManager = Depends(get_cache),
) -> QuizService:
    return QuizService(db, clock=clock, cache=cache)


async def _list(
    service: QuizService,
    principal: Principal,
    status: Optional[QuizStatus],
    institution_id: Optional[UUID],
    subject_id: Optional[UUID],
    created_by_id: Optional[UUID],
    page: int,
    size: int,
):
    result = await service.get_quizzes(
        principal,
        status=status,
        institution_id=institution_id,
        subject_id=subject_id,
        created_by_id=created_by_id,
        page=page,
        size=size,
    )
    return success_response(PaginatedResponse[QuizResponse](**result), "Quizzes retrieved successfully")


# Quiz Management

@router.post("/", status_code=201)
async def create_quiz(
    quiz_data: QuizCreate,
    principal: Principal = Depends(get_current_principal),
    service: QuizService = Depends(get_quiz_service),
):
    """Create a quiz, questions are added separately"""
    quiz = await service.create_quiz(quiz_data, principal)
    return success_response(QuizDetail.model_validate(quiz), "Quiz created successfully")


@router.get("/")
async def get_quizzes(
    status: Optional[QuizStatus] = Query(None),
    institution_id: Optional[UUID] = Query(None),
    subject_id: Optional[UUID] = Query(None),
    created_by_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    service: QuizService = Depends(get_quiz_service),
):
    return await _list(service, principal, status, institution_id, subject_id, created_by_id, page, size)


@router.get("/upcoming")
async def get_upcoming_quizzes(
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    service: QuizService = Depends(get_quiz_service),
):
    return await _list(service, principal, QuizStatus.UPCOMING, None, None, None, page, size)


@router.get("/active")
async def get_active_quizzes(
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    service: QuizService = Depends(get_quiz_service),
):
    return await _list(service, principal, QuizStatus.ACTIVE, None, None, None, page, size)


@router.get("/completed")
async def get_completed_quizzes(
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    service: QuizService = Depends(get_quiz_service),
):
    return await _list(service, principal, QuizStatus.COMPLETED, None, None, None, page, size)


@router.get("/{quiz_id}")
async def get_quiz(
    quiz_id: UUID,
    include_answers: bool = Query(False),
    principal: Principal = Depends(get_current_principal),
    service: QuizService = Depends(get_quiz_service),
):
    quiz = await service.get_quiz(quiz_id, principal, include_answers=include_answers)
    return success_response(quiz, "Quiz retrieved successfully")


@router.put("/{quiz_id}")
async def update_quiz(
    quiz_id: UUID,
    quiz_data: QuizUpdate,
    principal: Principal = Depends(get_current_principal),
    service: QuizService = Depends(get_quiz_service),
):
    quiz = await service.update_quiz(quiz_id, quiz_data, principal)
    return success_response(QuizResponse.model_validate(quiz), "Quiz updated successfully")


@router.delete("/{quiz_id}")
async def delete_quiz(
    quiz_id: UUID,
    principal: Principal = Depends(get_current_principal),
    service: QuizService = Depends(get_quiz_service),
):
    await service.delete_quiz(quiz_id, principal)
    return success_response(None, "Quiz deleted successfully")


@router.put("/{quiz_id}/schedule")
async def schedule_quiz(
    quiz_id: UUID,
    schedule: QuizSchedule,
    principal: Principal = Depends(get_current_principal),
    service: QuizService = Depends(get_quiz_service),
):
    quiz = await service.schedule_quiz(quiz_id, schedule, principal)
    return success_response(QuizResponse.model_validate(quiz), "Quiz scheduled successfully")


# Questions

@router.post("/{quiz_id}/questions", status_code=201)
async def add_question(
    quiz_id: UUID,
    question_data: QuestionCreate,
    principal: Principal = Depends(get_current_principal),
    service: QuizService = Depends(get_quiz_service),
):
    question = await service.add_question(quiz_id, question_data, principal)
    return success_response(QuestionResponse.model_validate(question), "Question added successfully")


@router.get("/{quiz_id}/questions")
async def get_questions(
    quiz_id: UUID,
    principal: Principal = Depends(get_current_principal),
    service: QuizService = Depends(get_quiz_service),
):
    quiz = await service.get_editable_quiz(quiz_id, principal)
    questions = [QuestionResponse.model_validate(question) for question in quiz.questions]
    return success_response(questions, "Questions retrieved successfully")


@router.put("/{quiz_id}/questions/{question_id}")
async def update_question(
    quiz_id: UUID,
    question_id: UUID,
    question_data: QuestionUpdate,
    principal: Principal = Depends(get_current_principal),
    service: QuizService = Depends(get_quiz_service),
):
    question = await service.update_question(quiz_id, question_id, question_data, principal)
    return success_response(QuestionResponse.model_validate(question), "Question updated successfully")


@router.delete("/{quiz_id}/questions/{question_id}")
async def delete_question(
    quiz_id: UUID,
    question_id: UUID,
    principal: Principal = Depends(get_current_principal),
    service: QuizService = Depends(get_quiz_service),
):
    await service.delete_question(quiz_id, question_id, principal)
    return success_response(None, "Question deleted successfully")


# Attempts

@router.post("/{quiz_id}/attempt", status_code=201)
async def start_quiz_attempt(
    quiz_id: UUID,
    principal: Principal = Depends(get_current_principal),
    machine: QuizAttemptStateMachine = Depends(get_attempt_state_machine),
):
    started = await machine.start(quiz_id, principal)
    return success_response(started, "Quiz attempt started successfully")


@router.put("/{quiz_id}/submit", dependencies=[Depends(submission_rate_limit)])
async def submit_quiz_attempt(
    quiz_id: UUID,
    submission: QuizAttemptSubmit,
    principal: Principal = Depends(get_current_principal),
    machine: QuizAttemptStateMachine = Depends(get_attempt_state_machine),
):
    result = await machine.submit(submission.attempt_id, principal, submission.answers, quiz_id=quiz_id)
    return success_response(result, "Quiz submitted successfully")


@router.get("/{quiz_id}/results")
async def get_quiz_results(
    quiz_id: UUID,
    principal: Principal = Depends(get_current_principal),
    machine: QuizAttemptStateMachine = Depends(get_attempt_state_machine),
):
    results = await machine.results(quiz_id, principal)
    return success_response(results, "Quiz results retrieved successfully")


@router.get("/{quiz_id}/statistics")
async def get_quiz_statistics(
    quiz_id: UUID,
    principal: Principal = Depends(get_current_principal),
    service: QuizService = Depends(get_quiz_service),
):
    statistics = await service.get_statistics(quiz_id, principal)
    return success_response(statistics, "Quiz statistics retrieved successfully")
