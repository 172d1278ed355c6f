# quizhub/services/quiz_service.py
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID
import logging

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.cache import CacheManager, cache_manager
from ..core.clock import Clock, as_utc, utcnow
from ..core.config import settings
from ..core.exceptions import Conflict, Forbidden, NotFound, StorageFailure, ValidationFailed
from ..models.shared.institution import Institution
from ..models.tenant_specific.academic import Grade, Subject
from ..models.tenant_specific.quiz import Quiz, Question, QuizAttempt
from ..schemas.quiz_schemas import (
    QuestionCreate, QuestionForStudent, QuestionResponse, QuestionUpdate, QuizCreate,
    QuizResponse, QuizSchedule, QuizStatistics, QuizStatus, QuizSummary, QuizUpdate
)
from .access_control import (
    GLOBAL_ROLES, QUIZ_AUTHOR_ROLES, Principal, can_access_institution, can_create_quiz,
    ensure, has_role, quiz_institution_id
)
from .base_service import BaseService
from .quiz_attempt_service import percentage_of, round_half_up

logger = logging.getLogger(__name__)


class QuizService(BaseService[Quiz]):
    def __init__(self, db: AsyncSession, clock: Clock = utcnow, cache: CacheManager = cache_manager):
        super().__init__(Quiz, db)
        self.clock = clock
        self.cache = cache

    # Loading and access

    async def get_quiz_or_404(self, quiz_id: UUID) -> Quiz:
        stmt = (
            select(Quiz)
            .options(selectinload(Quiz.questions), selectinload(Quiz.subject))
            .where(Quiz.id == quiz_id, Quiz.is_deleted.is_(False))
            .execution_options(populate_existing=True)
        )
        quiz = (await self.db.execute(stmt)).scalar_one_or_none()
        if not quiz:
            raise NotFound("Quiz", quiz_id)
        return quiz

    async def get_accessible_quiz(self, quiz_id: UUID, principal: Principal) -> Quiz:
        quiz = await self.get_quiz_or_404(quiz_id)
        ensure(can_access_institution(principal, quiz_institution_id(quiz)), "Access to this quiz is denied")
        return quiz

    async def get_editable_quiz(self, quiz_id: UUID, principal: Principal) -> Quiz:
        quiz = await self.get_accessible_quiz(quiz_id, principal)
        ensure(can_create_quiz(principal), "Cannot manage quizzes")
        return quiz

    async def count_attempts(self, quiz_id: UUID) -> int:
        stmt = select(func.count(QuizAttempt.id)).where(QuizAttempt.quiz_id == quiz_id)
        return (await self.db.execute(stmt)).scalar() or 0

    async def ensure_question_set_open(self, quiz: Quiz):
        if await self.count_attempts(quiz.id) > 0:
            raise Conflict("Questions cannot change once the quiz has attempts")

    async def commit(self, action: str):
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error during {action}: {e}")
            raise StorageFailure(f"Could not {action}") from e

    # Cache

    @staticmethod
    def cache_key(quiz_id: UUID, include_answers: bool) -> str:
        return f"quiz:{quiz_id}:{'full' if include_answers else 'public'}"

    async def invalidate(self, quiz_id: UUID):
        await self.cache.delete_pattern(f"quiz:{quiz_id}:*")

    # Quiz CRUD

    async def create_quiz(self, data: QuizCreate, principal: Principal) -> Quiz:
        ensure(can_create_quiz(principal), "Cannot create quizzes")

        subject = (await self.db.execute(
            select(Subject).where(Subject.id == data.subject_id, Subject.is_deleted.is_(False))
        )).scalar_one_or_none()
        if not subject:
            raise NotFound("Subject", data.subject_id)

        if data.institution_id:
            institution = await self.db.get(Institution, data.institution_id)
            if not institution or not institution.approved:
                raise Forbidden("Institution must be approved")

        institution_id = data.institution_id or subject.grade.institution_id
        ensure(can_access_institution(principal, institution_id), "Access to this institution is denied")

        if as_utc(data.start_time) <= as_utc(self.clock()):
            raise ValidationFailed("Start time must be in the future", field="start_time")

        quiz = Quiz(
            title=data.title,
            description=data.description,
            subject_id=data.subject_id,
            institution_id=institution_id,
            created_by_id=principal.id,
            start_time=as_utc(data.start_time),
            end_time=as_utc(data.end_time),
            duration_mins=data.duration_mins,
            settings=data.settings.model_dump(),
        )
        self.db.add(quiz)
        await self.commit("create quiz")

        logger.info(f"New quiz created: {quiz.id} by user {principal.id}")
        return await self.get_quiz_or_404(quiz.id)

    async def get_quizzes(
        self,
        principal: Principal,
        status: Optional[QuizStatus] = None,
        institution_id: Optional[UUID] = None,
        subject_id: Optional[UUID] = None,
        created_by_id: Optional[UUID] = None,
        page: int = 1,
        size: int = 10,
    ) -> Dict[str, Any]:
        # Quizzes without an institution belong to their subject's grade institution
        effective_institution = func.coalesce(Quiz.institution_id, Grade.institution_id)
        stmt = (
            select(Quiz)
            .outerjoin(Subject, Subject.id == Quiz.subject_id)
            .outerjoin(Grade, Grade.id == Subject.grade_id)
            .where(Quiz.is_deleted.is_(False))
        )

        # Tenants only ever see their own quizzes
        if not has_role(principal, GLOBAL_ROLES):
            stmt = stmt.where(effective_institution == principal.institution_id)
        if institution_id:
            stmt = stmt.where(effective_institution == institution_id)
        if subject_id:
            stmt = stmt.where(Quiz.subject_id == subject_id)
        if created_by_id:
            stmt = stmt.where(Quiz.created_by_id == created_by_id)

        now = as_utc(self.clock())
        if status == QuizStatus.UPCOMING:
            stmt = stmt.where(Quiz.start_time > now)
        elif status == QuizStatus.ACTIVE:
            stmt = stmt.where(Quiz.start_time <= now, Quiz.end_time > now, Quiz.is_active.is_(True))
        elif status == QuizStatus.COMPLETED:
            stmt = stmt.where(Quiz.end_time <= now)

        result = await self.paginate(stmt.order_by(Quiz.created_at.desc()), page, size)
        result["items"] = [QuizResponse.model_validate(quiz) for quiz in result["items"]]
        return result

    async def get_quiz(self, quiz_id: UUID, principal: Principal, include_answers: bool = False) -> Dict[str, Any]:
        if include_answers:
            ensure(has_role(principal, QUIZ_AUTHOR_ROLES), "Only quiz authors can see answers")

        key = self.cache_key(quiz_id, include_answers)
        cached = await self.cache.get(key)
        if cached:
            cached_institution = cached["institution_id"]
            ensure(
                can_access_institution(principal, UUID(cached_institution) if cached_institution else None),
                "Access to this quiz is denied",
            )
            return cached["quiz"]

        quiz = await self.get_accessible_quiz(quiz_id, principal)
        question_schema = QuestionResponse if include_answers else QuestionForStudent
        payload = QuizResponse.model_validate(quiz).model_dump(mode="json")
        payload["questions"] = [
            question_schema.model_validate(question).model_dump(mode="json") for question in quiz.questions
        ]

        institution_id = quiz_institution_id(quiz)
        await self.cache.set(
            key,
            {"institution_id": str(institution_id) if institution_id else None, "quiz": payload},
            expire=settings.quiz_cache_ttl,
        )
        return payload

    async def update_quiz(self, quiz_id: UUID, data: QuizUpdate, principal: Principal) -> Quiz:
        quiz = await self.get_editable_quiz(quiz_id, principal)

        changes = data.model_dump(exclude_unset=True)
        if "settings" in changes and changes["settings"] is not None:
            changes["settings"] = data.settings.model_dump()
        for key, value in changes.items():
            setattr(quiz, key, value)
        await self.commit("update quiz")
        await self.invalidate(quiz.id)

        logger.info(f"Quiz updated: {quiz.id}")
        return await self.get_quiz_or_404(quiz.id)

    async def schedule_quiz(self, quiz_id: UUID, data: QuizSchedule, principal: Principal) -> Quiz:
        quiz = await self.get_editable_quiz(quiz_id, principal)

        quiz.start_time = as_utc(data.start_time)
        quiz.end_time = as_utc(data.end_time)
        quiz.duration_mins = data.duration_mins
        await self.commit("schedule quiz")
        await self.invalidate(quiz.id)

        logger.info(f"Quiz scheduled: {quiz.id} from {data.start_time} to {data.end_time}")
        return await self.get_quiz_or_404(quiz.id)

    async def delete_quiz(self, quiz_id: UUID, principal: Principal):
        quiz = await self.get_editable_quiz(quiz_id, principal)

        if await self.count_attempts(quiz.id) > 0:
            raise Conflict("Cannot delete quiz with existing attempts")

        quiz.is_deleted = True
        await self.commit("delete quiz")
        await self.invalidate(quiz.id)

        logger.info(f"Quiz deleted: {quiz.id}")

    # Questions

    async def add_question(self, quiz_id: UUID, data: QuestionCreate, principal: Principal) -> Question:
        quiz = await self.get_editable_quiz(quiz_id, principal)
        await self.ensure_question_set_open(quiz)

        question = Question(
            quiz_id=quiz.id,
            order_number=len(quiz.questions) + 1,
            text=data.text,
            options=list(data.options),
            answer=data.answer,
            difficulty=data.difficulty,
            points=data.points,
        )
        self.db.add(question)
        await self.commit("add question")
        await self.invalidate(quiz.id)

        logger.info(f"Question added to quiz: {question.id} in quiz {quiz.id}")
        return question

    async def update_question(
        self, quiz_id: UUID, question_id: UUID, data: QuestionUpdate, principal: Principal
    ) -> Question:
        quiz = await self.get_editable_quiz(quiz_id, principal)
        question = next((q for q in quiz.questions if q.id == question_id), None)
        if not question:
            raise NotFound("Question", question_id)
        await self.ensure_question_set_open(quiz)

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        options = changes.get("options", question.options)
        answer = changes.get("answer", question.answer)
        if answer not in options:
            raise ValidationFailed("Answer must be one of the options", field="answer")

        for key, value in changes.items():
            setattr(question, key, value)
        await self.commit("update question")
        await self.invalidate(quiz.id)

        logger.info(f"Question updated: {question.id} in quiz {quiz.id}")
        return question

    async def delete_question(self, quiz_id: UUID, question_id: UUID, principal: Principal):
        quiz = await self.get_editable_quiz(quiz_id, principal)
        question = next((q for q in quiz.questions if q.id == question_id), None)
        if not question:
            raise NotFound("Question", question_id)
        await self.ensure_question_set_open(quiz)

        await self.db.delete(question)
        await self.commit("delete question")
        await self.invalidate(quiz.id)

        logger.info(f"Question deleted: {question_id} from quiz {quiz.id}")

    # Statistics

    async def get_statistics(self, quiz_id: UUID, principal: Principal) -> QuizStatistics:
        quiz = await self.get_accessible_quiz(quiz_id, principal)
        ensure(has_role(principal, QUIZ_AUTHOR_ROLES), "Insufficient permissions")

        attempts = (await self.db.execute(
            select(QuizAttempt).where(QuizAttempt.quiz_id == quiz.id)
        )).scalars().all()

        total = len(attempts)
        completed = [attempt for attempt in attempts if attempt.completed]
        average_score = round_half_up(Decimal(sum(a.score for a in attempts)) / Decimal(total)) if total else 0
        average_time = (
            round_half_up(Decimal(sum(a.time_spent_minutes or 0 for a in completed)) / Decimal(len(completed)))
            if completed else 0
        )

        return QuizStatistics(
            quiz=QuizSummary(
                id=quiz.id,
                title=quiz.title,
                description=quiz.description,
                total_questions=len(quiz.questions),
                total_points=sum(question.points for question in quiz.questions),
            ),
            total_attempts=total,
            completed_attempts=len(completed),
            pending_attempts=total - len(completed),
            average_score=average_score,
            average_time_spent=average_time,
            completion_rate=percentage_of(len(completed), total),
        )
