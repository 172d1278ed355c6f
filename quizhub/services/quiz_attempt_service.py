# quizhub/services/quiz_attempt_service.py
"""Quiz attempt lifecycle: NONE -> IN_PROGRESS -> COMPLETED.

COMPLETED is terminal. An abandoned attempt stays IN_PROGRESS. The set of
questions and their points is captured on the attempt at start; scoring at
submission uses that snapshot only, so later question edits never change an
attempt's ``max_score`` or score.
"""
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
import logging
import random

from fastapi import Depends

from ..core.clock import Clock, as_utc, get_clock, utcnow
from ..core.exceptions import Conflict, Forbidden, InvalidState, NotFound
from ..models.tenant_specific.quiz import Quiz, QuizAttempt
from ..schemas.quiz_schemas import (
    AttemptStarted, QuestionForStudent, QuizAttemptResponse, QuizForStudent,
    QuizResults, QuizSummary, ResultStatistics, SubmissionResult
)
from .access_control import (
    AttemptResource, Principal, QUIZ_AUTHOR_ROLES, can_access_institution,
    can_take_quiz, can_view_results, ensure, has_role, quiz_institution_id
)
from .quiz_attempt_store import QuizAttemptStore, get_attempt_store

logger = logging.getLogger(__name__)


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percentage_of(part: int, whole: int) -> int:
    """Rounded percentage, 0 when there is nothing to divide by"""
    if whole == 0:
        return 0
    return round_half_up(Decimal(100 * part) / Decimal(whole))


def score_answers(
    snapshot: List[Dict[str, Any]],
    answers: Dict[str, Optional[str]],
) -> Tuple[int, Dict[str, Optional[str]]]:
    """Score submitted answers against a question snapshot.

    Every snapshotted question gets an entry in the recorded answers, None when
    the student skipped it. Keys for questions outside the snapshot are dropped.
    Matching is exact and case-sensitive.
    """
    score = 0
    recorded: Dict[str, Optional[str]] = {}
    for question in snapshot:
        question_id = question["id"]
        given = answers.get(question_id)
        recorded[question_id] = given
        if given is not None and given == question["answer"]:
            score += question["points"]
    return score, recorded


def minutes_between(started_at, finished_at) -> int:
    elapsed = as_utc(finished_at) - as_utc(started_at)
    return max(0, elapsed // timedelta(minutes=1))


class QuizAttemptStateMachine:
    def __init__(self, store: QuizAttemptStore, clock: Clock = utcnow, rng: random.Random = None):
        self.store = store
        self.clock = clock
        self.rng = rng or random.Random()

    async def start(self, quiz_id: UUID, principal: Principal) -> AttemptStarted:
        ensure(can_take_quiz(principal), "Cannot participate in quizzes")

        quiz = await self.store.get_quiz_with_questions(quiz_id)
        if not quiz:
            raise NotFound("Quiz", quiz_id)

        institution_id = quiz_institution_id(quiz)
        ensure(can_access_institution(principal, institution_id), "Access to this quiz is denied")

        now = as_utc(self.clock())
        if not quiz.is_active or now < as_utc(quiz.start_time) or now > as_utc(quiz.end_time):
            raise InvalidState("Quiz is not currently active")

        snapshot = [
            {"id": str(question.id), "answer": question.answer, "points": question.points}
            for question in quiz.questions
        ]
        max_score = sum(item["points"] for item in snapshot)

        attempt = await self.store.create_attempt_if_absent(
            quiz_id=quiz.id,
            student_id=principal.id,
            institution_id=institution_id,
            question_snapshot=snapshot,
            max_score=max_score,
            started_at=now,
        )

        logger.info(f"Quiz attempt started: {attempt.id} for quiz {quiz.id} by student {principal.id}")

        return AttemptStarted(attempt_id=attempt.id, quiz=self.student_view(quiz))

    async def submit(
        self,
        attempt_id: UUID,
        principal: Principal,
        answers: Dict[str, Optional[str]],
        quiz_id: Optional[UUID] = None,
    ) -> SubmissionResult:
        ensure(can_take_quiz(principal), "Cannot participate in quizzes")

        attempt = await self.store.get_attempt(attempt_id)
        if not attempt or (quiz_id is not None and attempt.quiz_id != quiz_id):
            raise NotFound("Quiz attempt", attempt_id)

        if attempt.student_id != principal.id:
            raise Forbidden("Unauthorized access to quiz attempt")

        if attempt.completed:
            raise Conflict("Quiz attempt already completed")

        score, recorded = score_answers(attempt.question_snapshot, answers)
        now = as_utc(self.clock())
        time_spent = minutes_between(attempt.started_at, now)

        # Loses to a concurrent submission with Conflict, nothing is written then
        await self.store.complete_attempt(
            attempt.id,
            answers=recorded,
            score=score,
            submitted_at=now,
            time_spent_minutes=time_spent,
        )

        logger.info(f"Quiz attempt submitted: {attempt.id} with score {score}/{attempt.max_score}")

        return SubmissionResult(
            attempt_id=attempt.id,
            score=score,
            max_score=attempt.max_score,
            percentage=percentage_of(score, attempt.max_score),
            time_spent_minutes=time_spent,
        )

    async def results(self, quiz_id: UUID, principal: Principal) -> QuizResults:
        quiz = await self.store.get_quiz_with_questions(quiz_id)
        if not quiz:
            raise NotFound("Quiz", quiz_id)

        ensure(can_access_institution(principal, quiz_institution_id(quiz)), "Access to this quiz is denied")

        attempts = await self.store.list_attempts(quiz.id)

        if not has_role(principal, QUIZ_AUTHOR_ROLES) and quiz.created_by_id != principal.id:
            own = [attempt for attempt in attempts if attempt.student_id == principal.id]
            if not own:
                raise NotFound("Attempt for this quiz")
            return QuizResults(
                quiz=QuizSummary(id=quiz.id, title=quiz.title, description=quiz.description),
                attempts=[QuizAttemptResponse.model_validate(attempt) for attempt in own],
            )

        visible = [
            attempt for attempt in attempts
            if can_view_results(principal, AttemptResource(attempt.student_id, attempt.institution_id))
        ]

        return QuizResults(
            quiz=QuizSummary(
                id=quiz.id,
                title=quiz.title,
                description=quiz.description,
                total_questions=len(quiz.questions),
                total_points=sum(question.points for question in quiz.questions),
            ),
            attempts=[QuizAttemptResponse.model_validate(attempt) for attempt in visible],
            statistics=self.aggregate(visible),
        )

    @staticmethod
    def aggregate(attempts: List[QuizAttempt]) -> ResultStatistics:
        total = len(attempts)
        if total == 0:
            return ResultStatistics(total_attempts=0, average_score=0, completion_rate=0)
        completed = sum(1 for attempt in attempts if attempt.completed)
        return ResultStatistics(
            total_attempts=total,
            average_score=round_half_up(Decimal(sum(attempt.score for attempt in attempts)) / Decimal(total)),
            completion_rate=percentage_of(completed, total),
        )

    def student_view(self, quiz: Quiz) -> QuizForStudent:
        questions = [QuestionForStudent.model_validate(question) for question in quiz.questions]
        if (quiz.settings or {}).get("randomize_questions"):
            self.rng.shuffle(questions)
        return QuizForStudent(
            id=quiz.id,
            title=quiz.title,
            description=quiz.description,
            duration_mins=quiz.duration_mins,
            start_time=quiz.start_time,
            end_time=quiz.end_time,
            questions=questions,
        )


def get_attempt_state_machine(
    store: QuizAttemptStore = Depends(get_attempt_store),
    clock: Clock = Depends(get_clock),
) -> QuizAttemptStateMachine:
    return QuizAttemptStateMachine(store, clock)
