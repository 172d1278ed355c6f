# quizhub/services/quiz_attempt_store.py
"""Transactional storage for quizzes, questions and attempts.

The store owns a single ``AsyncSession`` between :meth:`QuizAttemptStore.open`
and :meth:`QuizAttemptStore.close`. The two state transitions of an attempt
are each one atomic statement against the database:

* ``create_attempt_if_absent`` relies on the partial unique index
  ``uq_quiz_attempt_active`` (one incomplete attempt per quiz and student),
  so concurrent starts race inside the database, not in Python.
* ``complete_attempt`` is a compare-and-swap ``UPDATE ... WHERE completed =
  false``; only the caller that flips the flag gets a row back.

Reads always refresh from the database, the transitions bypass the identity map.

No operation retries. Storage faults surface as ``StorageFailure``.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from fastapi import Depends
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from ..core.database import get_session_factory
from ..core.exceptions import Conflict, StorageFailure
from ..models.tenant_specific.quiz import Quiz, QuizAttempt

logger = logging.getLogger(__name__)

ACTIVE_ATTEMPT_INDEX = "uq_quiz_attempt_active"


def _is_active_attempt_violation(error: IntegrityError) -> bool:
    message = str(error.orig)
    # PostgreSQL names the index, SQLite names the columns
    return ACTIVE_ATTEMPT_INDEX in message or "UNIQUE constraint failed: quiz_attempts" in message


class QuizAttemptStore:
    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory
        self._session: Optional[AsyncSession] = None

    async def open(self) -> "QuizAttemptStore":
        if self._session is None:
            self._session = self._session_factory()
        return self

    async def close(self):
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "QuizAttemptStore":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("QuizAttemptStore is not open")
        return self._session

    # Reads

    async def get_quiz_with_questions(self, quiz_id: UUID) -> Optional[Quiz]:
        stmt = (
            select(Quiz)
            .options(selectinload(Quiz.questions), selectinload(Quiz.subject))
            .where(Quiz.id == quiz_id, Quiz.is_deleted.is_(False))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_attempt(self, attempt_id: UUID) -> Optional[QuizAttempt]:
        stmt = (
            select(QuizAttempt)
            .options(selectinload(QuizAttempt.quiz))
            .where(QuizAttempt.id == attempt_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_attempts(self, quiz_id: UUID) -> List[QuizAttempt]:
        stmt = (
            select(QuizAttempt)
            .where(QuizAttempt.quiz_id == quiz_id)
            .order_by(QuizAttempt.started_at.asc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # Atomic transitions

    async def create_attempt_if_absent(
        self,
        *,
        quiz_id: UUID,
        student_id: UUID,
        institution_id: Optional[UUID],
        question_snapshot: List[Dict[str, Any]],
        max_score: int,
        started_at: datetime,
    ) -> QuizAttempt:
        """Insert an in-progress attempt unless one already exists for the pair"""
        attempt = QuizAttempt(
            quiz_id=quiz_id,
            student_id=student_id,
            institution_id=institution_id,
            answers={},
            question_snapshot=question_snapshot,
            score=0,
            max_score=max_score,
            completed=False,
            started_at=started_at,
        )
        self.session.add(attempt)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            if _is_active_attempt_violation(e):
                raise Conflict("You already have an active attempt for this quiz") from e
            logger.error(f"Integrity error creating attempt for quiz {quiz_id}: {e.orig}")
            raise StorageFailure("Could not create quiz attempt") from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Database error creating attempt for quiz {quiz_id}: {e}")
            raise StorageFailure("Could not create quiz attempt") from e
        return attempt

    async def complete_attempt(
        self,
        attempt_id: UUID,
        *,
        answers: Dict[str, Optional[str]],
        score: int,
        submitted_at: datetime,
        time_spent_minutes: int,
    ) -> None:
        """Flip an attempt to completed, exactly once"""
        stmt = (
            update(QuizAttempt)
            .where(QuizAttempt.id == attempt_id, QuizAttempt.completed.is_(False))
            .values(
                answers=answers,
                score=score,
                completed=True,
                submitted_at=submitted_at,
                time_spent_minutes=time_spent_minutes,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(stmt)
            if result.rowcount != 1:
                await self.session.rollback()
                raise Conflict("Quiz attempt already completed")
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Database error completing attempt {attempt_id}: {e}")
            raise StorageFailure("Could not submit quiz attempt") from e


async def get_attempt_store(session_factory: async_sessionmaker = Depends(get_session_factory)):
    async with QuizAttemptStore(session_factory) as store:
        yield store
