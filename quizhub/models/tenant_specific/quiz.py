# quizhub/models/tenant_specific/quiz.py
from sqlalchemy import Column, String, Integer, DateTime, Boolean, JSON, ForeignKey, Text, Enum, Uuid, Index, CheckConstraint, text
from sqlalchemy.orm import relationship
from ..base import Base
import enum

class DifficultyLevel(str, enum.Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

class AttemptState(str, enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"

DEFAULT_QUIZ_SETTINGS = {
    "allow_retake": False,
    "show_results": True,
    "randomize_questions": False,
    "time_limit": True,
    "passing_score": 60,
}

class Quiz(Base):
    __tablename__ = "quizzes"

    # Null means the tenant is reached through subject -> grade -> institution
    institution_id = Column(Uuid(as_uuid=True), ForeignKey("institutions.id"), nullable=True, index=True)
    subject_id = Column(Uuid(as_uuid=True), ForeignKey("subjects.id"), nullable=False, index=True)
    created_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    description = Column(Text)

    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    duration_mins = Column(Integer, nullable=False)
    settings = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_QUIZ_SETTINGS))

    is_active = Column(Boolean, default=True, nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)

    # Relationships
    subject = relationship("Subject", back_populates="quizzes")
    institution = relationship("Institution")
    questions = relationship("Question", back_populates="quiz", order_by="Question.order_number", cascade="all, delete-orphan")
    attempts = relationship("QuizAttempt", back_populates="quiz")

    __table_args__ = (
        CheckConstraint('start_time < end_time', name='ck_quiz_window'),
        Index('idx_quiz_window', 'start_time', 'end_time'),
    )

class Question(Base):
    __tablename__ = "questions"

    quiz_id = Column(Uuid(as_uuid=True), ForeignKey("quizzes.id"), nullable=False, index=True)
    order_number = Column(Integer, nullable=False, default=1)

    text = Column(Text, nullable=False)
    options = Column(JSON, nullable=False)  # ["option 1", "option 2", ...]
    answer = Column(String(500), nullable=False)
    difficulty = Column(Enum(DifficultyLevel), nullable=False, default=DifficultyLevel.MEDIUM)
    points = Column(Integer, nullable=False, default=1)

    quiz = relationship("Quiz", back_populates="questions")

    __table_args__ = (
        CheckConstraint('points >= 1', name='ck_question_points_positive'),
    )

class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"

    quiz_id = Column(Uuid(as_uuid=True), ForeignKey("quizzes.id"), nullable=False, index=True)
    student_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    # Effective institution of the quiz when the attempt was started
    institution_id = Column(Uuid(as_uuid=True), ForeignKey("institutions.id"), nullable=True, index=True)

    answers = Column(JSON, nullable=False, default=dict)
    # [{"id": ..., "answer": ..., "points": ...}] captured at start, scoring reads only this
    question_snapshot = Column(JSON, nullable=False, default=list)

    score = Column(Integer, nullable=False, default=0)
    max_score = Column(Integer, nullable=False)
    completed = Column(Boolean, nullable=False, default=False)

    started_at = Column(DateTime(timezone=True), nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    time_spent_minutes = Column(Integer, nullable=True)

    # Relationships
    quiz = relationship("Quiz", back_populates="attempts")
    student = relationship("User")

    @property
    def state(self) -> AttemptState:
        return AttemptState.COMPLETED if self.completed else AttemptState.IN_PROGRESS

    __table_args__ = (
        # At most one in-progress attempt per (quiz, student), enforced by the store
        Index(
            'uq_quiz_attempt_active',
            'quiz_id', 'student_id',
            unique=True,
            postgresql_where=text('completed = false'),
            sqlite_where=text('completed = 0'),
        ),
        Index('idx_attempt_quiz_completed', 'quiz_id', 'completed'),
    )
