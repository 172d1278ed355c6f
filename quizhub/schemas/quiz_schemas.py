# quizhub/schemas/quiz_schemas.py
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Optional, Dict, Any
from datetime import datetime
from uuid import UUID
from enum import Enum

from ..models.tenant_specific.quiz import AttemptState, DifficultyLevel


class QuizStatus(str, Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"


class QuizSettings(BaseModel):
    allow_retake: bool = False
    show_results: bool = True
    randomize_questions: bool = False
    time_limit: bool = True
    passing_score: int = Field(default=60, ge=0, le=100)


# Question Schemas
class QuestionCreate(BaseModel):
    text: str = Field(..., min_length=5, max_length=1000)
    options: List[str] = Field(..., min_length=2, max_length=6)
    answer: str = Field(..., min_length=1, max_length=500)
    difficulty: DifficultyLevel
    points: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def check_options(self):
        for option in self.options:
            if not 1 <= len(option) <= 200:
                raise ValueError("Each option must be between 1 and 200 characters")
        if self.answer not in self.options:
            raise ValueError("Answer must be one of the options")
        return self


class QuestionUpdate(BaseModel):
    text: Optional[str] = Field(default=None, min_length=5, max_length=1000)
    options: Optional[List[str]] = Field(default=None, min_length=2, max_length=6)
    answer: Optional[str] = Field(default=None, min_length=1, max_length=500)
    difficulty: Optional[DifficultyLevel] = None
    points: Optional[int] = Field(default=None, ge=1)


class QuestionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    quiz_id: UUID
    text: str
    options: List[str]
    answer: str
    difficulty: DifficultyLevel
    points: int


class QuestionForStudent(BaseModel):
    """Question as shown to a student, never carries the answer."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    text: str
    options: List[str]
    difficulty: DifficultyLevel
    points: int


# Quiz Schemas
class QuizCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    subject_id: UUID
    institution_id: Optional[UUID] = None
    start_time: datetime
    end_time: datetime
    duration_mins: int = Field(..., ge=1, le=480)
    settings: QuizSettings = Field(default_factory=QuizSettings)

    @model_validator(mode="after")
    def check_window(self):
        if self.start_time >= self.end_time:
            raise ValueError("End time must be after start time")
        return self


class QuizUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    settings: Optional[QuizSettings] = None
    is_active: Optional[bool] = None
    is_completed: Optional[bool] = None


class QuizSchedule(BaseModel):
    start_time: datetime
    end_time: datetime
    duration_mins: int = Field(..., ge=1, le=480)

    @model_validator(mode="after")
    def check_window(self):
        if self.start_time >= self.end_time:
            raise ValueError("End time must be after start time")
        return self


class QuizResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: Optional[str]
    subject_id: UUID
    institution_id: Optional[UUID]
    created_by_id: UUID
    start_time: datetime
    end_time: datetime
    duration_mins: int
    settings: Dict[str, Any]
    is_active: bool
    is_completed: bool
    created_at: Optional[datetime] = None


class QuizDetail(QuizResponse):
    questions: List[QuestionResponse] = []


class QuizForStudent(BaseModel):
    id: UUID
    title: str
    description: Optional[str]
    duration_mins: int
    start_time: datetime
    end_time: datetime
    questions: List[QuestionForStudent]


# Quiz Attempt Schemas
class AttemptStarted(BaseModel):
    attempt_id: UUID
    quiz: QuizForStudent


class QuizAttemptSubmit(BaseModel):
    attempt_id: UUID
    # question id -> chosen option, unknown ids are ignored
    answers: Dict[str, Optional[str]]


class SubmissionResult(BaseModel):
    attempt_id: UUID
    score: int
    max_score: int
    percentage: int
    time_spent_minutes: int
    completed: bool = True


class QuizAttemptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    quiz_id: UUID
    student_id: UUID
    answers: Dict[str, Optional[str]]
    score: int
    max_score: int
    completed: bool
    state: AttemptState
    started_at: datetime
    submitted_at: Optional[datetime]
    time_spent_minutes: Optional[int]


class QuizSummary(BaseModel):
    id: UUID
    title: str
    description: Optional[str]
    total_questions: Optional[int] = None
    total_points: Optional[int] = None


class ResultStatistics(BaseModel):
    total_attempts: int
    average_score: int
    completion_rate: int


class QuizResults(BaseModel):
    quiz: QuizSummary
    attempts: List[QuizAttemptResponse]
    statistics: Optional[ResultStatistics] = None


class QuizStatistics(BaseModel):
    quiz: QuizSummary
    total_attempts: int
    completed_attempts: int
    pending_attempts: int
    average_score: int
    average_time_spent: int
    completion_rate: int
