# quizhub/models/__init__.py
"""Import all models here, if needed for Alembic migration."""
from .base import Base

# Shared models
from .shared.institution import Institution
from .user import User, UserRole

# Tenant-specific models
from .tenant_specific.academic import Grade, Subject
from .tenant_specific.quiz import Quiz, Question, QuizAttempt, DifficultyLevel, AttemptState
