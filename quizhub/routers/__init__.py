from . import access, health, institutions, quizzes, users

__all__ = ["access", "health", "institutions", "quizzes", "users"]
