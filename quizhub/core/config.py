# quizhub/core/config.py
"""Application configuration using Pydantic."""
from pydantic_settings import BaseSettings
from typing import List

class Settings(BaseSettings):
    database_url: str
    jwt_secret_key: str
    redis_url: str = 'redis://localhost:6379/0'

    jwt_algorithm: str = 'HS256'
    jwt_issuer: str = 'quiz-application'
    jwt_audience: str = 'quiz-application-users'
    access_token_expire_minutes: int = 1440

    app_version: str = '1.0.0'
    environment: str = 'development'
    log_level: str = 'info'
    allowed_origins: List[str] = ['*']

    cache_enabled: bool = True
    quiz_cache_ttl: int = 300

    # Submissions per client per window on the submit endpoint
    submission_rate_limit: int = 10
    submission_rate_window: int = 60

    model_config = {
        'env_file': '.env',
        'extra': 'ignore'
    }

settings = Settings()
