# quizhub/routers/health.py
"""Health check endpoints."""
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..core.config import settings
from ..core.database import health_check_db

router = APIRouter(prefix="/api/v1/health", tags=["Health"])


@router.get("/")
async def health_check():
    """Basic health check"""
    return {
        "status": "healthy",
        "service": "QuizHub API",
        "version": settings.app_version,
        "environment": settings.environment,
    }


@router.get("/db")
async def database_health():
    if await health_check_db():
        return {"status": "healthy", "database": "connected"}
    return JSONResponse(status_code=503, content={"status": "unhealthy", "database": "unreachable"})
