# quizhub/core/exceptions.py
"""Custom exceptions for the QuizHub application."""
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)


class QuizHubException(HTTPException):
    """Base exception for QuizHub application."""
    def __init__(
        self,
        status_code: int,
        detail: str,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)

    @property
    def message(self) -> str:
        return self.detail


class NotFound(QuizHubException):
    """Referenced entity does not exist."""
    def __init__(self, resource: str = "Resource", id: Any = None):
        message = f"{resource} not found"
        if id:
            message += f" with id: {id}"
        super().__init__(status_code=404, detail=message)


class Unauthorized(QuizHubException):
    """Missing, malformed or expired bearer token, or a token for an unknown user."""
    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(status_code=401, detail=message, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(QuizHubException):
    """Authorization denied, including unapproved accounts and ownership mismatches."""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(status_code=403, detail=message)


class Conflict(QuizHubException):
    """Duplicate active attempt, double submission or duplicate unique field."""
    def __init__(self, message: str):
        super().__init__(status_code=409, detail=message)


class InvalidState(QuizHubException):
    """Operation is not legal for the current state, e.g. quiz outside its window."""
    def __init__(self, message: str):
        super().__init__(status_code=400, detail=message)


class ValidationFailed(QuizHubException):
    """Domain validation the request schema cannot express."""
    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(status_code=422, detail=message)


class StorageFailure(QuizHubException):
    """An atomic store operation could not be guaranteed."""
    def __init__(self, message: str = "Database operation failed"):
        super().__init__(status_code=500, detail=message)


async def quizhub_exception_handler(request: Request, exc: QuizHubException):
    """Handle domain exceptions with the standard error envelope"""
    if exc.status_code >= 500:
        logger.error(f"{exc.__class__.__name__}: {exc.message} - Path: {request.url.path}")
    else:
        logger.warning(f"{exc.__class__.__name__}: {exc.message} - Path: {request.url.path}")
    content = {"success": False, "error": exc.message, "type": exc.__class__.__name__}
    if isinstance(exc, ValidationFailed) and exc.field:
        content["field"] = exc.field
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.error(f"Unexpected error: {str(exc)} - Path: {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error", "type": "InternalError"}
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(QuizHubException, quizhub_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
