# quizhub/core/security.py
"""Bearer token verification.

Tokens are issued by the external identity service. This module only checks
them and resolves the principal behind a request.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID
import logging

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from .config import settings
from .database import get_db
from .exceptions import Forbidden, Unauthorized

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(
    user_id: UUID,
    role: str,
    institution_id: Optional[UUID] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode = {
        "user_id": str(user_id),
        "role": getattr(role, "value", role),
        "institution_id": str(institution_id) if institution_id else None,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except JWTError as e:
        logger.warning(f"Rejected access token: {e}")
        raise Unauthorized() from e


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
):
    """Resolve the verified, approved principal of the request"""
    from ..models.user import User
    from ..services.access_control import Principal

    if credentials is None:
        raise Unauthorized("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    try:
        user_id = UUID(payload["user_id"])
    except (KeyError, TypeError, ValueError) as e:
        raise Unauthorized() from e

    user = await db.get(User, user_id)
    if user is None or user.is_deleted:
        raise Unauthorized()
    if not user.approved:
        raise Forbidden("Account is pending approval")

    return Principal.from_user(user)
