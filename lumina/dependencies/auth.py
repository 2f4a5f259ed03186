"""
Authentication dependencies for FastAPI.
"""
import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from lumina.database import get_db
from lumina.exceptions import Forbidden, Unauthorized
from lumina.models.photographer import Photographer
from lumina.services.auth import AuthService
from lumina.utils.security import decode_access_token

logger = logging.getLogger("lumina.auth")

# HTTP Bearer token security scheme (401은 직접 처리)
security = HTTPBearer(auto_error=False)


async def get_current_photographer(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Photographer:
    """
    Dependency to get the authenticated photographer.

    Raises:
        Unauthorized: no bearer token
        Forbidden: token invalid or expired, or its photographer no longer exists
    """
    if not credentials or not credentials.credentials:
        logger.warning("Auth failed", extra={"event": "auth", "reason": "no_token"})
        raise Unauthorized("Authentication required", headers={"WWW-Authenticate": "Bearer"})

    token_payload = decode_access_token(credentials.credentials)
    if token_payload is None:
        logger.warning("Auth failed", extra={"event": "auth", "reason": "invalid_or_expired_token"})
        raise Forbidden("Invalid or expired token")

    photographer = await AuthService(db).get_photographer_by_id(token_payload.sub)
    if photographer is None:
        logger.warning(
            "Auth failed",
            extra={"event": "auth", "reason": "user_not_found", "photographer_id": token_payload.sub},
        )
        raise Forbidden("Invalid or expired token")

    return photographer
