import logging
from typing import Optional
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from media_search.core.database import get_db
from media_search.core.errors import AuthError, PersistenceError
from media_search.models.user import User
from media_search.services.auth_service import auth_service
from media_search.services.openverse_service import OpenverseService, openverse_service

logger = logging.getLogger(__name__)

# Extracts the bearer token from the Authorization header
# auto_error=False so anonymous requests reach the handler with token=None
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login", auto_error=False)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> User:
    """
    Require an authenticated user.

    Raises AuthError (401) if the token is missing, invalid, or expired.
    """
    return auth_service.authenticate(db, token)


async def get_optional_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> Optional[User]:
    """
    Resolve the caller if possible, otherwise treat them as anonymous.

    An expired or invalid token is the same as no token here; only endpoints
    that require a user reject it. A database failure while resolving the user
    also falls back to anonymous so the search itself can still be served.
    """
    if not token:
        return None
    try:
        return auth_service.authenticate(db, token)
    except AuthError:
        return None
    except PersistenceError:
        logger.warning("User lookup failed; serving request as anonymous")
        return None


def get_openverse_service() -> OpenverseService:
    """Openverse client dependency - overridden in tests"""
    return openverse_service
