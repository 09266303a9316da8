"""FastAPI authentication dependencies for JWT-based auth.

get_current_user_id extracts and verifies the bearer token (header or
``session`` cookie) and checks that the user is active. require_admin
additionally restricts access to the single operator named by ADMIN_EMAIL.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from loguru import logger
from sqlalchemy import select

from breathwork.config.settings import settings
from breathwork.core.security import decode_access_token
from breathwork.db.models import User
from breathwork.db.session import get_session

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


def _get_auth_token(request: Request, token: str | None = Depends(oauth2_scheme)) -> str | None:
    """Extract auth token from either Authorization header or cookie."""
    if token:
        return token
    return request.cookies.get("session") or None


def authenticate_token(token: str | None) -> str:
    """Verify a raw token and return the active user's id.

    Shared by the HTTP dependency and the session websocket.

    Raises:
        HTTPException: 401 if token is missing, invalid, expired or unknown
        HTTPException: 403 if the account is inactive
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated. Please provide a valid Bearer token or a session cookie.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_id = decode_access_token(token)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    with get_session() as session:
        user = session.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
        if user is None:
            logger.warning(f"[AUTH] User not found user_id={user_id}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not found",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if not user.is_active:
            logger.warning(f"[AUTH] Inactive user user_id={user_id}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Account inactive",
            )

    return user_id


def get_current_user_id(request: Request, token: str | None = Depends(oauth2_scheme)) -> str:
    """FastAPI dependency returning the authenticated user's id."""
    auth_token = _get_auth_token(request, token)
    if not auth_token:
        logger.warning(
            f"[AUTH] Missing authentication token. Path: {request.url.path}, Method: {request.method}, "
            f"Cookie present: {'session' in request.cookies}"
        )
    return authenticate_token(auth_token)


def is_admin_email(email: str | None) -> bool:
    return bool(settings.admin_email) and (email or "").lower().strip() == settings.admin_email.lower().strip()


def require_admin(user_id: str = Depends(get_current_user_id)) -> str:
    """FastAPI dependency that only lets the designated operator through.

    Raises:
        HTTPException: 403 if the user is not the admin
    """
    with get_session() as session:
        email = session.execute(select(User.email).where(User.id == user_id)).scalar_one_or_none()

    if not is_admin_email(email):
        logger.warning(f"[ADMIN] Access denied for user_id={user_id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user_id
