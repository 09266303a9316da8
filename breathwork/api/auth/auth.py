"""Authentication endpoints: email/password signup and login, profile read/update."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select

from breathwork.api.dependencies.auth import get_current_user_id, is_admin_email
from breathwork.core.security import create_access_token, hash_password, verify_password
from breathwork.db.models import User
from breathwork.db.session import get_session

router = APIRouter(prefix="/auth", tags=["auth"])


def _set_auth_cookie(response: Response, token: str, request: Request) -> None:
    """Set the session cookie. Secure only over https so local dev works."""
    response.set_cookie(
        key="session",
        value=token,
        httponly=True,
        secure=request.url.scheme == "https",
        samesite="lax",
        max_age=60 * 60 * 24 * 7,  # 7 days
    )


class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ProfileUpdateRequest(BaseModel):
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)


class UserResponse(BaseModel):
    id: str
    email: str
    first_name: str | None
    last_name: str | None
    is_admin: bool
    created_at: datetime


def _normalize_email(email: str) -> str:
    return email.lower().strip()


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        is_admin=is_admin_email(user.email),
        created_at=user.created_at,
    )


def _token_response(user: User, http_request: Request) -> JSONResponse:
    token = create_access_token(user.id)
    response = JSONResponse(
        content={
            "access_token": token,
            "token_type": "bearer",
            "user_id": user.id,
            "email": user.email,
        }
    )
    _set_auth_cookie(response, token, http_request)
    return response


@router.post("/signup", status_code=status.HTTP_201_CREATED)
def signup(request: SignupRequest, http_request: Request):
    """Create an account and return a bearer token.

    Raises:
        HTTPException: 409 if the email already exists
    """
    normalized_email = _normalize_email(request.email)
    logger.info(f"[AUTH] Signup requested for email={normalized_email}")

    with get_session() as session:
        existing = session.execute(select(User).where(User.email == normalized_email)).scalar_one_or_none()
        if existing is not None:
            logger.warning(f"[AUTH] Signup failed: email already exists={normalized_email}")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="An account with this email already exists",
            )

        user = User(
            email=normalized_email,
            password_hash=hash_password(request.password),
            first_name=(request.first_name or "").strip() or None,
            last_name=(request.last_name or "").strip() or None,
            last_login_at=datetime.now(timezone.utc),
        )
        session.add(user)
        session.flush()

        logger.info(f"[AUTH] User created: user_id={user.id}, email={normalized_email}")
        response = _token_response(user, http_request)
        response.status_code = status.HTTP_201_CREATED
        return response


@router.post("/login")
def login(request: LoginRequest, http_request: Request):
    """Log in with email and password.

    Raises:
        HTTPException: 401 on bad credentials, 403 if the account is inactive
    """
    normalized_email = _normalize_email(request.email)

    with get_session() as session:
        user = session.execute(select(User).where(User.email == normalized_email)).scalar_one_or_none()
        if user is None or not verify_password(request.password, user.password_hash or ""):
            logger.warning(f"[AUTH] Login failed for email={normalized_email}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password",
            )
        if not user.is_active:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account inactive")

        user.last_login_at = datetime.now(timezone.utc)
        logger.info(f"[AUTH] Login successful for user_id={user.id}")
        return _token_response(user, http_request)


@router.get("/me", response_model=UserResponse)
def get_me(user_id: str = Depends(get_current_user_id)) -> UserResponse:
    with get_session() as session:
        user = session.get(User, user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return _user_response(user)


@router.patch("/me", response_model=UserResponse)
def update_me(request: ProfileUpdateRequest, user_id: str = Depends(get_current_user_id)) -> UserResponse:
    """Update profile names. Omitted fields are left unchanged."""
    with get_session() as session:
        user = session.get(User, user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

        updates = request.model_dump(exclude_unset=True)
        for field_name, value in updates.items():
            setattr(user, field_name, (value or "").strip() or None)
        session.flush()

        logger.info(f"[AUTH] Profile updated for user_id={user_id}", fields=list(updates))
        return _user_response(user)
