"""Credentials: bcrypt password hashes and the JWT bearer tokens issued on login.

One token authorizes the REST endpoints, the speech/guidance functions and
the breathing session socket. The user id travels in the ``sub`` claim.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from loguru import logger
from passlib.context import CryptContext

from breathwork.config.settings import settings

TOKEN_ISSUER = "breathwork-backend"
BCRYPT_MAX_BYTES = 72

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def _secret_bytes(password: str) -> bytes:
    # bcrypt ignores everything past 72 bytes
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """Hash a password with bcrypt.

    Raises:
        ValueError: If password is empty
    """
    if not password:
        raise ValueError("Password cannot be empty")
    return pwd_context.hash(_secret_bytes(password))


def verify_password(plain: str, hashed: str) -> bool:
    if not plain or not hashed:
        return False
    return pwd_context.verify(_secret_bytes(plain), hashed)


def create_access_token(user_id: str, expires_in: timedelta | None = None) -> str:
    """Issue a signed bearer token for ``user_id``.

    Raises:
        ValueError: If user_id is empty
    """
    if not user_id:
        raise ValueError("user_id cannot be None or empty")

    issued_at = datetime.now(timezone.utc)
    lifetime = expires_in if expires_in is not None else timedelta(days=settings.auth_token_expire_days)
    claims = {
        "sub": str(user_id),
        "iat": issued_at,
        "exp": issued_at + lifetime,
        "iss": TOKEN_ISSUER,
    }
    return jwt.encode(claims, settings.auth_secret_key, algorithm=settings.auth_algorithm)


def decode_access_token(token: str) -> str:
    """Verify signature, expiry and issuer, and return the user id.

    Raises:
        ValueError: If the token is invalid, expired, foreign or has no subject
    """
    try:
        claims = jwt.decode(
            token,
            settings.auth_secret_key,
            algorithms=[settings.auth_algorithm],
            issuer=TOKEN_ISSUER,
        )
    except JWTError as e:
        logger.warning(f"[AUTH] Token rejected: {e}")
        raise ValueError("Invalid or expired token") from e

    user_id = claims.get("sub")
    if not user_id:
        raise ValueError("Token missing user ID")
    return str(user_id)
