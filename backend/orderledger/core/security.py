"""
JWT security helpers
Project: Order Ledger

Password hashing and JWT token handling.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import HTTPException, status
from jose import JWTError, jwt
from passlib.context import CryptContext

from orderledger.core.config import settings
from orderledger.schemas.token import TokenPayload

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a plain-text password."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a plain-text password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def _encode(
    user_id: str,
    email: str,
    role: str,
    token_type: str,
    expires_delta: timedelta,
) -> str:
    payload = {
        "sub": user_id,
        "email": email,
        "role": role,
        "exp": datetime.now(timezone.utc) + expires_delta,
        "type": token_type,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: str, email: str, role: str) -> str:
    """
    Create a JWT access token.

    Args:
        user_id: User id
        email: User email
        role: User role (admin | sub-admin)

    Returns:
        Encoded JWT
    """
    return _encode(
        user_id,
        email,
        role,
        "access",
        timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_refresh_token(user_id: str, email: str, role: str) -> str:
    """Create a JWT refresh token."""
    return _encode(
        user_id,
        email,
        role,
        "refresh",
        timedelta(days=settings.refresh_token_expire_days),
    )


def decode_token(token: str) -> TokenPayload:
    """
    Decode and validate a JWT.

    Raises:
        HTTPException 401: If the token is invalid or expired
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid or expired token: {e}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    sub: Optional[str] = payload.get("sub")
    if not sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing subject",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return TokenPayload(
        sub=sub,
        email=payload.get("email") or "",
        role=payload.get("role") or "",
        exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        type=payload.get("type") or "",
    )


__all__ = [
    "hash_password",
    "verify_password",
    "create_access_token",
    "create_refresh_token",
    "decode_token",
]
