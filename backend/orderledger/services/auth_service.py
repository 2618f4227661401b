"""
Authentication service
Project: Order Ledger

Business logic for registration, login and token refresh.
"""

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.core.exceptions import DuplicateError, NotFoundError
from orderledger.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from orderledger.models.user import User, UserRole
from orderledger.schemas.token import TokenResponse
from orderledger.schemas.user import UserCreate, UserLogin

logger = logging.getLogger(__name__)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


class AuthService:
    """Panel users and their tokens."""

    async def count_users(self, db: AsyncSession) -> int:
        return (await db.execute(select(func.count(User.id)))).scalar() or 0

    async def register(self, db: AsyncSession, data: UserCreate) -> User:
        """
        Register a new user. The first user of the system is always admin.

        Raises:
            DuplicateError: email already registered
        """
        result = await db.execute(select(User).where(User.email == data.email))
        if result.scalar_one_or_none():
            raise DuplicateError(f"Email {data.email} is already registered")

        role = data.role
        if await self.count_users(db) == 0:
            role = UserRole.ADMIN

        user = User(
            email=data.email,
            hashed_password=hash_password(data.password),
            full_name=data.full_name,
            role=role.value,
        )

        db.add(user)
        await db.flush()
        await db.refresh(user)

        logger.info("Registered user %s (%s)", user.email, user.role)
        return user

    def _tokens(self, user: User) -> TokenResponse:
        return TokenResponse(
            access_token=create_access_token(str(user.id), user.email, user.role),
            refresh_token=create_refresh_token(str(user.id), user.email, user.role),
            token_type="bearer",
            role=user.role,
        )

    async def login(self, db: AsyncSession, data: UserLogin) -> TokenResponse:
        """
        Raises:
            HTTPException 401: wrong credentials or inactive user
        """
        result = await db.execute(select(User).where(User.email == data.email))
        user = result.scalar_one_or_none()

        if not user or not verify_password(data.password, user.hashed_password):
            logger.warning("Failed login for %s", data.email)
            raise _unauthorized("Incorrect email or password")

        if not user.is_active:
            raise _unauthorized("User is disabled")

        logger.info("User %s signed in", user.email)
        return self._tokens(user)

    async def refresh(self, db: AsyncSession, refresh_token: str) -> TokenResponse:
        """
        Issue a fresh token pair from a refresh token.

        Raises:
            HTTPException 401: not a refresh token, unknown or inactive user
        """
        token_data = decode_token(refresh_token)

        if token_data.type != "refresh":
            raise _unauthorized("Access token not valid for refresh")

        try:
            user_id = UUID(token_data.sub)
        except ValueError:
            raise _unauthorized("Invalid user id in token")

        user = await db.get(User, user_id)
        if not user:
            raise _unauthorized("User not found")
        if not user.is_active:
            raise _unauthorized("User is disabled")

        return self._tokens(user)

    async def get_user_by_id(self, db: AsyncSession, user_id: UUID) -> User:
        user = await db.get(User, user_id)
        if not user:
            raise NotFoundError(f"User {user_id} not found")
        return user


def get_auth_service() -> AuthService:
    return AuthService()


__all__ = [
    "AuthService",
    "get_auth_service",
]
