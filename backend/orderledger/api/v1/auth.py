"""
Authentication router
Project: Order Ledger

Endpoints for registration, login, token refresh and the current profile.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.core.database import get_db
from orderledger.core.deps import CurrentUser, get_current_user, oauth2_scheme
from orderledger.core.exceptions import AuthorizationError
from orderledger.models.user import UserRole
from orderledger.schemas.token import TokenRefresh, TokenResponse
from orderledger.schemas.user import UserCreate, UserLogin, UserResponse
from orderledger.services.auth_service import AuthService, get_auth_service

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"],
)


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a user",
)
async def register(
    data: UserCreate,
    db: AsyncSession = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
    token: Optional[str] = Depends(oauth2_scheme),
):
    """
    Register a new panel user.

    The very first user can register without a token and becomes admin.
    After that only an authenticated admin can add users.
    """
    if await service.count_users(db) > 0:
        if not token:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required to register new users",
                headers={"WWW-Authenticate": "Bearer"},
            )
        current_user = await get_current_user(token=token, db=db)
        if current_user.role != UserRole.ADMIN.value:
            raise AuthorizationError("Only admins can register new users")

    user = await service.register(db, data)
    await db.commit()
    return user


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Sign in",
)
async def login(
    data: UserLogin,
    db: AsyncSession = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    return await service.login(db, data)


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Refresh tokens",
)
async def refresh(
    data: TokenRefresh,
    db: AsyncSession = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    return await service.refresh(db, data.refresh_token)


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Current user profile",
)
async def get_me(current_user: CurrentUser):
    return current_user


__all__ = ["router"]
