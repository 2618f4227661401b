"""
Authentication and authorization dependencies
Project: Order Ledger

Access is declared per endpoint as a Capability. Each role maps to the
set of capabilities it holds, and `require_capability` checks it once
at the routing layer.
"""

from enum import Enum
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.core.database import get_db
from orderledger.core.exceptions import AuthorizationError
from orderledger.core.security import decode_token
from orderledger.models.user import User, UserRole

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/v1/auth/login",
    auto_error=False,
)


class Capability(str, Enum):
    """Permissions checked by route dependencies."""
    CLIENT_READ = "client:read"
    CLIENT_WRITE = "client:write"
    PRODUCT_READ = "product:read"
    PRODUCT_WRITE = "product:write"
    PRODUCT_GROUP_MANAGE = "product_group:manage"
    ORDER_CREATE = "order:create"
    ORDER_READ = "order:read"
    ORDER_LIST = "order:list"
    ORDER_STATUS = "order:status"
    ORDER_DELETE = "order:delete"
    DASHBOARD_ADMIN = "dashboard:admin"
    DASHBOARD_SUB_ADMIN = "dashboard:sub_admin"
    SUB_ORDER_MANAGE = "sub_order:manage"
    TRANSACTION_MANAGE = "transaction:manage"
    ADVANCED_PAYMENT_MANAGE = "advanced_payment:manage"
    ADVANCED_PAYMENT_ANALYTICS = "advanced_payment:analytics"
    DISPATCH_INVOICE_MANAGE = "dispatch_invoice:manage"


_SUB_ADMIN_CAPABILITIES = frozenset({
    Capability.CLIENT_READ,
    Capability.PRODUCT_READ,
    Capability.ORDER_LIST,
    Capability.ORDER_STATUS,
    Capability.DASHBOARD_SUB_ADMIN,
    Capability.SUB_ORDER_MANAGE,
    Capability.ADVANCED_PAYMENT_MANAGE,
    Capability.DISPATCH_INVOICE_MANAGE,
})

ROLE_CAPABILITIES: dict[str, frozenset[Capability]] = {
    UserRole.ADMIN.value: frozenset(Capability),  # everything
    UserRole.SUB_ADMIN.value: _SUB_ADMIN_CAPABILITIES,
}


def has_capability(role: str, capability: Capability) -> bool:
    """True when `role` holds `capability`. Unknown roles hold nothing."""
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the user from the bearer token.

    Raises:
        HTTPException 401: Missing/invalid token or inactive user
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication token not provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token_data = decode_token(token)

    if token_data.type != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token not valid for this operation",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_id = UUID(token_data.sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user id in token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


def require_capability(capability: Capability):
    """
    Dependency factory checking that the current user holds `capability`.

    Example:
        @router.delete(
            "/{order_id}",
            dependencies=[Depends(require_capability(Capability.ORDER_DELETE))],
        )
        async def delete_order(...):
            ...
    """
    async def capability_checker(
        current_user: Annotated[User, Depends(get_current_user)]
    ) -> User:
        if not has_capability(current_user.role, capability):
            raise AuthorizationError(
                f"Access denied: '{capability.value}' required",
                extra={"role": current_user.role},
            )
        return current_user

    return capability_checker


CurrentUser = Annotated[User, Depends(get_current_user)]


__all__ = [
    "Capability",
    "ROLE_CAPABILITIES",
    "has_capability",
    "get_current_user",
    "require_capability",
    "oauth2_scheme",
    "CurrentUser",
]
