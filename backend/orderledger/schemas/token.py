"""
Pydantic schemas for JWT authentication
Project: Order Ledger
"""

from datetime import datetime

from pydantic import BaseModel, Field


class TokenResponse(BaseModel):
    """
    Login / refresh response.

    Attributes:
        access_token: JWT access token
        refresh_token: JWT refresh token
        token_type: Always "bearer"
        role: Role of the signed-in user, used by the SPA for routing
    """

    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")
    token_type: str = Field(default="bearer", description="Token type")
    role: str = Field(..., description="User role")


class TokenRefresh(BaseModel):
    refresh_token: str = Field(..., description="JWT refresh token")


class TokenPayload(BaseModel):
    """
    Claims carried by the JWT.

    Attributes:
        sub: User id
        email: User email
        role: User role
        exp: Expiry
        type: "access" or "refresh"
    """

    sub: str = Field(..., description="User id")
    email: str = Field(default="", description="User email")
    role: str = Field(..., description="User role")
    exp: datetime = Field(..., description="Expiry timestamp")
    type: str = Field(..., description="Token type (access/refresh)")


__all__ = [
    "TokenResponse",
    "TokenRefresh",
    "TokenPayload",
]
