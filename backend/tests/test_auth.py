"""
Tests for authentication and role capabilities.
"""

from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from orderledger.core.deps import Capability, ROLE_CAPABILITIES, has_capability, require_capability
from orderledger.core.exceptions import AuthorizationError, DuplicateError
from orderledger.core.security import create_refresh_token, decode_token
from orderledger.models.user import UserRole
from orderledger.schemas.user import UserCreate, UserLogin
from orderledger.services.auth_service import AuthService


# ============================================================
# Capabilities
# ============================================================


class TestCapabilities:

    def test_admin_holds_everything(self):
        assert all(has_capability(UserRole.ADMIN.value, c) for c in Capability)

    @pytest.mark.parametrize("capability", [
        Capability.SUB_ORDER_MANAGE,
        Capability.DISPATCH_INVOICE_MANAGE,
        Capability.ADVANCED_PAYMENT_MANAGE,
        Capability.ORDER_LIST,
        Capability.DASHBOARD_SUB_ADMIN,
    ])
    def test_sub_admin_allowed(self, capability):
        assert has_capability(UserRole.SUB_ADMIN.value, capability)

    @pytest.mark.parametrize("capability", [
        Capability.ORDER_CREATE,
        Capability.ORDER_DELETE,
        Capability.TRANSACTION_MANAGE,
        Capability.PRODUCT_GROUP_MANAGE,
        Capability.DASHBOARD_ADMIN,
        Capability.ADVANCED_PAYMENT_ANALYTICS,
        Capability.CLIENT_WRITE,
    ])
    def test_sub_admin_denied(self, capability):
        assert not has_capability(UserRole.SUB_ADMIN.value, capability)

    def test_unknown_role_holds_nothing(self):
        assert not has_capability("guest", Capability.ORDER_LIST)
        assert "guest" not in ROLE_CAPABILITIES

    async def test_checker_rejects_missing_capability(self):
        checker = require_capability(Capability.ORDER_DELETE)
        user = SimpleNamespace(role=UserRole.SUB_ADMIN.value)

        with pytest.raises(AuthorizationError) as exc_info:
            await checker(current_user=user)

        assert exc_info.value.status_code == 403
        assert exc_info.value.extra == {"role": "sub-admin"}

    async def test_checker_returns_user(self):
        checker = require_capability(Capability.SUB_ORDER_MANAGE)
        user = SimpleNamespace(role=UserRole.SUB_ADMIN.value)

        assert await checker(current_user=user) is user


# ============================================================
# AuthService
# ============================================================


class TestAuthService:

    async def test_first_user_is_admin(self, db):
        service = AuthService()

        first = await service.register(
            db, UserCreate(email="owner@example.com", password="s3cret-pass", full_name="Owner",
                           role=UserRole.SUB_ADMIN)
        )
        second = await service.register(
            db, UserCreate(email="desk@example.com", password="s3cret-pass", full_name="Desk",
                           role=UserRole.SUB_ADMIN)
        )

        assert first.role == UserRole.ADMIN.value
        assert second.role == UserRole.SUB_ADMIN.value

    async def test_duplicate_email(self, db):
        service = AuthService()
        data = UserCreate(email="owner@example.com", password="s3cret-pass", full_name="Owner")
        await service.register(db, data)

        with pytest.raises(DuplicateError):
            await service.register(db, data)

    async def test_login_and_refresh(self, db):
        service = AuthService()
        user = await service.register(
            db, UserCreate(email="owner@example.com", password="s3cret-pass", full_name="Owner")
        )

        tokens = await service.login(db, UserLogin(email="owner@example.com", password="s3cret-pass"))

        assert tokens.role == user.role
        assert decode_token(tokens.access_token).type == "access"

        refreshed = await service.refresh(db, tokens.refresh_token)
        assert decode_token(refreshed.access_token).sub == str(user.id)

    async def test_wrong_password(self, db):
        service = AuthService()
        await service.register(
            db, UserCreate(email="owner@example.com", password="s3cret-pass", full_name="Owner")
        )

        with pytest.raises(HTTPException) as exc_info:
            await service.login(db, UserLogin(email="owner@example.com", password="wrong-pass"))

        assert exc_info.value.status_code == 401

    async def test_access_token_cannot_refresh(self, db):
        service = AuthService()
        await service.register(
            db, UserCreate(email="owner@example.com", password="s3cret-pass", full_name="Owner")
        )
        tokens = await service.login(db, UserLogin(email="owner@example.com", password="s3cret-pass"))

        with pytest.raises(HTTPException):
            await service.refresh(db, tokens.access_token)

    async def test_refresh_for_unknown_user(self, db, random_id):
        token = create_refresh_token(str(random_id), "ghost@example.com", UserRole.ADMIN.value)

        with pytest.raises(HTTPException):
            await AuthService().refresh(db, token)
