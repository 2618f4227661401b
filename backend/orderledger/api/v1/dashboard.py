"""
Dashboard router
Project: Order Ledger
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.core.database import get_db
from orderledger.core.deps import Capability, require_capability
from orderledger.schemas.dashboard import AdminDashboard, SubAdminDashboard
from orderledger.services.order_service import OrderService, order_service

router = APIRouter(
    prefix="/dashboard",
    tags=["Dashboard"],
)


def get_order_service() -> OrderService:
    return order_service


@router.get(
    "/admin",
    name="dashboard_admin",
    summary="Orders, revenue and catalogue counts",
    response_model=AdminDashboard,
    dependencies=[Depends(require_capability(Capability.DASHBOARD_ADMIN))],
)
async def get_admin_dashboard(
    db: AsyncSession = Depends(get_db),
    service: OrderService = Depends(get_order_service),
) -> AdminDashboard:
    return await service.dashboard_stats(db)


@router.get(
    "/sub-admin",
    name="dashboard_sub_admin",
    summary="Dispatch workload",
    response_model=SubAdminDashboard,
    dependencies=[Depends(require_capability(Capability.DASHBOARD_SUB_ADMIN))],
)
async def get_sub_admin_dashboard(
    db: AsyncSession = Depends(get_db),
    service: OrderService = Depends(get_order_service),
) -> SubAdminDashboard:
    return await service.sub_admin_stats(db)
