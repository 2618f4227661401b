"""
FastAPI router for Client
Project: Order Ledger

Endpoints for client management.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.core.database import get_db
from orderledger.core.deps import Capability, require_capability
from orderledger.schemas.client import (
    ClientCreate,
    ClientList,
    ClientRead,
    ClientUpdate,
)
from orderledger.services.client_service import ClientService, client_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/client",
    tags=["Clients"],
)

can_read = [Depends(require_capability(Capability.CLIENT_READ))]
can_write = [Depends(require_capability(Capability.CLIENT_WRITE))]


# -------------------------------------------------------------------
# Dependency Injection
# -------------------------------------------------------------------

def get_client_service() -> ClientService:
    """Dependency returning the ClientService; overridden in tests."""
    return client_service


# -------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------

@router.get(
    "/",
    name="client_list",
    summary="List clients",
    description="Paginated client list with an optional search term.",
    response_model=ClientList,
    status_code=status.HTTP_200_OK,
    dependencies=can_read,
)
async def get_clients(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(10, ge=1, le=100, description="Rows per page"),
    search: Optional[str] = Query(None, description="Name, alias, email, mobile or client number"),
    include_inactive: bool = Query(False, description="Include deleted clients"),
    db: AsyncSession = Depends(get_db),
    service: ClientService = Depends(get_client_service),
) -> ClientList:
    """
    Only active clients are returned unless include_inactive is set.
    """
    clients, total = await service.get_all(
        db=db,
        page=page,
        limit=limit,
        search=search,
        include_inactive=include_inactive,
    )

    return ClientList(
        items=[ClientRead.model_validate(c) for c in clients],
        total=total,
        page=page,
        limit=limit,
    )


@router.get(
    "/number/{client_no}",
    name="client_by_number",
    summary="Client by number",
    response_model=ClientRead,
    dependencies=can_read,
)
async def get_client_by_number(
    client_no: int,
    db: AsyncSession = Depends(get_db),
    service: ClientService = Depends(get_client_service),
) -> ClientRead:
    client = await service.get_by_client_no(db=db, client_no=client_no)
    return ClientRead.model_validate(client)


@router.get(
    "/{client_id}",
    name="client_detail",
    summary="Client detail",
    response_model=ClientRead,
    status_code=status.HTTP_200_OK,
    dependencies=can_read,
)
async def get_client(
    client_id: uuid.UUID,
    include_inactive: bool = Query(False, description="Include deleted clients"),
    db: AsyncSession = Depends(get_db),
    service: ClientService = Depends(get_client_service),
) -> ClientRead:
    client = await service.get_by_id(db=db, client_id=client_id, include_inactive=include_inactive)
    return ClientRead.model_validate(client)


@router.post(
    "/",
    name="client_create",
    summary="Create client",
    description="Create a client; the client number is assigned automatically.",
    response_model=ClientRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=can_write,
)
async def create_client(
    client_data: ClientCreate,
    db: AsyncSession = Depends(get_db),
    service: ClientService = Depends(get_client_service),
) -> ClientRead:
    """
    Raises:
        DuplicateError: email already used by another client
    """
    client = await service.create(db=db, client_data=client_data)
    await db.commit()
    return ClientRead.model_validate(client)


@router.put(
    "/{client_id}",
    name="client_update",
    summary="Update client",
    response_model=ClientRead,
    status_code=status.HTTP_200_OK,
    dependencies=can_write,
)
async def update_client(
    client_id: uuid.UUID,
    client_data: ClientUpdate,
    db: AsyncSession = Depends(get_db),
    service: ClientService = Depends(get_client_service),
) -> ClientRead:
    client = await service.update(
        db=db,
        client_id=client_id,
        client_data=client_data,
    )
    await db.commit()
    return ClientRead.model_validate(client)


@router.delete(
    "/{client_id}",
    name="client_delete",
    summary="Delete client",
    description="Soft delete; refused while the client has open orders.",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=can_write,
)
async def delete_client(
    client_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: ClientService = Depends(get_client_service),
) -> None:
    await service.delete(db=db, client_id=client_id)
    await db.commit()
