"""
客户管理路由
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.ontology import ClientType
from app.models.schemas import ClientCreate, ClientResponse, ClientUpdate, MessageResponse, Page, page_of
from app.security import permissions as perm
from app.security.auth import TenantContext, require_permission
from app.services.client_service import ClientService

router = APIRouter(prefix="/clients", tags=["Clients"])


@router.get("", response_model=Page[ClientResponse])
def list_clients(
    search: Optional[str] = None,
    type: Optional[ClientType] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.CLIENT_READ)),
):
    items, total = ClientService(db).get_clients(ctx.center_id, search, type, page, limit)
    return page_of(ClientResponse, items, total, page, limit)


@router.get("/{client_id}", response_model=ClientResponse)
def get_client(
    client_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.CLIENT_READ)),
):
    return ClientService(db).get_client(ctx.center_id, client_id)


@router.post("", response_model=ClientResponse, status_code=201)
def create_client(
    data: ClientCreate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.CLIENT_WRITE)),
):
    return ClientService(db).create_client(ctx.center_id, data)


@router.patch("/{client_id}", response_model=ClientResponse)
def update_client(
    client_id: int,
    data: ClientUpdate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.CLIENT_WRITE)),
):
    return ClientService(db).update_client(ctx.center_id, client_id, data)


@router.delete("/{client_id}", response_model=MessageResponse)
def delete_client(
    client_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.CLIENT_WRITE)),
):
    ClientService(db).delete_client(ctx.center_id, client_id)
    return {"message": "Client deleted"}
