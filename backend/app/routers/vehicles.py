"""
车辆管理路由
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.schemas import MessageResponse, VehicleCreate, VehicleResponse, VehicleUpdate
from app.security import permissions as perm
from app.security.auth import TenantContext, require_permission
from app.services.vehicle_service import VehicleService

router = APIRouter(prefix="/vehicles", tags=["Vehicles"])


@router.get("", response_model=List[VehicleResponse])
def list_vehicles(
    client_id: Optional[int] = Query(None, alias="clientId"),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.VEHICLE_READ)),
):
    return VehicleService(db).get_vehicles(ctx.center_id, client_id, search)


@router.get("/{vehicle_id}", response_model=VehicleResponse)
def get_vehicle(
    vehicle_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.VEHICLE_READ)),
):
    return VehicleService(db).get_vehicle(ctx.center_id, vehicle_id)


@router.post("", response_model=VehicleResponse, status_code=201)
def create_vehicle(
    data: VehicleCreate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.VEHICLE_WRITE)),
):
    return VehicleService(db).create_vehicle(ctx.center_id, data)


@router.patch("/{vehicle_id}", response_model=VehicleResponse)
def update_vehicle(
    vehicle_id: int,
    data: VehicleUpdate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.VEHICLE_WRITE)),
):
    return VehicleService(db).update_vehicle(ctx.center_id, vehicle_id, data)


@router.delete("/{vehicle_id}", response_model=MessageResponse)
def delete_vehicle(
    vehicle_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.VEHICLE_WRITE)),
):
    VehicleService(db).delete_vehicle(ctx.center_id, vehicle_id)
    return {"message": "Vehicle deleted"}
