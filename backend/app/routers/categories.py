"""
检验类别路由
"""
from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.schemas import (
    CategoryCreate, CategoryReorder, CategoryResponse, CategoryUpdate, MessageResponse,
)
from app.security import permissions as perm
from app.security.auth import TenantContext, require_permission
from app.services.category_service import CategoryService

router = APIRouter(prefix="/categories", tags=["Categories"])


@router.get("", response_model=List[CategoryResponse])
def list_categories(
    include_inactive: bool = Query(False, alias="includeInactive"),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.CATEGORY_READ)),
):
    return CategoryService(db).get_categories(ctx.center_id, include_inactive)


@router.patch("/reorder", response_model=List[CategoryResponse])
def reorder_categories(
    data: CategoryReorder,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.CATEGORY_WRITE)),
):
    return CategoryService(db).reorder(ctx.center_id, data.ids)


@router.get("/{category_id}", response_model=CategoryResponse)
def get_category(
    category_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.CATEGORY_READ)),
):
    return CategoryService(db).get_category(ctx.center_id, category_id)


@router.post("", response_model=CategoryResponse, status_code=201)
def create_category(
    data: CategoryCreate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.CATEGORY_WRITE)),
):
    return CategoryService(db).create_category(ctx.center_id, data)


@router.patch("/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: int,
    data: CategoryUpdate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.CATEGORY_WRITE)),
):
    return CategoryService(db).update_category(ctx.center_id, category_id, data)


@router.patch("/{category_id}/toggle", response_model=CategoryResponse)
def toggle_category(
    category_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.CATEGORY_WRITE)),
):
    return CategoryService(db).toggle_category(ctx.center_id, category_id)


@router.delete("/{category_id}", response_model=MessageResponse)
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.CATEGORY_WRITE)),
):
    CategoryService(db).delete_category(ctx.center_id, category_id)
    return {"message": "Category deleted"}
