"""
促销路由
"""
from typing import List
from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.schemas import (
    MessageResponse, PromoCodeValidate, PromoCodeValidation, PromotionCreate,
    PromotionResponse, PromotionStats, PromotionUpdate,
)
from app.security import permissions as perm
from app.security.auth import TenantContext, require_permission
from app.services.outbox import OutboxDispatcher, get_event_dispatcher
from app.services.promotion_service import PromotionService

router = APIRouter(prefix="/promotions", tags=["Promotions"])


@router.get("", response_model=List[PromotionResponse])
def list_promotions(
    active_only: bool = Query(False, alias="activeOnly"),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.PROMOTION_READ)),
):
    return PromotionService(db).get_promotions(ctx.center_id, active_only)


@router.get("/stats", response_model=PromotionStats)
def promotion_stats(
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.PROMOTION_READ)),
):
    return PromotionService(db).get_stats(ctx.center_id)


@router.post("/validate", response_model=PromoCodeValidation)
def validate_code(
    data: PromoCodeValidate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.PROMOTION_READ)),
):
    """校验折扣码，传入金额时计算折扣"""
    result = PromotionService(db).validate_code(ctx.center_id, data.code, data.amount)
    result["promotion"] = PromotionResponse.model_validate(result["promotion"])
    return result


@router.get("/{promotion_id}", response_model=PromotionResponse)
def get_promotion(
    promotion_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.PROMOTION_READ)),
):
    return PromotionService(db).get_promotion(ctx.center_id, promotion_id)


@router.post("", response_model=PromotionResponse, status_code=201)
def create_promotion(
    data: PromotionCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.PROMOTION_WRITE)),
    dispatcher: OutboxDispatcher = Depends(get_event_dispatcher),
):
    """创建促销，后台通知客户"""
    promotion = PromotionService(db).create_promotion(ctx.center_id, data)
    background_tasks.add_task(dispatcher.dispatch_pending)
    return promotion


@router.post("/{promotion_id}/apply", response_model=PromotionResponse)
def apply_promotion(
    promotion_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.PROMOTION_WRITE, perm.PAYMENT_WRITE)),
):
    return PromotionService(db).apply_promotion(ctx.center_id, promotion_id)


@router.patch("/{promotion_id}", response_model=PromotionResponse)
def update_promotion(
    promotion_id: int,
    data: PromotionUpdate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.PROMOTION_WRITE)),
):
    return PromotionService(db).update_promotion(ctx.center_id, promotion_id, data)


@router.patch("/{promotion_id}/toggle", response_model=PromotionResponse)
def toggle_promotion(
    promotion_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.PROMOTION_WRITE)),
):
    return PromotionService(db).toggle_promotion(ctx.center_id, promotion_id)


@router.delete("/{promotion_id}", response_model=MessageResponse)
def delete_promotion(
    promotion_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.PROMOTION_WRITE)),
):
    PromotionService(db).delete_promotion(ctx.center_id, promotion_id)
    return {"message": "Promotion deleted"}
