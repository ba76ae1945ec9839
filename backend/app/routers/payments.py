"""
支付路由
webhook 由支付网关调用，使用共享密钥而非用户令牌认证
"""
from datetime import date
from typing import Optional
import hmac
import logging
from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session
from app.config import settings
from app.database import get_db
from app.models.ontology import PaymentMethod, PaymentStatus
from app.models.schemas import (
    MessageResponse, Page, PaymentComplete, PaymentCreate, PaymentRefund,
    PaymentResponse, PaymentWebhook, page_of,
)
from app.security import permissions as perm
from app.security.auth import TenantContext, require_permission
from app.services.outbox import OutboxDispatcher, get_event_dispatcher
from app.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.get("", response_model=Page[PaymentResponse])
def list_payments(
    status: Optional[PaymentStatus] = None,
    method: Optional[PaymentMethod] = None,
    date_from: Optional[date] = Query(None, alias="dateFrom"),
    date_to: Optional[date] = Query(None, alias="dateTo"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.PAYMENT_READ)),
):
    items, total = PaymentService(db).get_payments(
        ctx.center_id, status, method, date_from, date_to, page, limit
    )
    return page_of(PaymentResponse, items, total, page, limit)


@router.post("/webhook", response_model=MessageResponse)
def payment_webhook(
    data: PaymentWebhook,
    background_tasks: BackgroundTasks,
    x_webhook_secret: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    dispatcher: OutboxDispatcher = Depends(get_event_dispatcher),
):
    """支付网关回调：{paymentId, status}"""
    expected = settings.PAYMENT_WEBHOOK_SECRET
    if not expected or not x_webhook_secret or not hmac.compare_digest(x_webhook_secret, expected):
        logger.warning(f"Rejected payment webhook for payment {data.payment_id}")
        raise HTTPException(status_code=401, detail="Invalid webhook secret")

    service = PaymentService(db)
    payment = service.find_payment(data.payment_id)
    if data.status == PaymentStatus.COMPLETED:
        service.complete_payment(payment.center_id, payment.id, data.reference)
        background_tasks.add_task(dispatcher.dispatch_all)
    elif data.status == PaymentStatus.FAILED:
        service.fail_payment(payment.center_id, payment.id)
    else:
        logger.info(f"Ignored webhook status {data.status.value} for payment {payment.id}")
    return {"message": "ok"}


@router.get("/{payment_id}", response_model=PaymentResponse)
def get_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.PAYMENT_READ)),
):
    return PaymentService(db).get_payment(ctx.center_id, payment_id)


@router.post("", response_model=PaymentResponse, status_code=201)
def create_payment(
    data: PaymentCreate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.PAYMENT_WRITE)),
):
    """登记支付及其发票（完成前为 PENDING）"""
    return PaymentService(db).create_payment(ctx.center_id, data, ctx.user_id)


@router.patch("/{payment_id}/complete", response_model=PaymentResponse)
def complete_payment(
    payment_id: int,
    background_tasks: BackgroundTasks,
    data: Optional[PaymentComplete] = None,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.PAYMENT_WRITE)),
    dispatcher: OutboxDispatcher = Depends(get_event_dispatcher),
):
    reference = data.reference if data else None
    payment = PaymentService(db).complete_payment(ctx.center_id, payment_id, reference)
    background_tasks.add_task(dispatcher.dispatch_all)
    return payment


@router.post("/{payment_id}/refund", response_model=PaymentResponse)
def refund_payment(
    payment_id: int,
    data: PaymentRefund,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.PAYMENT_REFUND)),
):
    return PaymentService(db).refund_payment(ctx.center_id, payment_id, data)
