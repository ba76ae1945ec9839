"""
短信用量路由
"""
from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.schemas import SmsUsageResponse
from app.security import permissions as perm
from app.security.auth import TenantContext, require_permission
from app.services.sms_service import SmsService

router = APIRouter(prefix="/sms", tags=["SMS"])


@router.get("/usage", response_model=SmsUsageResponse)
def get_usage(
    month: Optional[str] = None,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.SMS_READ)),
):
    """某月的已发送数量和配额（YYYY-MM，默认当月）"""
    return SmsService(db).get_usage(ctx.center_id, month)
