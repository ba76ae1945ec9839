"""
促销服务
折扣码管理；创建时记录 promotion.created 事件，用于向客户群发
"""
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.database import transaction
from app.models.events import EventType, PromotionCreatedData
from app.models.ontology import DiscountType, Promotion
from app.models.schemas import PromotionCreate, PromotionUpdate
from app.services.errors import ConflictError, NotFoundError, ValidationError
from app.services.outbox import record_event

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def compute_discount(promotion: Promotion, amount: Optional[Decimal]) -> Decimal:
    """计算折扣金额，固定金额折扣不超过原金额"""
    if amount is None:
        return Decimal("0")
    value = Decimal(promotion.discount_value)
    if promotion.discount_type == DiscountType.PERCENTAGE:
        discount = amount * value / Decimal(100)
    else:
        discount = min(value, amount)
    return discount.quantize(CENT, rounding=ROUND_HALF_UP)


class PromotionService:
    """促销服务"""

    def __init__(self, db: Session):
        self.db = db

    def _live(self, center_id: int):
        return self.db.query(Promotion).filter(
            Promotion.center_id == center_id,
            Promotion.deleted_at.is_(None),
        )

    def get_promotions(self, center_id: int, active_only: bool = False) -> List[Promotion]:
        query = self._live(center_id)
        if active_only:
            query = query.filter(Promotion.is_active.is_(True), Promotion.end_date >= date.today())
        return query.order_by(Promotion.start_date.desc(), Promotion.id.desc()).all()

    def get_promotion(self, center_id: int, promotion_id: int) -> Promotion:
        promotion = self._live(center_id).filter(Promotion.id == promotion_id).first()
        if not promotion:
            raise NotFoundError("Promotion not found")
        return promotion

    def create_promotion(self, center_id: int, data: PromotionCreate) -> Promotion:
        code = data.code.strip().upper()
        if self._live(center_id).filter(Promotion.code == code).first():
            raise ConflictError("This promotion code is already in use")

        with transaction(self.db):
            fields = data.model_dump()
            fields["code"] = code
            promotion = Promotion(center_id=center_id, used_count=0, is_active=True, **fields)
            self.db.add(promotion)
            self.db.flush()
            record_event(
                self.db,
                EventType.PROMOTION_CREATED,
                PromotionCreatedData(
                    promotion_id=promotion.id,
                    center_id=center_id,
                    name=promotion.name,
                    code=promotion.code,
                    discount_type=promotion.discount_type.value,
                    discount_value=float(promotion.discount_value),
                    start_date=promotion.start_date.isoformat(),
                    end_date=promotion.end_date.isoformat(),
                ),
                center_id=center_id,
            )
        self.db.refresh(promotion)
        logger.info(f"Promotion {promotion.code} created in center {center_id}")
        return promotion

    def update_promotion(self, center_id: int, promotion_id: int, data: PromotionUpdate) -> Promotion:
        promotion = self.get_promotion(center_id, promotion_id)
        changes = data.model_dump(exclude_unset=True)

        start = changes.get("start_date", promotion.start_date)
        end = changes.get("end_date", promotion.end_date)
        if end < start:
            raise ValidationError("endDate must not be before startDate")
        discount_type = changes.get("discount_type", promotion.discount_type)
        discount_value = changes.get("discount_value", promotion.discount_value)
        if discount_type == DiscountType.PERCENTAGE and Decimal(discount_value) > 100:
            raise ValidationError("Percentage discount cannot exceed 100")

        for key, value in changes.items():
            setattr(promotion, key, value)
        self.db.commit()
        self.db.refresh(promotion)
        return promotion

    def delete_promotion(self, center_id: int, promotion_id: int) -> None:
        promotion = self.get_promotion(center_id, promotion_id)
        promotion.deleted_at = datetime.utcnow()
        self.db.commit()

    def toggle_promotion(self, center_id: int, promotion_id: int) -> Promotion:
        promotion = self.get_promotion(center_id, promotion_id)
        promotion.is_active = not promotion.is_active
        self.db.commit()
        self.db.refresh(promotion)
        return promotion

    def validate_code(self, center_id: int, code: str, amount: Optional[Decimal] = None) -> Dict[str, Any]:
        """
        校验折扣码

        Raises:
            ValidationError: 折扣码不存在、未启用、不在有效期内或次数已用完
        """
        promotion = self._live(center_id).filter(
            Promotion.code == code.strip().upper(),
            Promotion.is_active.is_(True),
        ).first()
        if not promotion:
            raise ValidationError("Invalid promotion code")

        today = date.today()
        if today < promotion.start_date or today > promotion.end_date:
            raise ValidationError("Promotion code is expired or not yet valid")
        if promotion.usage_limit and promotion.used_count >= promotion.usage_limit:
            raise ValidationError("Promotion code usage limit reached")

        discount = compute_discount(promotion, amount)
        return {
            "valid": True,
            "promotion": promotion,
            "discount_amount": discount,
            "final_amount": (amount - discount) if amount is not None else None,
        }

    def apply_promotion(self, center_id: int, promotion_id: int) -> Promotion:
        promotion = self.get_promotion(center_id, promotion_id)
        if promotion.usage_limit and promotion.used_count >= promotion.usage_limit:
            raise ConflictError("Promotion code usage limit reached")
        promotion.used_count = Promotion.used_count + 1
        self.db.commit()
        self.db.refresh(promotion)
        return promotion

    def get_stats(self, center_id: int) -> Dict[str, int]:
        today = date.today()
        base = self._live(center_id)
        total_usage = self.db.query(func.coalesce(func.sum(Promotion.used_count), 0)).filter(
            Promotion.center_id == center_id,
            Promotion.deleted_at.is_(None),
        ).scalar()
        return {
            "total": base.count(),
            "active": base.filter(Promotion.is_active.is_(True), Promotion.end_date >= today).count(),
            "expired": base.filter(Promotion.end_date < today).count(),
            "total_usage": int(total_usage or 0),
        }
