"""
短信服务
按中心配置网关参数和月度配额，通过已注册的 "sms" 渠道发送
"""
from datetime import date
from typing import Any, Dict, Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.notification.channel import NotificationChannelRegistry
from app.config import settings
from app.models.ontology import Center, SmsUsage
from app.services.errors import ValidationError

logger = logging.getLogger(__name__)


def month_start(day: date) -> date:
    return day.replace(day=1)


def parse_month(value: Optional[str]) -> date:
    """'2025-03' -> date(2025, 3, 1)；None -> 当月"""
    if not value:
        return month_start(date.today())
    try:
        year, month = value.split("-")
        return date(int(year), int(month), 1)
    except ValueError:
        raise ValidationError("month must be formatted YYYY-MM")


class SmsService:
    """带配额统计的短信发送"""

    def __init__(self, db: Session, registry: Optional[NotificationChannelRegistry] = None):
        self.db = db
        self._registry = registry or NotificationChannelRegistry()

    def _usage(self, center_id: int, month: date) -> Optional[SmsUsage]:
        return self.db.query(SmsUsage).filter(
            SmsUsage.center_id == center_id,
            SmsUsage.month == month,
        ).first()

    def send_sms(self, to: Optional[str], message: str, center_id: int) -> bool:
        """
        发送短信，不会抛出异常

        以下情况返回 False：中心未启用短信、未配置 API key、
        当月配额已用完，或网关拒收
        """
        if not to:
            return False

        center = self.db.get(Center, center_id)
        if center is None:
            return False
        if not center.sms_enabled:
            logger.info(f"SMS disabled for center {center_id}")
            return False

        api_key = center.sms_api_key or settings.SMS_API_KEY
        if not api_key:
            logger.warning(f"No SMS API key configured for center {center_id}")
            return False

        usage = self._usage(center_id, month_start(date.today()))
        quota = usage.quota if usage else settings.SMS_DEFAULT_MONTHLY_QUOTA
        if usage and usage.sent_count >= quota:
            logger.warning(f"SMS quota reached for center {center_id} ({usage.sent_count}/{quota})")
            return False

        channel = self._registry.get_channel("sms")
        if channel is None:
            logger.warning("SMS channel not configured")
            return False

        try:
            sent = channel.send(to, "", message, {
                "api_key": api_key,
                "sender": center.sms_sender_name or settings.SMS_SENDER_NAME,
            })
        except Exception as e:
            logger.error(f"SMS channel error for {to}: {e}", exc_info=True)
            return False

        if sent:
            self._track_usage(center_id)
            logger.info(f"SMS sent to {to} for center {center_id}")
        return sent

    def _track_usage(self, center_id: int) -> None:
        month = month_start(date.today())
        usage = self._usage(center_id, month)
        if usage is None:
            self.db.add(SmsUsage(
                center_id=center_id,
                month=month,
                sent_count=1,
                quota=settings.SMS_DEFAULT_MONTHLY_QUOTA,
            ))
            try:
                self.db.commit()
                return
            except IntegrityError:
                self.db.rollback()
                usage = self._usage(center_id, month)
        usage.sent_count = SmsUsage.sent_count + 1
        self.db.commit()

    def get_usage(self, center_id: int, month: Optional[str] = None) -> Dict[str, Any]:
        target = parse_month(month)
        usage = self._usage(center_id, target)
        return {
            "sent_count": usage.sent_count if usage else 0,
            "quota": usage.quota if usage else settings.SMS_DEFAULT_MONTHLY_QUOTA,
            "month": target.strftime("%Y-%m"),
        }
