"""
站内通知服务
"""
from typing import Any, Dict, List, Optional, Tuple
import logging

from sqlalchemy import desc
from sqlalchemy.orm import Session

from app.models.ontology import Notification, NotificationType
from app.services.errors import NotFoundError

logger = logging.getLogger(__name__)


class NotificationService:
    """站内通知服务"""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        user_id: int,
        title: str,
        message: str,
        type: NotificationType = NotificationType.SYSTEM,
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        """创建并提交一条通知"""
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            data=data,
            is_read=False,
        )
        self.db.add(notification)
        self.db.commit()
        logger.debug(f"Notification '{title}' stored for user {user_id}")
        return notification

    def get_notifications(self, user_id: int, unread_only: bool = False,
                          page: int = 1, limit: int = 20) -> Tuple[List[Notification], int]:
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        total = query.count()
        items = query.order_by(desc(Notification.created_at), desc(Notification.id)) \
            .offset((page - 1) * limit).limit(limit).all()
        return items, total

    def unread_count(self, user_id: int) -> int:
        return self.db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        ).count()

    def _get(self, user_id: int, notification_id: int) -> Notification:
        notification = self.db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        ).first()
        if not notification:
            raise NotFoundError("Notification not found")
        return notification

    def mark_read(self, user_id: int, notification_id: int) -> Notification:
        notification = self._get(user_id, notification_id)
        notification.is_read = True
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def mark_all_read(self, user_id: int) -> int:
        updated = self.db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        ).update({Notification.is_read: True}, synchronize_session=False)
        self.db.commit()
        return updated

    def delete(self, user_id: int, notification_id: int) -> None:
        notification = self._get(user_id, notification_id)
        self.db.delete(notification)
        self.db.commit()
