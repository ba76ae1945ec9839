"""
站内通知路由（始终限定为当前用户）
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.ontology import User
from app.models.schemas import MessageResponse, NotificationResponse, Page, UnreadCount, page_of
from app.security.auth import get_current_user
from app.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=Page[NotificationResponse])
def list_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items, total = NotificationService(db).get_notifications(current_user.id, unread_only, page, limit)
    return page_of(NotificationResponse, items, total, page, limit)


@router.get("/unread-count", response_model=UnreadCount)
def unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return {"count": NotificationService(db).unread_count(current_user.id)}


@router.patch("/read-all", response_model=UnreadCount)
def mark_all_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """全部标记为已读，返回标记的数量"""
    return {"count": NotificationService(db).mark_all_read(current_user.id)}


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return NotificationService(db).mark_read(current_user.id, notification_id)


@router.delete("/{notification_id}", response_model=MessageResponse)
def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    NotificationService(db).delete(current_user.id, notification_id)
    return {"message": "Notification deleted"}
