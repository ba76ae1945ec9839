"""
事件发件箱
服务在状态变更的同一事务中把领域事件写成行，派发器把已提交的行发布到进程内事件总线
投递语义为至少一次：处理器失败的行保持 PENDING，下次运行时重新发布，
直到达到 EVENT_MAX_ATTEMPTS
"""
from datetime import datetime
from typing import Callable, List, Optional, Tuple
import logging
import threading

from sqlalchemy.orm import Session

from core.engine.event_bus import Event, EventBus, event_bus
from app.config import settings
from app.database import SessionLocal
from app.models.events import BaseEventData, EventType
from app.models.ontology import OutboxEvent, OutboxStatus

logger = logging.getLogger(__name__)


def record_event(
    db: Session,
    event_type: EventType,
    data: BaseEventData,
    center_id: Optional[int] = None,
) -> OutboxEvent:
    """在调用方事务中添加一行发件箱事件（不提交）"""
    row = OutboxEvent(
        event_type=event_type.value,
        payload=data.to_dict(),
        center_id=center_id,
        status=OutboxStatus.PENDING,
        attempts=0,
    )
    db.add(row)
    return row


class OutboxDispatcher:
    """
    发件箱派发器，按 id 顺序发布 PENDING 行

    支持依赖注入，便于测试:
    - session_factory: 数据库会话工厂
    - bus: 处理器所订阅的事件总线
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = None,
        bus: EventBus = None,
        batch_size: Optional[int] = None,
        max_attempts: Optional[int] = None,
    ):
        self._session_factory = session_factory or SessionLocal
        self._bus = bus or event_bus
        self._batch_size = batch_size or settings.EVENT_DISPATCH_BATCH_SIZE
        self._max_attempts = max_attempts or settings.EVENT_MAX_ATTEMPTS
        self._lock = threading.Lock()

    def _load_batch(self, db: Session) -> List[Tuple[int, Event]]:
        rows = (
            db.query(OutboxEvent)
            .filter(OutboxEvent.status == OutboxStatus.PENDING)
            .order_by(OutboxEvent.id)
            .limit(self._batch_size)
            .all()
        )
        return [
            (
                row.id,
                Event(
                    event_type=row.event_type,
                    timestamp=row.created_at or datetime.utcnow(),
                    data=dict(row.payload or {}),
                    source="outbox",
                    event_id=str(row.id),
                ),
            )
            for row in rows
        ]

    def dispatch_pending(self) -> int:
        """
        发布一批待处理事件

        Returns:
            标记为 PROCESSED 的行数
        """
        with self._lock:
            db = self._session_factory()
            processed = 0
            try:
                batch = self._load_batch(db)
                db.commit()
                for row_id, event in batch:
                    result = self._bus.publish(event)
                    row = db.get(OutboxEvent, row_id)
                    row.attempts = (row.attempts or 0) + 1
                    if result.ok:
                        row.status = OutboxStatus.PROCESSED
                        row.processed_at = datetime.utcnow()
                        row.last_error = None
                        processed += 1
                    else:
                        row.last_error = "; ".join(str(e) for _, e in result.errors)[:2000]
                        if row.attempts >= self._max_attempts:
                            row.status = OutboxStatus.FAILED
                            logger.error(
                                f"Outbox event {row_id} ({event.event_type}) failed after "
                                f"{row.attempts} attempts: {row.last_error}"
                            )
                        else:
                            logger.warning(
                                f"Outbox event {row_id} ({event.event_type}) will be retried "
                                f"(attempt {row.attempts}/{self._max_attempts})"
                            )
                    db.commit()
                if batch:
                    logger.info(f"Dispatched {processed}/{len(batch)} outbox events")
            except Exception as e:
                db.rollback()
                logger.error(f"Outbox dispatch failed: {e}", exc_info=True)
            finally:
                db.close()
            return processed

    def dispatch_all(self) -> int:
        """逐批清空发件箱（包括处理器新记录的事件）"""
        total = 0
        while True:
            processed = self.dispatch_pending()
            total += processed
            if processed == 0:
                return total


outbox_dispatcher = OutboxDispatcher()


def get_event_dispatcher() -> OutboxDispatcher:
    """依赖注入：路由在写请求之后调度的派发器"""
    return outbox_dispatcher
