"""
core/engine/event_bus.py

进程内事件总线 - 按事件名发布/订阅
同一事件的处理器按注册顺序执行；单个处理器失败不影响其他处理器，
失败信息记录在 PublishResult 中
"""
from typing import Callable, Dict, List, Any, Optional, Protocol, Tuple
from dataclasses import dataclass, field
from datetime import datetime
import logging
import threading
import uuid

logger = logging.getLogger(__name__)

EventId = str


def _generate_event_id() -> EventId:
    """生成唯一事件ID：时间戳 + 随机后缀"""
    return f"{datetime.now().strftime('%Y%m%d%H%M%S')}_{uuid.uuid4().hex[:8]}"


def _handler_name(handler: Callable) -> str:
    return getattr(handler, "__name__", repr(handler))


class EventHandler(Protocol):
    """事件处理器协议"""

    def __call__(self, event: "Event") -> None:
        ...


@dataclass
class Event:
    """
    事件 - 已提交状态变更的不可变事实

    Attributes:
        event_type: 事件名，如 "reservation.created"
        timestamp: 状态变更发生时间
        data: 事件数据，包含处理器需要的ID和冗余字段
        source: 事件来源
        event_id: 唯一ID（从发件箱派发时为发件箱行的主键）
    """

    event_type: str
    timestamp: datetime
    data: Dict[str, Any]
    source: str = ""
    event_id: EventId = field(default_factory=_generate_event_id)


@dataclass
class PublishResult:
    """
    一次发布的结果

    Attributes:
        event_type: 事件名
        subscriber_count: 调用的处理器数量
        success_count: 正常返回的处理器数量
        failure_count: 抛出异常的处理器数量
        errors: (处理器, 异常) 列表
    """

    event_type: str
    subscriber_count: int
    success_count: int = 0
    failure_count: int = 0
    errors: List[Tuple[Callable, Exception]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failure_count == 0


class EventBus:
    """
    事件总线 - 线程安全的单例

    使用示例:
        >>> bus = EventBus()
        >>> bus.subscribe("reservation.created", handler)
        >>> bus.publish(Event(event_type="reservation.created",
        ...                   timestamp=datetime.now(), data={"reservation_id": 1}))
    """

    _instance: Optional["EventBus"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "EventBus":
        """单例模式 - 确保全局唯一实例"""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._subscribers: Dict[str, List[EventHandler]] = {}
        self._subscriber_lock = threading.RLock()
        self._initialized = True
        logger.info("EventBus initialized")

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """
        订阅事件，重复订阅同一处理器不生效

        Args:
            event_type: 事件名
            handler: 接收 Event 的可调用对象
        """
        with self._subscriber_lock:
            handlers = self._subscribers.setdefault(event_type, [])
            if handler not in handlers:
                handlers.append(handler)
                logger.info(f"Handler {_handler_name(handler)} subscribed to {event_type}")

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        with self._subscriber_lock:
            handlers = self._subscribers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)
                logger.info(f"Handler {_handler_name(handler)} unsubscribed from {event_type}")

    def publish(self, event: Event) -> PublishResult:
        """
        按顺序执行订阅了 event.event_type 的全部处理器

        处理器异常会记录日志并写入结果，其余处理器继续执行

        Returns:
            PublishResult，含各处理器的执行统计
        """
        with self._subscriber_lock:
            handlers = list(self._subscribers.get(event.event_type, []))

        result = PublishResult(event_type=event.event_type, subscriber_count=len(handlers))

        if handlers:
            logger.info(f"Publishing {event.event_type} to {len(handlers)} handlers")

        for handler in handlers:
            try:
                handler(event)
                result.success_count += 1
            except Exception as e:
                result.failure_count += 1
                result.errors.append((handler, e))
                logger.error(
                    f"Event handler {_handler_name(handler)} error for {event.event_type}: {e}",
                    exc_info=True,
                )

        return result

    def clear(self) -> None:
        """清空所有订阅（仅用于测试）"""
        with self._subscriber_lock:
            self._subscribers.clear()
        logger.info("EventBus cleared")


event_bus = EventBus()


__all__ = [
    "EventId",
    "EventHandler",
    "Event",
    "PublishResult",
    "EventBus",
    "event_bus",
]
