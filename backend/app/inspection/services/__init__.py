"""
app/inspection/services/__init__.py

检验领域的事件处理器
"""
from app.inspection.services.event_handlers import (
    BroadcastReport,
    EventHandlers,
    register_event_handlers,
)

__all__ = ["BroadcastReport", "EventHandlers", "register_event_handlers"]
