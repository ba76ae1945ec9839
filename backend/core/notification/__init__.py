"""
通知渠道抽象 - 只定义接口，具体传输实现在 app 层
"""
from core.notification.channel import INotificationChannel, NotificationChannelRegistry

__all__ = ["INotificationChannel", "NotificationChannelRegistry"]
