"""
通知渠道接口 - 与传输方式无关的出站消息

app 层为具体传输（SMTP 邮件、HTTP 短信网关）实现 INotificationChannel，
并在启动时注册
"""
from abc import ABC, abstractmethod
from typing import Dict, Optional


class INotificationChannel(ABC):
    """出站通知渠道"""

    @abstractmethod
    def send(
        self,
        recipient: str,
        subject: str,
        content: str,
        extra: Optional[Dict] = None,
    ) -> bool:
        """发送一条消息

        Args:
            recipient: 渠道能识别的地址（邮箱、E.164 电话号码等）
            subject: 标题，没有标题的渠道忽略此参数
            content: 消息正文
            extra: 渠道特定参数（content_type、api_key、sender 等）

        Returns:
            传输层接受消息时返回 True。投递失败时实现不得抛出异常
        """

    @abstractmethod
    def get_channel_type(self) -> str:
        """渠道类型，如 'email' 或 'sms'"""


class NotificationChannelRegistry:
    """进程级渠道注册表（单例）

    在应用 lifespan 中注册:
        registry = NotificationChannelRegistry()
        registry.register(EmailChannel(...))
        registry.register(SmsChannel(...))
    """

    _instance: Optional["NotificationChannelRegistry"] = None

    def __new__(cls) -> "NotificationChannelRegistry":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._channels = {}
        return cls._instance

    def register(self, channel: INotificationChannel) -> None:
        self._channels[channel.get_channel_type()] = channel

    def get_channel(self, channel_type: str) -> Optional[INotificationChannel]:
        return self._channels.get(channel_type)

    def clear(self) -> None:
        """移除所有渠道（仅用于测试）"""
        self._channels.clear()
