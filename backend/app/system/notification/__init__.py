"""
app/system/notification/__init__.py

启动时注册的具体通知渠道
"""
from app.system.notification.email_channel import EmailChannel
from app.system.notification.sms_channel import SmsChannel

__all__ = ["EmailChannel", "SmsChannel"]
