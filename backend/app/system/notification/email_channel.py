"""
邮件渠道 - SMTP 发送
"""
import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Dict, Optional

from core.notification.channel import INotificationChannel

logger = logging.getLogger(__name__)


class EmailChannel(INotificationChannel):
    """SMTP 邮件渠道"""

    def __init__(
        self,
        smtp_host: str = "localhost",
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        sender_email: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.sender_email = sender_email or smtp_user
        self.use_tls = use_tls
        self.timeout = timeout

    def build_message(self, recipient: str, subject: str, content: str,
                      extra: Optional[Dict] = None) -> MIMEMultipart:
        extra = extra or {}
        msg = MIMEMultipart("alternative")
        msg["From"] = extra.get("sender") or self.sender_email
        msg["To"] = recipient
        msg["Subject"] = subject
        if reply_to := extra.get("reply_to"):
            msg["Reply-To"] = reply_to
        msg.attach(MIMEText(content, "plain", "utf-8"))
        if html := extra.get("html"):
            msg.attach(MIMEText(html, "html", "utf-8"))
        return msg

    def send(
        self,
        recipient: str,
        subject: str,
        content: str,
        extra: Optional[Dict] = None,
    ) -> bool:
        """发送一封邮件

        Args:
            recipient: 收件人邮箱
            subject: 邮件标题
            content: 纯文本正文
            extra: 可选的 'html' 备用正文、'sender'、'reply_to'
        """
        try:
            msg = self.build_message(recipient, subject, content, extra)
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.smtp_user:
                    server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg)

            logger.info(f"Email sent to {recipient}: {subject}")
            return True
        except Exception as e:
            logger.error(f"Failed to send email to {recipient}: {e}")
            return False

    def get_channel_type(self) -> str:
        return "email"
