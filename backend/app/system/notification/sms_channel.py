"""
短信渠道 - HTTP 网关（兼容 Sweego 的 JSON API）
"""
import logging
from typing import Dict, Optional

import httpx

from core.notification.channel import INotificationChannel

logger = logging.getLogger(__name__)


class SmsChannel(INotificationChannel):
    """以 Api-Key 请求头 POST {from, to: [...], text}"""

    def __init__(
        self,
        api_url: str,
        api_key: Optional[str] = None,
        sender_name: str = "AgendaCT",
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.sender_name = sender_name
        self.timeout = timeout
        self._client = client

    def _post(self, payload: Dict, headers: Dict) -> httpx.Response:
        if self._client is not None:
            return self._client.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
        return httpx.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)

    def send(
        self,
        recipient: str,
        subject: str,
        content: str,
        extra: Optional[Dict] = None,
    ) -> bool:
        """发送一条短信，忽略 subject

        Args:
            extra: 中心级覆盖参数 'api_key' 和 'sender'
        """
        extra = extra or {}
        api_key = extra.get("api_key") or self.api_key
        if not api_key:
            logger.warning(f"No SMS API key, message to {recipient} not sent")
            return False

        payload = {
            "from": extra.get("sender") or self.sender_name,
            "to": [recipient],
            "text": content,
        }
        headers = {"Content-Type": "application/json", "Api-Key": api_key}

        try:
            response = self._post(payload, headers)
        except httpx.HTTPError as e:
            logger.error(f"SMS gateway error for {recipient}: {e}")
            return False

        if response.status_code not in (200, 201, 202):
            logger.error(f"SMS gateway rejected message to {recipient}: {response.status_code} - {response.text}")
            return False

        logger.info(f"SMS sent to {recipient}")
        return True

    def get_channel_type(self) -> str:
        return "sms"
