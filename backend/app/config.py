"""
应用配置
从环境变量和可选的 .env 文件读取配置
"""
from typing import Optional
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用配置"""

    APP_NAME: str = "AgendaCT"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # 数据库配置
    DATABASE_URL: str = "sqlite:///./agenda_ct.db"

    # JWT 配置
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480

    # 预约排程配置
    SLOT_MINUTES: int = 30
    BOOKING_CODE_PREFIX: str = "RES-"
    BOOKING_CODE_MAX_ATTEMPTS: int = 10
    DEFAULT_TIMEZONE: str = "Europe/Paris"
    DEFAULT_CURRENCY: str = "EUR"

    # 事件派发配置
    EVENT_DISPATCH_BATCH_SIZE: int = 50
    EVENT_MAX_ATTEMPTS: int = 5
    PROMOTION_BROADCAST_LIMIT: int = 200

    # 短信网关配置
    SMS_API_URL: str = "https://api.sweego.io/v1/sms"
    SMS_API_KEY: Optional[str] = None
    SMS_SENDER_NAME: str = "AgendaCT"
    SMS_DEFAULT_MONTHLY_QUOTA: int = 100
    SMS_TIMEOUT_SECONDS: float = 10.0

    # 邮件配置 (SMTP)
    EMAIL_ENABLED: bool = False
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_SENDER: str = "no-reply@agendact.com"
    SMTP_USE_TLS: bool = True

    # 支付网关回调配置
    PAYMENT_WEBHOOK_SECRET: Optional[str] = None

    model_config = ConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


settings = Settings()
