"""
AgendaCT 主应用入口
汽车技术检验中心的预约排程后端
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.config import settings as app_settings
from app.database import init_db
from app.routers import (
    auth, reservations, categories, holidays, clients, vehicles,
    promotions, payments, notifications, settings, sms, users,
)
from app.services.errors import DomainError

logger = logging.getLogger(__name__)


def register_channels() -> None:
    """注册邮件和短信服务使用的出站渠道"""
    from core.notification.channel import NotificationChannelRegistry
    from app.system.notification import EmailChannel, SmsChannel

    registry = NotificationChannelRegistry()
    registry.register(SmsChannel(
        api_url=app_settings.SMS_API_URL,
        api_key=app_settings.SMS_API_KEY,
        sender_name=app_settings.SMS_SENDER_NAME,
        timeout=app_settings.SMS_TIMEOUT_SECONDS,
    ))
    if app_settings.EMAIL_ENABLED:
        registry.register(EmailChannel(
            smtp_host=app_settings.SMTP_HOST,
            smtp_port=app_settings.SMTP_PORT,
            smtp_user=app_settings.SMTP_USER,
            smtp_password=app_settings.SMTP_PASSWORD,
            sender_email=app_settings.SMTP_SENDER,
            use_tls=app_settings.SMTP_USE_TLS,
        ))
    else:
        logger.warning("EMAIL_ENABLED is off, client emails will not be sent")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """启动流程：日志、建表、注册渠道和事件处理器，派发上次遗留的发件箱事件"""
    logging.basicConfig(
        level=app_settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    init_db()
    register_channels()

    from app.inspection.services import register_event_handlers
    register_event_handlers()

    from app.services.outbox import outbox_dispatcher
    drained = outbox_dispatcher.dispatch_all()
    if drained:
        logger.info(f"Dispatched {drained} outbox events left from a previous run")

    yield


app = FastAPI(
    title="AgendaCT",
    description="Scheduling backend for vehicle inspection centers",
    version="1.0.0",
    lifespan=lifespan
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    """领域异常统一转换为 {"detail": ...} 响应"""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# 注册路由
app.include_router(auth.router)
app.include_router(reservations.router)
app.include_router(categories.router)
app.include_router(holidays.router)
app.include_router(clients.router)
app.include_router(vehicles.router)
app.include_router(promotions.router)
app.include_router(payments.router)
app.include_router(notifications.router)
app.include_router(settings.router)
app.include_router(sms.router)
app.include_router(users.router)


@app.get("/")
def root():
    return {
        "name": app_settings.APP_NAME,
        "version": "1.0.0",
    }


@app.get("/health")
def health_check():
    return {"status": "healthy"}
