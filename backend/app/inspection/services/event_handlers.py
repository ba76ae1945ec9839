"""
事件处理器 - 已提交领域事件的通知分发
每个处理器使用独立会话，逐个接收人隔离处理，出错只记录日志不抛出，
单次投递失败不影响其余接收人
"""
from dataclasses import dataclass
from typing import Callable, Optional
import logging

from sqlalchemy.orm import Session

from core.engine.event_bus import Event, EventBus, event_bus
from app.config import settings
from app.database import SessionLocal
from app.models.events import ChangeCause, EventType
from app.models.ontology import (
    Center, Client, NotificationType, Reservation, ReservationStatus, User, UserRole,
)
from app.services.email_service import status_message

logger = logging.getLogger(__name__)

SMS_STATUSES = (ReservationStatus.CONFIRMED.value, ReservationStatus.COMPLETED.value)


@dataclass
class BroadcastReport:
    """促销群发结果"""
    recipients: int = 0
    sent_email: int = 0
    sent_sms: int = 0
    skipped_sms: int = 0
    failed: int = 0


def _client_account(db: Session, client: Client) -> Optional[User]:
    """与客户邮箱相同的 CLIENT 账号（如有）"""
    if not client.email:
        return None
    return db.query(User).filter(
        User.center_id == client.center_id,
        User.email == client.email.lower(),
        User.role == UserRole.CLIENT,
    ).first()


class EventHandlers:
    """
    五类领域事件的处理器

    支持依赖注入，便于测试:
    - db_session_factory: 数据库会话工厂
    - notification_service_factory: (db) -> NotificationService
    - email_service_factory: () -> EmailService
    - sms_service_factory: (db) -> SmsService
    """

    def __init__(
        self,
        db_session_factory: Callable = None,
        notification_service_factory: Callable = None,
        email_service_factory: Callable = None,
        sms_service_factory: Callable = None,
    ):
        self._db_session_factory = db_session_factory or SessionLocal
        self._notification_service_factory = notification_service_factory
        self._email_service_factory = email_service_factory
        self._sms_service_factory = sms_service_factory
        self._registered = False

    def _get_db(self) -> Session:
        return self._db_session_factory()

    def _get_notification_service(self, db):
        if self._notification_service_factory:
            return self._notification_service_factory(db)
        from app.services.notification_service import NotificationService
        return NotificationService(db)

    def _get_email_service(self):
        if self._email_service_factory:
            return self._email_service_factory()
        from app.services.email_service import EmailService
        return EmailService()

    def _get_sms_service(self, db):
        if self._sms_service_factory:
            return self._sms_service_factory(db)
        from app.services.sms_service import SmsService
        return SmsService(db)

    def _notify(self, db, user_id: Optional[int], title: str, message: str,
                type: NotificationType, data: dict) -> None:
        """站内通知，失败时记录日志并回滚"""
        if not user_id:
            return
        try:
            self._get_notification_service(db).create(user_id, title, message, type, data)
        except Exception as e:
            db.rollback()
            logger.error(f"In-app notification to user {user_id} failed: {e}", exc_info=True)

    def handle_reservation_created(self, event: Event) -> None:
        """
        处理预约创建事件：站内通知负责员工；客户有联系方式时发送短信和确认邮件
        """
        db = self._get_db()
        try:
            data = event.data
            reservation = db.get(Reservation, data.get("reservation_id"))
            if reservation is None:
                logger.warning(f"reservation.created for unknown reservation {data.get('reservation_id')}")
                return
            client = reservation.client
            center = db.get(Center, reservation.center_id)

            self._notify(
                db, reservation.employee_id,
                "Nouvelle réservation",
                f"{client.full_name} - {data.get('vehicle_info')} le {data.get('date')} à {data.get('start_time')}",
                NotificationType.RESERVATION,
                {"reservation_id": reservation.id, "booking_code": reservation.booking_code},
            )

            if client.phone:
                try:
                    self._get_sms_service(db).send_sms(
                        client.phone,
                        f"{center.name}: votre RDV du {data.get('date')} à {data.get('start_time')} "
                        f"est enregistré. Code {reservation.booking_code}",
                        reservation.center_id,
                    )
                except Exception as e:
                    db.rollback()
                    logger.error(f"Confirmation SMS for {reservation.booking_code} failed: {e}", exc_info=True)

            if client.email:
                try:
                    self._get_email_service().send_reservation_confirmation(client.email, {
                        "client_name": client.full_name,
                        "date": data.get("date"),
                        "time": data.get("start_time"),
                        "vehicle_info": data.get("vehicle_info"),
                        "booking_code": reservation.booking_code,
                        "center_name": center.name,
                    })
                except Exception as e:
                    logger.error(f"Confirmation email for {reservation.booking_code} failed: {e}", exc_info=True)
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to handle reservation.created: {e}", exc_info=True)
        finally:
            db.close()

    def handle_reservation_status_changed(self, event: Event) -> None:
        """
        处理预约状态变更事件：站内通知客户账号，CONFIRMED/COMPLETED 时发短信，
        并发送状态邮件。节假日导致的取消由节假日处理器统一通知
        """
        data = event.data
        if data.get("cause") == ChangeCause.HOLIDAY.value:
            return

        db = self._get_db()
        try:
            client = db.get(Client, data.get("client_id"))
            center = db.get(Center, data.get("center_id"))
            if client is None or center is None:
                logger.warning(f"reservation.status_changed with unknown client/center: {data}")
                return
            new_status = data.get("new_status")
            message = status_message(new_status)

            account = _client_account(db, client)
            self._notify(
                db, account.id if account else None,
                "Mise à jour de votre réservation",
                message,
                NotificationType.RESERVATION,
                {"reservation_id": data.get("reservation_id"), "status": new_status},
            )

            if new_status in SMS_STATUSES and client.phone:
                try:
                    self._get_sms_service(db).send_sms(
                        client.phone,
                        f"{center.name}: {message} Code {data.get('booking_code')}",
                        center.id,
                    )
                except Exception as e:
                    db.rollback()
                    logger.error(f"Status SMS to client {client.id} failed: {e}", exc_info=True)

            if client.email:
                try:
                    self._get_email_service().send_status_update(client.email, {
                        "client_name": client.full_name,
                        "status": new_status,
                        "status_message": message,
                        "booking_code": data.get("booking_code"),
                        "reason": data.get("reason"),
                        "center_name": center.name,
                    })
                except Exception as e:
                    logger.error(f"Status email to client {client.id} failed: {e}", exc_info=True)
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to handle reservation.status_changed: {e}", exc_info=True)
        finally:
            db.close()

    def handle_payment_completed(self, event: Event) -> None:
        """
        处理支付完成事件：自动确认关联的 PENDING 预约，站内通知中心管理员，
        并向客户发送收据邮件
        """
        from app.services.lifecycle_service import LifecycleService

        db = self._get_db()
        try:
            data = event.data
            center = db.get(Center, data.get("center_id"))
            if center is None:
                logger.warning(f"payment.completed for unknown center {data.get('center_id')}")
                return

            reservation_id = data.get("reservation_id")
            reservation = db.get(Reservation, reservation_id) if reservation_id else None
            if reservation is not None and reservation.status == ReservationStatus.PENDING \
                    and reservation.deleted_at is None:
                try:
                    LifecycleService(db).apply(
                        reservation, ReservationStatus.CONFIRMED,
                        reason="Payment received", cause=ChangeCause.PAYMENT,
                    )
                    db.commit()
                    logger.info(f"Reservation {reservation.booking_code} auto-confirmed by payment")
                except Exception as e:
                    db.rollback()
                    logger.error(f"Auto-confirm of reservation {reservation_id} failed: {e}", exc_info=True)

            amount = f"{float(data.get('amount', 0)):.2f}"
            self._notify(
                db, center.owner_id,
                "Paiement reçu",
                f"Paiement de {amount} {center.currency} reçu (facture {data.get('invoice_number')})",
                NotificationType.PAYMENT,
                {"payment_id": data.get("payment_id"), "reservation_id": reservation_id},
            )

            client = db.get(Client, data.get("client_id")) if data.get("client_id") else None
            if client is not None and client.email:
                try:
                    self._get_email_service().send_payment_receipt(client.email, {
                        "client_name": client.full_name,
                        "amount": amount,
                        "currency": center.currency,
                        "date": event.timestamp.strftime("%d/%m/%Y"),
                        "invoice_number": data.get("invoice_number"),
                        "center_name": center.name,
                    })
                except Exception as e:
                    logger.error(f"Receipt email to client {client.id} failed: {e}", exc_info=True)
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to handle payment.completed: {e}", exc_info=True)
        finally:
            db.close()

    def handle_holiday_created(self, event: Event) -> None:
        """
        处理节假日创建事件：对每个被取消的预约，给客户发邮件和短信并通知负责员工，
        最后给中心管理员发一条汇总
        """
        db = self._get_db()
        try:
            data = event.data
            center = db.get(Center, data.get("center_id"))
            if center is None:
                logger.warning(f"holiday.created for unknown center {data.get('center_id')}")
                return
            holiday_name = data.get("name")
            cancelled_ids = data.get("cancelled_reservation_ids") or []

            notified = 0
            for reservation_id in cancelled_ids:
                try:
                    reservation = db.get(Reservation, reservation_id)
                    if reservation is None:
                        continue
                    client = reservation.client
                    day = reservation.date.strftime("%d/%m/%Y")

                    self._get_email_service().send_holiday_notification(client.email, {
                        "client_name": client.full_name,
                        "holiday_name": holiday_name,
                        "date": day,
                        "end_date": None,
                        "center_name": center.name,
                    })
                    if client.phone:
                        self._get_sms_service(db).send_sms(
                            client.phone,
                            f"{center.name}: fermeture ({holiday_name}) le {day}, votre RDV "
                            f"{reservation.booking_code} est annulé. Merci de reprendre RDV.",
                            center.id,
                        )
                    self._notify(
                        db, reservation.employee_id,
                        "Réservation annulée",
                        f"{reservation.booking_code} du {day} annulée ({holiday_name})",
                        NotificationType.HOLIDAY,
                        {"reservation_id": reservation.id, "holiday_id": data.get("holiday_id")},
                    )
                    notified += 1
                except Exception as e:
                    db.rollback()
                    logger.error(
                        f"Holiday notification for reservation {reservation_id} failed: {e}", exc_info=True
                    )

            period = data.get("date") if not data.get("end_date") else f"{data.get('date')} - {data.get('end_date')}"
            self._notify(
                db, center.owner_id,
                "Jour férié ajouté",
                f"{holiday_name} ({period}) : {len(cancelled_ids)} réservation(s) annulée(s)",
                NotificationType.HOLIDAY,
                {"holiday_id": data.get("holiday_id"), "affected": len(cancelled_ids)},
            )
            logger.info(f"Holiday {holiday_name}: {notified}/{len(cancelled_ids)} clients notified")
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to handle holiday.created: {e}", exc_info=True)
        finally:
            db.close()

    def handle_promotion_created(self, event: Event) -> BroadcastReport:
        """
        处理促销创建事件：通知中心管理员，再向最近活跃的客户群发邮件和短信
        （最多 PROMOTION_BROADCAST_LIMIT 位）
        """
        report = BroadcastReport()
        db = self._get_db()
        try:
            data = event.data
            center = db.get(Center, data.get("center_id"))
            if center is None:
                logger.warning(f"promotion.created for unknown center {data.get('center_id')}")
                return report

            if data.get("discount_type") == "PERCENTAGE":
                discount = f"-{data.get('discount_value'):g}%"
            else:
                discount = f"-{data.get('discount_value'):g} {center.currency}"

            self._notify(
                db, center.owner_id,
                "Promotion créée",
                f"{data.get('name')} ({discount}) sera envoyée à vos clients",
                NotificationType.PROMOTION,
                {"promotion_id": data.get("promotion_id")},
            )

            clients = db.query(Client).filter(
                Client.center_id == center.id,
                Client.deleted_at.is_(None),
            ).order_by(Client.last_activity_at.desc(), Client.id.desc()) \
                .limit(settings.PROMOTION_BROADCAST_LIMIT).all()

            email_service = self._get_email_service()
            sms_service = self._get_sms_service(db)
            text = (
                f"{center.name}: {data.get('name')} {discount} avec le code {data.get('code')}, "
                f"du {data.get('start_date')} au {data.get('end_date')}"
            )

            for client in clients:
                report.recipients += 1
                try:
                    if email_service.send_promotion(client.email, {
                        "client_name": client.full_name,
                        "promo_name": data.get("name"),
                        "discount_value": discount,
                        "promo_code": data.get("code"),
                        "start_date": data.get("start_date"),
                        "end_date": data.get("end_date"),
                        "center_name": center.name,
                    }):
                        report.sent_email += 1
                    if not client.phone:
                        report.skipped_sms += 1
                    if sms_service.send_sms(client.phone, text, center.id):
                        report.sent_sms += 1
                except Exception as e:
                    db.rollback()
                    report.failed += 1
                    logger.error(f"Promotion delivery to client {client.id} failed: {e}", exc_info=True)

            logger.info(
                f"Promotion {data.get('code')} broadcast: {report.recipients} clients, "
                f"{report.sent_email} emails, {report.sent_sms} SMS, {report.skipped_sms} without phone"
            )
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to handle promotion.created: {e}", exc_info=True)
        finally:
            db.close()
        return report

    def _subscriptions(self):
        return (
            (EventType.RESERVATION_CREATED, self.handle_reservation_created),
            (EventType.RESERVATION_STATUS_CHANGED, self.handle_reservation_status_changed),
            (EventType.PAYMENT_COMPLETED, self.handle_payment_completed),
            (EventType.HOLIDAY_CREATED, self.handle_holiday_created),
            (EventType.PROMOTION_CREATED, self.handle_promotion_created),
        )

    def register_handlers(self, event_bus_instance: EventBus = None) -> None:
        """注册所有事件处理器"""
        if self._registered:
            return
        bus = event_bus_instance or event_bus
        for event_type, handler in self._subscriptions():
            bus.subscribe(event_type.value, handler)
        self._registered = True
        logger.info("Event handlers registered")

    def unregister_handlers(self, event_bus_instance: EventBus = None) -> None:
        """注销所有事件处理器（仅用于测试）"""
        bus = event_bus_instance or event_bus
        for event_type, handler in self._subscriptions():
            bus.unsubscribe(event_type.value, handler)
        self._registered = False
        logger.info("Event handlers unregistered")


# 全局事件处理器实例
event_handlers = EventHandlers()


def register_event_handlers(bus: EventBus = None, handlers: EventHandlers = None) -> EventHandlers:
    handlers = handlers or event_handlers
    handlers.register_handlers(bus)
    return handlers
