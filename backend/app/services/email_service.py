"""
邮件服务
面向客户的法语纯文本邮件，通过已注册的 "email" 渠道发送
所有方法出错时返回 False，不抛出异常
"""
from typing import Any, Dict, Optional
import logging

from core.notification.channel import NotificationChannelRegistry
from app.services.client_service import PLACEHOLDER_EMAIL_DOMAIN

logger = logging.getLogger(__name__)

PLACEHOLDER_SUFFIX = f"@{PLACEHOLDER_EMAIL_DOMAIN}"

STATUS_MESSAGES = {
    "CONFIRMED": "Votre réservation est confirmée.",
    "IN_PROGRESS": "Le contrôle de votre véhicule a commencé.",
    "COMPLETED": "Le contrôle de votre véhicule est terminé.",
    "CANCELLED": "Votre réservation a été annulée.",
    "NO_SHOW": "Vous ne vous êtes pas présenté à votre rendez-vous.",
}


def status_message(status: str) -> str:
    return STATUS_MESSAGES.get(status, f"Le statut de votre réservation est maintenant {status}.")


def _footer(center_name: str) -> str:
    return f"\n\n{center_name} - Propulsé par AgendaCT"


class EmailService:
    """基于通知渠道注册表的各类邮件"""

    def __init__(self, registry: Optional[NotificationChannelRegistry] = None):
        self._registry = registry or NotificationChannelRegistry()

    def send_email(self, to: Optional[str], subject: str, body: str) -> bool:
        if not to or to.endswith(PLACEHOLDER_SUFFIX):
            logger.debug(f"Skipping email '{subject}': no deliverable address")
            return False
        channel = self._registry.get_channel("email")
        if channel is None:
            logger.warning(f"Email channel not configured, '{subject}' to {to} not sent")
            return False
        try:
            return channel.send(to, subject, body)
        except Exception as e:
            logger.error(f"Email channel error for {to}: {e}", exc_info=True)
            return False

    def send_reservation_confirmation(self, to: str, data: Dict[str, Any]) -> bool:
        body = (
            f"Bonjour {data['client_name']},\n\n"
            f"Votre réservation a bien été enregistrée.\n"
            f"Date : {data['date']}\n"
            f"Heure : {data['time']}\n"
            f"Véhicule : {data['vehicle_info']}\n"
            f"Code : {data.get('booking_code', '')}\n\n"
            f"Pour modifier ou annuler votre rendez-vous, contactez-nous directement."
            + _footer(data['center_name'])
        )
        return self.send_email(to, f"Confirmation de réservation - {data['center_name']}", body)

    def send_reservation_reminder(self, to: str, data: Dict[str, Any]) -> bool:
        body = (
            f"Bonjour {data['client_name']},\n\n"
            f"Nous vous rappelons votre rendez-vous du {data['date']} à {data['time']}."
            + _footer(data['center_name'])
        )
        return self.send_email(to, f"Rappel de rendez-vous - {data['center_name']}", body)

    def send_status_update(self, to: str, data: Dict[str, Any]) -> bool:
        message = data.get("status_message") or status_message(data["status"])
        body = f"Bonjour {data['client_name']},\n\n{message}"
        if data.get("booking_code"):
            body += f"\nCode de réservation : {data['booking_code']}"
        if data.get("reason"):
            body += f"\nMotif : {data['reason']}"
        body += _footer(data['center_name'])
        return self.send_email(to, f"{message} - {data['center_name']}", body)

    def send_payment_receipt(self, to: str, data: Dict[str, Any]) -> bool:
        body = (
            f"Bonjour {data['client_name']},\n\n"
            f"Nous confirmons la réception de votre paiement de "
            f"{data['amount']} {data['currency']} le {data['date']}."
        )
        if data.get("invoice_number"):
            body += f"\nFacture : {data['invoice_number']}"
        body += "\n\nMerci pour votre confiance." + _footer(data['center_name'])
        return self.send_email(to, f"Reçu de paiement - {data['center_name']}", body)

    def send_promotion(self, to: str, data: Dict[str, Any]) -> bool:
        body = (
            f"Bonjour {data['client_name']},\n\n"
            f"Profitez de notre offre : {data['promo_name']} ({data['discount_value']}).\n"
        )
        if data.get("promo_code"):
            body += f"Code promo : {data['promo_code']}\n"
        body += f"Valable du {data['start_date']} au {data['end_date']}." + _footer(data['center_name'])
        return self.send_email(to, f"{data['promo_name']} - {data['center_name']}", body)

    def send_holiday_notification(self, to: str, data: Dict[str, Any]) -> bool:
        period = data['date'] if not data.get('end_date') else f"{data['date']} - {data['end_date']}"
        body = (
            f"Bonjour {data['client_name']},\n\n"
            f"Notre centre sera fermé ({data['holiday_name']}) : {period}.\n"
            f"Votre réservation sur cette période a été annulée, "
            f"merci de reprendre rendez-vous."
            + _footer(data['center_name'])
        )
        return self.send_email(to, f"Fermeture : {data['holiday_name']} - {data['center_name']}", body)
