"""
支付服务
支付与发票同时创建；支付完成时记录 payment.completed 事件，用于自动确认预约
"""
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple
import logging

from sqlalchemy import desc
from sqlalchemy.orm import Session

from app.database import transaction
from app.models.events import EventType, PaymentCompletedData
from app.models.ontology import (
    Invoice, InvoiceStatus, Payment, PaymentMethod, PaymentStatus, Reservation,
)
from app.models.schemas import PaymentCreate, PaymentRefund
from app.services.errors import ConflictError, NotFoundError, ValidationError
from app.services.outbox import record_event

logger = logging.getLogger(__name__)

TAX_RATE = Decimal("20")
CENT = Decimal("0.01")


def split_tax(total: Decimal, rate: Decimal = TAX_RATE) -> Tuple[Decimal, Decimal]:
    """含税总额 -> (不含税金额, 税额)"""
    subtotal = (total * Decimal(100) / (Decimal(100) + rate)).quantize(CENT, rounding=ROUND_HALF_UP)
    return subtotal, total - subtotal


def invoice_number(year: int, sequence: int) -> str:
    return f"INV-{year}-{sequence:06d}"


class PaymentService:
    """支付服务"""

    def __init__(self, db: Session):
        self.db = db

    def get_payments(
        self,
        center_id: int,
        status: Optional[PaymentStatus] = None,
        method: Optional[PaymentMethod] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Payment], int]:
        query = self.db.query(Payment).filter(Payment.center_id == center_id)
        if status:
            query = query.filter(Payment.status == status)
        if method:
            query = query.filter(Payment.method == method)
        if date_from:
            query = query.filter(Payment.created_at >= datetime.combine(date_from, datetime.min.time()))
        if date_to:
            query = query.filter(Payment.created_at <= datetime.combine(date_to, datetime.max.time()))

        total = query.count()
        items = query.order_by(desc(Payment.created_at), desc(Payment.id)) \
            .offset((page - 1) * limit).limit(limit).all()
        return items, total

    def get_payment(self, center_id: int, payment_id: int) -> Payment:
        payment = self.db.query(Payment).filter(
            Payment.id == payment_id,
            Payment.center_id == center_id,
        ).first()
        if not payment:
            raise NotFoundError("Payment not found")
        return payment

    def _next_invoice_number(self, center_id: int) -> str:
        """发票序号每年重新计数"""
        year = date.today().year
        count = self.db.query(Invoice).filter(
            Invoice.center_id == center_id,
            Invoice.number.like(f"INV-{year}-%"),
        ).count()
        return invoice_number(year, count + 1)

    def create_payment(self, center_id: int, data: PaymentCreate, created_by: Optional[int] = None) -> Payment:
        reservation = self.db.query(Reservation).filter(
            Reservation.id == data.reservation_id,
            Reservation.center_id == center_id,
            Reservation.deleted_at.is_(None),
        ).first()
        if not reservation:
            raise ValidationError("Reservation not found")

        with transaction(self.db):
            payment = Payment(
                center_id=center_id,
                reservation_id=reservation.id,
                amount=data.amount,
                method=data.method,
                status=PaymentStatus.PENDING,
                reference=data.reference,
                notes=data.notes,
                created_by=created_by,
            )
            self.db.add(payment)
            self.db.flush()

            subtotal, tax_amount = split_tax(data.amount)
            self.db.add(Invoice(
                center_id=center_id,
                payment_id=payment.id,
                client_id=reservation.client_id,
                number=self._next_invoice_number(center_id),
                subtotal=subtotal,
                tax_rate=TAX_RATE,
                tax_amount=tax_amount,
                total=data.amount,
                status=InvoiceStatus.DRAFT,
            ))

        self.db.refresh(payment)
        logger.info(f"Payment {payment.id} of {payment.amount} created for reservation {reservation.id}")
        return payment

    def complete_payment(self, center_id: int, payment_id: int, reference: Optional[str] = None) -> Payment:
        """
        将待支付记录标记为 COMPLETED，发票标记为 PAID
        对已完成的支付重复调用不做任何操作

        Raises:
            ConflictError: 支付已失败或已退款
        """
        payment = self.get_payment(center_id, payment_id)
        if payment.status == PaymentStatus.COMPLETED:
            return payment
        if payment.status != PaymentStatus.PENDING:
            raise ConflictError(f"Cannot complete a {payment.status.value} payment")

        with transaction(self.db):
            payment.status = PaymentStatus.COMPLETED
            payment.paid_at = datetime.utcnow()
            if reference:
                payment.reference = reference
            invoice = payment.invoice
            if invoice is not None:
                invoice.status = InvoiceStatus.PAID

            reservation = payment.reservation
            record_event(
                self.db,
                EventType.PAYMENT_COMPLETED,
                PaymentCompletedData(
                    payment_id=payment.id,
                    center_id=center_id,
                    reservation_id=payment.reservation_id,
                    client_id=reservation.client_id if reservation else None,
                    amount=float(payment.amount),
                    invoice_number=invoice.number if invoice else "",
                ),
                center_id=center_id,
            )

        self.db.refresh(payment)
        logger.info(f"Payment {payment.id} completed")
        return payment

    def fail_payment(self, center_id: int, payment_id: int) -> Payment:
        payment = self.get_payment(center_id, payment_id)
        if payment.status != PaymentStatus.PENDING:
            raise ConflictError(f"Cannot fail a {payment.status.value} payment")
        payment.status = PaymentStatus.FAILED
        if payment.invoice is not None:
            payment.invoice.status = InvoiceStatus.CANCELLED
        self.db.commit()
        self.db.refresh(payment)
        logger.warning(f"Payment {payment.id} failed")
        return payment

    def refund_payment(self, center_id: int, payment_id: int, data: PaymentRefund) -> Payment:
        payment = self.get_payment(center_id, payment_id)
        if payment.status != PaymentStatus.COMPLETED:
            raise ConflictError("Only completed payments can be refunded")
        amount = data.amount if data.amount is not None else payment.amount
        if amount > payment.amount:
            raise ValidationError("Refund amount exceeds the paid amount")

        with transaction(self.db):
            payment.status = PaymentStatus.REFUNDED
            note = f"[Refund] {data.reason} - amount: {amount}"
            payment.notes = f"{payment.notes}\n{note}" if payment.notes else note
            if payment.invoice is not None:
                payment.invoice.status = InvoiceStatus.CANCELLED

        self.db.refresh(payment)
        logger.info(f"Payment {payment.id} refunded ({amount})")
        return payment

    def find_payment(self, payment_id: int) -> Payment:
        """不限租户的查找，供支付网关回调使用"""
        payment = self.db.get(Payment, payment_id)
        if payment is None:
            raise NotFoundError("Payment not found")
        return payment
