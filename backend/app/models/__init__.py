# ORM entities
from app.models.ontology import (
    Center, User, Category, Holiday, Client, Vehicle, Reservation,
    ReservationSlotLock, Payment, Invoice, Promotion, Notification,
    SmsUsage, OutboxEvent,
)

__all__ = [
    'Center', 'User', 'Category', 'Holiday', 'Client', 'Vehicle', 'Reservation',
    'ReservationSlotLock', 'Payment', 'Invoice', 'Promotion', 'Notification',
    'SmsUsage', 'OutboxEvent',
]
