# API Routers
from app.routers import (
    auth, reservations, categories, holidays, clients, vehicles,
    promotions, payments, notifications, settings, sms, users,
)

__all__ = [
    'auth', 'reservations', 'categories', 'holidays', 'clients', 'vehicles',
    'promotions', 'payments', 'notifications', 'settings', 'sms', 'users',
]
