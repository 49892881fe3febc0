"""Payments Service models package."""

from services.payments_service.models.core import PaymentIntent, Payout
from services.payments_service.models.enums import (
    PaymentStatus,
    PayoutStatus,
    ProductType,
)

__all__ = [
    "PaymentIntent",
    "PaymentStatus",
    "Payout",
    "PayoutStatus",
    "ProductType",
]
