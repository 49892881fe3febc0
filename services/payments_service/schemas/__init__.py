"""Payments Service schemas package."""

from services.payments_service.schemas.main import (
    CreateOrderRequest,
    CreateOrderResponse,
    OrderProduct,
    PaymentIntentResponse,
    RevenueByProductType,
    RevenueMonth,
    RevenueSummary,
    RevenueTransaction,
    RevenueTransactionPage,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
    WebhookAck,
)
from services.payments_service.schemas.payout import (
    PayoutListResponse,
    PayoutResponse,
    PayoutSummary,
)

__all__ = [
    "CreateOrderRequest",
    "CreateOrderResponse",
    "OrderProduct",
    "PaymentIntentResponse",
    "PayoutListResponse",
    "PayoutResponse",
    "PayoutSummary",
    "RevenueByProductType",
    "RevenueMonth",
    "RevenueSummary",
    "RevenueTransaction",
    "RevenueTransactionPage",
    "VerifyPaymentRequest",
    "VerifyPaymentResponse",
    "WebhookAck",
]
