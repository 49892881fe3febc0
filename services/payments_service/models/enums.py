"""Enum definitions for payments service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class ProductType(str, enum.Enum):
    COURSE = "course"
    TEST_SERIES = "testSeries"
    WEBINAR = "webinar"
    TEST = "test"
    LIVE_CLASS = "liveClass"


class PaymentStatus(str, enum.Enum):
    CREATED = "created"
    PENDING = "pending"
    AUTHORIZED = "authorized"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    # Reachable only through admin refund/cancel tooling outside this service
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class PayoutStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"
    REVERSED = "reversed"
