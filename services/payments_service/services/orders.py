"""
Order initiation: eligibility checks, pricing, snapshot and gateway order.

All validation happens before the intent row is written. If the gateway call
fails afterwards the pending intent is left in place and simply expires.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import timedelta

from libs.common.config import get_settings
from libs.common.currency import rupees_to_paise
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from libs.common.service_client import ServiceCallError
from services.payments_service.catalog_client import CatalogClient
from services.payments_service.errors import (
    AlreadyEnrolled,
    GatewayCommunicationError,
    InactiveEntity,
    InvalidPrice,
    NotFound,
    PersistenceError,
)
from services.payments_service.models import PaymentIntent, PaymentStatus, ProductType
from services.payments_service.products import (
    build_product_snapshot,
    get_rule,
    is_already_enrolled,
    price_product,
)
from services.payments_service.razorpay_client import RazorpayClient, RazorpayError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class CreatedOrder:
    intent: PaymentIntent
    gateway_order_id: str
    amount: int
    currency: str
    gateway_public_key: str
    product_title: str


async def _get_active_student(catalog: CatalogClient, student_id: str) -> dict:
    try:
        student = await catalog.get_student(student_id)
    except ServiceCallError as e:
        raise GatewayCommunicationError(f"Student lookup failed: {e.message}") from e
    if student is None:
        raise NotFound("Student not found")
    # Students must be explicitly active; a missing flag counts as inactive
    if not student.get("is_active"):
        raise InactiveEntity("Student account is inactive")
    return student


async def create_order(
    db: AsyncSession,
    *,
    student_id: str,
    product_type: ProductType,
    product_id: str,
    catalog: CatalogClient,
    gateway: RazorpayClient,
) -> CreatedOrder:
    """
    Price a product for a student and open a gateway order for it.

    Raises:
        NotFound, InactiveEntity, InvalidProductType, CapacityExceeded,
        AlreadyEnrolled, InvalidPrice: before anything is written.
        PersistenceError: the intent could not be saved.
        GatewayCommunicationError: the gateway order could not be created;
            the intent stays pending until it expires.
    """
    settings = get_settings()

    # Reject unsupported types before any remote call
    get_rule(product_type)

    student = await _get_active_student(catalog, student_id)
    try:
        product = await catalog.get_product(product_type, product_id)
    except ServiceCallError as e:
        raise GatewayCommunicationError(f"Product lookup failed: {e.message}") from e

    details = price_product(product_type, product)
    if is_already_enrolled(product_type, details.product, student_id):
        raise AlreadyEnrolled()

    amount = rupees_to_paise(details.price)
    if amount < 1:
        raise InvalidPrice()

    now = utc_now()
    intent = PaymentIntent(
        id=uuid.uuid4(),
        student_id=student_id,
        product_id=product_id,
        product_type=product_type,
        amount=amount,
        currency=settings.PAYMENT_CURRENCY,
        status=PaymentStatus.PENDING,
        product_snapshot=build_product_snapshot(
            product_type, details.product, details.price
        ),
        intent_metadata={
            "student_name": student.get("name"),
            "student_email": student.get("email"),
        },
        expires_at=now + timedelta(minutes=settings.PAYMENT_INTENT_TTL_MINUTES),
    )
    intent.receipt = PaymentIntent.build_receipt(intent.id)

    db.add(intent)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to save payment intent: {e}")
        raise PersistenceError() from e

    try:
        order = await gateway.create_order(
            amount=amount,
            currency=intent.currency,
            receipt=intent.receipt,
            notes={
                "payment_intent_id": str(intent.id),
                "student_id": student_id,
                "product_id": product_id,
                "product_type": product_type.value,
            },
        )
    except RazorpayError as e:
        logger.error(
            f"Gateway order creation failed for intent {intent.id}: {e.message}",
            extra={"extra_fields": {"response": e.response_data}},
        )
        raise GatewayCommunicationError("Unable to create payment order") from e

    intent.gateway_order_id = order.id
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to store gateway order {order.id}: {e}")
        raise PersistenceError() from e

    logger.info(
        f"Created payment order {order.id} for intent {intent.id}",
        extra={
            "extra_fields": {
                "intent_id": str(intent.id),
                "student_id": student_id,
                "product_type": product_type.value,
                "product_id": product_id,
                "amount": amount,
            }
        },
    )

    return CreatedOrder(
        intent=intent,
        gateway_order_id=order.id,
        amount=order.amount,
        currency=order.currency,
        gateway_public_key=settings.RAZORPAY_KEY_ID,
        product_title=details.product.get("title") or "",
    )
