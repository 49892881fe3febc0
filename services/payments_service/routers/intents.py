"""Checkout endpoints: order creation, status lookup and direct verification."""

import uuid

from fastapi import APIRouter, Depends, status
from libs.common.config import get_settings
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.payments_service.catalog_client import CatalogClient
from services.payments_service.dependencies import (
    get_catalog_client,
    get_razorpay_client,
)
from services.payments_service.errors import (
    NotFound,
    OrderMismatch,
    SettlementConflict,
    SignatureMismatch,
)
from services.payments_service.models import PaymentIntent
from services.payments_service.razorpay_client import RazorpayClient
from services.payments_service.schemas import (
    CreateOrderRequest,
    CreateOrderResponse,
    OrderProduct,
    PaymentIntentResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from services.payments_service.services.orders import create_order
from services.payments_service.services.settlement import (
    DIRECT_VERIFY_EVENT,
    SettleOutcome,
    settle,
)
from services.payments_service.signatures import Rejected, verify_payment_signature
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/payments", tags=["payments"])
logger = get_logger(__name__)


async def _get_intent_or_404(db: AsyncSession, intent_id: uuid.UUID) -> PaymentIntent:
    intent = await db.get(PaymentIntent, intent_id)
    if not intent:
        raise NotFound("Payment intent not found")
    return intent


@router.post(
    "/create-order",
    response_model=CreateOrderResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_payment_order(
    payload: CreateOrderRequest,
    db: AsyncSession = Depends(get_async_db),
    catalog: CatalogClient = Depends(get_catalog_client),
    gateway: RazorpayClient = Depends(get_razorpay_client),
):
    """
    Price the product, open a payment intent and a gateway order for it.

    The price always comes from the catalog, never from the request.
    """
    order = await create_order(
        db,
        student_id=payload.student_id,
        product_type=payload.product_type,
        product_id=payload.product_id,
        catalog=catalog,
        gateway=gateway,
    )
    return CreateOrderResponse(
        order_id=order.gateway_order_id,
        amount=order.amount,
        currency=order.currency,
        intent_id=order.intent.id,
        gateway_key=order.gateway_public_key,
        product=OrderProduct(title=order.product_title, type=payload.product_type),
    )


@router.get("/payment-status/{intent_id}", response_model=PaymentIntentResponse)
async def get_payment_status(
    intent_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_db),
):
    return await _get_intent_or_404(db, intent_id)


@router.post("/verify", response_model=VerifyPaymentResponse)
async def verify_payment(
    payload: VerifyPaymentRequest,
    db: AsyncSession = Depends(get_async_db),
    catalog: CatalogClient = Depends(get_catalog_client),
):
    """
    Confirm a checkout from the client side.

    Re-verifying a payment that has already succeeded returns success without
    enrolling again.
    """
    check = verify_payment_signature(
        order_id=payload.order_id,
        payment_id=payload.payment_id,
        signature=payload.signature,
        key_secret=get_settings().RAZORPAY_KEY_SECRET,
    )
    if isinstance(check, Rejected):
        logger.warning(
            f"Payment verification rejected: {check.reason}",
            extra={
                "extra_fields": {
                    "gateway_order_id": payload.order_id,
                    "gateway_payment_id": payload.payment_id,
                }
            },
        )
        raise SignatureMismatch()

    if payload.intent_id:
        intent = await _get_intent_or_404(db, payload.intent_id)
    else:
        result = await db.execute(
            select(PaymentIntent).where(
                PaymentIntent.gateway_order_id == payload.order_id
            )
        )
        intent = result.scalar_one_or_none()
        if not intent:
            raise NotFound("Payment intent not found")

    if intent.gateway_order_id != payload.order_id:
        raise OrderMismatch()

    result = await settle(
        db,
        intent,
        event_name=DIRECT_VERIFY_EVENT,
        payment_id=payload.payment_id,
        signature=payload.signature,
        catalog=catalog,
    )
    if result.outcome == SettleOutcome.EXPIRED:
        raise SettlementConflict("Payment intent has expired")
    if result.outcome == SettleOutcome.NOT_SETTLEABLE:
        raise SettlementConflict(
            f"Payment intent cannot be settled from status: {intent.status.value}"
        )

    return VerifyPaymentResponse(status=intent.status, intent_id=intent.id)
