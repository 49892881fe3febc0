"""Razorpay webhook receiver for payment and payout events."""

from fastapi import APIRouter, Depends, Request
from libs.common.config import get_settings
from libs.common.emails.client import EmailClient
from libs.common.logging import get_logger
from libs.common.rate_limit import webhook_limit
from libs.db.session import get_async_db
from services.payments_service.catalog_client import CatalogClient
from services.payments_service.dependencies import (
    get_catalog_client,
    get_email_client,
)
from services.payments_service.errors import (
    NotFound,
    RequestValidationFailed,
    SignatureMismatch,
)
from services.payments_service.events import (
    InvalidEnvelope,
    PayoutFailed,
    PayoutProcessed,
    PayoutReversed,
    UnknownEvent,
    parse_event,
)
from services.payments_service.models import PaymentIntent
from services.payments_service.schemas import WebhookAck
from services.payments_service.services.payouts import reconcile_payout_event
from services.payments_service.services.settlement import apply_payment_event
from services.payments_service.signatures import Rejected, verify_webhook_signature
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/payments", tags=["payments"])
logger = get_logger(__name__)

SIGNATURE_HEADER = "X-Razorpay-Signature"


@router.post("/webhook", response_model=WebhookAck)
@webhook_limit
async def razorpay_webhook(
    request: Request,
    db: AsyncSession = Depends(get_async_db),
    catalog: CatalogClient = Depends(get_catalog_client),
    email_client: EmailClient = Depends(get_email_client),
):
    """
    Razorpay webhook endpoint (no auth; verified by X-Razorpay-Signature).

    The body is decoded only from the bytes that were verified.
    """
    raw = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature:
        raise SignatureMismatch("Missing signature")

    check = verify_webhook_signature(
        raw_body=raw,
        signature=signature,
        webhook_secret=get_settings().RAZORPAY_WEBHOOK_SECRET,
    )
    if isinstance(check, Rejected):
        logger.warning(f"Webhook rejected: {check.reason}")
        raise SignatureMismatch("Invalid webhook signature")

    try:
        event = parse_event(raw)
    except InvalidEnvelope as e:
        logger.warning(f"Unparsable webhook body: {e}")
        raise RequestValidationFailed("Invalid webhook payload") from e

    if isinstance(event, (PayoutProcessed, PayoutFailed, PayoutReversed)):
        payout = await reconcile_payout_event(db, event, catalog, email_client)
        return WebhookAck(status=payout.status.value if payout else None)

    if isinstance(event, UnknownEvent) and event.event.startswith("payout."):
        logger.info(f"Ignoring payout webhook {event.event}")
        return WebhookAck()

    if not event.order_id:
        raise RequestValidationFailed("Order ID missing in payload")

    result = await db.execute(
        select(PaymentIntent).where(PaymentIntent.gateway_order_id == event.order_id)
    )
    intent = result.scalar_one_or_none()
    if not intent:
        # May belong to another environment sharing the gateway account
        logger.warning(
            f"Webhook {event.event} for unknown order",
            extra={"extra_fields": {"gateway_order_id": event.order_id}},
        )
        raise NotFound("Payment intent not found for order")

    if isinstance(event, UnknownEvent):
        logger.info(
            f"Recording unhandled webhook event {event.event} for intent {intent.id}"
        )

    await apply_payment_event(db, intent, event, catalog)
    return WebhookAck(status=intent.status.value, intent_id=intent.id)
