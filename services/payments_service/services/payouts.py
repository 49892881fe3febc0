"""
Educator payout initiation and webhook reconciliation.

Payout rows are keyed by ``payout_check_id``, which is sent to RazorpayX as
the payout ``reference_id`` and comes back on every payout webhook.
"""

from __future__ import annotations

from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.emails.client import EmailClient
from libs.common.emails.payouts import send_payout_invoice_email
from libs.common.logging import get_logger
from libs.common.pdf import generate_payout_invoice_pdf
from libs.common.service_client import ServiceCallError
from services.payments_service.catalog_client import CatalogClient
from services.payments_service.errors import (
    BusinessRuleViolation,
    GatewayCommunicationError,
    NotFound,
    PersistenceError,
)
from services.payments_service.events import (
    PayoutEvent,
    PayoutFailed,
    PayoutProcessed,
    PayoutReversed,
)
from services.payments_service.models import Payout, PayoutStatus
from services.payments_service.razorpay_client import RazorpayClient, RazorpayError
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def _guarded_update(db: AsyncSession, payout: Payout, where, values: dict) -> bool:
    stmt = (
        update(Payout)
        .where(Payout.id == payout.id, where)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    try:
        result = await db.execute(stmt)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Payout update failed for {payout.payout_check_id}: {e}")
        raise PersistenceError("Failed to update payout") from e
    await db.refresh(payout)
    return result.rowcount == 1


async def get_payout_by_check_id(
    db: AsyncSession, payout_check_id: str
) -> Optional[Payout]:
    result = await db.execute(
        select(Payout).where(Payout.payout_check_id == payout_check_id)
    )
    return result.scalar_one_or_none()


async def deliver_invoice(
    payout: Payout, catalog: CatalogClient, email_client: EmailClient
) -> bool:
    """
    Render the payout invoice and email it to the educator.

    Best effort: the transfer has already happened, so any failure here is
    logged and reported as False, never raised.
    """
    try:
        educator = await catalog.get_educator(payout.educator_id)
    except ServiceCallError as e:
        logger.error(f"Invoice skipped for payout {payout.payout_check_id}: {e}")
        return False

    if not educator or not educator.get("email"):
        logger.warning(
            f"Invoice skipped for payout {payout.payout_check_id}: no educator email",
            extra={"extra_fields": {"educator_id": payout.educator_id}},
        )
        return False

    try:
        pdf_bytes = generate_payout_invoice_pdf(
            invoice_number=payout.payout_check_id,
            educator_name=educator.get("name") or "",
            educator_email=educator.get("email"),
            period_label=payout.period_label,
            status=payout.status.value,
            gross_amount=payout.gross_amount,
            commission_amount=payout.commission_amount,
            net_amount=payout.amount,
            currency=payout.currency,
            gateway_payout_id=payout.gateway_payout_id,
            narration=payout.narration,
            invoice_date=payout.paid_at,
        )
        sent = await send_payout_invoice_email(
            email_client,
            to_email=educator["email"],
            educator_name=educator.get("name"),
            invoice_number=payout.payout_check_id,
            net_amount=payout.amount,
            currency=payout.currency,
            pdf_bytes=pdf_bytes,
        )
    except Exception as e:
        logger.error(
            f"Invoice delivery failed for payout {payout.payout_check_id}: {e}",
            exc_info=True,
        )
        return False

    if not sent:
        logger.warning(f"Invoice email not accepted for payout {payout.payout_check_id}")
    return sent


async def reconcile_payout_event(
    db: AsyncSession,
    event: PayoutEvent,
    catalog: CatalogClient,
    email_client: EmailClient,
) -> Optional[Payout]:
    """
    Apply a payout webhook.

    Returns None when no payout matches the reference id; the caller still
    acknowledges the webhook so the gateway stops retrying.
    """
    payout = None
    if event.reference_id:
        payout = await get_payout_by_check_id(db, event.reference_id)
    if payout is None:
        logger.warning(
            f"Payout webhook {event.event} for unknown reference",
            extra={
                "extra_fields": {
                    "reference_id": event.reference_id,
                    "gateway_payout_id": event.gateway_payout_id,
                }
            },
        )
        return None

    if isinstance(event, PayoutProcessed):
        values = {"status": PayoutStatus.PAID, "paid_at": utc_now()}
        if event.gateway_payout_id:
            values["gateway_payout_id"] = event.gateway_payout_id
        moved = await _guarded_update(
            db,
            payout,
            Payout.status.not_in([PayoutStatus.PAID, PayoutStatus.REVERSED]),
            values,
        )
        if moved:
            logger.info(f"Payout {payout.payout_check_id} marked paid")
            await deliver_invoice(payout, catalog, email_client)

    elif isinstance(event, PayoutFailed):
        values = {"status": PayoutStatus.FAILED, "failure_reason": event.failure_reason}
        if event.gateway_payout_id:
            values["gateway_payout_id"] = event.gateway_payout_id
        moved = await _guarded_update(
            db,
            payout,
            Payout.status.in_([PayoutStatus.PENDING, PayoutStatus.PROCESSING]),
            values,
        )
        if moved:
            logger.warning(
                f"Payout {payout.payout_check_id} failed: {event.failure_reason}"
            )

    elif isinstance(event, PayoutReversed):
        moved = await _guarded_update(
            db,
            payout,
            Payout.status != PayoutStatus.REVERSED,
            {"status": PayoutStatus.REVERSED},
        )
        if moved:
            logger.warning(f"Payout {payout.payout_check_id} reversed")

    else:
        moved = False

    if not moved:
        logger.info(
            f"Payout webhook {event.event} for {payout.payout_check_id} had no effect "
            f"(status {payout.status.value})"
        )
    return payout


async def initiate_payout(
    db: AsyncSession,
    payout: Payout,
    catalog: CatalogClient,
    gateway: RazorpayClient,
) -> Payout:
    """
    Send a pending or failed payout to RazorpayX.

    The payout moves to ``processing``; the final state arrives by webhook.
    """
    if payout.status not in (PayoutStatus.PENDING, PayoutStatus.FAILED):
        raise BusinessRuleViolation(
            f"Cannot initiate payout with status: {payout.status.value}"
        )

    try:
        educator = await catalog.get_educator(payout.educator_id)
    except ServiceCallError as e:
        raise GatewayCommunicationError(f"Educator lookup failed: {e.message}") from e
    if educator is None:
        raise NotFound("Educator not found")

    fund_account_id = educator.get("fund_account_id")
    if not fund_account_id:
        raise BusinessRuleViolation("Educator has no payout fund account on file")

    try:
        gateway_payout = await gateway.create_payout(
            fund_account_id=fund_account_id,
            amount=payout.amount,
            reference_id=payout.payout_check_id,
            currency=payout.currency,
            narration=payout.narration,
            notes={"educator_id": payout.educator_id, "period": payout.period_label},
        )
    except RazorpayError as e:
        logger.error(
            f"RazorpayX payout failed for {payout.payout_check_id}: {e.message}",
            extra={"extra_fields": {"response": e.response_data}},
        )
        raise GatewayCommunicationError(f"Payout failed: {e.message}") from e

    moved = await _guarded_update(
        db,
        payout,
        Payout.status.in_([PayoutStatus.PENDING, PayoutStatus.FAILED]),
        {
            "status": PayoutStatus.PROCESSING,
            "gateway_payout_id": gateway_payout.id,
            "failure_reason": None,
        },
    )
    if not moved:
        # A webhook got there first; keep whatever it wrote.
        logger.info(f"Payout {payout.payout_check_id} advanced before initiation returned")

    logger.info(
        f"Initiated RazorpayX payout for {payout.payout_check_id}",
        extra={
            "extra_fields": {
                "gateway_payout_id": gateway_payout.id,
                "amount": payout.amount,
                "gateway_status": gateway_payout.status,
            }
        },
    )
    return payout
