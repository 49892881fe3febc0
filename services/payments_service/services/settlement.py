"""
Settlement of payment intents.

Every state change is a single conditional UPDATE whose WHERE clause encodes
the allowed source states, so the check and the write happen in one statement.
Whichever caller's UPDATE matches the row owns the side effects; everyone else
sees a row count of zero and re-reads.

Enrollment is tracked on the intent (attempts, applied_at, error,
next_retry_at). A success transition claims the first attempt in the same
statement; later attempts are claimed with ``claim_enrollment_attempt``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from libs.common.datetime_utils import ensure_utc, utc_now
from libs.common.logging import get_logger
from services.payments_service.catalog_client import CatalogClient
from services.payments_service.errors import PersistenceError
from services.payments_service.events import (
    PaymentAuthorized,
    PaymentCaptured,
    PaymentEvent,
    PaymentFailed,
    UnknownEvent,
)
from services.payments_service.models import PaymentIntent, PaymentStatus
from sqlalchemy import and_, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

MAX_ENROLLMENT_ATTEMPTS = 8
BASE_ENROLLMENT_RETRY_MINUTES = 2
DIRECT_VERIFY_EVENT = "payment.verified"


class SettleOutcome(str, enum.Enum):
    APPLIED = "applied"
    ALREADY_SETTLED = "already_settled"
    EXPIRED = "expired"
    NOT_SETTLEABLE = "not_settleable"


@dataclass
class SettleResult:
    outcome: SettleOutcome
    intent: PaymentIntent


def is_expired(intent: PaymentIntent, now: Optional[datetime] = None) -> bool:
    expires_at = ensure_utc(intent.expires_at)
    return expires_at is not None and expires_at <= (now or utc_now())


def _next_retry_time(attempts: int) -> datetime:
    # Exponential backoff capped at 60 minutes.
    delay = min(60, BASE_ENROLLMENT_RETRY_MINUTES * (2 ** max(attempts - 1, 0)))
    return utc_now() + timedelta(minutes=delay)


async def _commit(db: AsyncSession) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to commit payment intent update: {e}")
        raise PersistenceError() from e


async def _conditional_update(
    db: AsyncSession, intent: PaymentIntent, where, values: dict
) -> bool:
    """Run one guarded UPDATE on ``intent``; True if the row matched."""
    stmt = (
        update(PaymentIntent)
        .where(PaymentIntent.id == intent.id, where)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    try:
        result = await db.execute(stmt)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Payment intent update failed for {intent.id}: {e}")
        raise PersistenceError() from e
    await _commit(db)
    await db.refresh(intent)
    return result.rowcount == 1


def _settleable(now: datetime):
    return or_(
        PaymentIntent.status == PaymentStatus.AUTHORIZED,
        and_(
            PaymentIntent.status == PaymentStatus.PENDING,
            or_(PaymentIntent.expires_at.is_(None), PaymentIntent.expires_at > now),
        ),
    )


async def record_event(
    db: AsyncSession,
    intent: PaymentIntent,
    event_name: str,
    error_reason: Optional[str] = None,
) -> PaymentIntent:
    """Record the last gateway event seen for an intent without changing status."""
    values = {"last_event": event_name}
    if error_reason is not None:
        values["error_reason"] = error_reason
    await _conditional_update(db, intent, PaymentIntent.id == intent.id, values)
    return intent


async def apply_enrollment(
    db: AsyncSession, intent: PaymentIntent, catalog: CatalogClient
) -> bool:
    """
    Invoke the enrollment collaborator for an intent whose attempt has been
    claimed, and record the result.

    Enrollment uses the purchase-time snapshot, never the live catalog entry.
    Failures are recorded for the retry worker and never roll back the
    payment status.
    """
    attempts = intent.enrollment_attempts
    try:
        await catalog.enroll_student(
            product_type=intent.product_type,
            product_id=intent.product_id,
            student_id=intent.student_id,
            snapshot=intent.product_snapshot or {},
            intent_id=intent.id,
        )
    except Exception as exc:
        error_message = str(exc) or exc.__class__.__name__
        retry_at = (
            _next_retry_time(attempts) if attempts < MAX_ENROLLMENT_ATTEMPTS else None
        )
        await _conditional_update(
            db,
            intent,
            PaymentIntent.enrollment_applied_at.is_(None),
            {"enrollment_error": error_message, "enrollment_next_retry_at": retry_at},
        )
        logger.warning(
            "Enrollment failed for intent %s (attempt %d/%d): %s",
            intent.id,
            attempts,
            MAX_ENROLLMENT_ATTEMPTS,
            error_message,
            extra={
                "extra_fields": {
                    "intent_id": str(intent.id),
                    "student_id": intent.student_id,
                    "product_id": intent.product_id,
                    "next_retry_at": retry_at.isoformat() if retry_at else None,
                }
            },
        )
        return False

    await _conditional_update(
        db,
        intent,
        PaymentIntent.enrollment_applied_at.is_(None),
        {
            "enrollment_applied_at": utc_now(),
            "enrollment_error": None,
            "enrollment_next_retry_at": None,
        },
    )
    return True


async def claim_enrollment_attempt(db: AsyncSession, intent: PaymentIntent) -> bool:
    """
    Reserve the next enrollment attempt for this caller.

    Guarded on the attempt counter the caller last saw, so two workers racing
    on the same intent cannot both enroll.
    """
    seen_attempts = intent.enrollment_attempts
    return await _conditional_update(
        db,
        intent,
        and_(
            PaymentIntent.status == PaymentStatus.SUCCEEDED,
            PaymentIntent.enrollment_applied_at.is_(None),
            PaymentIntent.enrollment_attempts == seen_attempts,
        ),
        {
            "enrollment_attempts": seen_attempts + 1,
            "enrollment_next_retry_at": None,
        },
    )


async def settle(
    db: AsyncSession,
    intent: PaymentIntent,
    *,
    event_name: str,
    catalog: CatalogClient,
    payment_id: Optional[str] = None,
    signature: Optional[str] = None,
) -> SettleResult:
    """
    Move an intent to ``succeeded`` and enroll the student, at most once.

    Safe to call any number of times from any channel: only the caller whose
    conditional UPDATE matches invokes enrollment.
    """
    if intent.status == PaymentStatus.SUCCEEDED:
        return SettleResult(SettleOutcome.ALREADY_SETTLED, intent)

    now = utc_now()
    values = {
        "status": PaymentStatus.SUCCEEDED,
        "last_event": event_name,
        "enrollment_attempts": PaymentIntent.enrollment_attempts + 1,
    }
    if payment_id:
        values["gateway_payment_id"] = payment_id
    if signature:
        values["gateway_signature"] = signature

    if await _conditional_update(db, intent, _settleable(now), values):
        logger.info(
            f"Payment intent {intent.id} settled via {event_name}",
            extra={
                "extra_fields": {
                    "intent_id": str(intent.id),
                    "gateway_order_id": intent.gateway_order_id,
                    "gateway_payment_id": intent.gateway_payment_id,
                    "event": event_name,
                }
            },
        )
        await apply_enrollment(db, intent, catalog)
        return SettleResult(SettleOutcome.APPLIED, intent)

    if intent.status == PaymentStatus.SUCCEEDED:
        return SettleResult(SettleOutcome.ALREADY_SETTLED, intent)

    if intent.status == PaymentStatus.PENDING and is_expired(intent, now):
        logger.warning(
            f"Late {event_name} for expired payment intent {intent.id}; not settled",
            extra={
                "extra_fields": {
                    "intent_id": str(intent.id),
                    "gateway_payment_id": payment_id,
                }
            },
        )
        await record_event(
            db,
            intent,
            event_name,
            error_reason=(
                f"Success event {event_name} received after expiry "
                f"(payment {payment_id or 'unknown'}); needs manual review"
            ),
        )
        return SettleResult(SettleOutcome.EXPIRED, intent)

    logger.warning(
        f"Ignoring {event_name} for payment intent {intent.id} in status "
        f"{intent.status.value}",
        extra={"extra_fields": {"intent_id": str(intent.id)}},
    )
    await record_event(db, intent, event_name)
    return SettleResult(SettleOutcome.NOT_SETTLEABLE, intent)


async def mark_authorized(
    db: AsyncSession,
    intent: PaymentIntent,
    event_name: str,
    payment_id: Optional[str],
) -> bool:
    """pending -> authorized. No side effects."""
    now = utc_now()
    values = {"status": PaymentStatus.AUTHORIZED, "last_event": event_name}
    if payment_id:
        values["gateway_payment_id"] = payment_id

    moved = await _conditional_update(
        db,
        intent,
        and_(
            PaymentIntent.status == PaymentStatus.PENDING,
            or_(PaymentIntent.expires_at.is_(None), PaymentIntent.expires_at > now),
        ),
        values,
    )
    if not moved:
        await record_event(db, intent, event_name)
    return moved


async def mark_failed(
    db: AsyncSession,
    intent: PaymentIntent,
    event_name: str,
    payment_id: Optional[str],
    reason: str,
) -> bool:
    """{pending, authorized} -> failed, keeping the gateway's description."""
    values = {
        "status": PaymentStatus.FAILED,
        "last_event": event_name,
        "error_reason": reason,
    }
    if payment_id:
        values["gateway_payment_id"] = payment_id

    moved = await _conditional_update(
        db,
        intent,
        PaymentIntent.status.in_([PaymentStatus.PENDING, PaymentStatus.AUTHORIZED]),
        values,
    )
    if moved:
        logger.info(
            f"Payment intent {intent.id} failed: {reason}",
            extra={"extra_fields": {"intent_id": str(intent.id), "event": event_name}},
        )
    else:
        await record_event(db, intent, event_name)
    return moved


async def apply_payment_event(
    db: AsyncSession,
    intent: PaymentIntent,
    event: PaymentEvent | UnknownEvent,
    catalog: CatalogClient,
) -> PaymentIntent:
    """Route a verified webhook event for a known intent."""
    if isinstance(event, PaymentCaptured):
        await settle(
            db,
            intent,
            event_name=event.event,
            payment_id=event.payment_id,
            catalog=catalog,
        )
    elif isinstance(event, PaymentFailed):
        await mark_failed(
            db, intent, event.event, event.payment_id, event.error_description
        )
    elif isinstance(event, PaymentAuthorized):
        await mark_authorized(db, intent, event.event, event.payment_id)
    else:
        await record_event(db, intent, event.event)
    return intent
