"""Background fulfillment tasks for the payments service."""

from __future__ import annotations

from datetime import timedelta

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from libs.db.config import AsyncSessionLocal
from services.payments_service.catalog_client import CatalogClient
from services.payments_service.models import PaymentIntent, PaymentStatus
from services.payments_service.services.settlement import (
    MAX_ENROLLMENT_ATTEMPTS,
    apply_enrollment,
    claim_enrollment_attempt,
)
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)

# A succeeded intent with no retry scheduled and no applied enrollment is one
# whose settling request died between the status write and the enrollment call.
ENROLLMENT_GRACE_PERIOD = timedelta(minutes=10)
BATCH_SIZE = 200


async def _due_intents(db: AsyncSession) -> list[PaymentIntent]:
    now = utc_now()
    result = await db.execute(
        select(PaymentIntent)
        .where(
            PaymentIntent.status == PaymentStatus.SUCCEEDED,
            PaymentIntent.enrollment_applied_at.is_(None),
            PaymentIntent.enrollment_attempts < MAX_ENROLLMENT_ATTEMPTS,
            or_(
                PaymentIntent.enrollment_next_retry_at <= now,
                and_(
                    PaymentIntent.enrollment_next_retry_at.is_(None),
                    PaymentIntent.updated_at <= now - ENROLLMENT_GRACE_PERIOD,
                ),
            ),
        )
        .order_by(PaymentIntent.updated_at.asc())
        .limit(BATCH_SIZE)
    )
    return list(result.scalars().all())


async def retry_pending_enrollments(
    catalog: CatalogClient,
    session_factory: async_sessionmaker = AsyncSessionLocal,
) -> int:
    """Retry enrollment for succeeded intents whose enrollment never applied."""
    processed = 0

    async with session_factory() as db:
        for intent in await _due_intents(db):
            if not await claim_enrollment_attempt(db, intent):
                continue
            await apply_enrollment(db, intent, catalog)
            processed += 1

    if processed:
        logger.info("Retried enrollment for %d payment intents", processed)
    return processed
