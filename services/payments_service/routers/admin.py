"""Admin endpoints: enrollment replay and revenue reporting."""

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.payments_service.catalog_client import CatalogClient
from services.payments_service.dependencies import get_catalog_client
from services.payments_service.errors import (
    BusinessRuleViolation,
    NotFound,
    SettlementConflict,
)
from services.payments_service.models import PaymentIntent, PaymentStatus
from services.payments_service.schemas import (
    PaymentIntentResponse,
    RevenueMonth,
    RevenueSummary,
    RevenueTransactionPage,
)
from services.payments_service.services.reporting import (
    DEFAULT_PAGE_SIZE,
    parse_product_types,
    parse_statuses,
    revenue_by_month,
    revenue_summary,
    revenue_transactions,
)
from services.payments_service.services.settlement import (
    apply_enrollment,
    claim_enrollment_attempt,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/payments/admin", tags=["admin-payments"])
logger = get_logger(__name__)


@router.post(
    "/intents/{intent_id}/replay-enrollment", response_model=PaymentIntentResponse
)
async def replay_enrollment(
    intent_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
    catalog: CatalogClient = Depends(get_catalog_client),
):
    """
    Retry enrollment for a succeeded intent whose enrollment never applied.

    Ignores the automatic retry budget; the claim still prevents a concurrent
    worker from enrolling at the same time.
    """
    intent = await db.get(PaymentIntent, intent_id)
    if not intent:
        raise NotFound("Payment intent not found")
    if intent.status != PaymentStatus.SUCCEEDED:
        raise BusinessRuleViolation(
            f"Cannot replay enrollment for intent with status: {intent.status.value}"
        )
    if intent.enrollment_applied_at is not None:
        return intent

    if not await claim_enrollment_attempt(db, intent):
        raise SettlementConflict("Enrollment is already being applied")

    logger.info(
        f"Admin {admin.user_id} replaying enrollment for intent {intent.id}",
        extra={"extra_fields": {"attempt": intent.enrollment_attempts}},
    )
    await apply_enrollment(db, intent, catalog)
    return intent


@router.get("/reports/revenue", response_model=RevenueSummary)
async def get_revenue_report(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    product_type: Optional[str] = None,
    search: Optional[str] = None,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Revenue totals, optionally limited to [start, end).

    ``product_type`` takes a comma-separated list, e.g. ``course,webinar``.
    """
    return await revenue_summary(
        db,
        start=start,
        end=end,
        product_types=parse_product_types(product_type),
        search=search,
    )


@router.get("/reports/revenue/by-month", response_model=list[RevenueMonth])
async def get_revenue_by_month(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    product_type: Optional[str] = None,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Succeeded revenue per month; the last twelve months by default."""
    return await revenue_by_month(
        db, start=start, end=end, product_types=parse_product_types(product_type)
    )


@router.get("/reports/revenue/transactions", response_model=RevenueTransactionPage)
async def list_revenue_transactions(
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    status: Optional[str] = None,
    product_type: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    search: Optional[str] = None,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Paginated intents behind the revenue figures, newest first.

    ``status`` defaults to succeeded; pass ``all`` or a comma-separated list.
    ``search`` matches student name or email, product title, receipt and the
    gateway payment and order ids.
    """
    return await revenue_transactions(
        db,
        page=page,
        page_size=page_size,
        statuses=parse_statuses(status),
        product_types=parse_product_types(product_type),
        start=start,
        end=end,
        search=search,
    )
