"""Payout API routes for educator payout management."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import require_admin, require_educator
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.payments_service.catalog_client import CatalogClient
from services.payments_service.dependencies import (
    get_catalog_client,
    get_razorpay_client,
)
from services.payments_service.errors import NotFound
from services.payments_service.models import Payout, PayoutStatus
from services.payments_service.razorpay_client import RazorpayClient
from services.payments_service.schemas import (
    PayoutListResponse,
    PayoutResponse,
    PayoutSummary,
)
from services.payments_service.services.payouts import initiate_payout
from services.payments_service.services.reporting import payout_summary
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

# Admin router for payout management
admin_router = APIRouter(prefix="/payments/admin/payouts", tags=["admin-payouts"])

# Educator router for viewing own payouts
educator_router = APIRouter(
    prefix="/payments/educators/me/payouts", tags=["educator-payouts"]
)


async def _list_payouts(
    db: AsyncSession,
    *,
    educator_id: Optional[str],
    status: Optional[PayoutStatus],
    month: Optional[int],
    year: Optional[int],
    page: int,
    page_size: int,
) -> PayoutListResponse:
    query = select(Payout)
    if educator_id:
        query = query.where(Payout.educator_id == educator_id)
    if status:
        query = query.where(Payout.status == status)
    if month:
        query = query.where(Payout.month == month)
    if year:
        query = query.where(Payout.year == year)

    # Count total
    total = await db.scalar(select(func.count()).select_from(query.subquery())) or 0

    query = query.order_by(Payout.year.desc(), Payout.month.desc(), Payout.created_at.desc())
    query = query.offset((page - 1) * page_size).limit(page_size)
    payouts = (await db.execute(query)).scalars().all()

    return PayoutListResponse(
        items=[PayoutResponse.model_validate(p) for p in payouts],
        total=total,
        page=page,
        page_size=page_size,
    )


# =============================================================================
# Admin Endpoints
# =============================================================================


@admin_router.get("", response_model=PayoutListResponse)
async def list_payouts(
    status: Optional[PayoutStatus] = None,
    educator_id: Optional[str] = None,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=2000),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """List all payouts with optional filters."""
    return await _list_payouts(
        db,
        educator_id=educator_id,
        status=status,
        month=month,
        year=year,
        page=page,
        page_size=page_size,
    )


@admin_router.get("/summary", response_model=PayoutSummary)
async def get_payout_summary(
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Get summary stats for all payouts."""
    return await payout_summary(db)


@admin_router.post("/{payout_id}/process", response_model=PayoutResponse)
async def process_payout(
    payout_id: UUID,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
    catalog: CatalogClient = Depends(get_catalog_client),
    gateway: RazorpayClient = Depends(get_razorpay_client),
):
    """
    Initiate a RazorpayX transfer for a pending or failed payout.

    Requires the educator to have a fund account registered with RazorpayX.
    """
    payout = await db.get(Payout, payout_id)
    if not payout:
        raise NotFound("Payout not found")

    payout = await initiate_payout(db, payout, catalog, gateway)
    logger.info(f"Payout {payout.payout_check_id} processed by {admin.user_id}")
    return payout


# =============================================================================
# Educator Endpoints
# =============================================================================


@educator_router.get("", response_model=PayoutListResponse)
async def get_my_payouts(
    status: Optional[PayoutStatus] = None,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=2000),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    educator: AuthUser = Depends(require_educator),
    db: AsyncSession = Depends(get_async_db),
):
    """Get the current educator's payouts."""
    return await _list_payouts(
        db,
        educator_id=educator.user_id,
        status=status,
        month=month,
        year=year,
        page=page,
        page_size=page_size,
    )
