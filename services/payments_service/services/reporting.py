"""Read-only aggregates over the intent and payout ledgers.

Revenue readers share one filter set: a comma-separated status list ("all"
for no status filter), a comma-separated product type list, a [start, end)
window on ``created_at`` and a case-insensitive text search. Amounts are
in paise throughout.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Optional

from libs.common.datetime_utils import utc_now
from services.payments_service.errors import (
    InvalidProductType,
    RequestValidationFailed,
)
from services.payments_service.models import (
    PaymentIntent,
    PaymentStatus,
    Payout,
    PayoutStatus,
    ProductType,
)
from sqlalchemy import Select, case, extract, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
MONTHS_IN_DEFAULT_WINDOW = 12


def _split(value: Optional[str]) -> list[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


def parse_product_types(value: Optional[str]) -> list[ProductType]:
    """Parse a comma-separated product type filter; empty means every type."""
    types = []
    for raw in _split(value):
        try:
            types.append(ProductType(raw))
        except ValueError:
            raise InvalidProductType(f"Unsupported product type: {raw}") from None
    return types


def parse_statuses(value: Optional[str]) -> list[PaymentStatus]:
    """
    Parse a comma-separated status filter.

    Nothing given means succeeded only; "all" means no status filter and
    returns an empty list.
    """
    if not value or not value.strip():
        return [PaymentStatus.SUCCEEDED]
    if value.strip() == "all":
        return []
    statuses = []
    for raw in _split(value):
        try:
            statuses.append(PaymentStatus(raw))
        except ValueError:
            raise RequestValidationFailed(f"Unsupported status: {raw}") from None
    return statuses


def _filtered(
    query: Select,
    *,
    statuses: Optional[list[PaymentStatus]] = None,
    product_types: Optional[list[ProductType]] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    search: Optional[str] = None,
) -> Select:
    if statuses:
        query = query.where(PaymentIntent.status.in_(statuses))
    if product_types:
        query = query.where(PaymentIntent.product_type.in_(product_types))
    if start:
        query = query.where(PaymentIntent.created_at >= start)
    if end:
        query = query.where(PaymentIntent.created_at < end)
    term = (search or "").strip()
    if term:
        query = query.where(
            or_(
                *(
                    column.icontains(term, autoescape=True)
                    for column in (
                        PaymentIntent.intent_metadata["student_name"].as_string(),
                        PaymentIntent.intent_metadata["student_email"].as_string(),
                        PaymentIntent.product_snapshot["title"].as_string(),
                        PaymentIntent.receipt,
                        PaymentIntent.gateway_payment_id,
                        PaymentIntent.gateway_order_id,
                    )
                )
            )
        )
    return query


def _month_start(moment: datetime, months_back: int) -> datetime:
    index = moment.year * 12 + (moment.month - 1) - months_back
    return datetime(index // 12, index % 12 + 1, 1, tzinfo=timezone.utc)


async def revenue_summary(
    db: AsyncSession,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    product_types: Optional[list[ProductType]] = None,
    search: Optional[str] = None,
) -> dict:
    """
    Succeeded totals per product type, plus refunded and failed totals and
    the transaction count across every status.
    """
    filters = dict(product_types=product_types, start=start, end=end, search=search)

    by_type_query = _filtered(
        select(
            PaymentIntent.product_type,
            func.count(PaymentIntent.id),
            func.coalesce(func.sum(PaymentIntent.amount), 0),
        ),
        statuses=[PaymentStatus.SUCCEEDED],
        **filters,
    ).group_by(PaymentIntent.product_type)
    rows = (await db.execute(by_type_query)).all()
    by_type = [
        {"product_type": product_type, "count": count, "amount": int(amount)}
        for product_type, count, amount in rows
    ]

    def _amount_when(status: PaymentStatus):
        return func.coalesce(
            func.sum(
                case((PaymentIntent.status == status, PaymentIntent.amount), else_=0)
            ),
            0,
        )

    transactions, refunded, failed = (
        await db.execute(
            _filtered(
                select(
                    func.count(PaymentIntent.id),
                    _amount_when(PaymentStatus.REFUNDED),
                    _amount_when(PaymentStatus.FAILED),
                ),
                **filters,
            )
        )
    ).one()

    return {
        "start": start,
        "end": end,
        "total_count": sum(row["count"] for row in by_type),
        "total_amount": sum(row["amount"] for row in by_type),
        "total_refunded": int(refunded),
        "total_failed": int(failed),
        "total_transactions": transactions,
        "by_product_type": by_type,
    }


async def revenue_by_month(
    db: AsyncSession,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    product_types: Optional[list[ProductType]] = None,
) -> list[dict]:
    """
    Succeeded revenue grouped by calendar month (UTC), oldest first.

    Without ``start`` the window opens on the first day of the month eleven
    months before ``end`` (or now), which covers twelve calendar months.
    """
    if start is None:
        start = _month_start(end or utc_now(), MONTHS_IN_DEFAULT_WINDOW - 1)

    year = extract("year", PaymentIntent.created_at)
    month = extract("month", PaymentIntent.created_at)
    query = _filtered(
        select(
            year,
            month,
            func.count(PaymentIntent.id),
            func.coalesce(func.sum(PaymentIntent.amount), 0),
        ),
        statuses=[PaymentStatus.SUCCEEDED],
        product_types=product_types,
        start=start,
        end=end,
    )
    query = query.group_by(year, month).order_by(year, month)

    rows = (await db.execute(query)).all()
    return [
        {"year": int(y), "month": int(m), "count": count, "amount": int(amount)}
        for y, m, count, amount in rows
    ]


def _transaction_row(intent: PaymentIntent) -> dict:
    metadata = intent.intent_metadata or {}
    snapshot = intent.product_snapshot or {}
    return {
        "id": intent.id,
        "date": intent.created_at,
        "student_name": metadata.get("student_name") or "Unknown",
        "student_email": metadata.get("student_email") or "",
        "product_title": snapshot.get("title") or "Untitled",
        "product_type": intent.product_type,
        "amount": intent.amount,
        "status": intent.status,
        "payment_id": intent.gateway_payment_id or "",
        "order_id": intent.gateway_order_id or "",
        "receipt": intent.receipt or "",
    }


async def revenue_transactions(
    db: AsyncSession,
    *,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    statuses: Optional[list[PaymentStatus]] = None,
    product_types: Optional[list[ProductType]] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    search: Optional[str] = None,
) -> dict:
    """Newest-first page of intents. Out-of-range paging values are clamped."""
    page = max(page, 1)
    page_size = min(max(page_size, 1), MAX_PAGE_SIZE)

    query = _filtered(
        select(PaymentIntent),
        statuses=statuses,
        product_types=product_types,
        start=start,
        end=end,
        search=search,
    )
    total = await db.scalar(select(func.count()).select_from(query.subquery())) or 0

    query = query.order_by(PaymentIntent.created_at.desc())
    query = query.offset((page - 1) * page_size).limit(page_size)
    intents = (await db.execute(query)).scalars().all()

    return {
        "items": [_transaction_row(intent) for intent in intents],
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": math.ceil(total / page_size) or 1,
    }


async def payout_summary(db: AsyncSession) -> dict:
    """Counts per status plus outstanding and paid amounts."""
    rows = (
        await db.execute(
            select(
                Payout.status,
                func.count(Payout.id),
                func.coalesce(func.sum(Payout.amount), 0),
            ).group_by(Payout.status)
        )
    ).all()
    counts = {status: 0 for status in PayoutStatus}
    amounts = {status: 0 for status in PayoutStatus}
    for status, count, amount in rows:
        counts[status] = count
        amounts[status] = int(amount)

    return {
        "total_pending": counts[PayoutStatus.PENDING],
        "total_processing": counts[PayoutStatus.PROCESSING],
        "total_paid": counts[PayoutStatus.PAID],
        "total_failed": counts[PayoutStatus.FAILED],
        "total_reversed": counts[PayoutStatus.REVERSED],
        "pending_amount": amounts[PayoutStatus.PENDING]
        + amounts[PayoutStatus.PROCESSING],
        "paid_amount": amounts[PayoutStatus.PAID],
    }
