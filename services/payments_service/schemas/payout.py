"""Payout schemas for educator payouts."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from services.payments_service.models import PayoutStatus


class PayoutResponse(BaseModel):
    """Response for an educator payout."""

    id: uuid.UUID
    educator_id: str

    gross_amount: int
    commission_amount: int
    amount: int
    currency: str

    status: PayoutStatus
    gateway_payout_id: Optional[str] = None
    payout_check_id: str
    scheduled_date: Optional[datetime] = None
    month: int
    year: int

    failure_reason: Optional[str] = None
    narration: Optional[str] = None
    paid_at: Optional[datetime] = None

    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PayoutListResponse(BaseModel):
    """Paginated list of payouts."""

    items: list[PayoutResponse]
    total: int
    page: int
    page_size: int


class PayoutSummary(BaseModel):
    """Summary stats for payouts."""

    total_pending: int
    total_processing: int
    total_paid: int
    total_failed: int
    total_reversed: int
    pending_amount: int  # in paise
    paid_amount: int  # in paise
