import uuid
from datetime import datetime

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.payments_service.models.enums import (
    PaymentStatus,
    PayoutStatus,
    ProductType,
    enum_values,
)
from sqlalchemy import JSON, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Integer, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, validates

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class PaymentIntent(Base):
    """One checkout attempt, from order creation to terminal settlement.

    Rows are never deleted. ``amount`` and ``product_snapshot`` are fixed at
    creation; settlement writes go through column-restricted UPDATEs in
    ``services.settlement`` and never touch them.
    """

    __tablename__ = "payment_intents"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_payment_intents_amount"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    student_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    product_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    product_type: Mapped[ProductType] = mapped_column(
        SAEnum(
            ProductType,
            name="product_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )

    # Minor units (paise)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), default="INR", nullable=False)

    status: Mapped[PaymentStatus] = mapped_column(
        SAEnum(
            PaymentStatus,
            name="payment_intent_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=PaymentStatus.CREATED,
        nullable=False,
        index=True,
    )

    gateway_order_id: Mapped[str | None] = mapped_column(
        String(64), unique=True, index=True, nullable=True
    )
    gateway_payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    gateway_signature: Mapped[str | None] = mapped_column(String(128), nullable=True)
    receipt: Mapped[str | None] = mapped_column(String(64), nullable=True)

    product_snapshot: Mapped[dict] = mapped_column(JSONType, nullable=False)
    # "metadata" is reserved by SQLAlchemy's Declarative API
    intent_metadata: Mapped[dict | None] = mapped_column(
        "metadata", JSONType, nullable=True
    )

    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    error_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_event: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Enrollment fulfillment tracking
    enrollment_attempts: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    enrollment_applied_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    enrollment_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    enrollment_next_retry_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    @validates("amount", "product_snapshot")
    def _write_once(self, key, value):
        current = self.__dict__.get(key)
        if current is not None and current != value:
            raise ValueError(f"PaymentIntent.{key} cannot be changed once set")
        return value

    @staticmethod
    def build_receipt(intent_id: uuid.UUID) -> str:
        # Gateway caps receipts at 40 chars
        return f"rcpt_{intent_id.hex}"[:40]

    def __repr__(self):
        return f"<PaymentIntent {self.id} {self.status.value}>"


class Payout(Base):
    """One scheduled disbursement to an educator.

    Rows are created by the monthly payout calculation job; this service only
    initiates the transfer and reconciles gateway events against
    ``payout_check_id``.
    """

    __tablename__ = "payouts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    educator_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)

    # Minor units (paise)
    gross_amount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    commission_amount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), default="INR", nullable=False)

    status: Mapped[PayoutStatus] = mapped_column(
        SAEnum(
            PayoutStatus,
            name="payout_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=PayoutStatus.PENDING,
        nullable=False,
        index=True,
    )

    gateway_payout_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    scheduled_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    payout_check_id: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, nullable=False
    )
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    narration: Mapped[str] = mapped_column(String(255), default="Payout")
    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    @property
    def period_label(self) -> str:
        return f"{self.year}-{self.month:02d}"

    def __repr__(self):
        return f"<Payout {self.payout_check_id} {self.status.value}>"
