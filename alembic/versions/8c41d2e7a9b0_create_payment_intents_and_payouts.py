"""create payment intents and payouts

Revision ID: 8c41d2e7a9b0
Revises:
Create Date: 2026-10-16 09:12:40.118207
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "8c41d2e7a9b0"
down_revision = None
branch_labels = None
depends_on = None


product_type_enum = sa.Enum(
    "course",
    "testSeries",
    "webinar",
    "test",
    "liveClass",
    name="product_type_enum",
)
payment_intent_status_enum = sa.Enum(
    "created",
    "pending",
    "authorized",
    "succeeded",
    "failed",
    "refunded",
    "cancelled",
    name="payment_intent_status_enum",
)
payout_status_enum = sa.Enum(
    "pending",
    "processing",
    "paid",
    "failed",
    "reversed",
    name="payout_status_enum",
)


def upgrade() -> None:
    op.create_table(
        "payment_intents",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("student_id", sa.String(length=64), nullable=False),
        sa.Column("product_id", sa.String(length=64), nullable=False),
        sa.Column("product_type", product_type_enum, nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("status", payment_intent_status_enum, nullable=False),
        sa.Column("gateway_order_id", sa.String(length=64), nullable=True),
        sa.Column("gateway_payment_id", sa.String(length=64), nullable=True),
        sa.Column("gateway_signature", sa.String(length=128), nullable=True),
        sa.Column("receipt", sa.String(length=64), nullable=True),
        sa.Column(
            "product_snapshot",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
        ),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_reason", sa.Text(), nullable=True),
        sa.Column("last_event", sa.String(length=64), nullable=True),
        sa.Column(
            "enrollment_attempts", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("enrollment_applied_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("enrollment_error", sa.Text(), nullable=True),
        sa.Column(
            "enrollment_next_retry_at", sa.DateTime(timezone=True), nullable=True
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("amount > 0", name="ck_payment_intents_amount"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_payment_intents_student_id", "payment_intents", ["student_id"]
    )
    op.create_index(
        "ix_payment_intents_product_id", "payment_intents", ["product_id"]
    )
    op.create_index("ix_payment_intents_status", "payment_intents", ["status"])
    op.create_index(
        "ix_payment_intents_gateway_order_id",
        "payment_intents",
        ["gateway_order_id"],
        unique=True,
    )

    op.create_table(
        "payouts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("educator_id", sa.String(length=64), nullable=False),
        sa.Column("gross_amount", sa.Integer(), nullable=False),
        sa.Column("commission_amount", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("status", payout_status_enum, nullable=False),
        sa.Column("gateway_payout_id", sa.String(length=64), nullable=True),
        sa.Column("scheduled_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payout_check_id", sa.String(length=64), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("narration", sa.String(length=255), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_payouts_educator_id", "payouts", ["educator_id"])
    op.create_index("ix_payouts_status", "payouts", ["status"])
    op.create_index(
        "ix_payouts_payout_check_id", "payouts", ["payout_check_id"], unique=True
    )


def downgrade() -> None:
    op.drop_index("ix_payouts_payout_check_id", table_name="payouts")
    op.drop_index("ix_payouts_status", table_name="payouts")
    op.drop_index("ix_payouts_educator_id", table_name="payouts")
    op.drop_table("payouts")

    op.drop_index("ix_payment_intents_gateway_order_id", table_name="payment_intents")
    op.drop_index("ix_payment_intents_status", table_name="payment_intents")
    op.drop_index("ix_payment_intents_product_id", table_name="payment_intents")
    op.drop_index("ix_payment_intents_student_id", table_name="payment_intents")
    op.drop_table("payment_intents")

    payout_status_enum.drop(op.get_bind(), checkfirst=True)
    payment_intent_status_enum.drop(op.get_bind(), checkfirst=True)
    product_type_enum.drop(op.get_bind(), checkfirst=True)
