import uuid
from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from services.payments_service.models import PaymentStatus, ProductType


class CreateOrderRequest(BaseModel):
    # Accept the checkout widget's camelCase field names as well
    student_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("student_id", "studentId")
    )
    product_type: ProductType = Field(
        ..., validation_alias=AliasChoices("product_type", "productType")
    )
    product_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("product_id", "productId")
    )


class OrderProduct(BaseModel):
    title: str
    type: ProductType


class CreateOrderResponse(BaseModel):
    order_id: str
    amount: int  # in paise
    currency: str
    intent_id: uuid.UUID
    gateway_key: str
    product: OrderProduct


class PaymentIntentResponse(BaseModel):
    id: uuid.UUID
    student_id: str
    product_id: str
    product_type: ProductType
    amount: int  # in paise
    currency: str
    status: PaymentStatus
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    receipt: Optional[str] = None
    product_snapshot: dict
    # Read from the ORM attribute; Base.metadata shadows "metadata"
    metadata: Optional[dict] = Field(default=None, validation_alias="intent_metadata")
    expires_at: Optional[datetime] = None
    error_reason: Optional[str] = None
    last_event: Optional[str] = None
    enrollment_attempts: int = 0
    enrollment_applied_at: Optional[datetime] = None
    enrollment_error: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class VerifyPaymentRequest(BaseModel):
    # Field names as returned by the Razorpay checkout handler are accepted too
    order_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("order_id", "orderId", "razorpay_order_id"),
    )
    payment_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("payment_id", "paymentId", "razorpay_payment_id"),
    )
    signature: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("signature", "razorpay_signature"),
    )
    intent_id: Optional[uuid.UUID] = Field(
        default=None, validation_alias=AliasChoices("intent_id", "intentId")
    )


class VerifyPaymentResponse(BaseModel):
    status: PaymentStatus
    intent_id: uuid.UUID


class WebhookAck(BaseModel):
    received: bool = True
    status: Optional[str] = None
    intent_id: Optional[uuid.UUID] = None


class RevenueByProductType(BaseModel):
    product_type: ProductType
    count: int
    amount: int  # in paise


class RevenueSummary(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    # Succeeded intents only
    total_count: int
    total_amount: int  # in paise
    total_refunded: int
    total_failed: int
    # Every status
    total_transactions: int
    by_product_type: list[RevenueByProductType]


class RevenueMonth(BaseModel):
    year: int
    month: int
    count: int
    amount: int  # in paise


class RevenueTransaction(BaseModel):
    id: uuid.UUID
    date: datetime
    student_name: str
    student_email: str
    product_title: str
    product_type: ProductType
    amount: int  # in paise
    status: PaymentStatus
    payment_id: str
    order_id: str
    receipt: str


class RevenueTransactionPage(BaseModel):
    items: list[RevenueTransaction]
    total: int
    page: int
    page_size: int
    total_pages: int
