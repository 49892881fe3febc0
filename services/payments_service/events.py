"""Gateway webhook envelope parsing.

The envelope is decoded once, from the exact bytes whose signature was
verified, into one of the event classes below. Event names the service does
not act on become ``UnknownEvent`` so new gateway events are recorded rather
than rejected.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError

PAYMENT_SUCCESS_EVENTS = {"payment.captured", "order.paid"}


class _Entity(BaseModel):
    model_config = ConfigDict(extra="allow")

    entity: dict[str, Any] = {}


class _Payload(BaseModel):
    model_config = ConfigDict(extra="allow")

    payment: Optional[_Entity] = None
    order: Optional[_Entity] = None
    payout: Optional[_Entity] = None


class WebhookEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    event: str
    payload: _Payload = _Payload()


class InvalidEnvelope(ValueError):
    pass


@dataclass(frozen=True)
class PaymentAuthorized:
    event: str
    order_id: str
    payment_id: Optional[str]


@dataclass(frozen=True)
class PaymentCaptured:
    event: str
    order_id: str
    payment_id: Optional[str]


@dataclass(frozen=True)
class PaymentFailed:
    event: str
    order_id: str
    payment_id: Optional[str]
    error_description: str


@dataclass(frozen=True)
class PayoutProcessed:
    event: str
    reference_id: Optional[str]
    gateway_payout_id: Optional[str]


@dataclass(frozen=True)
class PayoutFailed:
    event: str
    reference_id: Optional[str]
    gateway_payout_id: Optional[str]
    failure_reason: str


@dataclass(frozen=True)
class PayoutReversed:
    event: str
    reference_id: Optional[str]
    gateway_payout_id: Optional[str]


@dataclass(frozen=True)
class UnknownEvent:
    event: str
    order_id: Optional[str]
    raw: dict[str, Any] = field(default_factory=dict)


PaymentEvent = Union[PaymentAuthorized, PaymentCaptured, PaymentFailed]
PayoutEvent = Union[PayoutProcessed, PayoutFailed, PayoutReversed]
GatewayEvent = Union[PaymentEvent, PayoutEvent, UnknownEvent]


def _payout_failure_reason(entity: dict[str, Any]) -> str:
    if entity.get("failure_reason"):
        return str(entity["failure_reason"])
    details = entity.get("status_details") or {}
    if isinstance(details, dict) and details.get("description"):
        return str(details["description"])
    return "Payout failed"


def parse_event(raw_body: bytes) -> GatewayEvent:
    """
    Decode a verified webhook body.

    Raises:
        InvalidEnvelope: body is not a JSON object with an ``event`` name.
    """
    try:
        envelope = WebhookEnvelope.model_validate_json(raw_body)
    except ValidationError as e:
        raise InvalidEnvelope(str(e)) from e

    name = envelope.event
    payment = envelope.payload.payment.entity if envelope.payload.payment else {}
    order = envelope.payload.order.entity if envelope.payload.order else {}

    if name.startswith("payout."):
        payout = envelope.payload.payout.entity if envelope.payload.payout else {}
        reference_id = payout.get("reference_id")
        gateway_payout_id = payout.get("id")
        if name == "payout.processed":
            return PayoutProcessed(name, reference_id, gateway_payout_id)
        if name == "payout.failed":
            return PayoutFailed(
                name, reference_id, gateway_payout_id, _payout_failure_reason(payout)
            )
        if name == "payout.reversed":
            return PayoutReversed(name, reference_id, gateway_payout_id)
        return UnknownEvent(name, None, envelope.model_dump())

    order_id = payment.get("order_id") or order.get("id")
    payment_id = payment.get("id")
    payment_status = payment.get("status")

    if order_id:
        if name in PAYMENT_SUCCESS_EVENTS or payment_status == "captured":
            return PaymentCaptured(name, order_id, payment_id)
        if name == "payment.failed" or payment_status == "failed":
            return PaymentFailed(
                name,
                order_id,
                payment_id,
                payment.get("error_description") or "Payment failed",
            )
        if name == "payment.authorized":
            return PaymentAuthorized(name, order_id, payment_id)

    return UnknownEvent(name, order_id, envelope.model_dump())
