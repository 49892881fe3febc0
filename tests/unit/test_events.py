"""Unit tests for webhook envelope parsing."""

import json

import pytest
from services.payments_service.events import (
    InvalidEnvelope,
    PaymentAuthorized,
    PaymentCaptured,
    PaymentFailed,
    PayoutFailed,
    PayoutProcessed,
    PayoutReversed,
    UnknownEvent,
    parse_event,
)
from tests.factories import order_paid_webhook, payment_webhook, payout_webhook


@pytest.mark.unit
def test_payment_captured():
    event = parse_event(payment_webhook("payment.captured", "order_1", "pay_1"))

    assert event == PaymentCaptured("payment.captured", "order_1", "pay_1")


@pytest.mark.unit
def test_order_paid_uses_order_entity_id():
    event = parse_event(order_paid_webhook("order_2"))

    assert isinstance(event, PaymentCaptured)
    assert event.order_id == "order_2"
    assert event.payment_id is None


@pytest.mark.unit
def test_captured_status_counts_as_success_for_any_event_name():
    event = parse_event(
        payment_webhook("payment.updated", "order_3", "pay_3", status="captured")
    )

    assert isinstance(event, PaymentCaptured)
    assert event.event == "payment.updated"


@pytest.mark.unit
def test_payment_failed_keeps_gateway_description():
    event = parse_event(
        payment_webhook(
            "payment.failed",
            "order_4",
            "pay_4",
            status="failed",
            error_description="Card declined by issuer",
        )
    )

    assert event == PaymentFailed(
        "payment.failed", "order_4", "pay_4", "Card declined by issuer"
    )


@pytest.mark.unit
def test_payment_failed_default_description():
    event = parse_event(payment_webhook("payment.failed", "order_5", "pay_5"))

    assert isinstance(event, PaymentFailed)
    assert event.error_description == "Payment failed"


@pytest.mark.unit
def test_payment_authorized():
    event = parse_event(
        payment_webhook("payment.authorized", "order_6", "pay_6", status="authorized")
    )

    assert event == PaymentAuthorized("payment.authorized", "order_6", "pay_6")


@pytest.mark.unit
def test_unrecognised_event_is_kept_with_raw_payload():
    event = parse_event(payment_webhook("payment.dispute.created", "order_7"))

    assert isinstance(event, UnknownEvent)
    assert event.order_id == "order_7"
    assert event.raw["event"] == "payment.dispute.created"


@pytest.mark.unit
def test_event_without_order_id():
    body = json.dumps({"event": "payment.captured", "payload": {}}).encode()

    event = parse_event(body)

    assert isinstance(event, UnknownEvent)
    assert event.order_id is None


@pytest.mark.unit
def test_payout_events():
    processed = parse_event(payout_webhook("payout.processed", "PO-2024-11-0007"))
    reversed_ = parse_event(payout_webhook("payout.reversed", "PO-2024-11-0007"))

    assert processed == PayoutProcessed("payout.processed", "PO-2024-11-0007", "pout_test123")
    assert isinstance(reversed_, PayoutReversed)


@pytest.mark.unit
def test_payout_failure_reason_fallbacks():
    direct = parse_event(
        payout_webhook("payout.failed", "PO-1", failure_reason="Beneficiary bank offline")
    )
    nested = parse_event(
        payout_webhook(
            "payout.failed", "PO-2", status_details={"description": "IFSC invalid"}
        )
    )
    bare = parse_event(payout_webhook("payout.failed", "PO-3"))

    assert isinstance(direct, PayoutFailed)
    assert direct.failure_reason == "Beneficiary bank offline"
    assert nested.failure_reason == "IFSC invalid"
    assert bare.failure_reason == "Payout failed"


@pytest.mark.unit
@pytest.mark.parametrize("body", [b"", b"not json", b"[]", b'{"payload": {}}'])
def test_invalid_envelope(body):
    with pytest.raises(InvalidEnvelope):
        parse_event(body)
