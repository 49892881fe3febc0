"""Unit tests for payout initiation and webhook reconciliation."""

import pytest
from services.payments_service.errors import (
    BusinessRuleViolation,
    GatewayCommunicationError,
)
from services.payments_service.events import (
    PayoutFailed,
    PayoutProcessed,
    PayoutReversed,
)
from services.payments_service.models import PayoutStatus
from services.payments_service.services.payouts import (
    initiate_payout,
    reconcile_payout_event,
)
from tests.factories import PayoutFactory


async def _insert_payout(db, **overrides):
    payout = PayoutFactory.create(**overrides)
    db.add(payout)
    await db.commit()
    await db.refresh(payout)
    return payout


def _processed(reference_id: str) -> PayoutProcessed:
    return PayoutProcessed("payout.processed", reference_id, "pout_abc")


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_processed_payout_is_paid_and_invoiced(db_session, catalog, email_client):
    catalog.add_educator("edu-1", name="Meera Iyer", email="meera@example.com")
    await _insert_payout(db_session, payout_check_id="PO-2024-11-0007")

    payout = await reconcile_payout_event(
        db_session, _processed("PO-2024-11-0007"), catalog, email_client
    )

    assert payout.status == PayoutStatus.PAID
    assert payout.paid_at is not None
    assert payout.gateway_payout_id == "pout_abc"

    assert len(email_client.sent) == 1
    sent = email_client.sent[0]
    assert sent["to_email"] == "meera@example.com"
    assert "PO-2024-11-0007" in sent["body"]
    filename, content, mime_type = sent["attachments"][0]
    assert filename.endswith(".pdf")
    assert content.startswith(b"%PDF")
    assert mime_type == "pdf"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_redelivered_processed_webhook_does_not_resend_invoice(
    db_session, catalog, email_client
):
    catalog.add_educator("edu-1")
    await _insert_payout(db_session, payout_check_id="PO-2024-11-0007")

    first_paid_at = (
        await reconcile_payout_event(
            db_session, _processed("PO-2024-11-0007"), catalog, email_client
        )
    ).paid_at

    payout = await reconcile_payout_event(
        db_session, _processed("PO-2024-11-0007"), catalog, email_client
    )

    assert payout.status == PayoutStatus.PAID
    assert payout.paid_at == first_paid_at
    assert len(email_client.sent) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_failed_payout_records_reason(db_session, catalog, email_client):
    await _insert_payout(db_session, payout_check_id="PO-2024-11-0008")

    payout = await reconcile_payout_event(
        db_session,
        PayoutFailed("payout.failed", "PO-2024-11-0008", "pout_x", "IFSC invalid"),
        catalog,
        email_client,
    )

    assert payout.status == PayoutStatus.FAILED
    assert payout.failure_reason == "IFSC invalid"
    assert email_client.sent == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_late_failure_does_not_overwrite_paid(db_session, catalog, email_client):
    await _insert_payout(
        db_session, payout_check_id="PO-2024-11-0009", status=PayoutStatus.PAID
    )

    payout = await reconcile_payout_event(
        db_session,
        PayoutFailed("payout.failed", "PO-2024-11-0009", "pout_x", "Timeout"),
        catalog,
        email_client,
    )

    assert payout.status == PayoutStatus.PAID
    assert payout.failure_reason is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reversed_payout_is_not_paid_again(db_session, catalog, email_client):
    catalog.add_educator("edu-1")
    await _insert_payout(
        db_session, payout_check_id="PO-2024-11-0010", status=PayoutStatus.PAID
    )

    reversed_ = await reconcile_payout_event(
        db_session,
        PayoutReversed("payout.reversed", "PO-2024-11-0010", "pout_x"),
        catalog,
        email_client,
    )
    assert reversed_.status == PayoutStatus.REVERSED

    again = await reconcile_payout_event(
        db_session, _processed("PO-2024-11-0010"), catalog, email_client
    )
    assert again.status == PayoutStatus.REVERSED
    assert email_client.sent == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unknown_reference_is_ignored(db_session, catalog, email_client):
    payout = await reconcile_payout_event(
        db_session, _processed("PO-1999-01-0001"), catalog, email_client
    )

    assert payout is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_invoice_failure_keeps_payout_paid(db_session, catalog, email_client):
    catalog.add_educator("edu-1")
    email_client.fail = True
    await _insert_payout(db_session, payout_check_id="PO-2024-11-0011")

    payout = await reconcile_payout_event(
        db_session, _processed("PO-2024-11-0011"), catalog, email_client
    )

    assert payout.status == PayoutStatus.PAID


@pytest.mark.asyncio
@pytest.mark.unit
async def test_missing_educator_skips_invoice(db_session, catalog, email_client):
    await _insert_payout(db_session, payout_check_id="PO-2024-11-0012")

    payout = await reconcile_payout_event(
        db_session, _processed("PO-2024-11-0012"), catalog, email_client
    )

    assert payout.status == PayoutStatus.PAID
    assert email_client.sent == []


# ---------------------------------------------------------------------------
# Initiation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize("status", [PayoutStatus.PENDING, PayoutStatus.FAILED])
async def test_initiate_payout(db_session, catalog, gateway, status):
    catalog.add_educator("edu-1")
    payout = await _insert_payout(
        db_session, status=status, failure_reason="previous attempt"
    )

    payout = await initiate_payout(db_session, payout, catalog, gateway)

    assert payout.status == PayoutStatus.PROCESSING
    assert payout.failure_reason is None
    sent = gateway.payouts[0]
    assert sent["fund_account_id"] == "fa_edu-1"
    assert sent["payout"].reference_id == payout.payout_check_id
    assert payout.gateway_payout_id == sent["payout"].id


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize(
    "status", [PayoutStatus.PROCESSING, PayoutStatus.PAID, PayoutStatus.REVERSED]
)
async def test_initiate_payout_rejects_other_states(db_session, catalog, gateway, status):
    catalog.add_educator("edu-1")
    payout = await _insert_payout(db_session, status=status)

    with pytest.raises(BusinessRuleViolation):
        await initiate_payout(db_session, payout, catalog, gateway)
    assert gateway.payouts == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_initiate_payout_requires_fund_account(db_session, catalog, gateway):
    catalog.add_educator("edu-1", fund_account_id=None)
    payout = await _insert_payout(db_session, status=PayoutStatus.PENDING)

    with pytest.raises(BusinessRuleViolation):
        await initiate_payout(db_session, payout, catalog, gateway)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_initiate_payout_gateway_failure(db_session, catalog, gateway):
    catalog.add_educator("edu-1")
    gateway.fail_payouts = True
    payout = await _insert_payout(db_session, status=PayoutStatus.PENDING)

    with pytest.raises(GatewayCommunicationError):
        await initiate_payout(db_session, payout, catalog, gateway)

    await db_session.refresh(payout)
    assert payout.status == PayoutStatus.PENDING
