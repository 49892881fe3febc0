"""Integration tests for admin and educator payout endpoints and reporting."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from libs.common.datetime_utils import utc_now
from services.payments_service.models import PaymentStatus, PayoutStatus, ProductType
from services.payments_service.services.settlement import MAX_ENROLLMENT_ATTEMPTS
from tests.factories import PaymentIntentFactory, PayoutFactory, bearer

ADMIN = bearer("admin-1", "admin")


async def _seed(session_factory, *instances):
    async with session_factory() as db:
        db.add_all(instances)
        await db.commit()
    return instances[0] if len(instances) == 1 else instances


# ---------------------------------------------------------------------------
# Payouts
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_lists_payouts_with_filters(payments_client, session_factory):
    await _seed(
        session_factory,
        PayoutFactory.create(educator_id="edu-1", status=PayoutStatus.PAID),
        PayoutFactory.create(educator_id="edu-1", month=10),
        PayoutFactory.create(educator_id="edu-2"),
    )

    everything = await payments_client.get("/payments/admin/payouts", headers=ADMIN)
    paid = await payments_client.get(
        "/payments/admin/payouts", params={"status": "paid"}, headers=ADMIN
    )
    october = await payments_client.get(
        "/payments/admin/payouts",
        params={"educator_id": "edu-1", "month": 10},
        headers=ADMIN,
    )

    assert everything.status_code == 200
    assert everything.json()["total"] == 3
    assert paid.json()["total"] == 1
    assert paid.json()["items"][0]["status"] == "paid"
    assert october.json()["total"] == 1
    assert october.json()["items"][0]["month"] == 10


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_list_paginates(payments_client, session_factory):
    await _seed(
        session_factory, *[PayoutFactory.create(month=m) for m in range(1, 6)]
    )

    response = await payments_client.get(
        "/payments/admin/payouts", params={"page": 2, "page_size": 2}, headers=ADMIN
    )

    data = response.json()
    assert data["total"] == 5
    assert data["page"] == 2
    assert [item["month"] for item in data["items"]] == [3, 2]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_payout_endpoints_require_admin(payments_client):
    anonymous = await payments_client.get("/payments/admin/payouts")
    student = await payments_client.get(
        "/payments/admin/payouts", headers=bearer("S1", "authenticated")
    )

    assert anonymous.status_code in (401, 403)
    assert student.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_payout_summary(payments_client, session_factory):
    await _seed(
        session_factory,
        PayoutFactory.create(status=PayoutStatus.PENDING, amount=100000),
        PayoutFactory.create(status=PayoutStatus.PROCESSING, amount=200000),
        PayoutFactory.create(status=PayoutStatus.PAID, amount=300000),
        PayoutFactory.create(status=PayoutStatus.FAILED, amount=400000),
    )

    response = await payments_client.get(
        "/payments/admin/payouts/summary", headers=ADMIN
    )

    assert response.status_code == 200
    assert response.json() == {
        "total_pending": 1,
        "total_processing": 1,
        "total_paid": 1,
        "total_failed": 1,
        "total_reversed": 0,
        "pending_amount": 300000,
        "paid_amount": 300000,
    }


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_processes_payout(payments_client, session_factory, catalog, gateway):
    catalog.add_educator("edu-1")
    payout = await _seed(
        session_factory, PayoutFactory.create(status=PayoutStatus.PENDING)
    )

    response = await payments_client.post(
        f"/payments/admin/payouts/{payout.id}/process", headers=ADMIN
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "processing"
    assert data["gateway_payout_id"] == gateway.payouts[0]["payout"].id


@pytest.mark.asyncio
@pytest.mark.integration
async def test_process_paid_payout_is_rejected(payments_client, session_factory, catalog):
    catalog.add_educator("edu-1")
    payout = await _seed(
        session_factory, PayoutFactory.create(status=PayoutStatus.PAID)
    )

    response = await payments_client.post(
        f"/payments/admin/payouts/{payout.id}/process", headers=ADMIN
    )

    assert response.status_code == 400
    assert response.json() == {"detail": "Cannot initiate payout with status: paid"}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_process_unknown_payout(payments_client):
    response = await payments_client.post(
        f"/payments/admin/payouts/{uuid.uuid4()}/process", headers=ADMIN
    )

    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_educator_sees_only_own_payouts(payments_client, session_factory):
    await _seed(
        session_factory,
        PayoutFactory.create(educator_id="edu-1"),
        PayoutFactory.create(educator_id="edu-1", month=10),
        PayoutFactory.create(educator_id="edu-2"),
    )

    response = await payments_client.get(
        "/payments/educators/me/payouts", headers=bearer("edu-1", "educator")
    )

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert {item["educator_id"] for item in data["items"]} == {"edu-1"}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_student_cannot_list_educator_payouts(payments_client):
    response = await payments_client.get(
        "/payments/educators/me/payouts", headers=bearer("S1", "authenticated")
    )

    assert response.status_code == 403


# ---------------------------------------------------------------------------
# Reports and enrollment replay
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_revenue_report(payments_client, session_factory):
    await _seed(
        session_factory,
        PaymentIntentFactory.create(status=PaymentStatus.SUCCEEDED, amount=1500000),
        PaymentIntentFactory.create(status=PaymentStatus.SUCCEEDED, amount=500000),
        PaymentIntentFactory.create(
            status=PaymentStatus.SUCCEEDED,
            product_type=ProductType.WEBINAR,
            amount=25000,
        ),
        PaymentIntentFactory.create(status=PaymentStatus.FAILED, amount=999900),
        PaymentIntentFactory.create(status=PaymentStatus.REFUNDED, amount=300000),
        PaymentIntentFactory.create(amount=777700),
    )

    response = await payments_client.get(
        "/payments/admin/reports/revenue", headers=ADMIN
    )

    assert response.status_code == 200
    data = response.json()
    assert data["total_count"] == 3
    assert data["total_amount"] == 2025000
    assert data["total_refunded"] == 300000
    assert data["total_failed"] == 999900
    assert data["total_transactions"] == 6
    by_type = {row["product_type"]: row for row in data["by_product_type"]}
    assert by_type["course"] == {"product_type": "course", "count": 2, "amount": 2000000}
    assert by_type["webinar"]["amount"] == 25000


@pytest.mark.asyncio
@pytest.mark.integration
async def test_revenue_report_date_range(payments_client, session_factory):
    old = utc_now() - timedelta(days=40)
    await _seed(
        session_factory,
        PaymentIntentFactory.create(status=PaymentStatus.SUCCEEDED, created_at=old),
        PaymentIntentFactory.create(status=PaymentStatus.SUCCEEDED),
    )
    start = (utc_now() - timedelta(days=7)).isoformat()

    response = await payments_client.get(
        "/payments/admin/reports/revenue", params={"start": start}, headers=ADMIN
    )

    assert response.json()["total_count"] == 1


def _at(year, month, day):
    return datetime(year, month, day, 12, tzinfo=timezone.utc)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_revenue_report_filters_by_product_types(payments_client, session_factory):
    await _seed(
        session_factory,
        PaymentIntentFactory.create(status=PaymentStatus.SUCCEEDED, amount=100000),
        PaymentIntentFactory.create(
            status=PaymentStatus.SUCCEEDED,
            product_type=ProductType.WEBINAR,
            amount=20000,
        ),
        PaymentIntentFactory.create(
            status=PaymentStatus.SUCCEEDED,
            product_type=ProductType.TEST_SERIES,
            amount=49900,
        ),
        PaymentIntentFactory.create(
            status=PaymentStatus.FAILED,
            product_type=ProductType.WEBINAR,
            amount=20000,
        ),
    )

    response = await payments_client.get(
        "/payments/admin/reports/revenue",
        params={"product_type": "webinar, testSeries"},
        headers=ADMIN,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["total_amount"] == 69900
    assert data["total_failed"] == 20000
    assert data["total_transactions"] == 3
    assert {row["product_type"] for row in data["by_product_type"]} == {
        "webinar",
        "testSeries",
    }


@pytest.mark.asyncio
@pytest.mark.integration
async def test_revenue_report_rejects_unknown_product_type(payments_client):
    response = await payments_client.get(
        "/payments/admin/reports/revenue",
        params={"product_type": "course,ebook"},
        headers=ADMIN,
    )

    assert response.status_code == 400
    assert response.json() == {"detail": "Unsupported product type: ebook"}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_revenue_by_month(payments_client, session_factory):
    await _seed(
        session_factory,
        PaymentIntentFactory.create(
            status=PaymentStatus.SUCCEEDED, amount=100000, created_at=_at(2025, 1, 10)
        ),
        PaymentIntentFactory.create(
            status=PaymentStatus.SUCCEEDED, amount=50000, created_at=_at(2025, 1, 28)
        ),
        PaymentIntentFactory.create(
            status=PaymentStatus.SUCCEEDED, amount=70000, created_at=_at(2025, 3, 5)
        ),
        PaymentIntentFactory.create(
            status=PaymentStatus.FAILED, amount=90000, created_at=_at(2025, 2, 14)
        ),
        PaymentIntentFactory.create(
            status=PaymentStatus.SUCCEEDED, amount=10000, created_at=_at(2023, 6, 1)
        ),
    )

    response = await payments_client.get(
        "/payments/admin/reports/revenue/by-month",
        params={"start": "2025-01-01T00:00:00+00:00", "end": "2026-01-01T00:00:00+00:00"},
        headers=ADMIN,
    )

    assert response.status_code == 200
    assert response.json() == [
        {"year": 2025, "month": 1, "count": 2, "amount": 150000},
        {"year": 2025, "month": 3, "count": 1, "amount": 70000},
    ]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_revenue_by_month_defaults_to_last_twelve_months(
    payments_client, session_factory
):
    now = utc_now()
    await _seed(
        session_factory,
        PaymentIntentFactory.create(
            status=PaymentStatus.SUCCEEDED, amount=40000, created_at=now
        ),
        PaymentIntentFactory.create(
            status=PaymentStatus.SUCCEEDED,
            amount=99900,
            created_at=now - timedelta(days=400),
        ),
    )

    response = await payments_client.get(
        "/payments/admin/reports/revenue/by-month", headers=ADMIN
    )

    assert response.status_code == 200
    assert response.json() == [
        {"year": now.year, "month": now.month, "count": 1, "amount": 40000}
    ]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_revenue_transactions_newest_first(payments_client, session_factory):
    older, newer, failed = await _seed(
        session_factory,
        PaymentIntentFactory.create(
            status=PaymentStatus.SUCCEEDED,
            gateway_payment_id="pay_older",
            created_at=_at(2025, 1, 10),
        ),
        PaymentIntentFactory.create(
            status=PaymentStatus.SUCCEEDED,
            gateway_payment_id="pay_newer",
            created_at=_at(2025, 2, 10),
        ),
        PaymentIntentFactory.create(
            status=PaymentStatus.FAILED, created_at=_at(2025, 3, 10)
        ),
    )

    default = await payments_client.get(
        "/payments/admin/reports/revenue/transactions", headers=ADMIN
    )
    everything = await payments_client.get(
        "/payments/admin/reports/revenue/transactions",
        params={"status": "all"},
        headers=ADMIN,
    )

    assert default.status_code == 200
    data = default.json()
    assert data["total"] == 2
    assert [item["id"] for item in data["items"]] == [str(newer.id), str(older.id)]
    first = data["items"][0]
    assert first["payment_id"] == "pay_newer"
    assert first["order_id"] == newer.gateway_order_id
    assert first["receipt"] == newer.receipt
    assert first["student_name"] == "Test Student"
    assert first["product_title"] == "Organic Chemistry Crash Course"
    assert everything.json()["total"] == 3
    assert everything.json()["items"][0]["id"] == str(failed.id)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_revenue_transactions_status_list(payments_client, session_factory):
    await _seed(
        session_factory,
        PaymentIntentFactory.create(status=PaymentStatus.SUCCEEDED),
        PaymentIntentFactory.create(status=PaymentStatus.FAILED),
        PaymentIntentFactory.create(status=PaymentStatus.REFUNDED),
        PaymentIntentFactory.create(),
    )

    response = await payments_client.get(
        "/payments/admin/reports/revenue/transactions",
        params={"status": "failed,refunded"},
        headers=ADMIN,
    )
    invalid = await payments_client.get(
        "/payments/admin/reports/revenue/transactions",
        params={"status": "paid"},
        headers=ADMIN,
    )

    assert {item["status"] for item in response.json()["items"]} == {
        "failed",
        "refunded",
    }
    assert invalid.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_revenue_transactions_pagination_bounds(payments_client, session_factory):
    base = _at(2025, 1, 1)
    await _seed(
        session_factory,
        *[
            PaymentIntentFactory.create(
                status=PaymentStatus.SUCCEEDED, created_at=base + timedelta(days=i)
            )
            for i in range(5)
        ],
    )

    second_page = await payments_client.get(
        "/payments/admin/reports/revenue/transactions",
        params={"page": 2, "page_size": 2},
        headers=ADMIN,
    )
    oversized = await payments_client.get(
        "/payments/admin/reports/revenue/transactions",
        params={"page": 0, "page_size": 500},
        headers=ADMIN,
    )

    data = second_page.json()
    assert data["total"] == 5
    assert data["page"] == 2
    assert data["total_pages"] == 3
    assert [item["date"][:10] for item in data["items"]] == ["2025-01-03", "2025-01-02"]

    clamped = oversized.json()
    assert oversized.status_code == 200
    assert clamped["page"] == 1
    assert clamped["page_size"] == 100
    assert clamped["total_pages"] == 1
    assert len(clamped["items"]) == 5


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.parametrize(
    "term",
    ["asha", "RAO@EXAMPLE", "jee phys", "rcpt_match", "PAY_SEARCH", "order_search"],
)
async def test_revenue_transactions_search(payments_client, session_factory, term):
    match = PaymentIntentFactory.create(
        status=PaymentStatus.SUCCEEDED,
        intent_metadata={"student_name": "Asha Rao", "student_email": "rao@example.com"},
        product_snapshot={"title": "JEE Physics", "educator_id": "edu-1"},
        receipt="rcpt_match01",
        gateway_payment_id="pay_search01",
        gateway_order_id="order_search01",
    )
    await _seed(
        session_factory,
        match,
        PaymentIntentFactory.create(status=PaymentStatus.SUCCEEDED),
    )

    response = await payments_client.get(
        "/payments/admin/reports/revenue/transactions",
        params={"search": term},
        headers=ADMIN,
    )

    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["id"] == str(match.id)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_revenue_transactions_search_is_literal(payments_client, session_factory):
    await _seed(
        session_factory,
        PaymentIntentFactory.create(status=PaymentStatus.SUCCEEDED),
        PaymentIntentFactory.create(status=PaymentStatus.SUCCEEDED),
    )

    response = await payments_client.get(
        "/payments/admin/reports/revenue/transactions",
        params={"search": "%"},
        headers=ADMIN,
    )

    assert response.json()["total"] == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_revenue_readers_require_admin(payments_client):
    student = bearer("S1", "authenticated")
    for path in (
        "/payments/admin/reports/revenue",
        "/payments/admin/reports/revenue/by-month",
        "/payments/admin/reports/revenue/transactions",
    ):
        response = await payments_client.get(path, headers=student)
        assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_replay_enrollment(payments_client, session_factory, catalog):
    intent = await _seed(
        session_factory,
        PaymentIntentFactory.create(
            status=PaymentStatus.SUCCEEDED,
            enrollment_attempts=MAX_ENROLLMENT_ATTEMPTS,
            enrollment_error="Enrollment returned 503",
        ),
    )

    response = await payments_client.post(
        f"/payments/admin/intents/{intent.id}/replay-enrollment", headers=ADMIN
    )

    assert response.status_code == 200
    data = response.json()
    assert data["enrollment_applied_at"] is not None
    assert data["enrollment_error"] is None
    assert data["enrollment_attempts"] == MAX_ENROLLMENT_ATTEMPTS + 1
    assert len(catalog.enroll_calls) == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_replay_enrollment_already_applied(
    payments_client, session_factory, catalog
):
    intent = await _seed(
        session_factory,
        PaymentIntentFactory.create(
            status=PaymentStatus.SUCCEEDED, enrollment_applied_at=utc_now()
        ),
    )

    response = await payments_client.post(
        f"/payments/admin/intents/{intent.id}/replay-enrollment", headers=ADMIN
    )

    assert response.status_code == 200
    assert catalog.enroll_calls == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_replay_enrollment_for_unpaid_intent(payments_client, session_factory):
    intent = await _seed(session_factory, PaymentIntentFactory.create())

    response = await payments_client.post(
        f"/payments/admin/intents/{intent.id}/replay-enrollment", headers=ADMIN
    )

    assert response.status_code == 400
