from datetime import datetime
from unittest.mock import AsyncMock, patch

from bson import ObjectId

from billing_api.core.exceptions import InvalidRateError
from billing_api.models.obligation import PaymentObligation
from billing_api.services.obligation_generator import GenerationResult
from billing_api.utils.calendar import MonthKey

TENANT_ID = "507f1f77bcf86cd799439011"
PROPERTY_ID = "507f1f77bcf86cd799439012"


def make_obligation(month: MonthKey) -> PaymentObligation:
    return PaymentObligation(
        tenant_id=ObjectId(TENANT_ID),
        property_id=ObjectId(PROPERTY_ID),
        payment_month=month.to_datetime(),
        amount_cents=50000
    )


def test_generate_backfill(client):
    result = GenerationResult(
        months=[MonthKey(2025, 1), MonthKey(2025, 2)],
        created=[make_obligation(MonthKey(2025, 2))],
        skipped=[MonthKey(2025, 1)]
    )
    with patch(
        "billing_api.services.obligation_generator.ObligationGenerator.generate_backfill",
        new_callable=AsyncMock
    ) as mock_backfill:
        mock_backfill.return_value = result

        response = client.post(
            "/api/v1/obligations/generate-backfill",
            json={"tenant_id": TENANT_ID, "property_id": PROPERTY_ID}
        )

    assert response.status_code == 200
    data = response.json()
    assert data["created"] == 1
    assert data["skipped"] == 1
    assert data["months"] == ["2025-01-01", "2025-02-01"]
    assert data["obligations"][0]["amount"] == "500.00"
    assert data["obligations"][0]["payment_month"] == "2025-02-01"
    assert data["obligations"][0]["status"] == "pending"
    mock_backfill.assert_called_once_with(TENANT_ID, PROPERTY_ID)


def test_generate_backfill_invalid_rate(client):
    with patch(
        "billing_api.services.obligation_generator.ObligationGenerator.generate_backfill",
        new_callable=AsyncMock
    ) as mock_backfill:
        mock_backfill.side_effect = InvalidRateError("Tenant has no positive monthly rate", {"tenant_id": TENANT_ID})

        response = client.post(
            "/api/v1/obligations/generate-backfill",
            json={"tenant_id": TENANT_ID, "property_id": PROPERTY_ID}
        )

    assert response.status_code == 422
    assert response.json()["error"] == "invalid_rate"
    assert response.json()["context"] == {"tenant_id": TENANT_ID}


def test_generate_future_requires_positive_months(client):
    response = client.post(
        "/api/v1/obligations/generate-future",
        json={"tenant_id": TENANT_ID, "property_id": PROPERTY_ID, "months_ahead": 0}
    )

    assert response.status_code == 422


def test_update_unknown_obligation(client):
    response = client.patch(f"/api/v1/obligations/{TENANT_ID}", json={"status": "paid"})

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_update_rejects_unknown_status(client):
    response = client.patch(f"/api/v1/obligations/{TENANT_ID}", json={"status": "refunded"})

    assert response.status_code == 422


def test_bulk_update_requires_ids(client):
    response = client.patch("/api/v1/obligations", json={"ids": [], "status": "paid"})

    assert response.status_code == 422


def test_bulk_update_reports_missing(client):
    response = client.patch("/api/v1/obligations", json={"ids": [TENANT_ID], "status": "paid"})

    assert response.status_code == 200
    assert response.json() == {"updated": [], "missing": [TENANT_ID]}


def test_statistics_empty(client):
    response = client.get("/api/v1/obligations/statistics", params={"year": 2025})

    assert response.status_code == 200
    data = response.json()
    assert data["pending"] == {"count": 0, "amount": "0.00"}
    assert data["total"] == {"count": 0, "amount": "0.00"}


def test_list_tenant_obligations_invalid_id(client):
    response = client.get("/api/v1/obligations/tenant/not-an-id")

    assert response.status_code == 200
    assert response.json() == []


def test_mark_overdue(client):
    with patch(
        "billing_api.services.payment_status_service.PaymentStatusService.mark_overdue",
        new_callable=AsyncMock
    ) as mock_mark:
        mock_mark.return_value = 3

        response = client.post("/api/v1/obligations/mark-overdue")

    assert response.status_code == 200
    assert response.json() == {"marked_overdue": 3}


def test_update_obligation_paid(client):
    paid = make_obligation(MonthKey(2025, 2))
    paid.status = "paid"
    paid.payment_date = datetime(2025, 2, 15)
    with patch(
        "billing_api.services.payment_status_service.PaymentStatusService.update_status",
        new_callable=AsyncMock
    ) as mock_update:
        mock_update.return_value = paid

        response = client.patch(
            f"/api/v1/obligations/{paid.id}",
            json={"status": "paid", "payment_date": "2025-02-15"}
        )

    assert response.status_code == 200
    assert response.json()["payment_date"] == "2025-02-15"
    assert response.json()["status"] == "paid"


def test_list_property_obligations(client):
    with patch(
        "billing_api.services.payment_status_service.PaymentStatusService.list_property_obligations",
        new_callable=AsyncMock
    ) as mock_list:
        mock_list.return_value = [make_obligation(MonthKey(2025, 2))]

        response = client.get(
            f"/api/v1/obligations/property/{PROPERTY_ID}",
            params={"year": 2025, "month": 2, "status": "pending"}
        )

    assert response.status_code == 200
    assert [o["tenant_id"] for o in response.json()] == [TENANT_ID]
    assert mock_list.call_args.args == (PROPERTY_ID, 2025, 2, "pending")


def test_list_property_obligations_unknown_property(client):
    response = client.get(f"/api/v1/obligations/property/{PROPERTY_ID}")

    assert response.status_code == 404
    assert response.json()["error"] == "no_property"


def test_list_property_obligations_month_requires_year(client):
    response = client.get(f"/api/v1/obligations/property/{PROPERTY_ID}", params={"month": 2})

    assert response.status_code == 422


def test_list_property_obligations_month_out_of_range(client):
    response = client.get(f"/api/v1/obligations/property/{PROPERTY_ID}", params={"year": 2025, "month": 13})

    assert response.status_code == 422
