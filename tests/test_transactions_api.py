"""Tests for the cash-flow endpoints."""

from datetime import date
from decimal import Decimal

import pytest


def D(value) -> Decimal:
    return Decimal(str(value))


@pytest.fixture
def movements(api, tenant):
    """Three manual movements spread over two months."""
    rows = [
        {"type": "IN", "amount": "500", "category": "Aporte", "date": "2024-01-10"},
        {"type": "OUT", "amount": "80.50", "category": "Gasolina", "date": "2024-01-20"},
        {"type": "OUT", "amount": "30", "category": "Gasolina", "date": "2024-02-05"},
    ]
    created = []
    for row in rows:
        resp = api.post("/api/v1/transactions", json=row, headers=tenant["headers"])
        assert resp.status_code == 201, resp.text
        created.append(resp.json())
    return created


class TestManualTransactions:
    """Tests for /transactions."""

    def test_create_defaults(self, api, tenant) -> None:
        """Missing date means today; missing category means the default one."""
        resp = api.post("/api/v1/transactions", json={"type": "IN", "amount": "10"}, headers=tenant["headers"])
        assert resp.status_code == 201, resp.text
        body = resp.json()
        assert body["date"] == date.today().isoformat()
        assert body["category"] == "Geral"
        assert body["loan_id"] is None
        assert D(body["amount"]) == Decimal("10.00")

    def test_amount_must_be_positive(self, api, tenant) -> None:
        resp = api.post("/api/v1/transactions", json={"type": "OUT", "amount": "0"}, headers=tenant["headers"])
        assert resp.status_code == 422

    def test_unknown_type(self, api, tenant) -> None:
        resp = api.post("/api/v1/transactions", json={"type": "SIDEWAYS", "amount": "5"}, headers=tenant["headers"])
        assert resp.status_code == 422

    def test_list_newest_first(self, api, tenant, movements) -> None:
        """Rows come ordered by date descending."""
        rows = api.get("/api/v1/transactions", headers=tenant["headers"]).json()
        assert [r["date"] for r in rows] == ["2024-02-05", "2024-01-20", "2024-01-10"]

    def test_filters(self, api, tenant, movements) -> None:
        """type, category and the date range narrow the list."""
        headers = tenant["headers"]
        outs = api.get("/api/v1/transactions", params={"type": "OUT"}, headers=headers).json()
        assert {r["category"] for r in outs} == {"Gasolina"}

        january = api.get(
            "/api/v1/transactions", params={"start": "2024-01-01", "end": "2024-01-31"}, headers=headers
        ).json()
        assert len(january) == 2

        fuel_jan = api.get(
            "/api/v1/transactions",
            params={"category": "Gasolina", "end": "2024-01-31"},
            headers=headers,
        ).json()
        assert [D(r["amount"]) for r in fuel_jan] == [Decimal("80.50")]

    def test_inverted_range(self, api, tenant) -> None:
        resp = api.get(
            "/api/v1/transactions", params={"start": "2024-02-01", "end": "2024-01-01"}, headers=tenant["headers"]
        )
        assert resp.status_code == 400

    def test_delete(self, api, tenant, movements) -> None:
        target = movements[0]["id"]
        assert api.delete(f"/api/v1/transactions/{target}", headers=tenant["headers"]).status_code == 200
        ids = [r["id"] for r in api.get("/api/v1/transactions", headers=tenant["headers"]).json()]
        assert target not in ids
        assert len(ids) == 2

    def test_tenant_scoping(self, api, tenant, other_tenant, movements) -> None:
        """Other tenants neither see nor delete these rows."""
        assert api.get("/api/v1/transactions", headers=other_tenant["headers"]).json() == []
        resp = api.delete(f"/api/v1/transactions/{movements[0]['id']}", headers=other_tenant["headers"])
        assert resp.status_code == 403

    def test_manual_rows_feed_the_dashboard(self, api, tenant, movements) -> None:
        """Cash in/out totals include manual movements."""
        summary = api.get("/api/v1/dashboard/summary", headers=tenant["headers"]).json()
        assert D(summary["cash_in"]) == Decimal("500.00")
        assert D(summary["cash_out"]) == Decimal("110.50")
        assert D(summary["balance"]) == Decimal("389.50")
