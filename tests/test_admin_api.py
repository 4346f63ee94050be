"""Tests for the admin endpoints."""

from decimal import Decimal

from sqlalchemy.orm import Session

from hk_loans.app.core.constants import SubscriptionStatus
from hk_loans.app.db import models


def D(value) -> Decimal:
    return Decimal(str(value))


class TestAdminStats:
    """Tests for /admin/stats and /admin/users."""

    def test_stats_cover_every_tenant(self, api, admin, tenant, other_tenant, make_client, make_loan) -> None:
        """Counts are global, not scoped to the admin."""
        c1 = make_client(tenant["headers"])
        c2 = make_client(other_tenant["headers"])
        make_loan(tenant["headers"], c1["id"], amount="1000")
        make_loan(other_tenant["headers"], c2["id"], amount="500", total_amount="600")

        stats = api.get("/api/v1/admin/stats", headers=admin["headers"]).json()
        assert stats["total_users"] == 3
        assert stats["total_clients"] == 2
        assert stats["total_loans"] == 2
        assert D(stats["total_loaned"]) == Decimal("1500.00")

    def test_users_list_with_counts(self, api, admin, tenant, make_client, make_loan) -> None:
        client = make_client(tenant["headers"])
        make_loan(tenant["headers"], client["id"])
        users = {u["username"]: u for u in api.get("/api/v1/admin/users", headers=admin["headers"]).json()}
        assert set(users) == {"root", "alice"}
        assert users["alice"]["clients_count"] == 1
        assert users["alice"]["loans_count"] == 1
        assert "password" not in users["alice"]


class TestAdminUsers:
    """Tests for user management."""

    def test_create_user_with_plan(self, api, admin, db_factory) -> None:
        """Assigning a plan records an ACTIVE subscription."""
        plan = api.post(
            "/api/v1/admin/plans", json={"name": "Pro", "price": "49.90", "max_clients": 10}, headers=admin["headers"]
        ).json()
        resp = api.post(
            "/api/v1/admin/users",
            json={"username": "Dora", "password": "pass1234", "name": "Dora", "plan_id": plan["id"]},
            headers=admin["headers"],
        )
        assert resp.status_code == 201, resp.text
        body = resp.json()
        assert body["username"] == "dora"
        assert body["plan"]["name"] == "Pro"

        with db_factory() as db:
            subs = db.query(models.Subscription).filter(models.Subscription.user_id == body["id"]).all()
            assert [s.status for s in subs] == [SubscriptionStatus.ACTIVE]

    def test_changing_plan_cancels_previous(self, api, admin, tenant, db_factory) -> None:
        headers = admin["headers"]
        basic = api.post("/api/v1/admin/plans", json={"name": "Basic"}, headers=headers).json()
        pro = api.post("/api/v1/admin/plans", json={"name": "Pro"}, headers=headers).json()

        api.put(f"/api/v1/admin/users/{tenant['id']}", json={"plan_id": basic["id"]}, headers=headers)
        resp = api.put(f"/api/v1/admin/users/{tenant['id']}", json={"plan_id": pro["id"]}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["plan_id"] == pro["id"]

        with db_factory() as db:
            subs = db.query(models.Subscription).filter(models.Subscription.user_id == tenant["id"]).all()
            by_plan = {s.plan_id: s.status for s in subs}
        assert by_plan == {basic["id"]: SubscriptionStatus.CANCELLED, pro["id"]: SubscriptionStatus.ACTIVE}

    def test_unknown_plan(self, api, admin, tenant) -> None:
        resp = api.put(f"/api/v1/admin/users/{tenant['id']}", json={"plan_id": "PLN-NOPE"}, headers=admin["headers"])
        assert resp.status_code == 404

    def test_duplicate_username(self, api, admin, tenant) -> None:
        resp = api.post(
            "/api/v1/admin/users",
            json={"username": "alice", "password": "pass1234", "name": "Alice"},
            headers=admin["headers"],
        )
        assert resp.status_code == 400

    def test_toggle_status(self, api, admin, tenant) -> None:
        """Deactivated users lose access; toggling again restores it."""
        url = f"/api/v1/admin/users/{tenant['id']}/toggle-status"
        assert api.put(url, headers=admin["headers"]).json()["active"] is False
        assert api.get("/api/v1/me", headers=tenant["headers"]).status_code == 403
        assert api.put(url, headers=admin["headers"]).json()["active"] is True
        assert api.get("/api/v1/me", headers=tenant["headers"]).status_code == 200

    def test_admin_cannot_lock_themselves_out(self, api, admin) -> None:
        """Self-deactivation, self-deletion and self-demotion are refused."""
        headers = admin["headers"]
        assert api.put(f"/api/v1/admin/users/{admin['id']}/toggle-status", headers=headers).status_code == 400
        assert api.delete(f"/api/v1/admin/users/{admin['id']}", headers=headers).status_code == 400
        resp = api.put(f"/api/v1/admin/users/{admin['id']}", json={"role": "USER"}, headers=headers)
        assert resp.status_code == 400

    def test_delete_user_cascades(self, api, admin, tenant, make_client, make_partner, make_loan, db_factory) -> None:
        """Deleting a tenant removes everything it owns."""
        client = make_client(tenant["headers"])
        make_partner(tenant["headers"])
        make_loan(tenant["headers"], client["id"])
        api.post("/api/v1/transactions", json={"type": "IN", "amount": "5"}, headers=tenant["headers"])

        assert api.delete(f"/api/v1/admin/users/{tenant['id']}", headers=admin["headers"]).status_code == 200

        with db_factory() as db:
            assert db.get(models.User, tenant["id"]) is None
            assert db.query(models.Client).count() == 0
            assert db.query(models.Partner).count() == 0
            assert db.query(models.Loan).count() == 0
            assert db.query(models.Installment).count() == 0
            assert db.query(models.Transaction).count() == 0

    def test_delete_user_failure_keeps_tenant(self, api, admin, tenant, monkeypatch) -> None:
        """A failing commit rolls back and answers a stable 500."""
        def boom(self):
            raise RuntimeError("database is gone")

        monkeypatch.setattr(Session, "commit", boom)
        resp = api.delete(f"/api/v1/admin/users/{tenant['id']}", headers=admin["headers"])
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Erro ao excluir usuário"}

        monkeypatch.undo()
        assert api.get("/api/v1/me", headers=tenant["headers"]).status_code == 200

    def test_unknown_user(self, api, admin) -> None:
        assert api.delete("/api/v1/admin/users/9999", headers=admin["headers"]).status_code == 404


class TestAdminPlans:
    """Tests for plan management."""

    def test_create_list_delete(self, api, admin, tenant) -> None:
        """Deleting a plan leaves its users without plan."""
        headers = admin["headers"]
        plan = api.post("/api/v1/admin/plans", json={"name": "Basic", "price": "19.9"}, headers=headers)
        assert plan.status_code == 201
        plan = plan.json()
        assert D(plan["price"]) == Decimal("19.90")
        assert plan["max_loans"] == 100

        assert api.post("/api/v1/admin/plans", json={"name": "Basic"}, headers=headers).status_code == 400
        api.put(f"/api/v1/admin/users/{tenant['id']}", json={"plan_id": plan["id"]}, headers=headers)

        assert api.delete(f"/api/v1/admin/plans/{plan['id']}", headers=headers).status_code == 200
        assert api.get("/api/v1/admin/plans", headers=headers).json() == []
        assert api.get("/api/v1/me", headers=tenant["headers"]).json()["plan_id"] is None


class TestIntegrityReport:
    """Tests for /admin/integrity."""

    def test_clean_ledger(self, api, admin, tenant, make_client, make_loan) -> None:
        client = make_client(tenant["headers"])
        loan = make_loan(tenant["headers"], client["id"])
        first = sorted(loan["installments"], key=lambda i: i["number"])[0]
        api.post(
            f"/api/v1/installments/{first['id']}/pay",
            json={"amount_paid": "400", "payment_type": "INTEREST_ONLY"},
            headers=tenant["headers"],
        )
        report = api.get("/api/v1/admin/integrity", headers=admin["headers"]).json()
        assert report == {"ok": True, "paid_amount_violations": [], "total_drift": []}

    def test_reports_total_drift(self, api, admin, tenant, make_client, make_loan, db_factory) -> None:
        """A total edited behind the ledger's back shows up as drift."""
        client = make_client(tenant["headers"])
        loan = make_loan(tenant["headers"], client["id"])
        with db_factory() as db:
            db.get(models.Loan, loan["id"]).total_amount = Decimal("999.00")
            db.commit()

        report = api.get("/api/v1/admin/integrity", headers=admin["headers"]).json()
        assert report["ok"] is False
        assert len(report["total_drift"]) == 1
        drift = report["total_drift"][0]
        assert drift["loan_id"] == loan["id"]
        assert D(drift["total_amount"]) == Decimal("999.00")
        assert D(drift["installments_total"]) == Decimal("1200.00")
