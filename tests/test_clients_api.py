"""Tests for clients, client documents and partners."""

from decimal import Decimal
from pathlib import Path

from sqlalchemy.orm import Session

from hk_loans.app.core.config import settings
from hk_loans.app.db import models


def D(value) -> Decimal:
    return Decimal(str(value))


class TestClients:
    """Tests for /clients."""

    def test_create_normalizes_fields(self, make_client, tenant) -> None:
        """CPF keeps digits only, blanks become null, rating defaults to 5."""
        client = make_client(tenant["headers"], cpf="123.456.789-00", rg="  ", group_name="Feira")
        assert client["cpf"] == "12345678900"
        assert client["rg"] is None
        assert client["rating"] == 5
        assert client["group_name"] == "Feira"
        assert client["loans_count"] == 0
        assert client["documents"] == []

    def test_duplicate_cpf_in_same_tenant(self, api, make_client, tenant) -> None:
        """CPF is unique per tenant."""
        make_client(tenant["headers"], cpf="12345678900")
        resp = api.post(
            "/api/v1/clients", json={"name": "Outra", "cpf": "123.456.789-00"}, headers=tenant["headers"]
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "CPF já cadastrado."

    def test_same_cpf_in_other_tenant(self, make_client, tenant, other_tenant) -> None:
        """Different tenants may register the same CPF."""
        make_client(tenant["headers"], cpf="12345678900")
        make_client(other_tenant["headers"], cpf="12345678900")

    def test_rating_bounds(self, api, tenant) -> None:
        """Rating goes from 1 to 5."""
        resp = api.post("/api/v1/clients", json={"name": "X", "rating": 6}, headers=tenant["headers"])
        assert resp.status_code == 422

    def test_list_filters_and_order(self, api, make_client, tenant, other_tenant) -> None:
        """List is tenant-scoped, ordered by name, and filterable."""
        make_client(tenant["headers"], name="Zeca", group_name="Feira")
        make_client(tenant["headers"], name="Ana")
        make_client(other_tenant["headers"], name="Bruno")

        names = [c["name"] for c in api.get("/api/v1/clients", headers=tenant["headers"]).json()]
        assert names == ["Ana", "Zeca"]

        by_group = api.get("/api/v1/clients", params={"group": "Feira"}, headers=tenant["headers"]).json()
        assert [c["name"] for c in by_group] == ["Zeca"]

        by_name = api.get("/api/v1/clients", params={"q": "an"}, headers=tenant["headers"]).json()
        assert [c["name"] for c in by_name] == ["Ana"]

    def test_partial_update(self, api, make_client, tenant) -> None:
        """Only the fields sent are changed."""
        client = make_client(tenant["headers"], whatsapp="11999990000")
        resp = api.put(f"/api/v1/clients/{client['id']}", json={"rating": 2}, headers=tenant["headers"])
        assert resp.status_code == 200
        assert resp.json()["rating"] == 2
        assert resp.json()["whatsapp"] == "11999990000"

    def test_update_to_taken_cpf(self, api, make_client, tenant) -> None:
        make_client(tenant["headers"], cpf="11111111111")
        other = make_client(tenant["headers"], name="Outra")
        resp = api.put(f"/api/v1/clients/{other['id']}", json={"cpf": "111.111.111-11"}, headers=tenant["headers"])
        assert resp.status_code == 400

    def test_foreign_client(self, api, make_client, tenant, other_tenant) -> None:
        """Other tenants get 403; unknown ids 404."""
        client = make_client(tenant["headers"])
        assert api.get(f"/api/v1/clients/{client['id']}", headers=other_tenant["headers"]).status_code == 403
        assert api.delete(f"/api/v1/clients/{client['id']}", headers=other_tenant["headers"]).status_code == 403
        assert api.get("/api/v1/clients/CLI-NOPE", headers=tenant["headers"]).status_code == 404

    def test_delete_cascades_loans(self, api, make_client, make_loan, tenant, db_factory) -> None:
        """Deleting a client removes its loans and installments."""
        client = make_client(tenant["headers"])
        make_loan(tenant["headers"], client["id"])
        assert api.delete(f"/api/v1/clients/{client['id']}", headers=tenant["headers"]).status_code == 200
        with db_factory() as db:
            assert db.query(models.Loan).count() == 0
            assert db.query(models.Installment).count() == 0

    def test_delete_removes_loan_transactions(self, api, make_client, make_loan, tenant, db_factory) -> None:
        """Cash rows of the client's loans go with it; manual rows stay."""
        headers = tenant["headers"]
        client = make_client(headers)
        loan = make_loan(headers, client["id"])
        first = sorted(loan["installments"], key=lambda i: i["number"])[0]
        api.post(f"/api/v1/installments/{first['id']}/pay", json={"amount_paid": "400"}, headers=headers)
        api.post("/api/v1/transactions", json={"type": "OUT", "amount": "30", "category": "Gasolina"}, headers=headers)

        assert api.delete(f"/api/v1/clients/{client['id']}", headers=headers).status_code == 200
        with db_factory() as db:
            rows = db.query(models.Transaction).all()
            assert [(r.category, r.loan_id) for r in rows] == [("Gasolina", None)]

    def test_stats(self, api, make_client, make_loan, tenant) -> None:
        """Stats exclude renegotiated principal but count its receipts."""
        headers = tenant["headers"]
        client = make_client(headers)
        loan = make_loan(headers, client["id"], amount="300", total_amount="400", installments_count=4)
        first = sorted(loan["installments"], key=lambda i: i["number"])[0]
        api.post(f"/api/v1/installments/{first['id']}/pay", json={"amount_paid": "100"}, headers=headers)
        api.post(
            f"/api/v1/loans/{loan['id']}/renegotiate",
            json={"new_total_amount": "360", "new_installments_count": 3, "new_start_date": "2024-06-01"},
            headers=headers,
        )

        stats = api.get(f"/api/v1/clients/{client['id']}/stats", headers=headers).json()
        assert D(stats["total_loaned"]) == Decimal("300.00")
        assert D(stats["total_debt"]) == Decimal("360.00")
        assert D(stats["total_paid"]) == Decimal("100.00")
        assert stats["active_loans_count"] == 1
        assert stats["renegotiated_loans_count"] == 1

    def test_plan_limit(self, api, make_user, make_client, db_factory) -> None:
        """A plan caps the number of clients."""
        with db_factory() as db:
            plan = models.Plan(name="Mini", max_clients=1, max_loans=1)
            db.add(plan)
            db.commit()
            plan_id = plan.id
        user = make_user("limited", plan_id=plan_id)
        make_client(user["headers"])
        resp = api.post("/api/v1/clients", json={"name": "Segundo"}, headers=user["headers"])
        assert resp.status_code == 400
        assert "Limite do plano" in resp.json()["detail"]


class TestDocuments:
    """Tests for client documents."""

    def test_upload_and_delete(self, api, make_client, tenant) -> None:
        """Upload stores the file; delete removes row and file."""
        client = make_client(tenant["headers"])
        resp = api.post(
            f"/api/v1/clients/{client['id']}/documents",
            files={"file": ("rg.png", b"\x89PNG fake", "image/png")},
            headers=tenant["headers"],
        )
        assert resp.status_code == 201, resp.text
        doc = resp.json()
        assert doc["url"].startswith("/uploads/")
        assert doc["mime_type"] == "image/png"
        assert doc["size"] == 9
        stored = Path(settings.UPLOAD_DIR) / doc["url"].rsplit("/", 1)[-1]
        assert stored.is_file()

        listed = api.get(f"/api/v1/clients/{client['id']}", headers=tenant["headers"]).json()
        assert [d["id"] for d in listed["documents"]] == [doc["id"]]

        assert api.delete(f"/api/v1/documents/{doc['id']}", headers=tenant["headers"]).status_code == 200
        assert not stored.exists()

    def test_rejects_type(self, api, make_client, tenant) -> None:
        client = make_client(tenant["headers"])
        resp = api.post(
            f"/api/v1/clients/{client['id']}/documents",
            files={"file": ("notes.txt", b"hello", "text/plain")},
            headers=tenant["headers"],
        )
        assert resp.status_code == 400

    def test_rejects_size(self, api, make_client, tenant) -> None:
        """Files above MAX_UPLOAD_MB are refused."""
        client = make_client(tenant["headers"])
        big = b"0" * (settings.max_upload_bytes + 1)
        resp = api.post(
            f"/api/v1/clients/{client['id']}/documents",
            files={"file": ("big.pdf", big, "application/pdf")},
            headers=tenant["headers"],
        )
        assert resp.status_code == 400

    def test_foreign_document(self, api, make_client, tenant, other_tenant) -> None:
        client = make_client(tenant["headers"])
        doc = api.post(
            f"/api/v1/clients/{client['id']}/documents",
            files={"file": ("c.pdf", b"%PDF", "application/pdf")},
            headers=tenant["headers"],
        ).json()
        assert api.delete(f"/api/v1/documents/{doc['id']}", headers=other_tenant["headers"]).status_code == 403


class TestPartners:
    """Tests for /partners."""

    def test_crud(self, api, make_partner, tenant, other_tenant) -> None:
        partner = make_partner(tenant["headers"], pix_key="  ")
        assert partner["pix_key"] is None
        assert D(partner["commission_rate"]) == Decimal("10.00")

        assert len(api.get("/api/v1/partners", headers=tenant["headers"]).json()) == 1
        assert api.get("/api/v1/partners", headers=other_tenant["headers"]).json() == []
        assert api.delete(f"/api/v1/partners/{partner['id']}", headers=other_tenant["headers"]).status_code == 403
        assert api.delete(f"/api/v1/partners/{partner['id']}", headers=tenant["headers"]).status_code == 200

    def test_rate_bounds(self, api, tenant) -> None:
        resp = api.post("/api/v1/partners", json={"name": "X", "commission_rate": "150"}, headers=tenant["headers"])
        assert resp.status_code == 422

    def test_delete_keeps_loans(self, api, make_partner, make_client, make_loan, tenant) -> None:
        """Loans survive their partner's deletion."""
        partner = make_partner(tenant["headers"])
        client = make_client(tenant["headers"])
        loan = make_loan(tenant["headers"], client["id"], partner_id=partner["id"])
        api.delete(f"/api/v1/partners/{partner['id']}", headers=tenant["headers"])
        refreshed = api.get(f"/api/v1/loans/{loan['id']}", headers=tenant["headers"]).json()
        assert refreshed["partner_id"] is None


def _break_commit(monkeypatch) -> None:
    def boom(self):
        raise RuntimeError("database is gone")

    monkeypatch.setattr(Session, "commit", boom)


class TestFailedWrites:
    """A failing commit rolls back and answers a stable 500."""

    def test_partner_delete(self, api, make_partner, tenant, monkeypatch) -> None:
        partner = make_partner(tenant["headers"])
        _break_commit(monkeypatch)

        resp = api.delete(f"/api/v1/partners/{partner['id']}", headers=tenant["headers"])
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Erro ao excluir parceiro"}

        monkeypatch.undo()
        assert [p["id"] for p in api.get("/api/v1/partners", headers=tenant["headers"]).json()] == [partner["id"]]

    def test_client_delete_keeps_everything(self, api, make_client, make_loan, tenant, db_factory, monkeypatch) -> None:
        """Neither the client nor its loan cash rows are lost."""
        client = make_client(tenant["headers"])
        make_loan(tenant["headers"], client["id"])
        with db_factory() as db:
            before = db.query(models.Transaction).count()
        _break_commit(monkeypatch)

        resp = api.delete(f"/api/v1/clients/{client['id']}", headers=tenant["headers"])
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Erro ao excluir cliente"}

        monkeypatch.undo()
        with db_factory() as db:
            assert db.get(models.Client, client["id"]) is not None
            assert db.query(models.Loan).count() == 1
            assert db.query(models.Transaction).count() == before > 0

    def test_upload_leaves_no_file(self, api, make_client, tenant, monkeypatch) -> None:
        """The stored file is removed when the row cannot be saved."""
        client = make_client(tenant["headers"])
        upload_dir = Path(settings.UPLOAD_DIR)
        before = set(upload_dir.iterdir())
        _break_commit(monkeypatch)

        resp = api.post(
            f"/api/v1/clients/{client['id']}/documents",
            files={"file": ("rg.png", b"\x89PNG fake", "image/png")},
            headers=tenant["headers"],
        )
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Erro ao salvar documento"}
        assert set(upload_dir.iterdir()) == before
