"""
tests/test_api.py
=================
Auth, suppliers, dashboard, reports, audit log, settings, CSRF and the
"not provisioned" behaviour of list endpoints.
"""
import csv
import io

import pytest


# ─── Auth ────────────────────────────────────────────────────────────────────

class TestAuth:

    def test_login_me_logout(self, client, make_user):
        make_user(username="admin", password="secret", email="a@example.com")

        resp = client.post("/auth/login", json={"username": "admin", "password": "secret"})
        assert resp.status_code == 200
        assert resp.get_json()["user"]["username"] == "admin"
        assert resp.get_json()["user"]["last_sign_in_at"] is not None

        assert client.get("/auth/me").get_json()["user"]["email"] == "a@example.com"
        assert client.post("/auth/logout").status_code == 200
        assert client.get("/auth/me").status_code == 401

    def test_wrong_password(self, client, make_user):
        make_user(username="admin", password="secret")
        resp = client.post("/auth/login", json={"username": "admin", "password": "nope"})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "invalid_credentials"

    def test_inactive_user(self, client, make_user):
        make_user(username="old", password="secret", is_active=False)
        resp = client.post("/auth/login", json={"username": "old", "password": "secret"})
        assert resp.status_code == 403

    def test_seed_admin_only_once(self, client):
        resp = client.post("/auth/seed-admin", json={"username": "root", "password": "pw"})
        assert resp.status_code == 201

        again = client.post("/auth/seed-admin", json={"username": "other", "password": "pw"})
        assert again.status_code == 409

        assert client.post("/auth/login", json={"username": "root", "password": "pw"}).status_code == 200

    def test_seed_admin_needs_password(self, client):
        assert client.post("/auth/seed-admin", json={"username": "root"}).status_code == 400


class TestCsrf:

    def test_mutations_need_token_when_enabled(self, app, client, make_user):
        make_user(username="admin", password="secret")
        app.config["WTF_CSRF_ENABLED"] = True

        resp = client.post("/auth/login", json={"username": "admin", "password": "secret"})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "csrf"

        token = client.get("/auth/csrf-token").get_json()["csrf_token"]
        resp = client.post(
            "/auth/login",
            json={"username": "admin", "password": "secret"},
            headers={"X-CSRFToken": token},
        )
        assert resp.status_code == 200


# ─── Suppliers ───────────────────────────────────────────────────────────────

class TestSuppliers:

    def test_crud(self, auth_client, make_supplier):
        row = make_supplier(name="Gulf", phone="0501")
        assert row["user_id"] is not None

        resp = auth_client.put(f"/suppliers/{row['id']}", json={"notes": "net 30"})
        assert resp.get_json()["notes"] == "net 30"
        assert resp.get_json()["name"] == "Gulf"

        assert auth_client.delete(f"/suppliers/{row['id']}").status_code == 200
        assert auth_client.delete(f"/suppliers/{row['id']}").status_code == 404

    def test_ordered_by_name_and_searchable(self, auth_client, make_supplier):
        make_supplier(name="Zamil", phone="0555")
        make_supplier(name="Almarai", phone="0111")

        names = [s["name"] for s in auth_client.get("/suppliers/").get_json()["items"]]
        assert names == ["Almarai", "Zamil"]

        found = auth_client.get("/suppliers/", query_string={"q": "055"}).get_json()["items"]
        assert [s["name"] for s in found] == ["Zamil"]
        found = auth_client.get("/suppliers/", query_string={"q": "alm"}).get_json()["items"]
        assert [s["name"] for s in found] == ["Almarai"]

    def test_name_required(self, auth_client):
        assert auth_client.post("/suppliers/", json={"phone": "1"}).status_code == 400

    def test_requires_login(self, client):
        assert client.get("/suppliers/").status_code == 401


# ─── Dashboard ───────────────────────────────────────────────────────────────

class TestDashboard:

    def test_per_currency_blocks(self, auth_client, make_contract, make_item, make_payment):
        sar = make_contract(currency="SAR", contract_date="2024-01-15")
        usd = make_contract(currency="USD", contract_date="2024-02-15")
        make_item(sar["id"], quantity="10", sale_price="100", purchase_price="60")
        make_item(usd["id"], quantity="1", sale_price="200", purchase_price="150")
        make_payment(sar["id"], amount="750")

        body = auth_client.get("/dashboard/").get_json()

        assert body["contracts_count"] == 2
        blocks = {b["currency"]: b for b in body["by_currency"]}
        assert blocks["SAR"]["total_value"] == "1000.00"
        assert blocks["SAR"]["total_received"] == "750.00"
        assert blocks["SAR"]["remaining_amount"] == "250.00"
        assert blocks["SAR"]["estimated_profit"] == "400.00"
        assert blocks["USD"]["total_value"] == "200.00"
        assert blocks["USD"]["total_received"] == "0.00"
        assert blocks["SAR"]["monthly"] == [
            {"key": "2024-01", "month": "Jan 2024", "revenue": "1000.00", "cost": "0.00"}
        ]

    def test_empty(self, auth_client):
        assert auth_client.get("/dashboard/").get_json() == {"contracts_count": 0, "by_currency": []}


# ─── Reports ─────────────────────────────────────────────────────────────────

class TestReports:

    @pytest.fixture
    def data(self, auth_client, make_contract, make_item):
        a = make_contract(contract_number="A-1", governorate="Riyadh", branch="North")
        b = make_contract(contract_number="B-1", governorate="Riyadh", branch="North", currency="USD")
        make_item(a["id"], quantity="10", sale_price="100")
        make_item(b["id"], quantity="1", sale_price="999")
        auth_client.post(f"/contracts/{a['id']}/expenses/", json={"expense_type": "نقل", "amount": "100"})
        return a, b

    def test_currencies(self, auth_client, data):
        body = auth_client.get("/reports/currencies").get_json()
        assert sorted(body["currencies"]) == ["SAR", "USD"]
        assert body["default"] == "SAR"

    def test_currencies_without_contracts(self, auth_client):
        assert auth_client.get("/reports/currencies").get_json()["currencies"] == ["SAR"]

    def test_profit_defaults_to_sar(self, auth_client, data):
        body = auth_client.get("/reports/profit").get_json()
        assert body["currency"] == "SAR"
        assert [r["contract_number"] for r in body["rows"]] == ["A-1"]
        assert body["totals"] == {"revenue": "1000.00", "total_cost": "100.00", "profit": "900.00"}

    def test_governorate_in_usd(self, auth_client, data):
        body = auth_client.get("/reports/governorate", query_string={"currency": "usd"}).get_json()
        assert body["rows"] == [{"name": "Riyadh - North", "contracts_count": 1, "total_value": "999.00"}]

    def test_balances(self, auth_client, data, make_payment):
        a, _ = data
        make_payment(a["id"], amount="1200")
        body = auth_client.get("/reports/balances").get_json()
        assert body["rows"][0]["remaining"] == "-200.00"

    def test_csv_download(self, auth_client, data):
        resp = auth_client.get("/reports/profit.csv")
        assert resp.status_code == 200
        assert resp.mimetype == "text/csv"
        assert "profit-report-SAR.csv" in resp.headers["Content-Disposition"]

        lines = list(csv.reader(io.StringIO(resp.get_data(as_text=True))))
        assert lines[0] == ["contract_number", "revenue", "total_cost", "profit"]
        assert lines[1] == ["A-1", "1000.00", "100.00", "900.00"]
        assert lines[-1] == ["TOTAL", "1000.00", "100.00", "900.00"]

    def test_unknown_kind(self, auth_client):
        assert auth_client.get("/reports/taxes").status_code == 404
        assert auth_client.get("/reports/taxes.csv").status_code == 404


# ─── Audit log screen ────────────────────────────────────────────────────────

class TestAuditLogs:

    def test_newest_first_with_username(self, auth_client, make_contract, make_supplier, drain):
        make_contract()
        make_supplier()
        drain()

        body = auth_client.get("/audit-logs/").get_json()
        assert [r["entity_type"] for r in body["items"]] == ["SUPPLIER", "CONTRACT"]
        assert {r["username"] for r in body["items"]} == {"admin"}
        assert "CONTRACT_EXPENSE" in body["entity_types"]
        assert body["actions"] == ["CREATE", "UPDATE", "DELETE"]

    def test_filters(self, auth_client, make_contract, make_supplier, drain):
        contract = make_contract()
        make_supplier()
        auth_client.delete(f"/contracts/{contract['id']}")
        drain()

        def types(**params):
            items = auth_client.get("/audit-logs/", query_string=params).get_json()["items"]
            return [(r["action"], r["entity_type"]) for r in items]

        assert types(entity_type="contract") == [("DELETE", "CONTRACT"), ("CREATE", "CONTRACT")]
        assert types(entity_type="ALL") == types()
        assert types(q="delete") == [("DELETE", "CONTRACT")]
        assert types(q="suppl") == [("CREATE", "SUPPLIER")]

    def test_window_is_limited(self, app, auth_client, make_supplier, drain):
        app.config["AUDIT_LOG_LIMIT"] = 3
        for n in range(5):
            make_supplier(name=f"S{n}")
        drain()
        assert len(auth_client.get("/audit-logs/").get_json()["items"]) == 3


# ─── Settings / index ────────────────────────────────────────────────────────

def test_account_settings(auth_client):
    body = auth_client.get("/settings/account").get_json()
    assert body["username"] == "admin"
    assert body["email"] == "admin@example.com"
    assert body["last_sign_in_at"] is not None
    assert body["app_name"] == "Contract Ledger"


def test_index_lists_endpoints(client):
    body = client.get("/").get_json()
    assert body["name"] == "Contract Ledger"
    assert "/contracts" in body["endpoints"]
    assert "/reports" in body["endpoints"]


# ─── Not provisioned ─────────────────────────────────────────────────────────

class TestNotProvisioned:

    @pytest.fixture
    def no_receipts_table(self, app):
        from contract_ledger.extensions import db
        from contract_ledger.models import DeliveryReceipt

        with app.app_context():
            DeliveryReceipt.__table__.drop(db.engine)

    def test_list_degrades_to_empty(self, auth_client, make_contract, no_receipts_table):
        cid = make_contract()["id"]
        resp = auth_client.get(f"/contracts/{cid}/receipts/")

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["items"] == []
        assert body["provisioned"] is False
        assert "not provisioned" in body["message"]

    def test_mutation_reports_provisioning(self, auth_client, make_contract, no_receipts_table):
        cid = make_contract()["id"]
        resp = auth_client.post(
            f"/contracts/{cid}/receipts/", json={"recipient_name": "A", "delivery_date": "2024-01-01"}
        )
        assert resp.status_code == 503
        assert resp.get_json()["code"] == "42P01"

    def test_dashboard_and_reports_treat_missing_table_as_empty(self, app, auth_client, make_contract, make_item):
        from contract_ledger.extensions import db
        from contract_ledger.models import Payment

        cid = make_contract()["id"]
        make_item(cid, quantity="1", sale_price="10")
        with app.app_context():
            Payment.__table__.drop(db.engine)

        block = auth_client.get("/dashboard/").get_json()["by_currency"][0]
        assert block["total_value"] == "10.00"
        assert block["total_received"] == "0.00"

        body = auth_client.get("/reports/balances").get_json()
        assert body["totals"]["remaining"] == "10.00"

        summary = auth_client.get(f"/contracts/{cid}/summary").get_json()
        assert summary["total_received"] == "0.00"
