"""
tests/test_contracts_api.py
===========================
/contracts: list, create, detail, update, delete, summary and print view.
"""
from decimal import Decimal

import pytest


class TestAuthRequired:

    @pytest.mark.parametrize("method,url", [
        ("get", "/contracts/"),
        ("post", "/contracts/"),
        ("get", "/contracts/1"),
        ("get", "/contracts/1/items/"),
        ("get", "/contracts/1/summary"),
    ])
    def test_anonymous_gets_401(self, client, method, url):
        resp = getattr(client, method)(url, json={})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "unauthorized"


class TestCreate:

    def test_create_returns_row(self, auth_client, make_contract):
        row = make_contract(contract_number="X-1", notes="first")

        assert row["contract_number"] == "X-1"
        assert row["currency"] == "SAR"
        assert row["status"] == "new"
        assert row["contract_date"] == "2024-01-15"
        assert row["notes"] == "first"
        assert row["user_id"] is not None

    def test_currency_defaults_and_is_uppercased(self, make_contract):
        assert make_contract(currency=None)["currency"] == "SAR"
        assert make_contract(currency="usd")["currency"] == "USD"

    def test_unknown_currency_rejected(self, auth_client):
        resp = auth_client.post(
            "/contracts/",
            json={"contract_number": "C", "governorate": "G", "branch": "B", "contract_date": "2024-01-01", "currency": "XYZ"},
        )
        assert resp.status_code == 400
        assert "currency" in resp.get_json()["message"]

    @pytest.mark.parametrize("missing", ["contract_number", "governorate", "branch", "contract_date"])
    def test_required_fields(self, auth_client, missing):
        body = {"contract_number": "C", "governorate": "G", "branch": "B", "contract_date": "2024-01-01"}
        body.pop(missing)
        resp = auth_client.post("/contracts/", json=body)
        assert resp.status_code == 400
        assert missing in resp.get_json()["message"]

    def test_bad_date_and_status(self, auth_client):
        base = {"contract_number": "C", "governorate": "G", "branch": "B"}
        assert auth_client.post("/contracts/", json={**base, "contract_date": "01/02/2024"}).status_code == 400
        resp = auth_client.post("/contracts/", json={**base, "contract_date": "2024-01-01", "status": "lost"})
        assert resp.status_code == 400


class TestListAndSearch:

    def test_newest_first(self, auth_client, make_contract):
        first = make_contract()
        second = make_contract()

        body = auth_client.get("/contracts/").get_json()
        assert body["provisioned"] is True
        ids = [r["id"] for r in body["items"]]
        assert ids.index(second["id"]) < ids.index(first["id"])

    def test_search_matches_number_governorate_or_branch(self, auth_client, make_contract):
        make_contract(contract_number="RYD-1", governorate="Riyadh", branch="North")
        make_contract(contract_number="JED-1", governorate="Jeddah", branch="Harbour")

        def numbers(q):
            items = auth_client.get("/contracts/", query_string={"q": q}).get_json()["items"]
            return sorted(r["contract_number"] for r in items)

        assert numbers("ryd") == ["RYD-1"]
        assert numbers("jeddah") == ["JED-1"]
        assert numbers("harb") == ["JED-1"]
        assert numbers("-1") == ["JED-1", "RYD-1"]
        assert numbers("nothing") == []


class TestDetailUpdate:

    def test_get_and_404(self, auth_client, make_contract):
        row = make_contract()
        assert auth_client.get(f"/contracts/{row['id']}").get_json()["id"] == row["id"]

        resp = auth_client.get("/contracts/9999")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "not_found"

    def test_partial_update(self, auth_client, make_contract):
        row = make_contract()
        resp = auth_client.put(f"/contracts/{row['id']}", json={"status": "in_progress", "branch": "South"})

        assert resp.status_code == 200
        updated = resp.get_json()
        assert updated["status"] == "in_progress"
        assert updated["branch"] == "South"
        assert updated["governorate"] == row["governorate"]

    def test_currency_is_fixed_after_creation(self, auth_client, make_contract):
        row = make_contract(currency="USD")

        resp = auth_client.put(f"/contracts/{row['id']}", json={"currency": "SAR"})
        assert resp.status_code == 400
        assert auth_client.get(f"/contracts/{row['id']}").get_json()["currency"] == "USD"

        # repeating the same currency is harmless
        resp = auth_client.put(f"/contracts/{row['id']}", json={"currency": "usd", "notes": "n"})
        assert resp.status_code == 200

    def test_empty_update(self, auth_client, make_contract):
        row = make_contract()
        assert auth_client.put(f"/contracts/{row['id']}", json={}).status_code == 400


class TestDelete:

    def test_delete_cascades_to_details_and_blobs(self, app, auth_client, make_contract, make_item,
                                                  make_payment, attachments_bucket, tmp_path):
        import io

        contract = make_contract()
        keep = make_contract()
        item = make_item(contract["id"])
        make_item(keep["id"])
        make_payment(contract["id"])
        auth_client.post(
            f"/contracts/{contract['id']}/deliveries/",
            json={"contract_item_id": item["id"], "quantity_delivered": "2", "delivery_date": "2024-03-01"},
        )
        upload = auth_client.post(
            f"/contracts/{contract['id']}/attachments/",
            data={"file": (io.BytesIO(b"scan"), "scan.png")},
            content_type="multipart/form-data",
        )
        blob = tmp_path / "storage" / attachments_bucket / upload.get_json()["file_url"]
        assert blob.is_file()

        resp = auth_client.delete(f"/contracts/{contract['id']}")
        assert resp.status_code == 200
        assert resp.get_json() == {"deleted": contract["id"]}

        assert auth_client.get(f"/contracts/{contract['id']}").status_code == 404
        assert not blob.exists()

        from contract_ledger.gateway import gateway

        with app.app_context():
            assert gateway.count("contract_items") == 1
            assert gateway.count("payments") == 0
            assert gateway.count("deliveries") == 0
            assert gateway.count("attachments") == 0

    def test_delete_missing(self, auth_client):
        assert auth_client.delete("/contracts/4242").status_code == 404


class TestSummaryAndPrint:

    def test_summary_shows_both_cost_definitions(self, auth_client, make_contract, make_item, make_payment):
        contract = make_contract()
        cid = contract["id"]
        item = make_item(cid, quantity="10", sale_price="100", purchase_price="60")
        auth_client.post(f"/contracts/{cid}/purchases/", json={"item_name": "Cement", "quantity": "10", "purchase_price": "55"})
        auth_client.post(f"/contracts/{cid}/expenses/", json={"expense_type": "نقل", "amount": "30"})
        make_payment(cid, amount="400")
        make_payment(cid, amount="350")
        auth_client.post(
            f"/contracts/{cid}/deliveries/",
            json={"contract_item_id": item["id"], "quantity_delivered": "4", "delivery_date": "2024-02-10"},
        )

        s = auth_client.get(f"/contracts/{cid}/summary").get_json()

        assert s["currency"] == "SAR"
        assert s["contract_value"] == "1000.00"
        assert s["items_cost"] == "600.00"
        assert s["expected_profit"] == "400.00"
        assert s["procurement_cost"] == "550.00"
        assert s["expense_cost"] == "30.00"
        assert s["total_cost"] == "580.00"
        assert s["actual_profit"] == "420.00"
        assert s["total_received"] == "750.00"
        assert s["remaining_balance"] == "250.00"
        assert s["deliveries"][0]["remaining"] == "6.00"
        assert s["deliveries"][0]["fully_delivered"] is False

    def test_empty_contract_summary_is_zero(self, auth_client, make_contract):
        cid = make_contract()["id"]
        s = auth_client.get(f"/contracts/{cid}/summary").get_json()
        assert s["contract_value"] == "0.00"
        assert s["remaining_balance"] == "0.00"
        assert s["deliveries"] == []

    def test_print_view(self, auth_client, make_contract, make_item, make_payment):
        cid = make_contract(currency="USD")["id"]
        make_item(cid, quantity="2", sale_price="12.5", item_name="Cable")
        make_payment(cid, amount="5")

        body = auth_client.get(f"/contracts/{cid}/print").get_json()

        assert body["currency"] == "USD"
        assert body["items"] == [
            {"item_name": "Cable", "quantity": "2.00", "unit_price": "12.50", "line_total": "25.00"}
        ]
        assert body["totals"] == {"contract_value": "25.00", "total_received": "5.00", "remaining_balance": "20.00"}
        assert len(body["payments"]) == 1
        assert body["issued_on"]


def test_decimal_strings_round_trip(auth_client, make_contract, make_item):
    cid = make_contract()["id"]
    item = make_item(cid, quantity="1,5", sale_price="3")
    assert item["quantity"] == "1.50"
    assert Decimal(item["sale_price"]) == Decimal("3")
