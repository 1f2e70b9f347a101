"""
tests/conftest.py
=================
Shared pytest fixtures: a Flask app on a temporary SQLite file, a local
blob store under tmp_path, logged-in test clients and API factories.

A file database (not :memory:) is used because the audit recorder writes
from its own worker thread and connection.
"""
import pytest

from config import TestingConfig


# ─── Application ─────────────────────────────────────────────────────────────

@pytest.fixture
def app(tmp_path):
    from contract_ledger import create_app
    from contract_ledger.audit import audit_recorder
    from contract_ledger.extensions import db

    class _Config(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'ledger-test.db'}"
        BLOB_ROOT = str(tmp_path / "storage")
        SECRET_KEY = "test-secret"

    app = create_app(_Config)
    with app.app_context():
        db.create_all()

    yield app

    audit_recorder.drain(timeout=10)
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def drain():
    """Wait for background audit writes before asserting on audit_logs."""
    from contract_ledger.audit import audit_recorder

    def _f():
        assert audit_recorder.drain(timeout=10)
    return _f


@pytest.fixture
def attachments_bucket(app):
    from contract_ledger.storage import get_blob_store

    with app.app_context():
        get_blob_store().create_bucket(app.config["ATTACHMENTS_BUCKET"])
    return app.config["ATTACHMENTS_BUCKET"]


# ─── Users ───────────────────────────────────────────────────────────────────

@pytest.fixture
def make_user(app):
    from contract_ledger.extensions import db
    from contract_ledger.models import User

    _n = [0]

    def _f(username=None, password="secret", is_active=True, email=None):
        _n[0] += 1
        username = username or f"user{_n[0]}"
        with app.app_context():
            user = User(username=username, email=email, is_active=is_active)
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            return user.id
    return _f


@pytest.fixture
def auth_client(app, make_user):
    """Test client logged in as 'admin' / 'secret'."""
    make_user(username="admin", password="secret", email="admin@example.com")
    c = app.test_client()
    resp = c.post("/auth/login", json={"username": "admin", "password": "secret"})
    assert resp.status_code == 200, resp.get_json()
    return c


# ─── API factories ───────────────────────────────────────────────────────────

@pytest.fixture
def make_contract(auth_client):
    _n = [0]

    def _f(**kw):
        _n[0] += 1
        body = {
            "contract_number": f"C-{_n[0]:03d}",
            "governorate": "Riyadh",
            "branch": "North",
            "contract_date": "2024-01-15",
            "currency": "SAR",
        }
        body.update(kw)
        resp = auth_client.post("/contracts/", json=body)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()
    return _f


@pytest.fixture
def make_item(auth_client):
    def _f(contract_id, quantity="10", sale_price="100", purchase_price="60", item_name="Cement"):
        resp = auth_client.post(
            f"/contracts/{contract_id}/items/",
            json={
                "item_name": item_name,
                "quantity": quantity,
                "sale_price": sale_price,
                "purchase_price": purchase_price,
            },
        )
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()
    return _f


@pytest.fixture
def make_payment(auth_client):
    def _f(contract_id, amount="100", payment_date="2024-02-01"):
        resp = auth_client.post(
            f"/contracts/{contract_id}/payments/",
            json={"amount": amount, "payment_date": payment_date},
        )
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()
    return _f


@pytest.fixture
def make_supplier(auth_client):
    def _f(name="Gulf Supplies", phone="0500000000"):
        resp = auth_client.post("/suppliers/", json={"name": name, "phone": phone})
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()
    return _f
