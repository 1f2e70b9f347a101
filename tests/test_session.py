"""
tests/test_session.py
=====================
Session context: current user lookup and SIGNED_IN / SIGNED_OUT
notifications driven by Flask-Login.
"""
import pytest

from contract_ledger.session import SIGNED_IN, SIGNED_OUT, AuthSession, session_context


@pytest.fixture
def events():
    seen = []
    unsubscribe = session_context.on_auth_state_change(lambda event, sess: seen.append((event, sess)))
    yield seen
    unsubscribe()


def test_login_and_logout_emit_events(app, client, make_user, events):
    uid = make_user(username="alice", password="pw", email="alice@example.com")

    assert client.post("/auth/login", json={"username": "alice", "password": "pw"}).status_code == 200
    assert client.post("/auth/logout").status_code == 200

    assert [e for e, _ in events] == [SIGNED_IN, SIGNED_OUT]
    signed_in = events[0][1]
    assert isinstance(signed_in, AuthSession)
    assert signed_in.user_id == uid
    assert signed_in.username == "alice"
    assert signed_in.email == "alice@example.com"
    assert signed_in.last_sign_in_at is not None
    assert events[1][1].user_id == uid


def test_failed_login_emits_nothing(client, make_user, events):
    make_user(username="bob", password="right")
    assert client.post("/auth/login", json={"username": "bob", "password": "wrong"}).status_code == 401
    assert events == []


def test_unsubscribe_stops_notifications(client, make_user):
    make_user(username="carol", password="pw")
    seen = []
    unsubscribe = session_context.on_auth_state_change(lambda event, sess: seen.append(event))
    unsubscribe()
    unsubscribe()

    client.post("/auth/login", json={"username": "carol", "password": "pw"})
    assert seen == []


def test_get_user_and_session(app, make_user):
    from flask_login import login_user

    from contract_ledger.extensions import db
    from contract_ledger.models import User

    uid = make_user(username="dave")

    assert session_context.get_user() is None

    with app.test_request_context():
        assert session_context.get_user() is None
        assert session_context.get_session() is None

        login_user(db.session.get(User, uid))
        assert session_context.get_user().id == uid
        assert session_context.get_session().username == "dave"

        session_context.sign_out()
        assert session_context.get_user() is None


def test_logout_requires_login(client):
    resp = client.post("/auth/logout")
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "unauthorized"
