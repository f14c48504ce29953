"""Email login codes, tokens and /auth/me."""
import pytest
from sqlalchemy import select

from app.models import Account, EmailVerificationCode


@pytest.fixture
def fixed_code(monkeypatch):
    monkeypatch.setattr("app.services.auth_service.generate_login_code", lambda: "123456")
    return "123456"


def _send(client, email="New.Client@Acme.test"):
    return client.post("/api/auth/send-code", json={"email": email})


def test_send_code_stores_hash_and_mails_code(client, fixed_code, sent_emails, query):
    resp = _send(client)
    assert resp.json() == {"success": True}
    assert sent_emails[0]["to"] == "new.client@acme.test"
    assert fixed_code in sent_emails[0]["text"]

    async def load(db):
        return (await db.execute(select(EmailVerificationCode))).scalars().all()

    codes = query(load)
    assert len(codes) == 1
    assert codes[0].code_hash != fixed_code


def test_send_code_rejects_bad_email(client):
    resp = _send(client, "not-an-email")
    assert resp.status_code == 400


def test_send_code_rate_limited(client, fixed_code):
    for _ in range(5):
        assert _send(client).status_code == 200
    resp = _send(client)
    assert resp.status_code == 429


def test_verify_creates_account_and_token(client, fixed_code, query):
    _send(client)
    resp = client.post("/api/auth/verify-code", json={"email": "new.client@acme.test", "code": fixed_code})
    assert resp.status_code == 200
    body = resp.json()
    assert body["token_type"] == "bearer"
    assert body["account"]["email"] == "new.client@acme.test"
    assert body["account"]["isAdmin"] is False

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["id"] == body["account"]["id"]

    async def load(db):
        return (await db.execute(select(Account).where(Account.email == "new.client@acme.test"))).scalar_one()

    assert query(load).email_verified_at is not None


def test_code_is_single_use(client, fixed_code):
    _send(client)
    payload = {"email": "new.client@acme.test", "code": fixed_code}
    assert client.post("/api/auth/verify-code", json=payload).status_code == 200
    resp = client.post("/api/auth/verify-code", json=payload)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid or expired code"}


def test_wrong_code_counts_attempts(client, fixed_code, query):
    _send(client)
    for _ in range(5):
        resp = client.post("/api/auth/verify-code", json={"email": "new.client@acme.test", "code": "000000"})
        assert resp.status_code == 400

    async def load(db):
        return (await db.execute(select(EmailVerificationCode))).scalar_one()

    assert query(load).attempts == 5
    locked = client.post("/api/auth/verify-code", json={"email": "new.client@acme.test", "code": fixed_code})
    assert locked.status_code == 429


def test_existing_admin_keeps_role(client, fixed_code, admin):
    _send(client, "admin@meisner.test")
    body = client.post("/api/auth/verify-code", json={"email": "admin@meisner.test", "code": fixed_code}).json()
    assert body["account"]["isAdmin"] is True
    assert body["account"]["name"] == "Studio Admin"


def test_me_requires_token(client):
    assert client.get("/api/auth/me").status_code == 401
    bad = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
    assert bad.status_code == 401
    assert bad.json() == {"error": "Invalid or expired token"}


def test_malformed_code_rejected(client):
    resp = client.post("/api/auth/verify-code", json={"email": "a@b.test", "code": "12ab"})
    assert resp.status_code == 400
