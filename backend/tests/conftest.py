"""
Shared pytest fixtures for the Meisner Studio API test suite.

Provides:
    - reset_db: per-test drop/create of all tables (autouse)
    - client: FastAPI TestClient
    - seed: persist ORM objects outside a request
    - make_account / admin / customer: accounts with bearer headers
    - sent_emails: outgoing mail captured instead of sent
"""
import asyncio
import os
import tempfile
from pathlib import Path

import pytest

_DB_FILE = Path(tempfile.gettempdir()) / f"meisner_test_{os.getpid()}.db"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_FILE}"
os.environ["OPENAI_API_KEY"] = "test-key"
os.environ["MAILGUN_API_KEY"] = ""
os.environ["MAILGUN_DOMAIN"] = ""
os.environ["APP_URL"] = "https://studio.test"
os.environ["LOG_LEVEL"] = "WARNING"

from fastapi.testclient import TestClient  # noqa: E402

from app.auth.jwt import create_access_token  # noqa: E402
from app.database import Base, async_session_maker, engine  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Account  # noqa: E402
from app.services import email_service  # noqa: E402


async def _reset_schema() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def _persist(objs) -> None:
    async with async_session_maker() as db:
        db.add_all(objs)
        await db.commit()


async def _query(fn):
    async with async_session_maker() as db:
        return await fn(db)


@pytest.fixture(autouse=True)
def reset_db():
    asyncio.run(_reset_schema())
    yield


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def seed():
    """seed(obj, ...) commits the objects and returns the first one."""

    def _seed(*objs):
        asyncio.run(_persist(list(objs)))
        return objs[0] if len(objs) == 1 else objs

    return _seed


@pytest.fixture
def query():
    """query(async fn(db)) runs a read against the test database."""

    def _query_sync(fn):
        return asyncio.run(_query(fn))

    return _query_sync


def bearer(account: Account) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': account.id})}"}


@pytest.fixture
def make_account(seed):
    def _make(email: str, is_admin: bool = False, name: str | None = None) -> tuple[Account, dict]:
        account = seed(Account(email=email.lower(), is_admin=is_admin, name=name))
        return account, bearer(account)

    return _make


@pytest.fixture
def admin(make_account):
    return make_account("admin@meisner.test", is_admin=True, name="Studio Admin")


@pytest.fixture
def customer(make_account):
    return make_account("client@acme.test", name="Acme Client")


@pytest.fixture
def sent_emails(monkeypatch):
    """Capture outgoing mail; every send reports success."""
    outbox: list[dict] = []

    async def fake_send(to, subject, html_body, text_body=None):
        outbox.append({"to": to, "subject": subject, "html": html_body, "text": text_body})
        return email_service.EmailResult(to=to, sent=True)

    monkeypatch.setattr(email_service, "send_email", fake_send)
    return outbox
