import os
import re
import tempfile

# settings are read at import time; point them at a throwaway sqlite file before orcachat loads
_db_dir = tempfile.mkdtemp(prefix="orcachat-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_db_dir}/orcachat_test.db"
os.environ["JWT_SECRET"] = "test-secret-not-for-prod"
os.environ["MOCK_LLM"] = "true"
os.environ["AUTO_CREATE_TABLES"] = "true"
os.environ["ENV"] = "dev"
os.environ.pop("RESEND_API_KEY", None)
os.environ.pop("OPENAI_API_KEY", None)

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient
from sqlmodel import SQLModel

import orcachat.schema.full_schema  # noqa: F401
from orcachat.auth.repository import insert_user, mark_verified
from orcachat.auth.utils import hash_password
from orcachat.chat.repository import create_conversation
from orcachat.common.custom_exceptions import ExternalSendFailure
from orcachat.db.connection import async_engine, async_session
from orcachat.main import app
from orcachat.otp.dependencies import get_code_issuer
from orcachat.otp.issuer import ThrottledCodeIssuer

url_prefix = "/api/v1"

START_MS = 1_700_000_000_000


class FakeClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, start_ms: int = START_MS):
        self.ms = start_ms

    def __call__(self) -> int:
        return self.ms

    def advance(self, seconds: float = 0, ms: int = 0):
        self.ms += int(seconds * 1000) + ms


class FakeEmailSender:
    def __init__(self):
        self.sent = []
        self.fail = False

    async def send(self, to: str, subject: str, html_body: str) -> None:
        if self.fail:
            raise ExternalSendFailure()
        self.sent.append((to, subject, html_body))

    def last_code(self, to: str) -> str:
        for dest, _, body in reversed(self.sent):
            if dest == to:
                return re.search(r">(\d{6})<", body).group(1)
        raise AssertionError(f"no code sent to {to}")


@pytest.fixture(autouse=True)
async def fresh_db():
    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)
    yield


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def issuer(clock, email_sender):
    return ThrottledCodeIssuer(async_session, email_sender, "Your code", clock=clock)


@pytest.fixture
async def ac_client(issuer):
    app.dependency_overrides[get_code_issuer] = lambda: issuer
    try:
        async with LifespanManager(app):
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
                yield ac
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
async def user_id():
    async with async_session() as session:
        user = await insert_user(session, "owner@x.com", hash_password("pw"))
        await session.commit()
        return user.id


@pytest.fixture
async def conversation_id(user_id):
    async with async_session() as session:
        cid = await create_conversation(session, user_id, "New Chat")
        await session.commit()
        return cid


async def sign_in(ac: AsyncClient, email: str, password: str = "s3cret-pass") -> dict:
    """Registers, verifies and logs in a user; returns auth headers."""
    resp = await ac.post(f"{url_prefix}/auth/register", json={"email": email, "password": password})
    assert resp.status_code == 201, resp.text

    async with async_session() as session:
        await mark_verified(session, email)
        await session.commit()

    resp = await ac.post(f"{url_prefix}/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['data']['token']}"}
