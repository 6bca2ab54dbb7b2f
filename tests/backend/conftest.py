import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from tortoise import Tortoise, connections

from portal.core import db as db_module
from portal.main import create_app
from portal.models.account import Account
from portal.services.account_store import AccountStore


TEST_DB_URL = "sqlite://:memory:"
db_module.DB_URL = TEST_DB_URL
db_module.TORTOISE_ORM["connections"]["default"] = TEST_DB_URL

DEFAULT_PASSWORD = "Aa1!aaaa"


class RecordingEmailSender:
    """Email collaborator that keeps every verification request in memory."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []

    async def send_verification_email(self, email: str, token: str) -> None:
        self.sent.append((email, token))


@pytest_asyncio.fixture
async def db():
    """
    Initialize a clean in-memory SQLite database for every test.
    Ensures tables are recreated from scratch.
    """
    await Tortoise.init(config=db_module.TORTOISE_ORM)
    await Tortoise.generate_schemas()
    yield
    await connections.close_all()


@pytest_asyncio.fixture
async def account_store(db):
    return AccountStore(stats_timezone="UTC")


@pytest.fixture
def outbox():
    return RecordingEmailSender()


@pytest_asyncio.fixture
async def client(account_store, outbox):
    """
    Provide an HTTPX AsyncClient bound to a freshly built app and DB.
    """
    app = create_app(store=account_store, email_sender=outbox)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client


@pytest_asyncio.fixture
async def create_account(account_store):
    """
    Factory fixture creating accounts directly through the store.
    """

    async def _create_account(
        email: str | None = None,
        password: str = DEFAULT_PASSWORD,
        verified: bool = False,
    ) -> tuple[Account, str]:
        email = email or f"user_{uuid.uuid4().hex[:6]}@example.com"
        await account_store.sign_up(email, password, email.split("@")[0], verified=verified)
        account = await Account.get(email=email)
        return account, password

    return _create_account


@pytest_asyncio.fixture
async def sign_in(client):
    """
    Helper fixture signing the test client in through the public endpoint.
    """

    async def _sign_in(email: str, password: str = DEFAULT_PASSWORD, remember: bool = False):
        resp = await client.post(
            "/signin/password",
            json={"email": email, "password": password, "remember": remember},
        )
        assert resp.status_code == 200, resp.text
        return resp

    return _sign_in
