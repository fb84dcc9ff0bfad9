import os
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Load .env.test if present; otherwise tests run against a throwaway SQLite file
env_test_path = os.path.join(os.path.dirname(__file__), ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=True)
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./enkaji-test.db")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("SETTLEMENT_TRIGGER", "both")

from libs.auth.dependencies import get_current_user  # noqa: E402
from libs.auth.models import AuthUser  # noqa: E402
from libs.common.config import get_settings  # noqa: E402
from libs.db.base import Base  # noqa: E402
from libs.db.config import build_engine  # noqa: E402
from libs.db.session import get_async_db  # noqa: E402
from services.gateway_service.app.main import app  # noqa: E402
from services.payments_service.gateway_client import (  # noqa: E402
    PaymentIntent,
    get_payment_gateway,
    offline_reference,
)

# Import all models so metadata includes every table
from services.orders_service import models as _order_models  # noqa: F401,E402
from services.payments_service import models as _payment_models  # noqa: F401,E402

# Clear cached settings to reload with new env vars
get_settings.cache_clear()
settings = get_settings()


class FakePaymentGateway:
    """In-memory gateway: records intents and can be told to fail."""

    def __init__(self):
        self.intents: list[dict] = []
        self.error: Optional[Exception] = None

    async def create_intent(
        self, *, reference, amount_cents, currency, method, email=None
    ) -> PaymentIntent:
        if self.error is not None:
            raise self.error
        self.intents.append(
            {
                "reference": reference,
                "amount_cents": amount_cents,
                "currency": currency,
                "method": method,
            }
        )
        if method.is_offline:
            return PaymentIntent(reference=offline_reference(method, reference))
        return PaymentIntent(
            reference=f"PI-{reference}", client_secret=f"secret-{reference}"
        )


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """A fresh SQLite database per test, with every table created."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'enkaji.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging data and asserting on it directly."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def payment_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def acting_user():
    """Mutable holder for the caller the client authenticates as."""
    return {"user": AuthUser(user_id="buyer-1", email="buyer@example.com")}


@pytest.fixture
def act_as(acting_user):
    def _act_as(user_id: str, role: str = "buyer") -> AuthUser:
        user = AuthUser(user_id=user_id, role=role)
        acting_user["user"] = user
        return user

    return _act_as


@pytest_asyncio.fixture
async def client(
    session_factory, payment_gateway, acting_user
) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient on the gateway app.

    Each request gets its own session from the test database, auth resolves
    to ``acting_user`` and the payment gateway is the in-memory fake.
    """

    async def _get_db():
        async with session_factory() as session:
            yield session

    async def _current_user():
        return acting_user["user"]

    app.dependency_overrides[get_async_db] = _get_db
    app.dependency_overrides[get_current_user] = _current_user
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
