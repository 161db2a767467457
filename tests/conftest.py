import os
import uuid
from datetime import UTC, datetime, timedelta

# Settings are read at import time, so the environment must be ready first.
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["APP_URL"] = "http://testserver"
os.environ["SUPABASE_URL"] = "https://identity.test"
os.environ["SUPABASE_ANON_KEY"] = "anon-key"
os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "service-role-key"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_123"
os.environ["STRIPE_PUBLISHABLE_KEY"] = "pk_test_123"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["SESSION_COOKIE_SECURE"] = "false"
os.environ["ARCHIVE_CACHE_BACKEND"] = "memory"

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from app.db import Base, engine  # noqa: E402
from app.models import Profile, Subscription, SubscriptionStatus  # noqa: E402
from app.services.archive_cache import ArchiveCache, MemoryCacheBackend  # noqa: E402
from app.services.archive_proxy import ArchiveProxy  # noqa: E402
from app.services.identity import AuthUser  # noqa: E402
from app.services.stripe_gateway import StripeGateway  # noqa: E402
from tests.helpers import (  # noqa: E402
    ARCHIVE_BASE_URL,
    VALID_TOKEN,
    WEBHOOK_SECRET,
    FakeArchive,
    FakeClock,
    FakeIdentity,
)

Base.metadata.create_all(engine)


@pytest.fixture(scope="session")
def test_engine():
    return engine


@pytest.fixture(autouse=True)
def _clean_tables(test_engine):
    yield
    with test_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture()
def db_session(test_engine):
    Session = sessionmaker(bind=test_engine, autoflush=False, autocommit=False)
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def auth_user() -> AuthUser:
    return AuthUser(id=uuid.uuid4(), email="reader@example.com", full_name="Ada Reader")


@pytest.fixture()
def identity(auth_user) -> FakeIdentity:
    fake = FakeIdentity()
    fake.users[VALID_TOKEN] = auth_user
    return fake


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def fake_archive() -> FakeArchive:
    archive = FakeArchive()
    archive.routes["/newspapers"] = lambda request: httpx.Response(
        200, json={"newspapers": [{"lccn": "sn84026749", "title": "The Evening Star"}]}
    )
    archive.routes["/lccn/sn84026749/1912-04-15/ed-1/seq-1/ocr.txt"] = (
        lambda request: httpx.Response(
            200, text="TITANIC SINKS", headers={"content-type": "text/plain"}
        )
    )
    return archive


@pytest.fixture()
def archive_proxy(fake_archive, fake_clock) -> ArchiveProxy:
    cache = ArchiveCache(MemoryCacheBackend(fake_clock, maxsize=100), clock=fake_clock)
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake_archive.handler))
    return ArchiveProxy(cache, http_client, ARCHIVE_BASE_URL, timeout=15.0)


@pytest.fixture()
def stripe_gateway() -> StripeGateway:
    return StripeGateway(secret_key="sk_test_123", webhook_secret=WEBHOOK_SECRET)


@pytest.fixture()
def client(db_session, identity, archive_proxy, stripe_gateway):
    """Test client with the database, identity provider, archive and Stripe swapped out."""
    from app.api.deps import get_db, get_stripe_gateway
    from app.main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_stripe_gateway] = lambda: stripe_gateway
    with TestClient(app) as test_client:
        app.state.identity = identity
        app.state.archive_proxy = archive_proxy
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def signed_in(client):
    client.cookies.set("sb-access-token", VALID_TOKEN)
    return client


@pytest.fixture()
def profile(db_session, auth_user) -> Profile:
    item = Profile(id=auth_user.id, email=auth_user.email, full_name=auth_user.full_name)
    db_session.add(item)
    db_session.commit()
    db_session.refresh(item)
    return item


@pytest.fixture()
def make_subscription(db_session):
    def _make(
        user_id: uuid.UUID,
        status: SubscriptionStatus = SubscriptionStatus.active,
        subscription_id: str | None = None,
    ) -> Subscription:
        now = datetime.now(UTC)
        item = Subscription(
            id=subscription_id or f"sub_{uuid.uuid4().hex[:14]}",
            user_id=user_id,
            status=status,
            price_id="price_monthly",
            quantity=1,
            cancel_at_period_end=False,
            created=now,
            current_period_start=now,
            current_period_end=now + timedelta(days=30),
        )
        db_session.add(item)
        db_session.commit()
        db_session.refresh(item)
        return item

    return _make
