import hashlib
import hmac
import json
import time

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from localys import app
from localys import models  # noqa: F401
from localys.caching import MetricsCache
from localys.core.dependencies import get_db, get_metrics_cache, get_stripe_service, get_turnstile_service
from localys.db.base import Base
from localys.enums import BusinessCategory
from localys.models import Business, BusinessLocation, MenuItem, Profile
from localys.services.stripe_service import StripeService
from localys.services.turnstile_service import TurnstileService

WEBHOOK_SECRET = "whsec_test_secret"


class FakeStripe(StripeService):
    """StripeService with the HTTP calls replaced by an in-memory session store."""

    def __init__(self):
        super().__init__(secret_key="sk_test_fake", webhook_secret=WEBHOOK_SECRET)
        self.sessions = {}
        self.created = []

    async def create_checkout_session(self, line_items, metadata, success_url, cancel_url):
        session_id = f"cs_test_{len(self.created) + 1}"
        session = {
            "id": session_id,
            "url": f"https://checkout.stripe.test/{session_id}",
            "metadata": dict(metadata),
            "payment_status": "unpaid",
            "amount_total": sum(item["price_data"]["unit_amount"] * item["quantity"] for item in line_items),
        }
        self.created.append({
            "line_items": line_items,
            "metadata": metadata,
            "success_url": success_url,
            "cancel_url": cancel_url,
        })
        self.sessions[session_id] = session
        return session

    async def retrieve_checkout_session(self, session_id):
        return self.sessions.get(session_id)

    def mark_paid(self, session_id):
        self.sessions[session_id]["payment_status"] = "paid"
        return self.sessions[session_id]


class FakeTurnstile(TurnstileService):
    """TurnstileService answering from a canned siteverify response."""

    def __init__(self, secret_key="turnstile-secret", response=None, error=None):
        super().__init__(secret_key=secret_key, verify_url="https://turnstile.test/siteverify")
        self.response = response if response is not None else {"success": True}
        self.error = error
        self.calls = []

    async def _siteverify(self, payload):
        self.calls.append(payload)
        if self.error:
            raise self.error
        return self.response


def sign_webhook(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    timestamp = timestamp if timestamp is not None else int(time.time())
    signed = f"{timestamp}.".encode() + payload
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def checkout_completed_event(session: dict) -> bytes:
    event = {
        "id": f"evt_{session['id']}",
        "type": "checkout.session.completed",
        "data": {"object": session},
    }
    return json.dumps(event).encode()


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def metrics_cache():
    return MetricsCache(default_ttl=300, max_size=100)


@pytest.fixture
def fake_stripe():
    return FakeStripe()


@pytest.fixture
def fake_turnstile():
    return FakeTurnstile()


@pytest_asyncio.fixture
async def client(session_factory, metrics_cache, fake_stripe, fake_turnstile):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_metrics_cache] = lambda: metrics_cache
    app.dependency_overrides[get_stripe_service] = lambda: fake_stripe
    app.dependency_overrides[get_turnstile_service] = lambda: fake_turnstile

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def buyer(db):
    profile = Profile(email="buyer@example.com", username="buyer", full_name="Bea Buyer", coin_balance=0)
    db.add(profile)
    await db.commit()
    await db.refresh(profile)
    return profile


@pytest_asyncio.fixture
async def seller(db):
    profile = Profile(email="seller@example.com", username="seller", full_name="Sam Seller", coin_balance=500)
    db.add(profile)
    await db.commit()
    await db.refresh(profile)
    return profile


@pytest_asyncio.fixture
async def shop(db, seller):
    business = Business(
        owner_id=seller.id,
        business_name="Pho Saigon",
        category=BusinessCategory.FOOD,
        latitude=40.7128,
        longitude=-74.0060,
    )
    db.add(business)
    await db.commit()
    await db.refresh(business)
    return business


@pytest_asyncio.fixture
async def menu_item(db, shop):
    item = MenuItem(business_id=shop.id, item_name="Beef Pho", price=25.0)
    db.add(item)
    await db.commit()
    await db.refresh(item)
    return item


@pytest_asyncio.fixture
async def branch(db, shop):
    location = BusinessLocation(business_id=shop.id, label="Brooklyn", latitude=40.6782, longitude=-73.9442)
    db.add(location)
    await db.commit()
    await db.refresh(location)
    return location
