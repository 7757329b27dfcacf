"""
Pytest configuration and shared fixtures for backend tests.
"""

import os
import sys
from pathlib import Path

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# No Redis in tests: in-memory rate limiting, metrics cache disconnected
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("ADMIN_API_TOKEN", "test-admin-token-0123456789abcdef")

import pytest
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Optional

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Import after path is set
from adapters.payments.stripe_adapter import (
    StripeAPIError,
    StripeCharge,
    StripeInvoice,
    StripeListPage,
    StripePaymentIntent,
    StripeSubscription,
    SubscriptionItem,
)
from infrastructure.database.models import Base


# Database URL for testing (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Fixed clock for window calculations: 2026-03-31 00:00:00 UTC
NOW = datetime(2026, 3, 31, tzinfo=timezone.utc)
DAY = 86400


def ts(days_ago: float) -> int:
    """Unix timestamp *days_ago* days before NOW."""
    return int(NOW.timestamp() - days_ago * DAY)


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test database."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# ============================================================================
# Stripe Object Builders
# ============================================================================

def make_subscription(
    sub_id: str,
    status: str = "active",
    created: Optional[int] = None,
    canceled_at: Optional[int] = None,
    items: Optional[list[tuple[int, Optional[str]]]] = None,
    livemode: bool = True,
    customer_id: Optional[str] = None,
) -> StripeSubscription:
    """
    Build a subscription.

    ``items`` is a list of (unit_amount, interval) pairs; an interval of
    None makes a non-recurring item.
    """
    return StripeSubscription(
        id=sub_id,
        status=status,
        created=created if created is not None else ts(100),
        canceled_at=canceled_at,
        customer_id=customer_id,
        livemode=livemode,
        items=[
            SubscriptionItem(
                id=f"{sub_id}_si{i}",
                unit_amount=amount,
                recurring=interval is not None,
                interval=interval,
            )
            for i, (amount, interval) in enumerate(items or [])
        ],
    )


def make_charge(
    charge_id: str,
    amount: int = 1000,
    status: str = "succeeded",
    created: Optional[int] = None,
    invoice_id: Optional[str] = None,
    customer_id: Optional[str] = None,
    metadata: Optional[dict[str, str]] = None,
    description: Optional[str] = None,
    livemode: bool = True,
) -> StripeCharge:
    """Build a charge."""
    return StripeCharge(
        id=charge_id,
        amount=amount,
        status=status,
        created=created if created is not None else ts(1),
        invoice_id=invoice_id,
        customer_id=customer_id,
        metadata=metadata or {},
        description=description,
        livemode=livemode,
    )


def make_intent(
    intent_id: str,
    amount: int = 1000,
    status: str = "succeeded",
    invoice_id: Optional[str] = None,
    customer_id: Optional[str] = None,
    metadata: Optional[dict[str, str]] = None,
    description: Optional[str] = None,
    livemode: bool = True,
    latest_charge: Optional[StripeCharge] = None,
) -> StripePaymentIntent:
    """Build a payment intent."""
    return StripePaymentIntent(
        id=intent_id,
        amount=amount,
        status=status,
        created=ts(1),
        invoice_id=invoice_id,
        customer_id=customer_id,
        metadata=metadata or {},
        description=description,
        livemode=livemode,
        latest_charge=latest_charge,
    )


# ============================================================================
# Fake Stripe
# ============================================================================

class FakeStripe:
    """
    In-memory stand-in for StripeAdapter.

    Collections are stored newest first, as Stripe returns them. Listing
    honours ``limit``, ``starting_after`` and ``created_gte``; subscription
    listing mimics Stripe by hiding canceled subscriptions unless
    ``status`` is "canceled" or "all".
    """

    def __init__(
        self,
        subscriptions: Optional[list[StripeSubscription]] = None,
        charges: Optional[list[StripeCharge]] = None,
        payment_intents: Optional[list[StripePaymentIntent]] = None,
        invoices: Optional[dict[str, Optional[str]]] = None,
    ):
        self.subscriptions = subscriptions or []
        self.charges = charges or []
        self.payment_intents = payment_intents or []
        # invoice id -> subscription id (None for invoices without one)
        self.invoices = invoices or {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.invoice_lookups: list[str] = []

    @staticmethod
    def _page(items: list, limit: int, starting_after: Optional[str]) -> StripeListPage:
        start = 0
        if starting_after is not None:
            start = next(i for i, item in enumerate(items) if item.id == starting_after) + 1
        page = items[start : start + limit]
        return StripeListPage(data=page, has_more=start + limit < len(items))

    async def list_subscriptions(
        self,
        status: Optional[str] = None,
        created_gte: Optional[int] = None,
        limit: int = 100,
        starting_after: Optional[str] = None,
        expand_prices: bool = False,
    ) -> StripeListPage[StripeSubscription]:
        self.calls.append(
            ("subscriptions", {"status": status, "created_gte": created_gte, "expand_prices": expand_prices})
        )
        items = self.subscriptions
        if status is None:
            items = [s for s in items if s.status != "canceled"]
        elif status != "all":
            items = [s for s in items if s.status == status]
        if created_gte is not None:
            items = [s for s in items if s.created >= created_gte]
        return self._page(items, limit, starting_after)

    async def list_charges(
        self,
        created_gte: Optional[int] = None,
        limit: int = 100,
        starting_after: Optional[str] = None,
    ) -> StripeListPage[StripeCharge]:
        self.calls.append(("charges", {"created_gte": created_gte}))
        items = self.charges
        if created_gte is not None:
            items = [c for c in items if c.created >= created_gte]
        return self._page(items, limit, starting_after)

    async def list_payment_intents(
        self,
        created_gte: Optional[int] = None,
        limit: int = 100,
        starting_after: Optional[str] = None,
    ) -> StripeListPage[StripePaymentIntent]:
        self.calls.append(("payment_intents", {"created_gte": created_gte}))
        return self._page(self.payment_intents, limit, starting_after)

    async def retrieve_invoice(self, invoice_id: str) -> StripeInvoice:
        self.invoice_lookups.append(invoice_id)
        if invoice_id not in self.invoices:
            raise StripeAPIError(f"No such invoice: '{invoice_id}'", status_code=404)
        return StripeInvoice(id=invoice_id, subscription_id=self.invoices[invoice_id])

    def calls_to(self, resource: str) -> int:
        return sum(1 for name, _ in self.calls if name == resource)


@pytest.fixture
def fake_stripe() -> FakeStripe:
    """Empty fake Stripe account."""
    return FakeStripe()


# ============================================================================
# Fake Redis
# ============================================================================

class FakeRedis:
    """Minimal async Redis supporting GET/SETEX with a controllable clock."""

    def __init__(self):
        self.store: dict[str, tuple[str, float]] = {}
        self.now = 0.0
        self.closed = False

    async def ping(self) -> bool:
        return True

    async def get(self, key: str) -> Optional[str]:
        entry = self.store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self.now >= expires_at:
            del self.store[key]
            return None
        return value

    async def setex(self, key: str, ttl_seconds: int, value: str) -> bool:
        self.store[key] = (value, self.now + ttl_seconds)
        return True

    async def aclose(self) -> None:
        self.closed = True


class BrokenRedis(FakeRedis):
    """Redis whose every command fails."""

    async def get(self, key: str) -> Optional[str]:
        raise ConnectionError("Connection refused")

    async def setex(self, key: str, ttl_seconds: int, value: str) -> bool:
        raise ConnectionError("Connection refused")


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


# ============================================================================
# API Fixtures
# ============================================================================

ADMIN_TOKEN = os.environ["ADMIN_API_TOKEN"]


@pytest.fixture
def admin_headers() -> dict:
    """Headers carrying the configured admin token."""
    return {"X-Admin-Token": ADMIN_TOKEN}


@pytest.fixture
def metrics_stripe() -> FakeStripe:
    """Small live Stripe account behind the API tests."""
    return FakeStripe(
        subscriptions=[
            make_subscription("sub_month", created=ts(3), items=[(2000, "month")]),
            make_subscription("sub_year", created=ts(40), items=[(24000, "year")]),
            make_subscription("sub_week", created=ts(50), items=[(500, "week")]),
            make_subscription("sub_gone", "canceled", created=ts(80), canceled_at=ts(2)),
        ],
        charges=[
            make_charge("ch_1", 4900, customer_id="C1", created=ts(1)),
            make_charge("ch_2", 4900, customer_id="C1", created=ts(2)),
            make_charge("ch_3", 2000, customer_id="C2", invoice_id="in_sub", created=ts(3)),
        ],
        payment_intents=[
            make_intent("pi_1", 4900),
            make_intent("pi_2", 4900),
            make_intent("pi_3", 2000, invoice_id="in_sub"),
            make_intent("pi_4", 1000, metadata={"product_type": "credit_topup"}),
        ],
        invoices={"in_sub": "sub_month"},
    )


@pytest.fixture
def metrics_service(metrics_stripe, fake_redis):
    """RevenueMetricsService over the fake Stripe account and fake Redis."""
    from services.metrics_cache import MetricsCache
    from services.payment_classifier import PaymentClassifier
    from services.revenue_collectors import RevenueMetricCollectors
    from services.revenue_metrics import RevenueMetricsService

    classifier = PaymentClassifier(metrics_stripe, membership_product_types={"sselfie_studio_membership"})
    collectors = RevenueMetricCollectors(metrics_stripe, classifier, None, now=lambda: NOW)
    return RevenueMetricsService(
        collectors,
        MetricsCache(client=fake_redis),
        cache_key="stripe:live:metrics",
        cache_ttl_seconds=300,
    )


@pytest.fixture
async def async_client(db_session: AsyncSession, metrics_service) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    # Import app here so the environment above is applied first
    from main import app
    from infrastructure.database.connection import get_db
    from services import get_revenue_metrics_service

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_revenue_metrics_service] = lambda: metrics_service

    # Reset rate limiter state between tests to prevent cross-test 429s
    app.state.limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
