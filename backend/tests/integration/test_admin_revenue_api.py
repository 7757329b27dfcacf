"""Integration tests for the admin live revenue metrics API."""

import pytest
from httpx import AsyncClient

from infrastructure.config import Settings, get_settings

pytestmark = pytest.mark.asyncio

LIVE_METRICS_URL = "/api/v1/admin/revenue/live-metrics"
REFRESH_URL = "/api/v1/admin/revenue/live-metrics/refresh"

EXPECTED_METRICS = {
    "active_subscriptions": 3,
    "total_subscriptions": 4,
    "canceled_subscriptions_30d": 1,
    "mrr": 62,
    "total_revenue": 118,
    "one_time_revenue": 98,
    "credit_purchase_revenue": 10,
    "new_subscribers_30d": 1,
    "new_one_time_buyers_30d": 1,
}


class TestLiveMetrics:
    """Tests for GET /admin/revenue/live-metrics."""

    async def test_returns_full_snapshot(self, async_client: AsyncClient, admin_headers):
        response = await async_client.get(LIVE_METRICS_URL, headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert {k: data[k] for k in EXPECTED_METRICS} == EXPECTED_METRICS
        assert data["cached"] is False
        assert data["timestamp"]

    async def test_second_request_is_cached(self, async_client: AsyncClient, admin_headers, metrics_stripe):
        first = await async_client.get(LIVE_METRICS_URL, headers=admin_headers)
        calls_after_first = len(metrics_stripe.calls)
        second = await async_client.get(LIVE_METRICS_URL, headers=admin_headers)

        assert first.json()["cached"] is False
        assert second.json()["cached"] is True
        assert second.json()["timestamp"] == first.json()["timestamp"]
        assert len(metrics_stripe.calls) == calls_after_first

    async def test_missing_token_is_forbidden(self, async_client: AsyncClient):
        response = await async_client.get(LIVE_METRICS_URL)

        assert response.status_code == 403

    async def test_wrong_token_is_forbidden(self, async_client: AsyncClient):
        response = await async_client.get(LIVE_METRICS_URL, headers={"X-Admin-Token": "nope"})

        assert response.status_code == 403

    async def test_unconfigured_token_is_unavailable(self, async_client: AsyncClient, admin_headers):
        from main import app

        app.dependency_overrides[get_settings] = lambda: Settings(admin_api_token=None)

        response = await async_client.get(LIVE_METRICS_URL, headers=admin_headers)

        assert response.status_code == 503

    async def test_stripe_outage_still_returns_snapshot(
        self, async_client: AsyncClient, admin_headers, metrics_stripe
    ):
        async def broken(*args, **kwargs):
            raise ConnectionError("stripe unreachable")

        metrics_stripe.list_charges = broken

        response = await async_client.get(LIVE_METRICS_URL, headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total_revenue"] == 0
        assert data["new_one_time_buyers_30d"] == 0
        assert data["mrr"] == 62


class TestRefreshLiveMetrics:
    """Tests for POST /admin/revenue/live-metrics/refresh."""

    async def test_refresh_recomputes_and_updates_cache(
        self, async_client: AsyncClient, admin_headers, metrics_stripe
    ):
        await async_client.get(LIVE_METRICS_URL, headers=admin_headers)
        metrics_stripe.subscriptions = metrics_stripe.subscriptions[1:]

        refreshed = await async_client.post(REFRESH_URL, headers=admin_headers)
        cached = await async_client.get(LIVE_METRICS_URL, headers=admin_headers)

        assert refreshed.status_code == 200
        assert refreshed.json()["cached"] is False
        assert refreshed.json()["active_subscriptions"] == 2
        assert cached.json()["cached"] is True
        assert cached.json()["active_subscriptions"] == 2

    async def test_refresh_requires_token(self, async_client: AsyncClient):
        response = await async_client.post(REFRESH_URL)

        assert response.status_code == 403

    async def test_refresh_is_rate_limited(self, async_client: AsyncClient, admin_headers):
        for _ in range(5):
            response = await async_client.post(REFRESH_URL, headers=admin_headers)
            assert response.status_code == 200

        response = await async_client.post(REFRESH_URL, headers=admin_headers)
        assert response.status_code == 429


class TestHealth:
    """Tests for health endpoints."""

    async def test_health(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_health_db(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/health/db")

        assert response.status_code == 200
        assert response.json()["database"] == "connected"

    async def test_liveness(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/health/live")

        assert response.json() == {"alive": True}

    async def test_services_requires_admin_token(self, async_client: AsyncClient, admin_headers):
        assert (await async_client.get("/api/v1/health/services")).status_code == 403

        response = await async_client.get("/api/v1/health/services", headers=admin_headers)

        assert response.status_code == 200
        assert set(response.json()["services"]) == {"stripe", "metrics_cache"}

    async def test_security_headers(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["Cache-Control"] == "no-store"
        assert "X-Request-ID" in response.headers
