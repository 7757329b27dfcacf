"""
Service layer for business logic.
"""

from functools import lru_cache

from adapters.payments import create_stripe_adapter
from infrastructure.config.settings import settings
from infrastructure.database.connection import async_session_maker
from services.ledger import LedgerRevenueReader
from services.metrics_cache import metrics_cache
from services.payment_classifier import PaymentClassifier
from services.revenue_collectors import RevenueMetricCollectors
from services.revenue_metrics import RevenueMetricsService


@lru_cache
def get_revenue_metrics_service() -> RevenueMetricsService:
    """
    Get singleton revenue metrics service instance.

    Returns:
        Configured RevenueMetricsService instance
    """
    # One adapter (and one request semaphore) shared by every collector
    stripe = create_stripe_adapter()

    classifier = PaymentClassifier(
        stripe,
        membership_product_types=settings.stripe_subscription_product_types_set,
    )

    collectors = RevenueMetricCollectors(
        stripe,
        classifier,
        LedgerRevenueReader(async_session_maker),
        window_days=settings.metrics_window_days,
        page_size=settings.stripe_page_size,
        live_mode_only=settings.stripe_live_mode_only,
    )

    return RevenueMetricsService(collectors, metrics_cache)


async def close_revenue_metrics_service() -> None:
    """Close the shared Stripe client, if the service was ever built."""
    if get_revenue_metrics_service.cache_info().currsize:
        await get_revenue_metrics_service().collectors.adapter.aclose()


__all__ = [
    "RevenueMetricsService",
    "close_revenue_metrics_service",
    "get_revenue_metrics_service",
    "metrics_cache",
]
