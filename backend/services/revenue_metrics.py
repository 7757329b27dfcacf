"""
Live revenue metrics aggregation.

Runs every metric collector concurrently, each under its own timeout, and
merges the results into one fully populated snapshot. A collector that
fails or times out contributes 0; it never prevents the others from
finishing and never fails the aggregation.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Optional

from core.domain.metrics import RevenueMetricsSnapshot
from infrastructure.config.settings import Settings, settings as default_settings
from services.metrics_cache import MetricsCache
from services.resilience import with_timeout
from services.revenue_collectors import RevenueMetricCollectors

logger = logging.getLogger(__name__)

# Snapshot field -> collector method
COLLECTOR_METHODS: dict[str, str] = {
    "active_subscriptions": "active_subscriptions",
    "total_subscriptions": "total_subscriptions",
    "canceled_subscriptions_30d": "canceled_subscriptions",
    "mrr": "mrr",
    "total_revenue": "total_revenue",
    "one_time_revenue": "one_time_revenue",
    "credit_purchase_revenue": "credit_purchase_revenue",
    "new_subscribers_30d": "new_subscribers",
    "new_one_time_buyers_30d": "new_one_time_buyers",
}


def timeouts_from_settings(config: Settings) -> dict[str, float]:
    """Per-metric timeout budgets in seconds, keyed by snapshot field."""
    return {
        metric: getattr(config, f"metrics_timeout_{method}")
        for metric, method in COLLECTOR_METHODS.items()
    }


class RevenueMetricsService:
    """
    Computes and caches the live revenue metrics snapshot.

    Args:
        collectors: The metric collectors
        cache: Cache-aside store, or None to always recompute
        timeouts: Per-metric budgets in seconds (defaults to settings)
        cache_key: Cache key for the snapshot (defaults to settings)
        cache_ttl_seconds: Snapshot lifetime in the cache (defaults to settings)
    """

    def __init__(
        self,
        collectors: RevenueMetricCollectors,
        cache: Optional[MetricsCache] = None,
        *,
        timeouts: Optional[Mapping[str, float]] = None,
        cache_key: Optional[str] = None,
        cache_ttl_seconds: Optional[int] = None,
    ):
        self.collectors = collectors
        self.cache = cache
        self.timeouts = {**timeouts_from_settings(default_settings), **(timeouts or {})}
        self.cache_key = cache_key or default_settings.metrics_cache_key
        self.cache_ttl_seconds = cache_ttl_seconds or default_settings.metrics_cache_ttl_seconds

    def _operation(self, metric: str) -> Callable[[], Awaitable[int]]:
        return getattr(self.collectors, COLLECTOR_METHODS[metric])

    async def fetch_metrics(self) -> RevenueMetricsSnapshot:
        """
        Compute a fresh snapshot from all collectors.

        Never raises for data-source failures: failed and timed-out
        metrics are logged and reported as 0.
        """
        metrics = list(COLLECTOR_METHODS)
        logger.info("Computing live revenue metrics")

        results = await asyncio.gather(
            *(
                with_timeout(self._operation(metric)(), self.timeouts[metric], 0, name=metric)
                for metric in metrics
            ),
            return_exceptions=True,
        )

        values: dict[str, int] = {}
        failed: list[str] = []
        for metric, result in zip(metrics, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.error(
                    "Metric %s failed: %s: %s",
                    metric,
                    type(result).__name__,
                    result,
                    extra={"metric": metric},
                )
                failed.append(metric)
                values[metric] = 0
            else:
                values[metric] = result

        snapshot = RevenueMetricsSnapshot.from_metrics(values)
        logger.info(
            "Live revenue metrics computed: %s%s",
            ", ".join(f"{name}={getattr(snapshot, name)}" for name in metrics),
            f" (failed: {', '.join(failed)})" if failed else "",
        )
        return snapshot

    async def get_metrics(self) -> RevenueMetricsSnapshot:
        """Return the cached snapshot, computing it on a cache miss."""
        if self.cache is None:
            return await self.fetch_metrics()

        snapshot, cached = await self.cache.get_or_fetch(
            self.cache_key,
            self.fetch_metrics,
            self.cache_ttl_seconds,
            loads=RevenueMetricsSnapshot.from_dict,
            dumps=RevenueMetricsSnapshot.to_dict,
        )
        return snapshot.as_cached() if cached else snapshot

    async def get_metrics_fresh(self) -> RevenueMetricsSnapshot:
        """Recompute the snapshot, bypassing and then overwriting the cache."""
        snapshot = await self.fetch_metrics()
        if self.cache is not None:
            await self.cache.store(self.cache_key, snapshot.to_dict(), self.cache_ttl_seconds)
        return snapshot
