"""Revenue metrics snapshot entity."""
from dataclasses import asdict, dataclass, fields, replace
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class RevenueMetricsSnapshot:
    """
    Point-in-time revenue and subscription metrics.

    Money fields are whole major currency units. Every field is always
    present; a metric that could not be computed is 0.
    """

    active_subscriptions: int = 0
    total_subscriptions: int = 0
    canceled_subscriptions_30d: int = 0
    mrr: int = 0
    total_revenue: int = 0
    one_time_revenue: int = 0
    credit_purchase_revenue: int = 0
    new_subscribers_30d: int = 0
    new_one_time_buyers_30d: int = 0
    timestamp: str = ""
    cached: bool = False

    @classmethod
    def metric_names(cls) -> tuple[str, ...]:
        """Names of the nine metric fields, in display order."""
        return tuple(f.name for f in fields(cls) if f.name not in ("timestamp", "cached"))

    @classmethod
    def from_metrics(cls, values: dict[str, int], now: datetime | None = None) -> "RevenueMetricsSnapshot":
        """Build a fresh (uncached) snapshot, defaulting missing metrics to 0."""
        now = now or datetime.now(timezone.utc)
        metrics = {name: int(values.get(name) or 0) for name in cls.metric_names()}
        return cls(**metrics, timestamp=now.isoformat(), cached=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RevenueMetricsSnapshot":
        """Rebuild a snapshot from its serialized form."""
        metrics = {name: int(data.get(name) or 0) for name in cls.metric_names()}
        return cls(
            **metrics,
            timestamp=str(data.get("timestamp", "")),
            cached=bool(data.get("cached", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert snapshot to dictionary format."""
        return asdict(self)

    def as_cached(self) -> "RevenueMetricsSnapshot":
        """Copy of this snapshot flagged as served from cache."""
        return replace(self, cached=True)
