"""
Admin API schemas for live revenue metrics.
"""

from pydantic import BaseModel, ConfigDict, Field

# ============================================================================
# Live Revenue Metrics
# ============================================================================


class RevenueMetricsResponse(BaseModel):
    """Live revenue and subscription metrics computed from Stripe."""

    active_subscriptions: int = Field(..., description="Currently active subscriptions")
    total_subscriptions: int = Field(..., description="Subscriptions ever created, any status")
    canceled_subscriptions_30d: int = Field(
        ..., description="Subscriptions canceled within the metrics window"
    )
    mrr: int = Field(..., description="Monthly recurring revenue, whole currency units")
    total_revenue: int = Field(..., description="All-time succeeded revenue, whole currency units")
    one_time_revenue: int = Field(
        ..., description="All-time one-time purchase revenue excluding credits, whole currency units"
    )
    credit_purchase_revenue: int = Field(
        ..., description="All-time credit top-up revenue, whole currency units"
    )
    new_subscribers_30d: int = Field(..., description="Subscriptions created within the metrics window")
    new_one_time_buyers_30d: int = Field(
        ..., description="Distinct customers with a one-time purchase within the metrics window"
    )
    timestamp: str = Field(..., description="ISO 8601 time the metrics were computed (UTC)")
    cached: bool = Field(..., description="True when served from cache")

    model_config = ConfigDict(from_attributes=True)
