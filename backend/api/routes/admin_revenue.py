"""
Admin live revenue metrics API routes.

Serves the Stripe-derived revenue dashboard: a cached read and a forced
refresh, both guarded by the admin API token.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from api.deps_admin import require_admin_token
from api.middleware.rate_limit import get_rate_limit, limiter
from api.schemas.revenue import RevenueMetricsResponse
from services import get_revenue_metrics_service
from services.revenue_metrics import RevenueMetricsService

router = APIRouter(
    prefix="/admin/revenue",
    tags=["Admin - Revenue"],
    dependencies=[Depends(require_admin_token)],
)


@router.get("/live-metrics", response_model=RevenueMetricsResponse)
@limiter.limit(get_rate_limit("live_metrics"))
async def get_live_metrics(
    request: Request,
    service: Annotated[RevenueMetricsService, Depends(get_revenue_metrics_service)],
):
    """
    Get live revenue metrics.

    Served from cache when a snapshot younger than the cache TTL exists,
    otherwise recomputed from Stripe. Metrics that could not be computed
    are reported as 0.

    **Admin token required.**
    """
    snapshot = await service.get_metrics()
    return RevenueMetricsResponse(**snapshot.to_dict())


@router.post("/live-metrics/refresh", response_model=RevenueMetricsResponse)
@limiter.limit(get_rate_limit("live_metrics_refresh"))
async def refresh_live_metrics(
    request: Request,
    service: Annotated[RevenueMetricsService, Depends(get_revenue_metrics_service)],
):
    """
    Recompute live revenue metrics from Stripe and replace the cached snapshot.

    **Admin token required.**
    """
    snapshot = await service.get_metrics_fresh()
    return RevenueMetricsResponse(**snapshot.to_dict())
