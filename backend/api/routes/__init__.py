"""API Routes."""

from fastapi import APIRouter

from .admin_revenue import router as admin_revenue_router
from .health import router as health_router

# Create main API router
api_router = APIRouter()

# Include route modules
api_router.include_router(health_router, tags=["Health"])
api_router.include_router(admin_revenue_router)
