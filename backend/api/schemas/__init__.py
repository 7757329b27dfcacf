"""
API request and response schemas.
"""

from .revenue import RevenueMetricsResponse

__all__ = [
    "RevenueMetricsResponse",
]
