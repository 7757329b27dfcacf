"""
Rate limiting middleware using slowapi.

Every route gets the default limit through SlowAPIMiddleware; the admin
metrics routes carry tighter per-endpoint limits because a cache miss or a
forced refresh walks the whole Stripe account.

Rate Limits:
- Live metrics (cached read): 30 requests per minute
- Live metrics refresh: 5 requests per minute
- Default: 100 requests per minute
"""

import ipaddress
import logging
import re

from starlette.requests import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

# Simple pattern to quickly reject obviously invalid IPs before parsing
_IP_LIKE = re.compile(r"^[\d.:a-fA-F]+$")


def _is_valid_ip(value: str) -> bool:
    """Return True if *value* looks like a valid IPv4 or IPv6 address."""
    if not _IP_LIKE.match(value):
        return False
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


def _is_private_ip(value: str) -> bool:
    """Return True if *value* is a private, loopback, or link-local address.

    Such addresses in X-Forwarded-For are ignored: they are trivially spoofed
    to share or dodge a rate-limit bucket.
    """
    try:
        addr = ipaddress.ip_address(value)
        return addr.is_private or addr.is_loopback or addr.is_link_local
    except ValueError:
        return False


def get_client_ip(request: Request) -> str:
    """Extract the client IP from proxy headers, falling back to the remote address.

    Behind a reverse proxy every request would otherwise come from the
    proxy's address and share a single bucket. Header values are validated
    before use.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # X-Forwarded-For can be a comma-separated list; first entry is the client
        candidate = forwarded.split(",")[0].strip()
        if _is_valid_ip(candidate) and not _is_private_ip(candidate):
            return candidate
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        candidate = real_ip.strip()
        if _is_valid_ip(candidate) and not _is_private_ip(candidate):
            return candidate
    return get_remote_address(request)


# Format: "count/period" where period can be: second, minute, hour, day
RATE_LIMITS = {
    "live_metrics": "30/minute",
    "live_metrics_refresh": "5/minute",
    "default": "100/minute",
}

# Redis-backed when configured so limits hold across workers
_storage_uri = settings.redis_url if settings.redis_url else "memory://"

if not settings.redis_url:
    logger.warning(
        "Rate limiter using in-memory storage, not suitable for multi-worker production"
    )

limiter = Limiter(
    key_func=get_client_ip,
    storage_uri=_storage_uri,
    default_limits=[RATE_LIMITS["default"]],
)


def get_rate_limit(endpoint: str) -> str:
    """
    Get rate limit configuration for a specific endpoint.

    Args:
        endpoint: The endpoint identifier (e.g., "live_metrics")

    Returns:
        str: Rate limit string in format "count/period"
    """
    return RATE_LIMITS.get(endpoint, RATE_LIMITS["default"])
