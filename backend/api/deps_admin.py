"""
Admin authentication dependencies.
"""

import hmac
import logging
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status

from infrastructure.config import Settings, get_settings

logger = logging.getLogger(__name__)


async def require_admin_token(
    settings: Annotated[Settings, Depends(get_settings)],
    x_admin_token: Annotated[Optional[str], Header()] = None,
) -> None:
    """
    Dependency to verify the caller presents the admin API token.

    The token is sent in the ``X-Admin-Token`` header and compared in
    constant time with ``ADMIN_API_TOKEN``.

    Raises:
        HTTPException: 503 if no admin token is configured
        HTTPException: 403 if the header is missing or does not match
    """
    expected = settings.admin_api_token
    if not expected:
        logger.error("Admin endpoint called but ADMIN_API_TOKEN is not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin access is not configured on this server.",
        )

    if not x_admin_token or not hmac.compare_digest(x_admin_token.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required. You do not have permission to access this resource.",
        )
