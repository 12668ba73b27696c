"""
FastAPI Authentication Dependencies

The marketplace core does not authenticate users itself: the storefront's
session layer forwards the caller's id in the X-User-Id header. Admin routes
are reserved for internal services holding the shared secret.
"""

from fastapi import Header, HTTPException, status, Request
from typing import Optional
import hmac
import logging

from core.config import get_settings

logger = logging.getLogger(__name__)

INTERNAL_SERVICE_ID = "internal-service"


def _internal_secret_matches(provided: Optional[str]) -> bool:
    expected = get_settings().internal_service_secret
    return bool(provided) and hmac.compare_digest(provided, expected)


async def require_user(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> str:
    """
    Require a caller user id.

    Raises:
        HTTPException 401: header missing
    """
    if x_user_id:
        return x_user_id

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="User authentication required"
    )


async def require_internal_service(
    request: Request,
    x_internal_service: Optional[str] = Header(None, alias="X-Internal-Service"),
    x_internal_service_secret: Optional[str] = Header(None, alias="X-Internal-Service-Secret"),
) -> str:
    """
    Require internal service credentials (admin operations).

    Raises:
        HTTPException 403: credentials missing or wrong
    """
    if x_internal_service == "true" and _internal_secret_matches(x_internal_service_secret):
        logger.debug(f"Internal service request to {request.url.path}")
        return INTERNAL_SERVICE_ID

    client_host = request.client.host if request.client else "unknown"
    logger.warning(f"Rejected admin request to {request.url.path} from {client_host}")
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Internal service credentials required"
    )


__all__ = [
    "require_user",
    "require_internal_service",
    "INTERNAL_SERVICE_ID",
]
