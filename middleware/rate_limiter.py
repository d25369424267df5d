"""
Rate limiting for the ingestion endpoint.

Field platforms push readings on a fixed cadence; a misbehaving unit stuck in
a resend loop should not be able to flood the record store. Limits are
applied per client IP with slowapi.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from errors.exceptions import rate_limited
from errors.handlers import ErrorResponse, get_request_id

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 60


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP address from the request.

    Forwarding headers set by load balancers and proxies take precedence
    over the direct peer address.

    Args:
        request: The incoming FastAPI request

    Returns:
        The client's IP address as a string
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For can contain multiple IPs, take the first (original client)
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return get_remote_address(request)


limiter = Limiter(key_func=get_client_ip)

_ingest_rate_limit = "600/minute"


def get_rate_limit_string(requests_per_minute: int) -> str:
    """
    Generate a rate limit string for slowapi (e.g., "600/minute").
    """
    return f"{requests_per_minute}/minute"


def ingest_rate_limit() -> str:
    """Current limit for the ingestion endpoint, read by slowapi on each request."""
    return _ingest_rate_limit


def setup_rate_limiting(
    app: FastAPI,
    requests_per_minute: int = 600,
    enabled: bool = True
) -> None:
    """
    Configure rate limiting for a FastAPI application.

    Args:
        app: The FastAPI application instance
        requests_per_minute: Maximum ingestion requests per minute per IP
        enabled: Whether rate limiting is enabled
    """
    global _ingest_rate_limit

    limiter.enabled = enabled
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    if not enabled:
        logger.info("Rate limiting is disabled")
        return

    _ingest_rate_limit = get_rate_limit_string(requests_per_minute)
    logger.info(f"Rate limiting configured: ingestion={_ingest_rate_limit}")


async def _rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    Handler for rate limit exceeded errors.

    Returns the same structured error body as every other error response,
    with a Retry-After header.
    """
    request_id = get_request_id(request)
    retry_after = getattr(exc, "retry_after", DEFAULT_RETRY_AFTER_SECONDS)

    app_exc = rate_limited(
        message="Too many requests. Please slow down.",
        details={
            "limit": str(exc.detail) if hasattr(exc, "detail") else "Rate limit exceeded",
            "retry_after_seconds": retry_after,
        },
    )

    logger.warning(
        f"Rate limit exceeded for IP {get_client_ip(request)}",
        extra={"extra_data": {
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
        }}
    )

    body = ErrorResponse(request_id=request_id, **app_exc.to_dict())
    return JSONResponse(
        status_code=app_exc.status_code,
        content=body.model_dump(exclude_none=True),
        headers={"Retry-After": str(retry_after)},
    )
