"""
Middleware components for the location gateway.

Cross-cutting request handling: correlation IDs, CORS and rate limiting.
"""

from middleware.request_id import RequestIDMiddleware, request_id_var
from middleware.cors import NoContentPreflightCORSMiddleware, setup_cors
from middleware.rate_limiter import (
    limiter,
    setup_rate_limiting,
    ingest_rate_limit,
    get_client_ip,
)

__all__ = [
    "RequestIDMiddleware",
    "request_id_var",
    "NoContentPreflightCORSMiddleware",
    "setup_cors",
    "limiter",
    "setup_rate_limiting",
    "ingest_rate_limit",
    "get_client_ip",
]
