"""
CORS handling for browser-based map viewers.

Starlette's CORSMiddleware does the origin/method/header negotiation; the
gateway only changes how a successful pre-flight is answered: 204 with no
body instead of 200 "OK".
"""

import logging
from typing import List

from fastapi import FastAPI
from starlette.datastructures import Headers
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ["GET", "POST", "OPTIONS"]

ALLOWED_HEADERS = [
    "Accept",
    "Accept-Language",
    "Content-Language",
    "Content-Type",
    "Authorization",
    "X-Request-ID",
    "X-Requested-With",
]

EXPOSED_HEADERS = [
    "X-Request-ID",
    "Content-Disposition",
    "Retry-After",
]

# Headers describing the "OK" body Starlette would have sent
_BODY_HEADERS = {"content-length", "content-type"}


class NoContentPreflightCORSMiddleware(CORSMiddleware):
    """CORSMiddleware whose accepted pre-flight responses are 204 No Content."""

    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers=request_headers)
        if response.status_code != 200:
            return response

        headers = {
            key: value
            for key, value in response.headers.items()
            if key.lower() not in _BODY_HEADERS
        }
        return Response(status_code=204, headers=headers)


def setup_cors(app: FastAPI, origins: List[str]) -> None:
    """
    Add CORS handling to the application.

    Args:
        app: The FastAPI application instance
        origins: Allowed origins; ["*"] allows any origin
    """
    app.add_middleware(
        NoContentPreflightCORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
        expose_headers=EXPOSED_HEADERS,
        max_age=600,
    )
    logger.info("CORS configured", extra={"extra_data": {"origins": origins}})
