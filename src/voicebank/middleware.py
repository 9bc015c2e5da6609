"""
Middleware for request context and logging
"""

import re
from collections.abc import Callable
from typing import Any

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .logging import clear_request_context, get_logger, get_request_id, set_request_context
from .storage.keys import is_valid_wallet_address

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
# Ids a proxy may forward; anything else is replaced by a generated one
REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-]{1,64}$")

SENSITIVE_KEYS = {
    "password",
    "token",
    "api_key",
    "secret",
    "auth",
    "authorization",
    "access_token",
    "key",
    "private_key",
    "signature",
    "session",
    "cookie",
    "credentials",
}


def sanitize_query_params(params: dict[str, Any]) -> dict[str, Any]:
    """Redact query parameters whose names look sensitive."""
    sanitized = {}
    for key, value in params.items():
        if any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
            sanitized[key] = "[REDACTED]"
        else:
            sanitized[key] = value
    return sanitized


def extract_wallet_address(request: Request) -> str | None:
    """Wallet address from the query string or X-Wallet-Address header, if well formed."""
    candidate = request.query_params.get("wallet_address") or request.headers.get(
        "x-wallet-address"
    )
    return candidate if is_valid_wallet_address(candidate) else None


class LoggingContextMiddleware(BaseHTTPMiddleware):
    """Middleware to set logging context for each request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        incoming_id = request.headers.get(REQUEST_ID_HEADER)
        if incoming_id and not REQUEST_ID_PATTERN.match(incoming_id):
            incoming_id = None
        set_request_context(
            request_id=incoming_id, wallet_address=extract_wallet_address(request)
        )

        try:
            sanitized_params = None
            if request.query_params:
                sanitized_params = sanitize_query_params(dict(request.query_params))

            logger.info(
                "Request started",
                method=request.method,
                path=request.url.path,
                query_params=sanitized_params,
                user_agent=request.headers.get("user-agent"),
                remote_addr=request.client.host if request.client else None,
            )

            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = get_request_id() or ""

            logger.info(
                "Request completed",
                status_code=response.status_code,
                method=request.method,
                path=request.url.path,
            )
            return response

        except Exception as e:
            logger.error(
                "Request failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
            )
            raise

        finally:
            clear_request_context()
