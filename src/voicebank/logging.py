"""
structlog setup plus per-request context (request id, wallet address)
"""

import base64
import logging
import secrets
import sys
import time
from contextvars import ContextVar
from typing import Any

import structlog

# Context variables for request tracking
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
wallet_address_ctx: ContextVar[str | None] = ContextVar("wallet_address", default=None)

# Event keys whose values must never reach a log line
SECRET_FIELDS = frozenset(
    {
        "access_key_secret",
        "tos_access_key_secret",
        "anon_key",
        "supabase_anon_key",
        "password",
        "token",
    }
)
REDACTED = "[REDACTED]"


class RequestContextFilter:
    """Attach the current request id and wallet address to every event."""

    def __call__(self, logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        # structlog passes these positionally; only the event dict matters here
        _ = logger, method_name

        request_id = request_id_ctx.get()
        if request_id:
            event_dict["request_id"] = request_id

        wallet_address = wallet_address_ctx.get()
        if wallet_address:
            event_dict["wallet_address"] = wallet_address

        return event_dict


def redact_secrets(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Replace credential values with a placeholder before rendering."""
    _ = logger, method_name
    for field in SECRET_FIELDS.intersection(event_dict):
        if event_dict[field]:
            event_dict[field] = REDACTED
    return event_dict


def _renderer(debug: bool) -> Any:
    if debug:
        # Local runs: colored console output
        return structlog.dev.ConsoleRenderer(colors=True)
    # Deployed: one JSON object per line
    return structlog.processors.JSONRenderer()


def configure_logging(debug: bool = False) -> None:
    """Send structlog events through stdlib logging on stdout.

    With ``debug`` the level drops to DEBUG and lines are rendered for a
    terminal; otherwise INFO and JSON.
    """
    # stdlib logging carries the rendered line; structlog does the formatting
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        stream=sys.stdout,
        format="%(message)s",
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            # Request id / wallet from the middleware
            RequestContextFilter(),
            # Must run before the renderer
            redact_secrets,
            structlog.processors.TimeStamper(fmt="ISO", utc=True),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _renderer(debug),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)


def generate_request_id() -> str:
    """Short urlsafe id: 8 bytes of microsecond timestamp plus 2 random bytes."""
    stamp = int(time.time() * 1_000_000).to_bytes(8, byteorder="big")
    raw = stamp + secrets.token_bytes(2)
    # 10 bytes encode to 14 characters once padding is stripped
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def set_request_context(request_id: str | None = None, wallet_address: str | None = None) -> str:
    """Bind request context for the current task and return the request id in use.

    A caller-supplied id (e.g. from an ``X-Request-ID`` header) is kept;
    otherwise a new one is generated.
    """
    request_id = request_id or generate_request_id()
    request_id_ctx.set(request_id)
    if wallet_address is not None:
        wallet_address_ctx.set(wallet_address)
    return request_id


def clear_request_context() -> None:
    request_id_ctx.set(None)
    wallet_address_ctx.set(None)


def get_request_id() -> str | None:
    return request_id_ctx.get()
