"""Correlation ID management for request tracing."""

import uuid
from contextvars import ContextVar, Token

# Set per request by the API middleware; empty outside a request
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

CORRELATION_ID_HEADER = "X-Correlation-ID"


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def get_correlation_id() -> str:
    """Get current correlation ID from context."""
    return correlation_id_var.get()


def set_correlation_id(cid: str) -> Token[str]:
    return correlation_id_var.set(cid)


def reset_correlation_id(token: Token[str]) -> None:
    """Restore the correlation ID active before the matching set."""
    correlation_id_var.reset(token)
