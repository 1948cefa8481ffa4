"""Client (tenant) context propagation via Python contextvars.

The ClientContext is set by the authentication dependency once a request's
bearer secret has been matched to a client config, and is readable anywhere
in the call stack via get_current_client(). Logging and Sentry use it to tag
events with the client they were produced for.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass


@dataclass(frozen=True)
class ClientContext:
    """Immutable client context for the current request."""

    client_id: str
    client_name: str
    crm_type: str


_client_context: contextvars.ContextVar[ClientContext] = contextvars.ContextVar("client_context")


def get_current_client() -> ClientContext:
    """Get the client context for the current request.

    Raises RuntimeError if no client context has been set (i.e., the call
    is not within an authenticated request).
    """
    try:
        return _client_context.get()
    except LookupError:
        raise RuntimeError("No client context set -- request is not client-scoped")


def current_client_id() -> str | None:
    """Client id of the current request, or None outside one."""
    ctx = _client_context.get(None)
    return ctx.client_id if ctx else None


def set_client_context(ctx: ClientContext) -> contextvars.Token[ClientContext]:
    """Set the client context for the current request. Returns a token for reset."""
    return _client_context.set(ctx)


def reset_client_context(token: contextvars.Token[ClientContext]) -> None:
    _client_context.reset(token)
