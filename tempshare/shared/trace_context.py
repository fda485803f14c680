"""Trace-id propagation via contextvars.

The gateway opens a trace per request (honouring a well-formed inbound
X-Request-ID), each sweep run opens its own, and structured error logs
pick up whichever is current.
"""

from __future__ import annotations

import re
from collections.abc import Generator  # noqa: TC003 -- used at runtime by contextmanager
from contextlib import contextmanager
from contextvars import ContextVar, Token
from uuid import uuid4

current_trace_id: ContextVar[str] = ContextVar("current_trace_id", default="")

# Inbound ids end up in log lines and response headers.
_TRACE_ID_RE = re.compile(r"[A-Za-z0-9._:-]{1,128}")


def get_trace_id() -> str:
    """Return the current trace_id (empty string if not set)."""
    return current_trace_id.get()


def set_trace_id(trace_id: str) -> Token[str]:
    return current_trace_id.set(trace_id)


def accept_trace_id(candidate: str | None) -> str | None:
    """Return ``candidate`` if it is safe to propagate, else None."""
    if candidate and _TRACE_ID_RE.fullmatch(candidate):
        return candidate
    return None


@contextmanager
def trace_context(trace_id: str | None = None) -> Generator[str, None, None]:
    """Scope a trace id to a ``with`` block.

    A missing or malformed id is replaced by a fresh UUID4; the previous
    id is restored on exit.

    Usage::

        with trace_context(request.headers.get("x-request-id")) as tid:
            ...
    """
    effective_id = accept_trace_id(trace_id) or str(uuid4())
    token = current_trace_id.set(effective_id)
    try:
        yield effective_id
    finally:
        current_trace_id.reset(token)
