"""Structured error records for the service logs.

Every 5xx the gateway returns and every bucket the sweep fails to delete
is logged through log_structured_error. The record travels on the log
line as ``extra["structured_error"]`` so a JSON formatter can ship it
as-is. Storage locations are kept (operators need them); credentials are
not.
"""

from __future__ import annotations

import logging
import traceback
from dataclasses import dataclass, field
from typing import Any

from tempshare.shared.trace_context import get_trace_id

_REDACTED = "[REDACTED]"

# Matched as substrings of the lower-cased key.
_SENSITIVE_MARKERS = ("secret", "password", "token", "authorization", "cookie", "access_key", "signature")


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in _SENSITIVE_MARKERS)


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _REDACTED if _is_sensitive(str(k)) else _redact(v) for k, v in value.items()}
    return value


@dataclass(frozen=True)
class ErrorRecord:
    code: str
    message: str
    trace_id: str
    context: dict[str, Any] = field(default_factory=dict)
    stack: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_code": self.code,
            "message": self.message,
            "trace_id": self.trace_id,
            "context": _redact(self.context),
            "stack_trace": self.stack,
        }


def error_record(
    exc: BaseException,
    *,
    trace_id: str = "",
    context: dict[str, Any] | None = None,
) -> ErrorRecord:
    """Describe ``exc`` for logging.

    The code is the exception's ``code`` attribute (TempShareError and
    subclasses) or its class name. A StorageError's operation and path are
    added to the context unless the caller already set them.
    """
    ctx: dict[str, Any] = {}
    for attr in ("operation", "path"):
        value = getattr(exc, attr, None)
        if value is not None:
            ctx[attr] = value
    ctx.update(context or {})
    return ErrorRecord(
        code=getattr(exc, "code", None) or type(exc).__name__,
        message=str(exc),
        trace_id=trace_id or get_trace_id(),
        context=ctx,
        stack="".join(traceback.format_exception(exc)),
    )


def log_structured_error(
    logger: logging.Logger,
    exc: BaseException,
    *,
    trace_id: str = "",
    context: dict[str, Any] | None = None,
    level: int = logging.ERROR,
) -> ErrorRecord:
    """Log ``exc`` with its ErrorRecord attached and return the record."""
    record = error_record(exc, trace_id=trace_id, context=context)
    logger.log(
        level,
        "%s: %s",
        record.code,
        record.message,
        extra={"structured_error": record.to_dict()},
    )
    return record
