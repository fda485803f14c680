"""Golden signals for the HTTP surface.

- Latency: request duration histogram; buckets stretch to minutes because
  uploads and downloads stream whole files
- Traffic: requests and response bytes announced via Content-Length
- Errors: 5xx responses, including exceptions that escape the app
- Saturation: requests in flight
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from prometheus_client import Counter, Gauge, Histogram

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from fastapi import Request, Response

_LABELS = ("method", "route", "status_code")

REQUEST_DURATION = Histogram(
    "tempshare_http_request_duration_seconds",
    "HTTP request duration in seconds",
    _LABELS,
    buckets=(0.005, 0.025, 0.1, 0.5, 2.0, 10.0, 60.0, 300.0, 1800.0),
)
REQUEST_TOTAL = Counter("tempshare_http_requests_total", "HTTP requests served", _LABELS)
RESPONSE_BYTES = Counter(
    "tempshare_http_response_bytes_total",
    "Bytes announced in response Content-Length headers",
    ("method", "route"),
)
ERROR_TOTAL = Counter("tempshare_http_errors_total", "HTTP 5xx responses", _LABELS)
IN_FLIGHT = Gauge("tempshare_http_in_flight_requests", "Requests currently being served", ("method",))

_UNTRACKED = frozenset({"/metrics", "/healthz"})

UNMATCHED_ROUTE = "unmatched"


def route_label(request: Request) -> str:
    """Path template of the route that handled ``request``.

    The router records the matched route in the scope, so this is only
    meaningful once the request has been dispatched. Requests no route
    matched share one label so scanners cannot grow the label set.
    """
    path = getattr(request.scope.get("route"), "path", None)
    return path if isinstance(path, str) else UNMATCHED_ROUTE


def _observe(method: str, route: str, status_code: int, started: float) -> None:
    labels = (method, route, str(status_code))
    REQUEST_DURATION.labels(*labels).observe(time.monotonic() - started)
    REQUEST_TOTAL.labels(*labels).inc()
    if status_code >= 500:
        ERROR_TOTAL.labels(*labels).inc()


async def golden_signals_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    if request.url.path in _UNTRACKED:
        return await call_next(request)

    method = request.method
    in_flight = IN_FLIGHT.labels(method)
    started = time.monotonic()

    in_flight.inc()
    try:
        response = await call_next(request)
    except Exception:
        _observe(method, route_label(request), 500, started)
        raise
    finally:
        in_flight.dec()

    route = route_label(request)
    _observe(method, route, response.status_code, started)
    content_length = response.headers.get("content-length")
    if content_length and content_length.isdigit():
        RESPONSE_BYTES.labels(method, route).inc(int(content_length))
    return response
