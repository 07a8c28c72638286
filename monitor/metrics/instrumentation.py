"""
Call sites for the HTTP recorders: a Starlette/FastAPI middleware for served requests
and httpx transports plus a context manager for outgoing requests.
"""

import time
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any, Optional

import httpx
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.types import ASGIApp

from monitor.metrics.registry import MetricsRegistry

# status label used when no response was produced
ERROR_STATUS = "error"


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


def client_url_label(url: httpx.URL) -> str:
    """scheme://host[:port]/path without query string, so that query parameters do not create new series."""
    return f"{url.scheme}://{url.netloc.decode('ascii')}{url.path}"


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Counts, times and tracks in-flight requests per path. Exceptions from the app are recorded as 500."""

    def __init__(self, app: ASGIApp, registry: MetricsRegistry, exclude_paths: Optional[Iterable[str]] = None) -> None:
        super().__init__(app)
        self.registry = registry
        self.exclude_paths = set(exclude_paths or ())

    async def dispatch(self, request: Request, call_next: Any) -> Any:
        path = request.url.path
        if path in self.exclude_paths:
            return await call_next(request)

        self.registry.http_server_counter(path)
        self.registry.http_server_in_flight_increment(path)
        start = time.perf_counter()
        status = "500"
        try:
            response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            self.registry.http_server_duration(path, status, _elapsed_ms(start))
            self.registry.http_server_in_flight_decrement(path)


@contextmanager
def track_client_request(registry: MetricsRegistry, url: str) -> Iterator[dict[str, str]]:
    """
    Record one outgoing request to `url`.

    The caller sets result["status"] once a response arrives. If the block raises before that,
    the request is recorded with status "error" and the exception propagates.
    """
    result = {"status": ERROR_STATUS}
    registry.http_client_counter(url)
    registry.http_client_in_flight_increment(url)
    start = time.perf_counter()
    try:
        yield result
    finally:
        registry.http_client_duration(url, result["status"], _elapsed_ms(start))
        registry.http_client_in_flight_decrement(url)


class InstrumentedTransport(httpx.BaseTransport):
    """Wraps a sync httpx transport and records every request it sends."""

    def __init__(self, registry: MetricsRegistry, transport: Optional[httpx.BaseTransport] = None) -> None:
        self.registry = registry
        self._transport = transport or httpx.HTTPTransport()

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        with track_client_request(self.registry, client_url_label(request.url)) as result:
            response = self._transport.handle_request(request)
            result["status"] = str(response.status_code)
        return response

    def close(self) -> None:
        self._transport.close()


class AsyncInstrumentedTransport(httpx.AsyncBaseTransport):
    """Async counterpart of InstrumentedTransport."""

    def __init__(self, registry: MetricsRegistry, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.registry = registry
        self._transport = transport or httpx.AsyncHTTPTransport()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        with track_client_request(self.registry, client_url_label(request.url)) as result:
            response = await self._transport.handle_async_request(request)
            result["status"] = str(response.status_code)
        return response

    async def aclose(self) -> None:
        await self._transport.aclose()
