"""
Exceptions raised by the monitor package.

Errors coming from prometheus_client itself (duplicate registration, label
mismatch, invalid metric names) are not wrapped: they indicate programming
errors at the call site and propagate unchanged.
"""


class MonitorError(Exception):
    """Base class for monitor errors."""


class InvalidArgumentError(MonitorError, ValueError):
    """A caller passed an empty metric name or an empty label mapping."""


class MetricsServerError(MonitorError):
    """The exposition endpoint could not be started."""

    def __init__(self, host: str, port: int, message: str) -> None:
        self.host = host
        self.port = port
        super().__init__(f"Failed to start metrics server on {host}:{port}: {message}")
