from monitor.errors import InvalidArgumentError, MetricsServerError, MonitorError
from monitor.metrics import MetricsRegistry, new_registry

__version__ = "0.1.0"

__all__ = [
    "InvalidArgumentError",
    "MetricsRegistry",
    "MetricsServerError",
    "MonitorError",
    "new_registry",
]
