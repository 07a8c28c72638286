"""
HTTP request metrics for services.
Provides a per-process MetricsRegistry with Prometheus exposition and ad-hoc counters.
"""

from .registry import MetricsRegistry, new_registry

__all__ = ["MetricsRegistry", "new_registry"]
