from collections.abc import Generator

import pytest

from monitor.metrics.registry import MetricsRegistry
from monitor.utils.config_loader import MetricsConfig


@pytest.fixture
def metrics_config() -> MetricsConfig:
    return MetricsConfig(app_name="svc", endpoint_host="127.0.0.1", endpoint_port=0)


@pytest.fixture
def registry(metrics_config: MetricsConfig) -> Generator[MetricsRegistry, None, None]:
    metrics_registry = MetricsRegistry(metrics_config)
    yield metrics_registry
    metrics_registry.stop()
