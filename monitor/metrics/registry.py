"""
Metrics registry facade for HTTP request instrumentation.
Each MetricsRegistry owns its own CollectorRegistry, six fixed HTTP instruments,
a dynamic name -> Counter map for ad-hoc counters, and the exposition server.
"""

import threading
from typing import NamedTuple, Optional, Union

from prometheus_client import Counter, Gauge, Histogram
from prometheus_client.core import CollectorRegistry

from monitor.errors import InvalidArgumentError, MetricsServerError
from monitor.metrics.exposition import ExpositionServer, create_exposition_app
from monitor.utils.config_loader import MetricsConfig
from monitor.utils.logger import LOGGER as logger

MILLISECONDS_PER_SECOND = 1000.0


class DynamicCounter(NamedTuple):
    counter: Counter
    label_keys: tuple[str, ...]


class MetricsRegistry:
    """
    Central registry for HTTP request metrics and ad-hoc counters.

    Durations are passed in milliseconds and stored in the histograms in seconds.
    """

    def __init__(self, config: Optional[MetricsConfig] = None, registry: Optional[CollectorRegistry] = None) -> None:
        self._config = config or MetricsConfig()
        self._registry = registry if registry is not None else CollectorRegistry()
        self._dynamic_counters: dict[str, DynamicCounter] = {}
        self._create_lock = threading.Lock()
        self._server_lock = threading.Lock()
        self._server: Optional[ExpositionServer] = None
        self.server_error: Optional[OSError] = None

        self._register_http_metrics()
        logger.info(f"MetricsRegistry initialized for app '{self.app_name}'")

    @property
    def app_name(self) -> str:
        return self._config.app_name

    @property
    def config(self) -> MetricsConfig:
        return self._config

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    @property
    def port(self) -> Optional[int]:
        """Port the exposition server is bound to, or None when it is not running."""
        return self._server.port if self._server else None

    @property
    def server_started(self) -> bool:
        return self._server is not None

    def _register_http_metrics(self) -> None:
        buckets = self._config.duration_buckets

        self.server_req_counter = Counter(
            "server_http_requests",
            "Total HTTP requests handled by the server.",
            ["app_name", "path"],
            registry=self._registry,
        )
        self.server_req_duration = Histogram(
            "server_http_request_duration_seconds",
            "Duration of HTTP requests handled by the server.",
            ["path", "status"],
            buckets=buckets,
            registry=self._registry,
        )
        self.server_req_in_flight = Gauge(
            "server_http_requests_in_flight",
            "HTTP requests currently being handled by the server.",
            ["path"],
            registry=self._registry,
        )

        self.client_req_counter = Counter(
            "client_http_requests",
            "Total HTTP requests sent by the client.",
            ["url"],
            registry=self._registry,
        )
        self.client_req_duration = Histogram(
            "client_http_request_duration_seconds",
            "Duration of HTTP client requests.",
            ["url", "status"],
            buckets=buckets,
            registry=self._registry,
        )
        self.client_req_in_flight = Gauge(
            "client_http_requests_in_flight",
            "HTTP client requests currently awaiting a response.",
            ["url"],
            registry=self._registry,
        )
        logger.debug("Registered 6 HTTP request metrics")

    def start(self, port: Optional[int] = None) -> bool:
        """
        Start the exposition endpoint.

        Returns True when the server is running. A bind failure raises MetricsServerError
        when config.fail_fast is set; otherwise it is logged, kept in server_error and False is returned.
        """
        return self.listen_and_serve(self._config.endpoint_port if port is None else port)

    def listen_and_serve(self, port: int) -> bool:
        with self._server_lock:
            if self._server is not None:
                logger.warning(f"Metrics server already started on port {self._server.port}")
                return True

            host = self._config.endpoint_host
            app = create_exposition_app(self._registry, self._config.endpoint_path)
            try:
                server = ExpositionServer(app, host, port)
            except OSError as e:
                self.server_error = e
                if self._config.fail_fast:
                    logger.error(f"Failed to start metrics server on {host}:{port}: {e}")
                    raise MetricsServerError(host, port, str(e)) from e
                logger.error(f"Failed to start metrics server on {host}:{port}, continuing without it: {e}")
                return False

            server.start()
            self._server = server
            self.server_error = None
            logger.info(f"Serving metrics on port {server.port} at {self._config.endpoint_path}")
            return True

    def stop(self) -> None:
        with self._server_lock:
            if self._server is None:
                return
            self._server.shutdown()
            self._server = None

    def http_server_counter(self, path: str) -> None:
        self.server_req_counter.labels(self.app_name, path).inc()

    def http_server_duration(self, path: str, status: Union[str, int], cost: float) -> None:
        """Record a server request duration. cost is in milliseconds."""
        self.server_req_duration.labels(path, str(status)).observe(cost / MILLISECONDS_PER_SECOND)

    def http_server_in_flight_increment(self, path: str) -> None:
        self.server_req_in_flight.labels(path).inc()

    def http_server_in_flight_decrement(self, path: str) -> None:
        self.server_req_in_flight.labels(path).dec()

    def http_client_counter(self, url: str) -> None:
        self.client_req_counter.labels(url).inc()

    def http_client_duration(self, url: str, status: Union[str, int], cost: float) -> None:
        """Record a client request duration. cost is in milliseconds."""
        self.client_req_duration.labels(url, str(status)).observe(cost / MILLISECONDS_PER_SECOND)

    def http_client_in_flight_increment(self, url: str) -> None:
        self.client_req_in_flight.labels(url).inc()

    def http_client_in_flight_decrement(self, url: str) -> None:
        self.client_req_in_flight.labels(url).dec()

    def inc_counter(self, name: str, labels: dict[str, str], value: float = 1.0) -> None:
        """
        Increment the ad-hoc counter `name`, creating it on first use.

        The label keys seen on first use are sorted and fixed for the lifetime of the counter.
        Later calls are matched by key: missing keys are recorded as "" and unknown keys are ignored.

        Raises:
            InvalidArgumentError: name or labels is empty.
        """
        if not name or not labels:
            raise InvalidArgumentError(f"invalid params: name={name!r}, labels={labels!r}")

        entry = self._dynamic_counters.get(name)
        if entry is None:
            entry = self._create_dynamic_counter(name, labels)

        entry.counter.labels(*self._project_label_values(name, entry.label_keys, labels)).inc(value)

    def _create_dynamic_counter(self, name: str, labels: dict[str, str]) -> DynamicCounter:
        with self._create_lock:
            entry = self._dynamic_counters.get(name)
            if entry is not None:
                return entry

            label_keys = tuple(sorted(labels))
            counter = Counter(name, name, label_keys, registry=self._registry)
            entry = DynamicCounter(counter, label_keys)
            self._dynamic_counters[name] = entry
            logger.info(f"Registered dynamic counter '{name}' with labels {list(label_keys)}")
            return entry

    @staticmethod
    def _project_label_values(name: str, label_keys: tuple[str, ...], labels: dict[str, str]) -> list[str]:
        missing = [key for key in label_keys if key not in labels]
        if missing:
            logger.warning(f"Counter '{name}' called without labels {missing}, recording them as empty")
        if len(labels) > len(label_keys) - len(missing):
            extra = sorted(set(labels) - set(label_keys))
            logger.warning(f"Counter '{name}' ignores unknown labels {extra}")
        return [str(labels.get(key, "")) for key in label_keys]

    def dynamic_counter_names(self) -> list[str]:
        return sorted(self._dynamic_counters)

    def dynamic_counter_label_keys(self, name: str) -> Optional[tuple[str, ...]]:
        entry = self._dynamic_counters.get(name)
        return entry.label_keys if entry else None

    def get_sample_value(self, name: str, labels: Optional[dict[str, str]] = None) -> Optional[float]:
        return self._registry.get_sample_value(name, labels or {})


def new_registry(app_name: str, port: int, config: Optional[MetricsConfig] = None) -> MetricsRegistry:
    """
    Build a MetricsRegistry for `app_name` and start its exposition endpoint on `port`.
    Values in `config` other than the app name and port are kept.
    """
    base = config or MetricsConfig()
    metrics_config = base.model_copy(update={"app_name": app_name, "endpoint_port": port})
    registry = MetricsRegistry(metrics_config)
    registry.start()
    return registry
