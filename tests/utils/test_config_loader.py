import pytest

from monitor.utils.config_loader import (
    DEFAULT_DURATION_BUCKETS,
    DEFAULT_ENDPOINT_PATH,
    AppConfig,
    ConfigLoader,
    MetricsConfig,
)


@pytest.fixture(autouse=True)
def clear_monitor_env(monkeypatch):
    for var in ("MONITOR_APP_NAME", "MONITOR_PORT", "MONITOR_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "monitor.yaml"
    path.write_text(
        "metrics:\n"
        "  app_name: checkout\n"
        "  endpoint_port: 9200\n"
        "  duration_buckets: [0.1, 1.0]\n"
        "logging:\n"
        "  level: DEBUG\n",
        encoding="utf-8",
    )
    return path


class TestMetricsConfig:
    def test_defaults(self):
        config = MetricsConfig()

        assert config.endpoint_path == DEFAULT_ENDPOINT_PATH
        assert config.endpoint_port == 9100
        assert config.duration_buckets == DEFAULT_DURATION_BUCKETS
        assert config.fail_fast is True

    def test_rejects_relative_endpoint_path(self):
        with pytest.raises(ValueError, match="must start with"):
            MetricsConfig(endpoint_path="metrics")

    def test_rejects_unsorted_buckets(self):
        with pytest.raises(ValueError, match="ascending"):
            MetricsConfig(duration_buckets=[1.0, 0.1])

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValueError):
            MetricsConfig(endpoint="/metrics")


class TestConfigLoader:
    def test_loads_yaml(self, config_file):
        config = ConfigLoader(str(config_file)).get_config()

        assert config.metrics.app_name == "checkout"
        assert config.metrics.endpoint_port == 9200
        assert config.metrics.duration_buckets == [0.1, 1.0]
        assert config.logging.level == "DEBUG"

    def test_no_path_uses_defaults(self):
        assert ConfigLoader(None).get_config().model_dump() == AppConfig().model_dump()

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        assert ConfigLoader(str(path)).get_config().model_dump() == AppConfig().model_dump()

    def test_environment_overrides_file(self, config_file, monkeypatch):
        monkeypatch.setenv("MONITOR_APP_NAME", "payments")
        monkeypatch.setenv("MONITOR_PORT", "9300")
        monkeypatch.setenv("MONITOR_LOG_LEVEL", "WARNING")

        config = ConfigLoader(str(config_file)).get_config()

        assert config.metrics.app_name == "payments"
        assert config.metrics.endpoint_port == 9300
        assert config.logging.level == "WARNING"

    def test_invalid_environment_value(self, monkeypatch):
        monkeypatch.setenv("MONITOR_PORT", "not-a-port")

        with pytest.raises(ValueError, match="Environment validation failed"):
            ConfigLoader(None).get_config()

    def test_config_is_cached_until_reload(self, config_file):
        loader = ConfigLoader(str(config_file))
        first = loader.get_config()

        config_file.write_text("metrics:\n  app_name: other\n", encoding="utf-8")

        assert loader.get_config() is first
        assert loader.reload().metrics.app_name == "other"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigLoader(str(tmp_path / "nope.yaml")).get_config()

    def test_validation_errors_are_readable(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("metrics:\n  endpoint_port: 70000\n", encoding="utf-8")

        with pytest.raises(ValueError, match="metrics -> endpoint_port"):
            ConfigLoader(str(path)).get_config()

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("metrics: [unclosed\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Error parsing config file"):
            ConfigLoader(str(path)).get_config()
