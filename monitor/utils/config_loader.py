from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from monitor.utils.logger import LOGGER as logger

DEFAULT_ENDPOINT_PATH = "/monitor/prometheus"

# Seconds. Same boundaries prometheus_client uses when no buckets are given.
DEFAULT_DURATION_BUCKETS = [0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0]


# Base model for all configuration classes to enforce strict validation
class StrictBaseModel(BaseModel):
    model_config = SettingsConfigDict(extra="forbid")


class LoggingConfig(StrictBaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: str = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"
    file: Optional[str] = None
    rotation: str = "10 MB"
    retention: str = "30 days"
    compression: str = "zip"


class MetricsConfig(StrictBaseModel):
    app_name: str = "app"
    endpoint_host: str = "0.0.0.0"  # nosec B104
    # 0 binds an ephemeral port
    endpoint_port: int = Field(default=9100, ge=0, le=65535)
    endpoint_path: str = DEFAULT_ENDPOINT_PATH
    duration_buckets: list[float] = Field(default_factory=lambda: list(DEFAULT_DURATION_BUCKETS))
    fail_fast: bool = True

    @field_validator("endpoint_path")
    @classmethod
    def check_endpoint_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("endpoint_path must start with '/'")
        return value

    @field_validator("duration_buckets")
    @classmethod
    def check_duration_buckets(cls, value: list[float]) -> list[float]:
        if not value:
            raise ValueError("duration_buckets must not be empty")
        if value != sorted(value):
            raise ValueError("duration_buckets must be in ascending order")
        return value


class AppConfig(StrictBaseModel):
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class MonitorSettings(BaseSettings):
    """Environment overrides, e.g. MONITOR_APP_NAME=checkout MONITOR_PORT=9200."""

    model_config = SettingsConfigDict(env_prefix="MONITOR_", env_file=".env", extra="ignore")

    app_name: Optional[str] = None
    port: Optional[int] = Field(default=None, ge=0, le=65535)
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = None


def _format_validation_error(e: ValidationError) -> str:
    error_messages = []
    for error in e.errors():
        loc = " -> ".join(map(str, error["loc"]))
        msg = error["msg"]
        error_messages.append(f"  - In section '{loc}': {msg}")
    return "\n".join(error_messages)


class ConfigLoader:
    """
    Loads AppConfig from an optional YAML file and applies MONITOR_* environment overrides.
    Without a path the defaults are used, so a monitor can run with no config file at all.
    """

    def __init__(self, config_path: Optional[str] = "config/monitor.yaml") -> None:
        self.config_path = config_path
        self._config: Optional[AppConfig] = None

    def get_config(self) -> AppConfig:
        if self._config is None:
            config_data = self._read_yaml()
            self._apply_env_overrides(config_data)
            try:
                self._config = AppConfig(**config_data)
            except ValidationError as e:
                error_str = _format_validation_error(e)
                logger.error(
                    f"ConfigurationValidationError: Configuration validation failed for '{self.config_path}':\n{error_str}"
                )
                raise ValueError(f"Configuration validation failed:\n{error_str}") from e
        return self._config

    def reload(self) -> AppConfig:
        self._config = None
        return self.get_config()

    def _read_yaml(self) -> dict[str, Any]:
        if self.config_path is None:
            return {}
        try:
            with open(self.config_path, encoding="utf-8") as f:
                config_data = yaml.safe_load(f)
        except FileNotFoundError:
            logger.error(f"ConfigurationError: Config file '{self.config_path}' not found.")
            raise FileNotFoundError(f"Configuration file '{self.config_path}' not found.") from None
        except yaml.YAMLError as e:
            logger.error(f"Error parsing config file '{self.config_path}': {e}")
            raise ValueError(f"Error parsing config file '{self.config_path}': {e}") from e

        if config_data is None:
            logger.warning(f"Config file '{self.config_path}' is empty. Using defaults.")
            return {}
        if not isinstance(config_data, dict):
            raise ValueError(f"Config file '{self.config_path}' must contain a mapping at the top level")
        return config_data

    @staticmethod
    def _apply_env_overrides(config_data: dict[str, Any]) -> None:
        try:
            settings = MonitorSettings()
        except ValidationError as e:
            error_str = _format_validation_error(e)
            logger.error(f"ConfigurationValidationError: Invalid MONITOR_* environment variables:\n{error_str}")
            raise ValueError(f"Environment validation failed:\n{error_str}") from e

        metrics_data = config_data.setdefault("metrics", {}) or {}
        logging_data = config_data.setdefault("logging", {}) or {}
        config_data["metrics"] = metrics_data
        config_data["logging"] = logging_data

        if settings.app_name is not None:
            metrics_data["app_name"] = settings.app_name
        if settings.port is not None:
            metrics_data["endpoint_port"] = settings.port
        if settings.log_level is not None:
            logging_data["level"] = settings.log_level
