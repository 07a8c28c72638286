import os
import sys
import threading
from typing import Optional

from monitor.errors import MetricsServerError
from monitor.metrics.registry import new_registry
from monitor.utils.config_loader import ConfigLoader
from monitor.utils.logger import LOGGER as logger
from monitor.utils.logger import LoggerSetup

DEFAULT_CONFIG_PATH = "config/monitor.yaml"


def resolve_config_path(argv: list[str]) -> Optional[str]:
    """First CLI argument wins, then the default file if present, else run on defaults."""
    if len(argv) > 1:
        return argv[1]
    if os.path.exists(DEFAULT_CONFIG_PATH):
        return DEFAULT_CONFIG_PATH
    return None


def wait_for_shutdown() -> None:
    threading.Event().wait()


def main() -> None:
    """
    Run a standalone monitor process: load config, start the exposition endpoint
    and block until interrupted.
    """
    config = ConfigLoader(resolve_config_path(sys.argv)).get_config()
    LoggerSetup.setup_logger(config.logging)

    try:
        registry = new_registry(config.metrics.app_name, config.metrics.endpoint_port, config.metrics)
    except MetricsServerError as e:
        logger.critical(f"Cannot start monitor: {e}")
        sys.exit(1)

    logger.info(f"Monitor for '{registry.app_name}' running. Press Ctrl+C to stop.")
    try:
        wait_for_shutdown()
    except KeyboardInterrupt:
        logger.info("Monitor interrupted by user. Shutting down.")
    finally:
        registry.stop()
        logger.complete()


if __name__ == "__main__":
    main()
