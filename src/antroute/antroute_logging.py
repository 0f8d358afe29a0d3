# ------------------------------
# Logging
# ------------------------------

import logging
import sys
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator


class AntRouteLogger:
    """Shared logger for catalog, reconstruction and prediction stages"""

    def __init__(self, level: str = "INFO"):
        self.logger = logging.getLogger("antroute")
        self.logger.setLevel(getattr(logging, level.upper()))

        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
            self.logger.addHandler(handler)

    def info(self, message: str) -> None:
        self.logger.info(message)

    def warning(self, message: str) -> None:
        self.logger.warning(message)

    def error(self, message: str) -> None:
        self.logger.error(message)

    def debug(self, message: str) -> None:
        self.logger.debug(message)

    @contextmanager
    def operation(self, operation_name: str) -> Iterator[Dict[str, Any]]:
        """Time an operation.

        Yields a dict the caller may fill with counters (e.g. ``rows``); they
        are appended to the completion message. Failures are logged and
        re-raised unchanged.
        """
        self.info(f"Starting {operation_name}")
        counters: Dict[str, Any] = {}
        start_time = time.time()
        try:
            yield counters
        except Exception as e:
            self.error(f"{operation_name} failed: {type(e).__name__}: {e}")
            raise
        else:
            duration = time.time() - start_time
            extra = ", ".join(f"{k}={v}" for k, v in counters.items())
            suffix = f" ({extra})" if extra else ""
            self.info(f"Completed {operation_name} in {duration:.2f}s{suffix}")

    def set_level(self, level: str) -> None:
        self.logger.setLevel(getattr(logging, level.upper()))


# Global logger instance
logger = AntRouteLogger()


def get_logger() -> AntRouteLogger:
    """Get the global logger instance"""
    return logger
