"""Observability utilities for the nfreport application.

Lightweight timing instrumentation for nfdump calls and report services.
"""

import logging
import subprocess
import time
import functools
from nfreport.config import OBS_NFDUMP_WARN_MS, OBS_SERVICE_SLOW_MS
from nfreport.services.shared.metrics import track_subprocess, track_service


def get_logger(area):
    """Return the 'nfreport.<area>' logger, attaching the shared handler once."""
    root = logging.getLogger("nfreport")
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(name)s] %(levelname)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root.addHandler(handler)
        root.setLevel(logging.WARNING)  # Only log warnings/errors by default
    return logging.getLogger(f"nfreport.{area}")


_logger = get_logger("observability")


def instrument_subprocess(func):
    """Decorator to instrument nfdump executions.

    Tracks execution time, success/failure, and timeouts.
    Logs warnings when execution exceeds threshold.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()
        success = False
        timeout = False

        try:
            result = func(*args, **kwargs)
            success = True
            return result
        except Exception as e:
            cause = e.__cause__ or e
            if isinstance(cause, subprocess.TimeoutExpired):
                timeout = True
            raise
        finally:
            duration = time.time() - start_time
            duration_ms = duration * 1000

            track_subprocess(duration, success, timeout)

            if duration_ms > OBS_NFDUMP_WARN_MS:
                _logger.warning(
                    f"Subprocess {func.__name__} exceeded threshold: {duration_ms:.1f}ms "
                    f"(threshold: {OBS_NFDUMP_WARN_MS}ms)"
                )

    return wrapper


def instrument_service(service_name):
    """Decorator to instrument report service functions.

    Tracks execution time and call counts.
    Logs warnings when execution exceeds threshold.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                return func(*args, **kwargs)
            finally:
                duration = time.time() - start_time
                duration_ms = duration * 1000

                track_service(service_name, duration)

                if duration_ms > OBS_SERVICE_SLOW_MS:
                    _logger.warning(
                        f"Service {service_name} exceeded threshold: {duration_ms:.1f}ms "
                        f"(threshold: {OBS_SERVICE_SLOW_MS}ms)"
                    )

        return wrapper

    return decorator
