"""Decorators for the nfreport HTTP routes."""
import time
from functools import wraps
from flask import jsonify

import nfreport.core.app_state as state
from nfreport.core.app_state import _throttle_lock, _request_times
from nfreport.services.shared.metrics import track_error


def throttle(max_calls=20, time_window=10):
    """Rate limiting decorator for Flask routes.

    Limits the number of calls to a function within a time window.
    Returns HTTP 429 if rate limit is exceeded.

    Args:
        max_calls: Maximum number of calls allowed (default: 20)
        time_window: Time window in seconds (default: 10)
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            now = time.time()
            endpoint = func.__name__
            with _throttle_lock:
                _request_times[endpoint] = [t for t in _request_times[endpoint] if now - t < time_window]
                if len(_request_times[endpoint]) >= max_calls:
                    state._metric_http_429 += 1
                    track_error()
                    return jsonify({"error": "Rate limit"}), 429
                _request_times[endpoint].append(now)
            return func(*args, **kwargs)
        return wrapper
    return decorator
