"""Centralized state management for the nfreport application.

Only process-wide plumbing lives here: the rate limiter bookkeeping and the
in-memory application log. Report-scoped state (the hostname cache) is owned
by a ReportContext, see nfreport.services.netflow.report.
"""
import threading
from collections import defaultdict, deque
from datetime import datetime

from nfreport.config import APP_LOG_BUFFER_SIZE

# ==================== Rate Limiting ====================
_throttle_lock = threading.Lock()
_request_times = defaultdict(list)
_metric_http_429 = 0

# ==================== Application Log Buffer ====================
# In-memory buffer to capture recent application logs (nfdump failures etc.)
_app_log_buffer = deque(maxlen=APP_LOG_BUFFER_SIZE)
_app_log_buffer_lock = threading.Lock()


def add_app_log(message, level='INFO'):
    """Add a log message to the in-memory buffer."""
    timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
    log_entry = f"[{timestamp}] [{level}] {message}"
    with _app_log_buffer_lock:
        _app_log_buffer.append(log_entry)


def get_app_logs(limit=None):
    """Return the buffered log lines, oldest first."""
    with _app_log_buffer_lock:
        logs = list(_app_log_buffer)
    if limit is not None and limit >= 0:
        return logs[-limit:] if limit else []
    return logs


def clear_app_logs():
    with _app_log_buffer_lock:
        _app_log_buffer.clear()
