"""Core modules for the nfreport application."""
from .app_state import (
    _throttle_lock,
    _request_times,
    _app_log_buffer,
    _app_log_buffer_lock,
    add_app_log,
    get_app_logs,
    clear_app_logs,
)
