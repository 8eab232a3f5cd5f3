"""Configuration module for the nfreport application."""
import os
from dataclasses import dataclass

# Application Metadata (Single Source of Truth)
APP_NAME = "nfreport"
APP_VERSION = "v1.0.0"
DEBUG_MODE = os.environ.get('FLASK_DEBUG', 'false').lower() == 'true'

# nfdump
NFDUMP_BINARY = os.getenv("NFDUMP_BINARY", "nfdump")
NFCAPD_DIR = os.getenv("NFCAPD_DIR", "/var/cache/nfdump")
DEFAULT_TIMEOUT = float(os.getenv("NFDUMP_TIMEOUT", "25"))  # subprocess timeout
NFDUMP_MIN_VERSION = (1, 6, 8)
NFDUMP_DATE_FORMAT = "%Y/%m/%d.%H:%M:%S"

# Report defaults
MAX_AGGREGATES = 10
MAX_RECORDS = 1000
REPORT_WORKERS = int(os.getenv("REPORT_WORKERS", "1"))  # 1 = sequential buckets

# DNS Configuration (empty DNS_SERVER = system resolver)
DNS_SERVER = os.getenv("DNS_SERVER", "")
DNS_TIMEOUT = float(os.getenv("DNS_TIMEOUT", "2"))

# In-memory application log
APP_LOG_BUFFER_SIZE = 500

# Observability thresholds (configurable via environment variables)
OBS_NFDUMP_WARN_MS = float(os.getenv('OBS_NFDUMP_WARN_MS', '5000'))  # Warn if nfdump > 5s
OBS_ROUTE_SLOW_MS = float(os.getenv('OBS_ROUTE_SLOW_MS', '1000'))  # Flag route as slow if > 1s
OBS_ROUTE_SLOW_WARN_MS = float(os.getenv('OBS_ROUTE_SLOW_WARN_MS', '2000'))  # Warn if route > 2s
OBS_SERVICE_SLOW_MS = float(os.getenv('OBS_SERVICE_SLOW_MS', '500'))  # Warn if service function > 500ms

@dataclass(frozen=True)
class NfdumpConfig:
    """Everything needed to run nfdump and resolve hostnames for a report."""

    binary: str = NFDUMP_BINARY
    data_dir: str = NFCAPD_DIR
    timeout: float = DEFAULT_TIMEOUT
    dns_server: str = DNS_SERVER
    dns_timeout: float = DNS_TIMEOUT
    workers: int = REPORT_WORKERS

    @classmethod
    def from_env(cls, environ=None):
        """Build a config from environment variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        return cls(
            binary=env.get("NFDUMP_BINARY", NFDUMP_BINARY),
            data_dir=env.get("NFCAPD_DIR", NFCAPD_DIR),
            timeout=float(env.get("NFDUMP_TIMEOUT", DEFAULT_TIMEOUT)),
            dns_server=env.get("DNS_SERVER", DNS_SERVER),
            dns_timeout=float(env.get("DNS_TIMEOUT", DNS_TIMEOUT)),
            workers=max(1, int(env.get("REPORT_WORKERS", REPORT_WORKERS))),
        )
