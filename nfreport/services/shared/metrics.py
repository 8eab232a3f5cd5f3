"""Performance counters for nfdump calls, report services and HTTP routes."""
import threading
from collections import defaultdict, deque

_SAMPLES = 100

_performance_metrics = {
    'request_count': 0,
    'total_response_time': 0.0,
    'endpoint_times': defaultdict(lambda: deque(maxlen=_SAMPLES)),
    'error_count': 0,
    'slow_requests': 0,
    # nfdump subprocess
    'subprocess_calls': 0,
    'subprocess_success': 0,
    'subprocess_failures': 0,
    'subprocess_timeouts': 0,
    'subprocess_total_time': 0.0,
    'subprocess_times': deque(maxlen=_SAMPLES),
    # Report pipeline
    'query_failures': 0,
    'dns_lookups': 0,
    'service_calls': defaultdict(int),
    'service_total_time': defaultdict(float),
}
_performance_lock = threading.Lock()


def track_performance(endpoint, duration):
    """Track the response time of an HTTP endpoint."""
    with _performance_lock:
        _performance_metrics['request_count'] += 1
        _performance_metrics['total_response_time'] += duration
        _performance_metrics['endpoint_times'][endpoint].append(duration)


def track_error():
    with _performance_lock:
        _performance_metrics['error_count'] += 1


def track_slow_request():
    with _performance_lock:
        _performance_metrics['slow_requests'] += 1


def track_subprocess(duration, success=True, timeout=False):
    """Track one nfdump execution."""
    with _performance_lock:
        _performance_metrics['subprocess_calls'] += 1
        _performance_metrics['subprocess_total_time'] += duration
        _performance_metrics['subprocess_times'].append(duration)
        if timeout:
            _performance_metrics['subprocess_timeouts'] += 1
        elif success:
            _performance_metrics['subprocess_success'] += 1
        else:
            _performance_metrics['subprocess_failures'] += 1


def track_query_failure():
    """Count a query whose failure was absorbed into an empty/zero result."""
    with _performance_lock:
        _performance_metrics['query_failures'] += 1


def track_dns_lookup():
    with _performance_lock:
        _performance_metrics['dns_lookups'] += 1


def track_service(service_name, duration):
    """Track execution time of a report service function."""
    with _performance_lock:
        _performance_metrics['service_calls'][service_name] += 1
        _performance_metrics['service_total_time'][service_name] += duration


def get_performance_metrics():
    """Return a JSON-friendly snapshot of the counters."""
    with _performance_lock:
        m = _performance_metrics
        calls = m['subprocess_calls']
        return {
            'request_count': m['request_count'],
            'avg_response_time': m['total_response_time'] / max(m['request_count'], 1),
            'error_count': m['error_count'],
            'slow_requests': m['slow_requests'],
            'subprocess_calls': calls,
            'subprocess_success': m['subprocess_success'],
            'subprocess_failures': m['subprocess_failures'],
            'subprocess_timeouts': m['subprocess_timeouts'],
            'subprocess_avg_time': m['subprocess_total_time'] / max(calls, 1),
            'subprocess_max_recent': max(m['subprocess_times'], default=0.0),
            'query_failures': m['query_failures'],
            'dns_lookups': m['dns_lookups'],
            'endpoints': {
                name: sum(times) / len(times)
                for name, times in m['endpoint_times'].items() if times
            },
            'services': {
                name: {
                    'calls': count,
                    'avg_time': m['service_total_time'][name] / count,
                }
                for name, count in m['service_calls'].items() if count
            },
        }


def reset_performance_metrics():
    """Zero every counter (used by tests)."""
    with _performance_lock:
        for key, value in _performance_metrics.items():
            if isinstance(value, (int, float)):
                _performance_metrics[key] = type(value)()
            else:
                value.clear()
