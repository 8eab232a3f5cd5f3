"""Flask application factory for nfreport.

This module creates and configures the Flask application instance.
"""
import time
import uuid
from flask import Flask, request, g

from nfreport.config import NfdumpConfig, OBS_ROUTE_SLOW_MS, OBS_ROUTE_SLOW_WARN_MS
from nfreport.services.shared.metrics import track_performance, track_slow_request
from nfreport.services.shared.observability import get_logger

_logger = get_logger("http")


def create_app(config=None):
    """Create and configure the Flask application.

    ``config`` is the NfdumpConfig every report of this app runs with;
    it defaults to one read from the environment.
    """
    app = Flask(__name__)
    app.config['NFDUMP'] = config or NfdumpConfig.from_env()
    app.json.sort_keys = False

    from nfreport.api.routes import bp as routes_bp
    app.register_blueprint(routes_bp)

    @app.before_request
    def track_request_start():
        g.request_start_time = time.time()
        g.request_id = str(uuid.uuid4())[:8]

    @app.after_request
    def apply_server_policies(response):
        """Performance tracking and response headers."""
        endpoint = request.endpoint or 'unknown'
        if hasattr(g, 'request_start_time'):
            duration = time.time() - g.request_start_time
            duration_ms = duration * 1000
            track_performance(endpoint, duration)

            if duration_ms > OBS_ROUTE_SLOW_MS:
                track_slow_request()
                if duration_ms > OBS_ROUTE_SLOW_WARN_MS:
                    _logger.warning(
                        f"Slow route: {endpoint} ({duration_ms:.1f}ms) - {request.path} "
                        f"[{getattr(g, 'request_id', '-')}]"
                    )

        response.headers['X-Content-Type-Options'] = 'nosniff'
        if request.path.startswith('/api/'):
            response.headers['Cache-Control'] = 'no-cache, no-store, must-revalidate'
        return response

    return app
