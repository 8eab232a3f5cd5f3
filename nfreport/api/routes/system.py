"""Application log and metrics routes."""
from flask import jsonify, request

from nfreport.config import APP_NAME, APP_VERSION
import nfreport.core.app_state as state
from nfreport.core.app_state import get_app_logs
from nfreport.services.shared.metrics import get_performance_metrics

from . import bp


@bp.route("/api/system/logs")
def api_system_logs():
    try:
        limit = int(request.args.get("limit", 100))
    except (TypeError, ValueError):
        limit = 100
    return jsonify({"logs": get_app_logs(limit)})


@bp.route("/api/system/metrics")
def api_system_metrics():
    return jsonify({
        "app": APP_NAME,
        "version": APP_VERSION,
        "metrics": get_performance_metrics(),
        "rate_limited": state._metric_http_429,
    })
