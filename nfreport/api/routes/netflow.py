"""Netflow report routes.

Every route takes ``start``/``end`` as unix timestamps (default: the last
hour) plus the filter fields of FlowFilter, and answers with JSON.
"""
import time

from flask import current_app, jsonify, request

from nfreport.config import MAX_AGGREGATES, MAX_RECORDS
from nfreport.services.netflow.errors import ConfigurationError, QueryCancelled
from nfreport.services.netflow.filters import FlowFilter
from nfreport.services.netflow.intervals import Resolution
from nfreport.services.netflow.models import AggregateKey, Unit
from nfreport.services.netflow.netflow import Nfdump
from nfreport.services.netflow.report import ReportContext
from nfreport.services.shared.decorators import throttle
from nfreport.services.shared.metrics import track_error
from nfreport.services.shared.observability import get_logger

from . import bp

_logger = get_logger("api")

_TRUE = ("1", "true", "yes", "on")


@bp.errorhandler(ConfigurationError)
def handle_configuration_error(e):
    track_error()
    return jsonify({"error": str(e), "reason": e.reason}), 503


@bp.errorhandler(ValueError)
def handle_bad_parameter(e):
    return jsonify({"error": str(e)}), 400


@bp.errorhandler(QueryCancelled)
def handle_cancelled(e):
    return jsonify({"error": str(e)}), 409


def _int_arg(name, default):
    value = request.args.get(name)
    if value in (None, ""):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Parameter '{name}' must be an integer") from None


def _positive_int_arg(name, default):
    value = _int_arg(name, default)
    if value <= 0:
        raise ValueError(f"Parameter '{name}' must be positive")
    return value


def _time_range():
    end = _int_arg("end", int(time.time()))
    start = _int_arg("start", end - 3600)
    return start, end


def _report():
    resolve = request.args.get("resolve", "").lower() in _TRUE
    return ReportContext(current_app.config["NFDUMP"], resolve_hostnames=resolve)


def _series_for_json(data):
    """Bucket-end keys become strings in JSON; keep them sorted numerically."""
    if "data" in data and "sources" in data:
        return {
            "sources": list(data["sources"]),
            "data": {str(ts): data["data"][ts] for ts in sorted(data["data"])},
        }
    return {str(ts): data[ts] for ts in sorted(data)}


@bp.route("/api/netflow/check")
def api_netflow_check():
    version = Nfdump(current_app.config["NFDUMP"]).check_binary()
    return jsonify({"status": "ok", "version": ".".join(str(v) for v in version)})


@bp.route("/api/netflow/data")
@throttle(10, 10)
def api_netflow_data():
    start, end = _time_range()
    resolution = Resolution.parse(request.args.get("resolution"))
    aggregate = AggregateKey.parse(request.args.get("aggregate", "none"))
    unit = Unit.parse(request.args.get("unit", "bytes"))
    max_aggregates = _positive_int_arg("max", MAX_AGGREGATES)
    flow_filter = FlowFilter.from_mapping(request.args)

    with _report() as report:
        data = report.get_data(start, end, resolution, flow_filter, aggregate, max_aggregates, unit)

    return jsonify({
        "start": start,
        "end": end,
        "resolution": resolution.value,
        "aggregate": aggregate.value,
        "unit": unit.value,
        "data": _series_for_json(data) if data else {},
    })


@bp.route("/api/netflow/stats")
@throttle(10, 10)
def api_netflow_stats():
    start, end = _time_range()
    aggregate = AggregateKey.parse(request.args.get("aggregate", "srcip"))
    unit = Unit.parse(request.args.get("unit", "bytes"))
    max_aggregates = _positive_int_arg("max", MAX_AGGREGATES)
    flow_filter = FlowFilter.from_mapping(request.args)

    with _report() as report:
        rows = report.get_stats(start, end, flow_filter, aggregate, max_aggregates, unit)
    return jsonify({"stats": [row.to_dict() for row in rows]})


@bp.route("/api/netflow/summary")
@throttle(10, 10)
def api_netflow_summary():
    start, end = _time_range()
    flow_filter = FlowFilter.from_mapping(request.args)

    with _report() as report:
        summary = report.get_summary(start, end, flow_filter)
    return jsonify({"summary": summary.to_dict() if summary else {}})


@bp.route("/api/netflow/records")
@throttle(10, 10)
def api_netflow_records():
    start, end = _time_range()
    unit = Unit.parse(request.args.get("unit", "bytes"))
    max_records = _positive_int_arg("max", MAX_RECORDS)
    flow_filter = FlowFilter.from_mapping(request.args)

    with _report() as report:
        records = report.get_records(start, end, flow_filter, max_records, unit)
    return jsonify({"records": [record.to_dict() for record in records]})


@bp.route("/api/netflow/top")
@throttle(10, 10)
def api_netflow_top():
    start, end = _time_range()
    mode = request.args.get("mode", "talkers")
    order = request.args.get("order", "bytes")
    max_results = _positive_int_arg("max", MAX_AGGREGATES)

    with _report() as report:
        top = report.top_summary(max_results, mode, start, end, request.args.get("filter", ""), order)
    return jsonify({"mode": mode, "order": order, "top": top})


@bp.route("/api/netflow/item")
@throttle(10, 10)
def api_netflow_item():
    start, end = _time_range()
    chart_type = request.args.get("type", "netflow_area")
    resolution = request.args.get("resolution")
    aggregate = request.args.get("aggregate", "none")
    unit = request.args.get("unit", "bytes")
    max_aggregates = _positive_int_arg("max", MAX_AGGREGATES)
    flow_filter = FlowFilter.from_mapping(request.args)

    with _report() as report:
        payload = report.draw_item(
            chart_type, start, end, resolution, flow_filter, aggregate, max_aggregates, unit
        )
    if payload["type"] in ("netflow_area", "netflow_data") and payload["data"]:
        payload["data"] = _series_for_json(payload["data"])
    return jsonify(payload)
