"""Report rendering context and chart data payloads."""
from enum import Enum

from nfreport.config import NfdumpConfig
from nfreport.services.netflow.aggregation import get_data
from nfreport.services.netflow.intervals import Resolution
from nfreport.services.netflow.models import AggregateKey, Unit
from nfreport.services.netflow.netflow import Nfdump, get_records, get_stats, get_summary
from nfreport.services.netflow.top import top_summary
from nfreport.services.shared.dns import HostnameCache


class ChartType(str, Enum):
    AREA = "netflow_area"
    PIE = "netflow_pie"
    DATA = "netflow_data"
    STATISTICS = "netflow_statistics"
    SUMMARY = "netflow_summary"
    PIE_SUMMATORY = "netflow_pie_summatory"
    MESH = "netflow_mesh"
    HOST_TREEMAP = "netflow_host_treemap"

    @classmethod
    def parse(cls, value):
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown chart type: {value!r}") from None


def build_mesh(records, aggregate):
    """Source/destination traffic matrix for a circular mesh chart."""
    if aggregate in (AggregateKey.SRCPORT, AggregateKey.DSTPORT):
        source_type, destination_type = "source_port", "destination_port"
    else:
        source_type, destination_type = "source_address", "destination_address"

    elements = []
    index = {}
    for record in records:
        for element in (getattr(record, source_type), getattr(record, destination_type)):
            if element not in index:
                index[element] = len(elements)
                elements.append(element)

    matrix = [[0] * len(elements) for _ in elements]
    for record in records:
        src = index[getattr(record, source_type)]
        dst = index[getattr(record, destination_type)]
        matrix[src][dst] += record.value
    return {"elements": elements, "matrix": matrix}


def build_host_treemap(records, aggregate):
    """Address -> port -> traffic tree for the host treemap chart."""
    if aggregate in (AggregateKey.SRCIP, AggregateKey.SRCPORT):
        address_type, port_type, direction = "source_address", "source_port", "Sent"
    else:
        address_type, port_type, direction = "destination_address", "destination_port", "Received"

    if not records:
        return {}

    hosts = {}
    for record in records:
        ports = hosts.setdefault(getattr(record, address_type), {})
        port = getattr(record, port_type)
        ports[port] = ports.get(port, 0) + record.value

    next_id = 0
    children = []
    for address, ports in hosts.items():
        host_id = next_id
        next_id += 1
        port_nodes = []
        for port, value in ports.items():
            port_nodes.append({"id": next_id, "name": port, "value": value})
            next_id += 1
        children.append({"id": host_id, "name": address, "children": port_nodes})
    return {"name": f"Host detailed traffic: {direction}", "children": children}


class ReportContext:
    """Scope of one report render.

    Entering checks the nfdump binary and starts an empty hostname cache;
    leaving drops the cache, so resolutions never leak into the next report.
    """

    def __init__(self, config=None, resolve_hostnames=False, workers=None,
                 cancel_event=None, nfdump=None, hostnames=None, check_binary=True):
        self.config = config or NfdumpConfig.from_env()
        self.nfdump = nfdump or Nfdump(self.config)
        self.resolve_hostnames = resolve_hostnames
        self.workers = workers if workers is not None else self.config.workers
        self.cancel_event = cancel_event
        self.version = None
        self._check_binary = check_binary
        self._hostnames_override = hostnames
        self.hostnames = None

    def __enter__(self):
        if self._check_binary:
            self.version = self.nfdump.check_binary()
        if self.resolve_hostnames:
            self.hostnames = self._hostnames_override or HostnameCache(
                nameserver=self.config.dns_server or None,
                timeout=self.config.dns_timeout,
            )
        return self

    def __exit__(self, exc_type, exc, tb):
        self.hostnames = None
        return False

    def get_data(self, start, end, resolution, flow_filter, aggregate, max_aggregates, unit):
        return get_data(
            self.nfdump, start, end, resolution, flow_filter, aggregate, max_aggregates, unit,
            hostnames=self.hostnames, workers=self.workers, cancel_event=self.cancel_event,
        )

    def get_stats(self, start, end, flow_filter, aggregate, max_aggregates, unit):
        return get_stats(
            self.nfdump, start, end, flow_filter, aggregate, max_aggregates, unit,
            hostnames=self.hostnames,
        )

    def get_summary(self, start, end, flow_filter):
        return get_summary(self.nfdump, start, end, flow_filter)

    def get_records(self, start, end, flow_filter, max_records, unit):
        return get_records(
            self.nfdump, start, end, flow_filter, max_records, unit, hostnames=self.hostnames
        )

    def top_summary(self, max_results, mode, start, end, filter_value="", order="bytes"):
        return top_summary(self.nfdump, max_results, mode, start, end, filter_value, order)

    def draw_item(self, chart_type, start, end, resolution, flow_filter, aggregate,
                  max_aggregates, unit):
        """Data payload for one report item; ``data`` is empty when there is nothing to draw."""
        chart_type = ChartType.parse(chart_type)
        aggregate = AggregateKey.parse(aggregate)
        unit = Unit.parse(unit)
        resolution = Resolution.parse(resolution)

        payload = {
            "type": chart_type.value,
            "unit": unit.value,
            "unit_label": unit.label,
            "aggregate": aggregate.value,
            "aggregate_label": aggregate.label,
            "resolution": resolution.value,
            "start": start,
            "end": end,
        }

        if chart_type in (ChartType.AREA, ChartType.DATA):
            payload["data"] = self.get_data(
                start, end, resolution, flow_filter, aggregate, max_aggregates, unit
            )
        elif chart_type in (ChartType.PIE, ChartType.STATISTICS):
            rows = self.get_stats(start, end, flow_filter, aggregate, max_aggregates, unit)
            payload["data"] = [row.to_dict() for row in rows]
        elif chart_type is ChartType.SUMMARY:
            summary = self.get_summary(start, end, flow_filter)
            payload["data"] = summary.to_dict() if summary else {}
        elif chart_type is ChartType.PIE_SUMMATORY:
            summary = self.get_summary(start, end, flow_filter)
            rows = self.get_stats(start, end, flow_filter, aggregate, max_aggregates, unit) if summary else []
            if summary and rows:
                payload["data"] = {
                    "summary": summary.to_dict(),
                    "stats": [row.to_dict() for row in rows],
                }
            else:
                payload["data"] = {}
        elif chart_type is ChartType.MESH:
            records = self.get_records(start, end, flow_filter, max_aggregates, unit)
            payload["data"] = build_mesh(records, aggregate) if records else {}
        elif chart_type is ChartType.HOST_TREEMAP:
            records = self.get_records(start, end, flow_filter, max_aggregates, unit)
            payload["data"] = build_host_treemap(records, aggregate)
        return payload
