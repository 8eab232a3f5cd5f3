"""Top talkers / listeners / ports for a single time window."""
from enum import Enum

from nfreport.core.app_state import add_app_log
from nfreport.services.netflow.errors import QueryFailure
from nfreport.services.netflow.filters import FlowFilter
from nfreport.services.netflow.models import to_number
from nfreport.services.netflow.netflow import (
    STAT_BYTES,
    STAT_BYTES_PCT,
    STAT_FLOWS,
    STAT_FLOWS_PCT,
    STAT_PACKETS,
    STAT_PACKETS_PCT,
    format_time_window,
)
from nfreport.services.shared.metrics import track_query_failure
from nfreport.services.shared.observability import instrument_service


class TopMode(str, Enum):
    TALKERS = "talkers"
    LISTENERS = "listeners"
    TCP = "tcp"
    UDP = "udp"


class TopOrder(str, Enum):
    BYTES = "bytes"
    PKTS = "pkts"
    FLOWS = "flows"

    @property
    def metric(self):
        return {TopOrder.BYTES: "bytes", TopOrder.PKTS: "packets", TopOrder.FLOWS: "flows"}[self]


def _filter_and_sort(mode, filter_value):
    """Return the (FlowFilter, nfdump sort field) pair for a ranking mode."""
    if mode is TopMode.LISTENERS:
        return FlowFilter(ip_src=filter_value), "dstip"
    if mode is TopMode.TALKERS:
        return FlowFilter(ip_dst=filter_value), "srcip"
    # tcp / udp
    if filter_value:
        advanced = (
            f"((dst port {filter_value}) or (src port {filter_value})) "
            f"and (proto {mode.value})"
        )
        # Show addresses when a port is given
        return FlowFilter(proto=mode.value, advanced_filter=advanced), "ip"
    return FlowFilter(proto=mode.value), "port"


@instrument_service("top_summary")
def top_summary(nfdump, max_results, mode, start, end, filter_value="", order="bytes"):
    """Rank hosts or ports by volume over [start, end].

    Returns a list of dicts (host, bytes, packets, flows and their
    percentages) in nfdump's order. When nfdump repeats a key the last row
    wins. Unknown modes give an empty list.
    """
    try:
        mode = TopMode(str(mode).lower())
    except ValueError:
        return []
    try:
        order = TopOrder(str(order).lower())
    except ValueError:
        order = TopOrder.BYTES

    flow_filter, sort = _filter_and_sort(mode, (filter_value or "").strip())
    cmd = nfdump.build_command(
        flow_filter,
        "-q", "-o", "csv",
        "-n", int(max_results),
        "-s", f"{sort}/{order.metric}",
        "-t", format_time_window(start, end),
    )
    try:
        lines = nfdump.run(cmd)
    except QueryFailure as e:
        track_query_failure()
        add_app_log(f"Top {mode.value} query failed: {e}", "WARN")
        return []

    top_info = {}
    for line in lines[1:]:
        if not line.strip():
            continue
        data = line.split(",")
        if len(data) <= STAT_BYTES_PCT:
            continue
        host = data[4].strip()
        try:
            top_info[host] = {
                "host": host,
                "bytes": to_number(data[STAT_BYTES]),
                "packets": to_number(data[STAT_PACKETS]),
                "flows": to_number(data[STAT_FLOWS]),
                "pct_bytes": to_number(data[STAT_BYTES_PCT]),
                "pct_packets": to_number(data[STAT_PACKETS_PCT]),
                "pct_flows": to_number(data[STAT_FLOWS_PCT]),
            }
        except ValueError:
            continue
    return list(top_info.values())
