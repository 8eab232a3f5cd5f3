"""Translate a structured netflow filter into an nfdump filter expression."""
from dataclasses import dataclass, fields, replace
import re

_UNSAFE_CHARS = re.compile(r'["\r\n]')


@dataclass(frozen=True)
class FlowFilter:
    """Structured nfdump filter.

    Comma separated values inside a field are ORed, distinct fields are ANDed.
    A non-empty ``advanced_filter`` replaces every other field.
    """

    ip_dst: str = ""
    ip_src: str = ""
    dst_port: str = ""
    src_port: str = ""
    proto: str = ""
    advanced_filter: str = ""
    router_ip: str = ""

    @classmethod
    def from_mapping(cls, data):
        """Build a filter from a dict-like (request args, JSON body); unknown keys are ignored."""
        if not data:
            return cls()
        values = {}
        for f in fields(cls):
            value = data.get(f.name)
            if value is not None:
                values[f.name] = str(value)
        return cls(**values)

    def to_dict(self):
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _items(value):
    return [item.strip() for item in _UNSAFE_CHARS.sub("", value).split(",") if item.strip()]


def _address_clause(direction, address):
    kind = "net" if "/" in address else "ip"
    return f"{direction} {kind} {address}"


def _group(clauses):
    return "(" + " or ".join(clauses) + ")"


def build_filter_expression(flow_filter):
    """Return the nfdump filter expression for ``flow_filter``, unquoted.

    An empty string means no restriction.
    """
    advanced = _UNSAFE_CHARS.sub("", flow_filter.advanced_filter or "")
    if advanced.strip():
        return f"({advanced})"

    groups = []
    router = _UNSAFE_CHARS.sub("", flow_filter.router_ip or "").strip()
    if router:
        groups.append(f"(router ip {router})")

    dst = _items(flow_filter.ip_dst or "")
    if dst:
        groups.append(_group([_address_clause("dst", ip) for ip in dst]))

    src = _items(flow_filter.ip_src or "")
    if src:
        groups.append(_group([_address_clause("src", ip) for ip in src]))

    dst_ports = _items(flow_filter.dst_port or "")
    if dst_ports:
        groups.append(_group([f"dst port {port}" for port in dst_ports]))

    src_ports = _items(flow_filter.src_port or "")
    if src_ports:
        groups.append(_group([f"src port {port}" for port in src_ports]))

    protos = _items(flow_filter.proto or "")
    if protos:
        groups.append(_group([f"proto {proto}" for proto in protos]))

    return " and ".join(groups)


def build_filter_args(flow_filter):
    """Return the filter as a shell argument: the expression quoted once, or ''."""
    expression = build_filter_expression(flow_filter)
    return f'"{expression}"' if expression else ""


def restrict_filter(flow_filter, aggregate, keys):
    """Copy ``flow_filter`` with the aggregate's field replaced by ``keys``."""
    field_name = aggregate.filter_field
    if field_name is None:
        return flow_filter
    return replace(flow_filter, **{field_name: ",".join(str(k) for k in keys)})
