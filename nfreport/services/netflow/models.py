"""Value types shared by the netflow services."""
from dataclasses import asdict, dataclass
from enum import Enum

from nfreport.services.netflow.errors import QueryFailure


class AggregateKey(str, Enum):
    """Dimension that nfdump groups flow volume by."""

    NONE = "none"
    PROTO = "proto"
    SRCIP = "srcip"
    DSTIP = "dstip"
    SRCPORT = "srcport"
    DSTPORT = "dstport"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown aggregate: {value!r}") from None

    @property
    def key_column(self):
        """Column of `-s <key>/bytes -o csv` output holding the key."""
        return _KEY_COLUMNS[self]

    @property
    def filter_field(self):
        """FlowFilter field that restricts a query to a set of keys."""
        return _FILTER_FIELDS[self]

    @property
    def label(self):
        return _AGGREGATE_LABELS[self]

    @property
    def is_ip(self):
        return self in (AggregateKey.SRCIP, AggregateKey.DSTIP)


_KEY_COLUMNS = {
    AggregateKey.NONE: None,
    AggregateKey.PROTO: 3,
    AggregateKey.SRCIP: 4,
    AggregateKey.DSTIP: 4,
    AggregateKey.SRCPORT: 4,
    AggregateKey.DSTPORT: 4,
}

_FILTER_FIELDS = {
    AggregateKey.NONE: None,
    AggregateKey.PROTO: "proto",
    AggregateKey.SRCIP: "ip_src",
    AggregateKey.DSTIP: "ip_dst",
    AggregateKey.SRCPORT: "src_port",
    AggregateKey.DSTPORT: "dst_port",
}

_AGGREGATE_LABELS = {
    AggregateKey.NONE: "",
    AggregateKey.PROTO: "Protocol",
    AggregateKey.SRCIP: "Src IP",
    AggregateKey.DSTIP: "Dst IP",
    AggregateKey.SRCPORT: "Src port",
    AggregateKey.DSTPORT: "Dst port",
}


class Unit(str, Enum):
    """Scaling applied to raw byte counts."""

    BYTES = "bytes"
    BYTES_PER_SECOND = "bytespersecond"
    KILOBYTES = "kilobytes"
    KILOBYTES_PER_SECOND = "kilobytespersecond"
    MEGABYTES = "megabytes"
    MEGABYTES_PER_SECOND = "megabytespersecond"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown unit: {value!r}") from None

    @property
    def divisor(self):
        return _UNIT_DIVISORS[self]

    @property
    def is_rate(self):
        return self in (
            Unit.BYTES_PER_SECOND,
            Unit.KILOBYTES_PER_SECOND,
            Unit.MEGABYTES_PER_SECOND,
        )

    @property
    def label(self):
        return _UNIT_LABELS[self]

    def convert(self, raw, duration=None):
        """Scale a raw byte count; rate units divide by ``duration`` seconds."""
        value = raw / self.divisor if self.divisor != 1 else raw
        if not self.is_rate:
            return value
        if not duration or duration <= 0:
            raise QueryFailure(f"cannot express {raw} bytes as {self.value} over a {duration}s window")
        return value / duration


_UNIT_DIVISORS = {
    Unit.BYTES: 1,
    Unit.BYTES_PER_SECOND: 1,
    Unit.KILOBYTES: 1024,
    Unit.KILOBYTES_PER_SECOND: 1024,
    Unit.MEGABYTES: 1048576,
    Unit.MEGABYTES_PER_SECOND: 1048576,
}

_UNIT_LABELS = {
    Unit.BYTES: "Bytes",
    Unit.BYTES_PER_SECOND: "B/s",
    Unit.KILOBYTES: "kB",
    Unit.KILOBYTES_PER_SECOND: "kB/s",
    Unit.MEGABYTES: "MB",
    Unit.MEGABYTES_PER_SECOND: "MB/s",
}


@dataclass
class StatRow:
    """One row of `nfdump -s <key>/bytes` output."""

    key: str
    value: float
    bytes: int
    packets: int = 0
    flows: int = 0
    date: str = ""
    time: str = ""

    def to_dict(self):
        return asdict(self)


@dataclass
class FlowRecord:
    """One flow of `nfdump -s record/bytes` output."""

    time_start: str
    time_end: str
    duration: float
    source_address: str
    destination_address: str
    source_port: str
    destination_port: str
    protocol: str
    bytes: int
    value: float

    def to_dict(self):
        return asdict(self)


@dataclass
class TrafficSummary:
    """The summary block nfdump prints after a stat query."""

    totalflows: int
    totalbytes: int
    totalpackets: int
    avgbps: float
    avgpps: float
    avgbpp: float

    def to_dict(self):
        return asdict(self)


def to_number(value: str):
    """Parse an nfdump numeric field, keeping integers as int."""
    text = value.strip()
    try:
        return int(text)
    except ValueError:
        return float(text)
