"""NetFlow service for nfdump operations and CSV parsing."""

import os
import re
import shutil
import subprocess
from datetime import datetime

from nfreport.config import NFDUMP_DATE_FORMAT, NFDUMP_MIN_VERSION, NfdumpConfig
from nfreport.core.app_state import add_app_log
from nfreport.services.netflow.errors import ConfigurationError, QueryFailure
from nfreport.services.netflow.filters import build_filter_expression
from nfreport.services.netflow.models import (
    AggregateKey,
    FlowRecord,
    StatRow,
    TrafficSummary,
    Unit,
    to_number,
)
from nfreport.services.shared.metrics import track_query_failure
from nfreport.services.shared.observability import get_logger, instrument_subprocess

_logger = get_logger("netflow")

_VERSION_RE = re.compile(r"Version:[^\d]+(\d+)\.(\d+)\.(\d+)")

# `-s <key>/bytes -o csv` columns:
# ts,te,td,pr,val,fl,flP,ipkt,ipktP,ibyt,ibytP,ipps,ibps,ibpp
STAT_FLOWS = 5
STAT_FLOWS_PCT = 6
STAT_PACKETS = 7
STAT_PACKETS_PCT = 8
STAT_BYTES = 9
STAT_BYTES_PCT = 10

# `-s record/bytes -o csv` columns
RECORD_BYTES = 12

# `-o csv` without -q: header, one row, blank, "Summary", summary header, summary
SUMMARY_LINE = 5


def format_time(ts):
    """Format a unix timestamp the way nfdump's -t option expects (local time)."""
    return datetime.fromtimestamp(ts).strftime(NFDUMP_DATE_FORMAT)


def format_time_window(start, end):
    """Convert a [start, end] pair of unix timestamps to an nfdump time window."""
    return f"{format_time(start)}-{format_time(end)}"


class Nfdump:
    """Runs the nfdump binary described by an NfdumpConfig."""

    def __init__(self, config=None):
        self.config = config or NfdumpConfig.from_env()

    def build_command(self, flow_filter=None, *args):
        """Return the argv for one query; the filter expression goes last."""
        cmd = [self.config.binary, "-N"]
        if self.config.data_dir:
            cmd.extend(["-R", ".", "-M", self.config.data_dir])
        cmd.extend(str(a) for a in args)
        if flow_filter is not None:
            expression = build_filter_expression(flow_filter)
            if expression:
                cmd.append(expression)
        return cmd

    @instrument_subprocess
    def run(self, cmd):
        """Run an nfdump argv and return its stdout lines.

        Raises QueryFailure on a non-zero exit, a timeout or an OS error.
        """
        try:
            r = subprocess.run(
                cmd, capture_output=True, text=True, timeout=self.config.timeout
            )
        except subprocess.TimeoutExpired as e:
            add_app_log(
                f"nfdump timed out after {self.config.timeout}s: {' '.join(cmd)}",
                "WARN",
            )
            raise QueryFailure(f"nfdump timed out after {self.config.timeout}s") from e
        except OSError as e:
            add_app_log(f"nfdump execution error: {e}", "ERROR")
            raise QueryFailure(f"nfdump could not be executed: {e}") from e

        if r.returncode != 0:
            error_msg = r.stderr.strip() if r.stderr else "Unknown error"
            add_app_log(f"nfdump failed (code {r.returncode}): {error_msg}", "WARN")
            raise QueryFailure(f"nfdump exited with code {r.returncode}: {error_msg}")

        return r.stdout.splitlines() if r.stdout else []

    def check_binary(self):
        """Make sure nfdump is installed and recent enough.

        Returns the version as a tuple, raises ConfigurationError otherwise.
        """
        binary = self.config.binary
        path = shutil.which(binary)
        if path is None or not os.access(path, os.X_OK):
            raise ConfigurationError(
                f"nfdump binary ({binary}) not found!", reason="missing", binary=binary
            )

        too_old = ConfigurationError(
            "Make sure nfdump version {}.{}.{} or newer is installed!".format(*NFDUMP_MIN_VERSION),
            reason="version",
            binary=binary,
        )
        try:
            r = subprocess.run(
                [path, "-V"], capture_output=True, text=True, timeout=5
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise too_old from e
        if r.returncode != 0:
            raise too_old

        for line in (r.stdout or "").splitlines():
            match = _VERSION_RE.search(line)
            if match:
                version = tuple(int(part) for part in match.groups())
                if version < NFDUMP_MIN_VERSION:
                    raise too_old
                return version
        raise too_old


def _data_lines(lines):
    """Drop the header (always the first line) and empty lines."""
    return [line for line in lines[1:] if line.strip()]


def parse_stat_lines(lines, aggregate, unit, duration):
    """Parse `-s <key>/bytes -o csv` output into StatRows sorted by value.

    A row without a byte count aborts the parse and the result is empty.
    """
    aggregate = AggregateKey.parse(aggregate)
    unit = Unit.parse(unit)
    key_idx = aggregate.key_column if aggregate is not AggregateKey.NONE else AggregateKey.SRCIP.key_column

    rows = []
    for line in _data_lines(lines):
        parts = line.split(",")
        if len(parts) <= STAT_BYTES:
            _logger.warning(f"nfdump stat row without a byte count: {line!r}")
            return []
        try:
            raw_bytes = to_number(parts[STAT_BYTES])
            rows.append(
                StatRow(
                    key=parts[key_idx].strip(),
                    value=unit.convert(raw_bytes, duration),
                    bytes=raw_bytes,
                    packets=to_number(parts[STAT_PACKETS]),
                    flows=to_number(parts[STAT_FLOWS]),
                    date=parts[0].strip(),
                    time=parts[1].strip(),
                )
            )
        except ValueError as e:
            raise QueryFailure(f"malformed nfdump stat row {line!r}: {e}") from e

    rows.sort(key=lambda row: row.value)
    return rows


def parse_summary_lines(lines):
    """Read the summary block of `-o csv` output; None when it is missing."""
    if len(lines) <= SUMMARY_LINE:
        return None
    summary = lines[SUMMARY_LINE].split(",")
    if len(summary) < 6:
        return None
    try:
        return TrafficSummary(
            totalflows=to_number(summary[0]),
            totalbytes=to_number(summary[1]),
            totalpackets=to_number(summary[2]),
            avgbps=to_number(summary[3]),
            avgpps=to_number(summary[4]),
            avgbpp=to_number(summary[5]),
        )
    except ValueError:
        _logger.warning(f"Unreadable nfdump summary line: {lines[SUMMARY_LINE]!r}")
        return None


def parse_record_lines(lines, unit):
    """Parse `-s record/bytes -o csv` output into FlowRecords.

    Short rows, and zero-length flows under a rate unit, are skipped.
    """
    unit = Unit.parse(unit)
    records = []
    for line in _data_lines(lines):
        items = line.split(",")
        if len(items) <= RECORD_BYTES:
            continue
        try:
            duration = float(items[2])
            raw_bytes = to_number(items[RECORD_BYTES])
            value = unit.convert(raw_bytes, duration)
        except ValueError:
            _logger.warning(f"Skipping malformed nfdump record: {line!r}")
            continue
        except QueryFailure as e:
            add_app_log(f"Skipping flow record: {e}", "WARN")
            continue

        records.append(
            FlowRecord(
                time_start=items[0].strip(),
                time_end=items[1].strip(),
                duration=duration,
                source_address=items[3].strip(),
                destination_address=items[4].strip(),
                source_port=items[5].strip(),
                destination_port=items[6].strip(),
                protocol=items[7].strip(),
                bytes=raw_bytes,
                value=value,
            )
        )
    return records


def get_stats(nfdump, start, end, flow_filter, aggregate, max_aggregates, unit, hostnames=None):
    """Top ``max_aggregates`` keys by bytes for [start, end].

    Failed queries are logged and return an empty list.
    """
    aggregate = AggregateKey.parse(aggregate)
    sort_key = aggregate.value if aggregate is not AggregateKey.NONE else AggregateKey.SRCIP.value
    cmd = nfdump.build_command(
        flow_filter,
        "-o", "csv", "-q",
        "-n", int(max_aggregates),
        "-s", f"{sort_key}/bytes",
        "-t", format_time_window(start, end),
    )
    try:
        rows = parse_stat_lines(nfdump.run(cmd), aggregate, unit, end - start)
    except QueryFailure as e:
        track_query_failure()
        add_app_log(f"Stat query {format_time_window(start, end)} failed: {e}", "WARN")
        return []

    if hostnames is not None and aggregate.is_ip:
        for row in rows:
            row.key = hostnames.resolve(row.key)
    return rows


def get_summary(nfdump, start, end, flow_filter):
    """Traffic totals for [start, end]; None when nfdump gave no summary."""
    cmd = nfdump.build_command(
        flow_filter,
        "-o", "csv",
        "-n", 1,
        "-s", "srcip/bytes",
        "-t", format_time_window(start, end),
    )
    try:
        return parse_summary_lines(nfdump.run(cmd))
    except QueryFailure as e:
        track_query_failure()
        add_app_log(f"Summary query {format_time_window(start, end)} failed: {e}", "WARN")
        return None


def get_records(nfdump, start, end, flow_filter, max_records, unit, hostnames=None):
    """The ``max_records`` largest flows in [start, end]."""
    cmd = nfdump.build_command(
        flow_filter,
        "-q", "-o", "csv",
        "-n", int(max_records),
        "-s", "record/bytes",
        "-t", format_time_window(start, end),
    )
    try:
        records = parse_record_lines(nfdump.run(cmd), unit)
    except QueryFailure as e:
        track_query_failure()
        add_app_log(f"Record query {format_time_window(start, end)} failed: {e}", "WARN")
        return []

    if hostnames is not None:
        for record in records:
            record.source_address = hostnames.resolve(record.source_address)
            record.destination_address = hostnames.resolve(record.destination_address)
    return records
