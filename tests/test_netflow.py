import subprocess
import unittest
from unittest.mock import MagicMock, patch

from nfreport.config import NfdumpConfig
from nfreport.core.app_state import clear_app_logs, get_app_logs
from nfreport.services.netflow.errors import ConfigurationError, QueryFailure
from nfreport.services.netflow.filters import FlowFilter
from nfreport.services.netflow.models import AggregateKey, Unit
from nfreport.services.netflow.netflow import (
    Nfdump,
    format_time_window,
    get_records,
    get_stats,
    get_summary,
    parse_record_lines,
    parse_stat_lines,
    parse_summary_lines,
)

from nfdump_samples import (
    record_output,
    record_row,
    stat_output,
    stat_row,
    summary_output,
)


def completed(stdout="", returncode=0, stderr=""):
    m = MagicMock()
    m.returncode = returncode
    m.stdout = stdout
    m.stderr = stderr
    return m


class TestCommand(unittest.TestCase):
    def setUp(self):
        self.nfdump = Nfdump(NfdumpConfig(binary="/usr/bin/nfdump", data_dir="/var/cache/nfdump", timeout=7))

    def test_command_layout_filter_last(self):
        cmd = self.nfdump.build_command(FlowFilter(ip_dst="10.0.0.5"), "-o", "csv", "-n", 10)
        self.assertEqual(
            cmd,
            ["/usr/bin/nfdump", "-N", "-R", ".", "-M", "/var/cache/nfdump",
             "-o", "csv", "-n", "10", "(dst ip 10.0.0.5)"],
        )

    def test_no_data_dir_and_no_filter(self):
        nfdump = Nfdump(NfdumpConfig(binary="nfdump", data_dir=""))
        self.assertEqual(nfdump.build_command(FlowFilter(), "-q"), ["nfdump", "-N", "-q"])

    def test_time_window_format(self):
        window = format_time_window(0, 3600)
        self.assertRegex(window, r"^\d{4}/\d{2}/\d{2}\.\d{2}:\d{2}:\d{2}-\d{4}/\d{2}/\d{2}\.\d{2}:\d{2}:\d{2}$")

    @patch('nfreport.services.netflow.netflow.subprocess.run')
    def test_run_returns_lines_and_uses_timeout(self, mock_run):
        mock_run.return_value = completed("a\nb\n")
        self.assertEqual(self.nfdump.run(["nfdump"]), ["a", "b"])
        self.assertEqual(mock_run.call_args.kwargs["timeout"], 7)

    @patch('nfreport.services.netflow.netflow.subprocess.run')
    def test_run_nonzero_exit_is_query_failure(self, mock_run):
        clear_app_logs()
        mock_run.return_value = completed(returncode=255, stderr="bad filter")
        with self.assertRaises(QueryFailure):
            self.nfdump.run(["nfdump"])
        self.assertTrue(any("bad filter" in line for line in get_app_logs()))

    @patch('nfreport.services.netflow.netflow.subprocess.run')
    def test_run_timeout_is_query_failure(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="nfdump", timeout=7)
        with self.assertRaises(QueryFailure):
            self.nfdump.run(["nfdump"])

    @patch('nfreport.services.netflow.netflow.subprocess.run')
    def test_run_missing_binary_is_query_failure(self, mock_run):
        mock_run.side_effect = FileNotFoundError("nfdump")
        with self.assertRaises(QueryFailure):
            self.nfdump.run(["nfdump"])


class TestCheckBinary(unittest.TestCase):
    def setUp(self):
        self.nfdump = Nfdump(NfdumpConfig(binary="nfdump"))

    @patch('nfreport.services.netflow.netflow.shutil.which', return_value=None)
    def test_missing_binary(self, _):
        with self.assertRaises(ConfigurationError) as ctx:
            self.nfdump.check_binary()
        self.assertEqual(ctx.exception.reason, "missing")
        self.assertIn("not found", str(ctx.exception))

    def _check(self, stdout, returncode=0):
        with patch('nfreport.services.netflow.netflow.shutil.which', return_value="/usr/bin/nfdump"), \
                patch('nfreport.services.netflow.netflow.os.access', return_value=True), \
                patch('nfreport.services.netflow.netflow.subprocess.run',
                      return_value=completed(stdout, returncode)):
            return self.nfdump.check_binary()

    def test_supported_versions(self):
        self.assertEqual(self._check("nfdump: Version: 1.6.8\n"), (1, 6, 8))
        self.assertEqual(self._check("nfdump: Version: 1.7.1-a3b2c1d Options: ZSTD\n"), (1, 7, 1))
        self.assertEqual(self._check("nfdump: Version: 1.6.23\n"), (1, 6, 23))

    def test_too_old(self):
        for output in ("nfdump: Version: 1.6.7\n", "nfdump: Version: 1.5.9\n"):
            with self.assertRaises(ConfigurationError) as ctx:
                self._check(output)
            self.assertEqual(ctx.exception.reason, "version")

    def test_undetermined_version(self):
        with self.assertRaises(ConfigurationError) as ctx:
            self._check("no version here\n")
        self.assertEqual(ctx.exception.reason, "version")
        with self.assertRaises(ConfigurationError):
            self._check("nfdump: Version: 1.7.1\n", returncode=1)


class TestParsing(unittest.TestCase):
    def test_header_is_always_discarded(self):
        lines = stat_output(stat_row("10.0.0.1", 100)).splitlines()
        self.assertEqual(len(parse_stat_lines(lines, "srcip", "bytes", 60)), 1)
        # A data row in first position is dropped as well
        lines = [stat_row("10.0.0.9", 5), stat_row("10.0.0.1", 100)]
        rows = parse_stat_lines(lines, "srcip", "bytes", 60)
        self.assertEqual([r.key for r in rows], ["10.0.0.1"])
        self.assertEqual(parse_stat_lines(["", stat_row("10.0.0.1", 1)], "srcip", "bytes", 60)[0].key, "10.0.0.1")

    def test_key_columns(self):
        lines = stat_output(stat_row("0", 100, proto="TCP")).splitlines()
        self.assertEqual(parse_stat_lines(lines, AggregateKey.PROTO, Unit.BYTES, 60)[0].key, "TCP")
        self.assertEqual(parse_stat_lines(lines, AggregateKey.DSTPORT, Unit.BYTES, 60)[0].key, "0")

    def test_fields_and_sorting(self):
        lines = stat_output(
            stat_row("10.0.0.1", 5000, packets=40, flows=4),
            stat_row("10.0.0.2", 1000),
            stat_row("10.0.0.3", 3000),
        ).splitlines()
        rows = parse_stat_lines(lines, "srcip", "bytes", 60)
        self.assertEqual([r.value for r in rows], [1000, 3000, 5000])
        self.assertEqual(rows[-1].packets, 40)
        self.assertEqual(rows[-1].flows, 4)
        self.assertEqual(rows[-1].date, "2024-01-01 10:00:00.000")

    def test_missing_byte_column_aborts(self):
        lines = [stat_output().strip(), stat_row("10.0.0.1", 1), "2024,2024,1,any,10.0.0.2,1"]
        self.assertEqual(parse_stat_lines(lines, "srcip", "bytes", 60), [])

    def test_unit_conversion(self):
        lines = stat_output(stat_row("10.0.0.1", 1048576)).splitlines()
        self.assertEqual(parse_stat_lines(lines, "srcip", "megabytes", 60)[0].value, 1.0)
        self.assertEqual(parse_stat_lines(lines, "srcip", "kilobytes", 60)[0].value, 1024.0)
        self.assertAlmostEqual(parse_stat_lines(lines, "srcip", "megabytespersecond", 60)[0].value, 1.0 / 60)
        self.assertAlmostEqual(parse_stat_lines(lines, "srcip", "bytespersecond", 4)[0].value, 262144.0)

    def test_rate_over_zero_window_fails(self):
        lines = stat_output(stat_row("10.0.0.1", 1048576)).splitlines()
        with self.assertRaises(QueryFailure):
            parse_stat_lines(lines, "srcip", "megabytespersecond", 0)

    def test_summary(self):
        summary = parse_summary_lines(summary_output(7200).splitlines())
        self.assertEqual(summary.totalbytes, 7200)
        self.assertEqual(summary.totalflows, 10)
        self.assertEqual(summary.totalpackets, 100)

    def test_summary_missing(self):
        self.assertIsNone(parse_summary_lines(stat_output(stat_row("10.0.0.1", 1)).splitlines()))
        lines = summary_output(1).splitlines()
        lines[5] = "1,2,3"
        self.assertIsNone(parse_summary_lines(lines))

    def test_records(self):
        lines = record_output(
            record_row("10.0.0.1", "10.0.0.2", "1234", "80", 2048),
            record_row("10.0.0.3", "10.0.0.4", "53", "53", 100, duration="0.000"),
            "short,row",
        ).splitlines()
        records = parse_record_lines(lines, "bytes")
        self.assertEqual(len(records), 2)
        self.assertEqual(records[0].source_address, "10.0.0.1")
        self.assertEqual(records[0].destination_port, "80")
        self.assertEqual(records[0].protocol, "TCP")
        self.assertEqual(records[0].duration, 2.0)
        self.assertEqual(records[0].value, 2048)

    def test_records_rate_skips_zero_duration(self):
        lines = record_output(
            record_row("10.0.0.1", "10.0.0.2", "1234", "80", 2048),
            record_row("10.0.0.3", "10.0.0.4", "53", "53", 100, duration="0.000"),
        ).splitlines()
        records = parse_record_lines(lines, "kilobytespersecond")
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].value, 1.0)


class TestQueries(unittest.TestCase):
    def setUp(self):
        self.nfdump = Nfdump(NfdumpConfig(binary="nfdump", data_dir="/data"))

    @patch('nfreport.services.netflow.netflow.subprocess.run')
    def test_get_stats_command(self, mock_run):
        mock_run.return_value = completed(stat_output(stat_row("10.0.0.1", 10)))
        rows = get_stats(self.nfdump, 0, 3600, FlowFilter(proto="tcp"), "dstip", 5, "bytes")
        self.assertEqual(rows[0].key, "10.0.0.1")
        cmd = mock_run.call_args.args[0]
        self.assertEqual(cmd[-1], "(proto tcp)")
        self.assertIn("-q", cmd)
        self.assertEqual(cmd[cmd.index("-n") + 1], "5")
        self.assertEqual(cmd[cmd.index("-s") + 1], "dstip/bytes")
        self.assertEqual(cmd[cmd.index("-o") + 1], "csv")
        self.assertEqual(cmd[cmd.index("-t") + 1], format_time_window(0, 3600))

    @patch('nfreport.services.netflow.netflow.subprocess.run')
    def test_get_stats_failure_is_empty(self, mock_run):
        mock_run.return_value = completed(returncode=1, stderr="boom")
        self.assertEqual(get_stats(self.nfdump, 0, 60, FlowFilter(), "srcip", 5, "bytes"), [])

    @patch('nfreport.services.netflow.netflow.subprocess.run')
    def test_get_stats_resolves_ip_keys(self, mock_run):
        mock_run.return_value = completed(stat_output(stat_row("10.0.0.1", 10)))
        hostnames = MagicMock()
        hostnames.resolve.side_effect = lambda ip: f"host-{ip}"
        rows = get_stats(self.nfdump, 0, 60, FlowFilter(), "srcip", 5, "bytes", hostnames=hostnames)
        self.assertEqual(rows[0].key, "host-10.0.0.1")
        rows = get_stats(self.nfdump, 0, 60, FlowFilter(), "dstport", 5, "bytes", hostnames=hostnames)
        self.assertEqual(rows[0].key, "10.0.0.1")

    @patch('nfreport.services.netflow.netflow.subprocess.run')
    def test_get_summary(self, mock_run):
        mock_run.return_value = completed(summary_output(4096))
        self.assertEqual(get_summary(self.nfdump, 0, 60, FlowFilter()).totalbytes, 4096)
        cmd = mock_run.call_args.args[0]
        self.assertNotIn("-q", cmd)
        self.assertEqual(cmd[cmd.index("-s") + 1], "srcip/bytes")
        self.assertEqual(cmd[cmd.index("-n") + 1], "1")

    @patch('nfreport.services.netflow.netflow.subprocess.run')
    def test_get_summary_timeout_is_none(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="nfdump", timeout=1)
        self.assertIsNone(get_summary(self.nfdump, 0, 60, FlowFilter()))

    @patch('nfreport.services.netflow.netflow.subprocess.run')
    def test_get_records_resolves_both_addresses(self, mock_run):
        mock_run.return_value = completed(record_output(record_row("10.0.0.1", "10.0.0.2", "1", "2", 10)))
        hostnames = MagicMock()
        hostnames.resolve.side_effect = lambda ip: ip.replace("10.0.0.", "h")
        records = get_records(self.nfdump, 0, 60, FlowFilter(), 10, "bytes", hostnames=hostnames)
        self.assertEqual((records[0].source_address, records[0].destination_address), ("h1", "h2"))
        cmd = mock_run.call_args.args[0]
        self.assertEqual(cmd[cmd.index("-s") + 1], "record/bytes")


if __name__ == '__main__':
    unittest.main()
