"""Exceptions raised by the netflow report services."""


class NetflowError(Exception):
    """Base class for every netflow report error."""


class ConfigurationError(NetflowError):
    """nfdump is missing, not executable, or too old. Fatal to a report.

    ``reason`` is ``"missing"`` or ``"version"``.
    """

    def __init__(self, message, reason="missing", binary=None):
        super().__init__(message)
        self.reason = reason
        self.binary = binary


class QueryFailure(NetflowError):
    """A single nfdump query could not produce data.

    Absorbed at query/bucket granularity into empty or zero results.
    """


class QueryCancelled(NetflowError):
    """The report was cancelled between bucket queries."""
