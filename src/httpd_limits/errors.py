"""Exceptions raised by httpd-limits."""


class HttpdLimitsError(Exception):
    """Base class for every fatal httpd-limits error."""


class ResourceUnavailable(HttpdLimitsError):
    """A required system source (memory stats, binary, config file) is unreadable."""


class NoMatchingProcess(HttpdLimitsError):
    """No live process runs the target executable."""


class UnsupportedVersion(HttpdLimitsError):
    """The httpd version has no default profile."""


class UnsupportedConcurrencyModel(HttpdLimitsError):
    """The httpd MPM has no default profile."""


class InvalidConfiguration(HttpdLimitsError):
    """A resolved tunable has a value it may not have."""

    def __init__(self, tunable: str, value: int, source: str = "") -> None:
        self.tunable = tunable
        self.value = value
        where = f" in {source}" if source else ""
        super().__init__(f"{tunable} value is {value}{where} (must be > 0)")


class HistoryStoreError(HttpdLimitsError):
    """The history database could not be opened, read or written."""


class InvalidOption(HttpdLimitsError):
    """A runtime option is out of range."""
