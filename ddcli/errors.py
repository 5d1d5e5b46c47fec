"""Exceptions raised by ddcli."""

from typing import List, Optional


class DDCliError(Exception):
    """Base class for every error ddcli reports to the operator."""


class InvalidDuration(DDCliError, ValueError):
    """A relative duration such as ``15m`` could not be parsed."""


class UnparseableTime(DDCliError, ValueError):
    """A time bound was neither relative nor a supported absolute form."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(
            f"cannot parse time {value!r}: use a relative duration "
            f"(e.g. 15m, 1h, 7d) or ISO 8601 timestamp"
        )


class FetchFailure(DDCliError):
    """A call to the backend failed (transport, HTTP status or decoding)."""


class APIError(FetchFailure):
    """Error response returned by the Datadog API."""

    def __init__(self, status_code: int, errors: Optional[List[str]] = None):
        self.status_code = status_code
        self.errors = errors or []
        if self.errors:
            message = f"datadog api error ({status_code}): {self.errors[0]}"
        else:
            message = f"datadog api error ({status_code})"
        super().__init__(message)


class RenderFailure(DDCliError):
    """Writing rendered output failed."""


class ConfigError(DDCliError):
    """Credentials are missing or the config file is unusable."""


class UnknownFormat(DDCliError, ValueError):
    """The requested output format does not exist."""


class InvalidCompute(DDCliError, ValueError):
    """An aggregation expression such as ``avg:@duration`` is malformed."""


class InvalidTimeBound(DDCliError, ValueError):
    """A ``--from`` / ``--to`` value was rejected; names the flag."""

    def __init__(self, flag: str, cause: Exception):
        self.flag = flag
        self.cause = cause
        super().__init__(f"parsing {flag}: {cause}")
