"""Exception taxonomy for notelens.

client errors (bad filters, unknown metrics, missing entities) carry a 4xx
hint so an http layer can map them without a lookup table. internal errors
carry 500 and a deliberately generic message for the caller.
"""


class NotelensError(Exception):
    """Base class for every error raised by notelens."""

    http_status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidFilter(NotelensError, ValueError):
    """Raw query input has a bad shape, range or enum value."""

    http_status = 400

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or [message]


class InvalidMetric(NotelensError, ValueError):
    """Requested ranking metric is not on the allow-list."""

    http_status = 400

    def __init__(self, metric: object, allowed: list[str]) -> None:
        super().__init__(f"Invalid metric. Valid metrics are: {', '.join(allowed)}")
        self.metric = metric
        self.allowed = allowed


class NotFound(NotelensError, LookupError):
    """A single-entity lookup matched zero rows."""

    http_status = 404


class NormalizationFailure(NotelensError):
    """A required numeric column could not be parsed.

    this means the warehouse column types don't match what we expect - it's
    never the caller's fault and retrying won't help.
    """

    def __init__(self, field: str, value: object) -> None:
        super().__init__(f"Cannot normalize required field '{field}' from {value!r}")
        self.field = field
        self.value = value


class QueryExecutionFailure(NotelensError):
    """The query executor failed to run a statement."""

    def __init__(self, message: str, sql: str | None = None) -> None:
        super().__init__(message)
        self.sql = sql


class InternalError(NotelensError):
    """Generic internal error surfaced to callers.

    the original failure is kept as __cause__ for logs, the message stays bland.
    """

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)
