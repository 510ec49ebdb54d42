"""Custom exception hierarchy for ratesync."""

from typing import Any


class RateSyncError(Exception):
    """Base exception for all ratesync errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(RateSyncError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field: str - the config field that failed validation
        value: Any - the invalid value (redacted for secrets)
    """


class NetworkError(RateSyncError):
    """The remote rate source could not be reached or answered badly.

    Policy: transient. The orchestrator degrades to last-known data when
    any cached or stored data exists; callers may retry explicitly.

    Context keys:
        url: str - the URL that was being fetched
        status_code: int | None - HTTP status, when a response arrived
        timeout: float | None - the bound that was exceeded
    """


class ValidationError(RateSyncError):
    """Malformed rate data (bad code, non-positive rate, duplicate date).

    Policy: reject the offending record or range. Never written to the
    store, so existing contents stay intact.

    Context keys:
        field: str - "currency", "rate", "date", ...
        value: Any - the offending value
    """


class StorageError(RateSyncError):
    """Durable-store operation failed.

    Policy: raise immediately. Fatal to the current call, never to the
    process; the in-memory cache is left untouched.

    Context keys:
        operation: str - "insert", "query", "migrate", etc.
        table: str - the table involved
    """


class DataUnavailableError(RateSyncError):
    """No data at any tier (cache, store, network).

    Policy: the only error that should reach an end user as
    "nothing to show".

    Context keys:
        shape: str - "current", "historical" or "trend"
        reason: str - why the network tier could not help
    """


class InsufficientDataError(RateSyncError):
    """Not enough stored history to derive trends.

    Policy: expected and recoverable. Callers treat it as
    "trends not yet available".

    Context keys:
        required_days: int - consecutive days needed
        window_end: str - ISO date the run must reach
    """
