"""Error taxonomy for the fetch, merge and cache pipeline."""
from __future__ import annotations

from typing import Optional


class FixtureCoreError(Exception):
    """Base for every error raised by the fixture core."""


class InvalidDateFormat(FixtureCoreError, ValueError):
    """Caller supplied an empty or malformed calendar date. Never retried."""

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"Invalid date format: {value!r}. Use YYYY-MM-DD.")


class UpstreamError(FixtureCoreError):
    """A provider call failed."""

    def __init__(self, message: str, *, endpoint: str = "", status: Optional[int] = None) -> None:
        self.endpoint = endpoint
        self.status = status
        super().__init__(message)


class UpstreamRateLimited(UpstreamError):
    """Provider kept answering 429 after every backoff attempt."""

    def __init__(self, message: str, *, endpoint: str = "", attempts: int = 0) -> None:
        self.attempts = attempts
        super().__init__(message, endpoint=endpoint, status=429)


class UpstreamUnavailable(UpstreamError):
    """Network error, timeout or non-retryable HTTP status."""


class PartialWindowFailure(FixtureCoreError):
    """One date window of a multi-window fetch failed; the rest continue."""

    def __init__(self, window: str, cause: BaseException) -> None:
        self.window = window
        self.cause = cause
        super().__init__(f"window {window} failed: {cause}")


class InvalidTimezone(FixtureCoreError, ValueError):
    """Caller supplied an unknown IANA timezone name."""

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"Unknown timezone: {value!r}.")
