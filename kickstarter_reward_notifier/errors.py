"""Exceptions raised by the notifier.

Fetch, parse, extraction and malformed data errors are fatal to the process;
notifier errors are logged and the polling loop carries on.
"""

from __future__ import annotations

from typing import Optional


class RewardNotifierError(Exception):
    """Base class for every error raised by this package."""


class FetchError(RewardNotifierError):
    """Raised when the project page cannot be downloaded (network error or non-2xx)."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ParseError(RewardNotifierError):
    """Raised when the downloaded page cannot be parsed as HTML."""


class ExtractionError(RewardNotifierError):
    """Raised when the embedded project JSON is missing or not valid JSON."""


class MalformedDataError(RewardNotifierError):
    """Raised when the project JSON does not have the expected shape."""


class ArgumentError(RewardNotifierError):
    """Raised on invalid command line input."""


class NotifierError(RewardNotifierError):
    """Raised when a notification channel fails to deliver a message."""

    def __init__(self, message: str, *, notifier: str = "") -> None:
        super().__init__(message)
        self.notifier = notifier


__all__ = [
    "RewardNotifierError",
    "FetchError",
    "ParseError",
    "ExtractionError",
    "MalformedDataError",
    "ArgumentError",
    "NotifierError",
]
