"""Helper utilities.

This module centralises common helper functions such as creating a
configured HTTP session and applying retry policies to network calls.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable

import requests
from requests import Response
from tenacity import (Retrying, after_log, retry_if_exception_type,
                      stop_after_attempt, wait_exponential)

from . import config


logger = logging.getLogger(__name__)

# Back-off between attempts; tests swap it for tenacity.wait_none().
RETRY_WAIT = wait_exponential(multiplier=1, min=1, max=10)


def get_http_session() -> requests.Session:
    """Return a new HTTP session with sensible defaults.

    The session sets a realistic User-Agent header so the project page is
    served the same markup a browser gets.  Caller is responsible for
    closing the session.
    """
    session = requests.Session()
    session.headers.update(
        {
            "User-Agent": config.USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }
    )
    return session


class ServerError(Exception):
    """Raised when the server answers with a 5xx status, to trigger a retry."""

    def __init__(self, response: Response) -> None:
        super().__init__(f"Server returned status {response.status_code}")
        self.response = response


def retryable_request(method: Callable[..., Response]) -> Callable[..., Response]:
    """Decorator applying the configured retry policy to an HTTP call.

    The decorated function must accept a `requests.Session` as its first
    argument, followed by URL and optional kwargs, and return a
    `requests.Response`.  Network errors, timeouts and 5xx responses are
    retried up to ``config.FETCH_RETRY_ATTEMPTS`` attempts in total with
    exponential back-off; other statuses are returned to the caller as is.
    With the default of a single attempt the first failure propagates.
    """

    @functools.wraps(method)
    def wrapper(session: requests.Session, url: str, **kwargs: Any) -> Response:
        retrying = Retrying(
            reraise=True,
            stop=stop_after_attempt(config.FETCH_RETRY_ATTEMPTS),
            wait=RETRY_WAIT,
            retry=retry_if_exception_type(
                (requests.ConnectionError, requests.Timeout, ServerError)
            ),
            after=after_log(logger, logging.WARNING),
        )

        @functools.wraps(method)
        def attempt() -> Response:
            response = method(session, url, **kwargs)
            if response.status_code >= 500:
                raise ServerError(response)
            return response

        return retrying(attempt)

    return wrapper


__all__ = ["get_http_session", "retryable_request", "ServerError", "RETRY_WAIT"]
