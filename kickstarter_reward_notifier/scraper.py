"""Project page scraper.

Kickstarter renders the project state server-side into an inline script as
``window.current_project = "{...}"``, with the JSON HTML-escaped inside the
string literal.  This module downloads the description page and returns that
JSON as a plain dict.
"""

from __future__ import annotations

import html
import json
import logging
import re
from typing import Any, Dict, Optional

import requests
from bs4 import BeautifulSoup

from . import config
from .errors import ExtractionError, FetchError, ParseError
from .utils import ServerError, get_http_session, retryable_request

logger = logging.getLogger(__name__)

PROJECT_JSON_PATTERN = re.compile(r'window\.current_project\s*=\s*"(\{.*\})"')


@retryable_request
def _get(session: requests.Session, url: str, **kwargs: Any) -> requests.Response:
    """Thin wrapper around session.get with retry policy from utils.retryable_request."""
    return session.get(url, **kwargs)


def _download(session: requests.Session, url: str, timeout: float) -> str:
    try:
        resp = _get(session, url, timeout=timeout)
    except ServerError as e:
        resp = e.response
    except requests.RequestException as e:
        raise FetchError(f"Could not get the project description: {e}") from e

    if not 200 <= resp.status_code < 300:
        raise FetchError(
            f'Could not get the project description, got HTTP response {resp.status_code}: "{resp.reason}"',
            status_code=resp.status_code,
        )
    return resp.text


def _parse_html(text: str) -> BeautifulSoup:
    try:
        return BeautifulSoup(text, "html.parser")
    except Exception as e:
        raise ParseError(f"Could not parse the project description page: {e}") from e


def extract_project_json(page: str | BeautifulSoup) -> Dict[str, Any]:
    """Return the project JSON embedded in the page's inline scripts.

    Only the first script matching ``PROJECT_JSON_PATTERN`` is considered.
    """
    soup = page if isinstance(page, BeautifulSoup) else _parse_html(page)

    match = None
    for tag in soup.find_all("script"):
        match = PROJECT_JSON_PATTERN.search(tag.get_text())
        if match:
            break
    if match is None:
        raise ExtractionError("No project data found in the page scripts")

    try:
        data = json.loads(html.unescape(match.group(1)))
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Embedded project data is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ExtractionError(f"Embedded project data is a {type(data).__name__}, expected an object")
    return data


def fetch_project_document(
    url: str,
    *,
    session: Optional[requests.Session] = None,
    timeout: Optional[float] = None,
) -> Dict[str, Any]:
    """Download the project description page and return the embedded project JSON."""
    close_session = False
    if session is None:
        session = get_http_session()
        close_session = True
    if timeout is None:
        timeout = config.HTTP_TIMEOUT_SECONDS

    try:
        logger.debug("Fetching %s", url)
        text = _download(session, url, timeout)
    finally:
        if close_session:
            session.close()

    data = extract_project_json(_parse_html(text))
    logger.debug("Extracted project data from %s", url)
    return data


__all__ = ["PROJECT_JSON_PATTERN", "extract_project_json", "fetch_project_document"]
