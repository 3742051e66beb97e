from __future__ import annotations

import html
import json

import pytest
import requests
from tenacity import wait_none

from kickstarter_reward_notifier import config
from kickstarter_reward_notifier.errors import ExtractionError, FetchError, ParseError
from kickstarter_reward_notifier.scraper import extract_project_json, fetch_project_document


PROJECT = {
    "name": "Tea & \"Biscuits\" <deluxe>",
    "currency_symbol": "€",
    "rewards": [{"id": 1, "limit": 50.0, "remaining": 0.0, "minimum": 10.0}],
}


def _page(*scripts: str) -> str:
    tags = "".join(f"<script>{s}</script>" for s in scripts)
    return f"<!doctype html><html><head>{tags}</head><body><h1>Project</h1></body></html>"


def _assignment(data: dict) -> str:
    return f'window.current_project = "{html.escape(json.dumps(data), quote=True)}";'


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "", reason: str = "OK") -> None:
        self.status_code = status_code
        self.text = text
        self.reason = reason


class FakeSession:
    def __init__(self, *outcomes) -> None:
        self.outcomes = list(outcomes)
        self.calls = []
        self.closed = False

    def get(self, url: str, **kwargs):
        self.calls.append({"url": url, **kwargs})
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self) -> None:
        self.closed = True


def test_extract_project_json_unescapes_embedded_blob() -> None:
    page = _page("var analytics = {};", _assignment(PROJECT))
    data = extract_project_json(page)
    assert data == PROJECT
    assert data["name"] == 'Tea & "Biscuits" <deluxe>'


def test_extract_project_json_uses_first_matching_script() -> None:
    other = dict(PROJECT, name="Second")
    data = extract_project_json(_page(_assignment(PROJECT), _assignment(other)))
    assert data["name"] == PROJECT["name"]


def test_extract_project_json_without_blob_raises() -> None:
    with pytest.raises(ExtractionError):
        extract_project_json(_page("window.other = 1;"))


def test_extract_project_json_with_invalid_json_raises() -> None:
    with pytest.raises(ExtractionError, match="not valid JSON"):
        extract_project_json(_page('window.current_project = "{&quot;name&quot;: }";'))


def test_fetch_project_document_returns_data_and_sets_timeout() -> None:
    session = FakeSession(FakeResponse(text=_page(_assignment(PROJECT))))
    data = fetch_project_document("https://example.com/p/description", session=session, timeout=5)
    assert data["currency_symbol"] == "€"
    assert session.calls == [{"url": "https://example.com/p/description", "timeout": 5}]
    assert session.closed is False


def test_fetch_project_document_non_2xx_is_fetch_error() -> None:
    session = FakeSession(FakeResponse(status_code=404, reason="Not Found"))
    with pytest.raises(FetchError) as exc_info:
        fetch_project_document("https://example.com/p/description", session=session)
    assert exc_info.value.status_code == 404
    assert "404" in str(exc_info.value)


def test_fetch_project_document_network_error_is_fatal_by_default() -> None:
    session = FakeSession(requests.ConnectionError("boom"))
    with pytest.raises(FetchError, match="boom"):
        fetch_project_document("https://example.com/p/description", session=session)
    assert len(session.calls) == 1


def test_fetch_project_document_server_error_without_retry() -> None:
    session = FakeSession(FakeResponse(status_code=503, reason="Service Unavailable"))
    with pytest.raises(FetchError) as exc_info:
        fetch_project_document("https://example.com/p/description", session=session)
    assert exc_info.value.status_code == 503
    assert len(session.calls) == 1


def test_fetch_project_document_retries_transient_errors_when_enabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "FETCH_RETRY_ATTEMPTS", 3)
    monkeypatch.setattr("kickstarter_reward_notifier.utils.RETRY_WAIT", wait_none())
    session = FakeSession(
        requests.Timeout("slow"),
        FakeResponse(status_code=502, reason="Bad Gateway"),
        FakeResponse(text=_page(_assignment(PROJECT))),
    )
    data = fetch_project_document("https://example.com/p/description", session=session)
    assert data["rewards"][0]["id"] == 1
    assert len(session.calls) == 3


def test_fetch_project_document_never_retries_client_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "FETCH_RETRY_ATTEMPTS", 3)
    monkeypatch.setattr("kickstarter_reward_notifier.utils.RETRY_WAIT", wait_none())
    session = FakeSession(FakeResponse(status_code=403, reason="Forbidden"))
    with pytest.raises(FetchError):
        fetch_project_document("https://example.com/p/description", session=session)
    assert len(session.calls) == 1


def test_fetch_project_document_closes_its_own_session(monkeypatch: pytest.MonkeyPatch) -> None:
    session = FakeSession(FakeResponse(text=_page(_assignment(PROJECT))))
    monkeypatch.setattr("kickstarter_reward_notifier.scraper.get_http_session", lambda: session)
    fetch_project_document("https://example.com/p/description")
    assert session.closed is True


def test_fetch_project_document_parser_failure_is_parse_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_parser(*args, **kwargs):
        raise ValueError("unbalanced markup")

    monkeypatch.setattr("kickstarter_reward_notifier.scraper.BeautifulSoup", broken_parser)
    session = FakeSession(FakeResponse(text=_page(_assignment(PROJECT))))
    with pytest.raises(ParseError, match="unbalanced markup"):
        fetch_project_document("https://example.com/p/description", session=session)
