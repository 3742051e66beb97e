"""Notification channels.

Every channel declares the command line flags it needs; the CLI merges them
into its parser and fills ``NotifierFlag.value`` after parsing.  A channel is
used only once it is configured.  Only Telegram is available for now.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import requests

from . import config
from .errors import NotifierError
from .utils import ServerError, get_http_session, retryable_request

logger = logging.getLogger(__name__)

TEST_MESSAGE = "This is a test notification"

FLAG_TYPES = ("string", "int", "bool")


@dataclass
class NotifierFlag:
    long: str                 # e.g. "tg-token", required
    help: str                 # required
    value_type: str = "string"
    short: str = ""
    default: Any = None
    value: Any = None

    @property
    def dest(self) -> str:
        return self.long.replace("-", "_")


class Notifier(ABC):
    """Base class of notification channels."""

    name = ""

    def __init__(self) -> None:
        self.flags: Dict[str, NotifierFlag] = {}

    def flag_value(self, key: str) -> Any:
        flag = self.flags[key]
        return flag.default if flag.value is None else flag.value

    @abstractmethod
    def is_configured(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def send(self, message: str) -> None:
        """Deliver ``message``; raise NotifierError on failure."""
        raise NotImplementedError


@retryable_request
def _post(session: requests.Session, url: str, **kwargs) -> requests.Response:
    return session.post(url, **kwargs)


class TelegramNotifier(Notifier):
    name = "telegram"
    api_url = "https://api.telegram.org"

    def __init__(self, session: Optional[requests.Session] = None, timeout: Optional[float] = None) -> None:
        super().__init__()
        self.session = session
        self.timeout = timeout
        self.flags = {
            "token": NotifierFlag(
                long="tg-token",
                help="Telegram notifier: Bot authentication token",
                value_type="string",
                default=config.TELEGRAM_BOT_TOKEN,
            ),
            "user_id": NotifierFlag(
                long="tg-user-id",
                help="Telegram notifier: User ID of the user to notify",
                value_type="int",
                default=config.TELEGRAM_USER_ID,
            ),
        }

    @property
    def token(self) -> str:
        return self.flag_value("token") or ""

    @property
    def user_id(self) -> int:
        return self.flag_value("user_id") or 0

    def is_configured(self) -> bool:
        # Both the token and the user ID must be defined
        return bool(self.token) and self.user_id != 0

    def send(self, message: str) -> None:
        if not self.is_configured():
            return

        close_session = False
        session = self.session
        if session is None:
            session = get_http_session()
            close_session = True

        logger.info("Sending a Telegram notification to user %d", self.user_id)
        url = f"{self.api_url}/bot{self.token}/sendMessage"
        timeout = self.timeout if self.timeout is not None else config.HTTP_TIMEOUT_SECONDS
        try:
            resp = _post(session, url, data={"chat_id": self.user_id, "text": message}, timeout=timeout)
        except (requests.RequestException, ServerError) as e:
            # the exception text may contain the bot URL, token included
            raise NotifierError(
                f"Failed to send a Telegram notification to user {self.user_id}: {type(e).__name__}",
                notifier=self.name,
            ) from e
        finally:
            if close_session:
                session.close()

        if resp.status_code != 200:
            raise NotifierError(
                f"Failed to send a Telegram notification to user {self.user_id}, "
                f"got HTTP {resp.status_code}: {resp.text[:300]}",
                notifier=self.name,
            )


def build_notifiers(session: Optional[requests.Session] = None) -> List[Notifier]:
    """Return one instance of every available notifier."""
    return [TelegramNotifier(session=session)]


def configured(notifiers: Iterable[Notifier]) -> List[Notifier]:
    return [n for n in notifiers if n.is_configured()]


def send_notification(notifiers: Iterable[Notifier], message: str) -> List[NotifierError]:
    """Send ``message`` with every configured notifier.

    Failures are logged and returned, never raised.
    """
    failures: List[NotifierError] = []
    for notifier in configured(notifiers):
        try:
            notifier.send(message)
        except NotifierError as e:
            logger.error("Notifier %s failed: %s", notifier.name, e)
            failures.append(e)
    return failures


def test_notifiers(notifiers: Iterable[Notifier], message: str = TEST_MESSAGE) -> None:
    """Send a test message with every configured notifier.

    Raises NotifierError if none is configured, or with one line per channel
    if any of them failed.
    """
    enabled = configured(notifiers)
    if not enabled:
        raise NotifierError("no notifier has been configured")

    failures = send_notification(enabled, message)
    if failures:
        lines = [
            f"Failure while testing notifiers: {len(failures)}/{len(enabled)} "
            f"notifiers returned an error."
        ]
        lines.extend(str(f) for f in failures)
        raise NotifierError("\n".join(lines))


__all__ = [
    "TEST_MESSAGE",
    "FLAG_TYPES",
    "NotifierFlag",
    "Notifier",
    "TelegramNotifier",
    "build_notifiers",
    "configured",
    "send_notification",
    "test_notifiers",
]
