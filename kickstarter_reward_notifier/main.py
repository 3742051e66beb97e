from __future__ import annotations

import argparse
import logging
import re
import signal
import sys
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence
from urllib.parse import urlsplit, urlunsplit

import requests

from . import config, scraper
from .catalog import Project, Reward, reconcile
from .errors import (ArgumentError, ExtractionError, FetchError,
                     MalformedDataError, NotifierError, ParseError)
from .notifier import (FLAG_TYPES, Notifier, build_notifiers,
                       send_notification, test_notifiers)
from .selector import (AllMode, InteractiveMode, NothingToWatch,
                       PriceListMode, WatchMode, describe_watch_set,
                       select_rewards)
from .utils import get_http_session

logger = logging.getLogger(__name__)

PROG = "kickstarter-reward-notifier"


def setup_logging() -> None:
    level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


# ---- Argument parsing --------------------------------------------------------

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(text: str) -> float:
    """Parse a duration such as "90s", "1m" or "1h30m" into seconds."""
    value = (text or "").strip()
    if value == "0":
        return 0.0
    total = 0.0
    pos = 0
    for m in _DURATION_PART.finditer(value):
        if m.start() != pos:
            break
        total += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()
    if pos == 0 or pos != len(value):
        raise argparse.ArgumentTypeError(f"invalid duration {text!r} (examples: 30s, 1m, 1h30m)")
    return total


def parse_prices(text: str) -> List[int]:
    """Parse a comma-separated list of prices."""
    prices = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            prices.append(int(part))
        except ValueError:
            raise argparse.ArgumentTypeError(f"invalid price {part!r}, expected an integer") from None
    return prices


def normalize_project_url(raw: str) -> str:
    """Validate a project URL, drop its query string and point it at /description."""
    parts = urlsplit((raw or "").strip())
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ArgumentError(f"Project URL not valid: {raw!r}")
    url = urlunsplit((parts.scheme, parts.netloc, parts.path.rstrip("/"), "", ""))
    if url.endswith("/description"):
        return url
    return url + "/description"


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser(notifiers: Sequence[Notifier]) -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog=PROG,
        usage=f"{PROG} [OPTION] PROJECT_URL",
        description="Get notified when limited rewards on Kickstarter are available.",
    )
    parser.add_argument("project_url", nargs="*", metavar="PROJECT_URL", help="Project URL")
    parser.add_argument(
        "-r", "--rewards", type=parse_prices, action="extend", default=[], metavar="PRICES",
        help="Comma-separated list of unavailable limited rewards to watch, identified by their "
             "price in the project's original currency. If multiple limited rewards share the "
             "same price, all are watched. Ignored if --all is set",
    )
    parser.add_argument("-a", "--all", action="store_true", help="If set, watch all unavailable limited rewards")
    parser.add_argument(
        "-i", "--interval", type=parse_duration, default=config.POLL_INTERVAL, metavar="DURATION",
        help=f"Interval between checks (default: {config.POLL_INTERVAL})",
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Quiet mode")
    parser.add_argument(
        "-t", "--test-notification", action="store_true",
        help="Send a test notification at script start, fail if any configured notifier fails",
    )

    # Setup the notifiers flags
    for notifier in notifiers:
        for flag in notifier.flags.values():
            names = [f"--{flag.long}"]
            if flag.short:
                names.insert(0, f"-{flag.short}")
            if flag.value_type == "string":
                parser.add_argument(*names, dest=flag.dest, type=str, default=flag.default or "", help=flag.help)
            elif flag.value_type == "int":
                parser.add_argument(*names, dest=flag.dest, type=int, default=flag.default or 0, help=flag.help)
            elif flag.value_type == "bool":
                parser.add_argument(*names, dest=flag.dest, action="store_true", default=bool(flag.default), help=flag.help)
            else:
                raise ValueError(
                    f'Error in notifier "{notifier.name}": "{flag.value_type}" is not supported '
                    f"as a notifier flag type (expected one of {', '.join(FLAG_TYPES)})"
                )
    return parser


def apply_notifier_flags(args: argparse.Namespace, notifiers: Sequence[Notifier]) -> None:
    for notifier in notifiers:
        for flag in notifier.flags.values():
            flag.value = getattr(args, flag.dest)


def watch_mode_from_args(args: argparse.Namespace) -> WatchMode:
    if args.all:
        return AllMode()
    if args.rewards:
        return PriceListMode(prices=tuple(args.rewards))
    return InteractiveMode()


# ---- Polling -----------------------------------------------------------------

@dataclass
class AppContext:
    url: str
    interval: float
    quiet: bool
    notifiers: List[Notifier]
    session: Optional[requests.Session] = None
    project: Project = field(default_factory=Project)
    watch: Dict[int, Reward] = field(default_factory=dict)


def refresh_project(ctx: AppContext) -> Project:
    """Fetch the project page and apply it to the catalog."""
    data = scraper.fetch_project_document(ctx.url, session=ctx.session)
    return reconcile(data, ctx.project)


def poll_once(ctx: AppContext) -> List[Reward]:
    """Refresh the project and notify for every watched reward with some left.

    Returns the rewards that were notified.
    """
    refresh_project(ctx)
    found: List[Reward] = []
    for reward in ctx.watch.values():
        if reward.available <= 0:
            continue
        found.append(reward)
        message = f'{reward.available}/{reward.limit} of reward "{reward.title_with_price}" available!'
        logger.info("%s", message)
        send_notification(ctx.notifiers, f'Alert about Kickstarter project "{ctx.project.name}": {message}')
    return found


def watch_loop(
    ctx: AppContext,
    sleep: Callable[[float], None] = time.sleep,
    max_cycles: Optional[int] = None,
) -> None:
    """Poll forever (or ``max_cycles`` times), printing a dot when nothing is available."""
    logger.info("Watching %d reward(s) every %ss", len(ctx.watch), ctx.interval)
    cycles = 0
    while max_cycles is None or cycles < max_cycles:
        sleep(ctx.interval)
        found = poll_once(ctx)
        if not found and not ctx.quiet:
            print(".", end="", flush=True)
        cycles += 1


def _raise_keyboard_interrupt(signum, frame) -> None:  # noqa: ANN001
    raise KeyboardInterrupt()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse the command line, pick the rewards to watch and run the polling loop."""
    setup_logging()

    session = get_http_session()
    previous_sigterm = signal.getsignal(signal.SIGTERM)
    try:
        notifiers = build_notifiers(session=session)
        parser = build_parser(notifiers)
        args = parser.parse_args(argv)
        apply_notifier_flags(args, notifiers)

        try:
            if len(args.project_url) != 1:
                raise ArgumentError("Invalid argument: there must be a single URL passed as parameter.")
            url = normalize_project_url(args.project_url[0])
        except ArgumentError as e:
            parser.print_usage(sys.stderr)
            print(e, file=sys.stderr)
            return 1

        if args.test_notification:
            print("Testing the notifications...")
            try:
                test_notifiers(notifiers)
            except NotifierError as e:
                print(f"Failure during notification test: {e}")
                return 1
            print("All configured notifiers passed the test.")

        ctx = AppContext(
            url=url,
            interval=args.interval,
            quiet=args.quiet,
            notifiers=notifiers,
            session=session,
        )
        signal.signal(signal.SIGTERM, _raise_keyboard_interrupt)

        refresh_project(ctx)
        try:
            ctx.watch = select_rewards(ctx.project, watch_mode_from_args(args))
        except NothingToWatch:
            print("All of this project rewards are currently available.")
            return 0
        print(describe_watch_set(ctx.watch))

        watch_loop(ctx)
    except (FetchError, ParseError, ExtractionError, MalformedDataError) as e:
        logger.error("Aborting after %s: %s", type(e).__name__, e)
        return 1
    except ArgumentError as e:
        print(e, file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down.")
        return 130
    finally:
        signal.signal(signal.SIGTERM, previous_sigterm)
        session.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
