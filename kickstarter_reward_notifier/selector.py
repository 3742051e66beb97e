"""Choice of the rewards to watch.

The watch set is picked once at startup, either from the command line
(``--all`` or ``--rewards``) or interactively.  It holds references to the
catalog's Reward objects, so quantity refreshes show through it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence, Union

from .catalog import Project, Reward
from .errors import ArgumentError

logger = logging.getLogger(__name__)


class NothingToWatch(Exception):
    """Raised when no reward of the project is limited and sold out."""


@dataclass(frozen=True)
class AllMode:
    pass


@dataclass(frozen=True)
class PriceListMode:
    prices: Sequence[int]


@dataclass(frozen=True)
class InteractiveMode:
    pass


WatchMode = Union[AllMode, PriceListMode, InteractiveMode]


def _by_price(project: Project, prices: Sequence[int], out: Callable[[str], None]) -> Dict[int, Reward]:
    watch: Dict[int, Reward] = {}
    for price in prices:
        rewards = project.find_rewards_by_price(price)
        if not rewards:
            out(
                f"There is no limited and unavailable reward priced at "
                f"{price}{project.currency_symbol}, ignoring."
            )
            logger.warning("No sold-out limited reward at price %d", price)
            continue
        for reward in rewards:
            watch[reward.id] = reward
    return watch


def _parse_selection(text: str, count: int) -> List[int]:
    """Turn "1, 3 4" into zero-based indexes; raise ValueError on anything invalid."""
    tokens = [t for t in re.split(r"[\s,]+", text.strip()) if t]
    if not tokens:
        raise ValueError("Please select at least one reward.")
    indexes: List[int] = []
    for token in tokens:
        if not token.isdigit() or not 1 <= int(token) <= count:
            raise ValueError(f"Invalid choice {token!r}: enter numbers between 1 and {count}.")
        if int(token) - 1 not in indexes:
            indexes.append(int(token) - 1)
    return indexes


def ask_rewards_to_watch(
    project: Project,
    ask: Callable[[str], str] = input,
    out: Callable[[str], None] = print,
) -> Dict[int, Reward]:
    """Prompt until at least one reward is chosen."""
    rewards = list(project.rewards.values())
    out("Please select the rewards to watch:")
    for i, reward in enumerate(rewards, 1):
        out(f"  {i}) {reward.title_with_price} ({reward.limit} backers)")

    while True:
        try:
            answer = ask("Rewards (comma-separated numbers): ")
        except EOFError as e:
            raise ArgumentError("No reward selected: standard input is closed") from e
        try:
            indexes = _parse_selection(answer, len(rewards))
        except ValueError as e:
            out(str(e))
            continue
        return {rewards[i].id: rewards[i] for i in indexes}


def select_rewards(
    project: Project,
    mode: WatchMode,
    ask: Callable[[str], str] = input,
    out: Callable[[str], None] = print,
) -> Dict[int, Reward]:
    """Resolve ``mode`` into the watch set.

    An empty catalog raises NothingToWatch before anything else.  A price list
    matching nothing falls back to the interactive prompt.
    """
    if not project.rewards:
        raise NothingToWatch()

    watch: Dict[int, Reward] = {}
    if isinstance(mode, AllMode):
        watch = dict(project.rewards)
    elif isinstance(mode, PriceListMode):
        watch = _by_price(project, mode.prices, out)

    if not watch:
        watch = ask_rewards_to_watch(project, ask=ask, out=out)
    return watch


def describe_watch_set(watch: Dict[int, Reward]) -> str:
    lines = [f"{len(watch)} rewards watched:"]
    lines.extend(f"- {r.title_with_price}" for r in watch.values())
    return "\n".join(lines)


__all__ = [
    "AllMode",
    "PriceListMode",
    "InteractiveMode",
    "WatchMode",
    "NothingToWatch",
    "ask_rewards_to_watch",
    "select_rewards",
    "describe_watch_set",
]
