"""Project and reward catalog.

The first successful reconcile bootstraps the catalog: every reward that is
limited and sold out at that moment is recorded with its immutable details.
Later reconciles only refresh the remaining and total quantities of those
rewards.  Catalog membership never changes after bootstrap.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .errors import MalformedDataError

logger = logging.getLogger(__name__)


@dataclass
class Reward:
    id: int
    title: str
    title_with_price: str
    price: int            # in the project's original currency
    available: int = 0    # remaining quantity
    limit: int = 0        # total quantity


@dataclass
class Project:
    name: str = ""
    currency_symbol: str = ""
    initialized: bool = False
    rewards: Dict[int, Reward] = field(default_factory=dict)

    def find_rewards_by_price(self, price: int) -> List[Reward]:
        """Return every tracked reward at ``price``; several tiers may share one."""
        return [r for r in self.rewards.values() if r.price == price]


# ---- Typed view of the embedded project JSON ---------------------------------

def _number(value: Any, name: str, reward_id: Any = None) -> float:
    # bool is an int subclass; JSON true/false is never a quantity
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        where = f"reward {reward_id}" if reward_id is not None else "project"
        raise MalformedDataError(f'{where}: "{name}" must be a number, got {value!r}')
    return value


def _string(value: Any, name: str, reward_id: Any = None) -> str:
    if not isinstance(value, str):
        where = f"reward {reward_id}" if reward_id is not None else "project"
        raise MalformedDataError(f'{where}: "{name}" must be a string, got {value!r}')
    return value


@dataclass(frozen=True)
class RewardEntry:
    """One element of the ``rewards`` array.

    ``limited`` tells whether the reward declares a ``limit`` key at all.
    Fields only needed at bootstrap stay ``None`` when absent; whoever needs
    them asks through ``require``.
    """

    id: int
    limited: bool
    remaining: Optional[float] = None
    limit: Optional[float] = None
    title: Optional[str] = None
    title_for_backing_tier: Optional[str] = None
    minimum: Optional[float] = None

    @classmethod
    def from_dict(cls, raw: Any) -> "RewardEntry":
        if not isinstance(raw, Mapping):
            raise MalformedDataError(f"reward entry must be an object, got {type(raw).__name__}")
        if "id" not in raw:
            raise MalformedDataError('reward entry has no "id"')
        rid = int(_number(raw["id"], "id"))

        def opt_number(name: str) -> Optional[float]:
            value = raw.get(name)
            return None if value is None else _number(value, name, rid)

        def opt_string(name: str) -> Optional[str]:
            value = raw.get(name)
            return None if value is None else _string(value, name, rid)

        return cls(
            id=rid,
            limited="limit" in raw,
            remaining=opt_number("remaining"),
            limit=opt_number("limit"),
            title=opt_string("title"),
            title_for_backing_tier=opt_string("title_for_backing_tier"),
            minimum=opt_number("minimum"),
        )

    def require(self, name: str) -> Any:
        value = getattr(self, name)
        if value is None:
            raise MalformedDataError(f'reward {self.id}: required field "{name}" is missing')
        return value

    @property
    def sold_out(self) -> bool:
        """Limited and exactly zero left."""
        return self.limited and self.require("remaining") == 0


@dataclass(frozen=True)
class ProjectDocument:
    name: Optional[str]
    currency_symbol: Optional[str]
    rewards: List[RewardEntry]

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ProjectDocument":
        rewards = raw.get("rewards")
        if not isinstance(rewards, list):
            raise MalformedDataError(f'project: "rewards" must be a list, got {type(rewards).__name__}')
        name = raw.get("name")
        currency_symbol = raw.get("currency_symbol")
        return cls(
            name=None if name is None else _string(name, "name"),
            currency_symbol=None if currency_symbol is None else _string(currency_symbol, "currency_symbol"),
            rewards=[RewardEntry.from_dict(r) for r in rewards],
        )


# ---- Reconciliation ----------------------------------------------------------

def _bootstrap(doc: ProjectDocument) -> Dict[int, Reward]:
    """Build the catalog from ``doc`` without touching any project."""
    if doc.name is None:
        raise MalformedDataError('project: required field "name" is missing')
    if doc.currency_symbol is None:
        raise MalformedDataError('project: required field "currency_symbol" is missing')

    rewards: Dict[int, Reward] = {}
    for entry in doc.rewards:
        if not entry.sold_out:
            continue
        rewards[entry.id] = Reward(
            id=entry.id,
            title=entry.require("title"),
            title_with_price=entry.require("title_for_backing_tier"),
            price=int(entry.require("minimum")),
        )
    return rewards


def reconcile(raw: Mapping[str, Any], project: Project) -> Project:
    """Apply a freshly extracted project JSON to ``project`` and return it.

    Raises MalformedDataError when the document lacks a field the catalog needs,
    in which case ``project`` is left exactly as it was.
    """
    doc = ProjectDocument.from_dict(raw)
    bootstrapping = not project.initialized
    rewards = _bootstrap(doc) if bootstrapping else project.rewards

    updates = []
    for entry in doc.rewards:
        reward = rewards.get(entry.id)
        if reward is None or not entry.limited:
            continue
        updates.append((reward, int(entry.require("remaining")), int(entry.require("limit"))))

    if bootstrapping:
        project.name = doc.name
        project.currency_symbol = doc.currency_symbol
        project.rewards = rewards
        project.initialized = True
        logger.info(
            'Project "%s": %d limited reward(s) currently unavailable',
            project.name, len(rewards),
        )

    for reward, available, limit in updates:
        if available != reward.available:
            logger.debug("Reward %d: %d -> %d available", reward.id, reward.available, available)
        reward.available = available
        reward.limit = limit
    return project


__all__ = ["Project", "Reward", "ProjectDocument", "RewardEntry", "reconcile"]
