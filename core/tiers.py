"""
Retrieval tier catalog.

Glacier offers three retrieval tiers that trade speed for cost. This module
is the single source of truth for their display names, descriptions, cost
notes and the wait policy the poller applies while a job of that tier runs.

The display name doubles as the literal value of the `Tier` job parameter.
`Tier.protocol_value` exists so that coupling can be broken in one place if
the service ever accepts different strings.

Usage:
    tier = Tier.parse("  bulk ")      # Tier.BULK
    tier.display_name                 # "Bulk"
    tier.cost()                       # "Effectively free (Website says £0)"
    tier.poll_policy.max_attempts     # how many fetches the poller will try
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Iterator, Optional


@dataclass(frozen=True)
class PollPolicy:
    """
    Bounded backoff schedule for polling a retrieval job.

    The poller sleeps `initial_delay` before the second attempt, multiplies
    the delay by `backoff` after each attempt (capped at `max_interval`), and
    stops once the next delay would push the total wait past `max_wait`.
    All durations are in seconds.
    """

    initial_delay: float
    backoff: float
    max_interval: float
    max_wait: float

    def __post_init__(self) -> None:
        if self.initial_delay <= 0:
            raise ValueError("initial_delay must be positive")
        if self.backoff < 1:
            raise ValueError("backoff must be >= 1")
        if self.max_interval < self.initial_delay:
            raise ValueError("max_interval must be >= initial_delay")
        if self.max_wait < 0:
            raise ValueError("max_wait must not be negative")

    def delays(self) -> Iterator[float]:
        """Yield the delay before each retry, in order."""
        waited = 0.0
        delay = self.initial_delay
        while waited + delay <= self.max_wait:
            yield delay
            waited += delay
            delay = min(delay * self.backoff, self.max_interval)

    @property
    def max_attempts(self) -> int:
        """Number of fetch attempts the schedule allows (first try included)."""
        return sum(1 for _ in self.delays()) + 1

    @property
    def total_wait(self) -> float:
        """Sum of every scheduled delay."""
        return sum(self.delays())

    def scaled(self, factor: float) -> "PollPolicy":
        """Return a copy with every duration multiplied by `factor`."""
        if factor <= 0:
            raise ValueError("scale factor must be positive")
        return replace(
            self,
            initial_delay=self.initial_delay * factor,
            max_interval=self.max_interval * factor,
            max_wait=self.max_wait * factor,
        )


class Tier(Enum):
    """
    Retrieval tier selected when a job is initiated.

    Lifecycle expectations (from the service documentation):
        EXPEDITED -> ready in minutes
        STANDARD  -> ready in a few hours
        BULK      -> ready within about half a day
    """

    EXPEDITED = "Expedited"
    STANDARD = "Standard"
    BULK = "Bulk"

    @classmethod
    def parse(cls, text: Any) -> Optional["Tier"]:
        """
        Match text against the three tier names.

        Case-insensitive and ignores surrounding whitespace. Returns None for
        anything that is not a tier name, including non-string input.
        """
        if not isinstance(text, str):
            return None
        return _BY_LOWER_NAME.get(text.strip().lower())

    @property
    def display_name(self) -> str:
        """Capitalised name, e.g. "Expedited"."""
        return self.value

    @property
    def protocol_value(self) -> str:
        """Value sent as the `Tier` job parameter."""
        return self.value

    def describe(self) -> str:
        """One-line summary for presentation."""
        return _DESCRIPTIONS[self]

    def cost(self) -> str:
        """Formatted cost expression (informational only)."""
        return _COSTS[self]

    @property
    def poll_policy(self) -> PollPolicy:
        """Default wait policy for jobs of this tier."""
        return _POLL_POLICIES[self]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON responses."""
        policy = self.poll_policy
        return {
            "name": self.display_name,
            "description": self.describe(),
            "cost": self.cost(),
            "max_wait_seconds": policy.max_wait,
        }


_BY_LOWER_NAME: Dict[str, Tier] = {tier.value.lower(): tier for tier in Tier}

_DESCRIPTIONS: Dict[Tier, str] = {
    Tier.EXPEDITED: "The fastest tier available",
    Tier.STANDARD: "The default tier",
    Tier.BULK: "The slowest tier available",
}

_COSTS: Dict[Tier, str] = {
    Tier.EXPEDITED: "£0.0250 / GB + £0.0105",
    Tier.STANDARD: "£0.0083 / GB + £0.0000318",
    Tier.BULK: "Effectively free (Website says £0)",
}

# Expedited: 1-5 minutes, Standard: 3-5 hours, Bulk: 5-12 hours
_POLL_POLICIES: Dict[Tier, PollPolicy] = {
    Tier.EXPEDITED: PollPolicy(initial_delay=30.0, backoff=2.0, max_interval=120.0, max_wait=30 * 60.0),
    Tier.STANDARD: PollPolicy(initial_delay=15 * 60.0, backoff=1.5, max_interval=60 * 60.0, max_wait=8 * 3600.0),
    Tier.BULK: PollPolicy(initial_delay=30 * 60.0, backoff=1.5, max_interval=2 * 3600.0, max_wait=16 * 3600.0),
}


def parse(text: Any) -> Optional[Tier]:
    """Module-level alias for Tier.parse."""
    return Tier.parse(text)


def name(tier: Tier) -> str:
    """Display name of a tier; round-trips through parse()."""
    return tier.display_name


def describe(tier: Tier) -> str:
    """Module-level alias for Tier.describe."""
    return tier.describe()


def cost(tier: Tier) -> str:
    """Module-level alias for Tier.cost."""
    return tier.cost()
