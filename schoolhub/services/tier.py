"""Per-tier state machine.

    IDLE ──begin(key)──▶ LOADING ──settle(current ticket)──▶ READY
      ▲                     │  ▲                               │
      └──── idle() ─────────┘  └──────── begin(new key) ───────┘

Every ``begin`` hands out a ticket.  ``settle`` only publishes when the
ticket is still the latest one, i.e. nobody has begun a newer load and
nobody has idled the tier in between.  A result carrying an old ticket
is discarded without touching state; this is how rapid selector changes
resolve to last-writer-wins without cancellation.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")

TierKey = tuple


class TierState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"


@dataclass(frozen=True, slots=True)
class FetchOutcome(Generic[T]):
    data: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class Ticket:
    generation: int
    key: TierKey


class Tier(Generic[T]):
    def __init__(self, name: str, empty: Callable[[], T]) -> None:
        self.name = name
        self._empty = empty
        self._generation = 0
        self.state = TierState.IDLE
        # Key of the load that is wanted right now (None while idle).
        self.key: TierKey | None = None
        # Key the published data belongs to.
        self.loaded_key: TierKey | None = None
        self.data: T = empty()
        self.error: str | None = None
        self.settled_once = False

    @property
    def is_loading(self) -> bool:
        return self.state is TierState.LOADING

    def is_ready_for(self, key: TierKey) -> bool:
        return self.state is TierState.READY and self.key == key

    def begin(self, key: TierKey) -> Ticket:
        self._generation += 1
        self.key = key
        self.state = TierState.LOADING
        return Ticket(generation=self._generation, key=key)

    def is_current(self, ticket: Ticket) -> bool:
        return ticket.generation == self._generation and ticket.key == self.key

    def settle(self, ticket: Ticket, outcome: FetchOutcome[T]) -> bool:
        """Publish ``outcome`` if ``ticket`` is current; return whether it was."""
        if not self.is_current(ticket):
            return False
        if outcome.ok:
            self.data = outcome.data  # type: ignore[assignment]
            self.loaded_key = ticket.key
            self.error = None
        else:
            # Keep the last good data; a first-load failure stays empty.
            self.error = outcome.error
        self.state = TierState.READY
        self.settled_once = True
        return True

    def idle(self, *, clear: bool) -> None:
        """Drop back to IDLE and orphan any in-flight load.

        ``clear`` empties the published data as well; use it when the
        upstream dependency is gone rather than merely changing.
        """
        self._generation += 1
        self.key = None
        self.state = TierState.IDLE
        if clear:
            self.data = self._empty()
            self.loaded_key = None
            self.error = None
            self.settled_once = False
