"""Reputation system interface.

Reputation is a set of relationships per target: ``giver -> value``. A giver
is any hashable key. Citizens give reputation to each other, and synthetic
givers (the company's reputation accumulators, the "speaks well of others"
bonus) contribute to a target's relationships the same way.

- total reputation: sum of all relationship values
- positive reputation: sum of the positive relationship values

How scores are earned is out of scope. ``InMemoryReputation`` only keeps the
books so the engine's aggregation can be exercised.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Hashable, Protocol, runtime_checkable

from companies.models.world import Citizen

SPEAKS_WELL_OF_OTHERS = "speaks_well_of_others"


@runtime_checkable
class ReputationSystem(Protocol):
    def relationships(self, target: Citizen) -> dict[Hashable, float]:
        ...

    def adjust_relationship(self, target: Citizen, giver: Hashable, delta: float) -> None:
        ...

    def reputation(self, target: Citizen) -> float:
        ...

    def positive_reputation(self, target: Citizen) -> float:
        ...

    def speaks_well_bonus(self, target: Citizen) -> float:
        ...

    def given_total(self, source: Citizen, target: Citizen) -> float:
        ...

    def given_today(self, source: Citizen, target: Citizen) -> float:
        ...

    def replenish(self, source: Citizen) -> None:
        ...


class InMemoryReputation:
    """Reference reputation books."""

    def __init__(self, daily_allowance: float = 10.0) -> None:
        self._lock = threading.RLock()
        self._relationships: dict[Citizen, dict[Hashable, float]] = defaultdict(dict)
        self._given_today: dict[tuple[Citizen, Citizen], float] = defaultdict(float)
        self._allowance_used: dict[Citizen, float] = defaultdict(float)
        self.daily_allowance = daily_allowance

    def give(self, source: Citizen, target: Citizen, amount: float) -> None:
        """Record a citizen-to-citizen gift (counts against today's allowance)."""
        with self._lock:
            self.adjust_relationship(target, source, amount)
            self._given_today[(source, target)] += amount
            self._allowance_used[source] += abs(amount)

    def relationships(self, target: Citizen) -> dict[Hashable, float]:
        with self._lock:
            return dict(self._relationships.get(target, {}))

    def adjust_relationship(self, target: Citizen, giver: Hashable, delta: float) -> None:
        with self._lock:
            books = self._relationships[target]
            value = books.get(giver, 0.0) + delta
            if value == 0:
                books.pop(giver, None)
            else:
                books[giver] = value

    def reputation(self, target: Citizen) -> float:
        with self._lock:
            return sum(self._relationships.get(target, {}).values())

    def positive_reputation(self, target: Citizen) -> float:
        with self._lock:
            return sum(v for v in self._relationships.get(target, {}).values() if v > 0)

    def speaks_well_bonus(self, target: Citizen) -> float:
        with self._lock:
            return self._relationships.get(target, {}).get(SPEAKS_WELL_OF_OTHERS, 0.0)

    def given_total(self, source: Citizen, target: Citizen) -> float:
        with self._lock:
            return self._relationships.get(target, {}).get(source, 0.0)

    def given_today(self, source: Citizen, target: Citizen) -> float:
        with self._lock:
            return self._given_today.get((source, target), 0.0)

    def allowance_remaining(self, source: Citizen) -> float:
        with self._lock:
            return self.daily_allowance - self._allowance_used.get(source, 0.0)

    def replenish(self, source: Citizen) -> None:
        """Restore ``source``'s daily allowance and forget today's gifts."""
        with self._lock:
            self._allowance_used.pop(source, None)
            for key in [k for k in self._given_today if k[0] is source]:
                del self._given_today[key]
