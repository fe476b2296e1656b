"""Company-side value types.

STRUCTURAL INVARIANT: a company's roster is two ``ConcurrentSet``s
(members, invitees) plus an optional leader held outside both sets. Every
roster mutation goes through ``add``/``discard``, which report whether
anything changed; cascades are gated on that report so that duplicate
delivery of the same event cannot apply a cascade twice.
"""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass
from typing import Generic, Iterable, Iterator, TypeVar

from companies.models.world import Citizen

T = TypeVar("T")


class ConcurrentSet(Generic[T]):
    """Set with atomic add/discard/contains across threads.

    Composite operations spanning two sets are not atomic; callers gate on
    the boolean results instead.
    """

    def __init__(self, items: Iterable[T] = ()) -> None:
        self._lock = threading.Lock()
        self._items: dict[T, None] = dict.fromkeys(items)

    def add(self, item: T) -> bool:
        """Add ``item``. Returns True if it was not already present."""
        with self._lock:
            if item in self._items:
                return False
            self._items[item] = None
            return True

    def discard(self, item: T) -> bool:
        """Remove ``item``. Returns True if it was present."""
        with self._lock:
            if item not in self._items:
                return False
            del self._items[item]
            return True

    def snapshot(self) -> list[T]:
        with self._lock:
            return list(self._items)

    def __contains__(self, item: object) -> bool:
        with self._lock:
            return item in self._items

    def __iter__(self) -> Iterator[T]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __bool__(self) -> bool:
        return len(self) > 0

    def __repr__(self) -> str:
        return f"ConcurrentSet({self.snapshot()!r})"


class Relationship(str, enum.Enum):
    """How a citizen relates to a company."""
    LEADER = "leader"
    EMPLOYEE = "employee"
    INVITED = "invited"
    NONE = "none"


@dataclass(frozen=True)
class ShareholderHolding:
    citizen: Citizen
    share: float

    @property
    def description(self) -> str:
        return f"{self.citizen.name}: {self.share * 100.0:.2f}%"


class AccumulatorKind(str, enum.Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"


@dataclass(frozen=True)
class ReputationAccumulator:
    """Synthetic reputation giver standing in for a company's employees.

    One positive and one negative accumulator exist per company. Their
    contribution to the legal identity's reputation is replaced wholesale on
    every aggregation pass.
    """
    company_name: str
    kind: AccumulatorKind

    def __str__(self) -> str:
        return f"{self.company_name} ({self.kind.value} employee reputation)"
