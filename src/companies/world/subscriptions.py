"""Attribute change subscriptions.

World records that other systems need to react to (a deed's owner, a
citizen's direct citizenship) derive from ``Observable``. Assigning a new
value to one of the record's ``OBSERVED`` attributes delivers a
``Change(obj, attribute, before, after)`` to every subscriber of that
attribute, synchronously, in subscription order.

Subscriptions are explicit handles. The subscriber keeps them (usually in a
``SubscriptionSet``) and must release them when the observed object stops
being relevant; a released subscription is never called again.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Hashable


@dataclass(frozen=True)
class Change:
    """A single before/after attribute change notification."""
    obj: Any
    attribute: str
    before: Any
    after: Any


ChangeCallback = Callable[[Change], None]


class Subscription:
    """Handle for one callback on one attribute of one observable."""

    def __init__(self, source: Observable, attribute: str, callback: ChangeCallback) -> None:
        self.source = source
        self.attribute = attribute
        self.callback = callback
        self.active = True

    def release(self) -> None:
        if not self.active:
            return
        self.active = False
        self.source._remove_subscription(self)


class Observable:
    """Mixin that publishes changes of the attributes named in ``OBSERVED``."""

    OBSERVED: ClassVar[frozenset[str]] = frozenset()

    def __setattr__(self, name: str, value: Any) -> None:
        if name not in self.OBSERVED:
            object.__setattr__(self, name, value)
            return
        missing = object()
        before = self.__dict__.get(name, missing)
        object.__setattr__(self, name, value)
        if before is missing or before is value:
            return
        self._publish(Change(self, name, before, value))

    def watch(self, attribute: str, callback: ChangeCallback) -> Subscription:
        """Subscribe ``callback`` to changes of ``attribute``."""
        if attribute not in self.OBSERVED:
            raise ValueError(
                f"{type(self).__name__}.{attribute} is not an observed attribute"
            )
        subscription = Subscription(self, attribute, callback)
        self._subscriptions().append(subscription)
        return subscription

    def subscriber_count(self, attribute: str) -> int:
        return sum(
            1 for s in self.__dict__.get("_subs", []) if s.attribute == attribute
        )

    def _subscriptions(self) -> list[Subscription]:
        subs = self.__dict__.get("_subs")
        if subs is None:
            subs = []
            object.__setattr__(self, "_subs", subs)
        return subs

    def _remove_subscription(self, subscription: Subscription) -> None:
        subs = self.__dict__.get("_subs")
        if subs and subscription in subs:
            subs.remove(subscription)

    def _publish(self, change: Change) -> None:
        # Snapshot: callbacks may subscribe or release while being notified.
        for subscription in list(self.__dict__.get("_subs", [])):
            if subscription.active and subscription.attribute == change.attribute:
                subscription.callback(change)


class SubscriptionSet:
    """Subscriber-side bookkeeping, keyed by the observed object.

    ``watch`` is idempotent per (object, attribute): a second call for the
    same pair keeps the existing subscription.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_key: dict[tuple[int, str], Subscription] = {}

    def watch(self, obj: Observable, attribute: str, callback: ChangeCallback) -> bool:
        """Subscribe unless already subscribed. Returns True if newly added."""
        key = (id(obj), attribute)
        with self._lock:
            existing = self._by_key.get(key)
            if existing is not None and existing.active:
                return False
            self._by_key[key] = obj.watch(attribute, callback)
            return True

    def unwatch(self, obj: Observable) -> int:
        """Release every subscription on ``obj``. Returns how many were released."""
        with self._lock:
            keys = [k for k in self._by_key if k[0] == id(obj)]
            subs = [self._by_key.pop(k) for k in keys]
        for sub in subs:
            sub.release()
        return len(subs)

    def is_watching(self, obj: Hashable, attribute: str) -> bool:
        sub = self._by_key.get((id(obj), attribute))
        return sub is not None and sub.active

    def release_all(self) -> None:
        with self._lock:
            subs = list(self._by_key.values())
            self._by_key.clear()
        for sub in subs:
            sub.release()

    def __len__(self) -> int:
        return len(self._by_key)
