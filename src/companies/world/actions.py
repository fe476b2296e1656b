"""Action pipeline: validate-then-commit for world-changing operations.

A caller builds an ``ActionPack`` of one or more actions plus post-commit
effects and hands it to ``ActionPipeline.perform``:

1. Every registered validator sees every action. The first validator to
   return a reason rejects the whole pack; nothing is committed and no
   post effect runs.
2. On acceptance each action is appended to the event log (when one is
   wired), then every post effect runs exactly once, in order.

Validators are the extension point the rest of the world uses to veto
company transitions (roster limits, settlement policy, ...).
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from companies.logging import get_logger
from companies.persistence.event_log import EventLog, EventRecord

logger = get_logger(__name__)

Validator = Callable[[Any], Optional[str]]
PostEffect = Callable[[], None]


@dataclass(frozen=True)
class ActionOutcome:
    """Result of performing a pack. ``message`` is the rejection reason."""
    success: bool
    message: str = ""


@dataclass
class ActionPack:
    actions: list[Any] = field(default_factory=list)
    post_effects: list[PostEffect] = field(default_factory=list)

    def add_action(self, action: Any) -> ActionPack:
        self.actions.append(action)
        return self

    def add_post_effect(self, effect: PostEffect) -> ActionPack:
        self.post_effects.append(effect)
        return self


class ActionPipeline:
    """System-wide validator chain with an optional audit log."""

    def __init__(
        self,
        event_log: Optional[EventLog] = None,
        history: int = 256,
    ) -> None:
        self._validators: list[Validator] = []
        self._event_log = event_log
        self._event_counter = event_log.count if event_log is not None else 0
        self._lock = threading.Lock()
        # Most recent committed actions; the event log is the full record.
        self.performed: deque[Any] = deque(maxlen=history)

    @property
    def event_log(self) -> Optional[EventLog]:
        return self._event_log

    def register_validator(self, validator: Validator) -> None:
        self._validators.append(validator)

    def unregister_validator(self, validator: Validator) -> None:
        if validator in self._validators:
            self._validators.remove(validator)

    def perform(self, pack: ActionPack) -> ActionOutcome:
        for action in pack.actions:
            for validator in list(self._validators):
                reason = validator(action)
                if reason:
                    logger.info(
                        "action_rejected",
                        action=type(action).__name__,
                        reason=reason,
                    )
                    return ActionOutcome(success=False, message=reason)

        for action in pack.actions:
            self._record(action)
            self.performed.append(action)

        for effect in pack.post_effects:
            effect()
        return ActionOutcome(success=True)

    def _next_event_id(self) -> str:
        with self._lock:
            self._event_counter += 1
            return f"EVT-{self._event_counter:08d}"

    def _record(self, action: Any) -> None:
        if self._event_log is None:
            return
        kind = getattr(action, "kind", None)
        if kind is None:
            return
        actor = getattr(action, "actor", None)
        event = EventRecord.create(
            event_id=self._next_event_id(),
            event_kind=kind,
            actor_id=actor.citizen_id if actor is not None else "system",
            payload=action.payload(),
        )
        self._event_log.append(event)
