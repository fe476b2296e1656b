"""Notification delivery interface.

The engine never formats UI; it hands plain text plus a category/style hint
to a ``Messenger``. Delivery (chat, mail, toasts) is the integration's job.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from companies.logging import get_logger
from companies.models.world import Citizen

logger = get_logger(__name__)


class NotificationCategory(str, enum.Enum):
    GOVERNMENT = "government"
    NOTIFICATIONS = "notifications"
    REPUTATION = "reputation"


class NotificationStyle(str, enum.Enum):
    CHAT = "chat"
    INFO_BOX = "info_box"
    MAIL = "mail"


@runtime_checkable
class Messenger(Protocol):
    def message_citizen(
        self,
        citizen: Citizen,
        text: str,
        category: NotificationCategory = NotificationCategory.GOVERNMENT,
        style: NotificationStyle = NotificationStyle.CHAT,
    ) -> None:
        ...

    def mail(
        self,
        citizen: Citizen,
        text: str,
        category: NotificationCategory = NotificationCategory.GOVERNMENT,
    ) -> None:
        ...

    def broadcast(
        self,
        text: str,
        category: NotificationCategory = NotificationCategory.GOVERNMENT,
        style: NotificationStyle = NotificationStyle.CHAT,
    ) -> None:
        ...


@dataclass(frozen=True)
class Message:
    """A delivered notification. ``recipient`` is None for broadcasts."""
    recipient: Optional[Citizen]
    text: str
    category: NotificationCategory
    style: NotificationStyle


class InMemoryMessenger:
    """Keeps every delivered message, in order."""

    def __init__(self) -> None:
        self.messages: list[Message] = []

    def message_citizen(
        self,
        citizen: Citizen,
        text: str,
        category: NotificationCategory = NotificationCategory.GOVERNMENT,
        style: NotificationStyle = NotificationStyle.CHAT,
    ) -> None:
        self.messages.append(Message(citizen, text, category, style))

    def mail(
        self,
        citizen: Citizen,
        text: str,
        category: NotificationCategory = NotificationCategory.GOVERNMENT,
    ) -> None:
        self.messages.append(Message(citizen, text, category, NotificationStyle.MAIL))

    def broadcast(
        self,
        text: str,
        category: NotificationCategory = NotificationCategory.GOVERNMENT,
        style: NotificationStyle = NotificationStyle.CHAT,
    ) -> None:
        self.messages.append(Message(None, text, category, style))

    def to(self, citizen: Citizen) -> list[str]:
        return [m.text for m in self.messages if m.recipient is citizen]

    def broadcasts(self) -> list[str]:
        return [m.text for m in self.messages if m.recipient is None]

    def clear(self) -> None:
        self.messages.clear()


class LogMessenger:
    """Writes notifications to the structured log instead of delivering them."""

    def message_citizen(
        self,
        citizen: Citizen,
        text: str,
        category: NotificationCategory = NotificationCategory.GOVERNMENT,
        style: NotificationStyle = NotificationStyle.CHAT,
    ) -> None:
        logger.info("message", to=citizen.name, text=text, category=category.value)

    def mail(
        self,
        citizen: Citizen,
        text: str,
        category: NotificationCategory = NotificationCategory.GOVERNMENT,
    ) -> None:
        logger.info("mail", to=citizen.name, text=text, category=category.value)

    def broadcast(
        self,
        text: str,
        category: NotificationCategory = NotificationCategory.GOVERNMENT,
        style: NotificationStyle = NotificationStyle.CHAT,
    ) -> None:
        logger.info("broadcast", text=text, category=category.value)
