"""
Notifier — abstract base class for outbound notification targets.

The command runner only depends on this interface, so anything that can
deliver a text message (a webhook, a test fake) can stand in for it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from delivr.notifications.messages import EmbedField


class NotificationError(Exception):
    """A notification could not be delivered."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class Notifier(ABC):
    """Base class for notifiers."""

    name: str = "unnamed"

    @abstractmethod
    def send(self, text: str) -> None:
        """Send a plain-text message."""
        ...

    @abstractmethod
    def send_embed(
        self,
        title: str,
        description: str,
        fields: list[EmbedField] | None = None,
        color: int = 0,
    ) -> None:
        """Send a rich message made of a single embed."""
        ...

    def close(self) -> None:
        """Release any held connection. No-op by default."""

    def __enter__(self) -> Notifier:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
