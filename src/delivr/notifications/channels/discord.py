"""
Discord webhook — outbound-only notifications.

Posts plain content or embed messages to a channel webhook. Delivery is a
single POST; failures are raised to the caller, which decides whether to
continue.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from delivr.notifications.channel import NotificationError, Notifier
from delivr.notifications.messages import (
    DEFAULT_USERNAME,
    Embed,
    EmbedField,
    WebhookMessage,
)

logger = logging.getLogger(__name__)

WEBHOOK_PREFIX = "https://discord.com/api/webhooks/"


class InvalidWebhookError(ValueError):
    """The configured webhook URL cannot be used."""


class DiscordWebhook(Notifier):
    """Discord notifier backed by a channel webhook."""

    name: str = "discord"

    def __init__(
        self,
        webhook_url: str,
        *,
        username: str = DEFAULT_USERNAME,
        timeout: float = 30.0,
    ) -> None:
        if not webhook_url:
            raise InvalidWebhookError("discord webhook URL is required")
        if not webhook_url.startswith(WEBHOOK_PREFIX):
            raise InvalidWebhookError(
                f"invalid webhook URL format, must start with {WEBHOOK_PREFIX}"
            )
        self.webhook_url = webhook_url
        self.username = username
        self.timeout = timeout
        self._client: httpx.Client | None = None

    def connect(self) -> None:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def __enter__(self) -> DiscordWebhook:
        self.connect()
        return self

    def send(self, text: str) -> None:
        message = WebhookMessage(content=text, username=self.username)
        self._post(message.to_payload(), kind="message")

    def send_embed(
        self,
        title: str,
        description: str,
        fields: list[EmbedField] | None = None,
        color: int = 0,
    ) -> None:
        embed = Embed(
            title=title,
            description=description,
            color=color,
            fields=list(fields or []),
        )
        message = WebhookMessage(username=self.username, embeds=[embed])
        self._post(message.to_payload(), kind="embed")

    def _post(self, payload: dict[str, Any], *, kind: str) -> None:
        client = self._client or httpx.Client(timeout=self.timeout)
        try:
            resp = client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as exc:
            raise NotificationError(f"error sending webhook: {exc}") from exc
        finally:
            if not self._client:
                client.close()

        if resp.is_success:
            logger.debug("Discord %s delivered (HTTP %d)", kind, resp.status_code)
            return

        try:
            body: Any = resp.json()
        except ValueError:
            body = None
        detail = f"HTTP {resp.status_code} {resp.reason_phrase}"
        if body is not None:
            detail = f"{detail}, {body}"
        raise NotificationError(
            f"error sending {kind} to Discord: {detail}",
            status_code=resp.status_code,
            body=body,
        )
