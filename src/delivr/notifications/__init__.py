"""
Notification system for delivr.

Sends command start/result messages to a Discord channel webhook.
"""

from delivr.notifications.channel import NotificationError, Notifier
from delivr.notifications.channels.discord import (
    WEBHOOK_PREFIX,
    DiscordWebhook,
    InvalidWebhookError,
)
from delivr.notifications.messages import Embed, EmbedField, WebhookMessage

__all__ = [
    "WEBHOOK_PREFIX",
    "DiscordWebhook",
    "Embed",
    "EmbedField",
    "InvalidWebhookError",
    "NotificationError",
    "Notifier",
    "WebhookMessage",
]
