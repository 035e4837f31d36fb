"""
Webhook messages — the JSON bodies posted to Discord.

Empty optional values are left out of the payload, matching what the
webhook endpoint expects.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

DEFAULT_USERNAME = "Delivr"

# Embed colors
COLOR_INFO = 0x3498DB      # blue
COLOR_SUCCESS = 0x2ECC71   # green
COLOR_ERROR = 0xE74C3C     # red


class EmbedField(BaseModel):
    name: str
    value: str
    inline: bool = False


class Embed(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    color: Optional[int] = None
    fields: list[EmbedField] = Field(default_factory=list)


class WebhookMessage(BaseModel):
    """A single webhook post."""

    content: Optional[str] = None
    username: str = DEFAULT_USERNAME
    avatar_url: Optional[str] = None
    embeds: list[Embed] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        payload = self.model_dump(mode="json", exclude_none=True)
        if not payload.get("content"):
            payload.pop("content", None)
        if not payload["embeds"]:
            del payload["embeds"]
        for embed in payload.get("embeds", []):
            if not embed["fields"]:
                del embed["fields"]
            for key in ("title", "description", "color"):
                if not embed.get(key):
                    embed.pop(key, None)
            for field in embed.get("fields", []):
                if not field["inline"]:
                    del field["inline"]
        return payload
