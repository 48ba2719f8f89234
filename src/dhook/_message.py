"""
Data models for Discord webhook messages.

This module contains the payload sent to a webhook:
- Message: The message to post (content and/or embeds)
- Embed: Rich content attached to a message, with its building blocks
  (EmbedAuthor, EmbedField, EmbedFooter, EmbedImage, EmbedProvider, EmbedThumbnail)

Messages are serialized to Discord's JSON field names. Empty fields are
left out of the payload.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


class InvalidMessageError(ValueError):
    """Raised when a message can not be sent, e.g. because it has no content."""

    pass


class MessageSerializationError(ValueError):
    """
    Raised when a message can not be serialized to JSON.

    Attributes:
        cause: The original exception raised by the JSON encoder.
    """

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


def _without_empty(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v not in (None, "", [], {})}


@dataclass(frozen=True)
class EmbedAuthor:
    """Author of an Embed."""
    name: str = ""
    icon_url: str = ""
    url: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _without_empty({"name": self.name, "icon_url": self.icon_url, "url": self.url})


@dataclass(frozen=True)
class EmbedField:
    """A field in an Embed. All attributes are always sent."""
    name: str
    value: str
    inline: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "value": self.value, "inline": self.inline}


@dataclass(frozen=True)
class EmbedFooter:
    """Footer of an Embed."""
    text: str = ""
    icon_url: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _without_empty({"text": self.text, "icon_url": self.icon_url})


@dataclass(frozen=True)
class EmbedImage:
    """Image of an Embed."""
    url: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _without_empty({"url": self.url})


@dataclass(frozen=True)
class EmbedProvider:
    """Provider of an Embed."""
    name: str = ""
    url: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _without_empty({"name": self.name, "url": self.url})


@dataclass(frozen=True)
class EmbedThumbnail:
    """Thumbnail image of an Embed."""
    url: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _without_empty({"url": self.url})


@dataclass(frozen=True)
class Embed:
    """
    Represents a Discord Embed.

    Attributes:
        title: Title of the embed.
        description: Main text of the embed.
        url: URL the title links to.
        color: RGB color as integer (e.g. 0x5865F2). 0 means no color.
        timestamp: Timestamp shown in the footer.
        author: Author shown on top of the embed.
        fields: Fields of the embed.
        footer: Footer of the embed.
        image: Large image of the embed.
        provider: Provider of the embed.
        thumbnail: Thumbnail image of the embed.
    """
    title: str = ""
    description: str = ""
    url: str = ""
    color: int = 0
    timestamp: datetime | None = None
    author: EmbedAuthor | None = None
    fields: list[EmbedField] = field(default_factory=list)
    footer: EmbedFooter | None = None
    image: EmbedImage | None = None
    provider: EmbedProvider | None = None
    thumbnail: EmbedThumbnail | None = None

    def to_dict(self) -> dict[str, Any]:
        """Converts the embed to the format expected by the Discord API."""
        data: dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "url": self.url,
            "color": self.color or None,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "author": self.author.to_dict() if self.author else None,
            "fields": [f.to_dict() for f in self.fields],
            "footer": self.footer.to_dict() if self.footer else None,
            "image": self.image.to_dict() if self.image else None,
            "provider": self.provider.to_dict() if self.provider else None,
            "thumbnail": self.thumbnail.to_dict() if self.thumbnail else None,
        }
        return _without_empty(data)


@dataclass(frozen=True)
class Message:
    """
    Represents a message that can be sent to a Discord webhook.

    A message must have content or at least one embed. Only this minimal
    requirement is checked before sending; other Discord limits (lengths,
    number of fields, etc.) are reported by the server as HTTP 400.

    Attributes:
        content: Text of the message.
        embeds: Embeds attached to the message.
        username: Overrides the default username of the webhook.
        avatar_url: Overrides the default avatar of the webhook.
        allowed_mentions: Discord "allowed mentions" object.

    Example:
        >>> message = Message(
        ...     content="Deployment finished",
        ...     embeds=[Embed(title="v1.2.0", color=0x57F287)],
        ... )
    """
    content: str = ""
    embeds: list[Embed] = field(default_factory=list)
    username: str = ""
    avatar_url: str = ""
    allowed_mentions: dict[str, Any] | None = None

    def is_empty(self) -> bool:
        """Returns True if the message has neither content nor embeds."""
        return not self.content and not self.embeds

    def to_dict(self) -> dict[str, Any]:
        """Converts the message to the format expected by the Discord API."""
        data: dict[str, Any] = {
            "allowed_mentions": self.allowed_mentions,
            "avatar_url": self.avatar_url,
            "content": self.content,
            "embeds": [e.to_dict() for e in self.embeds],
            "username": self.username,
        }
        return _without_empty(data)

    def to_json_bytes(self) -> bytes:
        """
        Serializes the message to a UTF-8 encoded JSON body.

        Raises:
            MessageSerializationError: If the message contains values that can not be encoded.
        """
        try:
            return json.dumps(self.to_dict(), ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise MessageSerializationError(f"Message can not be serialized to JSON: {e}", cause=e) from e
