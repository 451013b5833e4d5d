"""NIP-28 public chat channels.

A kind-40 event creates a channel; its event id becomes the channel id and
its content is a JSON object with ``name``, ``about``, ``picture`` and
``relays``. Kind-42 posts reference the channel with a ``root``-marked ``e``
tag and optionally a parent post with a ``reply``-marked ``e`` tag.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from nostrchat.models.directory import Channel

from .base import BaseData
from .parsing import FieldSpec


if TYPE_CHECKING:
    from nostrchat.models.event import Event


class ChannelData(BaseData):
    """Decoded content of a kind-40 event. ``name`` is required."""

    _FIELD_SPEC: ClassVar[FieldSpec] = FieldSpec(
        str_fields=frozenset({"name", "about", "picture"}),
        str_list_fields=frozenset({"relays"}),
    )

    name: str
    about: str | None = None
    picture: str | None = None
    relays: list[str] | None = None

    def to_channel(self, channel_id: str, creator: str, created_at: int) -> Channel:
        return Channel(
            id=channel_id,
            creator=creator,
            created_at=created_at,
            name=self.name,
            about=self.about,
            picture=self.picture,
            relays=tuple(self.relays or ()),
        )


def decode_channel(event: Event) -> Channel:
    """Decode a kind-40 event into a [Channel][nostrchat.models.directory.Channel].

    Raises:
        ValueError: If the content is not a JSON object or has no usable name.
    """
    data = ChannelData.from_content(event.content)
    return data.to_channel(event.id, event.pubkey, event.created_at)