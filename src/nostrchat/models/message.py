"""Materialized chat message.

A [Message][nostrchat.models.message.Message] is what a context list holds:
an [Event][nostrchat.models.event.Event] after the decryption gate, with
plaintext content and the routing fields (recipient, channel, reply parent)
extracted from its tags once.
"""

from __future__ import annotations

from dataclasses import dataclass

from .constants import REPLY_MARKER, ROOT_MARKER, EventKind
from .event import Event


@dataclass(frozen=True, slots=True)
class Message:
    """Immutable entry of a context message list.

    Attributes:
        id: Event id; unique within any context list.
        pubkey: Author public key.
        created_at: Author-declared timestamp (sort hint).
        kind: Source event kind (1, 4 or 42).
        content: Plaintext content (decrypted for kind 4).
        is_private: ``True`` for kind-4 direct messages.
        recipient: The single ``p`` tag value of a direct message.
        channel_id: Channel id from the ``root``-marked ``e`` tag of a kind-42 post.
        reply_to: Parent id from the ``reply``-marked ``e`` tag, if any.
    """

    id: str
    pubkey: str
    created_at: int
    kind: int
    content: str
    is_private: bool = False
    recipient: str | None = None
    channel_id: str | None = None
    reply_to: str | None = None

    @property
    def sort_key(self) -> tuple[int, str]:
        """Ascending ``created_at``, ties broken by id."""
        return (self.created_at, self.id)

    @classmethod
    def from_event(cls, event: Event, content: str | None = None) -> Message:
        """Build a message from *event*, optionally replacing its content with *content*.

        Raises:
            ValueError: If a kind-42 post has no ``root``-marked ``e`` tag.
        """
        recipient = None
        channel_id = None
        reply_to = None
        if event.kind == EventKind.ENCRYPTED_DM:
            p_tag = event.first_tag("p")
            recipient = p_tag[1] if p_tag else None
        elif event.kind == EventKind.CHANNEL_MESSAGE:
            root = event.marked_tag("e", ROOT_MARKER)
            if root is None:
                raise ValueError(f"channel message {event.id[:16]}... has no root tag")
            channel_id = root[1]
            reply = event.marked_tag("e", REPLY_MARKER)
            reply_to = reply[1] if reply else None
        return cls(
            id=event.id,
            pubkey=event.pubkey,
            created_at=event.created_at,
            kind=event.kind,
            content=event.content if content is None else content,
            is_private=event.kind == EventKind.ENCRYPTED_DM,
            recipient=recipient,
            channel_id=channel_id,
            reply_to=reply_to,
        )
