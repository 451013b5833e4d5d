"""
Reconciliation reducers.

Pure merge functions and small last-write-wins caches that turn an
unordered, duplicated, multi-relay event stream into consistent state:

* [merge_message()][nostrchat.engine.reducers.merge_message]: idempotent
  insert into a context's ordered message list.
* [accepts()][nostrchat.engine.reducers.accepts]: per-context membership.
* [ProfileDirectory][nostrchat.engine.reducers.ProfileDirectory] and
  [ContactDirectory][nostrchat.engine.reducers.ContactDirectory]: strictly
  newer ``created_at`` wins, regardless of arrival order.
* [ChannelDirectory][nostrchat.engine.reducers.ChannelDirectory]: first
  definition of a channel id wins forever.
* [ReactionIndex][nostrchat.engine.reducers.ReactionIndex]: emoji reactor sets.
* [StarredMessages][nostrchat.engine.reducers.StarredMessages] and
  [DraftCache][nostrchat.engine.reducers.DraftCache]: session persistence
  through a [KeyValueStore][nostrchat.utils.storage.KeyValueStore].

Ordering uses the author-declared ``created_at`` with the id as tie-breaker.
It is a display hint, not a trusted total order.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

from nostrchat.models.constants import ContextType, EventKind
from nostrchat.models.directory import Channel, Contact, Profile, short_key
from nostrchat.models.message import Message


if TYPE_CHECKING:
    from collections.abc import Iterable

    from nostrchat.models.context import Context
    from nostrchat.utils.storage import KeyValueStore


logger = logging.getLogger(__name__)


# =============================================================================
# Message Lists
# =============================================================================


def _sort_key(message: Message) -> tuple[int, str]:
    return message.sort_key


def merge_message(messages: tuple[Message, ...], message: Message) -> tuple[Message, ...]:
    """Insert *message* into an ordered list.

    Returns *messages* itself when the id is already present, otherwise a
    new tuple sorted ascending by ``(created_at, id)``.
    """
    if any(existing.id == message.id for existing in messages):
        return messages
    return tuple(sorted((*messages, message), key=_sort_key))


def accepts(context: Context, message: Message, viewer: str) -> bool:  # noqa: PLR0911
    """Return whether *message* belongs in the list of *context* as seen by *viewer*.

    Rules:
        * GLOBAL: kind 1, or kind 4 where the viewer is author or recipient.
        * DIRECT(peer): kind 4 exchanged between viewer and peer.
        * CHANNEL(id): kind 42 whose ``root`` tag names the channel.
        * THREAD(root): the root message itself, or kind 42 replying to it.
        * UNIFIED(known): kind 1, or kind 42 whose channel is in the known
          snapshot carried by the context.
    """
    kind = message.kind
    match context.type:
        case ContextType.GLOBAL:
            if kind == EventKind.TEXT_NOTE:
                return True
            return kind == EventKind.ENCRYPTED_DM and viewer in (message.pubkey, message.recipient)
        case ContextType.DIRECT:
            if kind != EventKind.ENCRYPTED_DM:
                return False
            return {message.pubkey, message.recipient} == {viewer, context.target}
        case ContextType.CHANNEL:
            return kind == EventKind.CHANNEL_MESSAGE and message.channel_id == context.target
        case ContextType.THREAD:
            if message.id == context.target:
                return True
            return kind == EventKind.CHANNEL_MESSAGE and message.reply_to == context.target
        case ContextType.UNIFIED:
            if kind == EventKind.TEXT_NOTE:
                return True
            return kind == EventKind.CHANNEL_MESSAGE and message.channel_id in context.refs
        case _:
            return False


def search_messages(messages: Iterable[Message], query: str) -> tuple[Message, ...]:
    """Case-insensitive substring search over plaintext content. A blank query matches nothing."""
    needle = query.strip().casefold()
    if not needle:
        return ()
    return tuple(m for m in messages if needle in m.content.casefold())


# =============================================================================
# Directories
# =============================================================================


class ProfileDirectory:
    """pubkey -> latest [Profile][nostrchat.models.directory.Profile]."""

    def __init__(self) -> None:
        self._profiles: dict[str, Profile] = {}

    def apply(self, profile: Profile) -> bool:
        """Store *profile* unless an entry at least as new exists. Returns whether it changed."""
        stored = self._profiles.get(profile.pubkey)
        if stored is not None and profile.created_at <= stored.created_at:
            return False
        self._profiles[profile.pubkey] = profile
        return True

    def get(self, pubkey: str) -> Profile | None:
        return self._profiles.get(pubkey)

    def label(self, pubkey: str) -> str:
        """Display label for *pubkey*, falling back to a truncated key."""
        profile = self._profiles.get(pubkey)
        return profile.label if profile else short_key(pubkey)

    def find(self, name: str) -> str | None:
        """Resolve a ``name``, ``display_name`` or ``nip05`` (case-insensitive) to a pubkey.

        When several authors match, the most recently updated profile wins.
        """
        needle = name.casefold()
        matches = [
            p
            for p in self._profiles.values()
            if needle in {(v or "").casefold() for v in (p.name, p.display_name, p.nip05)}
        ]
        if not matches:
            return None
        return max(matches, key=lambda p: (p.created_at, p.pubkey)).pubkey

    def __len__(self) -> int:
        return len(self._profiles)

    def __contains__(self, pubkey: object) -> bool:
        return pubkey in self._profiles


class ContactDirectory:
    """The viewer's own contact list (kind 3), latest wins.

    Contact lists authored by anyone else are ignored: petnames are the
    viewer's private labels.
    """

    def __init__(self, owner: str) -> None:
        self._owner = owner
        self._created_at: int | None = None
        self._contacts: dict[str, Contact] = {}

    @property
    def created_at(self) -> int | None:
        return self._created_at

    def apply(self, author: str, created_at: int, contacts: Iterable[Contact]) -> bool:
        """Replace the list if *author* is the owner and *created_at* is strictly newer."""
        if author != self._owner:
            return False
        if self._created_at is not None and created_at <= self._created_at:
            return False
        self._created_at = created_at
        self._contacts = {c.pubkey: c for c in contacts}
        return True

    def get(self, pubkey: str) -> Contact | None:
        return self._contacts.get(pubkey)

    def find(self, petname: str) -> str | None:
        needle = petname.casefold()
        for contact in self._contacts.values():
            if contact.petname and contact.petname.casefold() == needle:
                return contact.pubkey
        return None

    def __iter__(self) -> Iterator[Contact]:
        return iter(self._contacts.values())

    def __len__(self) -> int:
        return len(self._contacts)


class ChannelDirectory:
    """Channel id -> [Channel][nostrchat.models.directory.Channel], in discovery order."""

    def __init__(self) -> None:
        self._channels: dict[str, Channel] = {}

    def add(self, channel: Channel) -> bool:
        """Record *channel* unless its id is already known. Returns whether it was new."""
        if channel.id in self._channels:
            return False
        self._channels[channel.id] = channel
        return True

    def get(self, channel_id: str) -> Channel | None:
        return self._channels.get(channel_id)

    def ids(self, limit: int | None = None) -> tuple[str, ...]:
        """Known channel ids in discovery order, optionally the first *limit*."""
        ids = tuple(self._channels)
        return ids if limit is None else ids[:limit]

    def __iter__(self) -> Iterator[Channel]:
        return iter(self._channels.values())

    def __len__(self) -> int:
        return len(self._channels)

    def __contains__(self, channel_id: object) -> bool:
        return channel_id in self._channels


class ReactionIndex:
    """target id -> emoji -> reactor pubkeys. Each reaction id counts once."""

    def __init__(self) -> None:
        self._seen: set[str] = set()
        self._index: dict[str, dict[str, set[str]]] = {}

    def apply(self, reaction_id: str, target_id: str, emoji: str, pubkey: str) -> bool:
        if reaction_id in self._seen:
            return False
        self._seen.add(reaction_id)
        self._index.setdefault(target_id, {}).setdefault(emoji, set()).add(pubkey)
        return True

    def counts(self, target_id: str) -> dict[str, int]:
        return {emoji: len(who) for emoji, who in self._index.get(target_id, {}).items()}

    def reactors(self, target_id: str, emoji: str) -> frozenset[str]:
        return frozenset(self._index.get(target_id, {}).get(emoji, ()))


# =============================================================================
# Persisted Session State
# =============================================================================


STARRED_KEY = "starred_messages"
DRAFT_PREFIX = "draft:"


class StarredMessages:
    """Starred-message set persisted as a JSON list of ``{id, content, pubkey, created_at}``.

    A corrupt stored value is logged and treated as empty.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._items: dict[str, dict[str, object]] = {}
        raw = store.get(STARRED_KEY)
        if raw:
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as e:
                logger.warning("starred_load_failed error=%s", e)
                data = []
            for item in data if isinstance(data, list) else []:
                if isinstance(item, dict) and isinstance(item.get("id"), str):
                    self._items[item["id"]] = item

    def _save(self) -> None:
        self._store.set(STARRED_KEY, json.dumps(list(self._items.values())))

    def is_starred(self, message_id: str) -> bool:
        return message_id in self._items

    def star(self, message: Message) -> None:
        self._items[message.id] = {
            "id": message.id,
            "content": message.content,
            "pubkey": message.pubkey,
            "created_at": message.created_at,
        }
        self._save()

    def unstar(self, message_id: str) -> None:
        if self._items.pop(message_id, None) is not None:
            self._save()

    def toggle(self, message: Message) -> bool:
        """Flip the starred state of *message*; returns the new state."""
        if self.is_starred(message.id):
            self.unstar(message.id)
            return False
        self.star(message)
        return True

    def items(self) -> list[dict[str, object]]:
        return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)


class DraftCache:
    """Unsent text per context, stored under ``draft:<context key>``."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def get(self, context: Context) -> str:
        return self._store.get(DRAFT_PREFIX + context.key) or ""

    def set(self, context: Context, text: str) -> None:
        """Save *text*; a blank draft removes the entry."""
        if text.strip():
            self._store.set(DRAFT_PREFIX + context.key, text)
        else:
            self._store.remove(DRAFT_PREFIX + context.key)

    def clear(self, context: Context) -> None:
        self._store.remove(DRAFT_PREFIX + context.key)
