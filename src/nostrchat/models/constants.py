"""Shared constants for the models layer.

Defines enumerations used by more than one model module. Placing them here
avoids circular imports between the models, nips and engine layers.

See Also:
    [nostrchat.models.event][]: Uses [EventKind][nostrchat.models.constants.EventKind]
        to classify incoming events.
    [nostrchat.models.context][]: Uses [ContextType][nostrchat.models.constants.ContextType]
        as the discriminator of every conversational context.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum


class EventKind(IntEnum):
    """Nostr event kinds understood by the reconciliation engine.

    Attributes:
        SET_METADATA: Kind 0 -- profile metadata, latest wins per author (NIP-01).
        TEXT_NOTE: Kind 1 -- public post (NIP-01).
        CONTACTS: Kind 3 -- contact list with petnames, latest wins (NIP-02).
        ENCRYPTED_DM: Kind 4 -- NIP-04 encrypted direct message with one ``p`` tag.
        REACTION: Kind 7 -- emoji reaction referencing a target event (NIP-25).
        TYPING: Kind 20 -- ephemeral typing pulse, only meaningful for a few seconds.
        CHANNEL_CREATE: Kind 40 -- channel creation; its event id is the channel id (NIP-28).
        CHANNEL_MESSAGE: Kind 42 -- channel post tagged with the channel root (NIP-28).
    """

    SET_METADATA = 0
    TEXT_NOTE = 1
    CONTACTS = 3
    ENCRYPTED_DM = 4
    REACTION = 7
    TYPING = 20
    CHANNEL_CREATE = 40
    CHANNEL_MESSAGE = 42


class ContextType(StrEnum):
    """Discriminator for conversational and auxiliary contexts.

    The first five members own an ordered message list. The last three only
    feed the shared directory, reaction and presence reducers.

    Attributes:
        GLOBAL: Public feed plus the viewer's DM inbox (one shared subscription).
        DIRECT: One-to-one encrypted conversation with a single peer.
        CHANNEL: All posts of one NIP-28 channel.
        UNIFIED: Public feed merged with posts of a snapshot of known channels.
        THREAD: Replies to a single channel message.
        REACTIONS: Kind-7 reactions targeting a set of event ids.
        PRESENCE: Recent typing pulses.
        DIRECTORY: Profiles, the viewer's contact list and channel discovery.
    """

    GLOBAL = "global"
    DIRECT = "direct"
    CHANNEL = "channel"
    UNIFIED = "unified"
    THREAD = "thread"
    REACTIONS = "reactions"
    PRESENCE = "presence"
    DIRECTORY = "directory"


MESSAGE_CONTEXTS: frozenset[ContextType] = frozenset(
    {
        ContextType.GLOBAL,
        ContextType.DIRECT,
        ContextType.CHANNEL,
        ContextType.UNIFIED,
        ContextType.THREAD,
    }
)

HEX_KEY_LENGTH = 64

# NIP-10 markers on kind-42 ``e`` tags (NIP-28)
ROOT_MARKER = "root"
REPLY_MARKER = "reply"
