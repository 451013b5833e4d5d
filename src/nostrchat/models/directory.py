"""Directory entries shared across all open contexts.

[Profile][nostrchat.models.directory.Profile],
[Contact][nostrchat.models.directory.Contact] and
[Channel][nostrchat.models.directory.Channel] are the values held by the
directory reducers in [nostrchat.engine.reducers][]. They are decoded from
kind 0, kind 3 and kind 40 events respectively by the ``nips`` layer.
"""

from __future__ import annotations

from dataclasses import dataclass

from ._validation import validate_hex, validate_timestamp
from .constants import HEX_KEY_LENGTH


_SHORT_KEY_LENGTH = 8


def short_key(pubkey: str) -> str:
    """Truncated key display used when no profile name is known."""
    return f"{pubkey[:_SHORT_KEY_LENGTH]}...{pubkey[-4:]}"


@dataclass(frozen=True, slots=True)
class Profile:
    """Latest kind-0 metadata of one author.

    Attributes:
        pubkey: Author public key.
        created_at: Timestamp of the kind-0 event this entry was decoded from.
        name: Short handle.
        display_name: Preferred display name.
        nip05: NIP-05 identifier (``local@domain``).
        about: Free-form biography.
        picture: Avatar URL.
    """

    pubkey: str
    created_at: int
    name: str | None = None
    display_name: str | None = None
    nip05: str | None = None
    about: str | None = None
    picture: str | None = None

    def __post_init__(self) -> None:
        validate_hex(self.pubkey, "pubkey", HEX_KEY_LENGTH)
        validate_timestamp(self.created_at, "created_at")

    @property
    def label(self) -> str:
        """Display label: ``display_name``, then ``name``, then a truncated key."""
        return self.display_name or self.name or short_key(self.pubkey)


@dataclass(frozen=True, slots=True)
class Contact:
    """One followed peer from the viewer's latest kind-3 contact list."""

    pubkey: str
    relay: str | None = None
    petname: str | None = None

    def __post_init__(self) -> None:
        validate_hex(self.pubkey, "pubkey", HEX_KEY_LENGTH)


@dataclass(frozen=True, slots=True)
class Channel:
    """Public channel created by a kind-40 event.

    The channel identity is the creating event's id. It is never recomputed
    and a later kind-40 never replaces an existing entry.

    Attributes:
        id: Id of the kind-40 event.
        creator: Author of the kind-40 event.
        created_at: Creation timestamp.
        name: Channel name.
        about: Channel description.
        picture: Channel picture URL.
        relays: Relay hints advertised in the creation payload.
    """

    id: str
    creator: str
    created_at: int
    name: str
    about: str | None = None
    picture: str | None = None
    relays: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        validate_hex(self.id, "id", HEX_KEY_LENGTH)
        validate_hex(self.creator, "creator", HEX_KEY_LENGTH)
        validate_timestamp(self.created_at, "created_at")
