"""Event builders for every outgoing chat intent.

Standalone functions: each returns a ``nostr_sdk.EventBuilder`` with the
kind, tags and content the inbound reducers expect, so a locally echoed
event is accepted by the same rules as one received from a relay. The
composer stamps ``created_at``, builds the unsigned event for the author,
then computes the id and signs it.

See Also:
    [EventComposer][nostrchat.engine.composer.EventComposer]: Maps intents
        to these builders, then signs and publishes.
    [nostrchat.nips.nip28][]: Decodes the channel tags written here.
"""

from __future__ import annotations

from nostr_sdk import EventBuilder, Kind, Tag
from nostr_sdk import Metadata as NostrMetadata

from nostrchat.models.constants import REPLY_MARKER, ROOT_MARKER, EventKind

from .nip01 import ProfileData
from .nip28 import ChannelData


# =============================================================================
# Tag Builders
# =============================================================================


def direct_message_tags(recipient: str) -> list[Tag]:
    """Return the single ``p`` tag naming the DM *recipient*."""
    return [Tag.parse(["p", recipient])]


def reaction_tags(target_id: str, target_author: str | None = None) -> list[Tag]:
    """Return the ``e`` tag of the target, plus its ``p`` tag when the author is known."""
    tags = [Tag.parse(["e", target_id])]
    if target_author:
        tags.append(Tag.parse(["p", target_author]))
    return tags


def channel_message_tags(
    channel_id: str, reply_to: str | None = None, relay_hint: str = ""
) -> list[Tag]:
    """Return the ``root``-marked channel tag and the optional ``reply``-marked parent tag."""
    tags = [Tag.parse(["e", channel_id, relay_hint, ROOT_MARKER])]
    if reply_to:
        tags.append(Tag.parse(["e", reply_to, relay_hint, REPLY_MARKER]))
    return tags


# =============================================================================
# Kind 0 (NIP-01)
# =============================================================================


def build_profile(  # noqa: PLR0913
    *,
    name: str | None = None,
    display_name: str | None = None,
    nip05: str | None = None,
    about: str | None = None,
    picture: str | None = None,
) -> EventBuilder:
    """Build a kind-0 profile event carrying only the non-blank trimmed fields."""
    data = ProfileData.model_validate(
        ProfileData.parse(
            {
                "name": name,
                "display_name": display_name,
                "nip05": nip05,
                "about": about,
                "picture": picture,
            }
        )
    )
    return EventBuilder.metadata(NostrMetadata.from_json(data.to_content()))


# =============================================================================
# Kind 1 (NIP-01)
# =============================================================================


def build_text_note(text: str) -> EventBuilder:
    return EventBuilder(Kind(EventKind.TEXT_NOTE), text)


# =============================================================================
# Kind 4 (NIP-04)
# =============================================================================


def build_direct_message(recipient: str, ciphertext: str) -> EventBuilder:
    """Build a kind-4 event around already encrypted *ciphertext*."""
    return EventBuilder(Kind(EventKind.ENCRYPTED_DM), ciphertext).tags(
        direct_message_tags(recipient)
    )


# =============================================================================
# Kind 7 (NIP-25)
# =============================================================================


def build_reaction(target_id: str, emoji: str, target_author: str | None = None) -> EventBuilder:
    return EventBuilder(Kind(EventKind.REACTION), emoji).tags(
        reaction_tags(target_id, target_author)
    )


# =============================================================================
# Kind 20 (typing pulse)
# =============================================================================


def build_typing_pulse() -> EventBuilder:
    return EventBuilder(Kind(EventKind.TYPING), "")


# =============================================================================
# Kind 40 / 42 (NIP-28)
# =============================================================================


def build_channel_create(
    name: str,
    *,
    about: str | None = None,
    picture: str | None = None,
    relays: list[str] | tuple[str, ...] = (),
) -> EventBuilder:
    """Build a kind-40 channel creation event.

    Raises:
        ValueError: If *name* is blank.
    """
    data = ChannelData.model_validate(
        ChannelData.parse(
            {"name": name, "about": about, "picture": picture, "relays": list(relays)}
        )
    )
    return EventBuilder(Kind(EventKind.CHANNEL_CREATE), data.to_content())


def build_channel_message(
    channel_id: str,
    text: str,
    *,
    reply_to: str | None = None,
    relay_hint: str = "",
) -> EventBuilder:
    return EventBuilder(Kind(EventKind.CHANNEL_MESSAGE), text).tags(
        channel_message_tags(channel_id, reply_to, relay_hint)
    )
