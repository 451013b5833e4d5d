"""
Outgoing events: intents, signing, local echo and publishing.

An intent is a frozen dataclass describing what the user wants to say.
[EventComposer][nostrchat.engine.composer.EventComposer] turns it into a
signed [Event][nostrchat.models.event.Event]:

1. ``nips.event_builders`` produces a ``nostr_sdk.EventBuilder`` with the
   kind, tags and content (encrypting first for a direct message); it is
   stamped with the clock and built for the author.
2. The crypto provider computes the NIP-01 id and the signature.
3. The signed event is handed synchronously to the echo hook, which runs it
   through the same ingest path as relay deliveries.
4. The event is published; if no relay accepts it a
   [PublishingError][nostrchat.core.exceptions.PublishingError] is raised and
   the echo stays in place.

Composition failures (empty text, encryption failure) raise before anything
is echoed or published.

[MentionResolver][nostrchat.engine.composer.MentionResolver] turns
``@someone hello`` into a recipient public key and body.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from nostr_sdk import PublicKey, Timestamp

from nostrchat.core.exceptions import PublishingError, RecipientNotFoundError
from nostrchat.core.metrics import EVENTS_PUBLISHED
from nostrchat.models.event import Event
from nostrchat.nips.event_builders import (
    build_channel_create,
    build_channel_message,
    build_direct_message,
    build_profile,
    build_reaction,
    build_text_note,
    build_typing_pulse,
)
from nostrchat.nips.nip05 import split_identifier
from nostrchat.utils.keys import parse_public_key


if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from nostr_sdk import EventBuilder, UnsignedEvent

    from nostrchat.utils.crypto import CryptoProvider
    from nostrchat.utils.keys import Identity
    from nostrchat.utils.transport import PublishResult, RelayTransport

    from .reducers import ContactDirectory, ProfileDirectory


logger = logging.getLogger(__name__)


# =============================================================================
# Intents
# =============================================================================


@dataclass(frozen=True, slots=True)
class Post:
    """Public kind-1 note."""

    text: str


@dataclass(frozen=True, slots=True)
class DirectMessage:
    """Kind-4 message encrypted for *recipient*."""

    recipient: str
    text: str


@dataclass(frozen=True, slots=True)
class ChannelPost:
    """Kind-42 post in a channel, optionally replying to a message of it."""

    channel_id: str
    text: str
    reply_to: str | None = None


@dataclass(frozen=True, slots=True)
class Reaction:
    target_id: str
    emoji: str = "+"
    target_author: str | None = None


@dataclass(frozen=True, slots=True)
class TypingPulse:
    pass


@dataclass(frozen=True, slots=True)
class ProfileUpdate:
    """Kind-0 metadata. Blank fields are left out of the published content."""

    name: str | None = None
    display_name: str | None = None
    nip05: str | None = None
    about: str | None = None
    picture: str | None = None


@dataclass(frozen=True, slots=True)
class ChannelCreate:
    name: str
    about: str | None = None
    picture: str | None = None


Intent = Post | DirectMessage | ChannelPost | Reaction | TypingPulse | ProfileUpdate | ChannelCreate


def _require_text(text: str) -> str:
    if not text.strip():
        raise ValueError("message text is empty")
    return text


# =============================================================================
# Composer
# =============================================================================


class EventComposer:
    """Sign, echo and publish outgoing events for one identity.

    Args:
        identity: The author; its secret signs every event.
        crypto: [CryptoProvider][nostrchat.utils.crypto.CryptoProvider].
        transport: [RelayTransport][nostrchat.utils.transport.RelayTransport].
        relays: Relay URLs to publish to.
        echo: Called with each signed event before it is published.
        clock: Time source in seconds for ``created_at``.
    """

    def __init__(  # noqa: PLR0913
        self,
        identity: Identity,
        crypto: CryptoProvider,
        transport: RelayTransport,
        relays: Sequence[str],
        echo: Callable[[Event], None] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._identity = identity
        self._crypto = crypto
        self._transport = transport
        self._relays = tuple(relays)
        self._echo = echo
        self._clock = clock

    @property
    def pubkey(self) -> str:
        return self._identity.pubkey

    def _builder(self, intent: Intent) -> EventBuilder:  # noqa: PLR0911
        match intent:
            case Post(text=text):
                return build_text_note(_require_text(text))
            case DirectMessage(recipient=recipient, text=text):
                ciphertext = self._crypto.encrypt(
                    _require_text(text), self._identity.secret, recipient
                )
                return build_direct_message(recipient, ciphertext)
            case ChannelPost(channel_id=channel_id, text=text, reply_to=reply_to):
                return build_channel_message(
                    channel_id,
                    _require_text(text),
                    reply_to=reply_to,
                    relay_hint=self._relays[0] if self._relays else "",
                )
            case Reaction(target_id=target_id, emoji=emoji, target_author=author):
                return build_reaction(target_id, emoji.strip() or "+", author)
            case TypingPulse():
                return build_typing_pulse()
            case ProfileUpdate():
                return build_profile(
                    name=intent.name,
                    display_name=intent.display_name,
                    nip05=intent.nip05,
                    about=intent.about,
                    picture=intent.picture,
                )
            case ChannelCreate(name=name, about=about, picture=picture):
                return build_channel_create(
                    name, about=about, picture=picture, relays=self._relays
                )
            case _:
                raise TypeError(f"unsupported intent: {type(intent).__name__}")

    def _unsigned(self, intent: Intent) -> UnsignedEvent:
        """Stamp the builder for *intent* with the clock and bind it to the author."""
        return (
            self._builder(intent)
            .custom_created_at(Timestamp.from_secs(int(self._clock())))
            .build(PublicKey.parse(self._identity.pubkey))
        )

    def compose(self, intent: Intent) -> Event:
        """Build and sign the event for *intent* without side effects.

        Raises:
            ValueError: If the text (or channel name) is blank.
            TypeError: If *intent* is not a known intent type.
        """
        unsigned = self._unsigned(intent)
        event_id = self._crypto.event_id(unsigned)
        sig = self._crypto.sign(event_id, self._identity.secret)
        return Event.from_unsigned(unsigned, event_id, sig)

    async def publish(self, intent: Intent) -> PublishResult:
        """Compose, echo locally, then publish.

        Raises:
            PublishingError: If no relay accepted the event. The echo is kept
                and the event can be retried with
                [publish_event()][nostrchat.engine.composer.EventComposer.publish_event].
        """
        event = self.compose(intent)
        if self._echo is not None:
            self._echo(event)
        return await self.publish_event(event)

    async def publish_event(self, event: Event) -> PublishResult:
        """Publish an already signed event (no echo)."""
        result = await self._transport.publish(self._relays, event)
        EVENTS_PUBLISHED.labels(outcome="accepted").inc(len(result.accepted))
        EVENTS_PUBLISHED.labels(outcome="rejected").inc(len(result.rejected))
        if not result.ok:
            logger.warning(
                "publish_failed id=%s kind=%d rejected=%d", event.id, event.kind, len(result.rejected)
            )
            raise PublishingError(event.id, result.rejected)
        logger.debug(
            "event_published id=%s kind=%d accepted=%d", event.id, event.kind, len(result.accepted)
        )
        return result


# =============================================================================
# Mentions
# =============================================================================


@runtime_checkable
class IdentifierResolver(Protocol):
    """NIP-05 lookup collaborator, see [Nip05Resolver][nostrchat.nips.nip05.Nip05Resolver]."""

    async def resolve_well_known(self, local: str, domain: str) -> str | None: ...


class MentionResolver:
    """Resolve the leading ``@token`` of a message to a recipient public key.

    The token is tried, first success wins, as:

    1. an encoded public key (``npub1...`` or 64 hex);
    2. a petname from the viewer's contacts, then a ``name``,
       ``display_name`` or ``nip05`` from the profile cache (case-insensitive);
    3. a ``local@domain`` NIP-05 identifier looked up over HTTP.

    Args:
        profiles: [ProfileDirectory][nostrchat.engine.reducers.ProfileDirectory].
        contacts: [ContactDirectory][nostrchat.engine.reducers.ContactDirectory].
        resolver: Optional [IdentifierResolver][nostrchat.engine.composer.IdentifierResolver].
        parse_key: Public key parser returning hex or ``None``.
    """

    def __init__(
        self,
        profiles: ProfileDirectory,
        contacts: ContactDirectory,
        resolver: IdentifierResolver | None = None,
        parse_key: Callable[[str], str | None] = parse_public_key,
    ) -> None:
        self._profiles = profiles
        self._contacts = contacts
        self._resolver = resolver
        self._parse_key = parse_key

    @staticmethod
    def split(text: str) -> tuple[str, str]:
        """Split ``@token body`` into ``(token, body)``.

        Raises:
            ValueError: If *text* does not start with ``@`` or names no token.
        """
        stripped = text.strip()
        if not stripped.startswith("@"):
            raise ValueError("text does not start with a mention")
        parts = stripped[1:].split(maxsplit=1)
        if not parts or stripped[1:2].isspace():
            raise ValueError("mention is empty")
        return parts[0], parts[1].strip() if len(parts) > 1 else ""

    async def lookup(self, token: str) -> str | None:
        """Resolve a bare token (without ``@``) to a hex public key, or ``None``."""
        pubkey = self._parse_key(token)
        if pubkey is not None:
            return pubkey
        pubkey = self._contacts.find(token) or self._profiles.find(token)
        if pubkey is not None:
            return pubkey
        if self._resolver is not None:
            parts = split_identifier(token)
            if parts is not None:
                return await self._resolver.resolve_well_known(*parts)
        return None

    async def resolve(self, text: str) -> tuple[str, str]:
        """Return ``(recipient pubkey, body)`` for a message starting with ``@``.

        Raises:
            ValueError: If there is no mention or the body is empty.
            RecipientNotFoundError: If the token resolves to nothing.
        """
        token, body = self.split(text)
        if not body:
            raise ValueError("message text is empty")
        pubkey = await self.lookup(token)
        if pubkey is None:
            logger.info("recipient_not_found token=%s", token)
            raise RecipientNotFoundError(token)
        return pubkey, body
