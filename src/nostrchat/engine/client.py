"""
Chat client facade.

[ChatClient][nostrchat.engine.client.ChatClient] wires the engine for a UI:

```text
open(context) -> SubscriptionRouter -> RelayTransport
                                          |
ingest(event) <---------------------------+   (relay deliveries)
ingest(event) <-- EventComposer.compose       (local echo)
   |
   +-- kind 0/3/40/7/20 -> profile, contact, channel, reaction, typing caches
   +-- kind 1/4/42      -> DecryptionGate -> accepts() -> merge_message()
                                          -> NotificationPolicy -> Notifier
```

Every inbound event, whatever context's subscription carried it, is offered
to every open message context whose acceptance rule matches. Lists are kept
after a context closes, so reselecting a conversation shows it immediately
while the fresh subscription replays.

Examples:
    ```python
    config = ClientConfig.from_yaml("config/client.yaml")
    async with ChatClient.from_config(config) as client:
        await client.open(Context.global_feed())
        await client.send_text("@alice hi")
    ```
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Self

from nostrchat.core.exceptions import PublishingError
from nostrchat.core.metrics import EVENTS_DROPPED, EVENTS_RECEIVED, NOTIFICATIONS_FIRED
from nostrchat.models.constants import ContextType, EventKind
from nostrchat.models.context import Context
from nostrchat.nips.nip01 import decode_profile
from nostrchat.nips.nip02 import decode_contacts
from nostrchat.nips.nip05 import Nip05Resolver
from nostrchat.nips.nip25 import reaction_emoji, reaction_target
from nostrchat.nips.nip28 import decode_channel
from nostrchat.utils.crypto import NostrSdkCrypto
from nostrchat.utils.keys import load_identity
from nostrchat.utils.storage import JsonFileStore, MemoryStore
from nostrchat.utils.transport import NostrSdkTransport

from .composer import (
    ChannelCreate,
    ChannelPost,
    DirectMessage,
    EventComposer,
    MentionResolver,
    Post,
    ProfileUpdate,
    Reaction,
    TypingPulse,
)
from .config import ClientConfig
from .decryption import DecryptionGate
from .notifications import LogNotifier, NotificationPolicy
from .presence import TypingPulser, TypingTracker
from .reducers import (
    ChannelDirectory,
    ContactDirectory,
    DraftCache,
    ProfileDirectory,
    ReactionIndex,
    StarredMessages,
    accepts,
    merge_message,
    search_messages,
)
from .router import SubscriptionRouter


if TYPE_CHECKING:
    from collections.abc import Callable

    from nostrchat.models.event import Event
    from nostrchat.models.message import Message
    from nostrchat.utils.crypto import CryptoProvider
    from nostrchat.utils.keys import Identity
    from nostrchat.utils.storage import KeyValueStore
    from nostrchat.utils.transport import PublishResult, RelayTransport

    from .composer import IdentifierResolver, Intent
    from .notifications import Notifier
    from .router import SubscriptionHandle


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RelayStatus:
    """Connection summary for display, e.g. ``3/4 relays``."""

    connected: int
    total: int
    relays: dict[str, bool] = field(default_factory=dict)


class ChatClient:
    """Realtime ingestion and reconciliation engine for one identity.

    Args:
        identity: The signed-in [Identity][nostrchat.utils.keys.Identity].
        crypto: [CryptoProvider][nostrchat.utils.crypto.CryptoProvider].
        transport: [RelayTransport][nostrchat.utils.transport.RelayTransport].
        config: [ClientConfig][nostrchat.engine.config.ClientConfig]; defaults
            apply when omitted.
        store: Persistence for starred messages and drafts.
        resolver: NIP-05 collaborator for mention resolution.
        notifier: Receives DM notifications while the UI is hidden.
        on_message: Called with ``(context, message)`` for every new list entry.
        clock: Time source in seconds, shared by every component.
    """

    def __init__(  # noqa: PLR0913
        self,
        identity: Identity,
        crypto: CryptoProvider,
        transport: RelayTransport,
        config: ClientConfig | None = None,
        *,
        store: KeyValueStore | None = None,
        resolver: IdentifierResolver | None = None,
        notifier: Notifier | None = None,
        on_message: Callable[[Context, Message], None] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or ClientConfig()
        self._identity = identity
        self._transport = transport
        self._owned_transport: NostrSdkTransport | None = None
        self._clock = clock
        self._store = store if store is not None else MemoryStore()
        self._notifier = notifier or LogNotifier()
        self._visible = True
        self._on_message = on_message

        self._lists: dict[Context, tuple[Message, ...]] = {}
        self._profiles = ProfileDirectory()
        self._contacts = ContactDirectory(identity.pubkey)
        self._channels = ChannelDirectory()
        self._reactions = ReactionIndex()
        self._starred = StarredMessages(self._store)
        self._drafts = DraftCache(self._store)

        presence = self._config.presence
        self._typing = TypingTracker(presence.typing_ttl, clock)
        self._pulser = TypingPulser(presence.typing_debounce, presence.typing_throttle)
        self._pulse_task: asyncio.Task[None] | None = None
        self._notifications = NotificationPolicy(self._config.notifications.capacity)
        self._gate = DecryptionGate(identity, crypto)

        self._router = SubscriptionRouter(
            transport,
            self._config.relays,
            identity.pubkey,
            self.ingest,
            self._config.limits,
            presence_window=presence.window,
            clock=clock,
        )
        self._composer = EventComposer(
            identity, crypto, transport, self._config.relays, echo=self.ingest, clock=clock
        )
        self._mentions = MentionResolver(self._profiles, self._contacts, resolver)

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        *,
        transport: RelayTransport | None = None,
        crypto: CryptoProvider | None = None,
        store: KeyValueStore | None = None,
        notifier: Notifier | None = None,
        on_message: Callable[[Context, Message], None] | None = None,
    ) -> Self:
        """Build a client with the default collaborators for *config*.

        The identity comes from ``config.keys`` when set, otherwise from the
        store (generated and saved on first run). A transport built here is
        stopped by [aclose()][nostrchat.engine.client.ChatClient.aclose].
        """
        if store is None:
            store = (
                JsonFileStore(config.storage_path)
                if config.storage_path is not None
                else MemoryStore()
            )
        crypto = crypto or NostrSdkCrypto()
        identity = load_identity(store, crypto, config.keys.secret_hex)
        owned = None
        if transport is None:
            transport = owned = NostrSdkTransport(
                subscribe_timeout=config.timeouts.subscribe,
                publish_timeout=config.timeouts.publish,
            )
        client = cls(
            identity,
            crypto,
            transport,
            config,
            store=store,
            resolver=Nip05Resolver(timeout=config.timeouts.nip05),
            notifier=notifier,
            on_message=on_message,
        )
        client._owned_transport = owned
        return client

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Cancel a pending typing pulse, close every context and stop an owned transport."""
        if self._pulse_task is not None:
            self._pulse_task.cancel()
            await asyncio.gather(self._pulse_task, return_exceptions=True)
            self._pulse_task = None
        await self._router.close_all()
        if self._owned_transport is not None:
            await self._owned_transport.stop()

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def pubkey(self) -> str:
        return self._identity.pubkey

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def router(self) -> SubscriptionRouter:
        return self._router

    @property
    def composer(self) -> EventComposer:
        return self._composer

    @property
    def profiles(self) -> ProfileDirectory:
        return self._profiles

    @property
    def contacts(self) -> ContactDirectory:
        return self._contacts

    @property
    def channels(self) -> ChannelDirectory:
        return self._channels

    @property
    def reactions(self) -> ReactionIndex:
        return self._reactions

    @property
    def starred(self) -> StarredMessages:
        return self._starred

    @property
    def drafts(self) -> DraftCache:
        return self._drafts

    @property
    def visible(self) -> bool:
        return self._visible

    def set_visible(self, visible: bool) -> None:  # noqa: FBT001
        """Record UI visibility; notifications fire only while hidden."""
        self._visible = visible

    def messages(self, context: Context) -> tuple[Message, ...]:
        """Ordered message list of *context* (empty if never opened)."""
        return self._lists.get(context, ())

    def find_message(self, message_id: str) -> Message | None:
        for messages in self._lists.values():
            for message in messages:
                if message.id == message_id:
                    return message
        return None

    def search(self, context: Context, query: str) -> tuple[Message, ...]:
        return search_messages(self.messages(context), query)

    def typing_users(self) -> tuple[str, ...]:
        return self._typing.active()

    def label(self, pubkey: str) -> str:
        """Display label for *pubkey*: the viewer's petname, then the profile label.

        Falls back to a truncated key when neither is known.
        """
        contact = self._contacts.get(pubkey)
        if contact is not None and contact.petname:
            return contact.petname
        return self._profiles.label(pubkey)

    def toggle_star(self, message_id: str) -> bool:
        """Flip the starred state of a known message; returns the new state.

        Raises:
            KeyError: If no open or previously opened list holds the message.
        """
        message = self.find_message(message_id)
        if message is None:
            raise KeyError(message_id)
        return self._starred.toggle(message)

    async def relay_status(self) -> RelayStatus:
        health = await self._transport.connection_health(self._config.relays)
        return RelayStatus(sum(health.values()), len(health), health)

    # -------------------------------------------------------------------------
    # Contexts
    # -------------------------------------------------------------------------

    async def open(self, context: Context) -> SubscriptionHandle:
        """Select *context*: create its list if needed and open its subscriptions.

        Raises:
            SubscriptionError: If no relay accepted the subscription.
        """
        if context.has_messages:
            self._lists.setdefault(context, ())
        return await self._router.open_context(context)

    async def open_unified(self) -> Context:
        """Open the unified feed over a snapshot of the currently known channels."""
        cap = self._config.limits.unified_channel_cap
        context = Context.unified(self._channels.ids(cap))
        await self.open(context)
        return context

    async def close(self, context: Context) -> None:
        await self._router.close(context)

    async def close_all(self) -> None:
        await self._router.close_all()

    # -------------------------------------------------------------------------
    # Ingest
    # -------------------------------------------------------------------------

    def ingest(self, event: Event) -> None:
        """Apply one event from a relay or a local echo to all state."""
        EVENTS_RECEIVED.labels(kind=str(int(event.kind))).inc()
        try:
            match event.kind:
                case EventKind.SET_METADATA:
                    self._profiles.apply(decode_profile(event))
                case EventKind.CONTACTS:
                    if event.pubkey == self.pubkey:
                        self._contacts.apply(
                            event.pubkey, event.created_at, decode_contacts(event)
                        )
                case EventKind.CHANNEL_CREATE:
                    self._channels.add(decode_channel(event))
                case EventKind.REACTION:
                    self._reactions.apply(
                        event.id, reaction_target(event), reaction_emoji(event), event.pubkey
                    )
                case EventKind.TYPING:
                    if event.pubkey != self.pubkey:
                        self._typing.observe(event.pubkey, event.created_at)
                case EventKind.TEXT_NOTE | EventKind.ENCRYPTED_DM | EventKind.CHANNEL_MESSAGE:
                    self._ingest_message(event)
                case _:
                    logger.debug("event_ignored id=%s kind=%d", event.id, event.kind)
        except ValueError as e:
            EVENTS_DROPPED.labels(reason="malformed").inc()
            logger.debug("event_dropped id=%s kind=%d error=%s", event.id, event.kind, e)

    def _ingest_message(self, event: Event) -> None:
        message = self._gate.open(event)
        if message is None:
            return
        for context in self._router.contexts:
            if not context.has_messages or not accepts(context, message, self.pubkey):
                continue
            current = self._lists.get(context, ())
            merged = merge_message(current, message)
            if merged is current:
                continue
            self._lists[context] = merged
            if self._on_message is not None:
                self._on_message(context, message)
        self._maybe_notify(message)

    def _maybe_notify(self, message: Message) -> None:
        if not self._notifications.should_notify(message, self.pubkey):
            return
        if self._visible:
            return
        NOTIFICATIONS_FIRED.inc()
        self._notifier.notify(self.label(message.pubkey), message.content, message.id)

    # -------------------------------------------------------------------------
    # Outgoing
    # -------------------------------------------------------------------------

    async def _resolve_intent(self, text: str, context: Context | None) -> Intent:
        if context is None or context.type == ContextType.GLOBAL:
            if text.lstrip().startswith("@"):
                recipient, body = await self._mentions.resolve(text)
                return DirectMessage(recipient, body)
            return Post(text)
        match context.type:
            case ContextType.DIRECT:
                assert context.target is not None  # noqa: S101
                return DirectMessage(context.target, text)
            case ContextType.CHANNEL:
                assert context.target is not None  # noqa: S101
                return ChannelPost(context.target, text)
            case ContextType.THREAD:
                root = self.find_message(context.target or "")
                if root is None or root.channel_id is None:
                    raise ValueError(f"thread root {context.target} is not a known channel message")
                return ChannelPost(root.channel_id, text, reply_to=root.id)
            case ContextType.UNIFIED:
                return Post(text)
            case _:
                raise ValueError(f"cannot send text in a {context.type} context")

    async def send_text(self, text: str, context: Context | None = None) -> PublishResult:
        """Send *text* in *context* (GLOBAL when omitted).

        In the global feed a leading ``@token`` turns the text into an
        encrypted direct message to the resolved recipient. The draft of
        *context* is cleared once the event is echoed.

        Raises:
            ValueError: If the text is empty or the context cannot take text.
            RecipientNotFoundError: If the mention does not resolve.
            PublishingError: If no relay accepted the event (the echo is kept).
        """
        intent = await self._resolve_intent(text, context)
        event = self._composer.compose(intent)
        self.ingest(event)
        self._pulser.reset()
        self._drafts.clear(context or Context.global_feed())
        return await self._composer.publish_event(event)

    async def react(
        self, target_id: str, emoji: str = "+", target_author: str | None = None
    ) -> PublishResult:
        if target_author is None:
            target = self.find_message(target_id)
            target_author = target.pubkey if target else None
        return await self._composer.publish(Reaction(target_id, emoji, target_author))

    async def create_channel(
        self, name: str, about: str | None = None, picture: str | None = None
    ) -> PublishResult:
        """Publish a kind-40 event; the new channel id is ``result.event_id``."""
        return await self._composer.publish(ChannelCreate(name, about, picture))

    async def update_profile(self, **fields: str | None) -> PublishResult:
        """Publish kind-0 metadata built from ``name``, ``display_name``, ``nip05``, ``about``, ``picture``."""
        return await self._composer.publish(ProfileUpdate(**fields))

    # -------------------------------------------------------------------------
    # Typing
    # -------------------------------------------------------------------------

    def keystroke(self) -> None:
        """Register a keystroke; a typing pulse is published once debounce and throttle allow."""
        self._pulser.on_keystroke(self._clock())
        if self._pulse_task is None or self._pulse_task.done():
            self._pulse_task = asyncio.create_task(self._pulse_when_due(), name="typing-pulse")

    async def _pulse_when_due(self) -> None:
        while (due := self._pulser.due_at()) is not None:
            delay = due - self._clock()
            if delay > 0:
                await asyncio.sleep(delay)
                continue
            if self._pulser.poll(self._clock()):
                try:
                    await self._composer.publish(TypingPulse())
                except PublishingError as e:
                    logger.debug("typing_pulse_failed error=%s", e)
