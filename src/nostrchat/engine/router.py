"""
Subscription router: one registry entry per open context.

[SubscriptionRouter][nostrchat.engine.router.SubscriptionRouter] computes
the relay filters of a [Context][nostrchat.models.context.Context], opens
them through the [RelayTransport][nostrchat.utils.transport.RelayTransport]
and forwards every delivery to a single ``deliver`` callback (the
[ChatClient][nostrchat.engine.client.ChatClient] ingest path). Dispatch to
message lists happens by content downstream, so the router only guarantees:

* one live transport subscription set per open context;
* closing a context unsubscribes everything it opened;
* reopening creates a fresh subscription and replays stored events;
* closing while setup is still awaited is safe: once the transport returns,
  the new subscriptions are closed immediately;
* deliveries on a closed handle are discarded.

See Also:
    [accepts()][nostrchat.engine.reducers.accepts]: Decides which message
        lists an event lands in.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from nostr_sdk import Alphabet, EventId, Filter, Kind, PublicKey, SingleLetterTag, Timestamp

from nostrchat.core.exceptions import SubscriptionError
from nostrchat.core.metrics import EVENTS_DROPPED, SUBSCRIPTIONS_OPEN
from nostrchat.models.constants import ContextType, EventKind


if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from nostrchat.models.context import Context
    from nostrchat.models.event import Event
    from nostrchat.utils.transport import RelayTransport, TransportSubscription

    from .config import LimitsConfig


logger = logging.getLogger(__name__)


# =============================================================================
# Filters
# =============================================================================


def create_filter(  # noqa: PLR0913
    *,
    kinds: Sequence[int] = (),
    authors: Sequence[str] = (),
    ids: Sequence[str] = (),
    tags: Mapping[str, Sequence[str]] | None = None,
    since: int | None = None,
    limit: int | None = None,
) -> Filter:
    """Build a ``nostr_sdk.Filter``; empty arguments leave that field unconstrained.

    Args:
        kinds: Accepted event kinds.
        authors: Accepted author public keys (hex).
        ids: Accepted event ids (hex).
        tags: Single-letter tag constraints, ``{"e": [event_id, ...]}``.
        since: Inclusive lower ``created_at`` bound.
        limit: Maximum number of stored events the relay should replay.

    Raises:
        ValueError: If a tag key is not a single ASCII letter.
    """
    f = Filter()
    if kinds:
        f = f.kinds([Kind(k) for k in kinds])
    if authors:
        f = f.authors([PublicKey.parse(a) for a in authors])
    if ids:
        f = f.ids([EventId.parse(i) for i in ids])
    for letter, values in (tags or {}).items():
        if len(letter) != 1 or not letter.isascii() or not letter.isalpha():
            raise ValueError(f"tag filter key must be a single letter, got {letter!r}")
        tag = SingleLetterTag.lowercase(getattr(Alphabet, letter.upper()))
        for value in values:
            f = f.custom_tag(tag, value)
    if since is not None:
        f = f.since(Timestamp.from_secs(since))
    if limit is not None:
        f = f.limit(limit)
    return f


# =============================================================================
# Handle
# =============================================================================


@dataclass(slots=True)
class SubscriptionHandle:
    """Registry entry of one open context; also the transport's event sink.

    Ids already delivered are kept in an insertion-ordered set; past
    ``seen_capacity`` the oldest half is evicted, and a later duplicate of
    an evicted id is absorbed by the idempotent merge downstream.

    Attributes:
        context: The context this handle serves.
        subscription: Transport subscription, ``None`` until setup returns
            (or when the context needs no filters).
        closed: Set by ``close_context``; deliveries are then discarded.
        eose: Relays that finished replaying stored events.
        failed: Relays on which setup failed, with the reason.
        seen_capacity: Size beyond which the oldest half of the ids is evicted.
    """

    context: Context
    deliver: Callable[[Event], None] = field(repr=False)
    subscription: TransportSubscription | None = None
    closed: bool = False
    eose: set[str] = field(default_factory=set)
    failed: dict[str, str] = field(default_factory=dict)
    seen_capacity: int = 5000
    _seen: OrderedDict[str, None] = field(default_factory=OrderedDict, repr=False)

    def on_event(self, event: Event, relay_url: str) -> None:
        if self.closed:
            EVENTS_DROPPED.labels(reason="closed_context").inc()
            return
        if event.id in self._seen:
            EVENTS_DROPPED.labels(reason="duplicate").inc()
            return
        self._seen[event.id] = None
        if len(self._seen) > self.seen_capacity:
            for _ in range(len(self._seen) // 2):
                self._seen.popitem(last=False)
        self.deliver(event)

    @property
    def seen_count(self) -> int:
        return len(self._seen)

    def on_eose(self, relay_url: str) -> None:
        if not self.closed:
            self.eose.add(relay_url)
            logger.debug("context_eose context=%s relay=%s", self.context.key, relay_url)


# =============================================================================
# Router
# =============================================================================


class SubscriptionRouter:
    """Context registry on top of a relay transport.

    Args:
        transport: The [RelayTransport][nostrchat.utils.transport.RelayTransport].
        relays: Relay URLs every context subscribes on.
        viewer: Public key of the signed-in identity.
        deliver: Called synchronously with every event of every open context.
        limits: [LimitsConfig][nostrchat.engine.config.LimitsConfig].
        presence_window: Seconds of typing pulses requested by PRESENCE.
        clock: Time source in seconds.
    """

    def __init__(  # noqa: PLR0913
        self,
        transport: RelayTransport,
        relays: Sequence[str],
        viewer: str,
        deliver: Callable[[Event], None],
        limits: LimitsConfig,
        presence_window: int = 5,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._transport = transport
        self._relays = tuple(relays)
        self._viewer = viewer
        self._deliver = deliver
        self._limits = limits
        self._presence_window = presence_window
        self._clock = clock
        self._handles: dict[Context, SubscriptionHandle] = {}

    @property
    def relays(self) -> tuple[str, ...]:
        return self._relays

    @property
    def contexts(self) -> tuple[Context, ...]:
        """Currently open contexts, in opening order."""
        return tuple(self._handles)

    def is_open(self, context: Context) -> bool:
        return context in self._handles

    def handle(self, context: Context) -> SubscriptionHandle | None:
        return self._handles.get(context)

    # -------------------------------------------------------------------------
    # Filters
    # -------------------------------------------------------------------------

    def filters_for(self, context: Context) -> tuple[Filter, ...]:  # noqa: PLR0911
        """Compute the relay filters of *context*. Pure apart from the clock (PRESENCE)."""
        limits = self._limits
        viewer = self._viewer
        match context.type:
            case ContextType.GLOBAL:
                return (
                    create_filter(
                        kinds=(EventKind.TEXT_NOTE, EventKind.ENCRYPTED_DM),
                        limit=limits.feed_limit,
                    ),
                )
            case ContextType.DIRECT:
                peer = context.target
                assert peer is not None  # noqa: S101
                sent = create_filter(
                    kinds=(EventKind.ENCRYPTED_DM,),
                    authors=(viewer,),
                    tags={"p": (peer,)},
                    limit=limits.feed_limit,
                )
                if peer == viewer:
                    return (sent,)
                received = create_filter(
                    kinds=(EventKind.ENCRYPTED_DM,),
                    authors=(peer,),
                    tags={"p": (viewer,)},
                    limit=limits.feed_limit,
                )
                return (sent, received)
            case ContextType.CHANNEL:
                assert context.target is not None  # noqa: S101
                return (
                    create_filter(
                        kinds=(EventKind.CHANNEL_MESSAGE,),
                        tags={"e": (context.target,)},
                        limit=limits.channel_limit,
                    ),
                )
            case ContextType.UNIFIED:
                filters = [create_filter(kinds=(EventKind.TEXT_NOTE,), limit=limits.feed_limit)]
                channels = context.refs[: limits.unified_channel_cap]
                if channels:
                    filters.append(
                        create_filter(
                            kinds=(EventKind.CHANNEL_MESSAGE,),
                            tags={"e": channels},
                            limit=limits.channel_limit,
                        )
                    )
                return tuple(filters)
            case ContextType.THREAD:
                assert context.target is not None  # noqa: S101
                return (
                    create_filter(
                        kinds=(EventKind.CHANNEL_MESSAGE,),
                        tags={"e": (context.target,)},
                        limit=limits.thread_limit,
                    ),
                    create_filter(ids=(context.target,)),
                )
            case ContextType.REACTIONS:
                if not context.refs:
                    return ()
                return (create_filter(kinds=(EventKind.REACTION,), tags={"e": context.refs}),)
            case ContextType.PRESENCE:
                since = max(0, int(self._clock()) - self._presence_window)
                return (create_filter(kinds=(EventKind.TYPING,), since=since),)
            case ContextType.DIRECTORY:
                filters = []
                authors = context.refs[: limits.directory_batch]
                if authors:
                    filters.append(create_filter(kinds=(EventKind.SET_METADATA,), authors=authors))
                filters.append(create_filter(kinds=(EventKind.CONTACTS,), authors=(viewer,), limit=1))
                filters.append(
                    create_filter(kinds=(EventKind.CHANNEL_CREATE,), limit=limits.channel_limit)
                )
                return tuple(filters)
            case _:
                return ()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def open_context(self, context: Context) -> SubscriptionHandle:
        """Open *context*, or return its handle if it is already open.

        Per-relay failures are logged and kept on the handle; the context
        stays open as long as one relay accepted.

        Raises:
            SubscriptionError: If no relay accepted any filter. The context
                is not registered.
        """
        existing = self._handles.get(context)
        if existing is not None:
            return existing

        handle = SubscriptionHandle(
            context, self._deliver, seen_capacity=self._limits.seen_capacity
        )
        self._handles[context] = handle
        filters = self.filters_for(context)
        if not filters:
            logger.debug("context_opened context=%s filters=0", context.key)
            return handle

        try:
            subscription = await self._transport.subscribe(self._relays, filters, handle)
        except SubscriptionError:
            if self._handles.get(context) is handle:
                del self._handles[context]
            handle.closed = True
            logger.warning("context_open_failed context=%s", context.key)
            raise

        if handle.closed:
            # Closed while setup was in flight.
            await subscription.close()
            logger.debug("context_closed_during_setup context=%s", context.key)
            return handle

        handle.subscription = subscription
        handle.failed = dict(subscription.failed)
        for relay, reason in handle.failed.items():
            logger.warning(
                "relay_subscription_failed context=%s relay=%s error=%s",
                context.key,
                relay,
                reason,
            )
        SUBSCRIPTIONS_OPEN.inc()
        logger.info("context_opened context=%s filters=%d", context.key, len(filters))
        return handle

    async def close_context(self, handle: SubscriptionHandle) -> None:
        """Close *handle*. Idempotent; safe while ``open_context`` is still awaiting setup."""
        if handle.closed:
            return
        handle.closed = True
        if self._handles.get(handle.context) is handle:
            del self._handles[handle.context]
        if handle.subscription is not None:
            subscription, handle.subscription = handle.subscription, None
            SUBSCRIPTIONS_OPEN.dec()
            await subscription.close()
        logger.info("context_closed context=%s", handle.context.key)

    async def close(self, context: Context) -> None:
        """Close *context* if it is open."""
        handle = self._handles.get(context)
        if handle is not None:
            await self.close_context(handle)

    async def close_all(self) -> None:
        for handle in list(self._handles.values()):
            await self.close_context(handle)
