"""
Relay transport: multiplexed subscriptions and publishing.

The engine talks to relays through the
[RelayTransport][nostrchat.utils.transport.RelayTransport] protocol:

* ``subscribe(relays, filters, sink)`` opens one relay subscription per
  filter and streams events and end-of-stored-events markers into *sink*.
  The returned [TransportSubscription][nostrchat.utils.transport.TransportSubscription]
  closes all of them.
* ``publish(relays, event)`` sends a signed event and reports per-relay
  outcomes as a [PublishResult][nostrchat.utils.transport.PublishResult].
* ``connection_health(relays)`` reports which relays are connected.

[NostrSdkTransport][nostrchat.utils.transport.NostrSdkTransport] implements
it on a single ``nostr_sdk.Client``. One notification task per client
demultiplexes deliveries by subscription id; deliveries for ids that were
already closed are discarded.

See Also:
    [SubscriptionRouter][nostrchat.engine.router.SubscriptionRouter]: Opens
        and closes subscriptions per context.
    [EventComposer][nostrchat.engine.composer.EventComposer]: Publishes.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from nostr_sdk import (
    Client,
    HandleNotification,
    NostrSdkError,
    RelayMessage,
    RelayUrl,
)
from nostr_sdk import Event as NostrEvent

from nostrchat.core.exceptions import SubscriptionError
from nostrchat.models.event import Event


if TYPE_CHECKING:
    from collections.abc import Sequence

    from nostr_sdk import Filter


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


# =============================================================================
# Contract
# =============================================================================


@runtime_checkable
class EventSink(Protocol):
    """Receiver of one subscription's deliveries. Called on the event loop."""

    def on_event(self, event: Event, relay_url: str) -> None: ...

    def on_eose(self, relay_url: str) -> None: ...


@runtime_checkable
class TransportSubscription(Protocol):
    """Handle for the relay subscriptions opened by one ``subscribe`` call."""

    @property
    def failed(self) -> dict[str, str]:
        """Relays on which setup failed, with the reason."""
        ...

    async def close(self) -> None: ...


@dataclass(frozen=True, slots=True)
class PublishResult:
    """Per-relay outcome of a publish.

    Attributes:
        event_id: Id of the published event.
        accepted: Relays that acknowledged the event.
        rejected: Relay URL to error message for relays that refused or failed.
    """

    event_id: str
    accepted: tuple[str, ...] = ()
    rejected: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return bool(self.accepted)


@runtime_checkable
class RelayTransport(Protocol):
    """Transport collaborator consumed by the router and composer."""

    async def subscribe(
        self, relays: Sequence[str], filters: Sequence[Filter], sink: EventSink
    ) -> TransportSubscription: ...

    async def publish(self, relays: Sequence[str], event: Event) -> PublishResult: ...

    async def connection_health(self, relays: Sequence[str]) -> dict[str, bool]: ...


# =============================================================================
# nostr-sdk Implementation
# =============================================================================


def from_nostr_event(event: NostrEvent) -> Event:
    """Wrap a relay-delivered ``nostr_sdk.Event`` in an [Event][nostrchat.models.event.Event].

    Raises:
        ValueError: If content or tags contain null bytes.
    """
    return Event(event)


def _eose_subscription(msg: RelayMessage) -> str | None:
    """Return the subscription id of an ``EOSE`` relay message, else ``None``."""
    try:
        payload = json.loads(msg.as_json())
    except (NostrSdkError, ValueError):
        return None
    if isinstance(payload, list) and len(payload) >= 2 and payload[0] == "EOSE":  # noqa: PLR2004
        return str(payload[1])
    return None


class _Demultiplexer(HandleNotification):
    """Routes client notifications to the sink registered for their subscription id."""

    def __init__(self, sinks: dict[str, EventSink]) -> None:
        self._sinks = sinks

    async def handle(self, relay_url: RelayUrl, subscription_id: str, event: NostrEvent) -> None:
        sink = self._sinks.get(subscription_id)
        if sink is None:
            return
        try:
            parsed = from_nostr_event(event)
        except ValueError as e:
            logger.debug("event_malformed relay=%s error=%s", relay_url, e)
            return
        sink.on_event(parsed, str(relay_url))

    async def handle_msg(self, relay_url: RelayUrl, msg: RelayMessage) -> None:
        subscription_id = _eose_subscription(msg)
        if subscription_id is None:
            return
        sink = self._sinks.get(subscription_id)
        if sink is not None:
            sink.on_eose(str(relay_url))


@dataclass(slots=True)
class _SdkSubscription:
    transport: NostrSdkTransport
    ids: list[str]
    failed: dict[str, str] = field(default_factory=dict)
    closed: bool = False

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self.transport._unsubscribe(self.ids)


class NostrSdkTransport:
    """[RelayTransport][nostrchat.utils.transport.RelayTransport] on a ``nostr_sdk.Client``.

    Relays are added lazily the first time they are named. Use as an async
    context manager, or call ``start()``/``stop()``.

    Args:
        client: Optional pre-built client (a default ``Client()`` otherwise).
        subscribe_timeout: Seconds to wait for each filter's subscription round trip.
        publish_timeout: Seconds to wait for relays to acknowledge a published event.
    """

    def __init__(
        self,
        client: Client | None = None,
        *,
        subscribe_timeout: float = DEFAULT_TIMEOUT,
        publish_timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._client = client or Client()
        self.subscribe_timeout = subscribe_timeout
        self.publish_timeout = publish_timeout
        self._relays: set[str] = set()
        self._sinks: dict[str, EventSink] = {}
        self._task: asyncio.Task[None] | None = None

    async def __aenter__(self) -> NostrSdkTransport:
        await self.start()
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.stop()

    async def start(self) -> None:
        """Start the notification loop. Idempotent."""
        if self._task is None:
            self._task = asyncio.create_task(
                self._client.handle_notifications(_Demultiplexer(self._sinks)),
                name="nostrchat-notifications",
            )

    async def stop(self) -> None:
        """Cancel the notification loop and disconnect from every relay."""
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        self._sinks.clear()
        try:
            await self._client.disconnect()
        except NostrSdkError as e:
            logger.debug("disconnect_failed error=%s", e)

    async def _ensure_relays(self, relays: Sequence[str]) -> list[RelayUrl]:
        urls = []
        added = False
        for relay in relays:
            url = RelayUrl.parse(relay)
            if relay not in self._relays:
                await self._client.add_relay(url)
                self._relays.add(relay)
                added = True
            urls.append(url)
        if added:
            await self._client.connect()
        return urls

    async def subscribe(
        self, relays: Sequence[str], filters: Sequence[Filter], sink: EventSink
    ) -> _SdkSubscription:
        await self.start()
        urls = await self._ensure_relays(relays)
        subscription = _SdkSubscription(self, [])
        for event_filter in filters:
            try:
                output = await asyncio.wait_for(
                    self._client.subscribe_to(urls, event_filter, None),
                    timeout=self.subscribe_timeout,
                )
            except (NostrSdkError, TimeoutError) as e:
                reason = str(e) or type(e).__name__
                subscription.failed.update(dict.fromkeys(relays, reason))
                logger.warning(
                    "subscription_failed filter=%s error=%s", event_filter.as_json(), reason
                )
                continue
            if not output.success:
                subscription.failed.update({str(url): err for url, err in output.failed.items()})
                continue
            self._sinks[output.id] = sink
            subscription.ids.append(output.id)
            subscription.failed.update({str(url): err for url, err in output.failed.items()})
            logger.debug(
                "subscription_opened id=%s relays=%d failed=%d",
                output.id,
                len(output.success),
                len(output.failed),
            )
        if filters and not subscription.ids:
            raise SubscriptionError(f"no relay accepted the subscription: {subscription.failed}")
        return subscription

    async def _unsubscribe(self, ids: Sequence[str]) -> None:
        for sub_id in ids:
            self._sinks.pop(sub_id, None)
            try:
                await self._client.unsubscribe(sub_id)
            except NostrSdkError as e:
                logger.debug("unsubscribe_failed id=%s error=%s", sub_id, e)

    async def publish(self, relays: Sequence[str], event: Event) -> PublishResult:
        urls = await self._ensure_relays(relays)
        try:
            output = await asyncio.wait_for(
                self._client.send_event_to(urls, event.nostr_event),
                timeout=self.publish_timeout,
            )
        except (NostrSdkError, TimeoutError) as e:
            reason = str(e) or type(e).__name__
            return PublishResult(event.id, rejected=dict.fromkeys(relays, reason))
        return PublishResult(
            event_id=event.id,
            accepted=tuple(str(url) for url in output.success),
            rejected={str(url): err for url, err in output.failed.items()},
        )

    async def connection_health(self, relays: Sequence[str]) -> dict[str, bool]:
        health: dict[str, bool] = {}
        for relay in relays:
            if relay not in self._relays:
                health[relay] = False
                continue
            try:
                relay_obj = await self._client.relay(RelayUrl.parse(relay))
                health[relay] = relay_obj.is_connected()
            except NostrSdkError:
                health[relay] = False
        return health
