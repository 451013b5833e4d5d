"""
Pytest configuration and shared fixtures for nostrchat tests.

Provides:
- FakeClock: settable time source shared by every engine component
- FakeCrypto: NostrSdkCrypto with a deterministic, reversible "cipher"
- FakeTransport: in-memory relay that stores, replays and pushes events
- Identities (alice, bob, eve) and signed event factories
- A ChatClient factory wired to the fakes
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import json
import logging
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import pytest
from nostr_sdk import EventBuilder, Kind, PublicKey, Tag, Timestamp

from nostrchat.core.exceptions import DecryptionError, SubscriptionError
from nostrchat.engine import ChatClient, ClientConfig
from nostrchat.models import Event, EventKind
from nostrchat.models.constants import ROOT_MARKER
from nostrchat.utils.crypto import NostrSdkCrypto
from nostrchat.utils.keys import Identity
from nostrchat.utils.storage import MemoryStore
from nostrchat.utils.transport import PublishResult


if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from nostr_sdk import Filter

    from nostrchat.utils.transport import EventSink


RELAYS = ("wss://relay.one.example", "wss://relay.two.example")
T0 = 1_700_000_000


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Fakes
# ============================================================================


class FakeClock:
    """Callable time source; tests move it with ``advance``."""

    def __init__(self, now: float = T0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCrypto(NostrSdkCrypto):
    """NostrSdkCrypto with deterministic key generation and a fake cipher.

    Ids and signatures are real. "Ciphertext" is base64 JSON naming the
    sorted key pair, so only the two parties can open it, and every decrypt
    is recorded.
    """

    def __init__(self) -> None:
        super().__init__()
        self.decrypt_calls: list[str] = []
        self._counter = 0

    def generate_secret_key(self) -> str:
        self._counter += 1
        return hashlib.sha256(f"generated-{self._counter}".encode()).hexdigest()

    def encrypt(self, plaintext: str, secret: str, recipient: str) -> str:
        pair = sorted([self.derive_public_key(secret), recipient])
        payload = json.dumps({"k": pair, "m": plaintext})
        return base64.b64encode(payload.encode()).decode()

    def decrypt(self, ciphertext: str, secret: str, sender: str) -> str:
        self.decrypt_calls.append(ciphertext)
        try:
            payload = json.loads(base64.b64decode(ciphertext, validate=True))
        except ValueError as e:
            raise DecryptionError(f"bad ciphertext: {e}") from e
        if not isinstance(payload, dict) or payload.get("k") != sorted([self.derive_public_key(secret), sender]):
            raise DecryptionError("wrong key")
        return str(payload["m"])


def filter_matches(data: dict[str, Any], event: Event) -> bool:
    """Relay-side NIP-01 matching of one filter in its JSON form (``limit`` is ignored)."""
    if "kinds" in data and event.kind not in data["kinds"]:
        return False
    if "authors" in data and event.pubkey not in data["authors"]:
        return False
    if "ids" in data and event.id not in data["ids"]:
        return False
    if "since" in data and event.created_at < data["since"]:
        return False
    if "until" in data and event.created_at > data["until"]:
        return False
    for key, values in data.items():
        if key.startswith("#") and not set(event.tag_values(key[1:])) & set(values):
            return False
    return True


class FakeSubscription:
    def __init__(self, transport: FakeTransport, filters: Sequence[Filter], sink: EventSink) -> None:
        self.transport = transport
        self.filters = [json.loads(f.as_json()) for f in filters]
        self.sink = sink
        self.failed: dict[str, str] = dict(transport.relay_failures)
        self.closed = False

    def matches(self, event: Event) -> bool:
        return any(filter_matches(f, event) for f in self.filters)

    async def close(self) -> None:
        self.closed = True


class FakeTransport:
    """In-memory relay network.

    ``subscribe`` replays every stored event matching the filters, then
    sends EOSE. ``broadcast`` stores an event and pushes it to every live
    matching subscription. Accepted publishes are broadcast, so the
    publisher also receives the relay copy of its own events.
    """

    def __init__(self) -> None:
        self.events: list[Event] = []
        self.subscriptions: list[FakeSubscription] = []
        self.published: list[Event] = []
        self.accept = True
        self.fail_subscribe = False
        self.relay_failures: dict[str, str] = {}
        self.hold: asyncio.Event | None = None
        self.connected: set[str] = set(RELAYS)

    @property
    def live(self) -> list[FakeSubscription]:
        return [s for s in self.subscriptions if not s.closed]

    async def subscribe(
        self, relays: Sequence[str], filters: Sequence[Filter], sink: EventSink
    ) -> FakeSubscription:
        if self.hold is not None:
            await self.hold.wait()
        if self.fail_subscribe:
            raise SubscriptionError("no relay accepted the subscription")
        subscription = FakeSubscription(self, filters, sink)
        self.subscriptions.append(subscription)
        for event in list(self.events):
            if subscription.matches(event):
                sink.on_event(event, relays[0])
        sink.on_eose(relays[0])
        return subscription

    async def publish(self, relays: Sequence[str], event: Event) -> PublishResult:
        self.published.append(event)
        if not self.accept:
            return PublishResult(event.id, rejected=dict.fromkeys(relays, "blocked"))
        self.broadcast(event, relays[0])
        return PublishResult(event.id, accepted=tuple(relays))

    async def connection_health(self, relays: Sequence[str]) -> dict[str, bool]:
        return {relay: relay in self.connected for relay in relays}

    def broadcast(self, event: Event, relay_url: str = RELAYS[0]) -> None:
        self.events.append(event)
        for subscription in self.live:
            if subscription.matches(event):
                subscription.sink.on_event(event, relay_url)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def crypto() -> FakeCrypto:
    return FakeCrypto()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


def _identity(crypto: FakeCrypto, secret_seed: str) -> Identity:
    secret = hashlib.sha256(secret_seed.encode()).hexdigest()
    return Identity(pubkey=crypto.derive_public_key(secret), secret=secret)


@pytest.fixture
def alice(crypto: FakeCrypto) -> Identity:
    return _identity(crypto, "alice")


@pytest.fixture
def bob(crypto: FakeCrypto) -> Identity:
    return _identity(crypto, "bob")


@pytest.fixture
def eve(crypto: FakeCrypto) -> Identity:
    return _identity(crypto, "eve")


@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(relays=list(RELAYS))


@pytest.fixture
def make_event(crypto: FakeCrypto) -> Callable[..., Event]:
    """Build and sign an arbitrary event as *author*."""

    def _make(
        author: Identity,
        kind: int,
        content: str = "",
        tags: tuple[tuple[str, ...], ...] = (),
        created_at: int = T0,
    ) -> Event:
        unsigned = (
            EventBuilder(Kind(kind), content)
            .tags([Tag.parse(list(row)) for row in tags])
            .custom_created_at(Timestamp.from_secs(created_at))
            .build(PublicKey.parse(author.pubkey))
        )
        event_id = crypto.event_id(unsigned)
        return Event.from_unsigned(unsigned, event_id, crypto.sign(event_id, author.secret))

    return _make


@pytest.fixture
def make_dm(
    crypto: FakeCrypto, make_event: Callable[..., Event]
) -> Callable[..., Event]:
    """Encrypted kind-4 event from *author* to *recipient*."""

    def _make(author: Identity, recipient: str, text: str, created_at: int = T0) -> Event:
        ciphertext = crypto.encrypt(text, author.secret, recipient)
        return make_event(
            author, EventKind.ENCRYPTED_DM, ciphertext, (("p", recipient),), created_at
        )

    return _make


@pytest.fixture
def make_channel_post(make_event: Callable[..., Event]) -> Callable[..., Event]:
    """Kind-42 post in *channel_id*, optionally replying to *reply_to*."""

    def _make(
        author: Identity,
        channel_id: str,
        text: str,
        reply_to: str | None = None,
        created_at: int = T0,
    ) -> Event:
        tags: list[tuple[str, ...]] = [("e", channel_id, "", ROOT_MARKER)]
        if reply_to:
            tags.append(("e", reply_to, "", "reply"))
        return make_event(author, EventKind.CHANNEL_MESSAGE, text, tuple(tags), created_at)

    return _make


@pytest.fixture
def make_client(
    crypto: FakeCrypto,
    transport: FakeTransport,
    config: ClientConfig,
    clock: FakeClock,
) -> Callable[..., ChatClient]:
    """ChatClient for *identity* sharing the fake relay network."""

    def _make(identity: Identity, **kwargs: Any) -> ChatClient:
        kwargs.setdefault("store", MemoryStore())
        kwargs.setdefault("notifier", MagicMock())
        return ChatClient(identity, crypto, transport, config, clock=clock, **kwargs)

    return _make
