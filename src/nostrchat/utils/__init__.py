"""Collaborator implementations: relay transport, crypto, keys, storage and HTTP.

Each module defines a small ``Protocol`` the engine depends on, plus one
concrete implementation on the third-party stack (``nostr_sdk``,
``aiohttp``).

Attributes:
    RelayTransport: Subscribe/publish/health contract.
        See [nostrchat.utils.transport][].
    CryptoProvider: Hash/sign/encrypt/decrypt contract.
        See [nostrchat.utils.crypto][].
    KeyValueStore: Session persistence contract.
        See [nostrchat.utils.storage][].
    Identity: Signed-in key pair. See [nostrchat.utils.keys][].
"""

from .crypto import CryptoProvider, NostrSdkCrypto, compute_event_id
from .http import read_json_document, read_limited
from .keys import (
    ENV_PRIVATE_KEY,
    STORE_PRIVATE_KEY,
    Identity,
    KeysConfig,
    load_identity,
    load_keys_from_env,
    parse_public_key,
    to_npub,
)
from .storage import JsonFileStore, KeyValueStore, MemoryStore
from .transport import (
    EventSink,
    NostrSdkTransport,
    PublishResult,
    RelayTransport,
    TransportSubscription,
)


__all__ = [
    "ENV_PRIVATE_KEY",
    "STORE_PRIVATE_KEY",
    "CryptoProvider",
    "EventSink",
    "Identity",
    "JsonFileStore",
    "KeyValueStore",
    "KeysConfig",
    "MemoryStore",
    "NostrSdkCrypto",
    "NostrSdkTransport",
    "PublishResult",
    "RelayTransport",
    "TransportSubscription",
    "compute_event_id",
    "load_identity",
    "load_keys_from_env",
    "parse_public_key",
    "read_json_document",
    "read_limited",
    "to_npub",
]
