r"""nostrchat -- Realtime Nostr chat ingestion and reconciliation engine.

Subscribes to independent, mutually distrusting relays and turns their
unordered, duplicated and partly malformed event stream into consistent,
access-controlled conversation views: the global feed with the DM inbox,
encrypted direct conversations, channels, a unified cross-channel feed and
reply threads.

Architecture follows a **diamond DAG** dependency structure where imports
flow strictly downward:

```text
              engine           Router, reducers, decryption, composer, client
             /   |   \
          core  nips  utils    Logging, errors, metrics | NIP payloads |
             \   |   /         keys, crypto, transport, storage
              models           Pure frozen dataclasses (zero I/O)
```

Attributes:
    models: Pure frozen dataclasses. Zero I/O, depends only on stdlib.
    core: Exceptions, logging, YAML loading, metrics.
    nips: NIP-01/02/04/05/25/28 payload decoding and event builders.
    utils: Relay transport, crypto, keys and storage collaborators.
    engine: Subscription router, reducers and the ChatClient facade.

Note:
    For lightweight usage, import directly from subpackages::

        from nostrchat.models import Event
        from nostrchat.engine import ChatClient

    Top-level imports (``from nostrchat import ChatClient``) use lazy loading
    and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("nostrchat")

__all__ = [
    "ChatClient",
    "ClientConfig",
    "Context",
    "Event",
    "EventComposer",
    "Logger",
    "Message",
    "NostrChatError",
    "SubscriptionRouter",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "Logger": ("nostrchat.core", "Logger"),
    "NostrChatError": ("nostrchat.core", "NostrChatError"),
    "Context": ("nostrchat.models", "Context"),
    "Event": ("nostrchat.models", "Event"),
    "Message": ("nostrchat.models", "Message"),
    "ChatClient": ("nostrchat.engine", "ChatClient"),
    "ClientConfig": ("nostrchat.engine", "ClientConfig"),
    "EventComposer": ("nostrchat.engine", "EventComposer"),
    "SubscriptionRouter": ("nostrchat.engine", "SubscriptionRouter"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value
        return value
    raise AttributeError(f"module 'nostrchat' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
