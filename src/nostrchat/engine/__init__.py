"""Realtime ingestion and reconciliation engine.

The engine is the top layer of the diamond DAG, depending on
[nostrchat.core][nostrchat.core], [nostrchat.nips][nostrchat.nips],
[nostrchat.utils][nostrchat.utils] and [nostrchat.models][nostrchat.models].

```text
Context -> SubscriptionRouter -> RelayTransport -> ChatClient.ingest
                                                     |
            DecryptionGate -> accepts() -> merge_message() -> message lists
```

Attributes:
    ChatClient: Facade wiring every component for a UI or the CLI.
    ClientConfig: Pydantic configuration loaded from YAML.
    SubscriptionRouter: Context registry, filter computation and teardown.
    EventComposer: Intent to signed event, local echo and publish.
    MentionResolver: ``@token`` to recipient public key.
    DecryptionGate: Fail-closed kind-4 authorization and decryption.
    NotificationPolicy: Bounded DM notification dedup.
    TypingTracker: Incoming typing pulse expiry.
    TypingPulser: Outgoing typing pulse debounce and throttle.
"""

from .client import ChatClient, RelayStatus
from .composer import (
    ChannelCreate,
    ChannelPost,
    DirectMessage,
    EventComposer,
    IdentifierResolver,
    Intent,
    MentionResolver,
    Post,
    ProfileUpdate,
    Reaction,
    TypingPulse,
)
from .config import (
    DEFAULT_RELAYS,
    ClientConfig,
    LimitsConfig,
    NotificationsConfig,
    PresenceConfig,
    TimeoutsConfig,
)
from .decryption import DecryptionGate
from .notifications import LogNotifier, NotificationPolicy, Notifier
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
from .router import SubscriptionHandle, SubscriptionRouter


__all__ = [
    "DEFAULT_RELAYS",
    "ChannelCreate",
    "ChannelDirectory",
    "ChannelPost",
    "ChatClient",
    "ClientConfig",
    "ContactDirectory",
    "DecryptionGate",
    "DirectMessage",
    "DraftCache",
    "EventComposer",
    "IdentifierResolver",
    "Intent",
    "LimitsConfig",
    "LogNotifier",
    "MentionResolver",
    "NotificationPolicy",
    "NotificationsConfig",
    "Notifier",
    "Post",
    "PresenceConfig",
    "ProfileDirectory",
    "ProfileUpdate",
    "Reaction",
    "ReactionIndex",
    "RelayStatus",
    "StarredMessages",
    "SubscriptionHandle",
    "SubscriptionRouter",
    "TimeoutsConfig",
    "TypingPulse",
    "TypingPulser",
    "TypingTracker",
    "accepts",
    "merge_message",
    "search_messages",
]
