"""nostrchat exception hierarchy.

Typed exceptions for the failure categories of the chat engine. Callers catch
the specific class they can handle and let ``asyncio.CancelledError``
propagate untouched.

Exception hierarchy:

```text
NostrChatError (base, never raised directly)
├── ConfigurationError      config validation, missing keys, bad YAML
├── DecryptionError         NIP-04 ciphertext could not be opened
├── RecipientNotFoundError  @mention did not resolve to a public key
├── PublishingError         no relay accepted an outgoing event
└── SubscriptionError       a context subscription could not be opened
```

Only [RecipientNotFoundError][nostrchat.core.exceptions.RecipientNotFoundError]
and [PublishingError][nostrchat.core.exceptions.PublishingError] reach the
user. Malformed events and decryption failures are dropped at the ingestion
boundary and only logged.

See Also:
    [DecryptionGate][nostrchat.engine.decryption.DecryptionGate]: Catches
        [DecryptionError][nostrchat.core.exceptions.DecryptionError] and drops
        the event.
    [EventComposer][nostrchat.engine.composer.EventComposer]: Raises
        [PublishingError][nostrchat.core.exceptions.PublishingError] after the
        local echo.
"""

from __future__ import annotations


class NostrChatError(Exception):
    """Base exception for all nostrchat errors.

    Never raised directly, always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(NostrChatError):
    """Invalid or missing configuration (YAML, env vars, CLI flags).

    See Also:
        [load_yaml()][nostrchat.core.yaml.load_yaml]: YAML loading function
            whose output is validated into
            [ClientConfig][nostrchat.engine.config.ClientConfig].
    """


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


class DecryptionError(NostrChatError):
    """NIP-04 ciphertext could not be decrypted with the available key material.

    Never surfaced to the user: the event is dropped and logged at debug level.
    """


# ---------------------------------------------------------------------------
# Outgoing
# ---------------------------------------------------------------------------


class RecipientNotFoundError(NostrChatError):
    """An ``@mention`` could not be resolved to a public key.

    The compose action is aborted and no event is produced.

    Attributes:
        identifier: The token that failed to resolve.
    """

    def __init__(self, identifier: str) -> None:
        super().__init__(f"recipient not found: {identifier}")
        self.identifier = identifier


class PublishingError(NostrChatError):
    """No relay accepted an outgoing event.

    The locally echoed message is kept; the caller may retry with the same
    signed event.

    Attributes:
        event_id: Id of the event that failed to publish.
        failed: Mapping of relay URL to error message.
    """

    def __init__(self, event_id: str, failed: dict[str, str] | None = None) -> None:
        super().__init__(f"event {event_id} was not accepted by any relay")
        self.event_id = event_id
        self.failed = dict(failed or {})


class SubscriptionError(NostrChatError):
    """A context subscription could not be opened on any relay."""
