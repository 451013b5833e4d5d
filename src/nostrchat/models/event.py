"""
Immutable signed Nostr event wrapping ``nostr_sdk.Event``.

[Event][nostrchat.models.event.Event] is the only unit of state transfer
in the network. It wraps the SDK event in a frozen dataclass, caches the
plain views the reducers read (hex ids, integer kind, tag rows as tuples)
and delegates every other attribute to the SDK object, so ``verify()`` or
``as_json()`` work directly.

Validation is eager: null bytes in content or tags raise ``ValueError`` in
``__post_init__``. Callers at the ingestion boundary catch ``ValueError``
and drop the event. Signatures are **not** verified here; the relay client
verifies on receipt and the engine treats ``sig`` as opaque.

See Also:
    [nostrchat.utils.crypto][]: Computes the id of a ``nostr_sdk.UnsignedEvent``
        and signs it.
    [nostrchat.nips.event_builders][]: Produces ``nostr_sdk.EventBuilder``
        instances for each outgoing intent.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from nostr_sdk import Event as NostrEvent
from nostr_sdk import NostrSdkError


if TYPE_CHECKING:
    from nostr_sdk import UnsignedEvent


Tags = tuple[tuple[str, ...], ...]


def _cached() -> Any:
    return field(init=False)


@dataclass(frozen=True, slots=True)
class Event:
    """Immutable signed Nostr event.

    Attribute access not covered by the cached fields below is delegated to
    the inner ``nostr_sdk.Event`` via ``__getattr__``.

    Args:
        _nostr_event: The underlying ``nostr_sdk.Event`` instance.

    Attributes:
        id: Event id (64 hex chars).
        pubkey: Author public key (64 hex chars).
        created_at: Author-controlled timestamp. Used as a sort hint only;
            it is never trusted as a total order.
        kind: Event kind discriminator.
        tags: Tag rows, each a tuple of strings.
        content: Opaque content string.
        sig: Schnorr signature over ``id`` (128 hex chars).

    Raises:
        ValueError: If content or tags contain null bytes.

    Examples:
        ```python
        event = Event.from_json(raw)
        event.first_tag("p")           # ("p", "ab12...")
        event.marked_tag("e", "root")  # ("e", "<channel id>", "", "root")
        event.verify()                 # Delegates to nostr_sdk.Event
        ```
    """

    _nostr_event: NostrEvent = field(repr=False, compare=False)
    id: str = _cached()
    pubkey: str = _cached()
    created_at: int = _cached()
    kind: int = _cached()
    tags: Tags = _cached()
    content: str = _cached()
    sig: str = _cached()

    def __post_init__(self) -> None:
        """Cache the plain field views and reject null bytes."""
        inner = self._nostr_event
        event_id = inner.id().to_hex()
        content = inner.content()
        tags = tuple(tuple(tag.as_vec()) for tag in inner.tags().to_vec())
        if "\x00" in content:
            raise ValueError(f"Event {event_id[:16]}... content contains null bytes")
        if any("\x00" in value for row in tags for value in row):
            raise ValueError(f"Event {event_id[:16]}... tags contain null bytes")
        object.__setattr__(self, "id", event_id)
        object.__setattr__(self, "pubkey", inner.author().to_hex())
        object.__setattr__(self, "created_at", inner.created_at().as_secs())
        object.__setattr__(self, "kind", inner.kind().as_u16())
        object.__setattr__(self, "tags", tags)
        object.__setattr__(self, "content", content)
        object.__setattr__(self, "sig", inner.signature())

    def __getattr__(self, name: str) -> Any:
        """Delegate attribute access to the wrapped NostrEvent."""
        try:
            return getattr(self._nostr_event, name)
        except AttributeError:
            raise AttributeError(
                f"'{type(self).__name__}' object has no attribute '{name}'"
            ) from None

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def from_json(cls, raw: str) -> Event:
        """Parse a NIP-01 JSON string.

        Raises:
            ValueError: If the SDK rejects the payload or a value contains null bytes.
        """
        try:
            inner = NostrEvent.from_json(raw)
        except NostrSdkError as e:
            raise ValueError(f"invalid event: {e}") from e
        return cls(inner)

    @classmethod
    def from_unsigned(cls, unsigned: UnsignedEvent, event_id: str, sig: str) -> Event:
        """Attach *event_id* and *sig* to a ``nostr_sdk.UnsignedEvent``."""
        data = json.loads(unsigned.as_json())
        data["id"] = event_id
        data["sig"] = sig
        return cls.from_json(json.dumps(data, ensure_ascii=False))

    @property
    def nostr_event(self) -> NostrEvent:
        """The wrapped ``nostr_sdk.Event``, as handed to the relay client."""
        return self._nostr_event

    # -------------------------------------------------------------------------
    # Tag Access
    # -------------------------------------------------------------------------

    def tag_values(self, name: str) -> list[str]:
        """Return the first value of every tag row named *name* (rows without a value are skipped)."""
        return [t[1] for t in self.tags if t[0] == name and len(t) > 1]

    def first_tag(self, name: str) -> tuple[str, ...] | None:
        """Return the first tag row named *name* that carries a value, or ``None``."""
        for t in self.tags:
            if t[0] == name and len(t) > 1:
                return t
        return None

    def marked_tag(self, name: str, marker: str) -> tuple[str, ...] | None:
        """Return the first tag row named *name* whose NIP-10 marker (index 3) equals *marker*."""
        for t in self.tags:
            if t[0] == name and len(t) > 3 and t[3] == marker:  # noqa: PLR2004
                return t
        return None
