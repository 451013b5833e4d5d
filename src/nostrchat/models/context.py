"""Conversational context descriptors.

A [Context][nostrchat.models.context.Context] identifies a view the UI can
be showing (or an auxiliary stream feeding shared state). It is hashable and
serves as the key of the router's subscription registry and of the per-context
message lists and drafts.
"""

from __future__ import annotations

from dataclasses import dataclass

from ._validation import validate_hex
from .constants import HEX_KEY_LENGTH, MESSAGE_CONTEXTS, ContextType


@dataclass(frozen=True, slots=True)
class Context:
    """Immutable context descriptor.

    Attributes:
        type: The [ContextType][nostrchat.models.constants.ContextType].
        target: Peer pubkey (DIRECT), channel id (CHANNEL) or root id (THREAD).
        refs: Known channel ids (UNIFIED), target event ids (REACTIONS) or
            author pubkeys (DIRECTORY). Order is preserved and duplicates removed.

    Use the factory class methods rather than the constructor.
    """

    type: ContextType
    target: str | None = None
    refs: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", ContextType(self.type))
        object.__setattr__(self, "refs", tuple(dict.fromkeys(self.refs)))
        needs_target = self.type in (ContextType.DIRECT, ContextType.CHANNEL, ContextType.THREAD)
        if needs_target:
            validate_hex(self.target, "target", HEX_KEY_LENGTH)
        elif self.target is not None:
            raise ValueError(f"{self.type} context takes no target")
        for ref in self.refs:
            validate_hex(ref, "refs", HEX_KEY_LENGTH)

    @property
    def key(self) -> str:
        """Stable string key, used for draft storage and logging."""
        if self.target is not None:
            return f"{self.type}:{self.target}"
        return str(self.type)

    @property
    def has_messages(self) -> bool:
        """Whether this context owns an ordered message list."""
        return self.type in MESSAGE_CONTEXTS

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    @classmethod
    def global_feed(cls) -> Context:
        return cls(ContextType.GLOBAL)

    @classmethod
    def direct(cls, peer: str) -> Context:
        return cls(ContextType.DIRECT, target=peer)

    @classmethod
    def channel(cls, channel_id: str) -> Context:
        return cls(ContextType.CHANNEL, target=channel_id)

    @classmethod
    def unified(cls, channel_ids: tuple[str, ...] | list[str]) -> Context:
        return cls(ContextType.UNIFIED, refs=tuple(channel_ids))

    @classmethod
    def thread(cls, root_id: str) -> Context:
        return cls(ContextType.THREAD, target=root_id)

    @classmethod
    def reactions(cls, target_ids: tuple[str, ...] | list[str]) -> Context:
        return cls(ContextType.REACTIONS, refs=tuple(target_ids))

    @classmethod
    def presence(cls) -> Context:
        return cls(ContextType.PRESENCE)

    @classmethod
    def directory(cls, authors: tuple[str, ...] | list[str] = ()) -> Context:
        return cls(ContextType.DIRECTORY, refs=tuple(authors))
