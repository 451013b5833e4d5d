"""NIP-25 reactions (kind 7).

The reacted-to event is the last ``e`` tag; content is the emoji, with
``+`` conventionally meaning a like. An empty content is read as ``+``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from nostrchat.models.event import Event


def reaction_target(event: Event) -> str:
    """Return the id of the event a reaction targets.

    Raises:
        ValueError: If the reaction has no ``e`` tag.
    """
    targets = event.tag_values("e")
    if not targets:
        raise ValueError("reaction has no e tag")
    return targets[-1]


def reaction_emoji(event: Event) -> str:
    return event.content.strip() or "+"
