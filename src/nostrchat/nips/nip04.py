"""NIP-04 direct message addressing.

A kind-4 event names its recipient with exactly one ``p`` tag. Encryption
itself lives behind [CryptoProvider][nostrchat.utils.crypto.CryptoProvider];
this module only decides who the two parties of a message are.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from nostrchat.models.constants import HEX_KEY_LENGTH


if TYPE_CHECKING:
    from nostrchat.models.event import Event


def dm_recipient(event: Event) -> str:
    """Return the single recipient of a kind-4 event.

    Raises:
        ValueError: If the event has no ``p`` tag, more than one, or a
            recipient that is not a hex public key.
    """
    recipients = event.tag_values("p")
    if len(recipients) != 1:
        raise ValueError(f"direct message must have exactly one p tag, got {len(recipients)}")
    recipient = recipients[0]
    if len(recipient) != HEX_KEY_LENGTH or recipient != recipient.lower():
        raise ValueError("direct message recipient is not a hex public key")
    try:
        bytes.fromhex(recipient)
    except ValueError as e:
        raise ValueError("direct message recipient is not a hex public key") from e
    return recipient


def dm_counterparty(event: Event, viewer: str) -> str | None:
    """Return the other party of a kind-4 event as seen by *viewer*.

    ``None`` means the viewer is neither author nor recipient and must not
    decrypt the event. A note-to-self yields the viewer.

    Raises:
        ValueError: If the recipient tag is malformed.
    """
    recipient = dm_recipient(event)
    if event.pubkey == viewer:
        return recipient
    if recipient == viewer:
        return event.pubkey
    return None
