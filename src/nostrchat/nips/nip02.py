"""NIP-02 contact list (kind 3) decoding.

Each ``p`` row has the form ``["p", <pubkey>, <relay url>, <petname>]`` where
the last two entries are optional and may be empty strings. Rows whose key
is not a valid hex public key are skipped; duplicates keep their first
occurrence.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from nostrchat.models.directory import Contact


if TYPE_CHECKING:
    from nostrchat.models.event import Event


_RELAY_INDEX = 2
_PETNAME_INDEX = 3


def _optional(row: tuple[str, ...], index: int) -> str | None:
    if len(row) > index and row[index].strip():
        return row[index].strip()
    return None


def decode_contacts(event: Event) -> tuple[Contact, ...]:
    """Return the contacts listed in a kind-3 event, in tag order."""
    contacts: dict[str, Contact] = {}
    for row in event.tags:
        if row[0] != "p" or len(row) < 2:  # noqa: PLR2004
            continue
        pubkey = row[1]
        if pubkey in contacts:
            continue
        try:
            contacts[pubkey] = Contact(
                pubkey=pubkey,
                relay=_optional(row, _RELAY_INDEX),
                petname=_optional(row, _PETNAME_INDEX),
            )
        except (TypeError, ValueError):
            continue
    return tuple(contacts.values())
