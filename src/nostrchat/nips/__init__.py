"""Nostr Implementation Possibilities: payload decoding and event building.

The NIPs layer sits in the middle of the diamond DAG, depending on
[nostrchat.models][nostrchat.models] and [nostrchat.utils][nostrchat.utils].
Decoders raise ``ValueError`` on malformed payloads; the engine turns that
into a dropped event. Only [Nip05Resolver][nostrchat.nips.nip05.Nip05Resolver]
performs I/O.

Attributes:
    BaseData: Frozen pydantic base for JSON-in-content payloads.
    ProfileData: Kind-0 profile payload (NIP-01).
    ChannelData: Kind-40 channel payload (NIP-28).
    Nip05Resolver: ``local@domain`` to public key lookups (NIP-05).
    event_builders: ``nostr_sdk.EventBuilder`` factories for every outgoing intent.
"""

from nostrchat.nips.base import BaseData
from nostrchat.nips.nip01 import ProfileData, decode_profile
from nostrchat.nips.nip02 import decode_contacts
from nostrchat.nips.nip04 import dm_counterparty, dm_recipient
from nostrchat.nips.nip05 import Nip05Resolver, split_identifier
from nostrchat.nips.nip25 import reaction_emoji, reaction_target
from nostrchat.nips.nip28 import ChannelData, decode_channel


__all__ = [
    "BaseData",
    "ChannelData",
    "Nip05Resolver",
    "ProfileData",
    "decode_channel",
    "decode_contacts",
    "decode_profile",
    "dm_counterparty",
    "dm_recipient",
    "reaction_emoji",
    "reaction_target",
    "split_identifier",
]
