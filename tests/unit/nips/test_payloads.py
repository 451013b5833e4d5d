"""
Unit tests for the nips payload decoders.

Tests:
- parsing.parse_fields / parse_json_object type filtering
- nip01 profile decoding (aliases, blank fields, malformed content)
- nip02 contact list decoding
- nip04 recipient and counterparty rules
- nip25 reaction target and emoji
- nip28 channel decoding
"""

from unittest.mock import MagicMock

import pytest

from nostrchat.models import Event, EventKind
from nostrchat.nips import (
    ChannelData,
    ProfileData,
    decode_channel,
    decode_contacts,
    decode_profile,
    dm_counterparty,
    dm_recipient,
    reaction_emoji,
    reaction_target,
)
from nostrchat.nips.parsing import FieldSpec, parse_fields, parse_json_object


AUTHOR = "a" * 64
PEER = "b" * 64
OTHER = "c" * 64


def _event(kind, content="", tags=(), pubkey=AUTHOR):
    inner = MagicMock()
    inner.id.return_value.to_hex.return_value = "d" * 64
    inner.author.return_value.to_hex.return_value = pubkey
    inner.created_at.return_value.as_secs.return_value = 100
    inner.kind.return_value.as_u16.return_value = int(kind)
    tag_mocks = []
    for row in tags:
        tag = MagicMock()
        tag.as_vec.return_value = list(row)
        tag_mocks.append(tag)
    inner.tags.return_value.to_vec.return_value = tag_mocks
    inner.content.return_value = content
    inner.signature.return_value = "f" * 128
    return Event(inner)


# ============================================================================
# parsing
# ============================================================================


class TestParseFields:
    SPEC = FieldSpec(
        int_fields=frozenset({"n"}),
        str_fields=frozenset({"s"}),
        str_list_fields=frozenset({"l"}),
        aliases=(("S", "s"),),
    )

    def test_keeps_valid_values(self):
        assert parse_fields({"n": 3, "s": " x ", "l": ["a", " "]}, self.SPEC) == {
            "n": 3,
            "s": "x",
            "l": ["a"],
        }

    def test_drops_wrong_types(self):
        assert parse_fields({"n": True, "s": 5, "l": "nope", "other": 1}, self.SPEC) == {}

    def test_alias_used_when_canonical_missing(self):
        assert parse_fields({"S": "alias"}, self.SPEC) == {"s": "alias"}

    def test_canonical_wins_over_alias(self):
        assert parse_fields({"S": "alias", "s": "canon"}, self.SPEC) == {"s": "canon"}

    def test_parse_json_object(self):
        assert parse_json_object('{"a": 1}') == {"a": 1}

    @pytest.mark.parametrize("content", ["", "[1]", "not json", '"str"'])
    def test_parse_json_object_rejects(self, content):
        with pytest.raises(ValueError):
            parse_json_object(content)


# ============================================================================
# NIP-01
# ============================================================================


class TestProfile:
    def test_decode(self):
        event = _event(0, '{"name": "al", "displayName": "Alice", "nip05": "al@ex.com"}')
        profile = decode_profile(event)
        assert profile.pubkey == AUTHOR
        assert profile.created_at == 100
        assert profile.display_name == "Alice"
        assert profile.nip05 == "al@ex.com"

    def test_bad_field_dropped_not_fatal(self):
        profile = decode_profile(_event(0, '{"name": 42, "about": "hi"}'))
        assert profile.name is None
        assert profile.about == "hi"

    def test_malformed_content(self):
        with pytest.raises(ValueError):
            decode_profile(_event(0, "{broken"))

    def test_to_content_omits_blank(self):
        data = ProfileData.model_validate(ProfileData.parse({"name": " al ", "about": "  "}))
        assert data.to_content() == '{"name":"al"}'


# ============================================================================
# NIP-02
# ============================================================================


class TestContacts:
    def test_decode(self):
        event = _event(
            3,
            tags=(
                ("p", PEER, "wss://r.example", "bobby"),
                ("p", OTHER),
                ("p", "invalid"),
                ("p", PEER, "", "dup"),
                ("t", "x"),
            ),
        )
        contacts = decode_contacts(event)
        assert [c.pubkey for c in contacts] == [PEER, OTHER]
        assert contacts[0].petname == "bobby"
        assert contacts[0].relay == "wss://r.example"
        assert contacts[1].petname is None


# ============================================================================
# NIP-04
# ============================================================================


class TestDirectMessageAddressing:
    def test_recipient(self):
        assert dm_recipient(_event(4, tags=(("p", PEER),))) == PEER

    @pytest.mark.parametrize(
        "tags",
        [(), (("p", PEER), ("p", OTHER)), (("p", "B" * 64),), (("p", "zz"),)],
    )
    def test_malformed_recipient(self, tags):
        with pytest.raises(ValueError):
            dm_recipient(_event(4, tags=tags))

    def test_counterparty_as_author(self):
        assert dm_counterparty(_event(4, tags=(("p", PEER),)), AUTHOR) == PEER

    def test_counterparty_as_recipient(self):
        assert dm_counterparty(_event(4, tags=(("p", PEER),)), PEER) == AUTHOR

    def test_counterparty_out_of_scope(self):
        assert dm_counterparty(_event(4, tags=(("p", PEER),)), OTHER) is None

    def test_note_to_self(self):
        assert dm_counterparty(_event(4, tags=(("p", AUTHOR),)), AUTHOR) == AUTHOR


# ============================================================================
# NIP-25
# ============================================================================


class TestReaction:
    def test_target_is_last_e_tag(self):
        event = _event(7, "🔥", tags=(("e", PEER), ("e", OTHER)))
        assert reaction_target(event) == OTHER
        assert reaction_emoji(event) == "🔥"

    def test_blank_emoji_is_like(self):
        assert reaction_emoji(_event(7, " ", tags=(("e", PEER),))) == "+"

    def test_missing_target(self):
        with pytest.raises(ValueError):
            reaction_target(_event(7, "+"))


# ============================================================================
# NIP-28
# ============================================================================


class TestChannel:
    def test_decode(self):
        event = _event(40, '{"name": "dev", "about": "talk", "relays": ["wss://r.example"]}')
        channel = decode_channel(event)
        assert channel.id == event.id
        assert channel.creator == AUTHOR
        assert channel.name == "dev"
        assert channel.relays == ("wss://r.example",)

    @pytest.mark.parametrize("content", ['{"about": "no name"}', '{"name": "  "}', "nope"])
    def test_invalid(self, content):
        with pytest.raises(ValueError):
            decode_channel(_event(40, content))

    def test_channel_data_to_content(self):
        data = ChannelData(name="dev", relays=["wss://r.example"])
        assert data.to_content() == '{"name":"dev","relays":["wss://r.example"]}'
