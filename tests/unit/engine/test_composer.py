"""
Unit tests for engine.composer module.

Tests:
- compose() kinds, tags and signatures per intent
- Empty text rejected before echo or publish
- publish(): echo first, PublishingError keeps the echo, retry via publish_event()
- MentionResolver split/lookup order and failures
"""

import json
from unittest.mock import AsyncMock

import pytest
from prometheus_client import REGISTRY

from nostrchat.core.exceptions import PublishingError, RecipientNotFoundError
from nostrchat.engine.composer import (
    ChannelCreate,
    ChannelPost,
    DirectMessage,
    EventComposer,
    MentionResolver,
    Post,
    ProfileUpdate,
    Reaction,
    TypingPulse,
)
from nostrchat.engine.reducers import ContactDirectory, ProfileDirectory
from nostrchat.models import Contact, EventKind, Message, Profile
from nostrchat.nips import decode_channel


RELAYS = ("wss://relay.one.example", "wss://relay.two.example")
T0 = 1_700_000_000
CHANNEL = "c" * 64
TARGET = "d" * 64


def _published(outcome):
    return (
        REGISTRY.get_sample_value("nostrchat_events_published_total", {"outcome": outcome}) or 0.0
    )


def _hex_only(text):
    text = text.strip().lower()
    if len(text) == 64 and all(c in "0123456789abcdef" for c in text):
        return text
    return None


@pytest.fixture
def echoed():
    return []


@pytest.fixture
def composer(alice, crypto, transport, clock, echoed):
    return EventComposer(alice, crypto, transport, RELAYS, echo=echoed.append, clock=clock)


# ============================================================================
# compose
# ============================================================================


class TestCompose:
    def test_post(self, composer, alice):
        event = composer.compose(Post("gm"))
        assert event.kind == EventKind.TEXT_NOTE
        assert event.pubkey == alice.pubkey
        assert event.created_at == T0
        assert len(event.sig) == 128
        assert event.verify()

    def test_direct_message_encrypted(self, composer, bob, crypto):
        event = composer.compose(DirectMessage(bob.pubkey, "psst"))
        assert event.kind == EventKind.ENCRYPTED_DM
        assert event.tags == (("p", bob.pubkey),)
        assert event.content != "psst"
        assert crypto.decrypt(event.content, bob.secret, event.pubkey) == "psst"

    def test_channel_post_with_relay_hint(self, composer):
        event = composer.compose(ChannelPost(CHANNEL, "hi", reply_to=TARGET))
        assert event.tags[0] == ("e", CHANNEL, RELAYS[0], "root")
        assert Message.from_event(event).reply_to == TARGET

    def test_reaction_blank_emoji(self, composer, bob):
        event = composer.compose(Reaction(TARGET, " ", bob.pubkey))
        assert event.content == "+"
        assert event.tags == (("e", TARGET), ("p", bob.pubkey))

    def test_typing_pulse(self, composer):
        assert composer.compose(TypingPulse()).kind == EventKind.TYPING

    def test_profile_update(self, composer):
        event = composer.compose(ProfileUpdate(name="alice", about=""))
        assert event.kind == EventKind.SET_METADATA
        assert json.loads(event.content) == {"name": "alice"}

    def test_channel_create_lists_relays(self, composer):
        channel = decode_channel(composer.compose(ChannelCreate("dev")))
        assert channel.name == "dev"
        assert channel.relays == RELAYS

    @pytest.mark.parametrize(
        "intent",
        [Post(""), Post("   "), DirectMessage("b" * 64, ""), ChannelPost(CHANNEL, "\n")],
    )
    def test_empty_text(self, composer, intent):
        with pytest.raises(ValueError, match="empty"):
            composer.compose(intent)

    def test_unknown_intent(self, composer):
        with pytest.raises(TypeError):
            composer.compose("not an intent")


# ============================================================================
# publish
# ============================================================================


class TestPublish:
    @pytest.mark.asyncio
    async def test_echo_then_publish(self, composer, transport, echoed):
        before = _published("accepted")
        result = await composer.publish(Post("gm"))

        assert result.ok
        assert echoed == transport.published
        assert result.event_id == echoed[0].id
        assert _published("accepted") == before + len(RELAYS)

    @pytest.mark.asyncio
    async def test_failure_keeps_echo(self, composer, transport, echoed):
        transport.accept = False
        before = _published("rejected")

        with pytest.raises(PublishingError) as exc_info:
            await composer.publish(Post("gm"))

        assert len(echoed) == 1
        assert exc_info.value.event_id == echoed[0].id
        assert exc_info.value.failed == dict.fromkeys(RELAYS, "blocked")
        assert _published("rejected") == before + len(RELAYS)

        transport.accept = True
        result = await composer.publish_event(echoed[0])
        assert result.ok
        assert len(echoed) == 1

    @pytest.mark.asyncio
    async def test_empty_text_nothing_sent(self, composer, transport, echoed):
        with pytest.raises(ValueError):
            await composer.publish(Post(" "))
        assert echoed == []
        assert transport.published == []


# ============================================================================
# Mentions
# ============================================================================


class TestMentionSplit:
    def test_split(self):
        assert MentionResolver.split("  @bob   hello there ") == ("bob", "hello there")

    def test_no_body(self):
        assert MentionResolver.split("@bob") == ("bob", "")

    @pytest.mark.parametrize("text", ["hello", "@", "@ bob hi", ""])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            MentionResolver.split(text)


class TestMentionResolve:
    @pytest.fixture
    def profiles(self):
        return ProfileDirectory()

    @pytest.fixture
    def contacts(self, alice):
        return ContactDirectory(alice.pubkey)

    @pytest.mark.asyncio
    async def test_hex_key(self, profiles, contacts, bob):
        resolver = MentionResolver(profiles, contacts, parse_key=_hex_only)
        assert await resolver.resolve(f"@{bob.pubkey} hi") == (bob.pubkey, "hi")

    @pytest.mark.asyncio
    async def test_petname_before_profile(self, profiles, contacts, alice, bob, eve):
        contacts.apply(alice.pubkey, 1, [Contact(bob.pubkey, petname="Sam")])
        profiles.apply(Profile(eve.pubkey, 1, name="sam"))
        resolver = MentionResolver(profiles, contacts, parse_key=_hex_only)
        assert await resolver.resolve("@sam hi") == (bob.pubkey, "hi")

    @pytest.mark.asyncio
    async def test_profile_name(self, profiles, contacts, eve):
        profiles.apply(Profile(eve.pubkey, 1, display_name="Eve"))
        resolver = MentionResolver(profiles, contacts, parse_key=_hex_only)
        assert await resolver.resolve("@EVE hi") == (eve.pubkey, "hi")

    @pytest.mark.asyncio
    async def test_nip05_lookup(self, profiles, contacts, bob):
        nip05 = AsyncMock()
        nip05.resolve_well_known.return_value = bob.pubkey
        resolver = MentionResolver(profiles, contacts, nip05, parse_key=_hex_only)

        assert await resolver.resolve("@Bob@Example.com yo") == (bob.pubkey, "yo")
        nip05.resolve_well_known.assert_awaited_once_with("bob", "example.com")

    @pytest.mark.asyncio
    async def test_not_found(self, profiles, contacts):
        nip05 = AsyncMock()
        nip05.resolve_well_known.return_value = None
        resolver = MentionResolver(profiles, contacts, nip05, parse_key=_hex_only)
        with pytest.raises(RecipientNotFoundError) as exc_info:
            await resolver.resolve("@ghost@example.com boo")
        assert exc_info.value.identifier == "ghost@example.com"

    @pytest.mark.asyncio
    async def test_empty_body(self, profiles, contacts, bob):
        resolver = MentionResolver(profiles, contacts, parse_key=_hex_only)
        with pytest.raises(ValueError, match="empty"):
            await resolver.resolve(f"@{bob.pubkey}")
