"""
Unit tests for engine.reducers module.

Tests:
- merge_message() idempotence and order independence
- accepts() membership rules per context type
- search_messages()
- Profile, contact, channel and reaction reducers
- StarredMessages and DraftCache persistence
"""

import itertools
import json

import pytest

from nostrchat.engine.reducers import (
    STARRED_KEY,
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
from nostrchat.models import Channel, Contact, Context, EventKind, Message, Profile
from nostrchat.utils.storage import MemoryStore


VIEWER = "a" * 64
PEER = "b" * 64
STRANGER = "c" * 64
CHANNEL = "d" * 64
OTHER_CHANNEL = "e" * 64
ROOT = "f" * 64


def _note(msg_id, created_at=1, content="", pubkey=PEER):
    return Message(msg_id, pubkey, created_at, EventKind.TEXT_NOTE, content)


def _dm(msg_id, author, recipient):
    return Message(
        msg_id, author, 1, EventKind.ENCRYPTED_DM, "x", is_private=True, recipient=recipient
    )


def _post(msg_id, channel_id, reply_to=None):
    return Message(
        msg_id, PEER, 1, EventKind.CHANNEL_MESSAGE, "x", channel_id=channel_id, reply_to=reply_to
    )


# ============================================================================
# merge_message
# ============================================================================


class TestMergeMessage:
    def test_duplicate_returns_same_tuple(self):
        messages = merge_message((), _note("1"))
        assert merge_message(messages, _note("1")) is messages

    def test_sorted_by_created_at_then_id(self):
        batch = [_note("b", 2), _note("a", 2), _note("z", 1)]
        messages = ()
        for message in batch:
            messages = merge_message(messages, message)
        assert [m.id for m in messages] == ["z", "a", "b"]

    def test_any_arrival_order_converges(self):
        batch = [_note("1", 5), _note("2", 3), _note("3", 3), _note("2", 3)]
        results = set()
        for order in itertools.permutations(batch):
            messages = ()
            for message in order:
                messages = merge_message(messages, message)
            results.add(tuple(m.id for m in messages))
        assert results == {("2", "3", "1")}


# ============================================================================
# accepts
# ============================================================================


class TestAccepts:
    def test_global(self):
        ctx = Context.global_feed()
        assert accepts(ctx, _note("1"), VIEWER)
        assert accepts(ctx, _dm("2", PEER, VIEWER), VIEWER)
        assert not accepts(ctx, _dm("3", PEER, STRANGER), VIEWER)
        assert not accepts(ctx, _post("4", CHANNEL), VIEWER)

    def test_direct(self):
        ctx = Context.direct(PEER)
        assert accepts(ctx, _dm("1", PEER, VIEWER), VIEWER)
        assert accepts(ctx, _dm("2", VIEWER, PEER), VIEWER)
        assert not accepts(ctx, _dm("3", STRANGER, VIEWER), VIEWER)
        assert not accepts(ctx, _note("4"), VIEWER)

    def test_note_to_self(self):
        assert accepts(Context.direct(VIEWER), _dm("1", VIEWER, VIEWER), VIEWER)

    def test_channel(self):
        ctx = Context.channel(CHANNEL)
        assert accepts(ctx, _post("1", CHANNEL), VIEWER)
        assert not accepts(ctx, _post("2", OTHER_CHANNEL), VIEWER)

    def test_thread(self):
        ctx = Context.thread(ROOT)
        assert accepts(ctx, _post(ROOT, CHANNEL), VIEWER)
        assert accepts(ctx, _post("2", CHANNEL, reply_to=ROOT), VIEWER)
        assert not accepts(ctx, _post("3", CHANNEL), VIEWER)

    def test_unified_uses_snapshot(self):
        ctx = Context.unified([CHANNEL])
        assert accepts(ctx, _note("1"), VIEWER)
        assert accepts(ctx, _post("2", CHANNEL), VIEWER)
        assert not accepts(ctx, _post("3", OTHER_CHANNEL), VIEWER)

    def test_auxiliary_contexts_hold_no_messages(self):
        assert not accepts(Context.presence(), _note("1"), VIEWER)


class TestSearch:
    def test_case_insensitive(self):
        messages = (_note("1", content="Hello Nostr"), _note("2", content="bye"))
        assert [m.id for m in search_messages(messages, "  nostr ")] == ["1"]

    def test_blank_query(self):
        assert search_messages((_note("1", content="x"),), " ") == ()


# ============================================================================
# Directories
# ============================================================================


class TestProfileDirectory:
    def test_latest_wins_regardless_of_order(self):
        old = Profile(PEER, 10, name="old")
        new = Profile(PEER, 20, name="new")
        for order in ((old, new), (new, old)):
            directory = ProfileDirectory()
            for profile in order:
                directory.apply(profile)
            assert directory.get(PEER).name == "new"

    def test_equal_timestamp_keeps_first(self):
        directory = ProfileDirectory()
        assert directory.apply(Profile(PEER, 10, name="first"))
        assert not directory.apply(Profile(PEER, 10, name="second"))
        assert directory.get(PEER).name == "first"

    def test_label_fallback(self):
        directory = ProfileDirectory()
        assert directory.label(PEER) == f"{PEER[:8]}...{PEER[-4:]}"
        directory.apply(Profile(PEER, 1, name="bob", display_name="Bob"))
        assert directory.label(PEER) == "Bob"

    def test_find_newest_match(self):
        directory = ProfileDirectory()
        directory.apply(Profile(PEER, 1, name="sam"))
        directory.apply(Profile(STRANGER, 5, display_name="Sam"))
        assert directory.find("SAM") == STRANGER
        assert directory.find("nobody") is None


class TestContactDirectory:
    def test_only_owner_list(self):
        directory = ContactDirectory(VIEWER)
        assert not directory.apply(PEER, 1, [Contact(STRANGER, petname="x")])
        assert len(directory) == 0

    def test_newer_replaces(self):
        directory = ContactDirectory(VIEWER)
        directory.apply(VIEWER, 5, [Contact(PEER, petname="Bobby")])
        assert not directory.apply(VIEWER, 4, [])
        assert directory.find("bobby") == PEER
        directory.apply(VIEWER, 6, [Contact(STRANGER)])
        assert directory.find("bobby") is None
        assert [c.pubkey for c in directory] == [STRANGER]
        assert directory.created_at == 6


class TestChannelDirectory:
    def test_first_definition_wins(self):
        directory = ChannelDirectory()
        assert directory.add(Channel(CHANNEL, PEER, 1, "first"))
        assert not directory.add(Channel(CHANNEL, STRANGER, 0, "impostor"))
        assert directory.get(CHANNEL).name == "first"

    def test_ids_in_discovery_order(self):
        directory = ChannelDirectory()
        directory.add(Channel(OTHER_CHANNEL, PEER, 2, "b"))
        directory.add(Channel(CHANNEL, PEER, 1, "a"))
        assert directory.ids() == (OTHER_CHANNEL, CHANNEL)
        assert directory.ids(1) == (OTHER_CHANNEL,)
        assert CHANNEL in directory


class TestReactionIndex:
    def test_counts(self):
        index = ReactionIndex()
        index.apply("r1", ROOT, "+", PEER)
        index.apply("r2", ROOT, "+", STRANGER)
        index.apply("r3", ROOT, "🔥", PEER)
        assert index.counts(ROOT) == {"+": 2, "🔥": 1}
        assert index.reactors(ROOT, "+") == {PEER, STRANGER}

    def test_same_reaction_counted_once(self):
        index = ReactionIndex()
        assert index.apply("r1", ROOT, "+", PEER)
        assert not index.apply("r1", ROOT, "+", PEER)
        assert index.counts(ROOT) == {"+": 1}
        assert index.counts("unknown") == {}


# ============================================================================
# Session State
# ============================================================================


class TestStarredMessages:
    def test_toggle_persists(self):
        store = MemoryStore()
        starred = StarredMessages(store)
        message = _note("1", 7, "keep this")

        assert starred.toggle(message) is True
        assert json.loads(store.get(STARRED_KEY)) == [
            {"id": "1", "content": "keep this", "pubkey": PEER, "created_at": 7}
        ]
        assert StarredMessages(store).is_starred("1")

        assert starred.toggle(message) is False
        assert json.loads(store.get(STARRED_KEY)) == []

    @pytest.mark.parametrize("raw", ["{corrupt", '{"id": "1"}', '[1, {"content": "no id"}]'])
    def test_bad_stored_value(self, raw):
        assert len(StarredMessages(MemoryStore({STARRED_KEY: raw}))) == 0


class TestDraftCache:
    def test_set_get_clear(self):
        store = MemoryStore()
        drafts = DraftCache(store)
        ctx = Context.channel(CHANNEL)
        drafts.set(ctx, "half a thought")
        assert drafts.get(ctx) == "half a thought"
        assert store.get(f"draft:channel:{CHANNEL}") == "half a thought"
        drafts.clear(ctx)
        assert drafts.get(ctx) == ""

    def test_blank_removes(self):
        store = MemoryStore()
        drafts = DraftCache(store)
        drafts.set(Context.global_feed(), "x")
        drafts.set(Context.global_feed(), "   ")
        assert "draft:global" not in store
