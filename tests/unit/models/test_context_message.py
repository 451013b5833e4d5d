"""
Unit tests for models.context and models.message.

Tests:
- Context factories, target validation, refs dedup, keys
- Message.from_event routing field extraction
"""

from unittest.mock import MagicMock

import pytest

from nostrchat.models import Context, ContextType, Event, EventKind, Message


PEER = "a" * 64
CHANNEL = "c" * 64
SIG = "f" * 128


def _event(kind, tags=(), content="", pubkey="b" * 64, event_id="d" * 64, created_at=100):
    inner = MagicMock()
    inner.id.return_value.to_hex.return_value = event_id
    inner.author.return_value.to_hex.return_value = pubkey
    inner.created_at.return_value.as_secs.return_value = created_at
    inner.kind.return_value.as_u16.return_value = int(kind)
    tag_mocks = []
    for row in tags:
        tag = MagicMock()
        tag.as_vec.return_value = list(row)
        tag_mocks.append(tag)
    inner.tags.return_value.to_vec.return_value = tag_mocks
    inner.content.return_value = content
    inner.signature.return_value = SIG
    return Event(inner)


# ============================================================================
# Context
# ============================================================================


class TestContext:
    def test_global_key(self):
        assert Context.global_feed().key == "global"

    def test_direct_key(self):
        assert Context.direct(PEER).key == f"direct:{PEER}"

    def test_target_required(self):
        with pytest.raises(TypeError):
            Context(ContextType.CHANNEL)

    def test_invalid_target(self):
        with pytest.raises(ValueError):
            Context.thread("not-hex")

    def test_target_forbidden_for_global(self):
        with pytest.raises(ValueError, match="no target"):
            Context(ContextType.GLOBAL, target=PEER)

    def test_refs_deduplicated_in_order(self):
        ctx = Context.unified([CHANNEL, PEER, CHANNEL])
        assert ctx.refs == (CHANNEL, PEER)

    def test_equal_contexts_hash_equal(self):
        assert {Context.channel(CHANNEL), Context.channel(CHANNEL)} == {Context.channel(CHANNEL)}

    def test_type_coerced_from_string(self):
        assert Context("presence").type is ContextType.PRESENCE

    @pytest.mark.parametrize(
        ("context", "expected"),
        [
            (Context.global_feed(), True),
            (Context.unified([]), True),
            (Context.presence(), False),
            (Context.reactions([PEER]), False),
            (Context.directory(), False),
        ],
    )
    def test_has_messages(self, context, expected):
        assert context.has_messages is expected


# ============================================================================
# Message
# ============================================================================


class TestMessageFromEvent:
    def test_text_note(self):
        message = Message.from_event(_event(EventKind.TEXT_NOTE, content="hi"))
        assert message.content == "hi"
        assert message.is_private is False
        assert message.channel_id is None

    def test_direct_message_recipient_and_plaintext(self):
        event = _event(EventKind.ENCRYPTED_DM, tags=(("p", PEER),), content="cipher")
        message = Message.from_event(event, content="plain")
        assert message.recipient == PEER
        assert message.is_private is True
        assert message.content == "plain"

    def test_channel_post_markers(self):
        parent = "e" * 64
        event = _event(
            EventKind.CHANNEL_MESSAGE,
            tags=(("e", parent, "", "reply"), ("e", CHANNEL, "", "root")),
        )
        message = Message.from_event(event)
        assert message.channel_id == CHANNEL
        assert message.reply_to == parent

    def test_channel_post_without_root_rejected(self):
        with pytest.raises(ValueError, match="no root tag"):
            Message.from_event(_event(EventKind.CHANNEL_MESSAGE, tags=(("e", CHANNEL),)))

    def test_reply_without_root_rejected(self):
        event = _event(EventKind.CHANNEL_MESSAGE, tags=(("e", CHANNEL, "", "reply"),))
        with pytest.raises(ValueError, match="no root tag"):
            Message.from_event(event)

    def test_sort_key(self):
        assert Message.from_event(_event(1, created_at=7)).sort_key == (7, "d" * 64)
