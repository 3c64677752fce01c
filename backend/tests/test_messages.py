"""Tests for MessageStore: read tracking, acknowledgement expiry and TTL."""
import pytest

from burnchat.chat.errors import EmptyOrTooLong
from burnchat.chat.messages import MessageStore

T0 = 1_700_000_000.0
GRACE = 2.0


@pytest.fixture
def store():
    return MessageStore("123", max_length=500)


class TestAppend:
    def test_author_has_seen_own_message(self, store):
        message = store.append("alice", "Alice", "hi", T0)
        assert message.viewedBy == {"alice"}
        assert message.isExpired is False
        assert message.createdAt == T0
        assert len(store) == 1

    def test_text_is_trimmed(self, store):
        assert store.append("alice", "Alice", "  hi  ", T0).text == "hi"

    def test_seq_increases(self, store):
        first = store.append("alice", "Alice", "one", T0)
        second = store.append("bob", "Bob", "two", T0)
        assert second.seq == first.seq + 1

    def test_empty_rejected(self, store):
        with pytest.raises(EmptyOrTooLong):
            store.append("alice", "Alice", "   ", T0)
        assert len(store) == 0

    def test_length_boundary(self, store):
        store.append("alice", "Alice", "x" * 500, T0)
        with pytest.raises(EmptyOrTooLong):
            store.append("alice", "Alice", "x" * 501, T0)
        assert len(store) == 1


class TestMarkViewed:
    def test_adds_viewer_to_every_live_message(self, store):
        store.append("alice", "Alice", "one", T0)
        store.append("alice", "Alice", "two", T0)
        changed = store.mark_viewed("bob")
        assert len(changed) == 2
        assert all(m.viewedBy == {"alice", "bob"} for m in store.messages())

    def test_idempotent(self, store):
        store.append("alice", "Alice", "one", T0)
        store.mark_viewed("bob")
        assert store.mark_viewed("bob") == []
        assert store.messages()[0].viewedBy == {"alice", "bob"}

    def test_expired_messages_are_frozen(self, store):
        store.append("alice", "Alice", "one", T0)
        store.mark_viewed("bob")
        store.sweep_expiry({"alice", "bob"}, T0)
        store.mark_viewed("carol")
        assert "carol" not in store.messages()[0].viewedBy


class TestSweepExpiry:
    def test_flags_when_all_active_have_seen(self, store):
        store.append("alice", "Alice", "hi", T0)
        store.mark_viewed("bob")
        flagged = store.sweep_expiry({"alice", "bob"}, T0 + 1)
        assert len(flagged) == 1
        assert flagged[0].isExpired is True
        assert flagged[0].expiredAt == T0 + 1

    def test_waits_for_unseen_participant(self, store):
        store.append("alice", "Alice", "hi", T0)
        assert store.sweep_expiry({"alice", "bob"}, T0) == []
        assert store.messages()[0].isExpired is False

    def test_lone_participant_never_burns(self, store):
        store.append("alice", "Alice", "hi", T0)
        assert store.sweep_expiry({"alice"}, T0) == []
        assert store.sweep_expiry(set(), T0) == []

    def test_departed_viewer_does_not_block(self, store):
        # Bob saw it and left; Alice and Carol remain and both have seen it.
        store.append("alice", "Alice", "hi", T0)
        store.mark_viewed("bob")
        store.mark_viewed("carol")
        assert len(store.sweep_expiry({"alice", "carol"}, T0)) == 1

    def test_does_not_reflag(self, store):
        store.append("alice", "Alice", "hi", T0)
        store.mark_viewed("bob")
        store.sweep_expiry({"alice", "bob"}, T0)
        assert store.sweep_expiry({"alice", "bob"}, T0 + 1) == []
        assert store.messages()[0].expiredAt == T0


class TestRemoval:
    def test_remove(self, store):
        message = store.append("alice", "Alice", "hi", T0)
        assert store.remove(message.id) is message
        assert store.remove(message.id) is None
        assert store.get(message.id) is None

    def test_purge_expired_respects_grace(self, store):
        store.append("alice", "Alice", "hi", T0)
        store.mark_viewed("bob")
        store.sweep_expiry({"alice", "bob"}, T0)

        assert store.purge_expired(T0 + 1, GRACE) == []
        assert len(store.purge_expired(T0 + GRACE, GRACE)) == 1
        assert len(store) == 0

    def test_ttl_prunes_regardless_of_views(self, store):
        old = store.append("alice", "Alice", "old", T0 - 25 * 3600)
        fresh = store.append("alice", "Alice", "fresh", T0 - 3600)
        pruned = store.prune_by_ttl(24, T0)
        assert [m.id for m in pruned] == [old.id]
        assert [m.id for m in store.messages()] == [fresh.id]


class TestSnapshot:
    def test_view_counts(self, store):
        store.append("alice", "Alice", "hi", T0)
        store.mark_viewed("bob")
        view = store.snapshot(T0, 3, GRACE)[0]
        assert view.viewedBy == ["alice", "bob"]
        assert view.viewCount == 2
        assert view.totalParticipants == 3
        assert view.expiresAt is None

    def test_expired_message_visible_during_grace(self, store):
        store.append("alice", "Alice", "hi", T0)
        store.mark_viewed("bob")
        store.sweep_expiry({"alice", "bob"}, T0)

        views = store.snapshot(T0 + 1, 2, GRACE)
        assert len(views) == 1
        assert views[0].isExpired is True
        assert views[0].expiresAt == T0 + GRACE

    def test_expired_message_hidden_after_grace(self, store):
        store.append("alice", "Alice", "hi", T0)
        store.mark_viewed("bob")
        store.sweep_expiry({"alice", "bob"}, T0)
        assert store.snapshot(T0 + GRACE, 2, GRACE) == []

    def test_order_is_send_order(self, store):
        for text in ("a", "b", "c"):
            store.append("alice", "Alice", text, T0)
        assert [v.text for v in store.snapshot(T0, 1, GRACE)] == ["a", "b", "c"]
