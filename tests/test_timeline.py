"""
Tests for the timeline merge engine

Covers the merge laws (idempotence, batch-order commutativity, read
stickiness, unread consistency), the scroll anchor, read operations and
the new-posts buffer.
"""

import json
import threading
from dataclasses import replace

import timeline as timeline_module
from cache import MemoryStore
from diagnostics import Diagnostics
from errors import AnchorNotFound
from models import Platform, TimelineState
from timeline import (
    TimelineBuffer,
    UnifiedTimeline,
    mark_all_read,
    mark_read,
    mark_unread,
    merge,
    remove,
)


def assert_unread_consistent(state):
    assert state.unread_count == sum(1 for e in state.entries if not e.is_read)


class TestMergeLaws:
    """Algebraic properties of merge"""

    def test_idempotent(self, make_entry):
        start = merge(TimelineState(), [make_entry("1", 1), make_entry("2", 2, is_read=True)])
        batch = [make_entry("2", 2), make_entry("3", 3)]

        once = merge(start, batch)
        twice = merge(once, batch)

        assert twice == once

    def test_batch_order_commutes(self, make_entry):
        start = merge(TimelineState(), [make_entry("1", 1)])
        b1 = [make_entry("2", 5), make_entry("3", 3)]
        b2 = [make_entry("4", 4), make_entry("3", 3)]

        assert merge(merge(start, b1), b2) == merge(merge(start, b2), b1)

    def test_content_from_last_applied_batch_wins(self, make_entry):
        """Same identity, different content: the later merge call decides"""
        old = make_entry("1", 1, text="before edit")
        new = make_entry("1", 1, text="after edit")

        assert merge(merge(TimelineState(), [old]), [new]).entries[0].post.text == "after edit"
        assert merge(merge(TimelineState(), [new]), [old]).entries[0].post.text == "before edit"

    def test_equal_timestamps_tie_break_on_identity(self, make_entry):
        state = merge(TimelineState(), [make_entry("b", 0), make_entry("a", 0), make_entry("c", 0)])

        assert [e.post.native_id for e in state.entries] == ["a", "b", "c"]

    def test_read_state_is_sticky(self, make_entry):
        state = mark_read(merge(TimelineState(), [make_entry("1", 1)]), make_entry("1").id)

        refreshed = merge(state, [make_entry("1", 1, text="edited", is_read=False)])

        assert refreshed.entry(make_entry("1").id).is_read is True
        assert refreshed.entry(make_entry("1").id).post.text == "edited"

    def test_no_duplicate_identities(self, make_entry):
        state = merge(TimelineState(), [make_entry("1", 1), make_entry("1", 1), make_entry("2", 2)])

        assert len(state.ids) == len(set(state.ids)) == 2

    def test_unread_count_consistent_after_every_operation(self, make_entry):
        state = merge(TimelineState(), [make_entry(str(i), i) for i in range(5)])
        assert_unread_consistent(state)
        state = mark_read(state, make_entry("2").id)
        assert_unread_consistent(state)
        state = mark_unread(state, make_entry("2").id)
        assert_unread_consistent(state)
        state = merge(state, [make_entry("9", 9)])
        assert_unread_consistent(state)
        state = remove(state, [make_entry("0").id])
        assert_unread_consistent(state)
        state = mark_all_read(state)
        assert state.unread_count == 0

    def test_boost_and_original_are_separate_entries(self, make_entry):
        original = make_entry("1", 1)
        boost = make_entry("1", 1, boosted_by="carol")

        state = merge(TimelineState(), [original, boost])

        assert len(state) == 2
        assert state.entries[0].post.id == state.entries[1].post.id


class TestMergeScenarios:
    """Worked examples"""

    def test_refetched_entry_keeps_read_flag_and_new_entry_goes_on_top(self, make_entry):
        a = make_entry("A", 10, is_read=True)
        b = make_entry("B", 5, is_read=True)
        state = merge(TimelineState(), [a, b])

        a_prime = make_entry("A", 10, text="A prime")
        c = make_entry("C", 20)
        result = merge(state, [a_prime, c], preserve_position=False)

        assert [e.post.native_id for e in result.entries] == ["C", "A", "B"]
        assert result.entry(a.id).post.text == "A prime"
        assert result.entry(a.id).is_read is True
        assert result.unread_count == 1

    def test_partial_batch_keeps_unsent_anchor(self, make_entry):
        timeline = UnifiedTimeline()
        timeline.merge([make_entry("A", 10), make_entry("B", 5)])
        timeline.save_scroll_position(make_entry("B").id)

        state = timeline.merge([make_entry("A", 10), make_entry("C", 20)], preserve_position=True)

        assert make_entry("B").id in state
        assert state.scroll_anchor_id == make_entry("B").id
        assert state.restore_anchor_id == make_entry("B").id

    def test_full_replace_drops_missing_entries(self, make_entry):
        state = merge(TimelineState(), [make_entry("A", 10, is_read=True), make_entry("B", 5)])

        replaced = merge(state, [make_entry("A", 10), make_entry("C", 20)], replace_all=True)

        assert [e.post.native_id for e in replaced.entries] == ["C", "A"]
        assert replaced.entry(make_entry("A").id).is_read is True

    def test_lost_anchor_falls_back_to_top(self, make_entry):
        diagnostics = Diagnostics()
        seen = []
        diagnostics.add_listener(seen.append)
        state = merge(TimelineState(), [make_entry("A", 10), make_entry("B", 5)])
        state = replace(remove(state, [make_entry("B").id]), scroll_anchor_id=make_entry("B").id)

        result = merge(state, [make_entry("C", 20)], preserve_position=True, diagnostics=diagnostics)

        assert result.scroll_anchor_id is None
        assert result.restore_anchor_id is None
        assert diagnostics.count(AnchorNotFound) == 1
        assert seen[0].anchor_id == make_entry("B").id

    def test_merge_without_preserve_position_leaves_anchor(self, make_entry):
        state = replace(merge(TimelineState(), [make_entry("A", 10)]), scroll_anchor_id="gone")

        result = merge(state, [make_entry("C", 20)])

        assert result.scroll_anchor_id == "gone"
        assert result.restore_anchor_id is None

    def test_last_known_top_tracks_newest(self, make_entry):
        state = merge(TimelineState(), [make_entry("A", 10)])
        state = merge(state, [make_entry("C", 20)])

        assert state.last_known_top_id == make_entry("C").id

    def test_empty_batch_is_noop(self, make_entry):
        state = merge(TimelineState(), [make_entry("A", 10)])
        assert merge(state, []) == state

    def test_mixed_platforms_interleave_by_time(self, make_entry):
        state = merge(TimelineState(), [
            make_entry("m1", 1),
            make_entry("b1", 2, platform=Platform.BLUESKY),
            make_entry("m2", 3),
        ])

        assert [e.post.platform for e in state.entries] == [Platform.MASTODON, Platform.BLUESKY, Platform.MASTODON]


class TestReadOperations:
    """mark_read / mark_unread / mark_all_read / remove"""

    def test_mark_unknown_id_is_noop(self, make_entry):
        state = merge(TimelineState(), [make_entry("A", 1)])
        assert mark_read(state, "mastodon:nobody:1") is state

    def test_mark_read_twice_is_noop(self, make_entry):
        state = mark_read(merge(TimelineState(), [make_entry("A", 1)]), make_entry("A").id)
        assert mark_read(state, make_entry("A").id) is state

    def test_remove_unknown_is_noop(self, make_entry):
        state = merge(TimelineState(), [make_entry("A", 1)])
        assert remove(state, ["x"]) is state


class TestUnifiedTimeline:
    """Stateful wrapper"""

    def test_concurrent_merges_all_land(self, make_entry):
        timeline = UnifiedTimeline()
        batches = [[make_entry(f"{n}-{i}", n * 10 + i) for i in range(10)] for n in range(8)]
        threads = [threading.Thread(target=timeline.merge, args=(batch,)) for batch in batches]

        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(timeline.entries) == 80
        assert timeline.unread_count == 80

    def test_scroll_position(self, make_entry):
        timeline = UnifiedTimeline()
        timeline.save_scroll_position("not-loaded-yet")
        assert timeline.get_restore_scroll_position() == "not-loaded-yet"

        timeline.clear_scroll_position()

        assert timeline.get_restore_scroll_position() is None

    def test_reset(self, make_entry):
        timeline = UnifiedTimeline()
        timeline.merge([make_entry("A", 1)])
        timeline.reset()
        assert len(timeline.state) == 0


class TestTimelinePersistence:
    """Read marks and scroll position survive a restart"""

    def test_read_marks_survive_restart(self, make_entry):
        store = MemoryStore()
        timeline = UnifiedTimeline(store=store)
        timeline.merge([make_entry("A", 1), make_entry("B", 2)])
        timeline.mark_read(make_entry("A").id)

        restarted = UnifiedTimeline(store=store)
        state = restarted.merge([make_entry("A", 1), make_entry("B", 2)])

        assert state.entry(make_entry("A").id).is_read is True
        assert state.entry(make_entry("B").id).is_read is False
        assert state.unread_count == 1

    def test_mark_all_read_and_unread_are_saved(self, make_entry):
        store = MemoryStore()
        timeline = UnifiedTimeline(store=store)
        timeline.merge([make_entry("A", 1), make_entry("B", 2)])
        timeline.mark_all_read()
        timeline.mark_unread(make_entry("B").id)

        restarted = UnifiedTimeline(store=store)

        assert restarted.read_ids == frozenset({make_entry("A").id})
        assert json.loads(store.load("timeline_read_posts").decode("utf-8")) == [make_entry("A").id]

    def test_scroll_position_survives_restart(self, make_entry):
        store = MemoryStore()
        timeline = UnifiedTimeline(store=store)
        timeline.save_scroll_position(make_entry("B").id)

        restarted = UnifiedTimeline(store=store)
        assert restarted.get_restore_scroll_position() == make_entry("B").id

        state = restarted.merge([make_entry("A", 1), make_entry("B", 2), make_entry("C", 3)], preserve_position=True)
        assert state.restore_anchor_id == make_entry("B").id

    def test_cleared_scroll_position_is_not_restored(self, make_entry):
        store = MemoryStore()
        timeline = UnifiedTimeline(store=store)
        timeline.save_scroll_position(make_entry("B").id)
        timeline.clear_scroll_position()

        assert UnifiedTimeline(store=store).get_restore_scroll_position() is None

    def test_lost_anchor_is_not_restored(self, make_entry):
        store = MemoryStore()
        timeline = UnifiedTimeline(store=store)
        timeline.save_scroll_position("gone")

        timeline.merge([make_entry("A", 1)], preserve_position=True)

        assert store.load("timeline_scroll_position") is None

    def test_reset_forgets_saved_state(self, make_entry):
        store = MemoryStore()
        timeline = UnifiedTimeline(store=store)
        timeline.merge([make_entry("A", 1)])
        timeline.mark_read(make_entry("A").id)
        timeline.save_scroll_position(make_entry("A").id)

        timeline.reset()

        restarted = UnifiedTimeline(store=store)
        assert restarted.read_ids == frozenset()
        assert restarted.get_restore_scroll_position() is None

    def test_unreadable_read_marks_are_ignored(self, make_entry):
        store = MemoryStore()
        store.save("timeline_read_posts", b"{oops")

        timeline = UnifiedTimeline(store=store)

        assert timeline.merge([make_entry("A", 1)]).unread_count == 1

    def test_read_marks_are_capped(self, make_entry, monkeypatch):
        monkeypatch.setattr(timeline_module, "MAX_READ_IDS", 2)
        store = MemoryStore()
        timeline = UnifiedTimeline(store=store)
        timeline.merge([make_entry(str(n), n) for n in range(3)])
        for n in range(3):
            timeline.mark_read(make_entry(str(n)).id)

        assert UnifiedTimeline(store=store).read_ids == frozenset({make_entry("1").id, make_entry("2").id})

    def test_pure_merge_applies_read_ids_to_new_entries_only(self, make_entry):
        state = merge(TimelineState(), [make_entry("A", 1)])

        again = merge(state, [make_entry("A", 1), make_entry("B", 2)], read_ids={make_entry("A").id, make_entry("B").id})

        assert again.entry(make_entry("A").id).is_read is False
        assert again.entry(make_entry("B").id).is_read is True


class TestTimelineBuffer:
    """New-posts buffer"""

    def test_append_skips_visible_and_buffered(self, make_entry):
        buffer = TimelineBuffer()
        visible = [make_entry("1").id]

        snapshot = buffer.append([make_entry("1", 1), make_entry("2", 2), make_entry("3", 3, platform=Platform.BLUESKY)], visible)
        again = buffer.append([make_entry("2", 2)], visible)

        assert snapshot.count == 2
        assert snapshot.sources == frozenset({Platform.MASTODON, Platform.BLUESKY})
        assert again is None

    def test_boost_and_original_are_buffered_separately(self, make_entry):
        buffer = TimelineBuffer()

        snapshot = buffer.append([make_entry("1", 1), make_entry("1", 1, boosted_by="carol")], [])

        assert snapshot.count == 2
        assert make_entry("1", boosted_by="carol").id in buffer

    def test_rebuffered_entry_gets_new_content(self, make_entry):
        buffer = TimelineBuffer()
        buffer.append([make_entry("1", 1, text="draft")], [])

        buffer.append([make_entry("1", 1, text="edited")], [])

        assert [e.post.content for e in buffer.drain()] == ["edited"]

    def test_drain_returns_timeline_order_and_empties(self, make_entry):
        buffer = TimelineBuffer()
        buffer.append([make_entry("old", 1), make_entry("new", 9)], [])

        drained = buffer.drain()

        assert [e.post.native_id for e in drained] == ["new", "old"]
        assert buffer.snapshot.count == 0

    def test_remove_visible(self, make_entry):
        buffer = TimelineBuffer()
        buffer.append([make_entry("1", 1), make_entry("2", 2)], [])

        snapshot = buffer.remove_visible([make_entry("1").id])

        assert snapshot.count == 1
        assert snapshot.earliest == make_entry("2", 2).created_at
