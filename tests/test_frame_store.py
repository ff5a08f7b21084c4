"""
FrameStore Tests
================

Ordered, copy-on-write frame collection.
"""

import pytest


class TestFrameStore:
    """Tests for FrameStore reads and writes."""

    def test_insertion_order(self, make_frame):
        from frameperfect.store.frame_store import FrameStore

        frames = [make_frame(timestamp=t) for t in (0.0, 3.0, 6.0)]
        store = FrameStore()
        for frame in frames:
            store.add_frame(frame)

        assert [f.id for f in store.get_all()] == [f.id for f in frames]
        assert len(store) == 3
        assert frames[1].id in store

    def test_insert_first(self, make_frame):
        from frameperfect.store.frame_store import FrameStore

        first, second = make_frame(timestamp=0.0), make_frame(timestamp=1.0)
        store = FrameStore([first])
        store.insert_first(second)
        assert [f.id for f in store.get_all()] == [second.id, first.id]

    def test_duplicate_id_rejected(self, make_frame):
        from frameperfect.store.frame_store import DuplicateFrameError, FrameStore

        frame = make_frame()
        store = FrameStore([frame])
        with pytest.raises(DuplicateFrameError):
            store.add_frame(frame)

    def test_update_is_copy_on_write(self, make_frame):
        """Verify earlier snapshots are unaffected by updates."""
        from frameperfect.store.frame_store import FrameStore

        frame = make_frame()
        store = FrameStore([frame])
        snapshot = store.get_all()

        updated = store.update_frame(frame.id, {"is_selected": True})

        assert updated.is_selected is True
        assert snapshot[0].is_selected is False
        assert store.get(frame.id).is_selected is True

    def test_update_with_callable_sees_current_record(self, make_frame):
        from frameperfect.store.frame_store import FrameStore

        frame = make_frame()
        store = FrameStore([frame])
        toggle = lambda current: {"is_selected": not current.is_selected}

        store.update_frame(frame.id, toggle)
        store.update_frame(frame.id, toggle)
        store.update_frame(frame.id, toggle)
        assert store.get(frame.id).is_selected is True

    def test_update_unknown_id_is_noop(self, make_frame):
        from frameperfect.store.frame_store import FrameStore

        store = FrameStore([make_frame()])
        revision = store.revision
        assert store.update_frame("missing", {"is_selected": True}) is None
        assert store.revision == revision

    def test_update_preserves_position(self, make_frame):
        from frameperfect.store.frame_store import FrameStore

        frames = [make_frame(timestamp=t) for t in (0.0, 1.0, 2.0)]
        store = FrameStore(frames)
        store.update_frame(frames[1].id, {"is_selected": True})
        assert [f.id for f in store.get_all()] == [f.id for f in frames]

    def test_selected(self, make_frame):
        from frameperfect.store.frame_store import FrameStore

        keeper = make_frame(selected=True)
        store = FrameStore([make_frame(), keeper])
        assert store.selected() == [keeper]

    def test_clear(self, make_frame):
        from frameperfect.store.frame_store import FrameStore

        store = FrameStore([make_frame(), make_frame()])
        store.clear()
        assert store.get_all() == []


class TestFrameStoreListeners:
    """Tests for change notification."""

    def test_listener_gets_snapshot_per_mutation(self, make_frame):
        from frameperfect.store.frame_store import FrameStore

        store = FrameStore()
        snapshots = []
        store.subscribe(snapshots.append)

        frame = make_frame()
        store.add_frame(frame)
        store.update_frame(frame.id, {"is_selected": True})
        store.update_frame("missing", {"is_selected": True})

        assert len(snapshots) == 2
        assert snapshots[-1][0].is_selected is True

    def test_update_many_notifies_once(self, make_frame):
        from frameperfect.store.frame_store import FrameStore

        frames = [make_frame() for _ in range(3)]
        store = FrameStore(frames)
        snapshots = []
        store.subscribe(snapshots.append)

        count = store.update_many([f.id for f in frames] + ["missing"], {"is_enhancing": True})

        assert count == 3
        assert len(snapshots) == 1
        assert all(f.is_enhancing for f in store.get_all())

    def test_unsubscribe(self, make_frame):
        from frameperfect.store.frame_store import FrameStore

        store = FrameStore()
        snapshots = []
        unsubscribe = store.subscribe(snapshots.append)
        unsubscribe()
        store.add_frame(make_frame())
        assert snapshots == []
