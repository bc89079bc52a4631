"""
Tests for the per-attendee ranking store.
"""

import threading

import pytest

from votebeats.db.models import Ranking, SongRequest
from votebeats.exceptions import (
    AlreadyRanked, DepthExceeded, InvalidPermutation, NotRankable,
    UnknownEvent, UnknownRequest
)
from votebeats.services.ranking_store import AttendeeRankingStore
from conftest import EVENT_ID


def _positions(db, attendee_id):
    rows = db.query(Ranking).filter(
        Ranking.event_id == EVENT_ID,
        Ranking.participant_id == attendee_id
    ).order_by(Ranking.position).all()
    return [(row.request_id, row.position) for row in rows]


def _set_status(db, request_id, status):
    db.query(SongRequest).filter(SongRequest.id == request_id).update({"status": status})
    db.commit()


class TestAdd:
    """Test adding songs to a ranking."""

    def test_appends_in_order(self, db, store, make_requests):
        make_requests("A", "B")
        store.add(db, EVENT_ID, "att-1", "A")
        result = store.add(db, EVENT_ID, "att-1", "B")

        assert result == ["A", "B"]
        assert _positions(db, "att-1") == [("A", 1), ("B", 2)]

    def test_insert_at_position(self, db, store, make_requests):
        make_requests("A", "B", "C")
        store.add(db, EVENT_ID, "att-1", "A")
        store.add(db, EVENT_ID, "att-1", "B")
        result = store.add(db, EVENT_ID, "att-1", "C", position=1)

        assert result == ["C", "A", "B"]
        assert _positions(db, "att-1") == [("C", 1), ("A", 2), ("B", 3)]

    def test_insert_position_clamped(self, db, store, make_requests):
        make_requests("A", "B")
        store.add(db, EVENT_ID, "att-1", "A")

        assert store.add(db, EVENT_ID, "att-1", "B", position=9) == ["A", "B"]

    def test_depth_exceeded(self, db, store, make_requests):
        """Event depth is 3; the fourth add fails and leaves the list intact."""
        make_requests("A", "B", "C", "D")
        for request_id in ("A", "B", "C"):
            store.add(db, EVENT_ID, "att-1", request_id)

        with pytest.raises(DepthExceeded):
            store.add(db, EVENT_ID, "att-1", "D")
        assert store.get(db, EVENT_ID, "att-1") == ["A", "B", "C"]

    def test_depth_is_per_attendee(self, db, store, make_requests):
        make_requests("A", "B", "C", "D")
        for request_id in ("A", "B", "C"):
            store.add(db, EVENT_ID, "att-1", request_id)

        assert store.add(db, EVENT_ID, "att-2", "D") == ["D"]

    def test_already_ranked(self, db, store, make_requests):
        make_requests("A")
        store.add(db, EVENT_ID, "att-1", "A")

        with pytest.raises(AlreadyRanked):
            store.add(db, EVENT_ID, "att-1", "A")
        assert _positions(db, "att-1") == [("A", 1)]

    def test_not_rankable(self, db, store, make_requests):
        make_requests("P", status="played")

        with pytest.raises(NotRankable):
            store.add(db, EVENT_ID, "att-1", "P")

    def test_queued_is_rankable(self, db, store, make_requests):
        make_requests("Q", status="queued")

        assert store.add(db, EVENT_ID, "att-1", "Q") == ["Q"]

    def test_unknown_request(self, db, store, event):
        with pytest.raises(UnknownRequest):
            store.add(db, EVENT_ID, "att-1", "missing")

    def test_unknown_event(self, db, store):
        with pytest.raises(UnknownEvent):
            store.add(db, "no-such-event", "att-1", "A")


class TestRemove:
    """Test removing songs from a ranking."""

    def test_remove_renumbers(self, db, store, make_requests):
        make_requests("A", "B", "C")
        for request_id in ("A", "B", "C"):
            store.add(db, EVENT_ID, "att-1", request_id)

        result = store.remove(db, EVENT_ID, "att-1", "A")

        assert result == ["B", "C"]
        assert _positions(db, "att-1") == [("B", 1), ("C", 2)]

    def test_remove_absent_is_noop(self, db, store, make_requests):
        make_requests("A")
        store.add(db, EVENT_ID, "att-1", "A")

        assert store.remove(db, EVENT_ID, "att-1", "B") == ["A"]

    def test_remove_frees_a_slot(self, db, store, make_requests):
        make_requests("A", "B", "C", "D")
        for request_id in ("A", "B", "C"):
            store.add(db, EVENT_ID, "att-1", request_id)
        store.remove(db, EVENT_ID, "att-1", "B")

        assert store.add(db, EVENT_ID, "att-1", "D") == ["A", "C", "D"]


class TestReorder:
    """Test permutation-based reordering."""

    @pytest.fixture
    def ranked(self, db, store, make_requests):
        make_requests("A", "B", "C")
        for request_id in ("A", "B", "C"):
            store.add(db, EVENT_ID, "att-1", request_id)

    def test_reorder(self, db, store, ranked):
        result = store.reorder(db, EVENT_ID, "att-1", ["C", "A", "B"])

        assert result == ["C", "A", "B"]
        assert _positions(db, "att-1") == [("C", 1), ("A", 2), ("B", 3)]

    @pytest.mark.parametrize("ordered", [
        ["A", "B"],
        ["A", "B", "C", "C"],
        ["A", "A", "B"],
        ["A", "B", "Z"],
    ])
    def test_invalid_permutation(self, db, store, ranked, ordered):
        with pytest.raises(InvalidPermutation):
            store.reorder(db, EVENT_ID, "att-1", ordered)
        assert store.get(db, EVENT_ID, "att-1") == ["A", "B", "C"]


class TestReplace:
    """Test whole-list replacement."""

    def test_replace(self, db, store, make_requests):
        make_requests("A", "B", "C")
        store.add(db, EVENT_ID, "att-1", "A")

        result = store.replace(db, EVENT_ID, "att-1", ["C", "B"])

        assert result == ["C", "B"]
        assert _positions(db, "att-1") == [("C", 1), ("B", 2)]

    def test_replace_keeps_existing_entry(self, db, store, make_requests):
        make_requests("A", "B")
        store.add(db, EVENT_ID, "att-1", "A")

        assert store.replace(db, EVENT_ID, "att-1", ["B", "A"]) == ["B", "A"]

    def test_replace_too_long(self, db, store, make_requests):
        make_requests("A", "B", "C", "D")

        with pytest.raises(DepthExceeded):
            store.replace(db, EVENT_ID, "att-1", ["A", "B", "C", "D"])

    def test_replace_duplicates(self, db, store, make_requests):
        make_requests("A")

        with pytest.raises(InvalidPermutation):
            store.replace(db, EVENT_ID, "att-1", ["A", "A"])

    def test_replace_with_unrankable(self, db, store, make_requests):
        make_requests("A")
        make_requests("P", status="rejected")
        store.add(db, EVENT_ID, "att-1", "A")

        with pytest.raises(NotRankable):
            store.replace(db, EVENT_ID, "att-1", ["P"])
        assert store.get(db, EVENT_ID, "att-1") == ["A"]


class TestPrune:
    """Test removal of songs that left the rankable pool."""

    def test_prune_request(self, db, store, make_requests):
        make_requests("A", "B")
        store.add(db, EVENT_ID, "att-1", "A")
        store.add(db, EVENT_ID, "att-1", "B")
        store.add(db, EVENT_ID, "att-2", "A")

        affected = store.prune_request(db, EVENT_ID, "A")

        assert affected == 2
        assert _positions(db, "att-1") == [("B", 1)]
        assert _positions(db, "att-2") == []

    def test_prune_unrankable(self, db, store, make_requests):
        make_requests("A", "B", "C")
        for request_id in ("A", "B", "C"):
            store.add(db, EVENT_ID, "att-1", request_id)
        store.add(db, EVENT_ID, "att-2", "B")
        _set_status(db, "A", "played")
        _set_status(db, "B", "playing")

        removed = store.prune_unrankable(db, EVENT_ID)

        assert removed == 3
        assert _positions(db, "att-1") == [("C", 1)]
        assert _positions(db, "att-2") == []

    def test_prune_unrankable_nothing_to_do(self, db, store, make_requests):
        make_requests("A")
        store.add(db, EVENT_ID, "att-1", "A")

        assert store.prune_unrankable(db, EVENT_ID) == 0


class TestReadInputs:
    """Test the consistent read used by recompute."""

    def test_includes_unranked_rankable_requests(self, db, store, make_requests):
        make_requests("B", "A", "N")
        store.add(db, EVENT_ID, "att-1", "B")
        store.add(db, EVENT_ID, "att-1", "A")

        inputs = store.read_inputs(db, EVENT_ID)

        assert inputs.rankable_ids == ["A", "B", "N"]
        assert inputs.rankings == {"att-1": ["B", "A"]}

    def test_excludes_non_rankable(self, db, store, make_requests):
        make_requests("A", "B")
        store.add(db, EVENT_ID, "att-1", "A")
        store.add(db, EVENT_ID, "att-1", "B")
        _set_status(db, "A", "played")

        inputs = store.read_inputs(db, EVENT_ID)

        assert inputs.rankable_ids == ["B"]
        assert inputs.rankings == {"att-1": ["B"]}

    def test_list_event_ids(self, db, store, make_requests):
        make_requests("A")
        assert store.list_event_ids(db) == []

        store.add(db, EVENT_ID, "att-1", "A")
        assert store.list_event_ids(db) == [EVENT_ID]


class TestConcurrentWriters:
    """Test that writers for one attendee serialise through the database."""

    def test_depth_holds_across_store_instances(self, session_factory, db, make_requests, monkeypatch):
        """Two stores act like two worker processes adding to the same list."""
        make_requests("A", "B", "C", "D")
        first, second = AttendeeRankingStore(), AttendeeRankingStore()
        first.add(db, EVENT_ID, "att-1", "A")
        first.add(db, EVENT_ID, "att-1", "B")

        rows_read = threading.Event()
        resume = threading.Event()
        lock_rows = first._lock_rows

        def pausing_lock_rows(session, event_id, attendee_id):
            rows = lock_rows(session, event_id, attendee_id)
            rows_read.set()
            resume.wait(timeout=5)
            return rows

        monkeypatch.setattr(first, "_lock_rows", pausing_lock_rows)
        errors = {}

        def run(store, request_id):
            session = session_factory()
            try:
                store.add(session, EVENT_ID, "att-1", request_id)
            except Exception as e:
                errors[request_id] = e
            finally:
                session.close()

        writer_c = threading.Thread(target=run, args=(first, "C"))
        writer_d = threading.Thread(target=run, args=(second, "D"))
        writer_c.start()
        assert rows_read.wait(timeout=5)

        writer_d.start()
        writer_d.join(timeout=0.3)
        assert writer_d.is_alive()

        resume.set()
        writer_c.join(timeout=10)
        writer_d.join(timeout=10)

        assert list(errors) == ["D"]
        assert isinstance(errors["D"], DepthExceeded)
        assert _positions(db, "att-1") == [("A", 1), ("B", 2), ("C", 3)]

    def test_store_keeps_no_per_attendee_state(self, db, store, make_requests):
        make_requests("A")
        for attendee_id in ("att-1", "att-2", "att-3"):
            store.add(db, EVENT_ID, attendee_id, "A")

        assert vars(store) == {"pool": store.pool}
