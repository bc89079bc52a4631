"""
Unit tests for the manual override layer.
"""

from datetime import datetime, timedelta, timezone

from votebeats.ranking.overrides import apply_manual_locks
from votebeats.ranking.types import ManualLock, ScoreEntry

NOW = datetime(2026, 5, 1, 21, 0, tzinfo=timezone.utc)


def _entries(*request_ids):
    return [
        ScoreEntry(request_id=rid, rank=rank, win_rate=0.5, ranker_count=1, copeland=0)
        for rank, rid in enumerate(request_ids, start=1)
    ]


def _ids(entries):
    return [entry.request_id for entry in entries]


class TestApplyManualLocks:
    """Test DJ locks merged over computed order."""

    def test_no_locks_keeps_order(self):
        displayed = apply_manual_locks(_entries("A", "B", "C"), [])

        assert _ids(displayed) == ["A", "B", "C"]
        assert [e.position for e in displayed] == [1, 2, 3]
        assert all(e.manual_order is None for e in displayed)

    def test_lock_to_first_slot(self):
        displayed = apply_manual_locks(
            _entries("A", "B", "C", "D"),
            [ManualLock(request_id="C", manual_order=1, set_at=NOW)],
        )

        assert _ids(displayed) == ["C", "A", "B", "D"]
        assert displayed[0].manual_order == 1
        assert displayed[0].rank == 3

    def test_collision_most_recent_wins(self):
        displayed = apply_manual_locks(
            _entries("A", "B", "C", "D"),
            [
                ManualLock(request_id="B", manual_order=2, set_at=NOW),
                ManualLock(request_id="D", manual_order=2, set_at=NOW + timedelta(seconds=5)),
            ],
        )

        assert _ids(displayed) == ["A", "D", "B", "C"]
        by_id = {e.request_id: e for e in displayed}
        assert by_id["D"].manual_order == 2
        assert by_id["B"].manual_order is None

    def test_lock_without_timestamp_loses(self):
        displayed = apply_manual_locks(
            _entries("A", "B", "C"),
            [
                ManualLock(request_id="C", manual_order=1, set_at=NOW),
                ManualLock(request_id="B", manual_order=1),
            ],
        )

        assert _ids(displayed)[0] == "C"

    def test_slot_beyond_length_clamped(self):
        displayed = apply_manual_locks(
            _entries("A", "B", "C"),
            [ManualLock(request_id="A", manual_order=10, set_at=NOW)],
        )

        assert _ids(displayed) == ["B", "C", "A"]
        assert displayed[-1].manual_order == 3

    def test_lock_for_absent_request_ignored(self):
        displayed = apply_manual_locks(
            _entries("A", "B"),
            [ManualLock(request_id="GONE", manual_order=1, set_at=NOW)],
        )

        assert _ids(displayed) == ["A", "B"]

    def test_inputs_not_modified(self):
        entries = _entries("A", "B")
        apply_manual_locks(entries, [ManualLock(request_id="B", manual_order=1, set_at=NOW)])

        assert _ids(entries) == ["A", "B"]
        assert entries[1].manual_order is None
        assert entries[1].position is None

    def test_empty_entries(self):
        assert apply_manual_locks([], [ManualLock(request_id="A", manual_order=1)]) == []
