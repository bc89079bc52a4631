"""
Ranking package - pairwise aggregation of attendee Top-N lists
"""
from votebeats.ranking.gems import detect_hidden_gems, is_activated
from votebeats.ranking.overrides import apply_manual_locks
from votebeats.ranking.scoring import compute_scores
from votebeats.ranking.snapshot import build_snapshot, count_participants
from votebeats.ranking.tally import build_tally, pair_key

__all__ = [
    "detect_hidden_gems",
    "is_activated",
    "apply_manual_locks",
    "compute_scores",
    "build_snapshot",
    "count_participants",
    "build_tally",
    "pair_key",
]
