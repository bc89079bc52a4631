"""
Consensus and Discovery orderings.

Consensus rewards breadth: net pairwise margin (Copeland), then the number
of attendees ranking the song. Discovery rewards intensity: the share of
head-to-head contests won among whoever compared the song, so a song loved
by a small crowd can outrank one that many people ranked lukewarmly.

Both orderings end on the request id, which makes every rank unique.
"""
from typing import Dict, List, Tuple

from votebeats.ranking.tally import PairKey
from votebeats.ranking.types import PairwiseRecord, RankingInputs, ScoreEntry


class SongStats:
    """Per-request aggregates shared by both modes."""

    __slots__ = ("request_id", "wins", "losses", "ranker_count", "position_sum")

    def __init__(self, request_id: str):
        self.request_id = request_id
        self.wins = 0
        self.losses = 0
        self.ranker_count = 0
        self.position_sum = 0

    @property
    def copeland(self) -> int:
        return self.wins - self.losses

    @property
    def compared(self) -> bool:
        return self.wins + self.losses > 0

    @property
    def win_rate(self) -> float:
        if not self.compared:
            return 0.0
        return self.wins / (self.wins + self.losses)

    @property
    def avg_position(self):
        if self.ranker_count == 0:
            return None
        return self.position_sum / self.ranker_count


def collect_stats(
    inputs: RankingInputs,
    tally: Dict[PairKey, PairwiseRecord]
) -> Dict[str, SongStats]:
    """Aggregate wins, losses, ranker counts and positions for every rankable request"""
    stats = {request_id: SongStats(request_id) for request_id in inputs.rankable_ids}

    for ordered in inputs.rankings.values():
        ranked = [request_id for request_id in ordered if request_id in stats]
        for position, request_id in enumerate(ranked, start=1):
            entry = stats[request_id]
            entry.ranker_count += 1
            entry.position_sum += position

    for record in tally.values():
        a = stats.get(record.request_a)
        b = stats.get(record.request_b)
        if a is None or b is None:
            continue
        a.wins += record.wins_a
        a.losses += record.wins_b
        b.wins += record.wins_b
        b.losses += record.wins_a

    return stats


def consensus_sort_key(entry: SongStats):
    return (-entry.copeland, -entry.ranker_count, entry.request_id)


def discovery_sort_key(entry: SongStats):
    # never-compared songs sort as -1 so they land below any real win rate, including 0
    win_rate = entry.win_rate if entry.compared else -1.0
    return (-win_rate, -entry.ranker_count, -entry.copeland, entry.request_id)


def _to_entries(ordered: List[SongStats]) -> List[ScoreEntry]:
    return [
        ScoreEntry(
            request_id=s.request_id,
            rank=rank,
            win_rate=s.win_rate,
            ranker_count=s.ranker_count,
            copeland=s.copeland,
            wins=s.wins,
            losses=s.losses,
            avg_position=s.avg_position,
        )
        for rank, s in enumerate(ordered, start=1)
    ]


def compute_scores(
    inputs: RankingInputs,
    tally: Dict[PairKey, PairwiseRecord]
) -> Tuple[List[ScoreEntry], List[ScoreEntry]]:
    """
    Derive both orderings from one tally.

    Returns:
        (consensus_scores, discovery_scores), each ranked 1..N
    """
    stats = list(collect_stats(inputs, tally).values())
    consensus = _to_entries(sorted(stats, key=consensus_sort_key))
    discovery = _to_entries(sorted(stats, key=discovery_sort_key))
    return consensus, discovery
