"""
Hidden gem detection and quorum activation.
"""
import math
from typing import List

from votebeats.ranking.types import HiddenGemEntry, RankingConfig, ScoreEntry


def detect_hidden_gems(
    consensus: List[ScoreEntry],
    discovery: List[ScoreEntry],
    config: RankingConfig
) -> List[HiddenGemEntry]:
    """
    Flag songs strong by intensity of support but weak by breadth.

    A gem sits in the better part of Discovery, trails its Discovery rank in
    Consensus by at least `gap_threshold` places, and has at least one ranker.
    Stamps `is_hidden_gem` on the entries of both lists.
    """
    if not discovery:
        return []

    cutoff = math.ceil(len(discovery) * config.gem_discovery_fraction)
    consensus_by_id = {entry.request_id: entry for entry in consensus}

    gems = []
    for d in discovery:
        c = consensus_by_id.get(d.request_id)
        if c is None:
            continue
        delta = c.rank - d.rank
        if d.rank <= cutoff and delta >= config.gap_threshold and d.ranker_count >= 1:
            d.is_hidden_gem = True
            c.is_hidden_gem = True
            gems.append(HiddenGemEntry(
                request_id=d.request_id,
                discovery_rank=d.rank,
                discovery_win_rate=d.win_rate,
                consensus_rank=c.rank,
                consensus_win_rate=c.win_rate,
                ranker_count=d.ranker_count,
                rank_delta=delta,
            ))

    gems.sort(key=lambda g: (-g.rank_delta, g.discovery_rank))
    return gems


def is_activated(total_participants: int, config: RankingConfig) -> bool:
    """Aggregated order is authoritative once enough attendees have ranked"""
    return total_participants >= config.min_participants_for_activation
