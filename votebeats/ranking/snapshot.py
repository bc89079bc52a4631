"""
Pure recompute pipeline: consistent inputs -> DualRankingSnapshot.
"""
from datetime import datetime, timezone
from typing import Optional

from votebeats.ranking.gems import detect_hidden_gems, is_activated
from votebeats.ranking.scoring import compute_scores
from votebeats.ranking.tally import build_tally
from votebeats.ranking.types import DualRankingSnapshot, RankingConfig, RankingInputs


def count_participants(inputs: RankingInputs) -> int:
    """Distinct attendees with at least one rankable song ranked"""
    rankable = set(inputs.rankable_ids)
    return sum(
        1 for ordered in inputs.rankings.values()
        if any(request_id in rankable for request_id in ordered)
    )


def build_snapshot(
    inputs: RankingInputs,
    config: RankingConfig,
    generated_at: Optional[datetime] = None
) -> DualRankingSnapshot:
    tally = build_tally(inputs)
    consensus, discovery = compute_scores(inputs, tally)
    hidden_gems = detect_hidden_gems(consensus, discovery, config)
    total_participants = count_participants(inputs)

    return DualRankingSnapshot(
        event_id=inputs.event_id,
        generated_at=generated_at or datetime.now(timezone.utc),
        primary_mode=config.primary_mode,
        activated=is_activated(total_participants, config),
        total_participants=total_participants,
        min_participants_for_activation=config.min_participants_for_activation,
        consensus_scores=consensus,
        discovery_scores=discovery,
        hidden_gems=hidden_gems,
    )
