"""
Pairwise head-to-head tally.

Only attendees who ranked both songs of a pair vote on it; a song missing
from an attendee's list is not implicitly ranked below the others.
"""
import logging
from itertools import combinations
from typing import Dict, Tuple

from votebeats.ranking.types import PairwiseRecord, RankingInputs

logger = logging.getLogger(__name__)

PairKey = Tuple[str, str]


def pair_key(first: str, second: str) -> PairKey:
    """Unordered pair key, smaller id first"""
    return (first, second) if first < second else (second, first)


def build_tally(inputs: RankingInputs) -> Dict[PairKey, PairwiseRecord]:
    """
    Count head-to-head wins for every pair compared by at least one attendee.

    Rankings may still reference requests that left the pool since the last
    prune; those entries are skipped here so they never score.
    """
    rankable = set(inputs.rankable_ids)
    tally: Dict[PairKey, PairwiseRecord] = {}

    for ordered in inputs.rankings.values():
        ranked = [request_id for request_id in ordered if request_id in rankable]
        # combinations() keeps list order, so the first element is always the winner
        for winner, loser in combinations(ranked, 2):
            key = pair_key(winner, loser)
            record = tally.get(key)
            if record is None:
                record = PairwiseRecord(request_a=key[0], request_b=key[1])
                tally[key] = record
            if winner == record.request_a:
                record.wins_a += 1
            else:
                record.wins_b += 1

    logger.debug(f"Built tally for event {inputs.event_id}: {len(tally)} pairs")
    return tally
