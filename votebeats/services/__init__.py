"""
Services package - Business logic layer
"""
from votebeats.services.rankable_pool import rankable_pool
from votebeats.services.ranking_store import ranking_store
from votebeats.services.seen_service import seen_service

__all__ = [
    "rankable_pool",
    "ranking_store",
    "seen_service"
]
