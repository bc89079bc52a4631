"""
Value types shared by the ranking pipeline.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from votebeats.config import settings


class ScoringMode(str, Enum):
    consensus = "consensus"
    discovery = "discovery"


class SnapshotStatus(str, Enum):
    stale = "stale"
    recomputing = "recomputing"
    fresh = "fresh"


class RankingConfig(BaseModel):
    """Per-event ranked-choice tunables."""
    ranking_depth: int = Field(settings.DEFAULT_RANKING_DEPTH, ge=1)
    min_participants_for_activation: int = Field(settings.DEFAULT_MIN_PARTICIPANTS, ge=0)
    gap_threshold: int = Field(settings.DEFAULT_GAP_THRESHOLD, ge=0)
    gem_discovery_fraction: float = Field(settings.DEFAULT_GEM_DISCOVERY_FRACTION, gt=0, le=1)
    primary_mode: ScoringMode = ScoringMode(settings.DEFAULT_PRIMARY_MODE)

    @classmethod
    def from_event(cls, event) -> "RankingConfig":
        """Build from an Event row, falling back to defaults for unset columns"""
        values = {
            "ranking_depth": event.ranking_depth,
            "min_participants_for_activation": event.min_participants_for_activation,
            "gap_threshold": event.gap_threshold,
            "gem_discovery_fraction": event.gem_discovery_fraction,
            "primary_mode": event.primary_mode,
        }
        return cls(**{k: v for k, v in values.items() if v is not None})


class RankingInputs(BaseModel):
    """A consistent read of one event: the rankable pool and every attendee's list."""
    event_id: str
    rankable_ids: List[str] = []
    rankings: Dict[str, List[str]] = {}  # attendee id -> request ids, best first


class PairwiseRecord(BaseModel):
    request_a: str
    request_b: str
    wins_a: int = 0
    wins_b: int = 0
    ties: int = 0

    @property
    def total(self) -> int:
        return self.wins_a + self.wins_b + self.ties


class ScoreEntry(BaseModel):
    request_id: str
    rank: int
    win_rate: float
    ranker_count: int
    copeland: int
    wins: int = 0
    losses: int = 0
    avg_position: Optional[float] = None
    is_hidden_gem: bool = False
    manual_order: Optional[int] = None
    position: Optional[int] = None
    my_ranking_position: Optional[int] = None
    # song details, attached at read time
    song_title: Optional[str] = None
    artist_name: Optional[str] = None
    status: Optional[str] = None
    request_created_at: Optional[datetime] = None


class HiddenGemEntry(BaseModel):
    request_id: str
    discovery_rank: int
    discovery_win_rate: float
    consensus_rank: int
    consensus_win_rate: float
    ranker_count: int
    rank_delta: int
    song_title: Optional[str] = None
    artist_name: Optional[str] = None
    status: Optional[str] = None


class RequestDetails(BaseModel):
    """Display fields and lock state of one song request"""
    request_id: str
    song_title: Optional[str] = None
    artist_name: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = None
    manual_order: Optional[int] = None
    manual_order_set_at: Optional[datetime] = None


class ManualLock(BaseModel):
    request_id: str
    manual_order: int
    set_at: Optional[datetime] = None


class DualRankingSnapshot(BaseModel):
    event_id: str
    generated_at: datetime
    primary_mode: ScoringMode
    activated: bool
    total_participants: int
    min_participants_for_activation: int
    consensus_scores: List[ScoreEntry] = []
    discovery_scores: List[ScoreEntry] = []
    hidden_gems: List[HiddenGemEntry] = []

    def scores_for(self, mode: ScoringMode) -> List[ScoreEntry]:
        if mode == ScoringMode.discovery:
            return self.discovery_scores
        return self.consensus_scores

    @property
    def primary_scores(self) -> List[ScoreEntry]:
        return self.scores_for(self.primary_mode)
